# ==============================================================================
# CLI Commands Module
# ==============================================================================
"""
CLI commands for the event pipeline.

Commands are organized into separate modules:
- shared.py: Colors, icons and connection helpers
- worker.py: Worker process
- queue.py: Stream and consumer group operations
- db.py: Database schema bootstrap
- config.py: Configuration display
"""

from eventstream.cli.shared import C, Colors, I, Icons, open_transport, print_error, print_ok

__all__ = [
    "C",
    "Colors",
    "I",
    "Icons",
    "open_transport",
    "print_error",
    "print_ok",
]
