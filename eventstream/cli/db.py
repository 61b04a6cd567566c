# ==============================================================================
# Database Commands
# ==============================================================================
"""
Database commands for the event pipeline CLI.
"""

import typer

from eventstream.cli.shared import print_error, print_ok
from eventstream.utils.config import get_settings


def db_init() -> None:
    """Create the events and sessions tables (idempotent)."""
    from eventstream.utils.db import ensure_schema

    settings = get_settings()
    try:
        ensure_schema(settings)
    except Exception as e:
        print_error(f"Schema initialization failed: {e}")
        raise typer.Exit(1)

    print_ok(f"Schema '{settings.postgres.schema_name}' initialized")
