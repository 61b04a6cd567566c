# ==============================================================================
# Shared Utilities for CLI Commands
# ==============================================================================
"""
Shared constants and helpers used across CLI command modules.

This module provides:
- ANSI color codes and status icons
- A transport factory and status line helpers
"""

from eventstream.infrastructure.redis_streams import RedisStreamTransport


# ==============================================================================
# ANSI Colors and Icons
# ==============================================================================


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    CYAN = "\033[36m"
    WHITE = "\033[37m"

    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"


class Icons:
    """Status icons using Unicode symbols."""

    CHECK = "✓"
    CROSS = "✗"


# Module-level aliases for convenience
C, I = Colors, Icons


# ==============================================================================
# Connection Helpers
# ==============================================================================


def open_transport() -> RedisStreamTransport:
    """Open a transport from settings (caller closes it)."""
    return RedisStreamTransport()


def print_ok(message: str) -> None:
    print(f"{C.BRIGHT_GREEN}{I.CHECK} {message}{C.RESET}")


def print_error(message: str) -> None:
    print(f"{C.BRIGHT_RED}{I.CROSS} {message}{C.RESET}")


__all__ = [
    "Colors",
    "Icons",
    "C",
    "I",
    "open_transport",
    "print_error",
    "print_ok",
]
