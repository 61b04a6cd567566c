# ==============================================================================
# Event Pipeline CLI
# ==============================================================================
"""
Command-line interface for the analytics event pipeline.

Usage:
    eventstream --help
    eventstream worker run
    eventstream worker run --batch-size 50
    eventstream queue init
    eventstream queue depth
    eventstream db init
    eventstream config show
"""

# ==============================================================================
# App Configuration
# ==============================================================================
# Set consistent terminal width for help output formatting
import os

import typer

if "COLUMNS" not in os.environ:
    os.environ["COLUMNS"] = "115"

app = typer.Typer(
    name="eventstream",
    help="Analytics event pipeline CLI",
    no_args_is_help=True,
)

worker_app = typer.Typer(
    help="Worker process operations",
    no_args_is_help=True,
)
app.add_typer(worker_app, name="worker")

from eventstream.cli.worker import worker_run

worker_app.command("run")(worker_run)

queue_app = typer.Typer(
    help="Event stream operations",
    no_args_is_help=True,
)
app.add_typer(queue_app, name="queue")

from eventstream.cli.queue import queue_depth, queue_init

queue_app.command("init")(queue_init)
queue_app.command("depth")(queue_depth)

db_app = typer.Typer(
    help="Database operations",
    no_args_is_help=True,
)
app.add_typer(db_app, name="db")

from eventstream.cli.db import db_init

db_app.command("init")(db_init)

config_app = typer.Typer(
    help="Configuration management",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")

from eventstream.cli.config import config_show

config_app.command("show")(config_show)


# ==============================================================================
# Entry Point
# ==============================================================================


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
