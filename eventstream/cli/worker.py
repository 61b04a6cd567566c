# ==============================================================================
# Worker Commands
# ==============================================================================
"""
Worker commands for the event pipeline CLI.

Runs a worker in the foreground. Run several to share the backlog.
"""

from typing import Annotated, Optional

import typer


def worker_run(
    batch_size: Annotated[
        Optional[int], typer.Option("--batch-size", "-b", help="Maximum messages per read")
    ] = None,
    block_ms: Annotated[
        Optional[int], typer.Option("--block-ms", help="Read blocking timeout in milliseconds")
    ] = None,
    group: Annotated[
        Optional[str], typer.Option("--group", "-g", help="Consumer group name")
    ] = None,
    name: Annotated[
        Optional[str], typer.Option("--name", "-n", help="Consumer name (default: host-pid-time)")
    ] = None,
) -> None:
    """Run a worker process until SIGTERM or Ctrl+C.

    Examples:
        eventstream worker run
        eventstream worker run --batch-size 50 --group backfill
    """
    from eventstream.worker import WorkerRunner

    runner = WorkerRunner(
        batch_size=batch_size,
        block_ms=block_ms,
        group_name=group,
        consumer_name=name,
    )
    runner.run()
