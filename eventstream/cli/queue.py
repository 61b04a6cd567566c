# ==============================================================================
# Queue Commands
# ==============================================================================
"""
Stream and consumer group commands for the event pipeline CLI.
"""

import json
from typing import Annotated, Optional

import typer

from eventstream.cli.shared import C, open_transport, print_error, print_ok
from eventstream.errors import TransportError
from eventstream.utils.config import get_settings


def queue_init(
    group: Annotated[
        Optional[str], typer.Option("--group", "-g", help="Consumer group name")
    ] = None,
) -> None:
    """Create the event stream and consumer group if absent."""
    settings = get_settings()
    stream_key = settings.redis.stream_key
    group_name = group or settings.consumer.group_name

    try:
        with open_transport() as transport:
            transport.ensure_group(stream_key, group_name)
    except TransportError as e:
        print_error(f"Failed to create consumer group: {e}")
        raise typer.Exit(1)

    print_ok(f"Consumer group {C.WHITE}{group_name}{C.BRIGHT_GREEN} ready on {stream_key}")


def queue_depth(
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Show the event stream and dead-letter stream lengths."""
    settings = get_settings()
    stream_key = settings.redis.stream_key
    dead_letter = settings.consumer.dead_letter_stream

    try:
        with open_transport() as transport:
            depths = {stream_key: transport.length(stream_key)}
            if dead_letter:
                depths[dead_letter] = transport.length(dead_letter)
    except TransportError as e:
        print_error(f"Failed to read stream length: {e}")
        raise typer.Exit(1)

    if json_output:
        print(json.dumps(depths, indent=2))
        return

    print()
    for key, length in depths.items():
        print(f"  {C.CYAN}{key}{C.RESET}  {C.WHITE}{length:,}{C.RESET}")
    print()
