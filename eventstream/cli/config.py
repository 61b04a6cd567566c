# ==============================================================================
# Config Commands
# ==============================================================================
"""
Configuration display for the event pipeline CLI.
"""

from typing import Annotated

import typer

from eventstream.cli.shared import C
from eventstream.utils.config import get_settings


def config_show(
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output configuration as JSON")
    ] = False,
) -> None:
    """Display current configuration (includes secrets in JSON mode)."""
    settings = get_settings()

    if json_output:
        print(settings.model_dump_json(indent=2))
        return

    consumer = settings.consumer
    geoip = settings.enrichment.geoip_database

    print()
    print(f"{C.BOLD}Configuration{C.RESET}")
    print()

    print(f"{C.CYAN}Redis{C.RESET}")
    print(f"  Host:       {C.WHITE}{settings.redis.host}:{settings.redis.port}{C.RESET}")
    print(f"  SSL:        {C.WHITE}{'enabled' if settings.redis.ssl else 'disabled'}{C.RESET}")
    print(f"  Stream:     {C.WHITE}{settings.redis.stream_key}{C.RESET}")
    print()

    print(f"{C.CYAN}Consumer{C.RESET}")
    print(f"  Group:      {C.WHITE}{consumer.group_name}{C.RESET}")
    print(f"  Batch:      {C.WHITE}{consumer.batch_size} messages, block {consumer.block_ms}ms{C.RESET}")
    print(f"  Backoff:    {C.WHITE}{consumer.error_backoff_ms}ms{C.RESET}")
    if consumer.reclaim_idle_ms > 0:
        print(f"  Reclaim:    {C.WHITE}after {consumer.reclaim_idle_ms}ms idle{C.RESET}")
    else:
        print(f"  Reclaim:    {C.DIM}disabled{C.RESET}")
    dead_letter = consumer.dead_letter_stream or "disabled"
    print(f"  Dead letter:{C.WHITE} {dead_letter} (max {consumer.max_deliveries} deliveries){C.RESET}")
    print()

    print(f"{C.CYAN}PostgreSQL{C.RESET}")
    print(f"  Host:       {C.WHITE}{settings.postgres.host}:{settings.postgres.port}{C.RESET}")
    print(f"  Database:   {C.WHITE}{settings.postgres.database}{C.RESET}")
    print(f"  Schema:     {C.WHITE}{settings.postgres.schema_name}{C.RESET}")
    print()

    print(f"{C.CYAN}Enrichment{C.RESET}")
    print(f"  GeoIP:      {C.WHITE}{geoip or 'disabled'}{C.RESET}")
    print()
