"""
Command line entry point.

    dexstream listen --chain ethereum   # print normalized events, no storage
    dexstream ingest                    # run the full ingestion service
    dexstream stats                     # summarize the stored events
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from .config.loader import ConfigLoader
from .config.settings import AppConfig
from .core.errors import DexStreamError
from .ingestion.service import IngestionService
from .listener.listener import ProtocolEventListener
from .models import FactoryEvent, ListenerError, StandardizedEvent
from .storage.duckdb_store import DuckDBEventStore
from .utils.logger import setup_logging

logger = logging.getLogger(__name__)

STATUS_INTERVAL_SECONDS = 30


async def _wait_for_shutdown() -> None:
    """Block until SIGINT/SIGTERM."""
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows: KeyboardInterrupt still ends asyncio.run()
            pass
    await stop.wait()


# ============================================================================
# Commands
# ============================================================================

async def listen(config: AppConfig, chain: str) -> None:
    """Run listeners and print every notification."""
    selected = [
        cfg for cfg in config.listeners
        if chain == "all" or cfg.display_name == chain
    ]
    if not selected:
        raise DexStreamError(f"No listener configured for chain '{chain}'")

    def on_event(event: StandardizedEvent):
        print(
            f"📊 {event.protocol.value} {event.event_type.value} "
            f"{event.token0.symbol}/{event.token1.symbol} {event.pool_address} "
            f"block={event.block_number} id={event.id}"
        )

    def on_factory_event(event: FactoryEvent):
        fee = f" fee={event.fee / 10000}%" if event.fee is not None else ""
        print(f"🏭 {event.protocol.value} {event.event_type.value} {event.pair_address}{fee}")

    def on_error(error: ListenerError):
        print(f"❌ {error}", file=sys.stderr)

    listeners: List[ProtocolEventListener] = []
    try:
        for listener_config in selected:
            listener = ProtocolEventListener(listener_config)
            listener.subscribe(StandardizedEvent, on_event)
            listener.subscribe(FactoryEvent, on_factory_event)
            listener.subscribe(ListenerError, on_error)
            listeners.append(listener)
            await listener.start()
            print(f"✓ Listening on {listener_config.display_name}: "
                  f"{len(listener.active_protocols)} protocols")

        print("Press Ctrl+C to stop...")
        await _wait_for_shutdown()
    finally:
        for listener in listeners:
            await listener.stop()


async def ingest(config: AppConfig) -> None:
    """Run the ingestion service until interrupted."""
    service = IngestionService(config)

    async def report_status():
        while True:
            await asyncio.sleep(STATUS_INTERVAL_SECONDS)
            count = await service.get_event_count()
            logger.info(
                f"Stored events: {count}, buffered: {service.get_buffer_status()}, "
                f"known pools: {len(service.get_known_pools())}"
            )

    await service.start()
    status_task = asyncio.create_task(report_status())
    try:
        await _wait_for_shutdown()
    finally:
        status_task.cancel()
        await service.stop()


async def stats(config: AppConfig, protocol: Optional[str], limit: int) -> None:
    """Print stored event statistics."""
    store = DuckDBEventStore(config.storage.database_path, read_only=True)
    await store.connect()
    try:
        print(f"Total events: {await store.get_event_count()}")
        for row in await store.get_event_stats():
            print(
                f"  {row['protocol']:<16} {row['event_type']:<14} {row['count']:>8} "
                f"pools={row['unique_pools']} txs={row['unique_transactions']}"
            )
        if protocol:
            for row in await store.get_events_by_protocol(protocol, limit):
                print(json.dumps(row, default=str))
    finally:
        await store.close()


# ============================================================================
# Entry Point
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dexstream",
        description="Listen to DEX protocol events and ingest them into DuckDB",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dexstream listen --chain ethereum     # Print Uniswap V2/V3 events
  dexstream ingest                      # Store events from every configured chain
  dexstream stats --protocol uniswap-v3 # Show stored events
        """
    )

    parser.add_argument(
        '--config-dir',
        type=Path,
        help='Directory containing dexstream.yaml (default: ./config)'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        help='Override the configured log level'
    )

    parser.add_argument(
        '--json-logs',
        action='store_true',
        help='Emit JSON log lines'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    listen_parser = subparsers.add_parser('listen', help='Print normalized events (no storage)')
    listen_parser.add_argument(
        '--chain',
        default='all',
        help='Listener name from the configuration (ethereum, bsc) or "all"'
    )

    subparsers.add_parser('ingest', help='Run the ingestion service')

    stats_parser = subparsers.add_parser('stats', help='Summarize stored events')
    stats_parser.add_argument('--protocol', help='Also print recent events of this protocol')
    stats_parser.add_argument('--limit', type=int, default=10, help='Number of recent events')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = ConfigLoader(args.config_dir).load_app_config()
    except DexStreamError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging(
        log_level=args.log_level or config.system.log_level,
        log_file=str(config.system.log_file) if config.system.log_file else None,
        json_format=args.json_logs or config.system.json_logs,
    )

    try:
        if args.command == 'listen':
            asyncio.run(listen(config, args.chain))
        elif args.command == 'ingest':
            asyncio.run(ingest(config))
        elif args.command == 'stats':
            asyncio.run(stats(config, args.protocol, args.limit))
    except KeyboardInterrupt:
        print("\n✓ Stopped")
    except DexStreamError as e:
        logger.error(f"{e}")
        return 1

    return 0


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
