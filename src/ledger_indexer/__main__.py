"""Process entry point: ``python -m ledger_indexer`` / ``ledger-indexer``."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys

from prometheus_client import start_http_server

from .adapters.sui import SuiEventSource
from .config import IndexerConfig
from .exceptions import IndexerError
from .indexer import build_indexer
from .logging_setup import configure_logging
from .metrics import install_metrics_hook
from .persistence.database import Database

logger = logging.getLogger("ledger_indexer")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="ledger-indexer",
        description="Materialize ledger events into the relational read view",
    )
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="Create missing tables before starting (development only)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL",
    )
    return parser.parse_args(argv)


async def run(config: IndexerConfig, *, create_schema: bool = False) -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_event.set)

    try:
        async with Database(config.database_url) as database, SuiEventSource(
            config.resolved_rpc_url, config.package_id
        ) as source:
            await database.ping()
            if create_schema:
                await database.create_schema()
            logger.info(
                "Indexing package %s on %s via %s",
                config.package_id,
                config.network,
                config.resolved_rpc_url,
            )
            async with build_indexer(config, database, source):
                await stop_event.wait()
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.remove_signal_handler(sig)
    logger.info("Shutdown complete")


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    try:
        config = IndexerConfig.from_env()
    except IndexerError as e:
        configure_logging("INFO", "text")
        logger.error("%s", e)
        return 2

    configure_logging(args.log_level or config.log_level, config.log_format)
    if config.metrics_port is not None:
        install_metrics_hook()
        start_http_server(config.metrics_port)
        logger.info("Metrics exposed on :%d/metrics", config.metrics_port)

    try:
        asyncio.run(run(config, create_schema=args.create_schema))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except IndexerError:
        logger.exception("Indexer failed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
