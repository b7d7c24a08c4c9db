"""Entrypoint for the bulktrack rollup worker (``bulktrack-worker``)."""

import asyncio
import logging

from . import handlers  # noqa: F401  (registers job handlers)
from .config import Config
from .health import start_health_server
from .logging import setup_logging
from .registry import registered_types
from .worker import Worker

logger = logging.getLogger(__name__)


async def _serve(config: Config) -> None:
    health = await start_health_server(config.health_port, config.database_url)
    try:
        await Worker(config).run()
    finally:
        health.close()
        await health.wait_closed()


def main() -> None:
    config = Config.from_env()
    setup_logging(config.log_format, config.log_level)
    logger.info(
        "bulktrack worker starting (log_format=%s, health_port=%d, job_types=%s)",
        config.log_format, config.health_port, ", ".join(registered_types()),
    )
    asyncio.run(_serve(config))


if __name__ == "__main__":
    main()
