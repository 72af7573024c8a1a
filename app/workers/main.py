"""ARQ worker entrypoint."""

import logging

from arq import cron
from arq.connections import RedisSettings

from app.core.config import get_settings
from app.workers.usage import refresh_usage_snapshots

logger = logging.getLogger(__name__)


def _redis_settings() -> RedisSettings:
    """Parse REDIS_URL into ARQ RedisSettings."""
    return RedisSettings.from_dsn(get_settings().redis_url)


async def startup(ctx: dict) -> None:
    """Called when the worker starts."""
    from app.core.database import init_db

    logging.basicConfig(level=get_settings().log_level.upper())
    await init_db()
    logger.info("Billing worker started")


async def shutdown(ctx: dict) -> None:
    """Called when the worker shuts down."""
    logger.info("Billing worker stopped")


class WorkerSettings:
    """ARQ worker configuration."""
    functions = [refresh_usage_snapshots]
    cron_jobs = [
        cron(
            refresh_usage_snapshots,
            minute=get_settings().snapshot_refresh_minute,
            run_at_startup=True,
            unique=True,
        ),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = _redis_settings()
    max_jobs = 4
    job_timeout = 900  # a full pass over all organizations


if __name__ == "__main__":
    from arq import run_worker
    run_worker(WorkerSettings)  # type: ignore[arg-type]
