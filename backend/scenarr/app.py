"""Command-line entry point: run a Scenarr job once."""

from __future__ import annotations

import argparse
import asyncio

import structlog

from scenarr.core.bootstrap import (
    create_indexer,
    create_model_handle,
    create_torrent_client,
    init_database,
)
from scenarr.core.config import Settings, reload_settings
from scenarr.core.jobs.subscription_search import SubscriptionSearchJob
from scenarr.core.jobs.torrent_monitor import TorrentMonitorJob
from scenarr.core.logging import setup_logging

logger = structlog.get_logger("scenarr.app")

JOBS = (SubscriptionSearchJob.name, TorrentMonitorJob.name)


async def run_job(job_name: str, settings: Settings) -> None:
    """Initialize the database and clients, then run ``job_name`` once."""
    engine, session_factory = await init_database(settings)
    indexer = create_indexer(settings)
    client = create_torrent_client(settings)

    try:
        if job_name == SubscriptionSearchJob.name:
            await SubscriptionSearchJob(
                indexer,
                client,
                settings=settings,
                session_factory=session_factory,
                model_handle=create_model_handle(settings),
            ).execute()
        elif job_name == TorrentMonitorJob.name:
            await TorrentMonitorJob(
                client, settings=settings, session_factory=session_factory
            ).execute()
        else:
            raise ValueError(f"Unknown job: {job_name}")
    finally:
        if indexer is not None:
            await indexer.aclose()
        if client is not None:
            await client.aclose()
        await engine.dispose()


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(prog="scenarr", description=__doc__)
    parser.add_argument("job", choices=JOBS, help="Job to run")
    args = parser.parse_args()

    settings = reload_settings()
    setup_logging(debug=settings.is_debug, logs_dir=settings.logs_dir)
    logger.info("Running job", job=args.job, env=settings.env)

    asyncio.run(run_job(args.job, settings))


if __name__ == "__main__":
    main()
