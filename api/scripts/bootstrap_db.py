"""Migrate the tipping schema, seed finals config and optionally run a first sync."""

from __future__ import annotations

import argparse
import asyncio
import logging

from tipping.config import settings
from tipping.db import close_db, get_async_session
from tipping.db.migrations import upgrade_to_head
from tipping.logging_config import configure_logging
from tipping.services.finals import seed_finals_config

logger = logging.getLogger(__name__)


async def _run(sync: bool) -> None:
    async with get_async_session() as session:
        seeded = await seed_finals_config(session)
    logger.info("bootstrap_finals_seeded", extra={"finals_rounds_seeded": seeded})

    if sync:
        from tipping.main import app

        outcomes = await app.state.scheduler.run_all()
        for outcome in outcomes:
            logger.info(
                "bootstrap_job_finished",
                extra={"job_id": outcome.job_id, "status": outcome.status, "error": outcome.error},
            )
    await close_db()


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Prepare the tipping database.")
    parser.add_argument(
        "--sync",
        action="store_true",
        help="Run full-sync, round-status and tip-correctness once after migrating.",
    )
    return parser.parse_args()


def main() -> None:
    configure_logging(
        service="footy-tipping-cli",
        environment=settings.environment,
        log_level=settings.log_level,
    )
    args = _parse_args()
    upgrade_to_head()
    logger.info("bootstrap_schema_migrated")
    asyncio.run(_run(args.sync))


if __name__ == "__main__":
    main()
