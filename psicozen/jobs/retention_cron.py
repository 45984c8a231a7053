"""
Retention Cron Job: enforce each organization's data retention window.

Soft-deletes emociograma submissions older than the organization's
``data_retention_days`` setting.

Typical cron schedule: 0 3 * * * (daily at 3 AM)
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ..core.config import get_settings
from ..models import Organization
from ..services.alert_engine import AlertEngine
from ..services.notifications import LoggingEmailSender
from ..services.organizations import validate_settings
from ..services.submissions import SubmissionService

logger = logging.getLogger(__name__)


async def purge_expired_submissions(
    session: AsyncSession,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Apply every active organization's retention window within one session."""
    now = now or datetime.now(timezone.utc)
    # The purge never raises alerts, so no real sender is needed
    submissions = SubmissionService(
        session, alert_engine=AlertEngine(session, email_sender=LoggingEmailSender())
    )

    result = await session.execute(
        select(Organization).where(
            Organization.deleted_at.is_(None),
            Organization.is_active.is_(True),
        )
    )
    organizations = result.scalars().all()

    summary: dict[str, Any] = {
        "organizations_processed": 0,
        "submissions_purged": 0,
        "by_organization": {},
    }

    for organization in organizations:
        retention_days = validate_settings(organization.settings or {}).data_retention_days
        purged = await submissions.purge_expired(organization.id, retention_days, now=now)

        summary["organizations_processed"] += 1
        summary["submissions_purged"] += purged
        if purged:
            summary["by_organization"][str(organization.id)] = purged
            logger.info(
                f"Organization {organization.slug}: purged {purged} submissions "
                f"older than {retention_days} days"
            )

    return summary


async def run_retention_job(database_url: str) -> dict[str, Any]:
    """
    Main entry point for the retention cron job.

    Runs in a single transaction: either every organization is purged or
    none is.
    """
    start_time = datetime.now(timezone.utc)
    logger.info(f"Starting retention job at {start_time.isoformat()}")

    engine = create_async_engine(database_url)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)

    try:
        async with session_factory() as session:
            async with session.begin():
                results = await purge_expired_submissions(session, now=start_time)
    except Exception:
        logger.exception("Retention job failed")
        raise
    finally:
        await engine.dispose()

    end_time = datetime.now(timezone.utc)
    results["started_at"] = start_time.isoformat()
    results["completed_at"] = end_time.isoformat()
    results["duration_seconds"] = (end_time - start_time).total_seconds()

    logger.info(
        f"Retention job completed in {results['duration_seconds']:.2f}s: "
        f"{results['submissions_purged']} submissions purged across "
        f"{results['organizations_processed']} organizations"
    )
    return results


# =============================================================================
# CLI ENTRY POINT
# =============================================================================


def main():
    """CLI entry point for the retention job."""
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Run the data retention cron job")
    parser.add_argument(
        "--database-url",
        default=settings.database_url_async,
        help="Async database URL (defaults to DATABASE_URL)",
    )
    args = parser.parse_args()

    if not args.database_url:
        print("Error: DATABASE_URL is required")
        sys.exit(1)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        results = asyncio.run(run_retention_job(args.database_url))
        print(f"Job completed: {results}")
    except Exception as e:
        print(f"Job failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
