# apps/api/app/jobs/backfill_daily.py
#
# Rolling backfill: recompute the last N days for every couple.
#   python -m app.jobs.backfill_daily --days 30
#   python -m app.jobs.backfill_daily --couple-id <id>

import argparse
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import load_env, getenv_required, getenv_default, getenv_int
from app.core.db import make_engine
from app.core.logging_config import configure_logging
from app.repos import couples_repo
from app.services.daily_aggregation_service import recompute_recent_days

logger = logging.getLogger(__name__)


def run_backfill(engine, *, days: int, couple_ids=None) -> dict:
    """
    Returns { couples, metrics_upserts, signal_upserts, failed: [couple_id] }.
    One couple failing (bad timezone, db hiccup) does not stop the others;
    recompute is idempotent so the next run retries it.
    """
    if couple_ids is None:
        with engine.begin() as conn:
            couple_ids = couples_repo.list_couple_ids(conn)

    totals = {"couples": 0, "metrics_upserts": 0, "signal_upserts": 0, "failed": []}

    for couple_id in couple_ids:
        try:
            result = recompute_recent_days(engine, couple_id=couple_id, days=days)
        except (ValueError, SQLAlchemyError):
            logger.exception("[BACKFILL] couple=%s failed", couple_id)
            totals["failed"].append(couple_id)
            continue

        totals["couples"] += 1
        totals["metrics_upserts"] += result["metrics_upserts"]
        totals["signal_upserts"] += result["signal_upserts"]

    logger.info(
        "[BACKFILL] done couples=%d metrics=%d signals=%d failed=%d",
        totals["couples"],
        totals["metrics_upserts"],
        totals["signal_upserts"],
        len(totals["failed"]),
    )
    return totals


def main(argv=None) -> int:
    load_env()
    configure_logging(getenv_default("LOG_LEVEL", "INFO"))

    parser = argparse.ArgumentParser(description="Recompute the rolling daily series.")
    parser.add_argument("--days", type=int, default=getenv_int("BACKFILL_DAYS", 30))
    parser.add_argument("--couple-id", action="append", dest="couple_ids")
    args = parser.parse_args(argv)

    engine = make_engine(getenv_required("DATABASE_URL"))
    totals = run_backfill(engine, days=args.days, couple_ids=args.couple_ids)
    return 1 if totals["failed"] else 0


if __name__ == "__main__":
    sys.exit(main())
