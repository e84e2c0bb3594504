"""Missed-chore deduction sweep for every household with deductions enabled.

Meant to be run by an external scheduler (cron, systemd timer):

    python -m chorecoins.jobs.missed_deductions
"""

import logging

from sqlalchemy import select

from ..core.config import settings
from ..core.errors import ChoreCoinsError
from ..db.session import SessionLocal
from ..models.household import Household
from ..services.deduction_service import DeductionReport, process_missed

logger = logging.getLogger(__name__)


def run_missed_deductions(now=None) -> dict[str, DeductionReport]:
    db = SessionLocal()
    reports: dict[str, DeductionReport] = {}
    try:
        household_ids = list(
            db.execute(select(Household.id).where(Household.coin_deduction_enabled.is_(True))).scalars()
        )
        for household_id in household_ids:
            try:
                reports[household_id] = process_missed(db, household_id=household_id, now=now)
            except ChoreCoinsError as e:
                db.rollback()
                logger.warning(f"Skipped deduction sweep for {household_id}: {e.message}")
                reports[household_id] = DeductionReport(errors=[e.message])
    finally:
        db.close()
    total = sum(r.coins_deducted for r in reports.values())
    logger.info(f"Deduction sweep finished: {len(reports)} households, {total} coins deducted")
    return reports


if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL)
    run_missed_deductions()
