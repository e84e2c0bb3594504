import logging

from sqlalchemy import select

from chorecoins.core.config import settings
from chorecoins.db.base import Base, Household
from chorecoins.db.session import SessionLocal, engine
from chorecoins.services import schedule_service

logger = logging.getLogger(__name__)


def init():
    Base.metadata.create_all(bind=engine)
    # recurring tasks need a due date before they can be listed or charged
    db = SessionLocal()
    try:
        for household_id in db.execute(select(Household.id)).scalars().all():
            schedule_service.initialize_next_due_dates(db, household_id=household_id)
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL)
    init()
    logger.info("Database schema created and due dates seeded.")
