from __future__ import annotations

import os
from datetime import UTC, datetime
from typing import Any

os.environ.setdefault("CHORECOINS_DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("CHORECOINS_SECRET_KEY", "test-secret")
os.environ.setdefault("CHORECOINS_TIMEZONE", "UTC")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from chorecoins.db.base import Base
from chorecoins.models.household import Household
from chorecoins.models.user import MemberRole, User
from chorecoins.services.notification_service import set_notifier

# a Monday
NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


class RecordingNotifier:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def send(self, event: str, payload: dict[str, Any]) -> None:
        self.events.append((event, payload))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def notifier() -> RecordingNotifier:
    recorder = RecordingNotifier()
    set_notifier(recorder)
    yield recorder
    set_notifier(None)


def make_user(db: Session, email: str, *, household: Household | None = None,
              role: MemberRole = MemberRole.MEMBER, coins: int = 0) -> User:
    user = User(
        email=email,
        display_name=email.split("@")[0].title(),
        household_id=household.id if household else None,
        role=role,
        coins=coins,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def household(db: Session) -> Household:
    household = Household(name="The Smiths", invite_code="SMITH234", created_at=NOW)
    db.add(household)
    db.commit()
    return household


@pytest.fixture
def admin(db: Session, household: Household) -> User:
    return make_user(db, "parent@example.com", household=household, role=MemberRole.ADMIN)


@pytest.fixture
def kid(db: Session, household: Household) -> User:
    return make_user(db, "kid@example.com", household=household)
