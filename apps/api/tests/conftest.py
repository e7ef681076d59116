"""Shared test fixtures for the Tether API test suite."""

import os

# app.main builds an app at import time; point it at a throwaway database.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_SCHEMA", "1")

import pytest
from datetime import datetime, timedelta, timezone
from uuid import uuid4
from zoneinfo import ZoneInfo

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from app.core.schema import init_schema
from app.repos import checkins_repo, couples_repo

TORONTO = "America/Toronto"


# ── Database ─────────────────────────────────────────────────────────────

@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test, schema created."""
    eng = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    init_schema(eng)
    yield eng
    eng.dispose()


# ── Time ─────────────────────────────────────────────────────────────────

def local_dt(y, m, d, hour=12, minute=0, tz=TORONTO):
    """A UTC instant for a wall-clock time in `tz`."""
    return datetime(y, m, d, hour, minute, tzinfo=ZoneInfo(tz)).astimezone(timezone.utc)


@pytest.fixture
def frozen_now():
    """Fixed 'now': 2026-02-15 12:00 in Toronto (a Sunday)."""
    return local_dt(2026, 2, 15, 12)


# ── Factories ────────────────────────────────────────────────────────────

@pytest.fixture
def make_couple(engine):
    """
    Usage:
        make_couple("c1", ["alice", "bob"], tz="America/Toronto")
    """
    def _factory(couple_id="c1", members=("alice", "bob"), tz=TORONTO):
        base = datetime(2026, 1, 1, tzinfo=timezone.utc)
        with engine.begin() as conn:
            couples_repo.insert_couple(conn, couple_id, tz)
            for i, uid in enumerate(members):
                couples_repo.add_member(
                    conn,
                    couple_id=couple_id,
                    user_id=uid,
                    joined_at=base + timedelta(minutes=i),
                )
        return couple_id

    return _factory


@pytest.fixture
def add_checkin(engine):
    """
    Writes straight to the store (no validation), so tests can seed bad ratings.
    `at` must be a UTC datetime (see local_dt).
    """
    def _factory(couple_id, user_id, rating, at, tags=None, note=None):
        with engine.begin() as conn:
            checkins_repo.insert_checkin(
                conn,
                checkin_id=str(uuid4()),
                couple_id=couple_id,
                user_id=user_id,
                rating=rating,
                tags=tags or [],
                note=note,
                created_at=at,
            )

    return _factory
