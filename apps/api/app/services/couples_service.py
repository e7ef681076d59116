# apps/api/app/services/couples_service.py

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from app.core.config import default_timezone
from app.repos import couples_repo
from app.services.day_keys import get_zone

logger = logging.getLogger(__name__)


def resolve_timezone(conn, couple_id: str) -> str:
    """
    The couple's configured timezone, or the service default when none is set.
    Raises InvalidTimezoneError if the resolved name is not a real zone.
    """
    tz_name = couples_repo.get_couple_timezone(conn, couple_id) or default_timezone()
    get_zone(tz_name)
    return tz_name


def create_couple(engine, member_ids: list[str], timezone_name: str | None = None, couple_id: str | None = None):
    members = [m.strip() for m in (member_ids or []) if m and m.strip()]
    if not members:
        raise ValueError("a couple needs at least one member")
    if len(set(members)) != len(members):
        raise ValueError("member ids must be unique")
    if len(members) > 2:
        raise ValueError("a couple has at most two members")

    if timezone_name:
        get_zone(timezone_name)

    couple_id = couple_id or str(uuid4())
    now = datetime.now(timezone.utc)

    with engine.begin() as conn:
        if couples_repo.couple_exists(conn, couple_id):
            raise ValueError("couple already exists")

        couples_repo.insert_couple(conn, couple_id, timezone_name)
        # members created together still keep their listed order
        for i, user_id in enumerate(members):
            couples_repo.add_member(
                conn,
                couple_id=couple_id,
                user_id=user_id,
                joined_at=now + timedelta(microseconds=i),
            )

    logger.info("created couple=%s members=%d timezone=%s", couple_id, len(members), timezone_name)
    return couple_id, members, timezone_name or default_timezone()
