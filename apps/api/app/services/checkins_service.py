# apps/api/app/services/checkins_service.py

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from app.repos import checkins_repo, couples_repo
from app.services.couples_service import resolve_timezone
from app.services.daily_aggregation_service import recompute_daily_series
from app.services.day_keys import add_days, as_utc, compute_day_key

logger = logging.getLogger(__name__)

MAX_NOTE_CHARS = 500
MAX_TAGS = 3


def _validate_rating(rating) -> int:
    try:
        value = float(rating)
    except (TypeError, ValueError):
        raise ValueError("Rating must be between 1 and 5.")
    if not math.isfinite(value) or value < 1 or value > 5 or value != int(value):
        raise ValueError("Rating must be between 1 and 5.")
    return int(value)


def _clean_tags(tags: Optional[List[str]]) -> List[str]:
    out = []
    for t in tags or []:
        t = str(t or "").strip()
        if t:
            out.append(t)
    return out[:MAX_TAGS]


def create_checkin(
    engine,
    *,
    couple_id: str,
    user_id: str,
    rating: int,
    tags: Optional[List[str]] = None,
    note: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Store one check-in, then replay its local day so the daily series
    reflects it immediately.
    """
    if not couple_id:
        raise ValueError("couple_id is required")
    user_id = (user_id or "").strip()
    if not user_id:
        raise ValueError("user_id is required")

    value = _validate_rating(rating)
    clean_tags = _clean_tags(tags)
    note = (note or "").strip()[:MAX_NOTE_CHARS] or None
    created_at = as_utc(created_at) if created_at else datetime.now(timezone.utc)
    checkin_id = str(uuid4())

    with engine.begin() as conn:
        tz_name = resolve_timezone(conn, couple_id)
        if user_id not in couples_repo.list_member_ids(conn, couple_id):
            raise ValueError("user is not a member of this couple")

        checkins_repo.insert_checkin(
            conn,
            checkin_id=checkin_id,
            couple_id=couple_id,
            user_id=user_id,
            rating=value,
            tags=clean_tags,
            note=note,
            created_at=created_at,
        )

    day_key = compute_day_key(created_at, tz_name)
    recompute = recompute_daily_series(
        engine,
        couple_id=couple_id,
        tz_name=tz_name,
        start_day_key=day_key,
        end_day_key_exclusive=add_days(day_key, 1),
    )

    return {
        "id": checkin_id,
        "couple_id": couple_id,
        "user_id": user_id,
        "rating": value,
        "tags": clean_tags,
        "note": note,
        "created_at": created_at.isoformat(),
        "day_key": day_key.isoformat(),
        "recompute": recompute,
    }
