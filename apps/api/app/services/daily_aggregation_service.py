# apps/api/app/services/daily_aggregation_service.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from app.repos import checkins_repo, couples_repo, daily_repo
from app.services.couples_service import resolve_timezone
from app.services.day_keys import (
    compute_day_key,
    day_key_to_str,
    day_range_ending_today,
    get_zone,
    iter_day_keys,
    local_midnight_utc,
)
from app.services.signal_math import clamp, clean_rating, mean, most_common_tags, round_half_up

logger = logging.getLogger(__name__)


# -----------------------
# Defaults (easy to change later)
# -----------------------
SCORE_PER_RATING_POINT = 20          # rating 1..5 -> 20..100
SINGLE_REPORTER_STABILITY = 70       # one partner checked in: neutral, not penalized
TOP_TAGS_PER_DAY = 3
DAILY_REASON_CODE = "DAILY_CHECKIN"

# (min daily mean, state, intensity), checked top to bottom
DAILY_STATE_BANDS = (
    (4.7, "THRIVING", 88),
    (4.0, "GOOD", 72),
    (3.0, "NEUTRAL", 50),
    (2.0, "STRESSED", 72),
)
DAILY_STATE_FLOOR = ("DISCONNECTED", 88)


@dataclass
class DayBucket:
    # user_id -> ratings, in the order users first checked in that day
    per_user: Dict[str, List[float]] = field(default_factory=dict)
    tags: List[str] = field(default_factory=list)


@dataclass
class DailyMetric:
    bond_score: Optional[int]
    connection_score: Optional[int]
    stability_score: Optional[int]
    checkin_count: int
    avg_rating: Optional[float]
    top_tags: List[str]
    user_means: Dict[str, float]


def emotion_from_avg_rating(avg_rating: float) -> tuple[str, int]:
    for floor, state, intensity in DAILY_STATE_BANDS:
        if avg_rating >= floor:
            return state, intensity
    return DAILY_STATE_FLOOR


def bucket_checkins(checkins: Iterable[dict], tz_name: str) -> Dict[datetime, DayBucket]:
    """
    Group check-ins by local day key. Ratings outside 1..5 (or non-numeric) are
    dropped together with their tags.
    """
    buckets: Dict[datetime, DayBucket] = {}
    for c in checkins:
        rating = clean_rating(c.get("rating"))
        if rating is None:
            logger.debug("skipping check-in %s: unusable rating %r", c.get("id"), c.get("rating"))
            continue

        dk = compute_day_key(c["created_at"], tz_name)
        bucket = buckets.setdefault(dk, DayBucket())
        bucket.per_user.setdefault(str(c["user_id"]), []).append(rating)
        bucket.tags.extend(str(t) for t in (c.get("tags") or []))
    return buckets


def aggregate_day(bucket: Optional[DayBucket]) -> DailyMetric:
    """
    Couple-level metrics for one day.

    - avg_rating pools every rating of the day (not an average of user averages)
    - stability compares the first two users' daily means; a lone reporter gets
      SINGLE_REPORTER_STABILITY
    - bond is the rounded mean of whichever of connection/stability exist
    """
    per_user = bucket.per_user if bucket else {}
    tags = bucket.tags if bucket else []

    user_means: Dict[str, float] = {}
    all_ratings: List[float] = []
    for uid, ratings in per_user.items():
        m = mean(ratings)
        if m is None:
            continue
        user_means[uid] = m
        all_ratings.extend(ratings)

    avg_rating = mean(all_ratings)

    connection_score = None
    if avg_rating is not None:
        connection_score = int(clamp(round_half_up(avg_rating * SCORE_PER_RATING_POINT), 0, 100))

    stability_score = None
    if len(user_means) >= 2:
        first, second = list(user_means.values())[:2]
        diff = abs(first - second)
        stability_score = int(clamp(100 - round_half_up(diff * SCORE_PER_RATING_POINT), 0, 100))
    elif len(user_means) == 1:
        stability_score = SINGLE_REPORTER_STABILITY

    present = [s for s in (connection_score, stability_score) if s is not None]
    bond_score = round_half_up(sum(present) / len(present)) if present else None

    return DailyMetric(
        bond_score=bond_score,
        connection_score=connection_score,
        stability_score=stability_score,
        checkin_count=len(all_ratings),
        avg_rating=avg_rating,
        top_tags=[t for t, _ in most_common_tags(tags, TOP_TAGS_PER_DAY)],
        user_means=user_means,
    )


def recompute_daily_series(
    engine,
    *,
    couple_id: str,
    tz_name: str,
    start_day_key: datetime,
    end_day_key_exclusive: datetime,
) -> Dict[str, Any]:
    """
    Recompute daily metrics + emotion signals for a couple over [start, end).

    Range is given in day keys (UTC midnights standing for local days in tz_name).
    Every day in range gets a metric row, even with no check-ins, so charts stay
    continuous. Rows are fully overwritten: re-running over the same events is a no-op.
    """
    if not couple_id:
        raise ValueError("couple_id is required")
    get_zone(tz_name)
    if end_day_key_exclusive < start_day_key:
        raise ValueError("end_day_key_exclusive must not be before start_day_key")

    # real instants covering the local days of the range
    since = local_midnight_utc(start_day_key, tz_name)
    until = local_midnight_utc(end_day_key_exclusive, tz_name)

    metrics_upserts = 0
    signal_upserts = 0

    with engine.begin() as conn:
        member_ids = couples_repo.list_member_ids(conn, couple_id)
        checkins = checkins_repo.list_checkins(conn, couple_id=couple_id, since=since, until=until)
        buckets = bucket_checkins(checkins, tz_name)

        for day_key in iter_day_keys(start_day_key, end_day_key_exclusive):
            metric = aggregate_day(buckets.get(day_key))
            day = day_key.date()

            daily_repo.upsert_daily_metric(
                conn,
                couple_id=couple_id,
                day=day,
                bond_score=metric.bond_score,
                connection_score=metric.connection_score,
                stability_score=metric.stability_score,
                checkin_count=metric.checkin_count,
                avg_rating=metric.avg_rating,
                top_tags=metric.top_tags,
            )
            metrics_upserts += 1

            for uid in member_ids:
                user_mean = metric.user_means.get(uid)
                if user_mean is None:
                    continue
                state, intensity = emotion_from_avg_rating(user_mean)
                daily_repo.upsert_emotion_signal(
                    conn,
                    couple_id=couple_id,
                    user_id=uid,
                    day=day,
                    state=state,
                    intensity=intensity,
                    reason_code=DAILY_REASON_CODE,
                    note=None,
                )
                signal_upserts += 1

    logger.info(
        "recomputed daily series couple=%s range=[%s, %s) checkins=%d metrics=%d signals=%d",
        couple_id,
        day_key_to_str(start_day_key),
        day_key_to_str(end_day_key_exclusive),
        len(checkins),
        metrics_upserts,
        signal_upserts,
    )

    return {
        "couple_id": couple_id,
        "timezone": tz_name,
        "start_day_key": start_day_key.isoformat(),
        "end_day_key_exclusive": end_day_key_exclusive.isoformat(),
        "metrics_upserts": metrics_upserts,
        "signal_upserts": signal_upserts,
    }


def recompute_recent_days(engine, *, couple_id: str, days: int = 30, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Recompute the last N local days including today, in the couple's timezone."""
    try:
        days_int = int(days)
    except (TypeError, ValueError):
        days_int = 30
    days_int = max(1, min(days_int, 365))

    with engine.begin() as conn:
        tz_name = resolve_timezone(conn, couple_id)

    start, end = day_range_ending_today(days_int, tz_name, now)
    return recompute_daily_series(
        engine,
        couple_id=couple_id,
        tz_name=tz_name,
        start_day_key=start,
        end_day_key_exclusive=end,
    )


def get_daily_timeline(engine, *, couple_id: str, days: int = 30, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Stored metrics + per-member signals for the last N local days.
    Reads only; run a recompute first if rows may be stale.
    """
    try:
        days_int = int(days)
    except (TypeError, ValueError):
        days_int = 30
    days_int = max(1, min(days_int, 90))

    with engine.begin() as conn:
        tz_name = resolve_timezone(conn, couple_id)
        start, end = day_range_ending_today(days_int, tz_name, now)

        member_ids = couples_repo.list_member_ids(conn, couple_id)
        metrics = daily_repo.list_daily_metrics(
            conn,
            couple_id=couple_id,
            start=start.date(),
            end_exclusive=end.date(),
        )
        signals = daily_repo.list_emotion_signals(
            conn,
            couple_id=couple_id,
            start=start.date(),
            end_exclusive=end.date(),
        )

    signals_by_user: Dict[str, list] = {uid: [] for uid in member_ids}
    for s in signals:
        signals_by_user.setdefault(s["user_id"], []).append(
            {
                "day": s["day"].isoformat(),
                "state": s["state"],
                "intensity": s["intensity"],
                "reason_code": s["reason_code"],
                "note": s["note"],
            }
        )

    return {
        "couple_id": couple_id,
        "timezone": tz_name,
        "days": days_int,
        "range": {
            "start_day_key": start.isoformat(),
            "end_day_key_exclusive": end.isoformat(),
        },
        "metrics": [{**m, "day": m["day"].isoformat()} for m in metrics],
        "signals": signals_by_user,
    }
