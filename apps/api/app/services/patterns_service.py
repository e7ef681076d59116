# apps/api/app/services/patterns_service.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from app.repos import checkins_repo, couples_repo, insights_cache_repo
from app.services.couples_service import resolve_timezone
from app.services.day_keys import (
    compute_day_key,
    day_key_to_str,
    day_range_ending_today,
    local_midnight_utc,
    weekday_of,
)
from app.services.signal_math import clamp, clean_rating, mean, most_common_tags, round2, stddev

logger = logging.getLogger(__name__)


# -----------------------
# Defaults (easy to change later)
# -----------------------
DEFAULT_WINDOW_DAYS = 28
MIN_WINDOW_DAYS = 7
MAX_WINDOW_DAYS = 90
MID_WEEK_DOWS = (2, 3, 4)        # Tue, Wed, Thu (0 = Sunday)
DIP_THRESHOLD = 0.7              # at least this far below baseline
REBOUND_MIN = 1.0                # rating gain over the dip day
REBOUND_LOOKAHEAD = 2            # check-in days scanned after a dip
MAX_RECOVERY_TRIGGERS = 6


@dataclass
class DayPoint:
    day_key: datetime
    avg: float
    count: int
    tags: List[str] = field(default_factory=list)

    @property
    def dow(self) -> int:
        return weekday_of(self.day_key)

    def summary(self) -> Dict[str, Any]:
        return {"day_key": day_key_to_str(self.day_key), "dow": self.dow, "avg": self.avg}


def clamp_window(window_days) -> int:
    try:
        w = int(window_days)
    except (TypeError, ValueError):
        w = DEFAULT_WINDOW_DAYS
    return int(clamp(w, MIN_WINDOW_DAYS, MAX_WINDOW_DAYS))


def build_day_series(checkins: Sequence[Dict[str, Any]], tz_name: str) -> List[DayPoint]:
    """One point per local day with data, sorted by day; avg rounded to 2 decimals."""
    ratings: Dict[datetime, List[float]] = {}
    tags: Dict[datetime, List[str]] = {}

    for c in checkins:
        rating = clean_rating(c.get("rating"))
        if rating is None:
            continue
        dk = compute_day_key(c["created_at"], tz_name)
        ratings.setdefault(dk, []).append(rating)
        tags.setdefault(dk, []).extend(str(t) for t in (c.get("tags") or []))

    return [
        DayPoint(day_key=dk, avg=round2(mean(ratings[dk])), count=len(ratings[dk]), tags=tags[dk])
        for dk in sorted(ratings)
    ]


def find_mid_week_dips(points: Sequence[DayPoint], baseline: float) -> List[Dict[str, Any]]:
    dips = []
    for p in points:
        if p.dow not in MID_WEEK_DOWS:
            continue
        delta = round2(p.avg - baseline)
        if delta <= -DIP_THRESHOLD:
            dips.append({**p.summary(), "baseline": round2(baseline), "delta": delta})
    # most severe first; sort is stable so equal deltas keep day order
    dips.sort(key=lambda d: d["delta"])
    return dips


def find_recovery_triggers(points: Sequence[DayPoint], dips: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    For each dip, the first of the next REBOUND_LOOKAHEAD check-in days (in
    day order, however far apart) whose average is at least REBOUND_MIN above
    the dip contributes its tags. Dips without such a rebound contribute nothing.
    """
    ordered = sorted(points, key=lambda p: p.day_key)
    index_of = {day_key_to_str(p.day_key): i for i, p in enumerate(ordered)}
    pool: List[str] = []

    for dip in dips:
        i = index_of.get(dip["day_key"])
        if i is None:
            continue
        dip_point = ordered[i]
        for nxt in ordered[i + 1 : i + 1 + REBOUND_LOOKAHEAD]:
            if nxt.avg - dip_point.avg >= REBOUND_MIN:
                pool.extend(nxt.tags)
                break

    cleaned = [str(t).strip() for t in pool]
    return [{"tag": tag, "hits": hits} for tag, hits in most_common_tags(cleaned, MAX_RECOVERY_TRIGGERS)]


def build_pattern_report(points: Sequence[DayPoint]) -> Dict[str, Any]:
    """Pattern report for one subject (the couple, or a single partner)."""
    avgs = [p.avg for p in points]
    baseline = mean(avgs) if avgs else 0.0

    best: Optional[DayPoint] = None
    hardest: Optional[DayPoint] = None
    for p in points:
        if best is None or p.avg > best.avg:
            best = p
        if hardest is None or p.avg < hardest.avg:
            hardest = p

    dips = find_mid_week_dips(points, baseline)

    return {
        "stats": {
            "days_checked_in": len(points),
            "avg": round2(baseline),
            "volatility": round2(stddev(avgs)),
        },
        "best_day": best.summary() if best else None,
        "hardest_day": hardest.summary() if hardest else None,
        "mid_week_dips": dips,
        "recovery_triggers": find_recovery_triggers(points, dips),
    }


def detect_patterns(
    engine,
    *,
    couple_id: str,
    window_days: int = DEFAULT_WINDOW_DAYS,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Read-only pattern pass over the last `window_days` local days (7..90).
    Returns { couple_id, window_days, timezone, since, couple, per_partner }.
    """
    if not couple_id:
        raise ValueError("couple_id is required")
    window = clamp_window(window_days)

    with engine.begin() as conn:
        tz_name = resolve_timezone(conn, couple_id)
        start, end = day_range_ending_today(window, tz_name, now)
        member_ids = couples_repo.list_member_ids(conn, couple_id)
        rows = checkins_repo.list_checkins(
            conn,
            couple_id=couple_id,
            since=local_midnight_utc(start, tz_name),
            until=local_midnight_utc(end, tz_name),
        )

    per_partner = []
    for uid in member_ids:
        points = build_day_series([r for r in rows if r["user_id"] == uid], tz_name)
        per_partner.append({"user_id": uid, **build_pattern_report(points)})

    couple = build_pattern_report(build_day_series(rows, tz_name))

    return {
        "couple_id": couple_id,
        "window_days": window,
        "timezone": tz_name,
        "since": start.isoformat(),
        "couple": couple,
        "per_partner": per_partner,
    }


def get_insights(
    engine,
    *,
    couple_id: str,
    window_days: int = DEFAULT_WINDOW_DAYS,
    now: Optional[datetime] = None,
    use_cache: bool = True,
) -> Dict[str, Any]:
    """
    detect_patterns() behind the per-day insights cache, keyed by
    (couple_id, local day, window_days). Returns the payload plus `cached`.
    """
    window = clamp_window(window_days)
    now = now or datetime.now(timezone.utc)

    with engine.begin() as conn:
        tz_name = resolve_timezone(conn, couple_id)
        day = compute_day_key(now, tz_name).date()
        if use_cache:
            cached = insights_cache_repo.get_cached_insights(
                conn, couple_id=couple_id, day_key=day, window_days=window
            )
            if cached is not None:
                return {**cached, "cached": True}

    payload = detect_patterns(engine, couple_id=couple_id, window_days=window, now=now)

    with engine.begin() as conn:
        insights_cache_repo.upsert_cached_insights(
            conn, couple_id=couple_id, day_key=day, window_days=window, payload=payload
        )
    logger.info("insights computed couple=%s window=%d day=%s", couple_id, window, day.isoformat())

    return {**payload, "cached": False}
