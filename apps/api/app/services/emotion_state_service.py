# apps/api/app/services/emotion_state_service.py

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from app.repos import checkins_repo, couples_repo, snapshots_repo
from app.services.couples_service import resolve_timezone
from app.services.day_keys import (
    compute_day_key,
    day_key_to_str,
    day_range_ending_today,
    local_midnight_utc,
)
from app.services.signal_math import clamp01, clean_rating, mean, most_common_tags, ols_slope, round2, stddev

logger = logging.getLogger(__name__)


SECURE = "Secure & Connected"
REBUILDING = "Rebuilding"
DRIFTING = "Drifting"
TENSE = "Tense"
DISCONNECTED = "Disconnected"
MIXED = "Mixed Signals"

STATE_EMOJI = {
    SECURE: "🟢",
    REBUILDING: "🟡",
    DRIFTING: "🟠",
    TENSE: "🔴",
    DISCONNECTED: "⚫",
    MIXED: "🟣",
}

DEFAULT_WINDOW_DAYS = 14
MAX_WINDOW_DAYS = 30


@dataclass(frozen=True)
class ClassifierThresholds:
    """Hand-tuned cut points. Values are kept for behavioural compatibility."""

    high_avg: float = 4.0
    low_avg: float = 3.0
    trend: float = 0.08             # |slope| per day that counts as a trend
    high_volatility: float = 0.9
    mid_volatility: float = 0.55
    low_habit_share: float = 0.25   # share of window days checked in
    habit_saturation_days: int = 7
    # weighted composite fallback, best to worst
    composite_cuts: tuple = (
        (0.72, SECURE),
        (0.55, REBUILDING),
        (0.42, DRIFTING),
        (0.28, MIXED),
    )
    composite_floor: str = TENSE


DEFAULT_THRESHOLDS = ClassifierThresholds()


@dataclass
class TagSignals:
    """
    Tags are signals, not sentiment:
    presence => clarity, repetition (concentration) => a consistent need.
    """

    top_tags: List[str] = field(default_factory=list)
    unique_count: int = 0
    total_count: int = 0
    concentration: float = 0.0


@dataclass
class WindowSignals:
    days_considered: int
    days_checked_in: int
    missing_days: int
    avg: Optional[float]
    last: Optional[float]
    slope: float
    volatility: float
    tags: TagSignals
    low_habit: bool


@dataclass(frozen=True)
class StateRule:
    name: str
    applies: Callable[[WindowSignals, ClassifierThresholds], bool]
    state: str
    reason: str


def tag_signals(tags: Sequence[str]) -> TagSignals:
    clean = [str(t or "").strip().upper() for t in (tags or [])]
    clean = [t for t in clean if t]
    if not clean:
        return TagSignals()

    ranked = most_common_tags(clean, limit=None)
    return TagSignals(
        top_tags=[t for t, _ in ranked[:3]],
        unique_count=len(ranked),
        total_count=len(clean),
        concentration=ranked[0][1] / len(clean),
    )


def window_signals(
    points: Sequence[Dict[str, Any]],
    days_considered: int,
    tags: Sequence[str],
    thresholds: ClassifierThresholds = DEFAULT_THRESHOLDS,
) -> WindowSignals:
    ratings = [float(p["rating"]) for p in points]
    days_checked_in = len(ratings)
    return WindowSignals(
        days_considered=days_considered,
        days_checked_in=days_checked_in,
        missing_days=max(0, days_considered - days_checked_in),
        avg=mean(ratings),
        last=ratings[-1] if ratings else None,
        slope=ols_slope(ratings),
        volatility=stddev(ratings),
        tags=tag_signals(tags),
        low_habit=days_checked_in <= math.floor(days_considered * thresholds.low_habit_share),
    )


def _no_data(s: WindowSignals, t: ClassifierThresholds) -> bool:
    return s.avg is None or s.days_checked_in == 0


def _high_avg(s: WindowSignals, t: ClassifierThresholds) -> bool:
    return s.avg is not None and s.avg >= t.high_avg


def _low_avg(s: WindowSignals, t: ClassifierThresholds) -> bool:
    return s.avg is not None and s.avg < t.low_avg


def _down_trend(s: WindowSignals, t: ClassifierThresholds) -> bool:
    return s.slope <= -t.trend


def _up_trend(s: WindowSignals, t: ClassifierThresholds) -> bool:
    return s.slope >= t.trend


def _high_vol(s: WindowSignals, t: ClassifierThresholds) -> bool:
    return s.volatility >= t.high_volatility


def _mid_vol(s: WindowSignals, t: ClassifierThresholds) -> bool:
    return t.mid_volatility <= s.volatility < t.high_volatility


# First match wins; composite_state() is the default when none applies.
RULES: tuple[StateRule, ...] = (
    StateRule(
        "no_data",
        _no_data,
        DISCONNECTED,
        "No recent check-ins to read emotional signals.",
    ),
    StateRule(
        "secure",
        lambda s, t: _high_avg(s, t) and not _down_trend(s, t) and not _high_vol(s, t),
        SECURE,
        "Strong average rating with stable pattern.",
    ),
    StateRule(
        "tense",
        lambda s, t: _low_avg(s, t) and (_down_trend(s, t) or _high_vol(s, t)),
        TENSE,
        "Low average with downward momentum or emotional swings.",
    ),
    StateRule(
        "withdrawn",
        lambda s, t: _low_avg(s, t) and s.low_habit,
        DISCONNECTED,
        "Low ratings plus very few check-ins (low visibility/engagement).",
    ),
    StateRule(
        "drifting",
        lambda s, t: not _low_avg(s, t) and _down_trend(s, t),
        DRIFTING,
        "Not in crisis, but connection is sliding week-over-week.",
    ),
    StateRule(
        "rebuilding",
        lambda s, t: _low_avg(s, t) and _up_trend(s, t),
        REBUILDING,
        "Ratings are still low, but trend is improving; repair is working.",
    ),
    StateRule(
        "mixed",
        _mid_vol,
        MIXED,
        "Inconsistent days/ratings suggest mixed emotional experience.",
    ),
)


def composite_score(s: WindowSignals, t: ClassifierThresholds = DEFAULT_THRESHOLDS) -> float:
    avg_score = 0.0 if s.avg is None else (s.avg - 1) / 4       # 1..5 => 0..1
    trend_score = clamp01((s.slope + 0.15) / 0.3)                # -0.15..+0.15 => 0..1
    stability_score = clamp01(1 - s.volatility / 1.25)
    habit_score = clamp01(s.days_checked_in / max(1, min(s.days_considered, t.habit_saturation_days)))
    clarity_score = clamp01(
        (0.6 if s.tags.total_count else 0.0)
        + (0.3 if s.tags.concentration >= 0.5 else 0.0)
        + (0.1 if s.tags.unique_count >= 1 else 0.0)
    )
    return (
        0.35 * avg_score
        + 0.20 * trend_score
        + 0.20 * stability_score
        + 0.15 * habit_score
        + 0.10 * clarity_score
    )


def composite_state(s: WindowSignals, t: ClassifierThresholds = DEFAULT_THRESHOLDS) -> str:
    overall = composite_score(s, t)
    for cut, state in t.composite_cuts:
        if overall >= cut:
            return state
    return t.composite_floor


def confidence_for(s: WindowSignals, t: ClassifierThresholds = DEFAULT_THRESHOLDS) -> float:
    """More data + stronger patterns => higher confidence."""
    saturation = min(s.days_considered, t.habit_saturation_days)
    data_confidence = clamp01(s.days_checked_in / saturation) if saturation > 0 else 0.0
    pattern_strength = clamp01(
        0.4 * abs(s.slope) / 0.2
        + 0.3 * (abs(s.avg - 3) / 2 if s.avg is not None else 0.0)
        + 0.3 * (1 - min(1.0, s.volatility / 1.25))
    )
    return clamp01(0.45 * data_confidence + 0.55 * pattern_strength)


def classify_partner_emotion_state(
    user_id: str,
    points: Sequence[Dict[str, Any]],
    days_considered: int = DEFAULT_WINDOW_DAYS,
    tags: Optional[Sequence[str]] = None,
    *,
    thresholds: ClassifierThresholds = DEFAULT_THRESHOLDS,
) -> Dict[str, Any]:
    """
    Core classifier (pure, no I/O).

    points: [{day: "YYYY-MM-DD", rating: daily mean}] sorted by day asc; days
            without check-ins are simply absent.
    tags:   the window's flattened tags for this partner.

    Returns { user_id, state, emoji, confidence, reasons, metrics }.
    """
    s = window_signals(points, days_considered, tags or [], thresholds)

    state = None
    reasons: List[str] = []
    for rule in RULES:
        if rule.applies(s, thresholds):
            state = rule.state
            reasons.append(rule.reason)
            break
    if state is None:
        state = composite_state(s, thresholds)

    if s.tags.top_tags:
        reasons.append(f"Top expressed needs/signals: {', '.join(s.tags.top_tags)}.")
    if s.low_habit:
        reasons.append("Low consistency reduces emotional clarity; a tiny daily ritual can help.")

    return {
        "user_id": user_id,
        "state": state,
        "emoji": STATE_EMOJI[state],
        "confidence": round2(confidence_for(s, thresholds)),
        "reasons": reasons,
        "metrics": {
            "days_considered": s.days_considered,
            "days_checked_in": s.days_checked_in,
            "avg_rating": None if s.avg is None else round2(s.avg),
            "last_rating": None if s.last is None else round2(s.last),
            "trend_slope": round2(s.slope),
            "volatility": round2(s.volatility),
            "missing_days": s.missing_days,
            "top_tags": s.tags.top_tags,
        },
    }


def build_daily_points(checkins: Sequence[Dict[str, Any]], tz_name: str) -> Dict[str, Dict[str, Any]]:
    """
    user_id -> { points: [{day, rating}], tags: [...] } with one point per local
    day (the day's mean rating). Unusable ratings are skipped with their tags.
    """
    per_user_day: Dict[str, Dict[datetime, List[float]]] = {}
    per_user_tags: Dict[str, List[str]] = {}

    for c in checkins:
        rating = clean_rating(c.get("rating"))
        if rating is None:
            continue
        uid = str(c["user_id"])
        dk = compute_day_key(c["created_at"], tz_name)
        per_user_day.setdefault(uid, {}).setdefault(dk, []).append(rating)
        per_user_tags.setdefault(uid, []).extend(str(t) for t in (c.get("tags") or []))

    out: Dict[str, Dict[str, Any]] = {}
    for uid, days in per_user_day.items():
        out[uid] = {
            "points": [
                {"day": day_key_to_str(dk), "rating": mean(days[dk])}
                for dk in sorted(days)
            ],
            "tags": per_user_tags.get(uid, []),
        }
    return out


def save_emotion_snapshots(engine, *, couple_id: str, day_key: datetime, window_days: int, results: List[Dict[str, Any]]) -> None:
    """Snapshot history is best-effort: a failed write never fails the read path."""
    if not couple_id or not results:
        return
    try:
        with engine.begin() as conn:
            for r in results:
                snapshots_repo.upsert_emotion_snapshot(
                    conn,
                    couple_id=couple_id,
                    user_id=r["user_id"],
                    day_key=day_key.date(),
                    window_days=window_days,
                    state=r["state"],
                    confidence=r["confidence"],
                    reasons=r["reasons"],
                    metrics=r["metrics"],
                )
    except SQLAlchemyError:
        logger.exception("saving emotion snapshots failed couple=%s", couple_id)


def get_partner_emotion_states(
    engine,
    *,
    couple_id: str,
    days: int = DEFAULT_WINDOW_DAYS,
    now: Optional[datetime] = None,
    save_snapshots: bool = True,
) -> Dict[str, Any]:
    """
    Classify every couple member over the last `days` local days (including today).
    Members without check-ins still get a (Disconnected) result.
    """
    try:
        days_int = int(days)
    except (TypeError, ValueError):
        days_int = DEFAULT_WINDOW_DAYS
    days_int = max(1, min(days_int, MAX_WINDOW_DAYS))
    now = now or datetime.now(timezone.utc)

    with engine.begin() as conn:
        tz_name = resolve_timezone(conn, couple_id)
        start, end = day_range_ending_today(days_int, tz_name, now)
        member_ids = couples_repo.list_member_ids(conn, couple_id)
        checkins = checkins_repo.list_checkins(
            conn,
            couple_id=couple_id,
            since=local_midnight_utc(start, tz_name),
            until=local_midnight_utc(end, tz_name),
        )

    series = build_daily_points(checkins, tz_name)

    per_partner = []
    for uid in member_ids:
        data = series.get(uid) or {"points": [], "tags": []}
        per_partner.append(
            classify_partner_emotion_state(
                uid,
                data["points"],
                days_considered=days_int,
                tags=data["tags"],
            )
        )

    if save_snapshots:
        save_emotion_snapshots(
            engine,
            couple_id=couple_id,
            day_key=compute_day_key(now, tz_name),
            window_days=days_int,
            results=per_partner,
        )

    return {
        "couple_id": couple_id,
        "timezone": tz_name,
        "days": days_int,
        "since": start.isoformat(),
        "per_partner": per_partner,
    }


def get_emotion_history(engine, *, couple_id: str, user_id: str, limit: int = 30) -> Dict[str, Any]:
    """Stored daily snapshots for one partner, newest first."""
    user_id = (user_id or "").strip()
    if not user_id:
        raise ValueError("user_id is required")
    try:
        limit_int = int(limit)
    except (TypeError, ValueError):
        limit_int = 30
    limit_int = max(1, min(limit_int, 365))

    with engine.begin() as conn:
        resolve_timezone(conn, couple_id)
        if user_id not in couples_repo.list_member_ids(conn, couple_id):
            raise ValueError("user is not a member of this couple")
        snapshots = snapshots_repo.list_emotion_snapshots(
            conn, couple_id=couple_id, user_id=user_id, limit=limit_int
        )

    return {
        "couple_id": couple_id,
        "user_id": user_id,
        "snapshots": [
            {**s, "day_key": s["day_key"].isoformat(), "emoji": STATE_EMOJI.get(s["state"], "")}
            for s in snapshots
        ],
    }
