# apps/api/app/repos/snapshots_repo.py

from __future__ import annotations

import json
from datetime import date

from sqlalchemy import Date, Float, Integer, String, Text, bindparam, text


def upsert_emotion_snapshot(
    conn,
    *,
    couple_id: str,
    user_id: str,
    day_key: date,
    window_days: int,
    state: str,
    confidence: float,
    reasons: list[str],
    metrics: dict,
) -> None:
    """Same row for the same partner/day/window; later runs keep it fresh."""
    conn.execute(
        text("""
            insert into emotion_state_snapshots (
              couple_id, user_id, day_key, window_days,
              state, confidence, reasons, metrics
            )
            values (
              :couple_id, :user_id, :day_key, :window_days,
              :state, :confidence, :reasons, :metrics
            )
            on conflict (couple_id, user_id, day_key, window_days) do update set
              state = excluded.state,
              confidence = excluded.confidence,
              reasons = excluded.reasons,
              metrics = excluded.metrics
        """).bindparams(bindparam("day_key", type_=Date)),
        {
            "couple_id": couple_id,
            "user_id": user_id,
            "day_key": day_key,
            "window_days": int(window_days),
            "state": state,
            "confidence": float(confidence),
            "reasons": json.dumps(list(reasons)),
            "metrics": json.dumps(metrics),
        },
    )


def list_emotion_snapshots(conn, *, couple_id: str, user_id: str, limit: int = 30) -> list[dict]:
    rows = conn.execute(
        text("""
            select day_key, window_days, state, confidence, reasons, metrics
            from emotion_state_snapshots
            where couple_id = :couple_id and user_id = :user_id
            order by day_key desc, window_days asc
            limit :limit
        """).columns(
            day_key=Date,
            window_days=Integer,
            state=String,
            confidence=Float,
            reasons=Text,
            metrics=Text,
        ),
        {"couple_id": couple_id, "user_id": user_id, "limit": int(limit)},
    ).mappings().all()

    out = []
    for r in rows:
        d = dict(r)
        d["reasons"] = json.loads(d["reasons"] or "[]")
        d["metrics"] = json.loads(d["metrics"] or "{}")
        out.append(d)
    return out
