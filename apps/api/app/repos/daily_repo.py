# apps/api/app/repos/daily_repo.py

from __future__ import annotations

import json
from datetime import date

from sqlalchemy import Date, Float, Integer, String, Text, bindparam, text


def upsert_daily_metric(
    conn,
    *,
    couple_id: str,
    day: date,
    bond_score: int | None,
    connection_score: int | None,
    stability_score: int | None,
    checkin_count: int,
    avg_rating: float | None,
    top_tags: list[str],
) -> None:
    """
    One row per (couple_id, day). Every column is overwritten so a replay of the
    same events always leaves the same row behind.
    """
    conn.execute(
        text("""
            insert into daily_couple_metrics (
              couple_id, day,
              bond_score, connection_score, stability_score,
              checkin_count, avg_rating, top_tags
            )
            values (
              :couple_id, :day,
              :bond_score, :connection_score, :stability_score,
              :checkin_count, :avg_rating, :top_tags
            )
            on conflict (couple_id, day) do update set
              bond_score = excluded.bond_score,
              connection_score = excluded.connection_score,
              stability_score = excluded.stability_score,
              checkin_count = excluded.checkin_count,
              avg_rating = excluded.avg_rating,
              top_tags = excluded.top_tags
        """).bindparams(bindparam("day", type_=Date)),
        {
            "couple_id": couple_id,
            "day": day,
            "bond_score": bond_score,
            "connection_score": connection_score,
            "stability_score": stability_score,
            "checkin_count": int(checkin_count),
            "avg_rating": avg_rating,
            "top_tags": json.dumps(list(top_tags)),
        },
    )


def upsert_emotion_signal(
    conn,
    *,
    couple_id: str,
    user_id: str,
    day: date,
    state: str,
    intensity: int,
    reason_code: str,
    note: str | None = None,
) -> None:
    conn.execute(
        text("""
            insert into partner_emotion_signals (
              couple_id, user_id, day, state, intensity, reason_code, note
            )
            values (
              :couple_id, :user_id, :day, :state, :intensity, :reason_code, :note
            )
            on conflict (couple_id, user_id, day) do update set
              state = excluded.state,
              intensity = excluded.intensity,
              reason_code = excluded.reason_code,
              note = excluded.note
        """).bindparams(bindparam("day", type_=Date)),
        {
            "couple_id": couple_id,
            "user_id": user_id,
            "day": day,
            "state": state,
            "intensity": int(intensity),
            "reason_code": reason_code,
            "note": note,
        },
    )


def list_daily_metrics(conn, *, couple_id: str, start: date, end_exclusive: date) -> list[dict]:
    rows = conn.execute(
        text("""
            select
              day, bond_score, connection_score, stability_score,
              checkin_count, avg_rating, top_tags
            from daily_couple_metrics
            where couple_id = :couple_id
              and day >= :start
              and day < :end_exclusive
            order by day asc
        """)
        .bindparams(
            bindparam("start", type_=Date),
            bindparam("end_exclusive", type_=Date),
        )
        .columns(
            day=Date,
            bond_score=Integer,
            connection_score=Integer,
            stability_score=Integer,
            checkin_count=Integer,
            avg_rating=Float,
            top_tags=Text,
        ),
        {"couple_id": couple_id, "start": start, "end_exclusive": end_exclusive},
    ).mappings().all()

    out = []
    for r in rows:
        d = dict(r)
        d["top_tags"] = json.loads(d["top_tags"] or "[]")
        out.append(d)
    return out


def list_emotion_signals(
    conn,
    *,
    couple_id: str,
    start: date,
    end_exclusive: date,
) -> list[dict]:
    params = {"couple_id": couple_id, "start": start, "end_exclusive": end_exclusive}

    rows = conn.execute(
        text("""
            select user_id, day, state, intensity, reason_code, note
            from partner_emotion_signals
            where couple_id = :couple_id
              and day >= :start
              and day < :end_exclusive
            order by day asc, user_id asc
        """)
        .bindparams(
            bindparam("start", type_=Date),
            bindparam("end_exclusive", type_=Date),
        )
        .columns(
            user_id=String,
            day=Date,
            state=String,
            intensity=Integer,
            reason_code=String,
            note=Text,
        ),
        params,
    ).mappings().all()

    return [dict(r) for r in rows]
