# apps/api/app/repos/insights_cache_repo.py

from __future__ import annotations

import json
from datetime import date

from sqlalchemy import Date, bindparam, text


def get_cached_insights(conn, *, couple_id: str, day_key: date, window_days: int) -> dict | None:
    row = conn.execute(
        text("""
            select payload
            from couple_insights_cache
            where couple_id = :couple_id
              and day_key = :day_key
              and window_days = :window_days
            limit 1
        """).bindparams(bindparam("day_key", type_=Date)),
        {"couple_id": couple_id, "day_key": day_key, "window_days": int(window_days)},
    ).first()

    if not row or not row[0]:
        return None
    return json.loads(row[0])


def upsert_cached_insights(conn, *, couple_id: str, day_key: date, window_days: int, payload: dict) -> None:
    conn.execute(
        text("""
            insert into couple_insights_cache (couple_id, day_key, window_days, payload)
            values (:couple_id, :day_key, :window_days, :payload)
            on conflict (couple_id, day_key, window_days) do update set
              payload = excluded.payload
        """).bindparams(bindparam("day_key", type_=Date)),
        {
            "couple_id": couple_id,
            "day_key": day_key,
            "window_days": int(window_days),
            "payload": json.dumps(payload),
        },
    )
