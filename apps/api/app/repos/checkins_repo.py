# apps/api/app/repos/checkins_repo.py

from __future__ import annotations

import json
from datetime import datetime

from sqlalchemy import DateTime, Float, String, Text, bindparam, text


def insert_checkin(
    conn,
    *,
    checkin_id: str,
    couple_id: str,
    user_id: str,
    rating: float,
    tags: list[str],
    note: str | None,
    created_at: datetime,
) -> None:
    conn.execute(
        text("""
            insert into checkins (id, couple_id, user_id, rating, tags, note, created_at)
            values (:id, :couple_id, :user_id, :rating, :tags, :note, :created_at)
        """).bindparams(bindparam("created_at", type_=DateTime(timezone=True))),
        {
            "id": checkin_id,
            "couple_id": couple_id,
            "user_id": user_id,
            "rating": float(rating),
            "tags": json.dumps(list(tags or [])),
            "note": note,
            "created_at": created_at,
        },
    )


def _decode_tags(raw) -> list[str]:
    if not raw:
        return []
    if isinstance(raw, list):
        return [str(t) for t in raw]
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        return []
    if not isinstance(data, list):
        return []
    return [str(t) for t in data]


def list_checkins(
    conn,
    *,
    couple_id: str,
    since: datetime,
    until: datetime | None = None,
) -> list[dict]:
    """
    Check-ins for a couple with since <= created_at < until, oldest first.
    `since`/`until` must be UTC instants. Returns
      { id, user_id, rating, tags: list[str], note, created_at }
    Ratings are returned as stored; callers decide what is valid.
    """
    clauses = ["couple_id = :couple_id", "created_at >= :since"]
    params: dict = {"couple_id": couple_id, "since": since}
    binds = [bindparam("since", type_=DateTime(timezone=True))]

    if until is not None:
        clauses.append("created_at < :until")
        params["until"] = until
        binds.append(bindparam("until", type_=DateTime(timezone=True)))

    stmt = (
        text(
            f"""
            select id, user_id, rating, tags, note, created_at
            from checkins
            where {" and ".join(clauses)}
            order by created_at asc, id asc
            """
        )
        .bindparams(*binds)
        .columns(
            id=String,
            user_id=String,
            rating=Float,
            tags=Text,
            note=Text,
            created_at=DateTime(timezone=True),
        )
    )

    rows = conn.execute(stmt, params).mappings().all()
    return [
        {
            "id": r["id"],
            "user_id": r["user_id"],
            "rating": r["rating"],
            "tags": _decode_tags(r["tags"]),
            "note": r["note"],
            "created_at": r["created_at"],
        }
        for r in rows
    ]
