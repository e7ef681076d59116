# apps/api/app/repos/couples_repo.py

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, bindparam, text


def insert_couple(conn, couple_id: str, timezone_name: str | None) -> None:
    conn.execute(
        text("insert into couples (id, timezone) values (:id, :timezone)"),
        {"id": couple_id, "timezone": timezone_name},
    )


def add_member(conn, *, couple_id: str, user_id: str, joined_at: datetime) -> None:
    conn.execute(
        text("""
            insert into couple_members (couple_id, user_id, joined_at)
            values (:couple_id, :user_id, :joined_at)
            on conflict (couple_id, user_id) do nothing
        """).bindparams(bindparam("joined_at", type_=DateTime(timezone=True))),
        {"couple_id": couple_id, "user_id": user_id, "joined_at": joined_at},
    )


def couple_exists(conn, couple_id: str) -> bool:
    row = conn.execute(
        text("select 1 from couples where id = :id limit 1"),
        {"id": couple_id},
    ).first()
    return row is not None


def get_couple_timezone(conn, couple_id: str) -> str | None:
    """
    Returns the configured timezone, or None when the couple has none set.
    Raises ValueError if the couple does not exist.
    """
    row = conn.execute(
        text("select timezone from couples where id = :id limit 1"),
        {"id": couple_id},
    ).first()
    if not row:
        raise ValueError("couple not found")
    return row[0] or None


def list_member_ids(conn, couple_id: str) -> list[str]:
    """Members in join order (first partner first)."""
    rows = conn.execute(
        text("""
            select user_id
            from couple_members
            where couple_id = :couple_id
            order by joined_at asc, user_id asc
        """),
        {"couple_id": couple_id},
    ).all()
    return [str(r[0]) for r in rows]


def list_couple_ids(conn) -> list[str]:
    rows = conn.execute(text("select id from couples order by id asc")).all()
    return [str(r[0]) for r in rows]
