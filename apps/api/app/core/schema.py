# apps/api/app/core/schema.py

from __future__ import annotations

from sqlalchemy import text

# Kept portable between Postgres (production) and SQLite (tests):
# ids are text, tags are JSON arrays stored as text, days are SQL dates.
TABLES = (
    """
    create table if not exists couples (
      id text primary key,
      timezone text,
      created_at timestamp with time zone default current_timestamp
    )
    """,
    """
    create table if not exists couple_members (
      couple_id text not null references couples (id),
      user_id text not null,
      joined_at timestamp with time zone not null,
      primary key (couple_id, user_id)
    )
    """,
    """
    create table if not exists checkins (
      id text primary key,
      couple_id text not null references couples (id),
      user_id text not null,
      rating double precision not null,
      tags text not null default '[]',
      note text,
      created_at timestamp with time zone not null
    )
    """,
    """
    create index if not exists checkins_couple_created_idx
      on checkins (couple_id, created_at)
    """,
    """
    create table if not exists daily_couple_metrics (
      couple_id text not null,
      day date not null,
      bond_score integer,
      connection_score integer,
      stability_score integer,
      checkin_count integer not null default 0,
      avg_rating double precision,
      top_tags text not null default '[]',
      primary key (couple_id, day)
    )
    """,
    """
    create table if not exists partner_emotion_signals (
      couple_id text not null,
      user_id text not null,
      day date not null,
      state text not null,
      intensity integer not null,
      reason_code text not null,
      note text,
      primary key (couple_id, user_id, day)
    )
    """,
    """
    create table if not exists emotion_state_snapshots (
      couple_id text not null,
      user_id text not null,
      day_key date not null,
      window_days integer not null,
      state text not null,
      confidence double precision not null,
      reasons text not null default '[]',
      metrics text not null default '{}',
      primary key (couple_id, user_id, day_key, window_days)
    )
    """,
    """
    create table if not exists couple_insights_cache (
      couple_id text not null,
      day_key date not null,
      window_days integer not null,
      payload text not null,
      primary key (couple_id, day_key, window_days)
    )
    """,
)


def init_schema(engine) -> None:
    """Create every table this service reads or writes. Safe to call repeatedly."""
    with engine.begin() as conn:
        for ddl in TABLES:
            conn.execute(text(ddl))
