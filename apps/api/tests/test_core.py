"""Config and database URL helpers."""

import pytest

from app.core.config import default_timezone, getenv_int
from app.core.db import normalize_db_url


class TestNormalizeDbUrl:
    def test_postgres_gets_psycopg_driver_and_ssl(self):
        url = normalize_db_url("postgresql://u:p@db.example.com:6543/postgres")
        assert url.startswith("postgresql+psycopg://")
        assert url.endswith("sslmode=require")

    def test_existing_sslmode_is_kept(self):
        url = normalize_db_url("postgres://u:p@localhost/db?sslmode=disable")
        assert "sslmode=disable" in url
        assert "sslmode=require" not in url

    def test_sqlite_untouched(self):
        assert normalize_db_url("sqlite://") == "sqlite://"


class TestEnvHelpers:
    def test_getenv_int(self, monkeypatch):
        monkeypatch.setenv("BACKFILL_DAYS", "12")
        assert getenv_int("BACKFILL_DAYS", 30) == 12
        monkeypatch.setenv("BACKFILL_DAYS", " ")
        assert getenv_int("BACKFILL_DAYS", 30) == 30

    def test_getenv_int_rejects_garbage(self, monkeypatch):
        monkeypatch.setenv("BACKFILL_DAYS", "lots")
        with pytest.raises(RuntimeError):
            getenv_int("BACKFILL_DAYS", 30)

    def test_default_timezone(self, monkeypatch):
        monkeypatch.delenv("DEFAULT_TIMEZONE", raising=False)
        assert default_timezone() == "America/Toronto"
        monkeypatch.setenv("DEFAULT_TIMEZONE", "Europe/Paris")
        assert default_timezone() == "Europe/Paris"
