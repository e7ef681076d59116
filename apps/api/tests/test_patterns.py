"""Tests for pattern detection: mid-week dips, recovery triggers, insights cache."""

import pytest
from datetime import datetime, timezone

from app.services.patterns_service import (
    DayPoint,
    build_day_series,
    build_pattern_report,
    clamp_window,
    detect_patterns,
    find_mid_week_dips,
    find_recovery_triggers,
    get_insights,
)
from conftest import local_dt, TORONTO


def point(day, avg, tags=(), count=1):
    return DayPoint(
        day_key=datetime(2026, 2, day, tzinfo=timezone.utc),
        avg=avg,
        count=count,
        tags=list(tags),
    )


def report_for(*points):
    return build_pattern_report(list(points))


# ═══════════════════════════════════════════════════════════════════════════
# Pure pattern math
# ═══════════════════════════════════════════════════════════════════════════


class TestMidWeekDips:
    def test_only_tue_wed_thu_well_below_baseline(self):
        points = [point(4, 2.7), point(5, 3.0), point(7, 4.3), point(8, 4.0)]
        report = build_pattern_report(points)

        assert report["stats"]["avg"] == 3.5
        assert report["mid_week_dips"] == [
            {"day_key": "2026-02-04", "dow": 3, "avg": 2.7, "baseline": 3.5, "delta": -0.8}
        ]

    def test_weekend_lows_are_not_dips(self):
        # Sat 02-07 is far below baseline but not mid-week
        points = [point(7, 1.0), point(9, 4.5), point(10, 4.5), point(11, 4.5)]
        assert find_mid_week_dips(points, baseline=3.625) == []

    def test_most_severe_first(self):
        points = [point(3, 2.5), point(4, 1.5), point(8, 5.0), point(9, 5.0)]
        dips = find_mid_week_dips(points, baseline=3.5)
        assert [d["day_key"] for d in dips] == ["2026-02-04", "2026-02-03"]


class TestRecoveryTriggers:
    def test_tags_from_the_rebound_day(self):
        points = [
            point(2, 4.5),
            point(4, 2.0),
            point(6, 3.5, ["TIME"]),
            point(7, 4.5),
            point(10, 2.0),
        ]
        report = build_pattern_report(points)
        assert [d["day_key"] for d in report["mid_week_dips"]] == ["2026-02-04", "2026-02-10"]
        assert report["recovery_triggers"] == [{"tag": "TIME", "hits": 1}]

    def test_rebound_on_next_checkin_counts_across_a_gap(self):
        # no check-ins Thu/Fri; Sat is still the next data point after the dip
        points = [point(4, 2.0), point(7, 4.5, ["TIME"]), point(8, 4.0)]
        report = build_pattern_report(points)
        assert len(report["mid_week_dips"]) == 1
        assert report["recovery_triggers"] == [{"tag": "TIME", "hits": 1}]

    def test_rebound_beyond_two_checkins_does_not_count(self):
        points = [point(4, 2.0), point(5, 2.5), point(6, 2.8), point(7, 4.5, ["TIME"])]
        report = build_pattern_report(points)
        assert [d["day_key"] for d in report["mid_week_dips"]] == ["2026-02-04"]
        assert report["recovery_triggers"] == []

    def test_first_qualifying_rebound_wins(self):
        points = [point(4, 2.0), point(5, 3.5, ["WORDS"]), point(6, 4.5, ["TIME"])]
        report = build_pattern_report(points)
        assert report["recovery_triggers"] == [{"tag": "WORDS", "hits": 1}]

    def test_small_gain_is_skipped(self):
        # Thu is itself a dip (gain 0.5 over Wed); Fri rebounds from both
        points = [
            point(4, 2.0),
            point(5, 2.5, ["NOISE"]),
            point(6, 3.5, ["TIME"]),
            point(7, 5.0, ["LATE"]),
            point(8, 5.0),
        ]
        report = build_pattern_report(points)
        assert [d["day_key"] for d in report["mid_week_dips"]] == ["2026-02-04", "2026-02-05"]
        assert report["recovery_triggers"] == [{"tag": "TIME", "hits": 2}]

    def test_no_dips_no_triggers(self):
        points = [point(4, 4.0, ["TIME"]), point(5, 4.0, ["TIME"])]
        assert find_recovery_triggers(points, []) == []


class TestPatternReport:
    def test_empty(self):
        report = build_pattern_report([])
        assert report == {
            "stats": {"days_checked_in": 0, "avg": 0.0, "volatility": 0.0},
            "best_day": None,
            "hardest_day": None,
            "mid_week_dips": [],
            "recovery_triggers": [],
        }

    def test_best_and_hardest_ties_keep_the_earliest_day(self):
        report = report_for(point(2, 4.0), point(3, 4.0), point(4, 2.0), point(5, 2.0))
        assert report["best_day"] == {"day_key": "2026-02-02", "dow": 1, "avg": 4.0}
        assert report["hardest_day"] == {"day_key": "2026-02-04", "dow": 3, "avg": 2.0}

    def test_volatility_is_spread_of_daily_averages(self):
        report = report_for(point(2, 2.0), point(3, 4.0))
        assert report["stats"]["volatility"] == 1.0
        assert report["stats"]["days_checked_in"] == 2


class TestBuildDaySeries:
    def test_daily_average_rounded_and_sorted(self):
        rows = [
            {"user_id": "bob", "rating": 5, "tags": ["TIME"], "created_at": local_dt(2026, 2, 5, 9)},
            {"user_id": "alice", "rating": 4, "tags": [], "created_at": local_dt(2026, 2, 4, 9)},
            {"user_id": "alice", "rating": 4, "tags": ["WORDS"], "created_at": local_dt(2026, 2, 4, 10)},
            {"user_id": "bob", "rating": 5, "tags": [], "created_at": local_dt(2026, 2, 4, 22)},
            {"user_id": "bob", "rating": None, "tags": ["NOISE"], "created_at": local_dt(2026, 2, 4, 23)},
        ]
        points = build_day_series(rows, TORONTO)
        assert [(p.day_key.date().isoformat(), p.avg, p.count) for p in points] == [
            ("2026-02-04", 4.33, 3),
            ("2026-02-05", 5.0, 1),
        ]
        assert points[0].tags == ["WORDS"]
        assert points[0].dow == 3


class TestClampWindow:
    @pytest.mark.parametrize("raw,expected", [(3, 7), (7, 7), (28, 28), (90, 90), (500, 90), ("x", 28), (None, 28)])
    def test_bounds(self, raw, expected):
        assert clamp_window(raw) == expected


# ═══════════════════════════════════════════════════════════════════════════
# Against the store
# ═══════════════════════════════════════════════════════════════════════════


def _seed_dip_week(couple_id, add_checkin):
    add_checkin(couple_id, "alice", 5, local_dt(2026, 2, 2, 9))
    add_checkin(couple_id, "alice", 2, local_dt(2026, 2, 4, 9))
    add_checkin(couple_id, "bob", 2, local_dt(2026, 2, 4, 20))
    add_checkin(couple_id, "alice", 4, local_dt(2026, 2, 6, 9), ["TIME"])
    add_checkin(couple_id, "bob", 4, local_dt(2026, 2, 6, 9), ["TIME", "WORDS"])
    add_checkin(couple_id, "bob", 5, local_dt(2026, 2, 7, 9))


class TestDetectPatterns:
    def test_couple_and_partner_reports(self, engine, make_couple, add_checkin, frozen_now):
        couple_id = make_couple()
        _seed_dip_week(couple_id, add_checkin)

        result = detect_patterns(engine, couple_id=couple_id, window_days=28, now=frozen_now)
        assert result["window_days"] == 28
        assert result["timezone"] == TORONTO
        assert result["since"].startswith("2026-01-19")

        couple = result["couple"]
        assert couple["stats"]["days_checked_in"] == 4
        assert [d["day_key"] for d in couple["mid_week_dips"]] == ["2026-02-04"]
        assert couple["recovery_triggers"] == [{"tag": "TIME", "hits": 2}, {"tag": "WORDS", "hits": 1}]

        alice, bob = result["per_partner"]
        assert alice["user_id"] == "alice"
        assert alice["stats"]["days_checked_in"] == 3
        assert bob["user_id"] == "bob"
        assert bob["best_day"]["day_key"] == "2026-02-07"

    def test_member_without_checkins_gets_empty_report(self, engine, make_couple, add_checkin, frozen_now):
        couple_id = make_couple()
        add_checkin(couple_id, "alice", 4, local_dt(2026, 2, 10, 9))
        result = detect_patterns(engine, couple_id=couple_id, now=frozen_now)
        bob = result["per_partner"][1]
        assert bob["stats"]["days_checked_in"] == 0
        assert bob["best_day"] is None

    def test_window_is_clamped(self, engine, make_couple, frozen_now):
        couple_id = make_couple()
        assert detect_patterns(engine, couple_id=couple_id, window_days=3, now=frozen_now)["window_days"] == 7
        assert detect_patterns(engine, couple_id=couple_id, window_days=500, now=frozen_now)["window_days"] == 90

    def test_checkins_outside_window_are_ignored(self, engine, make_couple, add_checkin, frozen_now):
        couple_id = make_couple()
        add_checkin(couple_id, "alice", 1, local_dt(2026, 2, 8, 9))
        add_checkin(couple_id, "alice", 5, local_dt(2026, 2, 9, 9))
        result = detect_patterns(engine, couple_id=couple_id, window_days=7, now=frozen_now)
        assert result["couple"]["stats"]["days_checked_in"] == 1
        assert result["couple"]["stats"]["avg"] == 5.0

    def test_missing_couple_id(self, engine):
        with pytest.raises(ValueError):
            detect_patterns(engine, couple_id="")


class TestInsightsCache:
    def test_second_read_same_day_is_cached(self, engine, make_couple, add_checkin, frozen_now):
        couple_id = make_couple()
        _seed_dip_week(couple_id, add_checkin)

        first = get_insights(engine, couple_id=couple_id, window_days=28, now=frozen_now)
        assert first["cached"] is False

        # new data does not show until refresh or the next local day
        add_checkin(couple_id, "alice", 5, local_dt(2026, 2, 14, 9))
        second = get_insights(engine, couple_id=couple_id, window_days=28, now=frozen_now)
        assert second["cached"] is True
        assert {k: v for k, v in second.items() if k != "cached"} == {
            k: v for k, v in first.items() if k != "cached"
        }

        refreshed = get_insights(engine, couple_id=couple_id, window_days=28, now=frozen_now, use_cache=False)
        assert refreshed["cached"] is False
        assert refreshed["couple"]["stats"]["days_checked_in"] == 5

    def test_cache_is_per_window(self, engine, make_couple, frozen_now):
        couple_id = make_couple()
        get_insights(engine, couple_id=couple_id, window_days=28, now=frozen_now)
        other = get_insights(engine, couple_id=couple_id, window_days=14, now=frozen_now)
        assert other["cached"] is False
        assert other["window_days"] == 14

    def test_next_local_day_misses_the_cache(self, engine, make_couple, frozen_now):
        couple_id = make_couple()
        get_insights(engine, couple_id=couple_id, now=frozen_now)
        tomorrow = local_dt(2026, 2, 16, 0, 30)
        assert get_insights(engine, couple_id=couple_id, now=tomorrow)["cached"] is False

    def test_unknown_couple(self, engine):
        with pytest.raises(ValueError):
            get_insights(engine, couple_id="missing")
