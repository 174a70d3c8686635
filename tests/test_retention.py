"""Tests for retention policies and pruning."""

from datetime import datetime

import pytest

from worldsnap.catalog import SnapshotId
from worldsnap.publication import _publishing
from worldsnap.retention import (
    DailyPolicy,
    FixedCountPolicy,
    KeepAllPolicy,
    RetentionPolicyError,
    parse_policy,
    prune,
)

NOW = datetime(2024, 5, 10, 18, 0, 0)


def _sid(*ts):
    return SnapshotId(timestamp=datetime(*ts), world_id="w")


class TestParsePolicy:
    def test_all(self):
        assert isinstance(parse_policy("all"), KeepAllPolicy)

    def test_fixed(self):
        policy = parse_policy("fixed count=3")
        assert isinstance(policy, FixedCountPolicy)
        assert policy.count == 3
        assert policy.describe() == "fixed count=3"

    def test_daily_case_insensitive_name(self):
        policy = parse_policy("Daily days=7")
        assert isinstance(policy, DailyPolicy)
        assert policy.days == 7

    @pytest.mark.parametrize(
        "text",
        ["", "weekly", "fixed", "fixed count=abc", "fixed n=3", "fixed count=0", "daily days"],
    )
    def test_invalid(self, text):
        with pytest.raises(RetentionPolicyError):
            parse_policy(text)


class TestPolicies:
    def test_keep_all(self):
        snaps = [_sid(2024, 5, 1, 0, 0, 0), _sid(2024, 5, 2, 0, 0, 0)]
        assert KeepAllPolicy().select_for_pruning(snaps, NOW) == []

    def test_fixed_keeps_newest(self):
        s1, s2, s3 = _sid(2024, 5, 1, 0, 0, 0), _sid(2024, 5, 2, 0, 0, 0), _sid(2024, 5, 3, 0, 0, 0)
        assert FixedCountPolicy(1).select_for_pruning([s3, s1, s2], NOW) == [s1, s2]
        assert FixedCountPolicy(5).select_for_pruning([s3, s1, s2], NOW) == []

    def test_daily_keeps_today_and_newest_per_day(self):
        today_a = _sid(2024, 5, 10, 9, 0, 0)
        today_b = _sid(2024, 5, 10, 17, 0, 0)
        yesterday_old = _sid(2024, 5, 9, 8, 0, 0)
        yesterday_new = _sid(2024, 5, 9, 20, 0, 0)
        two_days = _sid(2024, 5, 8, 12, 0, 0)
        too_old = _sid(2024, 5, 1, 12, 0, 0)

        doomed = DailyPolicy(2).select_for_pruning(
            [today_a, today_b, yesterday_old, yesterday_new, two_days, too_old], NOW
        )

        assert doomed == [too_old, yesterday_old]


class TestPrune:
    def test_deletes_selected_and_returns_them(self):
        s1, s2, s3 = _sid(2024, 5, 1, 0, 0, 0), _sid(2024, 5, 2, 0, 0, 0), _sid(2024, 5, 3, 0, 0, 0)
        deleted = []

        removed = prune([s1, s2, s3], FixedCountPolicy(1), deleted.extend, now=NOW)

        assert removed == [s1, s2]
        assert deleted == [s1, s2]

    def test_nothing_selected_does_not_call_delete(self):
        def explode(sids):
            raise AssertionError("delete should not be called")

        assert prune([_sid(2024, 5, 1, 0, 0, 0)], KeepAllPolicy(), explode, now=NOW) == []

    def test_skips_protected_and_in_flight(self):
        s1, s2, s3 = _sid(2024, 5, 1, 0, 0, 0), _sid(2024, 5, 2, 0, 0, 0), _sid(2024, 5, 3, 0, 0, 0)
        deleted = []

        with _publishing(s1):
            removed = prune(
                [s1, s2, s3], FixedCountPolicy(1), deleted.extend, protected=[s2], now=NOW
            )

        assert removed == []
        assert deleted == []
