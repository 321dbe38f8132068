"""Streak calculator tests: day classification and reward table."""

from datetime import date, datetime, timedelta, timezone

import pytest

from nexus.rewards.streak import (
    DAILY_LOGIN_REWARDS,
    StreakKind,
    calculate_streak,
    reward_for_streak,
    today_in_zone,
)

D = date(2026, 3, 10)


class TestCalculateStreak:
    """Classification of a login relative to the previous login date."""

    def test_first_login_starts_at_one(self):
        decision = calculate_streak(None, D, 0)
        assert decision.kind is StreakKind.FIRST_LOGIN
        assert decision.new_streak == 1
        assert decision.streak_broken is False
        assert decision.grants_reward

    def test_consecutive_day_increments(self):
        decision = calculate_streak(D, D + timedelta(days=1), 4)
        assert decision.kind is StreakKind.CONSECUTIVE
        assert decision.new_streak == 5
        assert decision.streak_broken is False

    def test_two_day_gap_resets_and_breaks(self):
        decision = calculate_streak(D, D + timedelta(days=2), 9)
        assert decision.kind is StreakKind.GAP
        assert decision.new_streak == 1
        assert decision.streak_broken is True

    def test_same_day_is_unchanged(self):
        decision = calculate_streak(D, D, 3)
        assert decision.kind is StreakKind.SAME_DAY
        assert decision.new_streak == 3
        assert decision.streak_broken is False
        assert not decision.grants_reward

    def test_future_last_login_counts_as_same_day(self):
        """A skewed clock cannot mint an extra streak day."""
        decision = calculate_streak(D + timedelta(days=1), D, 2)
        assert decision.kind is StreakKind.SAME_DAY
        assert decision.new_streak == 2

    def test_month_boundary_is_consecutive(self):
        decision = calculate_streak(date(2026, 2, 28), date(2026, 3, 1), 1)
        assert decision.kind is StreakKind.CONSECUTIVE
        assert decision.new_streak == 2

    def test_leap_year_boundary(self):
        decision = calculate_streak(date(2028, 2, 28), date(2028, 3, 1), 1)
        assert decision.kind is StreakKind.GAP

    @pytest.mark.parametrize("streak", [1, 2, 10, 100])
    def test_continuity_property(self, streak):
        assert calculate_streak(D, D + timedelta(days=1), streak).new_streak == streak + 1


class TestRewardTable:
    """Reward lookup is table-driven and independent of dates."""

    def test_default_curve(self):
        assert [reward_for_streak(s) for s in range(1, 8)] == [5, 6, 7, 8, 9, 10, 11]

    def test_default_curve_caps_at_day_seven(self):
        assert reward_for_streak(8) == 11
        assert reward_for_streak(365) == 11

    def test_zero_streak_earns_nothing(self):
        assert reward_for_streak(0) == 0

    def test_injected_table(self):
        table = [(1, 2), (3, 10)]
        assert reward_for_streak(1, table) == 2
        assert reward_for_streak(2, table) == 2
        assert reward_for_streak(3, table) == 10
        assert reward_for_streak(30, table) == 10

    def test_unsorted_table_is_accepted(self):
        assert reward_for_streak(5, [(5, 50), (1, 1)]) == 50

    def test_default_table_is_ascending(self):
        assert DAILY_LOGIN_REWARDS == sorted(DAILY_LOGIN_REWARDS)


class TestTodayInZone:
    """Day boundaries come from the server-side zone, not the client."""

    def test_utc(self):
        now = datetime(2026, 3, 10, 23, 30, tzinfo=timezone.utc)
        assert today_in_zone("UTC", now) == date(2026, 3, 10)

    def test_zone_ahead_of_utc_rolls_over(self):
        now = datetime(2026, 3, 10, 23, 30, tzinfo=timezone.utc)
        assert today_in_zone("Asia/Tokyo", now) == date(2026, 3, 11)

    def test_zone_behind_utc(self):
        now = datetime(2026, 3, 10, 2, 0, tzinfo=timezone.utc)
        assert today_in_zone("America/New_York", now) == date(2026, 3, 9)

    def test_naive_now_is_treated_as_utc(self):
        assert today_in_zone("UTC", datetime(2026, 3, 10, 12, 0)) == date(2026, 3, 10)
