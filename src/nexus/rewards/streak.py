"""Daily login streak calculation.

Pure functions only: no database, no clock reads unless `now` is omitted.
Day boundaries are always computed server-side in one configured zone.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo


class StreakKind(str, enum.Enum):
    FIRST_LOGIN = "first_login"
    SAME_DAY = "same_day"
    CONSECUTIVE = "consecutive"
    GAP = "gap"


@dataclass(frozen=True, slots=True)
class StreakDecision:
    kind: StreakKind
    new_streak: int
    streak_broken: bool = False

    @property
    def grants_reward(self) -> bool:
        return self.kind is not StreakKind.SAME_DAY


# (min_streak, credits) rows, ascending. The highest row whose min_streak
# is <= the streak applies, so the last row is the cap.
DAILY_LOGIN_REWARDS: list[tuple[int, int]] = [
    (1, 5),
    (2, 6),
    (3, 7),
    (4, 8),
    (5, 9),
    (6, 10),
    (7, 11),
]


def calculate_streak(last_login_date: date | None, today: date, current_streak: int) -> StreakDecision:
    """Classify a login on `today` given the previous login date.

    A previous date in the future counts as the same day, so a skewed
    clock can never mint an extra streak day.
    """
    if last_login_date is None:
        return StreakDecision(StreakKind.FIRST_LOGIN, 1)

    delta = (today - last_login_date).days
    if delta <= 0:
        return StreakDecision(StreakKind.SAME_DAY, current_streak)
    if delta == 1:
        return StreakDecision(StreakKind.CONSECUTIVE, max(current_streak, 0) + 1)
    return StreakDecision(StreakKind.GAP, 1, streak_broken=True)


def reward_for_streak(streak: int, table: list[tuple[int, int]] | None = None) -> int:
    """Credits granted for a login that results in `streak`."""
    rows = DAILY_LOGIN_REWARDS if table is None else table
    reward = 0
    for min_streak, credits in sorted(rows):
        if streak >= min_streak:
            reward = credits
    return reward


def today_in_zone(tz_name: str = "UTC", now: datetime | None = None) -> date:
    """Calendar date of `now` (default: current time) in the given zone."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tz_name)).date()
