from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional, Sequence

from readquest.features.streaks.freeze_ledger import StreakFreezeLedger

ONE_DAY = timedelta(days=1)
# Oldest missed day a token may still be spent on, relative to today
RECENT_GAP = timedelta(days=2)


@dataclass(frozen=True)
class StreakComputation:
    current_streak: int
    longest_streak: int
    last_activity_date: Optional[date]
    streak_start: Optional[date] = None
    bridged_days: List[date] = field(default_factory=list)


class StreakCalculator:
    """
    Current and longest streak over an ascending list of unique calendar days.

    The current streak is alive while the latest day is today or yesterday
    (grace window). A single missed day can be bridged by a freeze ledger;
    bridged days keep the run going but are not counted. A token is only
    spent on a missed day that is still recent (yesterday or the day
    before); older gaps hold only if a freeze already covers them.
    """

    @staticmethod
    def longest_run(dates: Sequence[date]) -> int:
        if not dates:
            return 0

        longest = 1
        run = 1
        for previous, current in zip(dates, dates[1:]):
            if current - previous == ONE_DAY:
                run += 1
                longest = max(longest, run)
            else:
                run = 1
        return longest

    def compute(
        self,
        dates: Sequence[date],
        today: date,
        ledger: Optional[StreakFreezeLedger] = None,
    ) -> StreakComputation:
        # Days after the reference day cannot be part of a current streak
        history = [d for d in dates if d <= today]
        if not history:
            return StreakComputation(current_streak=0, longest_streak=0, last_activity_date=None)

        last = history[-1]
        longest = self.longest_run(history)
        bridged: List[date] = []

        head_gap = (today - last).days
        if head_gap > 2:
            return StreakComputation(current_streak=0, longest_streak=longest, last_activity_date=last)
        if head_gap == 2:
            missed = today - ONE_DAY
            if ledger is None or not self._bridge(ledger, missed, today):
                return StreakComputation(current_streak=0, longest_streak=longest, last_activity_date=last)
            bridged.append(missed)

        current = 1
        streak_start = last
        previous = last
        for day in reversed(history[:-1]):
            gap = (previous - day).days
            if gap == 1:
                current += 1
            elif gap == 2 and ledger is not None and self._bridge(ledger, previous - ONE_DAY, today):
                bridged.append(previous - ONE_DAY)
                current += 1
            else:
                break
            streak_start = day
            previous = day

        return StreakComputation(
            current_streak=current,
            longest_streak=max(longest, current),
            last_activity_date=last,
            streak_start=streak_start,
            bridged_days=bridged,
        )

    @staticmethod
    def _bridge(ledger: StreakFreezeLedger, missed: date, today: date) -> bool:
        if today - missed <= RECENT_GAP:
            return ledger.bridge(missed)
        return ledger.covers(missed)
