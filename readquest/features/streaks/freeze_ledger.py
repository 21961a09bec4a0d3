from __future__ import annotations

from datetime import date
from typing import Iterable, List, Optional

from readquest.core.errors import FreezeAlreadyUsedError, NoFreezeAvailableError

DEFAULT_FREEZE_CAP = 3
DEFAULT_FREEZE_STRIDE = 7


class StreakFreezeLedger:
    """
    Banked streak-freeze tokens and the days they already cover.

    A token bridges exactly one missed calendar day. Covered days are kept so
    that recomputing the same history never spends a second token on the
    same gap.
    """

    def __init__(
        self,
        tokens: int = 0,
        used_dates: Optional[Iterable[date]] = None,
        *,
        cap: int = DEFAULT_FREEZE_CAP,
        stride: int = DEFAULT_FREEZE_STRIDE,
    ):
        self.cap = cap
        self.stride = stride
        self.tokens = max(0, min(int(tokens), cap))
        self._used = set(used_dates or ())
        self._spent: List[date] = []
        self.earned = 0

    @property
    def used_dates(self) -> List[date]:
        return sorted(self._used)

    @property
    def spent(self) -> List[date]:
        """Days covered by tokens spent on this ledger instance."""
        return list(self._spent)

    def covers(self, day: date) -> bool:
        return day in self._used

    def can_bridge(self, day: date) -> bool:
        return self.covers(day) or self.tokens > 0

    def bridge(self, day: date) -> bool:
        """Cover a single missed day, spending a token only if it is not covered yet."""
        if self.covers(day):
            return True
        if self.tokens <= 0:
            return False
        self._consume(day)
        return True

    def spend(self, day: date) -> None:
        """Protect a day ahead of time (manual use)."""
        if self.covers(day):
            raise FreezeAlreadyUsedError(f"a streak freeze already covers {day.isoformat()}")
        if self.tokens <= 0:
            raise NoFreezeAvailableError("no streak freezes available")
        self._consume(day)

    def earn(self, previous_streak: int, new_streak: int) -> int:
        """Add one token per stride multiple crossed going from previous to new streak."""
        crossed = new_streak // self.stride - max(0, previous_streak) // self.stride
        if crossed <= 0:
            return 0
        added = min(crossed, self.cap - self.tokens)
        if added <= 0:
            return 0
        self.tokens += added
        self.earned += added
        return added

    def _consume(self, day: date) -> None:
        self.tokens -= 1
        self._used.add(day)
        self._spent.append(day)
