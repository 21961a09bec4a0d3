from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import List, Literal, Optional, Union

SessionDateValue = Union[datetime, date, str]

MilestoneType = Literal["3days", "7days", "14days", "30days", "90days", "365days"]


@dataclass(frozen=True)
class ReadingSession:
    """One logged reading event. Only the calendar day and page count matter for streaks."""

    user_id: str
    session_date: SessionDateValue
    pages_read: int = 0
    book_id: Optional[str] = None


@dataclass(frozen=True)
class StreakState:
    """
    Streak fields persisted on a user's profile.

    Derived data: recomputable at any time from the user's session history,
    except for `freeze_used_dates`, which records the days already covered
    by a spent freeze token.
    """

    user_id: str
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: Optional[date] = None
    streak_freezes: int = 0
    freeze_used_dates: List[date] = field(default_factory=list)
    version: int = 0

    def __post_init__(self) -> None:
        if self.current_streak < 0 or self.longest_streak < 0:
            raise ValueError("streak values must be non-negative")
        if self.longest_streak < self.current_streak:
            raise ValueError(
                f"longest_streak ({self.longest_streak}) < current_streak ({self.current_streak})"
            )
        if self.streak_freezes < 0:
            raise ValueError("streak_freezes must be non-negative")

    def with_changes(self, **changes) -> "StreakState":
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "last_activity_date": self.last_activity_date.isoformat() if self.last_activity_date else None,
            "streak_freezes": self.streak_freezes,
            "freeze_used_dates": [d.isoformat() for d in self.freeze_used_dates],
            "version": self.version,
        }


@dataclass(frozen=True)
class StreakMilestone:
    user_id: str
    milestone_type: MilestoneType
    streak_value: int
    achieved_at: datetime
    shared_to_feed: bool = False

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "milestone_type": self.milestone_type,
            "streak_value": self.streak_value,
            "achieved_at": self.achieved_at.isoformat(),
            "shared_to_feed": self.shared_to_feed,
        }
