from __future__ import annotations

from typing import Iterable, List, NamedTuple, Optional


class Milestone(NamedTuple):
    milestone_type: str
    days: int
    label: str


MILESTONES: List[Milestone] = [
    Milestone("3days", 3, "3 Days - Warming Up"),
    Milestone("7days", 7, "7 Days - One Week"),
    Milestone("14days", 14, "14 Days - Two Weeks"),
    Milestone("30days", 30, "30 Days - One Month"),
    Milestone("90days", 90, "90 Days - One Quarter"),
    Milestone("365days", 365, "365 Days - Full Year"),
]

_BY_TYPE = {m.milestone_type: m for m in MILESTONES}


def milestone_label(milestone_type: str) -> str:
    milestone = _BY_TYPE.get(milestone_type)
    return milestone.label if milestone else milestone_type


def newly_reached(previous: int, current: int, already_recorded: Iterable[str] = ()) -> List[Milestone]:
    """Milestones crossed going from previous to current that were never recorded."""
    recorded = set(already_recorded)
    return [
        m for m in MILESTONES
        if previous < m.days <= current and m.milestone_type not in recorded
    ]


def next_milestone(current: int) -> Optional[Milestone]:
    return next((m for m in MILESTONES if m.days > current), None)
