"""
Storage contracts for the streak engine, plus in-memory implementations.

The engine reads sessions and profiles through these protocols and writes a
complete StreakState back with a version check. The in-memory stores back
the service when no DATABASE_URL is configured, and the tests.
"""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Protocol

from readquest.core.errors import ProfileNotFoundError, StaleStreakWriteError
from readquest.models.streak import ReadingSession, StreakMilestone, StreakState


class SessionStore(Protocol):
    def list_sessions(self, user_id: str) -> List[ReadingSession]:
        ...

    def delete_sessions(self, user_id: str) -> int:
        ...


class ProfileStore(Protocol):
    def get_streak_state(self, user_id: str) -> StreakState:
        ...

    def save_streak_state(self, state: StreakState, *, expected_version: int) -> StreakState:
        ...

    def list_user_ids(self) -> List[str]:
        ...


class MilestoneStore(Protocol):
    def list_milestones(self, user_id: str) -> List[StreakMilestone]:
        ...

    def add_milestones(self, milestones: Iterable[StreakMilestone]) -> None:
        ...

    def delete_milestones(self, user_id: str) -> None:
        ...


class InMemorySessionStore:
    def __init__(self):
        self._sessions: Dict[str, List[ReadingSession]] = {}
        self._lock = threading.Lock()

    def add(self, session: ReadingSession) -> None:
        with self._lock:
            self._sessions.setdefault(session.user_id, []).append(session)

    def list_sessions(self, user_id: str) -> List[ReadingSession]:
        with self._lock:
            return list(self._sessions.get(user_id, []))

    def delete_sessions(self, user_id: str) -> int:
        with self._lock:
            return len(self._sessions.pop(user_id, []))


class InMemoryProfileStore:
    """Profiles keyed by user id; `auto_create` mirrors a profile row created at sign-up."""

    def __init__(self, *, auto_create: bool = True):
        self._states: Dict[str, StreakState] = {}
        self._auto_create = auto_create
        self._lock = threading.Lock()

    def create_profile(self, user_id: str) -> StreakState:
        with self._lock:
            return self._states.setdefault(user_id, StreakState(user_id=user_id))

    def get_streak_state(self, user_id: str) -> StreakState:
        with self._lock:
            state = self._states.get(user_id)
            if state is None:
                if not self._auto_create:
                    raise ProfileNotFoundError(f"profile {user_id} not found")
                state = StreakState(user_id=user_id)
                self._states[user_id] = state
            return state

    def save_streak_state(self, state: StreakState, *, expected_version: int) -> StreakState:
        with self._lock:
            stored = self._states.get(state.user_id)
            if stored is None:
                if not self._auto_create:
                    raise ProfileNotFoundError(f"profile {state.user_id} not found")
                stored = StreakState(user_id=state.user_id)
            if stored.version != expected_version:
                raise StaleStreakWriteError(
                    f"profile {state.user_id} is at version {stored.version}, expected {expected_version}"
                )
            saved = state.with_changes(version=expected_version + 1)
            self._states[state.user_id] = saved
            return saved

    def list_user_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._states)


class InMemoryMilestoneStore:
    def __init__(self):
        self._milestones: Dict[str, List[StreakMilestone]] = {}
        self._lock = threading.Lock()

    def list_milestones(self, user_id: str) -> List[StreakMilestone]:
        with self._lock:
            return list(self._milestones.get(user_id, []))

    def add_milestones(self, milestones: Iterable[StreakMilestone]) -> None:
        with self._lock:
            for milestone in milestones:
                existing = self._milestones.setdefault(milestone.user_id, [])
                if any(m.milestone_type == milestone.milestone_type for m in existing):
                    continue
                existing.append(milestone)

    def delete_milestones(self, user_id: str) -> None:
        with self._lock:
            self._milestones.pop(user_id, None)
