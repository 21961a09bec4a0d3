"""
Profile streak synchronization.

Reads a user's full reading-session history, recomputes the streak with the
freeze ledger, and writes the complete result back to the profile in a
single versioned write. Nothing is written when a read fails or when the
recomputed state equals the stored one, so a failed or repeated run never
changes what the user sees.

Usage:
    sync = ProfileStreakSync(session_store, profile_store, milestone_store)
    state = sync.recalculate("user-1")
    state, emitted = sync.recalculate_with_events("user-1")
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from readquest.core.errors import AppError, ValidationError
from readquest.core.logging import log_event
from readquest.core.metrics import StreakMetrics
from readquest.features.streaks.calculator import StreakCalculator, StreakComputation
from readquest.features.streaks.date_index import SessionDateIndex
from readquest.features.streaks.freeze_ledger import (
    DEFAULT_FREEZE_CAP,
    DEFAULT_FREEZE_STRIDE,
    StreakFreezeLedger,
)
from readquest.features.streaks.milestones import Milestone, newly_reached
from readquest.features.streaks.stores import MilestoneStore, ProfileStore, SessionStore
from readquest.models.streak import ReadingSession, StreakMilestone, StreakState


def _error_code(exc: Exception) -> str:
    return exc.code if isinstance(exc, AppError) else "internal_error"


@dataclass
class BatchResult:
    processed: int = 0
    updated: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "processed": self.processed,
            "updated": list(self.updated),
            "unchanged": list(self.unchanged),
            "failed": dict(self.failed),
        }


class ProfileStreakSync:
    """Recompute streaks from session history and persist them on the profile."""

    def __init__(
        self,
        sessions: SessionStore,
        profiles: ProfileStore,
        milestones: Optional[MilestoneStore] = None,
        *,
        logger: Optional[logging.Logger] = None,
        metrics: Optional[StreakMetrics] = None,
        tz: tzinfo = timezone.utc,
        freeze_cap: int = DEFAULT_FREEZE_CAP,
        freeze_stride: int = DEFAULT_FREEZE_STRIDE,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._sessions = sessions
        self._profiles = profiles
        self._milestones = milestones
        self._logger = logger or logging.getLogger("readquest.streaks")
        self._metrics = metrics or StreakMetrics()
        self._tz = tz
        self._freeze_cap = freeze_cap
        self._freeze_stride = freeze_stride
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._index = SessionDateIndex(tz)
        self._calculator = StreakCalculator()
        self._user_locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # Public API -------------------------------------------------------
    def today(self) -> date:
        return self._clock().astimezone(self._tz).date()

    def get_state(self, user_id: str) -> StreakState:
        return self._profiles.get_streak_state(user_id)

    def recalculate(self, user_id: str, *, today: Optional[date] = None) -> StreakState:
        state, _ = self.recalculate_with_events(user_id, today=today)
        return state

    def on_new_session(
        self,
        user_id: str,
        session: ReadingSession,
        *,
        today: Optional[date] = None,
    ) -> StreakState:
        state, _ = self.record_session(user_id, session, today=today)
        return state

    def record_session(
        self,
        user_id: str,
        session: ReadingSession,
        *,
        today: Optional[date] = None,
    ) -> Tuple[StreakState, List[dict]]:
        # The store may not reflect the new session yet, so it is merged in
        if session.user_id != user_id:
            raise ValidationError(f"session belongs to {session.user_id}, not {user_id}")
        # A malformed new session is rejected outright; stored ones are only skipped
        self._index.to_day(session.session_date)
        return self.recalculate_with_events(user_id, today=today, extra_sessions=[session])

    def recalculate_with_events(
        self,
        user_id: str,
        *,
        today: Optional[date] = None,
        extra_sessions: Sequence[ReadingSession] = (),
    ) -> Tuple[StreakState, List[dict]]:
        day = today or self.today()
        with self._lock_for(user_id):
            try:
                return self._sync(user_id, day, extra_sessions)
            except Exception as exc:
                self._metrics.recalculations.inc(labels={"outcome": "failed"})
                log_event(
                    "error",
                    "streak.recalculate.failed",
                    logger=self._logger,
                    user_id=user_id,
                    error_code=_error_code(exc),
                    extra={"error_message": str(exc)},
                )
                raise

    def recalculate_all(
        self,
        user_ids: Optional[Iterable[str]] = None,
        *,
        today: Optional[date] = None,
        limit: int = 0,
    ) -> BatchResult:
        """Recompute every profile; one user's failure never stops the batch."""
        ids = list(user_ids) if user_ids is not None else self._profiles.list_user_ids()
        if limit > 0:
            ids = ids[:limit]

        result = BatchResult()
        for user_id in ids:
            result.processed += 1
            try:
                before = self._profiles.get_streak_state(user_id)
                after = self.recalculate(user_id, today=today)
            except Exception as exc:
                result.failed[user_id] = _error_code(exc)
                continue
            if after.version != before.version:
                result.updated.append(user_id)
            else:
                result.unchanged.append(user_id)

        self._metrics.batch_failed_users.set(len(result.failed))
        log_event(
            "info",
            "streak.batch.complete",
            logger=self._logger,
            extra={
                "processed": result.processed,
                "updated": len(result.updated),
                "failed": len(result.failed),
            },
        )
        return result

    def use_freeze(self, user_id: str, *, today: Optional[date] = None) -> StreakState:
        """Spend a token to protect today; at most once per day."""
        day = today or self.today()
        with self._lock_for(user_id):
            previous = self._profiles.get_streak_state(user_id)
            ledger = self._ledger_for(previous)
            ledger.spend(day)
            saved = self._profiles.save_streak_state(
                previous.with_changes(
                    streak_freezes=ledger.tokens,
                    freeze_used_dates=ledger.used_dates,
                ),
                expected_version=previous.version,
            )
        self._metrics.freezes_consumed.inc(labels={"source": "manual"})
        log_event(
            "info",
            "streak.freeze.used",
            logger=self._logger,
            user_id=user_id,
            event_type="streak.freeze_used",
            extra={"day": day.isoformat(), "remaining": saved.streak_freezes},
        )
        return saved

    def needs_freeze(self, user_id: str, *, today: Optional[date] = None) -> bool:
        """True when a live streak will break unless the user reads or spends a freeze."""
        day = today or self.today()
        state = self._profiles.get_streak_state(user_id)
        if state.current_streak == 0 or state.last_activity_date is None:
            return False
        return state.last_activity_date not in (day, day - timedelta(days=1))

    def reset(self, user_id: str) -> StreakState:
        """
        Explicit reset: the only operation that lowers longest_streak.

        Reading history and recorded milestones go with it; otherwise the
        next recalculation would rebuild the old streak.
        """
        with self._lock_for(user_id):
            previous = self._profiles.get_streak_state(user_id)
            removed = self._sessions.delete_sessions(user_id)
            if self._milestones is not None:
                self._milestones.delete_milestones(user_id)
            saved = self._profiles.save_streak_state(
                StreakState(user_id=user_id, version=previous.version),
                expected_version=previous.version,
            )
        log_event(
            "warning",
            "streak.reset",
            logger=self._logger,
            user_id=user_id,
            extra={"previous_longest": previous.longest_streak, "sessions_removed": removed},
        )
        return saved

    def milestones(self, user_id: str) -> List[StreakMilestone]:
        if self._milestones is None:
            return []
        return self._milestones.list_milestones(user_id)

    # Internal helpers -------------------------------------------------
    def _sync(
        self,
        user_id: str,
        day: date,
        extra_sessions: Sequence[ReadingSession],
    ) -> Tuple[StreakState, List[dict]]:
        previous = self._profiles.get_streak_state(user_id)
        history = list(self._sessions.list_sessions(user_id)) + list(extra_sessions)

        index = self._index.build(history)
        for rejected in index.rejected:
            self._metrics.invalid_sessions.inc()
            log_event(
                "warning",
                "streak.session.invalid",
                logger=self._logger,
                user_id=user_id,
                error_code=rejected.code,
                extra={"error_message": rejected.message},
            )

        candidate, computation, earned = self._settle(previous, index.dates, day)
        already_covered = set(previous.freeze_used_dates)
        spent = [d for d in candidate.freeze_used_dates if d not in already_covered]

        if candidate == previous:
            saved = previous
        else:
            saved = self._profiles.save_streak_state(candidate, expected_version=previous.version)

        reached = self._record_milestones(user_id, saved.current_streak)

        emitted = self._events(previous, saved, computation, spent, earned, self._freeze_stride, reached)
        self._metrics.recalculations.inc(labels={"outcome": "ok"})
        if spent:
            self._metrics.freezes_consumed.inc(labels={"source": "bridge"}, amount=len(spent))
        if earned:
            self._metrics.freezes_earned.inc(amount=earned)

        log_event(
            "info",
            "streak.recalculated",
            logger=self._logger,
            user_id=user_id,
            extra={
                "current_streak": saved.current_streak,
                "longest_streak": saved.longest_streak,
                "streak_freezes": saved.streak_freezes,
                "sessions": len(history),
                "days": len(index),
                "written": saved is not previous,
            },
        )
        return saved, emitted

    def _settle(
        self,
        previous: StreakState,
        dates: Sequence[date],
        day: date,
    ) -> Tuple[StreakState, StreakComputation, int]:
        """Recompute until another pass would change nothing, so a repeat call is a no-op."""
        state = previous
        earned = 0
        # Each extra pass needs a newly spent or earned token; both are bounded
        for _ in range(max(self._freeze_cap, 0) + 2):
            ledger = self._ledger_for(state)
            computation = self._calculator.compute(dates, day, ledger)
            earned += ledger.earn(state.current_streak, computation.current_streak)
            candidate = state.with_changes(
                current_streak=computation.current_streak,
                longest_streak=max(computation.longest_streak, state.longest_streak),
                last_activity_date=computation.last_activity_date,
                streak_freezes=ledger.tokens,
                freeze_used_dates=ledger.used_dates,
            )
            if candidate == state:
                break
            state = candidate
        return state, computation, earned

    def _record_milestones(self, user_id: str, current_streak: int) -> List[Milestone]:
        # Milestones are a side record; a failure here leaves the saved streak
        # in place and the next recalculation records what is missing
        if self._milestones is None or current_streak == 0:
            return []
        try:
            recorded = [m.milestone_type for m in self._milestones.list_milestones(user_id)]
            reached = newly_reached(0, current_streak, recorded)
            if not reached:
                return []
            achieved_at = self._clock()
            self._milestones.add_milestones(
                StreakMilestone(
                    user_id=user_id,
                    milestone_type=m.milestone_type,
                    streak_value=m.days,
                    achieved_at=achieved_at,
                )
                for m in reached
            )
        except AppError as exc:
            self._metrics.milestone_failures.inc()
            log_event(
                "warning",
                "streak.milestone.record_failed",
                logger=self._logger,
                user_id=user_id,
                error_code=exc.code,
                extra={"error_message": exc.message, "current_streak": current_streak},
            )
            return []
        for m in reached:
            self._metrics.milestones_reached.inc(labels={"milestone": m.milestone_type})
        return reached

    def _ledger_for(self, state: StreakState) -> StreakFreezeLedger:
        return StreakFreezeLedger(
            state.streak_freezes,
            state.freeze_used_dates,
            cap=self._freeze_cap,
            stride=self._freeze_stride,
        )

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._locks_guard:
            if user_id not in self._user_locks:
                self._user_locks[user_id] = threading.Lock()
            return self._user_locks[user_id]

    @staticmethod
    def _events(
        previous: StreakState,
        saved: StreakState,
        computation: StreakComputation,
        spent: List[date],
        earned: int,
        stride: int,
        reached: List[Milestone],
    ) -> List[dict]:
        user_id = saved.user_id
        emitted: List[dict] = []

        for day in spent:
            emitted.append(
                {
                    "type": "streak.freeze_used",
                    "payload": {"userId": user_id, "coveredDay": day.isoformat(), "remaining": saved.streak_freezes},
                }
            )
        if earned:
            emitted.append(
                {
                    "type": "streak.freeze_earned",
                    "payload": {"userId": user_id, "earned": earned, "available": saved.streak_freezes},
                }
            )

        if saved.current_streak > previous.current_streak:
            if saved.current_streak == 1:
                event_type = "streak.started"
            elif saved.current_streak > previous.longest_streak:
                event_type = "streak.record"
            elif saved.current_streak % stride == 0:
                event_type = "streak.weekly"
            else:
                event_type = "streak.incremented"
            emitted.append(
                {
                    "type": event_type,
                    "payload": {
                        "userId": user_id,
                        "currentStreak": saved.current_streak,
                        "longestStreak": saved.longest_streak,
                        "streakStart": computation.streak_start.isoformat() if computation.streak_start else None,
                    },
                }
            )
        elif previous.current_streak > 0 and saved.current_streak == 0:
            emitted.append(
                {
                    "type": "streak.broken",
                    "payload": {
                        "userId": user_id,
                        "previousStreak": previous.current_streak,
                        "lastActivityDate": saved.last_activity_date.isoformat() if saved.last_activity_date else None,
                    },
                }
            )

        for m in reached:
            emitted.append(
                {
                    "type": "streak.milestone",
                    "payload": {"userId": user_id, "milestone": m.milestone_type, "label": m.label, "days": m.days},
                }
            )
        return emitted
