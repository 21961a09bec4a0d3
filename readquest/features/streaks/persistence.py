"""
readquest/features/streaks/persistence.py

SQL persistence for the streak engine.

Implements the same store contracts as the in-memory stores. Every
SQLAlchemy error is surfaced as PersistenceReadFailure or
PersistenceWriteFailure; profile writes are compare-and-set on
`streak_version` so a stale recompute can never overwrite a fresher one.
"""

from datetime import date, datetime, timezone
from typing import Iterable, List

from sqlalchemy import delete, select, insert, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from readquest.core.database import (
    get_db_session,
    profiles,
    reading_sessions,
    streak_milestones,
)
from readquest.core.errors import (
    PersistenceReadFailure,
    PersistenceWriteFailure,
    ProfileNotFoundError,
    StaleStreakWriteError,
)
from readquest.models.streak import ReadingSession, StreakMilestone, StreakState


def _as_utc(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes; stored values are always UTC
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def _parse_used_dates(raw) -> List[date]:
    if not raw:
        return []
    return sorted(date.fromisoformat(value) for value in raw)


def _row_to_state(row) -> StreakState:
    return StreakState(
        user_id=row.user_id,
        current_streak=row.current_streak,
        longest_streak=max(row.longest_streak, row.current_streak),
        last_activity_date=row.last_activity_date,
        streak_freezes=row.streak_freezes,
        freeze_used_dates=_parse_used_dates(row.freeze_used_dates),
        version=row.streak_version,
    )


class SqlSessionStore:
    """The reading_sessions table: history reads, inserts, and deletion on reset."""

    @staticmethod
    def list_sessions(user_id: str) -> List[ReadingSession]:
        try:
            with get_db_session() as session:
                rows = session.execute(
                    select(reading_sessions)
                    .where(reading_sessions.c.user_id == user_id)
                    .order_by(reading_sessions.c.session_date)
                ).all()
        except SQLAlchemyError as exc:
            raise PersistenceReadFailure(f"failed to load reading sessions for {user_id}") from exc

        return [
            ReadingSession(
                user_id=row.user_id,
                book_id=row.book_id,
                session_date=_as_utc(row.session_date),
                pages_read=row.pages_read,
            )
            for row in rows
        ]

    @staticmethod
    def add_session(session_obj: ReadingSession) -> None:
        """Insert a session; used by the reading log and by tests."""
        moment = session_obj.session_date
        if isinstance(moment, str):
            moment = datetime.fromisoformat(moment.replace("Z", "+00:00"))
        if isinstance(moment, date) and not isinstance(moment, datetime):
            moment = datetime(moment.year, moment.month, moment.day, tzinfo=timezone.utc)
        try:
            with get_db_session() as session:
                session.execute(
                    insert(reading_sessions).values(
                        user_id=session_obj.user_id,
                        book_id=session_obj.book_id,
                        session_date=_as_utc(moment),
                        pages_read=session_obj.pages_read,
                    )
                )
        except SQLAlchemyError as exc:
            raise PersistenceWriteFailure(f"failed to insert reading session for {session_obj.user_id}") from exc

    @staticmethod
    def delete_sessions(user_id: str) -> int:
        try:
            with get_db_session() as session:
                result = session.execute(delete(reading_sessions).where(reading_sessions.c.user_id == user_id))
                return result.rowcount
        except SQLAlchemyError as exc:
            raise PersistenceWriteFailure(f"failed to delete reading sessions for {user_id}") from exc


class SqlProfileStore:
    """Streak columns of the profiles table."""

    def __init__(self, *, auto_create: bool = True):
        self._auto_create = auto_create

    def create_profile(self, user_id: str) -> StreakState:
        try:
            with get_db_session() as session:
                session.execute(insert(profiles).values(user_id=user_id, freeze_used_dates=[]))
        except IntegrityError:
            pass  # already exists
        except SQLAlchemyError as exc:
            raise PersistenceWriteFailure(f"failed to create profile {user_id}") from exc
        return self.get_streak_state(user_id)

    def get_streak_state(self, user_id: str) -> StreakState:
        row = self._fetch(user_id)
        if row is None:
            if not self._auto_create:
                raise ProfileNotFoundError(f"profile {user_id} not found")
            return self.create_profile(user_id)
        return _row_to_state(row)

    def save_streak_state(self, state: StreakState, *, expected_version: int) -> StreakState:
        values = {
            "current_streak": state.current_streak,
            "longest_streak": state.longest_streak,
            "streak_freezes": state.streak_freezes,
            "last_activity_date": state.last_activity_date,
            "freeze_used_dates": [d.isoformat() for d in state.freeze_used_dates],
            "streak_version": expected_version + 1,
            "updated_at": datetime.now(timezone.utc),
        }
        try:
            with get_db_session() as session:
                result = session.execute(
                    update(profiles)
                    .where(profiles.c.user_id == state.user_id)
                    .where(profiles.c.streak_version == expected_version)
                    .values(**values)
                )
                matched = result.rowcount
        except SQLAlchemyError as exc:
            raise PersistenceWriteFailure(f"failed to save streak for {state.user_id}") from exc

        if matched == 0:
            row = self._fetch(state.user_id)
            if row is None:
                raise ProfileNotFoundError(f"profile {state.user_id} not found")
            raise StaleStreakWriteError(
                f"profile {state.user_id} is at version {row.streak_version}, expected {expected_version}"
            )
        return state.with_changes(version=expected_version + 1)

    def list_user_ids(self) -> List[str]:
        try:
            with get_db_session() as session:
                rows = session.execute(select(profiles.c.user_id).order_by(profiles.c.user_id)).all()
        except SQLAlchemyError as exc:
            raise PersistenceReadFailure("failed to list profiles") from exc
        return [row.user_id for row in rows]

    @staticmethod
    def _fetch(user_id: str):
        try:
            with get_db_session() as session:
                return session.execute(
                    select(profiles).where(profiles.c.user_id == user_id)
                ).first()
        except SQLAlchemyError as exc:
            raise PersistenceReadFailure(f"failed to load profile {user_id}") from exc


class SqlMilestoneStore:
    @staticmethod
    def list_milestones(user_id: str) -> List[StreakMilestone]:
        try:
            with get_db_session() as session:
                rows = session.execute(
                    select(streak_milestones)
                    .where(streak_milestones.c.user_id == user_id)
                    .order_by(streak_milestones.c.streak_value)
                ).all()
        except SQLAlchemyError as exc:
            raise PersistenceReadFailure(f"failed to load milestones for {user_id}") from exc

        return [
            StreakMilestone(
                user_id=row.user_id,
                milestone_type=row.milestone_type,
                streak_value=row.streak_value,
                achieved_at=_as_utc(row.achieved_at),
                shared_to_feed=bool(row.shared_to_feed),
            )
            for row in rows
        ]

    @staticmethod
    def add_milestones(milestones: Iterable[StreakMilestone]) -> None:
        for milestone in milestones:
            try:
                with get_db_session() as session:
                    session.execute(
                        insert(streak_milestones).values(
                            user_id=milestone.user_id,
                            milestone_type=milestone.milestone_type,
                            streak_value=milestone.streak_value,
                            achieved_at=milestone.achieved_at,
                            shared_to_feed=milestone.shared_to_feed,
                        )
                    )
            except IntegrityError:
                continue  # recorded by a concurrent recalculation
            except SQLAlchemyError as exc:
                raise PersistenceWriteFailure(
                    f"failed to record milestone {milestone.milestone_type} for {milestone.user_id}"
                ) from exc

    @staticmethod
    def delete_milestones(user_id: str) -> None:
        try:
            with get_db_session() as session:
                session.execute(delete(streak_milestones).where(streak_milestones.c.user_id == user_id))
        except SQLAlchemyError as exc:
            raise PersistenceWriteFailure(f"failed to delete milestones for {user_id}") from exc


def build_sql_stores(auto_create: bool = True):
    """Session, profile and milestone stores sharing the configured engine."""
    return SqlSessionStore(), SqlProfileStore(auto_create=auto_create), SqlMilestoneStore()
