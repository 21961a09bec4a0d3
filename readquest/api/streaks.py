from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from readquest.features.streaks.milestones import milestone_label, next_milestone
from readquest.features.streaks.sync import ProfileStreakSync
from readquest.models.streak import ReadingSession

router = APIRouter()


class SessionLoggedEvent(BaseModel):
    session_date: str = Field(..., min_length=1)
    pages_read: int = Field(..., ge=0)
    book_id: Optional[str] = None


class RecalculateRequest(BaseModel):
    today: Optional[date] = None


class BatchRecalculateRequest(BaseModel):
    user_ids: Optional[List[str]] = None
    today: Optional[date] = None
    limit: int = Field(0, ge=0)


def get_streak_sync(request: Request) -> ProfileStreakSync:
    return request.app.state.streak_sync


def _state_view(sync: ProfileStreakSync, user_id: str, today: Optional[date] = None) -> dict:
    state = sync.get_state(user_id)
    upcoming = next_milestone(state.current_streak)
    view = state.to_dict()
    view["needs_freeze"] = sync.needs_freeze(user_id, today=today)
    view["next_milestone"] = (
        {
            "milestone_type": upcoming.milestone_type,
            "days": upcoming.days,
            "label": upcoming.label,
            "days_remaining": upcoming.days - state.current_streak,
        }
        if upcoming
        else None
    )
    return view


@router.post("/v1/streaks/recalculate-all")
def recalculate_all(body: BatchRecalculateRequest, sync: ProfileStreakSync = Depends(get_streak_sync)):
    """Recompute streaks for many users; failures are reported per user."""
    result = sync.recalculate_all(body.user_ids, today=body.today, limit=body.limit)
    return result.to_dict()


@router.get("/v1/streaks/{user_id}")
def get_streak(user_id: str, today: Optional[date] = None, sync: ProfileStreakSync = Depends(get_streak_sync)):
    """Return the persisted streak state for a user."""
    return _state_view(sync, user_id, today)


@router.post("/v1/streaks/{user_id}/recalculate")
def recalculate(
    user_id: str,
    body: Optional[RecalculateRequest] = None,
    sync: ProfileStreakSync = Depends(get_streak_sync),
):
    today = body.today if body else None
    state, emitted = sync.recalculate_with_events(user_id, today=today)
    return {"state": state.to_dict(), "emitted": emitted}


@router.post("/v1/streaks/{user_id}/events/session-logged")
def handle_session_logged(
    user_id: str,
    event: SessionLoggedEvent,
    today: Optional[date] = None,
    sync: ProfileStreakSync = Depends(get_streak_sync),
):
    session = ReadingSession(
        user_id=user_id,
        session_date=event.session_date,
        pages_read=event.pages_read,
        book_id=event.book_id,
    )
    state, emitted = sync.record_session(user_id, session, today=today)
    return {"state": state.to_dict(), "emitted": emitted}


@router.post("/v1/streaks/{user_id}/freezes/use")
def use_freeze(user_id: str, today: Optional[date] = None, sync: ProfileStreakSync = Depends(get_streak_sync)):
    state = sync.use_freeze(user_id, today=today)
    return {"state": state.to_dict()}


@router.get("/v1/streaks/{user_id}/milestones")
def list_milestones(user_id: str, sync: ProfileStreakSync = Depends(get_streak_sync)):
    items = []
    for milestone in sync.milestones(user_id):
        item = milestone.to_dict()
        item["label"] = milestone_label(milestone.milestone_type)
        items.append(item)
    return {"milestones": items}


@router.post("/v1/streaks/{user_id}/reset")
def reset_streak(user_id: str, sync: ProfileStreakSync = Depends(get_streak_sync)):
    state = sync.reset(user_id)
    return {"state": state.to_dict()}
