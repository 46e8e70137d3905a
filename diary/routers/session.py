"""
Session router.

POST   /session                  — Sign in: open a session for the caller
GET    /session/{id}             — Session state
PUT    /session/{id}/active-day  — Open a day and follow its changes
GET    /session/{id}/events      — Drain queued change notifications
DELETE /session/{id}             — Sign out: release every subscription
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from diary.core.auth import get_current_profile
from diary.db.base import get_db
from diary.schemas.common import ERROR_RESPONSES
from diary.schemas.session import (
    ActiveDayRequest,
    EventsResponse,
    NotificationResponse,
    SessionResponse,
)
from diary.services.identity import Profile
from diary.services.session import SessionRegistry

router = APIRouter(prefix="/session", tags=["session"], responses=ERROR_RESPONSES)


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


@router.post(
    "",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open a session",
)
def open_session(
    registry: SessionRegistry = Depends(get_registry),
    profile: Profile = Depends(get_current_profile),
):
    return registry.open(profile).to_dict()


@router.get("/{session_id}", response_model=SessionResponse, summary="Session state")
def get_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
    profile: Profile = Depends(get_current_profile),
):
    return registry.get(session_id, profile).to_dict()


@router.put("/{session_id}/active-day", response_model=SessionResponse, summary="Open a day")
def set_active_day(
    session_id: str,
    payload: ActiveDayRequest,
    db: Session = Depends(get_db),
    registry: SessionRegistry = Depends(get_registry),
    profile: Profile = Depends(get_current_profile),
):
    session = registry.get(session_id, profile)
    session.set_active_day(db, payload.day_key)
    return session.to_dict()


@router.get("/{session_id}/events", response_model=EventsResponse, summary="Drain notifications")
def drain_events(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
    profile: Profile = Depends(get_current_profile),
):
    """Notifications are eventually consistent and carry no ordering guarantee."""
    events = registry.get(session_id, profile).drain_events()
    return EventsResponse(
        events=[
            NotificationResponse(topic=n.topic, payload=n.payload, published_at=n.published_at)
            for n in events
        ]
    )


@router.delete(
    "/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Close a session",
)
def close_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
    profile: Profile = Depends(get_current_profile),
):
    registry.close(session_id, profile)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
