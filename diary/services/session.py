"""
Signed-in participant sessions.

A DiarySession is opened on sign-in and carries the participant's profile,
today's key and late-night flag, the day currently open and the change
subscriptions that go with it. Notifications are queued on the session and
drained by polling. close() releases every subscription.

Today's key is read from the clock on every access, so a session left open
across the cutoff rolls over to the new day. The registry closes sessions
idle for longer than SESSION_IDLE_SECONDS and keeps at most
SESSION_MAX_OPEN of them, dropping the least recently used.
"""
from __future__ import annotations

import logging
import threading
import uuid
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from diary.core.config import settings
from diary.core.errors import SessionNotFoundError
from diary.services.calendar import CalendarConfig, DateInfo, parse_day_key, today_info
from diary.services.days import ensure_day
from diary.services.identity import Profile
from diary.services.notifications import (
    AGREEMENTS_TOPIC,
    WEEKLY_COMMENTS_TOPIC,
    ChangeHub,
    Notification,
    Subscription,
    day_topic,
    get_hub,
)

logger = logging.getLogger(__name__)

MAX_PENDING_EVENTS = 500

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class DiarySession:
    def __init__(
        self,
        profile: Profile,
        hub: Optional[ChangeHub] = None,
        config: Optional[CalendarConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.id = uuid.uuid4().hex
        self.profile = profile
        self.hub = hub or get_hub()
        self._config = config
        self._clock = clock or _utcnow
        self.last_seen = self._clock()
        self.active_day_key: Optional[str] = None
        self.closed = False
        self._lock = threading.Lock()
        self._events: deque[Notification] = deque(maxlen=MAX_PENDING_EVENTS)
        self._day_subscription: Optional[Subscription] = None
        self._shared_subscriptions = [
            self.hub.subscribe(AGREEMENTS_TOPIC, self._on_notification),
            self.hub.subscribe(WEEKLY_COMMENTS_TOPIC, self._on_notification),
        ]

    @property
    def today(self) -> DateInfo:
        return today_info(self._clock(), self._config)

    @property
    def today_key(self) -> str:
        return self.today.day_key

    @property
    def is_late_night(self) -> bool:
        return self.today.is_late_night

    @property
    def subscriptions(self) -> list[Subscription]:
        subs = list(self._shared_subscriptions)
        if self._day_subscription is not None:
            subs.append(self._day_subscription)
        return [s for s in subs if s.active]

    def touch(self) -> None:
        self.last_seen = self._clock()

    def idle_for(self, now: datetime) -> timedelta:
        return now - self.last_seen

    def _on_notification(self, notification: Notification) -> None:
        with self._lock:
            self._events.append(notification)

    def set_active_day(self, db: Session, day_key: str, config: Optional[CalendarConfig] = None) -> None:
        """Open a day thread: create it if absent and follow its changes."""
        if self.closed:
            raise SessionNotFoundError(self.id)
        parse_day_key(day_key)
        ensure_day(db, day_key, config or self._config)
        if self._day_subscription is not None:
            self._day_subscription.cancel()
        self._day_subscription = self.hub.subscribe(day_topic(day_key), self._on_notification)
        self.active_day_key = day_key

    def drain_events(self) -> list[Notification]:
        with self._lock:
            events = list(self._events)
            self._events.clear()
        return events

    def close(self) -> None:
        for sub in self.subscriptions:
            sub.cancel()
        self._day_subscription = None
        self.closed = True

    def to_dict(self) -> dict[str, Any]:
        today = self.today
        return {
            "id": self.id,
            "email": self.profile.email,
            "role": self.profile.role.value,
            "display_name": self.profile.display_name,
            "today_key": today.day_key,
            "is_late_night": today.is_late_night,
            "active_day_key": self.active_day_key,
        }


class SessionRegistry:
    """Open sessions by id. One registry per app instance."""

    def __init__(
        self,
        hub: Optional[ChangeHub] = None,
        idle_seconds: Optional[int] = None,
        max_open: Optional[int] = None,
        clock: Optional[Clock] = None,
    ):
        self.hub = hub
        self.idle_timeout = timedelta(
            seconds=settings.SESSION_IDLE_SECONDS if idle_seconds is None else idle_seconds
        )
        self.max_open = settings.SESSION_MAX_OPEN if max_open is None else max_open
        self._clock = clock or _utcnow
        self._lock = threading.Lock()
        self._sessions: dict[str, DiarySession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def _take_idle(self) -> list[DiarySession]:
        """Remove idle sessions from the map. Caller holds the lock."""
        now = self._clock()
        idle = [s for s in self._sessions.values() if s.idle_for(now) > self.idle_timeout]
        for session in idle:
            del self._sessions[session.id]
        return idle

    def _take_oldest(self) -> list[DiarySession]:
        """Make room for one more session. Caller holds the lock."""
        excess = len(self._sessions) - self.max_open + 1
        if excess <= 0:
            return []
        oldest = sorted(self._sessions.values(), key=lambda s: s.last_seen)[:excess]
        for session in oldest:
            del self._sessions[session.id]
        return oldest

    def _release(self, sessions: list[DiarySession], reason: str) -> None:
        for session in sessions:
            session.close()
            logger.info("Session %s closed (%s)", session.id, reason)

    def open(self, profile: Profile) -> DiarySession:
        session = DiarySession(profile, hub=self.hub, clock=self._clock)
        with self._lock:
            idle = self._take_idle()
            evicted = self._take_oldest()
            self._sessions[session.id] = session
        self._release(idle, "idle")
        self._release(evicted, "limit")
        logger.info("Session %s opened for %s", session.id, profile.role.value)
        return session

    def get(self, session_id: str, profile: Optional[Profile] = None) -> DiarySession:
        """Look up a session; with `profile`, it must belong to that participant."""
        with self._lock:
            idle = self._take_idle()
            session = self._sessions.get(session_id)
        self._release(idle, "idle")
        if session is None or (profile is not None and session.profile.email != profile.email):
            raise SessionNotFoundError(session_id)
        session.touch()
        return session

    def close(self, session_id: str, profile: Optional[Profile] = None) -> None:
        session = self.get(session_id, profile)
        with self._lock:
            self._sessions.pop(session_id, None)
        session.close()
        logger.info("Session %s closed", session_id)

    def close_all(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()
