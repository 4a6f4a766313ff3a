"""Per-session fan-out of topic change events to in-process subscribers."""

from __future__ import annotations

from collections import deque
from threading import RLock
from typing import Callable, Optional, Union

from openspace.domain.models import SessionDeleted, SessionUpdated, TopicUpdated
from openspace.utils.config import Settings, get_settings
from openspace.utils.logger import get_logger


logger = get_logger(__name__)

SessionEvent = Union[TopicUpdated, SessionUpdated, SessionDeleted]
Subscriber = Callable[[SessionEvent], None]


class TopicEventBroadcaster:
    """Groups session events by session id.

    Only `TopicUpdated` events are kept in the replayable history; session-level
    notices go to current subscribers only.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._lock = RLock()
        self._history: dict[int, deque[TopicUpdated]] = {}
        self._subscribers: dict[int, list[Subscriber]] = {}

    def subscribe(self, session_id: int, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.setdefault(session_id, []).append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(session_id, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def publish(self, session_id: int, events: list[TopicUpdated]) -> int:
        """Record and deliver events in order; returns the number delivered."""
        if not events:
            return 0
        with self._lock:
            history = self._history.setdefault(
                session_id,
                deque(maxlen=self._settings.event_history_limit),
            )
            history.extend(events)
            callbacks = list(self._subscribers.get(session_id, []))

        for event in events:
            self._deliver(session_id, event, callbacks)
        logger.debug(
            "Events published | session_id=%s | events=%s | subscribers=%s",
            session_id,
            len(events),
            len(callbacks),
        )
        return len(events)

    def notify(self, session_id: int, event: SessionEvent) -> None:
        """Deliver a single notice to current subscribers without recording it."""
        with self._lock:
            callbacks = list(self._subscribers.get(session_id, []))
        self._deliver(session_id, event, callbacks)

    def close(self, session_id: int) -> None:
        """Tell subscribers the session is gone, then drop its history and subscribers."""
        self.notify(session_id, SessionDeleted(session_id=session_id))
        self.forget(session_id)

    def _deliver(self, session_id: int, event: SessionEvent, callbacks: list[Subscriber]) -> None:
        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Subscriber failed | session_id=%s | event=%s",
                    session_id,
                    type(event).__name__,
                )

    def recent(self, session_id: int) -> list[TopicUpdated]:
        with self._lock:
            return list(self._history.get(session_id, ()))

    def forget(self, session_id: int) -> None:
        with self._lock:
            self._history.pop(session_id, None)
            self._subscribers.pop(session_id, None)
