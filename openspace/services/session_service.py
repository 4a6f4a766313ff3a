"""Session-level orchestration: persistence, optimisation and event fan-out."""

from __future__ import annotations

from dataclasses import replace
from typing import Optional

from openspace.domain.constraints import OptimiseTopicsConfig, validate_optimise_config
from openspace.domain.models import OptimizationResult, Session, SessionUpdated, TopicUpdated
from openspace.repository.session_repository import SessionNotFoundError, SessionRepository
from openspace.services.event_service import TopicEventBroadcaster
from openspace.services.optimizer import optimise_session
from openspace.utils.config import Settings, get_settings
from openspace.utils.logger import get_logger


logger = get_logger(__name__)


class SessionValidationError(Exception):
    """Raised when a session payload or optimise request is invalid."""


class SessionSchedulingService:
    """Runs session mutations under the repository's exclusive update and publishes events."""

    def __init__(
        self,
        repository: Optional[SessionRepository] = None,
        broadcaster: Optional[TopicEventBroadcaster] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or SessionRepository(self._settings)
        self._broadcaster = broadcaster or TopicEventBroadcaster(self._settings)

    @property
    def broadcaster(self) -> TopicEventBroadcaster:
        return self._broadcaster

    def create_session(self, session: Session) -> Session:
        try:
            return self._repository.create_session(session)
        except ValueError as exc:
            raise SessionValidationError(str(exc)) from exc

    def get_session(self, session_id: int) -> Session:
        session = self._repository.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def list_recent_sessions(self) -> list[Session]:
        return self._repository.list_sessions(limit=self._settings.recent_sessions_limit)

    def list_sessions(self) -> list[Session]:
        return self._repository.list_sessions()

    def delete_session(self, session_id: int) -> None:
        if not self._repository.delete_session(session_id):
            raise SessionNotFoundError(session_id)
        self._broadcaster.close(session_id)

    def update_session(self, session_id: int, session: Session) -> Session:
        """Replace a stored session wholesale and tell its subscribers."""

        def mutate(current: Session) -> tuple[Session, Session]:
            updated = replace(session, session_id=current.session_id)
            return updated, updated

        try:
            updated = self._repository.update(session_id, mutate)
        except ValueError as exc:
            raise SessionValidationError(str(exc)) from exc
        self._broadcaster.notify(session_id, SessionUpdated(session_id=session_id, session=updated))
        logger.info(
            "Session replaced | session_id=%s | rooms=%s | slots=%s | topics=%s",
            session_id,
            len(updated.rooms),
            len(updated.slots),
            len(updated.topics),
        )
        return updated

    def optimise_topics(
        self,
        session_id: int,
        *,
        optimise_unassigned_topics: Optional[bool] = None,
        rectify_conflicts: Optional[bool] = None,
    ) -> OptimizationResult:
        """Optimise one stored session; nothing is persisted if the optimiser raises."""
        config = OptimiseTopicsConfig(
            optimise_unassigned_topics=(
                optimise_unassigned_topics
                if optimise_unassigned_topics is not None
                else self._settings.optimise_unassigned_topics
            ),
            rectify_conflicts=(
                rectify_conflicts
                if rectify_conflicts is not None
                else self._settings.rectify_conflicts
            ),
        )
        try:
            validate_optimise_config(config)
        except ValueError as exc:
            raise SessionValidationError(str(exc)) from exc

        def mutate(session: Session) -> tuple[Session, OptimizationResult]:
            result = optimise_session(session, config)
            return result.session, result

        try:
            result = self._repository.update(session_id, mutate)
        except ValueError as exc:
            raise SessionValidationError(str(exc)) from exc
        self._broadcaster.publish(session_id, result.events)
        return result

    def reset_attendances(self, session_id: int) -> list[TopicUpdated]:
        return self._reset_topics(session_id, "attendees")

    def reset_ratings(self, session_id: int) -> list[TopicUpdated]:
        return self._reset_topics(session_id, "ratings")

    def _reset_topics(self, session_id: int, collection: str) -> list[TopicUpdated]:
        def mutate(session: Session) -> tuple[Session, list[TopicUpdated]]:
            topics = tuple(replace(topic, **{collection: ()}) for topic in session.topics)
            events = [TopicUpdated(session_id=session_id, topic=topic) for topic in topics]
            return replace(session, topics=topics), events

        events = self._repository.update(session_id, mutate)
        self._broadcaster.publish(session_id, events)
        logger.info(
            "Topic records reset | session_id=%s | collection=%s | topics=%s",
            session_id,
            collection,
            len(events),
        )
        return events
