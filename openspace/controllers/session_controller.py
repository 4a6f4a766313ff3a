"""HTTP controller layer for sessions and topic scheduling."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from openspace.controllers.dependencies import get_session_service, require_admin
from openspace.domain.models import (
    Attendance,
    Feedback,
    Rating,
    Room,
    Session,
    Slot,
    Topic,
    TopicUpdated,
)
from openspace.repository.session_repository import SessionNotFoundError
from openspace.services.session_service import SessionSchedulingService, SessionValidationError
from openspace.services.topic_partitioner import EntityNotFoundError
from openspace.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


class RoomPayload(BaseModel):
    room_id: str = Field(min_length=1)
    name: str = ""
    capacity: Optional[int] = Field(default=None, ge=0)


class SlotPayload(BaseModel):
    slot_id: str = Field(min_length=1)
    name: str = ""


class AttendancePayload(BaseModel):
    name: str = Field(min_length=1)


class FeedbackPayload(BaseModel):
    name: str = Field(min_length=1)
    comment: str = ""


class RatingPayload(BaseModel):
    name: str = Field(min_length=1)
    value: int


class TopicPayload(BaseModel):
    """Input DTO validated before entering service layer."""

    topic_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: Optional[str] = None
    owner: Optional[str] = None
    room_id: Optional[str] = None
    slot_id: Optional[str] = None
    attendees: list[AttendancePayload] = Field(default_factory=list)
    demands: list[str] = Field(default_factory=list)
    feedback: list[FeedbackPayload] = Field(default_factory=list)
    ratings: list[RatingPayload] = Field(default_factory=list)
    slots: int = Field(default=1, gt=0)


class SessionCreateRequest(BaseModel):
    name: str = ""
    rooms: list[RoomPayload] = Field(default_factory=list)
    slots: list[SlotPayload] = Field(default_factory=list)
    topics: list[TopicPayload] = Field(default_factory=list)


class TopicResponse(TopicPayload):
    attendee_count: int = Field(ge=0)


class SessionResponse(BaseModel):
    session_id: int
    name: str
    rooms: list[RoomPayload]
    slots: list[SlotPayload]
    topics: list[TopicResponse]


class TopicUpdatedResponse(BaseModel):
    session_id: int
    topic: TopicResponse


class ConflictResponse(BaseModel):
    owner: str
    slot_id: str


class OptimiseRequest(BaseModel):
    optimise_unassigned_topics: Optional[bool] = None
    rectify_conflicts: Optional[bool] = None


class OptimiseResponse(BaseModel):
    session: SessionResponse
    events: list[TopicUpdatedResponse]
    unassigned_topic_ids: list[str]
    unresolved_conflicts: list[ConflictResponse]


def _to_domain(payload: SessionCreateRequest) -> Session:
    return Session(
        session_id=0,
        name=payload.name,
        rooms=tuple(Room(room_id=room.room_id, name=room.name, capacity=room.capacity) for room in payload.rooms),
        slots=tuple(Slot(slot_id=slot.slot_id, name=slot.name) for slot in payload.slots),
        topics=tuple(
            Topic(
                topic_id=topic.topic_id,
                name=topic.name,
                description=topic.description,
                owner=topic.owner,
                room_id=topic.room_id,
                slot_id=topic.slot_id,
                attendees=tuple(Attendance(name=item.name) for item in topic.attendees),
                demands=tuple(topic.demands),
                feedback=tuple(Feedback(name=item.name, comment=item.comment) for item in topic.feedback),
                ratings=tuple(Rating(name=item.name, value=item.value) for item in topic.ratings),
                slots=topic.slots,
            )
            for topic in payload.topics
        ),
    )


def _topic_response(topic: Topic) -> TopicResponse:
    return TopicResponse(
        topic_id=topic.topic_id,
        name=topic.name,
        description=topic.description,
        owner=topic.owner,
        room_id=topic.room_id,
        slot_id=topic.slot_id,
        attendees=[AttendancePayload(name=item.name) for item in topic.attendees],
        demands=list(topic.demands),
        feedback=[FeedbackPayload(name=item.name, comment=item.comment) for item in topic.feedback],
        ratings=[RatingPayload(name=item.name, value=item.value) for item in topic.ratings],
        slots=topic.slots,
        attendee_count=topic.attendee_count,
    )


def _session_response(session: Session) -> SessionResponse:
    return SessionResponse(
        session_id=session.session_id,
        name=session.name,
        rooms=[RoomPayload(room_id=room.room_id, name=room.name, capacity=room.capacity) for room in session.rooms],
        slots=[SlotPayload(slot_id=slot.slot_id, name=slot.name) for slot in session.slots],
        topics=[_topic_response(topic) for topic in session.topics],
    )


def _event_response(event: TopicUpdated) -> TopicUpdatedResponse:
    return TopicUpdatedResponse(session_id=event.session_id, topic=_topic_response(event.topic))


def _not_found(exc: SessionNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.get("", response_model=list[SessionResponse])
async def list_sessions(
    service: SessionSchedulingService = Depends(get_session_service),
) -> list[SessionResponse]:
    return [_session_response(session) for session in service.list_sessions()]


@router.get("/last", response_model=list[SessionResponse])
async def list_last_sessions(
    service: SessionSchedulingService = Depends(get_session_service),
) -> list[SessionResponse]:
    return [_session_response(session) for session in service.list_recent_sessions()]


@router.post(
    "",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_session(
    payload: SessionCreateRequest,
    service: SessionSchedulingService = Depends(get_session_service),
) -> SessionResponse:
    try:
        return _session_response(service.create_session(_to_domain(payload)))
    except SessionValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: int,
    service: SessionSchedulingService = Depends(get_session_service),
) -> SessionResponse:
    try:
        return _session_response(service.get_session(session_id))
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc


@router.put(
    "/{session_id}",
    response_model=SessionResponse,
    dependencies=[Depends(require_admin)],
)
async def update_session(
    session_id: int,
    payload: SessionCreateRequest,
    service: SessionSchedulingService = Depends(get_session_service),
) -> SessionResponse:
    try:
        return _session_response(service.update_session(session_id, _to_domain(payload)))
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc
    except SessionValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.delete(
    "/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
async def delete_session(
    session_id: int,
    service: SessionSchedulingService = Depends(get_session_service),
) -> None:
    try:
        service.delete_session(session_id)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc


@router.post(
    "/{session_id}/optimise",
    response_model=OptimiseResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
async def optimise_topics(
    session_id: int,
    payload: OptimiseRequest,
    service: SessionSchedulingService = Depends(get_session_service),
) -> OptimiseResponse:
    """Re-schedule a session's topics and return every topic change in order."""
    try:
        result = service.optimise_topics(
            session_id,
            optimise_unassigned_topics=payload.optimise_unassigned_topics,
            rectify_conflicts=payload.rectify_conflicts,
        )
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc
    except EntityNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Schedule data is inconsistent: {exc}",
        ) from exc
    except SessionValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected optimisation failure | session_id=%s", session_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to optimise topics",
        ) from exc

    return OptimiseResponse(
        session=_session_response(result.session),
        events=[_event_response(event) for event in result.events],
        unassigned_topic_ids=result.unassigned_topic_ids,
        unresolved_conflicts=[
            ConflictResponse(owner=owner, slot_id=slot_id)
            for owner, slot_id in result.unresolved_conflicts
        ],
    )


@router.delete(
    "/{session_id}/attendances",
    response_model=list[TopicUpdatedResponse],
    dependencies=[Depends(require_admin)],
)
async def reset_attendances(
    session_id: int,
    service: SessionSchedulingService = Depends(get_session_service),
) -> list[TopicUpdatedResponse]:
    try:
        events = service.reset_attendances(session_id)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc
    return [_event_response(event) for event in events]


@router.delete(
    "/{session_id}/ratings",
    response_model=list[TopicUpdatedResponse],
    dependencies=[Depends(require_admin)],
)
async def reset_ratings(
    session_id: int,
    service: SessionSchedulingService = Depends(get_session_service),
) -> list[TopicUpdatedResponse]:
    try:
        events = service.reset_ratings(session_id)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc
    return [_event_response(event) for event in events]


@router.get("/{session_id}/events", response_model=list[TopicUpdatedResponse])
async def recent_events(
    session_id: int,
    service: SessionSchedulingService = Depends(get_session_service),
) -> list[TopicUpdatedResponse]:
    try:
        service.get_session(session_id)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc
    return [_event_response(event) for event in service.broadcaster.recent(session_id)]
