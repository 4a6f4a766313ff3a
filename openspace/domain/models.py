"""Domain models for sessions, rooms, slots, topics and optimizer output."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Room:
    room_id: str
    name: str = ""
    capacity: Optional[int] = None

    @property
    def seats(self) -> int:
        """Usable seat count; an unset capacity seats nobody."""
        return self.capacity or 0


@dataclass(frozen=True)
class Slot:
    slot_id: str
    name: str = ""


@dataclass(frozen=True)
class Attendance:
    name: str


@dataclass(frozen=True)
class Feedback:
    name: str
    comment: str


@dataclass(frozen=True)
class Rating:
    name: str
    value: int


@dataclass(frozen=True)
class Topic:
    topic_id: str
    name: str
    description: Optional[str] = None
    owner: Optional[str] = None
    room_id: Optional[str] = None
    slot_id: Optional[str] = None
    attendees: tuple[Attendance, ...] = ()
    demands: tuple[str, ...] = ()
    feedback: tuple[Feedback, ...] = ()
    ratings: tuple[Rating, ...] = ()
    slots: int = 1

    @property
    def attendee_count(self) -> int:
        return len(self.attendees)

    @property
    def has_assignment(self) -> bool:
        return self.room_id is not None and self.slot_id is not None


@dataclass(frozen=True)
class Session:
    session_id: int
    name: str = ""
    rooms: tuple[Room, ...] = ()
    slots: tuple[Slot, ...] = ()
    topics: tuple[Topic, ...] = ()


@dataclass(frozen=True)
class Cell:
    """Grid coordinate: index into the session's slot list and room list."""

    slot_index: int
    room_index: int


@dataclass(frozen=True)
class TopicUpdated:
    session_id: int
    topic: Topic


@dataclass(frozen=True)
class SessionUpdated:
    session_id: int
    session: Session


@dataclass(frozen=True)
class SessionDeleted:
    session_id: int


@dataclass(frozen=True)
class OptimizationResult:
    session: Session
    events: list[TopicUpdated] = field(default_factory=list)
    unassigned_topic_ids: list[str] = field(default_factory=list)
    unresolved_conflicts: list[tuple[str, str]] = field(default_factory=list)
