"""Domain-level validation rules for topic scheduling."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass

from openspace.domain.models import Session


@dataclass(frozen=True)
class OptimiseTopicsConfig:
    optimise_unassigned_topics: bool = False
    rectify_conflicts: bool = True


def validate_optimise_config(config: OptimiseTopicsConfig) -> None:
    if not isinstance(config.optimise_unassigned_topics, bool):
        raise ValueError("optimise_unassigned_topics must be a boolean")
    if not isinstance(config.rectify_conflicts, bool):
        raise ValueError("rectify_conflicts must be a boolean")


def _duplicates(values: list[str]) -> list[str]:
    return sorted(value for value, count in Counter(values).items() if count > 1)


def validate_session_structure(session: Session) -> None:
    """Reject sessions whose rooms, slots or topics cannot be indexed.

    Dangling room/slot references on topics are deliberately not checked here;
    they are reported by the partitioner when an optimisation actually runs.
    """
    duplicate_rooms = _duplicates([room.room_id for room in session.rooms])
    if duplicate_rooms:
        raise ValueError(f"duplicate room ids: {', '.join(duplicate_rooms)}")
    duplicate_slots = _duplicates([slot.slot_id for slot in session.slots])
    if duplicate_slots:
        raise ValueError(f"duplicate slot ids: {', '.join(duplicate_slots)}")
    duplicate_topics = _duplicates([topic.topic_id for topic in session.topics])
    if duplicate_topics:
        raise ValueError(f"duplicate topic ids: {', '.join(duplicate_topics)}")

    for room in session.rooms:
        if room.capacity is not None and room.capacity < 0:
            raise ValueError(f"room {room.room_id} capacity must be >= 0")
    for topic in session.topics:
        if topic.slots <= 0:
            raise ValueError(f"topic {topic.topic_id} duration must be > 0")
