"""Split a session's topics into placed and unplaced sets and rank them by demand."""

from __future__ import annotations

from dataclasses import dataclass, field

from openspace.domain.models import Cell, Topic
from openspace.services.schedule_grid import AssignmentBoard
from openspace.utils.logger import get_logger


logger = get_logger(__name__)


class EntityNotFoundError(Exception):
    """Raised when a topic references a room or slot missing from its session."""

    def __init__(self, entity: str, entity_id: str, topic_id: str) -> None:
        super().__init__(
            f"{entity} {entity_id!r} referenced by topic {topic_id!r} does not exist in the session"
        )
        self.entity = entity
        self.entity_id = entity_id
        self.topic_id = topic_id


@dataclass
class TopicPartition:
    assigned: list[Topic] = field(default_factory=list)
    unassigned: list[Topic] = field(default_factory=list)
    displaced: list[str] = field(default_factory=list)


def partition_topics(board: AssignmentBoard) -> TopicPartition:
    """Resolve every topic's references and pre-mark occupied cells on the board.

    A topic missing either reference is unassigned. A topic whose room or slot
    id does not resolve aborts the whole run with `EntityNotFoundError`.
    """
    partition = TopicPartition()
    for topic in board.topics():
        if topic.room_id is None or topic.slot_id is None:
            partition.unassigned.append(topic)
            continue

        room_index = board.room_index_of(topic.room_id)
        if room_index is None:
            raise EntityNotFoundError("room", topic.room_id, topic.topic_id)
        slot_index = board.slot_index_of(topic.slot_id)
        if slot_index is None:
            raise EntityNotFoundError("slot", topic.slot_id, topic.topic_id)

        partition.assigned.append(topic)
        if not board.claim_existing(topic.topic_id, Cell(slot_index=slot_index, room_index=room_index)):
            partition.displaced.append(topic.topic_id)
            logger.debug(
                "Topic shares an occupied cell | topic_id=%s | room_id=%s | slot_id=%s",
                topic.topic_id,
                topic.room_id,
                topic.slot_id,
            )

    logger.debug(
        "Topics partitioned | assigned=%s | unassigned=%s | displaced=%s",
        len(partition.assigned),
        len(partition.unassigned),
        len(partition.displaced),
    )
    return partition


def rank_by_demand(topics: list[Topic], board: AssignmentBoard) -> list[Topic]:
    """Order by descending attendee count; ties keep the session's topic order."""
    return sorted(
        topics,
        key=lambda topic: (-topic.attendee_count, board.position(topic.topic_id)),
    )
