"""First-fit placement of demand-ranked topics into free grid cells."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from openspace.domain.models import Cell, Topic
from openspace.services.schedule_grid import AssignmentBoard
from openspace.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass
class GreedyOutcome:
    placed: list[str] = field(default_factory=list)
    retained: list[str] = field(default_factory=list)
    unassigned: list[str] = field(default_factory=list)


def find_free_cell(board: AssignmentBoard, topic_id: str) -> Optional[Cell]:
    """First free cell that seats the topic, slot-major, largest rooms first."""
    for cell in board.grid.cells(board.rooms_by_capacity):
        if board.grid.is_free(cell) and board.fits(topic_id, cell):
            return cell
    return None


def assign_greedily(board: AssignmentBoard, ranked_topics: list[Topic]) -> GreedyOutcome:
    """Place topics in the given order, sharing the board with earlier passes.

    A topic that already holds a cell with enough seats keeps it. Any other
    topic takes the first fitting free cell, or loses its references when no
    cell in the whole grid seats it.
    """
    outcome = GreedyOutcome()
    for topic in ranked_topics:
        topic_id = topic.topic_id
        current = board.cell_of(topic_id)
        if current is not None and board.fits(topic_id, current):
            outcome.retained.append(topic_id)
            continue

        cell = find_free_cell(board, topic_id)
        if cell is None:
            board.set_assignment(topic_id, None)
            outcome.unassigned.append(topic_id)
            logger.debug(
                "No cell seats topic | topic_id=%s | demand=%s",
                topic_id,
                topic.attendee_count,
            )
            continue

        board.set_assignment(topic_id, cell)
        outcome.placed.append(topic_id)
        logger.debug(
            "Topic placed | topic_id=%s | demand=%s | slot_id=%s | room_id=%s | capacity=%s",
            topic_id,
            topic.attendee_count,
            board.slot_at(cell).slot_id,
            board.room_at(cell).room_id,
            board.room_at(cell).seats,
        )
    return outcome
