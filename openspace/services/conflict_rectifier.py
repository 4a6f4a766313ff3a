"""Detection and best-effort repair of owner double-bookings.

A conflict is one owner holding more than one topic in the same slot. The
first topic of each conflict stays put; every other one is moved to a free
cell in a slot the owner is not using yet, or swapped with the occupant of
such a cell when the swap breaks no capacity limit and double-books nobody.
Conflicts that cannot be repaired are left as they are.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from openspace.domain.models import Cell
from openspace.services.schedule_grid import AssignmentBoard
from openspace.utils.logger import get_logger


logger = get_logger(__name__)

RELOCATED = "relocated"
SWAPPED = "swapped"


@dataclass(frozen=True)
class Conflict:
    owner: str
    slot_id: str
    topic_ids: tuple[str, ...]


@dataclass
class RectifyOutcome:
    relocated: list[str] = field(default_factory=list)
    swapped: list[tuple[str, str]] = field(default_factory=list)
    unresolved: list[Conflict] = field(default_factory=list)


def find_conflicts(board: AssignmentBoard) -> list[Conflict]:
    return [
        Conflict(owner=owner, slot_id=slot_id, topic_ids=tuple(topic_ids))
        for owner, slot_id, topic_ids in board.owner_groups()
        if len(topic_ids) > 1
    ]


def _can_swap(board: AssignmentBoard, topic_id: str, origin: Cell, occupant_id: str, target: Cell) -> bool:
    occupant = board.topic(occupant_id)
    origin_slot_id = board.slot_at(origin).slot_id
    clashing = [
        other_id
        for other_id in board.owner_topics_in_slot(occupant.owner, origin_slot_id)
        if other_id != occupant_id
    ]
    if clashing:
        return False
    return board.fits(topic_id, target) and board.fits(occupant_id, origin)


def _move_out_of_slot(board: AssignmentBoard, topic_id: str) -> Optional[tuple[str, Optional[str]]]:
    origin = board.cell_of(topic_id)
    if origin is None:
        return None
    busy_slots = board.owner_slot_ids(board.topic(topic_id).owner)

    for cell in board.grid.cells(board.rooms_by_capacity):
        if board.slot_at(cell).slot_id in busy_slots:
            continue
        occupant_id = board.grid.occupant_of(cell)
        if occupant_id is None:
            if board.fits(topic_id, cell):
                board.set_assignment(topic_id, cell)
                return RELOCATED, None
            continue
        if _can_swap(board, topic_id, origin, occupant_id, cell) and board.swap_assignments(
            topic_id, occupant_id
        ):
            return SWAPPED, occupant_id
    return None


def rectify_conflicts(board: AssignmentBoard) -> RectifyOutcome:
    """Single sweep over the conflicts present when the pass starts."""
    outcome = RectifyOutcome()
    for conflict in find_conflicts(board):
        for topic_id in conflict.topic_ids[1:]:
            still_clashing = board.owner_topics_in_slot(conflict.owner, conflict.slot_id)
            if len(still_clashing) < 2:
                break
            if topic_id not in still_clashing:
                continue

            moved = _move_out_of_slot(board, topic_id)
            if moved is None:
                logger.debug(
                    "No relocation found | topic_id=%s | owner=%s | slot_id=%s",
                    topic_id,
                    conflict.owner,
                    conflict.slot_id,
                )
                continue
            action, partner_id = moved
            if action == RELOCATED:
                outcome.relocated.append(topic_id)
            else:
                outcome.swapped.append((topic_id, partner_id))
            logger.debug(
                "Conflict repaired | action=%s | topic_id=%s | partner_id=%s | owner=%s",
                action,
                topic_id,
                partner_id,
                conflict.owner,
            )

    outcome.unresolved = find_conflicts(board)
    for conflict in outcome.unresolved:
        logger.warning(
            "Owner remains double-booked | owner=%s | slot_id=%s | topic_ids=%s",
            conflict.owner,
            conflict.slot_id,
            list(conflict.topic_ids),
        )
    return outcome
