"""Occupancy state for one optimisation run.

`ScheduleGrid` answers "is this (slot, room) cell free". `AssignmentBoard`
wraps the grid together with the identifier-indexed topic records and the
owner/slot index, and is the only place a topic's room/slot references are
rewritten, so the three structures never drift apart.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Iterator, Optional

from openspace.domain.models import Cell, Room, Session, Slot, Topic


class CellOccupiedError(Exception):
    """Raised when occupying a cell that already holds a topic."""


class ScheduleGrid:
    """Sparse map from (slot index, room index) to topic id with fixed bounds."""

    def __init__(self, slot_count: int, room_count: int) -> None:
        if slot_count < 0 or room_count < 0:
            raise ValueError("grid dimensions must be >= 0")
        self._slot_count = slot_count
        self._room_count = room_count
        self._occupants: dict[Cell, str] = {}

    @property
    def slot_count(self) -> int:
        return self._slot_count

    @property
    def room_count(self) -> int:
        return self._room_count

    def __len__(self) -> int:
        return len(self._occupants)

    def _check_bounds(self, cell: Cell) -> None:
        if not (
            0 <= cell.slot_index < self._slot_count
            and 0 <= cell.room_index < self._room_count
        ):
            raise IndexError(
                f"cell ({cell.slot_index}, {cell.room_index}) is outside the "
                f"{self._slot_count}x{self._room_count} grid"
            )

    def is_free(self, cell: Cell) -> bool:
        self._check_bounds(cell)
        return cell not in self._occupants

    def occupy(self, cell: Cell, topic_id: str) -> None:
        self._check_bounds(cell)
        occupant = self._occupants.get(cell)
        if occupant is not None:
            raise CellOccupiedError(
                f"cell ({cell.slot_index}, {cell.room_index}) is held by topic {occupant}"
            )
        self._occupants[cell] = topic_id

    def release(self, cell: Cell) -> Optional[str]:
        self._check_bounds(cell)
        return self._occupants.pop(cell, None)

    def occupant_of(self, cell: Cell) -> Optional[str]:
        self._check_bounds(cell)
        return self._occupants.get(cell)

    def cells(self, room_order: Optional[list[int]] = None) -> Iterator[Cell]:
        """Yield every cell slot-major, rooms in `room_order` (default: index order)."""
        rooms = room_order if room_order is not None else list(range(self._room_count))
        for slot_index in range(self._slot_count):
            for room_index in rooms:
                yield Cell(slot_index=slot_index, room_index=room_index)


def _owner_key(topic: Topic) -> Optional[str]:
    if topic.owner is None or not topic.owner.strip():
        return None
    return topic.owner


class AssignmentBoard:
    """Topic store, grid and owner index mutated through one entry point."""

    def __init__(self, session: Session) -> None:
        self._session = session
        self._rooms: list[Room] = list(session.rooms)
        self._slots: list[Slot] = list(session.slots)
        self._room_index = {room.room_id: index for index, room in enumerate(self._rooms)}
        self._slot_index = {slot.slot_id: index for index, slot in enumerate(self._slots)}
        self._rooms_by_capacity = sorted(
            range(len(self._rooms)),
            key=lambda index: -self._rooms[index].seats,
        )
        self.grid = ScheduleGrid(len(self._slots), len(self._rooms))

        self._topics: dict[str, Topic] = {topic.topic_id: topic for topic in session.topics}
        self._positions = {topic_id: position for position, topic_id in enumerate(self._topics)}
        self._cells: dict[str, Cell] = {}
        self._owner_index: dict[str, dict[str, list[str]]] = {}
        self._mutations: list[Topic] = []

    @property
    def session_id(self) -> int:
        return self._session.session_id

    @property
    def rooms(self) -> list[Room]:
        return self._rooms

    @property
    def slots(self) -> list[Slot]:
        return self._slots

    @property
    def rooms_by_capacity(self) -> list[int]:
        """Room indices, largest first; equal capacities keep session order."""
        return self._rooms_by_capacity

    @property
    def mutations(self) -> list[Topic]:
        """Topic snapshots in the order their assignments changed."""
        return list(self._mutations)

    def room_index_of(self, room_id: str) -> Optional[int]:
        return self._room_index.get(room_id)

    def slot_index_of(self, slot_id: str) -> Optional[int]:
        return self._slot_index.get(slot_id)

    def topic(self, topic_id: str) -> Topic:
        return self._topics[topic_id]

    def topics(self) -> list[Topic]:
        return list(self._topics.values())

    def position(self, topic_id: str) -> int:
        return self._positions[topic_id]

    def cell_of(self, topic_id: str) -> Optional[Cell]:
        return self._cells.get(topic_id)

    def room_at(self, cell: Cell) -> Room:
        return self._rooms[cell.room_index]

    def slot_at(self, cell: Cell) -> Slot:
        return self._slots[cell.slot_index]

    def fits(self, topic_id: str, cell: Cell) -> bool:
        return self._topics[topic_id].attendee_count <= self.room_at(cell).seats

    def owner_groups(self) -> list[tuple[str, str, list[str]]]:
        """(owner, slot id, topic ids) for every indexed owner/slot pair."""
        return [
            (owner, slot_id, list(topic_ids))
            for owner, by_slot in self._owner_index.items()
            for slot_id, topic_ids in by_slot.items()
        ]

    def owner_topics_in_slot(self, owner: Optional[str], slot_id: str) -> list[str]:
        if owner is None:
            return []
        return list(self._owner_index.get(owner, {}).get(slot_id, []))

    def owner_slot_ids(self, owner: Optional[str]) -> set[str]:
        if owner is None:
            return set()
        return {slot_id for slot_id, topic_ids in self._owner_index.get(owner, {}).items() if topic_ids}

    def claim_existing(self, topic_id: str, cell: Cell) -> bool:
        """Mark a topic's pre-existing cell as occupied without recording a mutation.

        Returns False when an earlier topic already holds the cell; the topic
        keeps its references and is relocated by the next greedy pass.
        """
        if not self.grid.is_free(cell):
            return False
        self.grid.occupy(cell, topic_id)
        self._cells[topic_id] = cell
        self._index_owner(self._topics[topic_id], cell)
        return True

    def set_assignment(self, topic_id: str, cell: Optional[Cell]) -> bool:
        """Move a topic to `cell`, or clear its assignment when `cell` is None.

        Returns True when the topic record changed.
        """
        topic = self._topics[topic_id]
        current = self._cells.get(topic_id)
        if cell is not None and cell == current:
            return False
        if cell is not None and not self.grid.is_free(cell):
            raise CellOccupiedError(
                f"cannot place topic {topic_id}: cell already held by {self.grid.occupant_of(cell)}"
            )

        if current is not None:
            self._vacate(topic, current)
        if cell is None:
            updated = replace(topic, room_id=None, slot_id=None)
        else:
            self._take(topic, cell)
            updated = replace(
                topic,
                room_id=self.room_at(cell).room_id,
                slot_id=self.slot_at(cell).slot_id,
            )
        return self._record(topic, updated)

    def swap_assignments(self, first_id: str, second_id: str) -> bool:
        """Exchange the cells of two placed topics, or change nothing.

        Both sides are validated before either cell is touched.
        """
        first_cell = self._cells.get(first_id)
        second_cell = self._cells.get(second_id)
        if first_cell is None or second_cell is None or first_id == second_id:
            return False
        if not (self.fits(first_id, second_cell) and self.fits(second_id, first_cell)):
            return False

        first = self._topics[first_id]
        second = self._topics[second_id]
        self._vacate(first, first_cell)
        self._vacate(second, second_cell)
        self._take(first, second_cell)
        self._take(second, first_cell)
        self._record(
            first,
            replace(
                first,
                room_id=self.room_at(second_cell).room_id,
                slot_id=self.slot_at(second_cell).slot_id,
            ),
        )
        self._record(
            second,
            replace(
                second,
                room_id=self.room_at(first_cell).room_id,
                slot_id=self.slot_at(first_cell).slot_id,
            ),
        )
        return True

    def to_session(self) -> Session:
        return replace(self._session, topics=tuple(self._topics.values()))

    def _take(self, topic: Topic, cell: Cell) -> None:
        self.grid.occupy(cell, topic.topic_id)
        self._cells[topic.topic_id] = cell
        self._index_owner(topic, cell)

    def _vacate(self, topic: Topic, cell: Cell) -> None:
        self.grid.release(cell)
        self._cells.pop(topic.topic_id, None)
        self._unindex_owner(topic, cell)

    def _record(self, before: Topic, after: Topic) -> bool:
        if after == before:
            return False
        self._topics[after.topic_id] = after
        self._mutations.append(after)
        return True

    def _index_owner(self, topic: Topic, cell: Cell) -> None:
        owner = _owner_key(topic)
        if owner is None:
            return
        slot_id = self.slot_at(cell).slot_id
        self._owner_index.setdefault(owner, {}).setdefault(slot_id, []).append(topic.topic_id)

    def _unindex_owner(self, topic: Topic, cell: Cell) -> None:
        owner = _owner_key(topic)
        if owner is None:
            return
        slot_id = self.slot_at(cell).slot_id
        by_slot = self._owner_index.get(owner, {})
        topic_ids = by_slot.get(slot_id, [])
        if topic.topic_id in topic_ids:
            topic_ids.remove(topic.topic_id)
        if not topic_ids:
            by_slot.pop(slot_id, None)
