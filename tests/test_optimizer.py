from __future__ import annotations

import random

import pytest

from openspace.domain.constraints import OptimiseTopicsConfig
from openspace.domain.models import Attendance, Room, Session, Slot, Topic
from openspace.services.optimizer import optimise_session
from openspace.services.topic_partitioner import EntityNotFoundError


ALL_ON = OptimiseTopicsConfig(optimise_unassigned_topics=True, rectify_conflicts=True)


def _people(prefix: str, count: int) -> tuple[Attendance, ...]:
    return tuple(Attendance(name=f"{prefix}-{index}") for index in range(count))


def _topic(topic_id: str, demand: int, owner=None, room_id=None, slot_id=None) -> Topic:
    return Topic(
        topic_id=topic_id,
        name=topic_id,
        owner=owner,
        room_id=room_id,
        slot_id=slot_id,
        attendees=_people(topic_id, demand),
    )


def _by_id(session: Session) -> dict[str, Topic]:
    return {topic.topic_id: topic for topic in session.topics}


def _random_session(seed: int) -> Session:
    rng = random.Random(seed)
    rooms = tuple(
        Room(room_id=f"r{index}", capacity=rng.choice([None, 0, 2, 4, 6, 10]))
        for index in range(rng.randint(1, 4))
    )
    slots = tuple(Slot(slot_id=f"s{index}") for index in range(rng.randint(1, 4)))
    topics = []
    for index in range(rng.randint(0, 14)):
        placed = rng.random() < 0.5
        topics.append(
            _topic(
                f"t{index}",
                rng.randint(0, 8),
                owner=rng.choice([None, "", "ann", "bob", "cy"]),
                room_id=rng.choice(rooms).room_id if placed else None,
                slot_id=rng.choice(slots).slot_id if placed else None,
            )
        )
    return Session(session_id=seed, rooms=rooms, slots=slots, topics=tuple(topics))


def test_three_topics_fill_two_rooms_over_two_slots() -> None:
    session = Session(
        session_id=1,
        rooms=(Room(room_id="big", capacity=10), Room(room_id="small", capacity=5)),
        slots=(Slot(slot_id="slot1"), Slot(slot_id="slot2")),
        topics=(_topic("d8", 8), _topic("d4", 4), _topic("d3", 3)),
    )

    result = optimise_session(session, ALL_ON)

    topics = _by_id(result.session)
    assert (topics["d8"].slot_id, topics["d8"].room_id) == ("slot1", "big")
    assert (topics["d4"].slot_id, topics["d4"].room_id) == ("slot1", "small")
    assert (topics["d3"].slot_id, topics["d3"].room_id) == ("slot2", "big")
    assert result.unassigned_topic_ids == []
    assert [event.topic.topic_id for event in result.events] == ["d8", "d4", "d3"]
    assert all(event.session_id == 1 for event in result.events)


def test_double_booked_owner_is_moved_to_free_cell_in_next_slot() -> None:
    session = Session(
        session_id=2,
        rooms=(Room(room_id="big", capacity=10), Room(room_id="small", capacity=5)),
        slots=(Slot(slot_id="slot1"), Slot(slot_id="slot2")),
        topics=(
            _topic("keynote", 3, owner="ann", room_id="big", slot_id="slot1"),
            _topic("workshop", 2, owner="ann", room_id="small", slot_id="slot1"),
            _topic("panel", 6, owner="bob", room_id="big", slot_id="slot2"),
        ),
    )

    result = optimise_session(session, OptimiseTopicsConfig())

    topics = _by_id(result.session)
    assert (topics["keynote"].slot_id, topics["keynote"].room_id) == ("slot1", "big")
    assert (topics["workshop"].slot_id, topics["workshop"].room_id) == ("slot2", "small")
    assert (topics["panel"].slot_id, topics["panel"].room_id) == ("slot2", "big")
    assert result.unresolved_conflicts == []
    assert [event.topic.topic_id for event in result.events] == ["workshop"]


def test_unknown_slot_reference_fails_and_leaves_session_untouched() -> None:
    session = Session(
        session_id=3,
        rooms=(Room(room_id="big", capacity=10),),
        slots=(Slot(slot_id="slot1"),),
        topics=(
            _topic("fine", 1),
            _topic("orphan", 1, room_id="big", slot_id="slot-removed"),
        ),
    )
    snapshot = Session(
        session_id=session.session_id,
        rooms=session.rooms,
        slots=session.slots,
        topics=tuple(session.topics),
    )

    with pytest.raises(EntityNotFoundError):
        optimise_session(session, ALL_ON)

    assert session == snapshot


@pytest.mark.parametrize(
    ("rooms", "slots", "topics", "message"),
    [
        (
            (Room(room_id="r", capacity=5),),
            (Slot(slot_id="s"),),
            (Topic(topic_id="t", name="a"), Topic(topic_id="t", name="b")),
            "duplicate topic ids",
        ),
        (
            (Room(room_id="r", capacity=5), Room(room_id="r", capacity=2)),
            (Slot(slot_id="s"),),
            (Topic(topic_id="t", name="a"),),
            "duplicate room ids",
        ),
        (
            (Room(room_id="r", capacity=5),),
            (Slot(slot_id="s"), Slot(slot_id="s")),
            (Topic(topic_id="t", name="a"),),
            "duplicate slot ids",
        ),
    ],
)
def test_duplicate_ids_are_rejected_before_any_topic_is_dropped(rooms, slots, topics, message) -> None:
    session = Session(session_id=1, rooms=rooms, slots=slots, topics=topics)

    with pytest.raises(ValueError, match=message):
        optimise_session(session, ALL_ON)


def test_conflicts_survive_when_rectification_is_disabled() -> None:
    session = Session(
        session_id=4,
        rooms=(Room(room_id="a", capacity=5), Room(room_id="b", capacity=5)),
        slots=(Slot(slot_id="s1"), Slot(slot_id="s2")),
        topics=(
            _topic("t1", 1, owner="ann", room_id="a", slot_id="s1"),
            _topic("t2", 1, owner="ann", room_id="b", slot_id="s1"),
        ),
    )

    result = optimise_session(
        session,
        OptimiseTopicsConfig(optimise_unassigned_topics=True, rectify_conflicts=False),
    )

    topics = _by_id(result.session)
    assert topics["t1"].slot_id == topics["t2"].slot_id == "s1"
    assert result.events == []
    assert result.unresolved_conflicts == []


def test_unassigned_topics_stay_unassigned_by_default() -> None:
    session = Session(
        session_id=5,
        rooms=(Room(room_id="a", capacity=5),),
        slots=(Slot(slot_id="s1"), Slot(slot_id="s2")),
        topics=(
            _topic("placed", 2, room_id="a", slot_id="s2"),
            _topic("waiting", 3),
        ),
    )

    result = optimise_session(session)

    topics = _by_id(result.session)
    assert topics["waiting"].room_id is None
    assert topics["waiting"].slot_id is None
    assert (topics["placed"].slot_id, topics["placed"].room_id) == ("s2", "a")
    assert result.unassigned_topic_ids == ["waiting"]
    assert result.events == []


def test_second_run_on_settled_session_emits_nothing() -> None:
    session = Session(
        session_id=6,
        rooms=(Room(room_id="big", capacity=10), Room(room_id="small", capacity=5)),
        slots=(Slot(slot_id="slot1"), Slot(slot_id="slot2")),
        topics=(
            _topic("d8", 8, owner="ann"),
            _topic("d4", 4, owner="ann"),
            _topic("d3", 3, owner="bob"),
        ),
    )

    first = optimise_session(session, ALL_ON)
    assert first.events
    assert first.unassigned_topic_ids == []
    assert first.unresolved_conflicts == []

    second = optimise_session(first.session, ALL_ON)

    assert second.events == []
    assert second.session == first.session


def test_higher_demand_wins_scarce_rooms() -> None:
    session = Session(
        session_id=7,
        rooms=(Room(room_id="only", capacity=6),),
        slots=(Slot(slot_id="s1"),),
        topics=(_topic("small", 2), _topic("large", 5), _topic("medium", 4)),
    )

    result = optimise_session(session, ALL_ON)

    topics = _by_id(result.session)
    assert topics["large"].room_id == "only"
    assert set(result.unassigned_topic_ids) == {"small", "medium"}


@pytest.mark.parametrize("seed", range(25))
def test_capacity_and_single_occupancy_hold_for_random_sessions(seed: int) -> None:
    session = _random_session(seed)
    seats = {room.room_id: room.seats for room in session.rooms}

    result = optimise_session(session, ALL_ON)

    cells = set()
    for topic in result.session.topics:
        if not topic.has_assignment:
            continue
        assert topic.attendee_count <= seats[topic.room_id]
        cell = (topic.slot_id, topic.room_id)
        assert cell not in cells
        cells.add(cell)
    assert [topic.topic_id for topic in result.session.topics] == [
        topic.topic_id for topic in session.topics
    ]


@pytest.mark.parametrize("seed", range(25))
def test_lower_demand_never_takes_a_room_a_higher_demand_topic_fits(seed: int) -> None:
    base = _random_session(seed)
    session = Session(
        session_id=base.session_id,
        rooms=base.rooms,
        slots=base.slots,
        topics=tuple(_topic(topic.topic_id, topic.attendee_count) for topic in base.topics),
    )
    seats = {room.room_id: room.seats for room in session.rooms}

    result = optimise_session(
        session,
        OptimiseTopicsConfig(optimise_unassigned_topics=True, rectify_conflicts=False),
    )

    placed = [topic for topic in result.session.topics if topic.has_assignment]
    waiting = [topic for topic in result.session.topics if not topic.has_assignment]
    for loser in waiting:
        for winner in placed:
            if winner.attendee_count < loser.attendee_count:
                assert seats[winner.room_id] < loser.attendee_count


@pytest.mark.parametrize("seed", range(25))
def test_each_event_matches_a_changed_topic(seed: int) -> None:
    session = _random_session(seed)

    result = optimise_session(session, ALL_ON)

    before = _by_id(session)
    after = _by_id(result.session)
    changed = {
        topic_id
        for topic_id, topic in after.items()
        if (topic.room_id, topic.slot_id) != (before[topic_id].room_id, before[topic_id].slot_id)
    }
    assert changed <= {event.topic.topic_id for event in result.events}
    if result.events:
        last_seen = {event.topic.topic_id: event.topic for event in result.events}
        for topic_id, topic in last_seen.items():
            assert topic == after[topic_id]
