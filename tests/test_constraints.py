"""Tests for optimiser config and session structure validation."""

from __future__ import annotations

import pytest

from openspace.domain.constraints import (
    OptimiseTopicsConfig,
    validate_optimise_config,
    validate_session_structure,
)
from openspace.domain.models import Room, Session, Slot, Topic


def valid_session(**overrides) -> Session:
    """Return a structurally valid session, optionally overriding fields."""
    defaults = {
        "session_id": 1,
        "rooms": (Room(room_id="a", capacity=5), Room(room_id="b")),
        "slots": (Slot(slot_id="s1"), Slot(slot_id="s2")),
        "topics": (Topic(topic_id="t1", name="One"), Topic(topic_id="t2", name="Two")),
    }
    defaults.update(overrides)
    return Session(**defaults)


# --- Optimise config ---

def test_default_config_values() -> None:
    config = OptimiseTopicsConfig()
    assert config.optimise_unassigned_topics is False
    assert config.rectify_conflicts is True
    validate_optimise_config(config)


def test_non_boolean_flags_raise() -> None:
    with pytest.raises(ValueError):
        validate_optimise_config(OptimiseTopicsConfig(optimise_unassigned_topics="yes"))
    with pytest.raises(ValueError):
        validate_optimise_config(OptimiseTopicsConfig(rectify_conflicts=1))


# --- Session structure ---

def test_valid_session_passes() -> None:
    validate_session_structure(valid_session())


def test_dangling_references_are_not_structural_errors() -> None:
    """Unknown room/slot ids are reported when the optimiser runs, not here."""
    validate_session_structure(
        valid_session(topics=(Topic(topic_id="t1", name="One", room_id="x", slot_id="y"),))
    )


def test_duplicate_room_ids_raise() -> None:
    with pytest.raises(ValueError, match="room"):
        validate_session_structure(valid_session(rooms=(Room(room_id="a"), Room(room_id="a"))))


def test_duplicate_slot_ids_raise() -> None:
    with pytest.raises(ValueError, match="slot"):
        validate_session_structure(valid_session(slots=(Slot(slot_id="s1"), Slot(slot_id="s1"))))


def test_duplicate_topic_ids_raise() -> None:
    with pytest.raises(ValueError, match="topic"):
        validate_session_structure(
            valid_session(topics=(Topic(topic_id="t", name="A"), Topic(topic_id="t", name="B")))
        )


def test_negative_capacity_raises() -> None:
    with pytest.raises(ValueError):
        validate_session_structure(valid_session(rooms=(Room(room_id="a", capacity=-1),)))


def test_zero_capacity_passes() -> None:
    validate_session_structure(valid_session(rooms=(Room(room_id="a", capacity=0),)))


def test_non_positive_duration_raises() -> None:
    with pytest.raises(ValueError):
        validate_session_structure(valid_session(topics=(Topic(topic_id="t", name="A", slots=0),)))
