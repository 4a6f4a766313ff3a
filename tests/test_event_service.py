from __future__ import annotations

from dataclasses import replace

from openspace.domain.models import Session, SessionDeleted, SessionUpdated, Topic, TopicUpdated
from openspace.services.event_service import TopicEventBroadcaster
from openspace.utils.config import get_settings


def _event(session_id: int, topic_id: str) -> TopicUpdated:
    return TopicUpdated(session_id=session_id, topic=Topic(topic_id=topic_id, name=topic_id))


def test_publish_delivers_in_order_to_session_subscribers_only() -> None:
    broadcaster = TopicEventBroadcaster(get_settings())
    received: list[str] = []
    other: list[str] = []
    broadcaster.subscribe(1, lambda event: received.append(event.topic.topic_id))
    broadcaster.subscribe(2, lambda event: other.append(event.topic.topic_id))

    delivered = broadcaster.publish(1, [_event(1, "a"), _event(1, "b")])

    assert delivered == 2
    assert received == ["a", "b"]
    assert other == []
    assert [event.topic.topic_id for event in broadcaster.recent(1)] == ["a", "b"]
    assert broadcaster.recent(2) == []


def test_failing_subscriber_does_not_block_others() -> None:
    broadcaster = TopicEventBroadcaster(get_settings())
    received: list[str] = []

    def explode(event: TopicUpdated) -> None:
        raise RuntimeError("subscriber down")

    broadcaster.subscribe(1, explode)
    broadcaster.subscribe(1, lambda event: received.append(event.topic.topic_id))

    broadcaster.publish(1, [_event(1, "a")])

    assert received == ["a"]


def test_unsubscribe_stops_delivery() -> None:
    broadcaster = TopicEventBroadcaster(get_settings())
    received: list[str] = []
    unsubscribe = broadcaster.subscribe(1, lambda event: received.append(event.topic.topic_id))

    broadcaster.publish(1, [_event(1, "a")])
    unsubscribe()
    broadcaster.publish(1, [_event(1, "b")])

    assert received == ["a"]


def test_history_is_bounded() -> None:
    settings = replace(get_settings(), event_history_limit=3)
    broadcaster = TopicEventBroadcaster(settings)

    broadcaster.publish(1, [_event(1, name) for name in "abcde"])

    assert [event.topic.topic_id for event in broadcaster.recent(1)] == ["c", "d", "e"]


def test_forget_drops_history_and_subscribers() -> None:
    broadcaster = TopicEventBroadcaster(get_settings())
    received: list[str] = []
    broadcaster.subscribe(1, lambda event: received.append(event.topic.topic_id))
    broadcaster.publish(1, [_event(1, "a")])

    broadcaster.forget(1)
    broadcaster.publish(1, [_event(1, "b")])

    assert received == ["a"]
    assert [event.topic.topic_id for event in broadcaster.recent(1)] == ["b"]
    assert broadcaster.publish(1, []) == 0


def test_notify_reaches_subscribers_without_entering_history() -> None:
    broadcaster = TopicEventBroadcaster(get_settings())
    received: list[object] = []
    broadcaster.subscribe(1, received.append)
    notice = SessionUpdated(session_id=1, session=Session(session_id=1, name="renamed"))

    broadcaster.notify(1, notice)

    assert received == [notice]
    assert broadcaster.recent(1) == []


def test_close_announces_deletion_then_forgets_the_session() -> None:
    broadcaster = TopicEventBroadcaster(get_settings())
    received: list[object] = []

    def explode(event: object) -> None:
        raise RuntimeError("subscriber down")

    broadcaster.subscribe(1, explode)
    broadcaster.subscribe(1, received.append)
    broadcaster.publish(1, [_event(1, "a")])

    broadcaster.close(1)
    broadcaster.notify(1, SessionDeleted(session_id=1))

    assert received[0] == _event(1, "a")
    assert received[1:] == [SessionDeleted(session_id=1)]
    assert broadcaster.recent(1) == []
