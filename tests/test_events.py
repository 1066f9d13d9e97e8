"""Tests for the event pub/sub system."""

from doc_truyen.services.events import EventBus, ReaderEvent


def test_event_bus_subscribe_and_emit():
    """Synchronous callback receives events."""
    received = []
    bus = EventBus()
    bus.subscribe(lambda event: received.append(event))
    bus.emit(ReaderEvent(type="test", data={"key": "value"}))
    assert len(received) == 1
    assert received[0].type == "test"
    assert received[0].data["key"] == "value"


def test_event_bus_unsubscribe():
    """Unsubscribed callback no longer receives events."""
    received = []
    bus = EventBus()
    sub_id = bus.subscribe(received.append)
    bus.emit(ReaderEvent(type="first"))
    bus.unsubscribe(sub_id)
    bus.emit(ReaderEvent(type="second"))
    assert [e.type for e in received] == ["first"]


def test_failing_subscriber_does_not_block_others():
    received = []
    bus = EventBus()

    def broken(event: ReaderEvent) -> None:
        raise RuntimeError("subscriber bug")

    bus.subscribe(broken)
    bus.subscribe(received.append)
    bus.emit(ReaderEvent(type="sentence_updated"))
    assert len(received) == 1


def test_reader_event_to_dict():
    """Event serializes to dict for WebSocket JSON transport."""
    event = ReaderEvent(
        type="chapter_progress",
        data={"chapter_index": 2, "kind": "translate", "progress": 0.5},
        file_id="abc123",
    )
    d = event.to_dict()
    assert d["type"] == "chapter_progress"
    assert d["file_id"] == "abc123"
    assert d["data"]["progress"] == 0.5
    assert "timestamp" in d
