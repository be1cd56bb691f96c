from bridge.events import BufferedEvent, EventBuffer
from shared.frames import InboundFrame


def make_event(i: int) -> BufferedEvent:
    return BufferedEvent(timestamp=i, message_type="base:ValueChange", source="DRIV:dev:d", attributes={"i": i})


def test_capacity_keeps_last_events_in_order():
    buffer = EventBuffer(capacity=100)
    for i in range(150):
        buffer.append(make_event(i))

    snapshot = buffer.peek()
    assert [e.attributes["i"] for e in snapshot] == list(range(50, 150))
    assert buffer.stats()["evicted"] == 50


def test_drain_empties_and_peek_does_not():
    buffer = EventBuffer(capacity=10)
    buffer.append(make_event(1))
    buffer.append(make_event(2))

    assert len(buffer.peek()) == 2
    assert len(buffer.peek()) == 2
    drained = buffer.drain()
    assert [e.attributes["i"] for e in drained] == [1, 2]
    assert buffer.peek() == []


def test_append_between_drains_shows_up_once():
    buffer = EventBuffer(capacity=10)
    buffer.append(make_event(1))
    first = buffer.drain()
    buffer.append(make_event(2))
    second = buffer.drain()

    assert [e.attributes["i"] for e in first] == [1]
    assert [e.attributes["i"] for e in second] == [2]
    assert buffer.drain() == []


def test_peek_returns_a_copy():
    buffer = EventBuffer(capacity=10)
    buffer.append(make_event(1))
    snapshot = buffer.peek()
    snapshot.clear()
    assert len(buffer) == 1


def test_event_from_frame_prefers_source_then_destination():
    with_source = InboundFrame.from_dict({
        "headers": {"source": "DRIV:dev:1", "destination": "SERV:place:P1"},
        "payload": {"messageType": "base:ValueChange", "attributes": {"x": 1}},
    })
    only_destination = InboundFrame.from_dict({
        "headers": {"destination": "SERV:place:P1"},
        "payload": {"messageType": "base:Added"},
    })

    assert BufferedEvent.from_frame(with_source, timestamp=5).source == "DRIV:dev:1"
    assert BufferedEvent.from_frame(only_destination).source == "SERV:place:P1"
    assert BufferedEvent.from_frame(with_source, timestamp=5).to_dict() == {
        "timestamp": 5, "messageType": "base:ValueChange", "source": "DRIV:dev:1", "attributes": {"x": 1},
    }
