import json

import pytest

from shared import addresses
from shared.frames import FrameError, InboundFrame, ProtocolError, create_request_frame


def test_request_frame_layout_has_no_source():
    frame = create_request_frame("SERV:scene:abc", "scene:Fire", {"x": 1}, correlation_id="c-1")
    data = json.loads(frame.to_json())

    assert data == {
        "type": "scene:Fire",
        "headers": {"destination": "SERV:scene:abc", "correlationId": "c-1", "isRequest": True},
        "payload": {"messageType": "scene:Fire", "attributes": {"x": 1}},
    }
    assert "source" not in data["headers"]


def test_request_frames_get_distinct_correlation_ids():
    ids = {create_request_frame("SERV:sess:", "sess:Ping").correlation_id for _ in range(200)}
    assert len(ids) == 200


def test_inbound_frame_parses_headers_and_payload():
    raw = json.dumps({
        "headers": {"isRequest": False, "correlationId": "c-9", "source": "DRIV:dev:1"},
        "payload": {"messageType": "base:GetAttributesResponse", "attributes": {"a": 2}},
    })
    frame = InboundFrame.from_json(raw.encode())

    assert frame.correlation_id == "c-9"
    assert frame.source == "DRIV:dev:1"
    assert frame.message_type == "base:GetAttributesResponse"
    assert frame.attributes == {"a": 2}
    assert not frame.is_session_announcement()


@pytest.mark.parametrize("raw", [
    "not json",
    "[]",
    json.dumps({"headers": {}}),
    json.dumps({"headers": {}, "payload": {"attributes": {}}}),
    json.dumps({"headers": [], "payload": {"messageType": "x:Y"}}),
    json.dumps({"headers": {}, "payload": {"messageType": "x:Y", "attributes": "nope"}}),
    json.dumps({"headers": {"correlationId": 5}, "payload": {"messageType": "x:Y"}}),
])
def test_malformed_frames_raise_frame_error(raw):
    with pytest.raises(FrameError):
        InboundFrame.from_json(raw)


def test_session_announcement_predicate_is_exact():
    created = InboundFrame.from_dict({"headers": {}, "payload": {"messageType": "SessionCreated", "attributes": {}}})
    namespaced = InboundFrame.from_dict({"headers": {}, "payload": {"messageType": "sess:SessionCreated"}})

    assert created.is_session_announcement()
    assert not namespaced.is_session_announcement()


def test_error_frame_accessors():
    frame = InboundFrame.from_dict({
        "headers": {"correlationId": "c"},
        "payload": {"messageType": "Error", "attributes": {"code": "request.invalid", "message": "bad place"}},
    })

    assert frame.is_error
    assert frame.error_code == "request.invalid"
    assert frame.error_message == "bad place"
    with pytest.raises(ProtocolError) as exc:
        frame.raise_for_error()
    assert exc.value.code == "request.invalid"


def test_address_builders():
    assert addresses.SESSION_DESTINATION == "SERV:sess:"
    assert addresses.place("P1") == "SERV:place:P1"
    assert addresses.person("u1") == "SERV:person:u1"
    assert addresses.device("d1") == "DRIV:dev:d1"
    assert addresses.hub("LWW-1234") == "SERV:LWW-1234:hub"
    assert addresses.scene("abc") == "SERV:scene:abc"
    assert addresses.scene() == "SERV:scene:"
    assert addresses.rule() == "SERV:rule:"
    assert addresses.service("subs") == "SERV:subs:"
    assert addresses.subsystem("subalarm", "P1") == "SERV:subalarm:P1"
