"""Tests for JSON-RPC framing and message classification."""

import pytest
from xapi_websocket.exceptions import InvalidMessageError
from xapi_websocket.protocol import MESSAGES, pack, unpack, build_request


def test_build_request():
    assert build_request(1, "xGet", {"Path": ["Status"]}) == {
        "jsonrpc": "2.0", "id": 1, "method": "xGet", "params": {"Path": ["Status"]}
    }

    assert build_request(2, "xCommand/Audio/Microphones/Mute") == {
        "jsonrpc": "2.0", "id": 2, "method": "xCommand/Audio/Microphones/Mute"
    }


def test_pack_is_compact():
    assert pack({"a": [1, 2]}) == '{"a":[1,2]}'


def test_unpack():
    assert unpack('{"jsonrpc":"2.0","id":1,"result":{}}') == {"jsonrpc": "2.0", "id": 1, "result": {}}
    assert unpack(b'{"a":1}') == {"a": 1}

    with pytest.raises(InvalidMessageError):
        unpack("not json")

    with pytest.raises(InvalidMessageError):
        unpack("[1, 2, 3]")

    with pytest.raises(InvalidMessageError):
        unpack(b'\xff\xfe')


@pytest.mark.parametrize("frame,kind", [
    ({"jsonrpc": "2.0", "id": 1, "method": "xCommand/Dial"}, MESSAGES.REQUEST),
    ({"jsonrpc": "2.0", "id": "abc", "method": "xCommand/Dial", "params": {}}, MESSAGES.REQUEST),
    ({"jsonrpc": "2.0", "id": 1, "result": {"status": "OK"}}, MESSAGES.SUCCESS),
    ({"jsonrpc": "2.0", "id": 1, "result": 50}, MESSAGES.SUCCESS),
    ({"jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": "Method not found"}}, MESSAGES.ERROR),
    ({"jsonrpc": "2.0", "id": None, "error": {"code": -32700, "message": "Parse error", "data": {}}},
     MESSAGES.ERROR),
    ({"jsonrpc": "2.0", "method": "xFeedback/Event", "params": {"Event": {}}}, MESSAGES.NOTIFICATION),
    ({"jsonrpc": "2.0", "method": "xFeedback/Event"}, MESSAGES.NOTIFICATION),
    ({"jsonrpc": "2.0", "result": {}}, MESSAGES.INVALID),
    ({"jsonrpc": "1.0", "id": 1, "result": {}}, MESSAGES.INVALID),
    ({"jsonrpc": "2.0", "id": 1, "result": {}, "extra": True}, MESSAGES.INVALID),
    ({"jsonrpc": "2.0", "id": 1, "error": {"code": "bad", "message": "x"}}, MESSAGES.INVALID),
    ({"jsonrpc": "2.0", "id": True, "result": {}}, MESSAGES.INVALID),
])
def test_classify(frame, kind):
    assert MESSAGES.classify(frame) == kind
