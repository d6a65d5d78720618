import json

import pytest

from schemas.frames import encode_frame, parse_frame_message


def test_parses_frame_and_ignores_extra_fields():
    message = parse_frame_message(json.dumps({"frame": "abc", "meta": {"boxes": []}}))
    assert message is not None
    assert message.frame == "abc"


@pytest.mark.parametrize("data", [
    "not json",
    "",
    "[1, 2]",
    '"frame"',
    "{}",
    '{"frame": 5}',
    '{"frame": null}',
    '{"frame": ["a"]}',
    '{"image": "abc"}',
])
def test_malformed_messages_are_discarded(data):
    assert parse_frame_message(data) is None


def test_encode_frame_only_carries_the_frame():
    assert json.loads(encode_frame("xyz")) == {"frame": "xyz"}
