import base64
import json

import pytest

from voice_dictation.domain.messages import (
    MessageDecodeError,
    Session,
    StatusMessage,
    TranscriptMessage,
    UnknownMessage,
    decode_server_message,
    encode_audio,
    encode_start,
    encode_stop,
)
from voice_dictation.domain.state import SessionStatus


class TestSession:
    def test_starts_at_zero(self):
        assert Session().generation == 0

    def test_next_increments(self):
        session = Session()
        assert session.next().generation == 1
        assert session.next() == session.next()
        assert session.next() != session


class TestEncode:
    def test_start_with_language(self):
        assert json.loads(encode_start("en")) == {"type": "start", "language": "en"}

    def test_start_without_language(self):
        assert json.loads(encode_start()) == {"type": "start"}
        assert json.loads(encode_start("")) == {"type": "start"}

    def test_audio_is_base64(self):
        message = json.loads(encode_audio(b"\x00\x01RIFF"))
        assert message["type"] == "audio"
        assert base64.b64decode(message["data"]) == b"\x00\x01RIFF"

    def test_stop(self):
        assert json.loads(encode_stop()) == {"type": "stop"}


class TestDecode:
    def test_status(self):
        message = decode_server_message('{"type": "status", "status": "recording"}')
        assert message == StatusMessage(status=SessionStatus.RECORDING)

    def test_status_with_error(self):
        message = decode_server_message('{"type": "status", "status": "error", "error": "model crashed"}')
        assert message.status is SessionStatus.ERROR
        assert message.error == "model crashed"

    def test_final_transcript(self):
        message = decode_server_message('{"type": "transcript", "text": "hello", "isFinal": true}')
        assert isinstance(message, TranscriptMessage)
        assert message.update.text == "hello"
        assert message.update.is_final

    def test_partial_transcript_default(self):
        message = decode_server_message('{"type": "transcript", "text": "hel"}')
        assert not message.update.is_final

    def test_bytes_frame(self):
        message = decode_server_message(b'{"type": "status", "status": "ready"}')
        assert message.status is SessionStatus.READY

    def test_unknown_type(self):
        message = decode_server_message('{"type": "heartbeat", "seq": 4}')
        assert message == UnknownMessage(type="heartbeat", payload={"type": "heartbeat", "seq": 4})

    def test_invalid_json(self):
        with pytest.raises(MessageDecodeError):
            decode_server_message("{not json")

    def test_non_object(self):
        with pytest.raises(MessageDecodeError):
            decode_server_message("[1, 2]")

    def test_unknown_status_value(self):
        with pytest.raises(MessageDecodeError):
            decode_server_message('{"type": "status", "status": "sleeping"}')
