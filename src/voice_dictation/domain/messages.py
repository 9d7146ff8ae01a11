"""Wire protocol spoken with the STT service.

Every frame is a JSON object tagged by ``type``. Inbound frames decode into a
closed set of message classes; anything the client does not understand
becomes an ``UnknownMessage`` instead of an error.
"""

import base64
import json
from dataclasses import dataclass

from voice_dictation.domain.state import SessionStatus


@dataclass(frozen=True)
class Session:
    generation: int = 0

    def next(self) -> "Session":
        return Session(generation=self.generation + 1)


@dataclass(frozen=True)
class TranscriptUpdate:
    text: str
    is_final: bool


@dataclass(frozen=True)
class StatusMessage:
    status: SessionStatus
    error: str | None = None


@dataclass(frozen=True)
class TranscriptMessage:
    update: TranscriptUpdate


@dataclass(frozen=True)
class UnknownMessage:
    type: str
    payload: dict


ServerMessage = StatusMessage | TranscriptMessage | UnknownMessage


class MessageDecodeError(ValueError):
    pass


def encode_start(language: str | None = None) -> str:
    message: dict[str, str] = {"type": "start"}
    if language:
        message["language"] = language
    return json.dumps(message)


def encode_audio(data: bytes) -> str:
    return json.dumps({"type": "audio", "data": base64.b64encode(data).decode("ascii")})


def encode_stop() -> str:
    return json.dumps({"type": "stop"})


def decode_server_message(raw: str | bytes) -> ServerMessage:
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MessageDecodeError(f"Invalid JSON frame: {exc}") from exc
    if not isinstance(payload, dict):
        raise MessageDecodeError("Frame is not a JSON object")

    message_type = payload.get("type")

    if message_type == "status":
        try:
            status = SessionStatus(payload.get("status"))
        except ValueError as exc:
            raise MessageDecodeError(f"Unknown status: {payload.get('status')!r}") from exc
        return StatusMessage(status=status, error=payload.get("error"))

    if message_type == "transcript":
        update = TranscriptUpdate(
            text=str(payload.get("text") or ""),
            is_final=bool(payload.get("isFinal", False)),
        )
        return TranscriptMessage(update=update)

    return UnknownMessage(type=str(message_type), payload=payload)
