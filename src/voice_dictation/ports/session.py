from typing import Protocol

from voice_dictation.domain.messages import Session, StatusMessage, TranscriptUpdate
from voice_dictation.domain.state import SessionStatus


class SessionListener(Protocol):
    async def on_status(self, message: StatusMessage) -> None: ...
    async def on_transcript(self, update: TranscriptUpdate) -> None: ...
    async def on_connected(self) -> None: ...
    async def on_disconnected(self) -> None: ...


class TranscriptionSessionPort(Protocol):
    @property
    def status(self) -> SessionStatus: ...
    @property
    def session(self) -> Session: ...
    def set_listener(self, listener: SessionListener | None) -> None: ...
    def set_url(self, url: str) -> None: ...
    async def connect(self) -> None: ...
    async def start_recording(self, language: str | None = None) -> None: ...
    async def send_audio_chunk(self, data: bytes) -> None: ...
    async def stop_recording(self) -> None: ...
    async def disconnect(self) -> None: ...
