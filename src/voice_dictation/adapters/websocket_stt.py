import asyncio
import logging

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.protocol import State

from voice_dictation.domain.errors import ProtocolError, SttConnectionError
from voice_dictation.domain.messages import (
    MessageDecodeError,
    Session,
    StatusMessage,
    TranscriptMessage,
    decode_server_message,
    encode_audio,
    encode_start,
    encode_stop,
)
from voice_dictation.domain.state import SessionStatus
from voice_dictation.ports.session import SessionListener

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT_SECONDS = 10.0
NORMAL_CLOSURE = 1000


class WebSocketTranscriptionClient:
    """One logical connection to the STT server.

    Every ``connect()`` and ``disconnect()`` moves to a new ``Session``. Work
    started for an older session (reader loop, late handshake, queued frames)
    checks its captured session against the current one and is dropped on
    mismatch.
    """

    def __init__(self, url: str) -> None:
        self._url = url
        self._listener: SessionListener | None = None
        self._socket = None
        self._reader_task: asyncio.Task | None = None
        self._session = Session()
        self._status = SessionStatus.DISCONNECTED

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def session(self) -> Session:
        return self._session

    @property
    def url(self) -> str:
        return self._url

    @property
    def is_connected(self) -> bool:
        return self._socket is not None and self._socket.state is State.OPEN

    @property
    def is_recording(self) -> bool:
        return self._status is SessionStatus.RECORDING

    def set_url(self, url: str) -> None:
        self._url = url

    def set_listener(self, listener: SessionListener | None) -> None:
        self._listener = listener

    async def connect(self) -> None:
        await self._discard_socket()
        self._session = session = self._session.next()
        await self._set_status(SessionStatus.CONNECTING)

        try:
            socket = await asyncio.wait_for(
                websockets.connect(self._url, open_timeout=None),
                timeout=CONNECT_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError as exc:
            await self._fail_connect(session, "Connection timeout")
            raise SttConnectionError("Connection timeout") from exc
        except (OSError, WebSocketException) as exc:
            await self._fail_connect(session, "Connection error")
            raise SttConnectionError(f"WebSocket connection failed: {exc}") from exc

        if session != self._session:
            await socket.close()
            raise SttConnectionError("Connection superseded")

        self._socket = socket
        self._reader_task = asyncio.create_task(self._read_loop(session, socket))
        logger.info("Connected to STT server at %s", self._url)
        await self._set_status(SessionStatus.READY)
        if self._listener:
            await self._listener.on_connected()

    async def disconnect(self) -> None:
        self._session = self._session.next()
        await self._discard_socket()
        await self._set_status(SessionStatus.DISCONNECTED)

    async def start_recording(self, language: str | None = None) -> None:
        if not self.is_connected:
            raise ProtocolError("Not connected to STT server")
        if self._status is not SessionStatus.READY:
            raise ProtocolError(f"Cannot start recording while {self._status.value}")
        try:
            await self._socket.send(encode_start(language))
        except ConnectionClosed as exc:
            raise SttConnectionError("STT socket closed before recording started") from exc

    async def send_audio_chunk(self, data: bytes) -> None:
        if not self.is_connected or self._status is not SessionStatus.RECORDING:
            logger.debug("Dropping %d audio bytes (status=%s)", len(data), self._status.value)
            return
        try:
            await self._socket.send(encode_audio(data))
        except ConnectionClosed:
            logger.warning("STT socket closed while sending audio")

    async def stop_recording(self) -> None:
        if not self.is_connected:
            raise ProtocolError("Not connected to STT server")
        try:
            await self._socket.send(encode_stop())
        except ConnectionClosed:
            logger.warning("STT socket closed while sending stop")

    async def _read_loop(self, session: Session, socket) -> None:
        try:
            async for raw in socket:
                if session != self._session:
                    return
                await self._dispatch(session, raw)
        except ConnectionClosed as exc:
            logger.debug("STT socket closed: %s", exc)

        if session != self._session:
            return
        logger.warning("STT server closed the connection")
        self._socket = None
        self._reader_task = None
        await self._set_status(SessionStatus.DISCONNECTED)
        if self._listener:
            await self._listener.on_disconnected()

    async def _dispatch(self, session: Session, raw: str | bytes) -> None:
        if session != self._session:
            return

        try:
            message = decode_server_message(raw)
        except MessageDecodeError as exc:
            logger.warning("Ignoring STT frame: %s", exc)
            return

        if isinstance(message, StatusMessage):
            if message.error:
                logger.error("STT server error: %s", message.error)
            await self._set_status(message.status, message.error)
        elif isinstance(message, TranscriptMessage):
            if self._listener:
                await self._listener.on_transcript(message.update)
        else:
            logger.warning("Unknown STT message type: %s", message.type)

    async def _set_status(self, status: SessionStatus, error: str | None = None) -> None:
        if status is not self._status:
            logger.debug("STT status: %s -> %s", self._status.value, status.value)
        self._status = status
        if self._listener:
            await self._listener.on_status(StatusMessage(status=status, error=error))

    async def _fail_connect(self, session: Session, error: str) -> None:
        if session != self._session:
            return
        logger.error("STT connection to %s failed: %s", self._url, error)
        await self._set_status(SessionStatus.ERROR, error)

    async def _discard_socket(self) -> None:
        socket, self._socket = self._socket, None
        reader, self._reader_task = self._reader_task, None

        if reader and not reader.done() and reader is not asyncio.current_task():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass

        if socket:
            try:
                await socket.close(code=NORMAL_CLOSURE, reason="Client disconnect")
            except (OSError, WebSocketException):
                logger.debug("Error closing STT socket", exc_info=True)
