import asyncio
import json
import logging
import os
from pathlib import Path

from voice_dictation.ports.control import ControlCommand, ControlHandler

logger = logging.getLogger(__name__)

DEFAULT_SOCKET_PATH = "/tmp/voice-dictation.sock"
CONTROL_ACTIONS = ("toggle", "start", "stop", "status")
REQUEST_TIMEOUT_SECONDS = 5.0
# Covers a full start: STT handshake (10s) plus microphone open.
RESPONSE_TIMEOUT_SECONDS = 30.0


def _encode_line(message: dict) -> bytes:
    return (json.dumps(message) + "\n").encode()


class UnixSocketControlServer:
    """One JSON request line in, one JSON response line out, per connection."""

    def __init__(self, handler: ControlHandler, socket_path: str = DEFAULT_SOCKET_PATH) -> None:
        self._handler = handler
        self._path = Path(socket_path)
        self._server: asyncio.Server | None = None

    async def start(self) -> None:
        self._path.unlink(missing_ok=True)
        self._server = await asyncio.start_unix_server(self._serve, path=str(self._path))
        os.chmod(self._path, 0o600)
        logger.info("Control socket listening at %s", self._path)

    async def stop(self) -> None:
        server, self._server = self._server, None
        if server:
            server.close()
            await server.wait_closed()
        self._path.unlink(missing_ok=True)

    async def _serve(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            command = await self._read_command(reader)
            if command is None:
                return
            writer.write(_encode_line(await self._dispatch(command)))
            await writer.drain()
        finally:
            writer.close()
            await writer.wait_closed()

    async def _read_command(self, reader: asyncio.StreamReader) -> ControlCommand | None:
        try:
            line = await asyncio.wait_for(reader.readline(), timeout=REQUEST_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.warning("Control client sent nothing within %.0fs", REQUEST_TIMEOUT_SECONDS)
            return None
        if not line.strip():
            return None

        try:
            request = json.loads(line)
        except json.JSONDecodeError:
            logger.warning("Invalid JSON from control client: %r", line[:80])
            return None
        if not isinstance(request, dict):
            logger.warning("Control request is not an object: %r", request)
            return None

        payload = request.get("payload")
        return ControlCommand(
            action=str(request.get("action", "")),
            payload=payload if isinstance(payload, dict) else None,
        )

    async def _dispatch(self, command: ControlCommand) -> dict:
        if command.action not in CONTROL_ACTIONS:
            logger.warning("Unknown control action: %s", command.action)
            return {"status": "error", "action": command.action, "error": "unknown action"}

        logger.debug("Control command: %s", command.action)
        try:
            result = await self._handler(command)
        except Exception as exc:
            logger.exception("Control command %s failed", command.action)
            return {"status": "error", "action": command.action, "error": str(exc)}
        return {"status": "ok", "action": command.action, **result}


class UnixSocketControlClient:
    def __init__(self, socket_path: str = DEFAULT_SOCKET_PATH) -> None:
        self._socket_path = socket_path

    async def send_command(self, action: str, payload: dict | None = None) -> dict:
        reader, writer = await asyncio.open_unix_connection(self._socket_path)
        try:
            request: dict = {"action": action}
            if payload:
                request["payload"] = payload
            writer.write(_encode_line(request))
            await writer.drain()

            line = await asyncio.wait_for(reader.readline(), timeout=RESPONSE_TIMEOUT_SECONDS)
            return json.loads(line)
        finally:
            writer.close()
            await writer.wait_closed()
