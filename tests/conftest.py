import asyncio
import json

import numpy as np
import pytest
import pytest_asyncio
import websockets
from websockets.exceptions import ConnectionClosed

from voice_dictation.domain.errors import CompletionError, DeviceError
from voice_dictation.domain.messages import Session, StatusMessage, TranscriptUpdate
from voice_dictation.domain.silence_monitor import SilenceMonitor
from voice_dictation.domain.state import SessionStatus


SAMPLE_RATE = 16000


def generate_silence(duration_ms: int = 32, sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    num_samples = int(sample_rate * duration_ms / 1000)
    return np.zeros(num_samples, dtype=np.int16)


def generate_white_noise(
    duration_ms: int = 32,
    amplitude: float = 0.5,
    sample_rate: int = SAMPLE_RATE,
) -> np.ndarray:
    num_samples = int(sample_rate * duration_ms / 1000)
    noise = np.random.uniform(-1, 1, num_samples) * amplitude
    return (noise * 32767).astype(np.int16)


def generate_speech_like_signal(
    duration_ms: int = 100,
    sample_rate: int = SAMPLE_RATE,
) -> np.ndarray:
    num_samples = int(sample_rate * duration_ms / 1000)
    t = np.arange(num_samples) / sample_rate
    fundamental = np.sin(2 * np.pi * 150 * t) * 0.4
    harmonic2 = np.sin(2 * np.pi * 300 * t) * 0.2
    harmonic3 = np.sin(2 * np.pi * 450 * t) * 0.1
    noise = np.random.uniform(-1, 1, num_samples) * 0.05
    signal = fundamental + harmonic2 + harmonic3 + noise
    return (signal * 32767).astype(np.int16)


async def wait_until(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


class FakeLevelMeter:
    def __init__(self, levels: list[float] | None = None, default: float = 0.0) -> None:
        self._levels = list(levels or [])
        self._default = default
        self.reads = 0
        self.closed = False

    def read_level(self) -> float:
        self.reads += 1
        if self.closed:
            return 0.0
        if self._levels:
            return self._levels.pop(0)
        return self._default

    def close(self) -> None:
        self.closed = True


class FakeAudioCapture:
    def __init__(
        self,
        audio: bytes = b"RIFF-fake-wav",
        fail_start: bool = False,
        level: float = 50.0,
    ) -> None:
        self._audio = audio
        self._fail_start = fail_start
        self._level = level
        self.started = False
        self.start_calls = 0
        self.finalize_calls = 0
        self.release_calls = 0
        self.meters: list[FakeLevelMeter] = []

    async def start(self) -> None:
        self.start_calls += 1
        if self._fail_start:
            raise DeviceError("Failed to access microphone. Please check permissions.")
        self.started = True

    async def finalize(self) -> bytes:
        self.finalize_calls += 1
        if not self.started:
            return b""
        self.started = False
        return self._audio

    async def release(self) -> None:
        self.release_calls += 1
        self.started = False

    def open_level_meter(self) -> FakeLevelMeter:
        meter = FakeLevelMeter(default=self._level)
        self.meters.append(meter)
        return meter


class FakeEditor:
    def __init__(self, active: bool = True) -> None:
        self.active = active
        self.inserted: list[str] = []
        self.selection = ""

    def insert_at_cursor(self, text: str) -> bool:
        if not self.active:
            return False
        self.inserted.append(text)
        return True

    def get_selection(self) -> str:
        return self.selection


class FakeCompletion:
    def __init__(self, response: str = "Corrected text.", error: str | None = None) -> None:
        self._response = response
        self._error = error
        self.prompts: list[str] = []

    async def complete(self, prompt: str, system_prompt: str | None = None) -> str:
        self.prompts.append(prompt)
        if self._error:
            raise CompletionError(self._error)
        return self._response


class GatedCompletion(FakeCompletion):
    """Completion that blocks until ``gate`` is set; ``waiting`` marks the call."""

    def __init__(self, response: str = "Fixed.") -> None:
        super().__init__(response=response)
        self.waiting = asyncio.Event()
        self.gate = asyncio.Event()

    async def complete(self, prompt: str, system_prompt: str | None = None) -> str:
        self.waiting.set()
        await self.gate.wait()
        return await super().complete(prompt, system_prompt)


class FakeTranscriptionClient:
    """In-memory session client. Tests drive server events through ``emit_*``."""

    def __init__(self, connect_error: Exception | None = None) -> None:
        self.connect_error = connect_error
        self.listener = None
        self.url = ""
        self.status = SessionStatus.DISCONNECTED
        self.session = Session()
        self.sent: list[tuple[str, object]] = []
        self.connect_calls = 0
        self.disconnect_calls = 0

    def set_listener(self, listener) -> None:
        self.listener = listener

    def set_url(self, url: str) -> None:
        self.url = url

    async def connect(self) -> None:
        self.connect_calls += 1
        self.session = self.session.next()
        if self.connect_error:
            await self.emit_status(SessionStatus.ERROR, "Connection error")
            raise self.connect_error
        self.status = SessionStatus.READY

    async def start_recording(self, language: str | None = None) -> None:
        self.sent.append(("start", language))

    async def send_audio_chunk(self, data: bytes) -> None:
        if self.status is SessionStatus.RECORDING:
            self.sent.append(("audio", data))

    async def stop_recording(self) -> None:
        self.sent.append(("stop", None))

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self.session = self.session.next()
        self.status = SessionStatus.DISCONNECTED

    async def emit_status(self, status: SessionStatus, error: str | None = None) -> None:
        self.status = status
        if self.listener:
            await self.listener.on_status(StatusMessage(status=status, error=error))

    async def emit_transcript(self, text: str, is_final: bool = True) -> None:
        if self.listener:
            await self.listener.on_transcript(TranscriptUpdate(text=text, is_final=is_final))

    async def emit_disconnected(self) -> None:
        self.status = SessionStatus.DISCONNECTED
        if self.listener:
            await self.listener.on_disconnected()


class RecordingListener:
    def __init__(self) -> None:
        self.events: list[tuple] = []

    async def on_status(self, message: StatusMessage) -> None:
        self.events.append(("status", message.status, message.error))

    async def on_transcript(self, update: TranscriptUpdate) -> None:
        self.events.append(("transcript", update.text, update.is_final))

    async def on_connected(self) -> None:
        self.events.append(("connected",))

    async def on_disconnected(self) -> None:
        self.events.append(("disconnected",))

    def statuses(self) -> list[SessionStatus]:
        return [event[1] for event in self.events if event[0] == "status"]

    def transcripts(self) -> list[tuple[str, bool]]:
        return [(event[1], event[2]) for event in self.events if event[0] == "transcript"]


class ScriptedSttServer:
    """STT server double: acknowledges start, answers stop with a final transcript."""

    def __init__(self, transcript: str = "hello world") -> None:
        self.transcript = transcript
        self.greeting: list[str] = []
        self.close_after_start = False
        self.after_recording: list[str] = []
        self.received: list[dict] = []
        self.connections = []
        self.url = ""

    async def handler(self, websocket) -> None:
        self.connections.append(websocket)
        try:
            for frame in self.greeting:
                await websocket.send(frame)
            async for raw in websocket:
                message = json.loads(raw)
                self.received.append(message)
                if message["type"] == "start":
                    if self.close_after_start:
                        await websocket.close()
                        return
                    await websocket.send(json.dumps({"type": "status", "status": "recording"}))
                    for frame in self.after_recording:
                        await websocket.send(frame)
                elif message["type"] == "stop":
                    await websocket.send(json.dumps({"type": "status", "status": "processing"}))
                    await websocket.send(
                        json.dumps({"type": "transcript", "text": self.transcript, "isFinal": True})
                    )
                    await websocket.send(json.dumps({"type": "status", "status": "ready"}))
        except ConnectionClosed:
            pass

    def received_types(self) -> list[str]:
        return [message["type"] for message in self.received]


@pytest_asyncio.fixture
async def stt_server():
    server = ScriptedSttServer()
    async with websockets.serve(server.handler, "127.0.0.1", 0) as ws_server:
        port = ws_server.sockets[0].getsockname()[1]
        server.url = f"ws://127.0.0.1:{port}"
        yield server


@pytest.fixture
def fast_monitor():
    return SilenceMonitor(threshold=15.0, silence_duration_s=0.05, sample_interval_ms=5)
