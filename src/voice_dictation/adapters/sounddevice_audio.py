import io
import logging
import wave

import janus
import numpy as np
import sounddevice as sd

from voice_dictation.domain.audio_level import SpectrumLevelMeter
from voice_dictation.domain.errors import DeviceError

logger = logging.getLogger(__name__)


def encode_wav(pcm_data: bytes, sample_rate: int) -> bytes:
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm_data)
    return buffer.getvalue()


class SounddeviceCapture:
    """Records 16-bit mono PCM for one dictation and hands it back as a single WAV buffer."""

    def __init__(
        self,
        device: str | int | None = None,
        sample_rate: int = 16000,
        frame_duration_ms: int = 32,
    ) -> None:
        self._device = device
        self._sample_rate = sample_rate
        self._frame_duration_ms = frame_duration_ms
        self._frame_size = int(sample_rate * frame_duration_ms / 1000)
        self._stream: sd.InputStream | None = None
        self._queue: janus.Queue[bytes] | None = None
        self._latest_block = np.zeros(0, dtype=np.int16)

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def capturing(self) -> bool:
        return self._stream is not None

    async def start(self) -> None:
        await self.release()
        try:
            device = self._resolve_device()
        except sd.PortAudioError as exc:
            raise DeviceError(f"Cannot query audio devices: {exc}") from exc
        self._queue = janus.Queue()
        self._latest_block = np.zeros(0, dtype=np.int16)
        queue = self._queue

        def audio_callback(indata: np.ndarray, frames: int, time_info, status) -> None:
            if status:
                logger.warning("Audio capture status: %s", status)
            pcm = (indata[:, 0] * 32767).astype(np.int16)
            self._latest_block = pcm
            try:
                queue.sync_q.put_nowait(pcm.tobytes())
            except janus.SyncQueueShutDown:
                pass

        try:
            self._stream = sd.InputStream(
                device=device,
                samplerate=self._sample_rate,
                channels=1,
                dtype="float32",
                blocksize=self._frame_size,
                callback=audio_callback,
            )
            self._stream.start()
        except (sd.PortAudioError, ValueError) as exc:
            await self.release()
            raise DeviceError("Failed to access microphone. Please check permissions.") from exc

        logger.info(
            "Audio capture started (device=%s, rate=%d, frame=%dms)",
            device, self._sample_rate, self._frame_duration_ms,
        )

    async def finalize(self) -> bytes:
        if not self._stream or not self._queue:
            return b""

        try:
            self._stream.stop()
        except sd.PortAudioError as exc:
            await self.release()
            raise DeviceError(f"Failed to stop audio capture: {exc}") from exc

        pcm = bytearray()
        while not self._queue.async_q.empty():
            pcm.extend(self._queue.async_q.get_nowait())
        await self.release()

        if not pcm:
            return b""
        logger.info("Audio capture finalized (%.1fs)", len(pcm) / 2 / self._sample_rate)
        return encode_wav(bytes(pcm), self._sample_rate)

    async def release(self) -> None:
        stream, self._stream = self._stream, None
        queue, self._queue = self._queue, None
        if stream:
            try:
                stream.stop()
                stream.close()
            except sd.PortAudioError:
                logger.warning("Error closing audio stream", exc_info=True)
        if queue:
            queue.close()
            await queue.wait_closed()
        self._latest_block = np.zeros(0, dtype=np.int16)

    def open_level_meter(self) -> SpectrumLevelMeter:
        return SpectrumLevelMeter(lambda: self._latest_block)

    def _resolve_device(self) -> str | int | None:
        if self._device is None or self._device == "":
            return None
        if isinstance(self._device, int):
            return self._device
        try:
            return int(self._device)
        except ValueError:
            pass
        for i, dev in enumerate(sd.query_devices()):
            if self._device.lower() in dev["name"].lower() and dev["max_input_channels"] > 0:
                logger.info("Resolved device '%s' -> %d (%s)", self._device, i, dev["name"])
                return i
        raise DeviceError(f"No input device matching '{self._device}'")
