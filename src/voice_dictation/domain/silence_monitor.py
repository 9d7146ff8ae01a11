import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from voice_dictation.ports.audio import LevelMeterPort

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_INTERVAL_MS = 100


@dataclass(frozen=True)
class AudioLevelSample:
    level: float
    timestamp_ms: int


@dataclass(frozen=True)
class SilenceReading:
    sample: AudioLevelSample
    countdown_s: float | None
    auto_stop: bool


AutoStopCallback = Callable[[], Awaitable[None]]
LevelCallback = Callable[[SilenceReading], None]


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class SilenceMonitor:
    def __init__(
        self,
        threshold: float,
        silence_duration_s: float,
        sample_interval_ms: int = DEFAULT_SAMPLE_INTERVAL_MS,
        clock_ms: Callable[[], int] = _monotonic_ms,
    ) -> None:
        self._threshold = threshold
        self._silence_duration_ms = int(round(silence_duration_s * 1000))
        self._sample_interval_s = sample_interval_ms / 1000
        self._clock_ms = clock_ms
        self._silence_start: int | None = None
        self._meter: LevelMeterPort | None = None
        self._task: asyncio.Task | None = None
        self._sample_count = 0

    @property
    def armed(self) -> bool:
        return self._meter is not None

    @property
    def silence_start(self) -> int | None:
        return self._silence_start

    def arm(
        self,
        meter: LevelMeterPort,
        on_auto_stop: AutoStopCallback,
        on_level: LevelCallback | None = None,
    ) -> None:
        self.disarm()
        self._meter = meter
        self._silence_start = None
        self._sample_count = 0
        self._task = asyncio.create_task(self._sample_loop(meter, on_auto_stop, on_level))
        logger.debug(
            "Silence monitor armed (threshold=%.1f, duration=%dms)",
            self._threshold, self._silence_duration_ms,
        )

    def disarm(self) -> None:
        task, self._task = self._task, None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self._release_meter()
        self._silence_start = None

    def process_level(self, level: float, timestamp_ms: int) -> SilenceReading:
        sample = AudioLevelSample(level=level, timestamp_ms=timestamp_ms)

        if level >= self._threshold:
            self._silence_start = None
            return SilenceReading(sample=sample, countdown_s=None, auto_stop=False)

        if self._silence_start is None:
            self._silence_start = timestamp_ms
        elapsed = timestamp_ms - self._silence_start
        countdown = max(0, self._silence_duration_ms - elapsed) / 1000
        return SilenceReading(
            sample=sample,
            countdown_s=countdown,
            auto_stop=elapsed > self._silence_duration_ms,
        )

    async def _sample_loop(
        self,
        meter: LevelMeterPort,
        on_auto_stop: AutoStopCallback,
        on_level: LevelCallback | None,
    ) -> None:
        try:
            while True:
                await asyncio.sleep(self._sample_interval_s)
                if self._meter is not meter:
                    return

                reading = self.process_level(meter.read_level(), self._clock_ms())
                self._sample_count += 1
                if self._sample_count % 10 == 0:
                    logger.debug(
                        "Level=%.1f threshold=%.1f countdown=%s",
                        reading.sample.level, self._threshold, reading.countdown_s,
                    )
                if on_level:
                    on_level(reading)

                if reading.auto_stop:
                    logger.info("Auto-stop: silence for %dms", self._silence_duration_ms)
                    self._task = None
                    self._release_meter()
                    await on_auto_stop()
                    return
        except asyncio.CancelledError:
            pass

    def _release_meter(self) -> None:
        meter, self._meter = self._meter, None
        if meter:
            meter.close()
