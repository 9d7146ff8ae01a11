from typing import Protocol


class LevelMeterPort(Protocol):
    def read_level(self) -> float: ...
    def close(self) -> None: ...


class AudioCapturePort(Protocol):
    async def start(self) -> None: ...
    async def finalize(self) -> bytes: ...
    async def release(self) -> None: ...
    def open_level_meter(self) -> LevelMeterPort: ...
