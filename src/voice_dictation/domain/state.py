from enum import Enum


class SessionStatus(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    RECORDING = "recording"
    PROCESSING = "processing"
    ERROR = "error"


class RecordingState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    RECORDING = "recording"
    PROCESSING = "processing"
    ERROR = "error"


VALID_TRANSITIONS: dict[RecordingState, set[RecordingState]] = {
    RecordingState.IDLE: {RecordingState.CONNECTING},
    RecordingState.CONNECTING: {RecordingState.RECORDING, RecordingState.IDLE, RecordingState.ERROR},
    RecordingState.RECORDING: {RecordingState.PROCESSING, RecordingState.IDLE, RecordingState.ERROR},
    RecordingState.PROCESSING: {RecordingState.IDLE, RecordingState.ERROR},
    RecordingState.ERROR: {RecordingState.IDLE},
}


class InvalidTransitionError(Exception):
    pass


def validate_transition(current: RecordingState, target: RecordingState) -> None:
    if target not in VALID_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(f"Cannot transition from {current.name} to {target.name}")
