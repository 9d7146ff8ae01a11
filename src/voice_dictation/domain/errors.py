class DictationError(Exception):
    pass


class SttConnectionError(DictationError):
    """The STT socket handshake failed, timed out or was superseded."""


class ProtocolError(DictationError):
    """A session operation was requested in a state that does not allow it."""


class DeviceError(DictationError):
    """The microphone could not be opened or finalized."""


class CompletionError(DictationError):
    pass
