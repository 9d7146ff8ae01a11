import logging
from collections.abc import Callable

from voice_dictation.domain.command_processor import VoiceCommandProcessor
from voice_dictation.domain.errors import (
    CompletionError,
    DictationError,
    ProtocolError,
    SttConnectionError,
)
from voice_dictation.domain.messages import StatusMessage, TranscriptUpdate
from voice_dictation.domain.silence_monitor import LevelCallback, SilenceMonitor, SilenceReading
from voice_dictation.domain.state import RecordingState, SessionStatus, validate_transition
from voice_dictation.ports.audio import AudioCapturePort
from voice_dictation.ports.completion import CompletionPort
from voice_dictation.ports.editor import EditorPort
from voice_dictation.ports.session import TranscriptionSessionPort

logger = logging.getLogger(__name__)

DEFAULT_CORRECTION_PROMPT = (
    "Fix any transcription errors in the following text. Correct grammar, punctuation, "
    "and obvious word mistakes. Keep the original meaning and style. "
    "Only output the corrected text, nothing else.\n\nText: {{text}}"
)
CORRECTION_CALLOUT = "> [!info] LLM Correction Applied"


class RecordingOrchestrator:
    """Runs one dictation at a time: connect, capture, stop, format, insert.

    The orchestrator is the session client's only listener. Capture, the
    silence monitor and the socket are all released by ``_teardown`` on every
    way out of a cycle.
    """

    def __init__(
        self,
        client: TranscriptionSessionPort,
        capture: AudioCapturePort,
        monitor: SilenceMonitor,
        command_processor: VoiceCommandProcessor,
        editor: EditorPort,
        completion: CompletionPort | None = None,
        server_url: str | None = None,
        language: str | None = "en",
        vad_enabled: bool = True,
        correction_enabled: bool = False,
        correction_prompt: str = DEFAULT_CORRECTION_PROMPT,
        notify: Callable[[str], None] | None = None,
        level_callback: LevelCallback | None = None,
    ) -> None:
        self._client = client
        self._capture = capture
        self._monitor = monitor
        self._commands = command_processor
        self._editor = editor
        self._completion = completion

        self._server_url = server_url
        self._language = language or None
        self._vad_enabled = vad_enabled
        self._correction_enabled = correction_enabled
        self._correction_prompt = correction_prompt
        self._notify_callback = notify
        self._level_callback = level_callback

        self._state = RecordingState.IDLE
        # Bumped by every start and every teardown; a start whose token is
        # stale after an await must not touch the session.
        self._cycle = 0
        self._starting_cycle: int | None = None
        self._start_error: str | None = None
        self._final_transcript = ""
        self._partial_transcript = ""

        self._client.set_listener(self)

    @property
    def state(self) -> RecordingState:
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._state is RecordingState.RECORDING

    def _transition_to(self, target: RecordingState) -> None:
        validate_transition(self._state, target)
        logger.info("State: %s -> %s", self._state.name, target.name)
        self._state = target

    async def toggle_recording(self) -> None:
        if self._state is RecordingState.IDLE:
            await self.start_recording()
        elif self._state is RecordingState.RECORDING:
            await self.stop_recording()

    async def start_recording(self) -> bool:
        if self._state is not RecordingState.IDLE:
            logger.info("Start ignored while %s", self._state.name)
            return False

        self._transition_to(RecordingState.CONNECTING)
        self._reset_cycle()
        if self._server_url:
            self._client.set_url(self._server_url)

        self._cycle += 1
        cycle = self._starting_cycle = self._cycle
        self._start_error = None
        try:
            await self._client.connect()
            if cycle == self._cycle:
                await self._capture.start()
            if cycle == self._cycle:
                await self._client.start_recording(self._language)
        except DictationError as exc:
            if cycle != self._cycle:
                # A stop or a newer start owns the session now.
                logger.info("Start superseded: %s", exc)
                return False
            error = self._start_error
            logger.error("Failed to start recording: %s", error or exc)
            await self._teardown()
            if error and not isinstance(exc, SttConnectionError):
                raise ProtocolError(f"STT server error: {error}") from exc
            raise
        finally:
            if self._starting_cycle == cycle:
                self._starting_cycle = None

        if cycle != self._cycle:
            logger.info("Start superseded")
            if self._state is RecordingState.IDLE:
                await self._client.disconnect()
            return False
        if self._start_error:
            error = self._start_error
            logger.error("Failed to start recording: %s", error)
            await self._teardown()
            raise ProtocolError(f"STT server error: {error}")
        return True

    async def stop_recording(self) -> None:
        if self._state is not RecordingState.RECORDING:
            if self._state in (RecordingState.CONNECTING, RecordingState.PROCESSING):
                logger.info("Stop requested while %s, tearing down", self._state.name)
                await self._teardown()
            return

        self._transition_to(RecordingState.PROCESSING)
        self._monitor.disarm()

        try:
            audio = await self._capture.finalize()
            if self._state is not RecordingState.PROCESSING:
                return
            if audio:
                await self._client.send_audio_chunk(audio)
            await self._client.stop_recording()
        except DictationError as exc:
            logger.error("Error stopping recording: %s", exc)
            self._notify(f"Recording failed: {exc}")
            await self._teardown()

    async def close(self) -> None:
        await self._teardown()
        self._client.set_listener(None)

    async def on_status(self, message: StatusMessage) -> None:
        status = message.status

        if status is SessionStatus.RECORDING:
            if self._state is RecordingState.CONNECTING:
                self._transition_to(RecordingState.RECORDING)
                self._arm_monitor()

        elif status is SessionStatus.PROCESSING:
            if self._state is RecordingState.RECORDING:
                self._transition_to(RecordingState.PROCESSING)
                self._monitor.disarm()
                await self._capture.release()

        elif status is SessionStatus.READY:
            if self._state is RecordingState.PROCESSING:
                await self._complete_recording()

        elif status is SessionStatus.ERROR:
            if self._state is RecordingState.IDLE:
                return
            # Errors during start are raised to the caller instead.
            if self._starting_cycle == self._cycle and self._state is RecordingState.CONNECTING:
                self._start_error = message.error or "Unknown error"
                return
            await self._fail(message.error or "Unknown error")

    async def on_transcript(self, update: TranscriptUpdate) -> None:
        if self._state is RecordingState.IDLE:
            return
        if update.is_final:
            logger.info("Transcript: %s", update.text)
            self._final_transcript = update.text
        else:
            logger.debug("Transcript (interim): %s", update.text)
            self._partial_transcript = update.text

    async def on_connected(self) -> None:
        logger.debug("STT session connected")

    async def on_disconnected(self) -> None:
        if self._state is RecordingState.IDLE:
            return
        logger.warning("STT server disconnected while %s", self._state.name)
        text = self._best_transcript()
        self._transition_to(RecordingState.ERROR)
        self._notify("STT server disconnected")
        await self._teardown()
        if text.strip():
            await self._deliver(text)

    async def _complete_recording(self) -> None:
        text = self._best_transcript()
        # Correction can take a while; once torn down a late stop finds IDLE
        # and cannot cancel the reader task that is delivering.
        await self._teardown()
        if not text.strip():
            self._notify("No speech detected")
            return
        await self._deliver(text)

    def _best_transcript(self) -> str:
        # A final update wins; the newest partial is only used when no final arrived.
        return self._final_transcript or self._partial_transcript

    async def _deliver(self, text: str) -> None:
        result = self._commands.process(text)
        for warning in result.warnings:
            logger.warning("Voice command: %s", warning)

        output = result.text
        if self._correction_enabled and self._completion:
            output = await self._apply_correction(output)

        if self._editor.insert_at_cursor(output):
            self._notify("Transcription inserted")
        else:
            logger.info("Transcription: %s", output)
            self._notify("No active editor, transcription not inserted")

    async def _apply_correction(self, text: str) -> str:
        prompt = self._correction_prompt.replace("{{text}}", text)
        try:
            corrected = await self._completion.complete(prompt)
        except CompletionError as exc:
            logger.error("LLM correction failed: %s", exc)
            return text

        quoted = "\n> ".join(text.split("\n"))
        return f"{corrected}\n\n{CORRECTION_CALLOUT}\n> **Original transcript:**\n> {quoted}"

    def _arm_monitor(self) -> None:
        if not self._vad_enabled:
            return
        self._monitor.arm(
            self._capture.open_level_meter(),
            on_auto_stop=self.stop_recording,
            on_level=self._on_level,
        )

    def _on_level(self, reading: SilenceReading) -> None:
        if self._level_callback:
            self._level_callback(reading)

    async def _fail(self, error: str) -> None:
        logger.error("STT error: %s", error)
        self._transition_to(RecordingState.ERROR)
        self._notify(f"STT error: {error}")
        await self._teardown()

    async def _teardown(self) -> None:
        self._cycle += 1
        self._monitor.disarm()
        await self._capture.release()
        await self._client.disconnect()
        self._reset_cycle()
        if self._state is not RecordingState.IDLE:
            logger.info("State: %s -> IDLE", self._state.name)
            self._state = RecordingState.IDLE

    def _reset_cycle(self) -> None:
        self._final_transcript = ""
        self._partial_transcript = ""

    def _notify(self, message: str) -> None:
        if self._notify_callback:
            self._notify_callback(message)
        else:
            logger.info("%s", message)
