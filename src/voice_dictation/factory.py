import logging

from voice_dictation.adapters.editors import MarkdownFileEditor, TerminalEditor
from voice_dictation.adapters.openai_compat_llm import OpenAICompatibleCompletion
from voice_dictation.adapters.sounddevice_audio import SounddeviceCapture
from voice_dictation.adapters.unix_control import UnixSocketControlServer
from voice_dictation.adapters.websocket_stt import WebSocketTranscriptionClient
from voice_dictation.config import DictationConfig
from voice_dictation.domain.command_processor import VoiceCommandProcessor
from voice_dictation.domain.recorder import RecordingOrchestrator
from voice_dictation.domain.silence_monitor import SilenceMonitor
from voice_dictation.ports.completion import CompletionPort
from voice_dictation.ports.control import ControlCommand, ControlHandler, ControlPort
from voice_dictation.ports.editor import EditorPort

logger = logging.getLogger(__name__)


def create_capture(config: DictationConfig) -> SounddeviceCapture:
    return SounddeviceCapture(
        device=config.capture_device or None,
        sample_rate=config.sample_rate,
        frame_duration_ms=config.frame_duration_ms,
    )


def create_editor(config: DictationConfig) -> EditorPort:
    if config.note_path:
        return MarkdownFileEditor(config.note_path)
    return TerminalEditor()


def create_completion(config: DictationConfig) -> CompletionPort | None:
    if not config.correction_enabled:
        return None
    if not (config.llm_base_url and config.llm_model):
        logger.warning("Correction enabled but no LLM configured, skipping correction")
        return None
    return OpenAICompatibleCompletion(
        base_url=config.llm_base_url,
        model=config.llm_model,
        api_key=config.read_secret(config.llm_api_key_file),
        temperature=config.llm_temperature,
        max_tokens=config.llm_max_tokens,
    )


def create_monitor(config: DictationConfig) -> SilenceMonitor:
    return SilenceMonitor(
        threshold=config.vad_silence_threshold,
        silence_duration_s=config.vad_silence_duration,
        sample_interval_ms=config.vad_sample_interval_ms,
    )


def create_recorder(config: DictationConfig) -> RecordingOrchestrator:
    return RecordingOrchestrator(
        client=WebSocketTranscriptionClient(config.stt_server_url),
        capture=create_capture(config),
        monitor=create_monitor(config),
        command_processor=VoiceCommandProcessor(
            config.voice_commands,
            enabled=config.voice_commands_enabled,
        ),
        editor=create_editor(config),
        completion=create_completion(config),
        server_url=config.stt_server_url,
        language=config.language,
        vad_enabled=config.vad_enabled,
        correction_enabled=config.correction_enabled,
        correction_prompt=config.correction_prompt,
    )


def create_control_handler(recorder: RecordingOrchestrator) -> ControlHandler:
    async def handle(command: ControlCommand) -> dict:
        if command.action == "toggle":
            await recorder.toggle_recording()
        elif command.action == "start":
            await recorder.start_recording()
        elif command.action == "stop":
            await recorder.stop_recording()
        return {"state": recorder.state.value}

    return handle


def create_app(config: DictationConfig) -> tuple[RecordingOrchestrator, ControlPort]:
    recorder = create_recorder(config)
    control = UnixSocketControlServer(
        handler=create_control_handler(recorder),
        socket_path=config.socket_path,
    )
    return recorder, control
