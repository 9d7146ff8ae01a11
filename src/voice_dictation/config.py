from pydantic_settings import BaseSettings, SettingsConfigDict

from voice_dictation.domain.recorder import DEFAULT_CORRECTION_PROMPT
from voice_dictation.domain.voice_command import DEFAULT_VOICE_COMMANDS, VoiceCommand


class DictationConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="VOICE_DICTATION_")

    stt_server_url: str = "ws://localhost:8765"
    language: str = "en"

    vad_enabled: bool = True
    vad_silence_threshold: float = 15.0
    vad_silence_duration: float = 1.5
    vad_sample_interval_ms: int = 100

    voice_commands_enabled: bool = True
    voice_commands: list[VoiceCommand] = list(DEFAULT_VOICE_COMMANDS)

    correction_enabled: bool = False
    correction_prompt: str = DEFAULT_CORRECTION_PROMPT

    llm_base_url: str = "http://localhost:11434"
    llm_api_key_file: str = ""
    llm_model: str = "llama3.2"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 2048

    capture_device: str = ""
    sample_rate: int = 16000
    frame_duration_ms: int = 32

    note_path: str = ""
    socket_path: str = "/tmp/voice-dictation.sock"
    log_file: str = "/tmp/voice-dictation.log"

    def read_secret(self, path: str) -> str:
        if not path:
            return ""
        try:
            with open(path) as f:
                return f.read().strip()
        except FileNotFoundError:
            return ""
