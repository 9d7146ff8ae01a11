from dataclasses import dataclass


@dataclass(frozen=True)
class VoiceCommand:
    type: str
    start_trigger: str
    markdown_start: str
    end_trigger: str | None = None
    markdown_end: str | None = None
    is_paired: bool = False


def _paired(type_: str, name: str, markdown: str) -> VoiceCommand:
    return VoiceCommand(
        type=type_,
        start_trigger=f"start {name}",
        end_trigger=f"end {name}",
        markdown_start=markdown,
        markdown_end=markdown,
        is_paired=True,
    )


DEFAULT_VOICE_COMMANDS: tuple[VoiceCommand, ...] = (
    _paired("bold", "bold", "**"),
    _paired("italic", "italic", "*"),
    _paired("highlight", "highlight", "=="),
    _paired("strikethrough", "strikethrough", "~~"),
    _paired("code", "code", "`"),
    VoiceCommand(type="newline", start_trigger="new line", markdown_start="\n"),
    VoiceCommand(type="paragraph", start_trigger="new paragraph", markdown_start="\n\n"),
    VoiceCommand(type="bullet", start_trigger="bullet point", markdown_start="\n- "),
)
