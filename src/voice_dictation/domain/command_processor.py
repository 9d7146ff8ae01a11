import logging
import re
from dataclasses import dataclass, field
from enum import Enum, auto

from voice_dictation.domain.trigger_matcher import (
    CommandOccurrence,
    build_trigger_map,
    find_occurrences,
)
from voice_dictation.domain.voice_command import VoiceCommand

logger = logging.getLogger(__name__)

_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")
_SPACE_RUN_RE = re.compile(r"  +")


class WarningKind(Enum):
    UNMATCHED_END = auto()
    MISMATCHED_NESTING = auto()
    UNCLOSED_START = auto()


@dataclass(frozen=True)
class ValidationWarning:
    kind: WarningKind
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class ReplacementMarker:
    index: int
    length: int
    replacement: str
    is_start: bool
    command: VoiceCommand


@dataclass(frozen=True)
class ProcessingResult:
    text: str
    warnings: list[ValidationWarning] = field(default_factory=list)


class VoiceCommandProcessor:
    def __init__(self, commands: list[VoiceCommand], enabled: bool = True) -> None:
        self._commands = list(commands)
        self._enabled = enabled
        self._trigger_map = build_trigger_map(self._commands)

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def commands(self) -> list[VoiceCommand]:
        return list(self._commands)

    def process(self, raw_text: str) -> ProcessingResult:
        if not self._enabled:
            return ProcessingResult(text=raw_text)

        occurrences = find_occurrences(raw_text, self._trigger_map)
        if not occurrences:
            return ProcessingResult(text=raw_text)

        markers = [_to_marker(occurrence) for occurrence in occurrences]
        warnings = validate_pairing(markers)
        for warning in warnings:
            logger.debug("Voice command warning: %s", warning)

        text = raw_text
        for marker in sorted(markers, key=lambda m: m.index, reverse=True):
            text = text[: marker.index] + marker.replacement + text[marker.index + marker.length :]

        return ProcessingResult(text=cleanup_whitespace(text), warnings=warnings)


def _to_marker(occurrence: CommandOccurrence) -> ReplacementMarker:
    command = occurrence.command
    replacement = command.markdown_start if occurrence.is_start else (command.markdown_end or "")
    return ReplacementMarker(
        index=occurrence.index,
        length=len(occurrence.matched_text),
        replacement=replacement,
        is_start=occurrence.is_start,
        command=command,
    )


def validate_pairing(markers: list[ReplacementMarker]) -> list[ValidationWarning]:
    """Replay paired markers left to right and collect nesting problems.

    A mismatched end puts the popped start back on the stack and carries on;
    nothing here prevents substitution.
    """
    warnings: list[ValidationWarning] = []
    stack: list[ReplacementMarker] = []

    for marker in sorted(markers, key=lambda m: m.index):
        if not marker.command.is_paired:
            continue

        if marker.is_start:
            stack.append(marker)
            continue

        if not stack:
            warnings.append(
                ValidationWarning(
                    kind=WarningKind.UNMATCHED_END,
                    message=f'unmatched end trigger "{marker.command.end_trigger}"',
                )
            )
            continue

        last_open = stack.pop()
        if last_open.command.type != marker.command.type:
            warnings.append(
                ValidationWarning(
                    kind=WarningKind.MISMATCHED_NESTING,
                    message=(
                        f'mismatched nesting: "{last_open.command.start_trigger}" '
                        f'closed by "{marker.command.end_trigger}"'
                    ),
                )
            )
            stack.append(last_open)

    for open_marker in stack:
        warnings.append(
            ValidationWarning(
                kind=WarningKind.UNCLOSED_START,
                message=f'unclosed start trigger "{open_marker.command.start_trigger}"',
            )
        )

    return warnings


def cleanup_whitespace(text: str) -> str:
    text = _EXCESS_NEWLINES_RE.sub("\n\n", text)
    text = _SPACE_RUN_RE.sub(" ", text)
    return text.strip()
