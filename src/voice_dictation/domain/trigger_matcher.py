import re
from dataclasses import dataclass

from voice_dictation.domain.voice_command import VoiceCommand

TRIGGER_PUNCTUATION = ".,!?;:'\""

_PUNCTUATION_RE = re.compile("[" + re.escape(TRIGGER_PUNCTUATION) + "]")
_WHITESPACE_RE = re.compile(r"\s+")
_OPTIONAL_PUNCTUATION = "[" + re.escape(TRIGGER_PUNCTUATION) + "]*"


@dataclass(frozen=True)
class TriggerBinding:
    command: VoiceCommand
    is_start: bool


@dataclass(frozen=True)
class CommandOccurrence:
    command: VoiceCommand
    is_start: bool
    index: int
    matched_text: str

    @property
    def end(self) -> int:
        return self.index + len(self.matched_text)


def normalize_trigger(trigger: str) -> str:
    without_punctuation = _PUNCTUATION_RE.sub("", trigger.lower())
    return _WHITESPACE_RE.sub(" ", without_punctuation).strip()


def build_trigger_map(commands: list[VoiceCommand]) -> dict[str, TriggerBinding]:
    """Map every normalized trigger to its command. Later commands win on duplicates."""
    trigger_map: dict[str, TriggerBinding] = {}
    for command in commands:
        start = normalize_trigger(command.start_trigger)
        if start:
            trigger_map[start] = TriggerBinding(command=command, is_start=True)
        if command.end_trigger:
            end = normalize_trigger(command.end_trigger)
            if end:
                trigger_map[end] = TriggerBinding(command=command, is_start=False)
    return trigger_map


def build_trigger_pattern(
    trigger: str,
    consume_trailing_space: bool = False,
    consume_leading_space: bool = False,
) -> re.Pattern[str]:
    pattern = r"\s+".join(re.escape(word) + _OPTIONAL_PUNCTUATION for word in trigger.split(" "))
    if consume_leading_space:
        pattern = r"\s*" + pattern
    if consume_trailing_space:
        pattern = pattern + r"\s*"
    return re.compile(pattern, re.IGNORECASE)


def find_occurrences(text: str, trigger_map: dict[str, TriggerBinding]) -> list[CommandOccurrence]:
    """Scan ``text`` for every trigger, longest first, keeping only non-overlapping matches.

    A match whose range intersects one claimed by an earlier (longer) trigger
    is dropped, so "start bold" never fires inside "start bold text".
    Results are in claim order, not text order.
    """
    occurrences: list[CommandOccurrence] = []
    claimed: list[tuple[int, int]] = []

    for trigger in sorted(trigger_map, key=len, reverse=True):
        binding = trigger_map[trigger]
        paired = binding.command.is_paired
        pattern = build_trigger_pattern(
            trigger,
            consume_trailing_space=paired and binding.is_start,
            consume_leading_space=paired and not binding.is_start,
        )

        for match in pattern.finditer(text):
            start, end = match.span()
            if start == end:
                continue
            if any(start < claimed_end and end > claimed_start for claimed_start, claimed_end in claimed):
                continue
            occurrences.append(
                CommandOccurrence(
                    command=binding.command,
                    is_start=binding.is_start,
                    index=start,
                    matched_text=match.group(0),
                )
            )
            claimed.append((start, end))

    return occurrences
