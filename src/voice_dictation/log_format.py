import logging

RESET = "\033[0m"
DIM = "\033[2m"
BOLD = "\033[1m"
RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
CYAN = "\033[36m"
MAGENTA = "\033[35m"

LEVEL_COLORS = {
    logging.DEBUG: DIM,
    logging.INFO: GREEN,
    logging.WARNING: YELLOW,
    logging.ERROR: RED,
    logging.CRITICAL: RED + BOLD,
}

# First match wins. Interim transcripts are logged as "Transcript (interim):".
HIGHLIGHTS: list[tuple[str, str]] = [
    ("State:", BOLD + CYAN),
    ("Transcript:", CYAN),
    ("Auto-stop", BOLD + MAGENTA),
    ("Voice command:", BOLD + YELLOW),
    ("Transcription inserted", BOLD + GREEN),
]


class ColoredFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelno, "")
        stamp = self.formatTime(record, self.datefmt)
        name = record.name.rsplit(".", 1)[-1]
        msg = self._highlight(record, color)
        return f"{DIM}{stamp}{RESET} {color}{record.levelname:<5}{RESET} {DIM}{name:<16}{RESET} {msg}"

    @staticmethod
    def _highlight(record: logging.LogRecord, level_color: str) -> str:
        msg = record.getMessage()
        for marker, style in HIGHLIGHTS:
            if marker in msg:
                return f"{style}{msg}{RESET}"
        if record.levelno == logging.DEBUG:
            return f"{DIM}{msg}{RESET}"
        if record.levelno >= logging.WARNING:
            return f"{level_color}{msg}{RESET}"
        return msg
