import logging
import sys
from pathlib import Path
from typing import TextIO

logger = logging.getLogger(__name__)


class MarkdownFileEditor:
    """Treats a markdown note on disk as the editor surface.

    The cursor starts at the end of the note and moves past every insertion.
    """

    def __init__(self, path: str | Path, cursor: int | None = None) -> None:
        self._path = Path(path)
        self._cursor = cursor
        self._selection: tuple[int, int] | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def cursor(self) -> int:
        if self._cursor is None:
            return len(self._read())
        return self._cursor

    def select(self, start: int, end: int) -> None:
        self._selection = (min(start, end), max(start, end))

    def get_selection(self) -> str:
        if self._selection is None:
            return ""
        start, end = self._selection
        return self._read()[start:end]

    def insert_at_cursor(self, text: str) -> bool:
        try:
            content = self._read()
            cursor = min(self.cursor, len(content))
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(content[:cursor] + text + content[cursor:], encoding="utf-8")
        except OSError:
            logger.exception("Cannot write note %s", self._path)
            return False
        self._cursor = cursor + len(text)
        self._selection = None
        logger.debug("Inserted %d chars into %s at %d", len(text), self._path, cursor)
        return True

    def _read(self) -> str:
        if not self._path.exists():
            return ""
        return self._path.read_text(encoding="utf-8")


class TerminalEditor:
    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stdout

    def get_selection(self) -> str:
        return ""

    def insert_at_cursor(self, text: str) -> bool:
        self._stream.write(text + "\n")
        self._stream.flush()
        return True
