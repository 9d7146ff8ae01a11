from typing import Protocol


class EditorPort(Protocol):
    def insert_at_cursor(self, text: str) -> bool: ...
    def get_selection(self) -> str: ...
