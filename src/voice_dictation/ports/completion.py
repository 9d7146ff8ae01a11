from typing import Protocol


class CompletionPort(Protocol):
    async def complete(self, prompt: str, system_prompt: str | None = None) -> str: ...
