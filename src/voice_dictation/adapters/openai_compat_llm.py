import logging

import httpx

from voice_dictation.domain.errors import CompletionError

logger = logging.getLogger(__name__)


class OpenAICompatibleCompletion:
    """Single-shot chat completion against Ollama or any OpenAI-compatible server."""

    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: str = "",
        temperature: float = 0.7,
        max_tokens: int = 2048,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._api_key = api_key
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout = timeout
        self._transport = transport

    async def complete(self, prompt: str, system_prompt: str | None = None) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        payload = {
            "model": self._model,
            "messages": messages,
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
        }

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            ) as client:
                response = await client.post(
                    f"{self._base_url}/v1/chat/completions",
                    json=payload,
                    headers=headers,
                )
        except httpx.ConnectError as exc:
            raise CompletionError(
                f"Cannot connect to LLM server at {self._base_url}. Is the server running?"
            ) from exc
        except httpx.HTTPError as exc:
            raise CompletionError(f"LLM request failed: {exc}") from exc

        if response.status_code != 200:
            raise CompletionError(f"LLM request failed: {response.text or f'HTTP {response.status_code}'}")

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise CompletionError("No response from LLM") from exc

        logger.debug("LLM completion: %d chars", len(content))
        return content
