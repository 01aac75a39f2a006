"""Language-model backends used to interpret editing instructions."""

import logging
from typing import Any, Dict, List, Optional, Protocol
import httpx
from aive.config.models import LLMConfig
from aive.domain.errors import LanguageModelUnavailable

logger = logging.getLogger(__name__)


class LanguageModelClient(Protocol):
    """Protocol for chat-style text generation services."""

    model: str

    async def chat(self, system: str, user: str) -> str:
        ...

    async def list_models(self) -> List[str]:
        ...


class OllamaClient:
    """Talks to an Ollama server's native chat API."""

    def __init__(self, config: Optional[LLMConfig] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config or LLMConfig()
        self.model = self.config.model
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.host,
            timeout=self.config.timeout,
            transport=self._transport
        )

    async def chat(self, system: str, user: str) -> str:
        """Returns the assistant's raw text for one system + user exchange."""
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "stream": False,
        }
        if self.config.temperature is not None:
            payload["options"] = {"temperature": self.config.temperature}

        logger.info(f"Processing message with model: {self.model}")
        async with self._client() as client:
            try:
                response = await client.post("/api/chat", json=payload)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise LanguageModelUnavailable(
                    f"Language model returned HTTP {e.response.status_code}: {e.response.text[:200]}"
                ) from e
            except httpx.HTTPError as e:
                raise LanguageModelUnavailable(f"Language model unreachable at {self.config.host}: {e}") from e

        text = self._extract_text(response)
        if text is None:
            raise LanguageModelUnavailable(f"Language model response missing content: {response.text[:200]}")
        logger.debug(f"Model response received: {text[:100]}")
        return text

    async def list_models(self) -> List[str]:
        async with self._client() as client:
            try:
                response = await client.get("/api/tags")
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise LanguageModelUnavailable(f"Language model unreachable at {self.config.host}: {e}") from e
        try:
            models = response.json().get("models") or []
            return [m.get("name", "") for m in models if isinstance(m, dict)]
        except (ValueError, AttributeError, TypeError) as e:
            raise LanguageModelUnavailable(
                f"Unexpected model listing from {self.config.host}: {response.text[:200]}"
            ) from e

    @staticmethod
    def _extract_text(response: httpx.Response) -> Optional[str]:
        """Extract assistant text from Ollama or OpenAI-compatible bodies."""
        try:
            body = response.json()
        except ValueError:
            return None
        if not isinstance(body, dict):
            return None
        message = body.get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"]
        choices = body.get("choices")
        if isinstance(choices, list) and choices:
            message = choices[0].get("message") if isinstance(choices[0], dict) else None
            if isinstance(message, dict) and isinstance(message.get("content"), str):
                return message["content"]
        if isinstance(body.get("response"), str):
            return body["response"]
        return None
