"""
Adapters for OpenAI-compatible chat completion endpoints (OpenAI, DeepSeek).
"""

from __future__ import annotations

from typing import Any, Dict, List

import httpx

from models.adapters.base import BaseOracleAdapter, ChatMessage
from models.errors import OracleResponseError, OracleUnavailableError

OPENAI_ENDPOINT = "https://api.openai.com/v1/chat/completions"
DEEPSEEK_ENDPOINT = "https://api.deepseek.com/v1/chat/completions"


class ChatCompletionAdapter(BaseOracleAdapter):
    """Adapter that posts messages to a ``/chat/completions`` endpoint."""

    provider = "openai-compatible"

    def __init__(
        self,
        *,
        model_id: str,
        endpoint: str,
        model: str,
        api_key: str | None = None,
        temperature: float = 0.2,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(model_id=model_id, temperature=temperature)
        self.endpoint = endpoint
        self.remote_model = model
        self.api_key = api_key
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _invoke_model(self, messages: List[ChatMessage], *, json_output: bool) -> str:
        if not self.api_key:
            raise OracleUnavailableError(f"{self.provider} API key not configured for {self.model_id}")

        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

        payload: Dict[str, Any] = {
            "model": self.remote_model,
            "temperature": self.temperature,
            "messages": messages,
        }
        if json_output:
            payload["response_format"] = {"type": "json_object"}
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = await self._client.post(self.endpoint, headers=headers, json=payload)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise OracleResponseError(f"{self.provider} request failed: {exc}") from exc
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise OracleResponseError(f"{self.provider} response parse error: {exc}") from exc
        if not isinstance(content, str):
            raise OracleResponseError(f"{self.provider} returned non-text content")
        return content

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class OpenAIAdapter(ChatCompletionAdapter):
    provider = "OpenAI"

    def __init__(
        self,
        *,
        model: str = "gpt-4o",
        api_key: str | None = None,
        temperature: float = 0.2,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            model_id="openai-v1",
            endpoint=OPENAI_ENDPOINT,
            model=model,
            api_key=api_key,
            temperature=temperature,
            timeout=timeout,
            transport=transport,
        )


class DeepSeekAdapter(ChatCompletionAdapter):
    provider = "DeepSeek"

    def __init__(
        self,
        *,
        model: str = "deepseek-chat",
        api_key: str | None = None,
        temperature: float = 0.2,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            model_id="deepseek-v1",
            endpoint=DEEPSEEK_ENDPOINT,
            model=model,
            api_key=api_key,
            temperature=temperature,
            timeout=timeout,
            transport=transport,
        )
