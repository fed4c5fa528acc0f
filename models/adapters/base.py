"""
Abstract base class for text-generation oracle adapters.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, List

logger = logging.getLogger(__name__)

ChatMessage = Dict[str, str]


class BaseOracleAdapter(ABC):
    """
    Common behaviour for oracles that turn a prompt into text.

    Callers depend only on ``interpret``; subclasses override
    ``_invoke_model`` to reach a concrete provider.
    """

    model_id: str

    def __init__(self, model_id: str, *, temperature: float = 0.2) -> None:
        self.model_id = model_id
        self.temperature = temperature

    async def interpret(
        self,
        prompt: str,
        *,
        system: str | None = None,
        json_output: bool = False,
    ) -> str:
        """Return the oracle's text answer for ``prompt``."""
        messages = self._build_messages(prompt, system)
        text = await self._invoke_model(messages, json_output=json_output)
        logger.debug("Oracle %s answered with %d characters", self.model_id, len(text))
        return text

    def _build_messages(self, prompt: str, system: str | None) -> List[ChatMessage]:
        messages: List[ChatMessage] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return messages

    @abstractmethod
    async def _invoke_model(self, messages: List[ChatMessage], *, json_output: bool) -> str:
        """Call the backing model and return its raw text answer."""

    async def aclose(self) -> None:
        """Optional hook to release resources in async context."""
        return None
