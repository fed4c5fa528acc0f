"""
Deterministic oracle returning pre-recorded answers.

Used for offline runs and unit tests where no provider should be contacted.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Iterable, List

from models.adapters.base import BaseOracleAdapter, ChatMessage
from models.errors import OracleUnavailableError


class StaticOracle(BaseOracleAdapter):
    """Replays queued responses in order and records every prompt received."""

    def __init__(self, responses: Iterable[str] = (), *, model_id: str = "static-v1") -> None:
        super().__init__(model_id=model_id, temperature=0.0)
        self._responses = deque(responses)
        self.calls: List[List[ChatMessage]] = []

    def queue(self, response: str) -> None:
        self._responses.append(response)

    async def _invoke_model(self, messages: List[ChatMessage], *, json_output: bool) -> str:
        await asyncio.sleep(0)
        self.calls.append(messages)
        if not self._responses:
            raise OracleUnavailableError(f"No queued response left for {self.model_id}")
        return self._responses.popleft()
