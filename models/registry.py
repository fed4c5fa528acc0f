"""
Lookup of configured text-generation oracles by model id.

The CLI resolves ``--model`` (or ``oracleModel`` from the config file) here,
so an unknown id is reported with the ids that are actually available.
"""

from __future__ import annotations

from typing import Dict, Iterable

from models.adapters.base import BaseOracleAdapter
from models.errors import OracleUnavailableError


class UnknownOracleError(OracleUnavailableError, KeyError):
    """Raised when no oracle is configured under the requested model id."""

    def __init__(self, model_id: str, available: Iterable[str]) -> None:
        choices = ", ".join(sorted(available)) or "none"
        super().__init__(f"Oracle '{model_id}' is not configured (available: {choices})")
        self.model_id = model_id

    def __str__(self) -> str:
        return str(self.args[0])


class AdapterRegistry:
    """Oracles available to the instruction and analysis steps."""

    def __init__(self) -> None:
        self._oracles: Dict[str, BaseOracleAdapter] = {}

    def register(self, oracle: BaseOracleAdapter, *, overwrite: bool = False) -> None:
        if oracle.model_id in self._oracles and not overwrite:
            raise ValueError(f"Oracle '{oracle.model_id}' is already registered")
        self._oracles[oracle.model_id] = oracle

    def get(self, model_id: str) -> BaseOracleAdapter:
        oracle = self._oracles.get(model_id)
        if oracle is None:
            raise UnknownOracleError(model_id, self._oracles)
        return oracle

    def list(self) -> Iterable[str]:
        return self._oracles.keys()

    async def aclose(self) -> None:
        """Close every oracle's HTTP client; safe to call more than once."""
        for oracle in self._oracles.values():
            await oracle.aclose()
