"""
Exceptions raised by text-generation oracle adapters.
"""

from __future__ import annotations


class OracleError(RuntimeError):
    """Base class for oracle failures."""


class OracleUnavailableError(OracleError):
    """Raised when an adapter has no credentials or no queued response."""


class OracleResponseError(OracleError):
    """Raised when the oracle answer cannot be used."""

    def __init__(self, message: str, raw: str | None = None) -> None:
        super().__init__(message)
        self.raw = raw
