"""
Abstract client definitions for futures venue integrations.

Concrete adapters (e.g. CVEX) implement `VenueClient` while leaving retry
policy to the caller: a signed mutation must never be replayed implicitly.
"""

from __future__ import annotations

from typing import Any, Literal, Mapping, Protocol, runtime_checkable

HttpMethod = Literal["GET", "POST", "PUT", "DELETE"]


@runtime_checkable
class VenueClient(Protocol):
    """Protocol describing the surface area the order lifecycle depends on."""

    name: str

    async def execute(
        self,
        method: HttpMethod,
        path: str,
        body: Mapping[str, Any] | str | None = None,
        *,
        params: Mapping[str, Any] | None = None,
        requires_signing: bool = False,
    ) -> dict:
        """Send a request and return the decoded JSON payload."""

    async def estimate_order(self, payload: Mapping[str, Any]) -> dict:
        """Request a non-binding cost estimate for an order."""

    async def place_order(self, body_text: str) -> dict:
        """Submit a pre-serialized order body with a signature."""

    async def aclose(self) -> None:
        """Release network resources."""
