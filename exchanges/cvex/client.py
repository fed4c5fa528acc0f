"""
CVEX futures REST client.

Read-only calls authenticate with the static API key from the config. Calls
that change account state are signed with the operator's Ed25519 key (see
``exchanges.cvex.signing``); the body is serialized exactly once and the same
text is both signed and transmitted.

The client never retries. A 5xx or timeout on a signed order may still have
reached the venue, so the caller decides whether to start a new attempt with
a fresh customer order id.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional

import httpx

from config import VenueConfig
from exchanges.base_client import HttpMethod, VenueClient
from exchanges.cvex.signing import KeyUnavailableError, RequestSigner

logger = logging.getLogger(__name__)

USER_AGENT = "CVEX-CLI/1.0"
IDENTITY_HEADER = "X-API-KEY"
SIGNATURE_HEADER = "X-Signature"


class CvexClientError(RuntimeError):
    """Base class for transport and venue failures."""


class NetworkError(CvexClientError):
    """Raised when the request could not be completed at the transport level."""

    def __init__(self, cause: Exception) -> None:
        super().__init__(f"Network error: {cause}")
        self.cause = cause


class ApiError(CvexClientError):
    """Raised when the venue answers with a non-2xx status."""

    def __init__(self, status_code: int, body: Any) -> None:
        super().__init__(f"CVEX API error {status_code}: {body}")
        self.status_code = status_code
        self.body = body

    @property
    def retryable(self) -> bool:
        """5xx answers may be retried by the caller; 4xx are input errors."""
        return self.status_code >= 500


class CvexClient(VenueClient):
    """Async client for the CVEX REST API."""

    name = "cvex"

    def __init__(
        self,
        config: VenueConfig,
        *,
        signer: RequestSigner | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ) -> None:
        self._config = config
        self._signer = signer
        self._client = httpx.AsyncClient(
            timeout=timeout if timeout is not None else config.timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "CvexClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    @property
    def signer(self) -> RequestSigner | None:
        return self._signer

    # ------------------------------------------------------------------
    # Core request executor
    # ------------------------------------------------------------------
    async def execute(
        self,
        method: HttpMethod,
        path: str,
        body: Mapping[str, Any] | str | None = None,
        *,
        params: Mapping[str, Any] | None = None,
        requires_signing: bool = False,
    ) -> dict:
        url = self._build_url(path, params)
        if body is None:
            body_text = ""
        elif isinstance(body, str):
            body_text = body
        else:
            body_text = json.dumps(body, separators=(",", ":"))

        headers = {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
        if requires_signing:
            if self._signer is None:
                raise KeyUnavailableError("Signed request requested but no signing key is configured")
            identity, signature = self._signer.sign_request(method, url, body_text)
            headers[IDENTITY_HEADER] = identity
            headers[SIGNATURE_HEADER] = signature
        else:
            headers[IDENTITY_HEADER] = self._config.api_key

        logger.debug("%s %s signed=%s", method, url, requires_signing)
        try:
            response = await self._client.request(
                method,
                url,
                content=body_text.encode("utf-8") if body_text else None,
                headers=headers,
            )
        except httpx.TransportError as exc:
            logger.warning("Request %s %s failed: %s", method, path, exc)
            raise NetworkError(exc) from exc

        if not response.is_success:
            raise ApiError(response.status_code, _decode_body(response))
        try:
            payload = response.json()
        except ValueError as exc:
            raise ApiError(response.status_code, response.text) from exc
        if not isinstance(payload, dict):
            return {"data": payload}
        return payload

    # ------------------------------------------------------------------
    # Endpoint helpers
    # ------------------------------------------------------------------
    async def list_contracts(self, *, active: bool = True) -> list[dict]:
        params = {"active": "true"} if active else None
        payload = await self.execute("GET", "/v1/market/futures", params=params)
        return payload.get("contracts") or []

    async def get_contract(self, contract_id: int | str) -> Optional[dict]:
        payload = await self.execute("GET", f"/v1/market/futures/{contract_id}")
        return payload.get("details")

    async def price_history(self, contract_id: int | str, *, period: str = "1h", count: int = 24) -> list[dict]:
        payload = await self.execute(
            "GET",
            f"/v1/market/futures/{contract_id}/price",
            params={"period": period, "count": count},
        )
        return payload.get("data") or []

    async def order_book(self, contract_id: int | str, *, price_step: int | str = 1) -> dict:
        payload = await self.execute(
            "GET",
            f"/v1/market/futures/{contract_id}/order-book",
            params={"price_step": price_step},
        )
        return {"bids": payload.get("bids") or [], "asks": payload.get("asks") or []}

    async def latest_trades(self, contract_id: int | str, *, count: int = 20) -> list[dict]:
        payload = await self.execute(
            "GET",
            f"/v1/market/futures/{contract_id}/latest-trades",
            params={"count": count},
        )
        return payload.get("trades") or []

    async def portfolio_overview(self) -> dict:
        return await self.execute("GET", "/v1/portfolio/overview")

    async def estimate_order(self, payload: Mapping[str, Any]) -> dict:
        return await self.execute("POST", "/v1/trading/estimate-order", payload)

    async def place_order(self, body_text: str) -> dict:
        return await self.execute("POST", "/v1/trading/order", body_text, requires_signing=True)

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _build_url(self, path: str, params: Mapping[str, Any] | None) -> str:
        url = f"{self._config.api_url}{path}"
        if params:
            url = f"{url}?{httpx.QueryParams(params)}"
        return url


def _decode_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
