from __future__ import annotations

import json
from decimal import Decimal

import httpx

from wallet.core.config import COINGECKO_BTC_USD_URL
from wallet.services.errors import DecodeError, NetworkError

ASSET_ID = "bitcoin"
QUOTE_FIELD = "usd"


def parse_btc_usd_rate(body: bytes | str) -> Decimal:
    try:
        payload = json.loads(body, parse_float=Decimal, parse_int=Decimal)
    except (ValueError, TypeError) as e:
        raise DecodeError(f"rate_response_not_json: {e}") from e

    if not isinstance(payload, dict):
        raise DecodeError("rate_response_not_object")
    asset = payload.get(ASSET_ID)
    if not isinstance(asset, dict):
        raise DecodeError(f"rate_response_missing_{ASSET_ID}")
    value = asset.get(QUOTE_FIELD)
    if not isinstance(value, Decimal):
        raise DecodeError(f"rate_response_missing_{ASSET_ID}_{QUOTE_FIELD}")
    if not value.is_finite() or value <= 0:
        raise DecodeError(f"rate_response_non_positive: {value}")
    return value


class RateFetcher:
    """One GET against the price endpoint per ``fetch()`` call; no retries."""

    def __init__(
        self,
        url: str = COINGECKO_BTC_USD_URL,
        *,
        timeout_s: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        if timeout_s <= 0:
            raise ValueError("timeout_s must be positive")
        self.url = url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_s, follow_redirects=True)

    async def fetch(self) -> Decimal:
        try:
            r = await self._client.get(self.url)
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NetworkError(f"rate_http_{e.response.status_code}") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise NetworkError(f"rate_request_failed: {e!r}") from e
        return parse_btc_usd_rate(r.content)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
