"""Async HTTP client for the DEX token price API."""

from __future__ import annotations

from typing import Any

import httpx

from skillset_service.logging import get_logger


class PriceClient:
    """
    Looks up the USDC price of the SKILL token.

    Failures never propagate: any connection error, unexpected status,
    or malformed body yields ``None`` ("price unknown").
    """

    def __init__(self, base_url: str, token_address: str, timeout_seconds: int) -> None:
        self._base_url = base_url
        self._token_path = f"/v2/solana/tokens/{token_address}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
        )

    async def get_price(self) -> float | None:
        """Return the current token price in USDC, or None if it cannot be determined."""
        logger = get_logger(__name__)

        try:
            response = await self._client.get(self._token_path)
        except httpx.HTTPError as exc:
            logger.warning(
                "Price API request failed",
                extra={"error": str(exc), "base_url": self._base_url},
            )
            return None

        if response.status_code != 200:
            logger.warning(
                "Price API unexpected status",
                extra={"status_code": response.status_code, "base_url": self._base_url},
            )
            return None

        try:
            body: Any = response.json()
        except ValueError:
            logger.warning("Price API returned invalid JSON", extra={"base_url": self._base_url})
            return None

        data = body.get("data") if isinstance(body, dict) else None
        price = data.get("priceUsdc") if isinstance(data, dict) else None
        if price is None:
            return None

        try:
            return float(price)
        except (TypeError, ValueError):
            logger.warning("Price API returned non-numeric price", extra={"price": price})
            return None

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
