"""
pricing.py — best-effort market price for a free-text item description.

Backed by SerpApi Google Shopping. Only the label-based strategy uses this;
Google Lens matches already carry their own price signal.

The lookup NEVER raises. A missing key, a network error, an error payload or
an empty result set all resolve to PriceQuote("N/A", "#").

Price preference on the first listing:
  1. price_results.typical_price_range[0]   ("$300 - $350")
  2. price                                  ("$250")
  3. extracted_price                        (250.0)
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import aiohttp

import config
from models import NO_LINK, NOT_AVAILABLE, PriceQuote

logger = logging.getLogger(__name__)

SERPAPI_URL = "https://serpapi.com/search.json"


class PriceLookup:

    def __init__(
        self,
        api_key: Optional[str],
        gl: str = config.SERPAPI_GL,
        hl: str = config.SERPAPI_HL,
        timeout: float = config.HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self._key = api_key
        self._gl = gl
        self._hl = hl
        self._timeout = timeout

    async def price(self, query: str) -> PriceQuote:
        query = (query or "").strip()
        if not query or query == NOT_AVAILABLE:
            return PriceQuote()
        if not self._key:
            logger.warning("SERPAPI_API_KEY is not set — skipping price lookup for '%s'", query)
            return PriceQuote()

        params = {
            "engine":  "google_shopping",
            "q":       query,
            "api_key": self._key,
            "gl":      self._gl,
            "hl":      self._hl,
        }
        try:
            listings = await self._fetch(params)
        except Exception as exc:
            logger.warning("Price lookup failed for '%s': %s", query, exc)
            return PriceQuote()

        if not listings:
            logger.info("No shopping results for '%s'", query)
            return PriceQuote()

        quote = quote_from_listing(listings[0])
        logger.info("Price for '%s' → %s", query, quote.price)
        return quote

    # ── HTTP helper ───────────────────────────────────────────────────────────

    async def _fetch(self, params: dict) -> list:
        async with aiohttp.ClientSession() as session:
            async with session.get(
                SERPAPI_URL,
                params=params,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                if resp.status != 200:
                    text = await resp.text()
                    raise RuntimeError(f"SerpApi error {resp.status}: {text[:200]}")
                data = await resp.json()
        if isinstance(data, dict) and data.get("error"):
            raise RuntimeError(f"SerpApi error: {data['error']}")
        return data.get("shopping_results") or []


# ── Parser ────────────────────────────────────────────────────────────────────

def quote_from_listing(listing: Any) -> PriceQuote:
    if not isinstance(listing, dict):
        return PriceQuote()

    price: Optional[str] = None
    typical = (listing.get("price_results") or {}).get("typical_price_range") or []
    if typical and typical[0]:
        price = str(typical[0])
    elif listing.get("price"):
        price = str(listing["price"])
    elif isinstance(listing.get("extracted_price"), (int, float)):
        price = f"${listing['extracted_price']}"

    link = listing.get("link") or listing.get("product_link") or NO_LINK
    return PriceQuote(price=price or NOT_AVAILABLE, link=str(link))
