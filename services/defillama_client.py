#!/usr/bin/env python3
"""Client for the DefiLlama yields API."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from analysis.errors import DataUnavailableError
from constants import (
    DEFILLAMA_BACKOFF,
    DEFILLAMA_CACHE_TTL,
    DEFILLAMA_REQUEST_TIMEOUT,
    DEFILLAMA_RETRIES,
    DEFILLAMA_YIELDS_URL,
)

logger = logging.getLogger(__name__)


async def api_get(url: str, session: aiohttp.ClientSession, retries: int = 3, timeout: float = 30,
                  backoff: float = 2.0) -> Optional[Dict]:
    """Makes an async GET request with retries and timeout."""
    for attempt in range(retries):
        try:
            async with session.get(url, timeout=timeout) as response:
                response.raise_for_status()
                return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            if attempt < retries - 1:
                await asyncio.sleep(backoff)
            else:
                logger.error("API request failed after %d attempts: %r", retries, e)
                return None
    return None


def retry_budget(budget: float, retries: int = DEFILLAMA_RETRIES) -> Tuple[float, float]:
    """
    Per-attempt timeout and backoff for a download that must finish within ``budget`` seconds.

    Every attempt plus the pauses between them stays under 90% of the budget, so a caller's
    own timeout never cancels a download that is still retrying.
    """
    backoff = min(DEFILLAMA_BACKOFF, budget / 4)
    request_timeout = min(DEFILLAMA_REQUEST_TIMEOUT, (0.9 * budget - backoff * (retries - 1)) / retries)
    return request_timeout, backoff


class DefiLlamaClient:
    """Fetches the pool list once per cache window and shares it between protocol fetchers."""

    def __init__(self, session: aiohttp.ClientSession, *, url: str = DEFILLAMA_YIELDS_URL,
                 cache_ttl: float = DEFILLAMA_CACHE_TTL, retries: int = DEFILLAMA_RETRIES,
                 request_timeout: float = DEFILLAMA_REQUEST_TIMEOUT, backoff: float = DEFILLAMA_BACKOFF) -> None:
        self._session = session
        self._url = url
        self._cache_ttl = cache_ttl
        self._retries = retries
        self._request_timeout = request_timeout
        self._backoff = backoff
        self._pools: Optional[List[Dict[str, Any]]] = None
        self._fetched_at: float = 0.0
        self._lock = asyncio.Lock()

    @property
    def worst_case_seconds(self) -> float:
        return self._retries * self._request_timeout + (self._retries - 1) * self._backoff

    async def get_pools(self) -> List[Dict[str, Any]]:
        """Returns every pool in the yields payload, served from cache while fresh."""
        async with self._lock:
            now = asyncio.get_running_loop().time()
            if self._pools is not None and now - self._fetched_at < self._cache_ttl:
                return self._pools

            data = await api_get(self._url, self._session, retries=self._retries,
                                 timeout=self._request_timeout, backoff=self._backoff)
            if not data or not isinstance(data.get('data'), list):
                raise DataUnavailableError('defillama', f"no pool data returned from {self._url}")

            self._pools = data['data']
            self._fetched_at = asyncio.get_running_loop().time()
            logger.info("Fetched %d pools from DefiLlama", len(self._pools))
            return self._pools
