# catalog.py
import asyncio
import logging
import time
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from analysis.errors import UnsupportedChainError
from analysis.models import APYHistoryPoint, YieldCategory, YieldOpportunity
from analysis.registry import require_supported_chain
from constants import APY_HISTORY_MAX_POINTS, CATALOG_FETCH_TIMEOUT, CATALOG_REFRESH_INTERVAL, SUPPORTED_CHAIN_IDS
from services.fetchers import OpportunityFetcher

logger = logging.getLogger(__name__)


class OpportunityCatalog:
    """
    Per-chain cache of yield opportunities, refreshed from protocol fetchers.

    Each chain's list is an immutable snapshot that is replaced wholesale on refresh.
    A chain is refreshed when it has never been loaded, when its data is older than
    ``refresh_interval`` seconds, or when a caller forces it.
    """

    def __init__(
        self,
        fetchers: Sequence[OpportunityFetcher],
        chain_ids: Optional[Iterable[int]] = None,
        refresh_interval: float = CATALOG_REFRESH_INTERVAL,
        fetch_timeout: float = CATALOG_FETCH_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.fetchers = tuple(fetchers)
        self.chain_ids: Tuple[int, ...] = tuple(chain_ids) if chain_ids is not None else SUPPORTED_CHAIN_IDS
        for chain_id in self.chain_ids:
            require_supported_chain(chain_id)
        self.refresh_interval = refresh_interval
        self.fetch_timeout = fetch_timeout
        self._clock = clock
        self._opportunities: Dict[int, Tuple[YieldOpportunity, ...]] = {}
        self._last_refresh: Dict[int, float] = {}
        self._apy_history: Dict[str, List[APYHistoryPoint]] = {}
        self._locks: Dict[int, asyncio.Lock] = {chain_id: asyncio.Lock() for chain_id in self.chain_ids}

    def _check_chain(self, chain_id: int) -> None:
        require_supported_chain(chain_id)
        if chain_id not in self._locks:
            raise UnsupportedChainError(chain_id)

    def _is_stale(self, chain_id: int) -> bool:
        last = self._last_refresh.get(chain_id)
        return last is None or self._clock() - last > self.refresh_interval

    def last_refresh(self, chain_id: int) -> Optional[float]:
        return self._last_refresh.get(chain_id)

    async def get_opportunities(self, chain_id: int, force_refresh: bool = False) -> List[YieldOpportunity]:
        """Returns the chain's opportunities, refreshing first if stale or forced."""
        self._check_chain(chain_id)
        if force_refresh or self._is_stale(chain_id):
            await self._refresh_chains([chain_id], force_refresh)
        return list(self._opportunities.get(chain_id, ()))

    async def get_snapshot(self, chain_ids: Optional[Iterable[int]] = None,
                           force_refresh: bool = False) -> Dict[int, List[YieldOpportunity]]:
        """Reads several chains at once; stale chains are refreshed concurrently."""
        ids = list(chain_ids) if chain_ids is not None else list(self.chain_ids)
        for chain_id in ids:
            self._check_chain(chain_id)
        stale = [chain_id for chain_id in ids if force_refresh or self._is_stale(chain_id)]
        if stale:
            await self._refresh_chains(stale, force_refresh)
        return {chain_id: list(self._opportunities.get(chain_id, ())) for chain_id in ids}

    async def refresh(self, chain_ids: Optional[Iterable[int]] = None) -> None:
        ids = list(chain_ids) if chain_ids is not None else list(self.chain_ids)
        for chain_id in ids:
            self._check_chain(chain_id)
        await self._refresh_chains(ids, force=True)

    async def _refresh_chains(self, chain_ids: Sequence[int], force: bool) -> None:
        await asyncio.gather(*(self._refresh_chain(chain_id, force) for chain_id in chain_ids))

    async def _refresh_chain(self, chain_id: int, force: bool) -> None:
        async with self._locks[chain_id]:
            # Another reader may have refreshed while we waited for the lock.
            if not force and not self._is_stale(chain_id):
                return

            results = await asyncio.gather(*(self._run_fetcher(fetcher, chain_id) for fetcher in self.fetchers))
            observed_at = time.time()
            snapshot = tuple(
                self._attach_history(opportunity, observed_at)
                for batch in results
                for opportunity in batch
            )
            self._opportunities[chain_id] = snapshot
            self._last_refresh[chain_id] = self._clock()
            logger.info("Catalog refreshed chain %d: %d opportunities from %d fetchers",
                        chain_id, len(snapshot), len(self.fetchers))

    async def _run_fetcher(self, fetcher: OpportunityFetcher, chain_id: int) -> List[YieldOpportunity]:
        name = getattr(fetcher, 'name', type(fetcher).__name__)
        try:
            batch = await asyncio.wait_for(fetcher.fetch(chain_id), timeout=self.fetch_timeout)
        except asyncio.TimeoutError:
            logger.warning("Fetcher %s timed out after %.1fs on chain %d", name, self.fetch_timeout, chain_id)
            return []
        except Exception as e:
            logger.warning("Fetcher %s failed on chain %d: %s", name, chain_id, e)
            return []

        accepted = [opportunity for opportunity in batch if opportunity.chain_id == chain_id]
        if len(accepted) != len(batch):
            logger.warning("Fetcher %s returned %d opportunities for other chains; dropped",
                           name, len(batch) - len(accepted))
        return accepted

    def _attach_history(self, opportunity: YieldOpportunity, observed_at: float) -> YieldOpportunity:
        history = self._apy_history.setdefault(opportunity.id, [])
        history.insert(0, APYHistoryPoint(timestamp=observed_at, apy=opportunity.apy, tvl=opportunity.tvl))
        del history[APY_HISTORY_MAX_POINTS:]
        if opportunity.apy_history:
            return opportunity
        return replace(opportunity, apy_history=tuple(history))

    def apy_history(self, opportunity: YieldOpportunity) -> List[APYHistoryPoint]:
        """Observed APY points for an opportunity, newest first."""
        return list(self._apy_history.get(opportunity.id, ()))

    def _cached(self, chain_id: Optional[int] = None) -> List[YieldOpportunity]:
        if chain_id is not None:
            self._check_chain(chain_id)
            return list(self._opportunities.get(chain_id, ()))
        return [opportunity for snapshot in self._opportunities.values() for opportunity in snapshot]

    def top_opportunities(self, limit: int = 10) -> List[YieldOpportunity]:
        """Highest-APY opportunities across every cached chain."""
        return sorted(self._cached(), key=lambda opp: opp.apy, reverse=True)[:limit]

    def opportunities_by_category(self, category: YieldCategory, chain_id: Optional[int] = None) -> List[YieldOpportunity]:
        matches = [opp for opp in self._cached(chain_id) if opp.category == category]
        return sorted(matches, key=lambda opp: opp.apy, reverse=True)
