# optimizer.py
import logging
from typing import List, Optional, Sequence

import aiohttp

from analysis.cross_chain import CrossChainAnalyzer
from analysis.errors import InvalidArgumentError
from analysis.models import (
    AssetHolding,
    OptimizationPreferences,
    PortfolioOptimization,
    YieldCategory,
    YieldOpportunity,
)
from analysis.recommendations import RecommendationGenerator
from analysis.registry import require_supported_chain
from analysis.risk import RiskAssessor
from analysis.strategies import StrategySynthesizer
from catalog import OpportunityCatalog
from config import AppConfig
from services.defillama_client import DefiLlamaClient, retry_budget
from services.fetchers import JsonFileOpportunityFetcher, build_defillama_fetchers

logger = logging.getLogger(__name__)


def _validate_risk_tolerance(risk_tolerance) -> int:
    if isinstance(risk_tolerance, bool) or not isinstance(risk_tolerance, int) or not 1 <= risk_tolerance <= 10:
        raise InvalidArgumentError(f"risk_tolerance must be an integer in [1, 10], got {risk_tolerance!r}")
    return risk_tolerance


class YieldOptimizer:
    """Runs one portfolio optimization against a shared opportunity catalog."""

    def __init__(
        self,
        catalog: OpportunityCatalog,
        generator: Optional[RecommendationGenerator] = None,
        analyzer: Optional[CrossChainAnalyzer] = None,
        synthesizer: Optional[StrategySynthesizer] = None,
        assessor: Optional[RiskAssessor] = None,
    ):
        self.catalog = catalog
        self.generator = generator or RecommendationGenerator()
        self.analyzer = analyzer or CrossChainAnalyzer()
        self.synthesizer = synthesizer or StrategySynthesizer()
        self.assessor = assessor or RiskAssessor()

    async def optimize_portfolio(
        self,
        holdings: Sequence[AssetHolding],
        chain_id: int,
        risk_tolerance: int = 5,
        preferences: Optional[OptimizationPreferences] = None,
    ) -> PortfolioOptimization:
        """
        Produces recommendations, arbitrage, strategies and a risk assessment for the holdings.

        Raises UnsupportedChainError or InvalidArgumentError for malformed top-level
        arguments; every per-holding or per-fetcher problem shows up as an omission.
        """
        require_supported_chain(chain_id)
        _validate_risk_tolerance(risk_tolerance)
        prefs = (preferences or OptimizationPreferences()).validate()
        holdings = tuple(holdings)

        tolerance = risk_tolerance
        if prefs.max_risk_level is not None:
            tolerance = min(tolerance, prefs.max_risk_level)

        opportunities = await self.catalog.get_opportunities(chain_id)
        recommendations = self.generator.generate(holdings, opportunities, tolerance, prefs)

        cross_chain = []
        if prefs.cross_chain_enabled:
            snapshot = await self.catalog.get_snapshot()
            snapshot[chain_id] = opportunities
            cross_chain = self.analyzer.analyze(holdings, chain_id, tolerance, snapshot, prefs)

        strategies = self.synthesizer.synthesize(holdings, opportunities, cross_chain, tolerance)
        risk_assessment = self.assessor.assess(recommendations, tolerance)

        # Deployed positions are not detected yet, so idle holdings count as zero yield.
        current_yield = 0.0
        optimized_yield = sum(rec.expected_return for rec in recommendations)

        logger.info(
            "Optimized %d holdings on chain %d: %d recommendations, %d cross-chain, %d strategies",
            len(holdings), chain_id, len(recommendations), len(cross_chain), len(strategies),
        )
        return PortfolioOptimization(
            current_yield=current_yield,
            optimized_yield=optimized_yield,
            potential_gain=optimized_yield - current_yield,
            recommendations=recommendations,
            risk_assessment=risk_assessment,
            cross_chain_opportunities=cross_chain,
            yield_strategies=strategies,
        )

    def top_opportunities(self, limit: int = 10) -> List[YieldOpportunity]:
        return self.catalog.top_opportunities(limit)

    def opportunities_by_category(self, category: YieldCategory, chain_id: Optional[int] = None) -> List[YieldOpportunity]:
        return self.catalog.opportunities_by_category(category, chain_id)


def build_default_optimizer(session: aiohttp.ClientSession, config: AppConfig) -> YieldOptimizer:
    """Wires the catalog to the configured data source."""
    if config.opportunities_file:
        fetchers = [JsonFileOpportunityFetcher(config.opportunities_file)]
    else:
        request_timeout, backoff = retry_budget(config.fetch_timeout)
        client = DefiLlamaClient(session, url=config.defillama_url, request_timeout=request_timeout, backoff=backoff)
        fetchers = build_defillama_fetchers(client, config.protocols)
    catalog = OpportunityCatalog(
        fetchers,
        refresh_interval=config.refresh_interval,
        fetch_timeout=config.fetch_timeout,
    )
    return YieldOptimizer(catalog)
