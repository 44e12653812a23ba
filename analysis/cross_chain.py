#!/usr/bin/env python3
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from analysis.matching import best_opportunity_for_asset
from analysis.models import AssetHolding, CrossChainArbitrage, OptimizationPreferences, YieldOpportunity
from analysis.registry import get_bridge_route, other_chains, require_supported_chain
from constants import (
    ARBITRAGE_MAX_BREAK_EVEN_DAYS,
    ARBITRAGE_MIN_APY_SPREAD,
    ARBITRAGE_MIN_HOLDING_USD,
    ARBITRAGE_MIN_RISK,
)

logger = logging.getLogger(__name__)


class CrossChainAnalyzer:
    def __init__(self, bridge_routes: Optional[Dict] = None, min_holding_usd: float = ARBITRAGE_MIN_HOLDING_USD,
                 min_apy_spread: float = ARBITRAGE_MIN_APY_SPREAD):
        self.bridge_routes = bridge_routes
        self.min_holding_usd = min_holding_usd
        self.min_apy_spread = min_apy_spread

    def analyze(
        self,
        holdings: Iterable[AssetHolding],
        source_chain_id: int,
        risk_tolerance: float,
        opportunities_by_chain: Mapping[int, Sequence[YieldOpportunity]],
        preferences: Optional[OptimizationPreferences] = None,
    ) -> List[CrossChainArbitrage]:
        """Finds profitable moves of a holding to a higher-yielding opportunity on another chain."""
        require_supported_chain(source_chain_id)
        results: List[CrossChainArbitrage] = []
        source_opportunities = opportunities_by_chain.get(source_chain_id, ())

        for holding in holdings:
            holding_value = holding.usd_value
            if holding_value < self.min_holding_usd:
                continue

            source_opp = best_opportunity_for_asset(source_opportunities, holding.symbol, risk_tolerance, preferences)
            if source_opp is None:
                continue

            for target_chain_id in other_chains(source_chain_id):
                target_opp = best_opportunity_for_asset(
                    opportunities_by_chain.get(target_chain_id, ()), holding.symbol, risk_tolerance, preferences
                )
                if target_opp is None:
                    continue

                arbitrage = self._evaluate(holding, holding_value, source_opp, target_opp, source_chain_id, target_chain_id)
                if arbitrage:
                    results.append(arbitrage)

        results.sort(key=lambda arb: arb.net_profit, reverse=True)
        return results

    def _evaluate(
        self,
        holding: AssetHolding,
        holding_value: float,
        source_opp: YieldOpportunity,
        target_opp: YieldOpportunity,
        source_chain_id: int,
        target_chain_id: int,
    ) -> Optional[CrossChainArbitrage]:
        if target_opp.apy <= source_opp.apy + self.min_apy_spread:
            return None

        route = get_bridge_route(source_chain_id, target_chain_id, self.bridge_routes)
        if route is None:
            return None
        if holding_value > route.max_amount:
            logger.debug("%s bridge cannot carry $%.2f of %s", route.name, holding_value, holding.symbol)
            return None

        apy_difference = target_opp.apy - source_opp.apy
        bridge_cost = holding_value * route.fee_rate
        annual_profit = holding_value * apy_difference / 100
        net_profit = annual_profit - bridge_cost
        time_to_break_even = bridge_cost / (annual_profit / 365)

        if net_profit <= 0 or time_to_break_even >= ARBITRAGE_MAX_BREAK_EVEN_DAYS:
            return None

        return CrossChainArbitrage(
            id=f"arbitrage-{holding.symbol}-{source_chain_id}-{target_chain_id}",
            asset=holding.symbol,
            source_chain_id=source_chain_id,
            target_chain_id=target_chain_id,
            source_apy=source_opp.apy,
            target_apy=target_opp.apy,
            apy_difference=apy_difference,
            potential_profit=annual_profit,
            bridge_cost=bridge_cost,
            net_profit=net_profit,
            time_to_break_even_days=time_to_break_even,
            risk=max(target_opp.risk_score, ARBITRAGE_MIN_RISK),
            bridge_name=route.name,
            target_protocol=target_opp.protocol_name,
        )
