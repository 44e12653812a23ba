#!/usr/bin/env python3
"""Asset matching and preference filtering shared by recommendations and arbitrage."""
from typing import Iterable, List, Optional

from analysis.models import OptimizationPreferences, YieldOpportunity
from analysis.scorer import ranking_key

_WRAPPED_EQUIVALENTS = {('ETH', 'WETH'), ('WETH', 'ETH')}


def matches_asset(opportunity_asset: str, holding_symbol: str) -> bool:
    """Exact match, substring match, or the ETH/WETH equivalence. Symbols are case-sensitive."""
    if not holding_symbol:
        return False
    if opportunity_asset == holding_symbol or holding_symbol in opportunity_asset:
        return True
    return (holding_symbol, opportunity_asset) in _WRAPPED_EQUIVALENTS


def passes_preferences(opportunity: YieldOpportunity,
                       preferences: Optional[OptimizationPreferences]) -> bool:
    if preferences is None:
        return True
    if opportunity.protocol_name in preferences.excluded_protocols:
        return False
    if preferences.preferred_protocols and opportunity.protocol_name not in preferences.preferred_protocols:
        return False
    lock_period = opportunity.requirements.lock_period_days
    if (preferences.max_lock_period_days is not None and lock_period is not None
            and lock_period > preferences.max_lock_period_days):
        return False
    if preferences.min_liquidity is not None and opportunity.tvl < preferences.min_liquidity:
        return False
    return True


def qualifying_opportunities(
    opportunities: Iterable[YieldOpportunity],
    holding_symbol: str,
    risk_tolerance: float,
    preferences: Optional[OptimizationPreferences] = None,
) -> List[YieldOpportunity]:
    """Opportunities for an asset within the risk bound and preferences, best first."""
    matches = [
        opp for opp in opportunities
        if opp.risk_score <= risk_tolerance
        and passes_preferences(opp, preferences)
        and matches_asset(opp.asset, holding_symbol)
    ]
    return sorted(matches, key=lambda opp: ranking_key(opp, preferences))


def best_opportunity_for_asset(
    opportunities: Iterable[YieldOpportunity],
    holding_symbol: str,
    risk_tolerance: float,
    preferences: Optional[OptimizationPreferences] = None,
) -> Optional[YieldOpportunity]:
    ranked = qualifying_opportunities(opportunities, holding_symbol, risk_tolerance, preferences)
    return ranked[0] if ranked else None
