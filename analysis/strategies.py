#!/usr/bin/env python3
import math
from typing import Iterable, List, Optional, Sequence

from analysis.models import AssetHolding, CrossChainArbitrage, StrategyStep, YieldOpportunity, YieldStrategy
from constants import (
    AGGRESSIVE_MIN_APY,
    AGGRESSIVE_MIN_TOLERANCE,
    CONSERVATIVE_MAX_RISK,
    CONSERVATIVE_MIN_STABLE_USD,
    CONSERVATIVE_MIN_TOLERANCE,
    CROSS_CHAIN_MIN_TOLERANCE,
    STABLECOIN_ASSET_MARKERS,
    STABLECOIN_SYMBOLS,
)


def _names_stablecoin(asset: str) -> bool:
    return any(stable in asset for stable in STABLECOIN_ASSET_MARKERS)


class StrategySynthesizer:
    """Builds named multi-step strategies from holdings, opportunities and arbitrage results."""

    def synthesize(
        self,
        holdings: Sequence[AssetHolding],
        opportunities: Sequence[YieldOpportunity],
        arbitrage_results: Sequence[CrossChainArbitrage],
        risk_tolerance: float,
    ) -> List[YieldStrategy]:
        strategies = [
            self._conservative_stablecoin(holdings, opportunities, risk_tolerance),
            self._aggressive_yield(opportunities, risk_tolerance),
            self._cross_chain_arbitrage(arbitrage_results, risk_tolerance),
        ]
        found = [strategy for strategy in strategies if strategy is not None]
        found.sort(key=lambda strategy: strategy.expected_apy, reverse=True)
        return found

    def _conservative_stablecoin(
        self,
        holdings: Iterable[AssetHolding],
        opportunities: Sequence[YieldOpportunity],
        risk_tolerance: float,
    ) -> Optional[YieldStrategy]:
        if risk_tolerance < CONSERVATIVE_MIN_TOLERANCE:
            return None

        stable_value = sum(h.usd_value for h in holdings if h.symbol in STABLECOIN_SYMBOLS)
        if stable_value <= CONSERVATIVE_MIN_STABLE_USD:
            return None

        candidates = sorted(
            (opp for opp in opportunities
             if opp.risk_score <= CONSERVATIVE_MAX_RISK and _names_stablecoin(opp.asset)),
            key=lambda opp: opp.apy,
            reverse=True,
        )
        if not candidates:
            return None

        best = candidates[0]
        return YieldStrategy(
            id='conservative-stablecoin',
            name='Conservative Stablecoin Strategy',
            description='Low-risk yield farming with stablecoins across established protocols',
            expected_apy=best.apy,
            risk_level=3,
            time_horizon_days=90,
            steps=(
                StrategyStep(
                    order=1,
                    action=f"Deposit {stable_value:.0f} USD in stablecoins",
                    protocol=best.protocol_name,
                    chain_id=best.chain_id,
                    estimated_gas=0.05,
                    expected_outcome=f"{best.apy:.1f}% APY",
                ),
            ),
            total_gas_cost=0.05,
            break_even_time_days=1,
        )

    def _aggressive_yield(self, opportunities: Sequence[YieldOpportunity], risk_tolerance: float) -> Optional[YieldStrategy]:
        if risk_tolerance < AGGRESSIVE_MIN_TOLERANCE:
            return None

        candidates = sorted(
            (opp for opp in opportunities if opp.apy > AGGRESSIVE_MIN_APY and opp.risk_score <= risk_tolerance),
            key=lambda opp: opp.apy,
            reverse=True,
        )
        if not candidates:
            return None

        best = candidates[0]
        return YieldStrategy(
            id='aggressive-yield-farming',
            name='High-Yield DeFi Strategy',
            description='Maximize returns through high-APY opportunities with managed risk',
            expected_apy=best.apy,
            risk_level=8,
            time_horizon_days=180,
            steps=(
                StrategyStep(
                    order=1,
                    action='Provide liquidity to high-yield pools',
                    protocol=best.protocol_name,
                    chain_id=best.chain_id,
                    estimated_gas=0.1,
                    expected_outcome=f"{best.apy:.1f}% APY with higher volatility",
                ),
                StrategyStep(
                    order=2,
                    action='Monitor and rebalance weekly',
                    protocol='Portfolio Manager',
                    chain_id=best.chain_id,
                    estimated_gas=0.02,
                    expected_outcome='Optimized risk-return profile',
                ),
            ),
            total_gas_cost=0.12,
            break_even_time_days=3,
        )

    def _cross_chain_arbitrage(self, arbitrage_results: Sequence[CrossChainArbitrage],
                               risk_tolerance: float) -> Optional[YieldStrategy]:
        if not arbitrage_results or risk_tolerance < CROSS_CHAIN_MIN_TOLERANCE:
            return None

        best = arbitrage_results[0]
        return YieldStrategy(
            id='cross-chain-arbitrage',
            name='Cross-Chain Yield Arbitrage',
            description='Capture yield differentials across different blockchain networks',
            expected_apy=best.target_apy,
            risk_level=best.risk,
            time_horizon_days=math.ceil(best.time_to_break_even_days + 30),
            steps=(
                StrategyStep(
                    order=1,
                    action=f"Bridge {best.asset} to target chain",
                    protocol=best.bridge_name or 'Bridge',
                    chain_id=best.target_chain_id,
                    estimated_gas=0.1,
                    expected_outcome=f"Assets on chain {best.target_chain_id}",
                ),
                StrategyStep(
                    order=2,
                    action='Deploy to high-yield opportunity',
                    protocol=best.target_protocol or 'Target Protocol',
                    chain_id=best.target_chain_id,
                    estimated_gas=0.05,
                    expected_outcome=f"{best.target_apy:.1f}% APY",
                ),
            ),
            total_gas_cost=0.15,
            break_even_time_days=best.time_to_break_even_days,
        )
