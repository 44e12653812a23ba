#!/usr/bin/env python3
import logging
from typing import Iterable, List, Optional, Sequence

from analysis.apy_history import describe_apy_history
from analysis.matching import best_opportunity_for_asset
from analysis.models import (
    AssetHolding,
    OptimizationPreferences,
    RecommendationAction,
    YieldOpportunity,
    YieldRecommendation,
)
from analysis.scorer import confidence, priority
from constants import (
    GAS_ESTIMATES,
    POSITION_SIZE_FRACTION,
    RECOMMENDATION_MIN_HOLDING_USD,
    RECOMMENDATION_TIMEFRAME_DAYS,
)

logger = logging.getLogger(__name__)


def suggested_amount(holding_value: float, opportunity: YieldOpportunity) -> float:
    """Deploys at most 80% of the holding while keeping the minimum deposit in reserve."""
    return min(POSITION_SIZE_FRACTION * holding_value, holding_value - opportunity.requirements.min_deposit)


class RecommendationGenerator:
    def __init__(self, min_holding_usd: float = RECOMMENDATION_MIN_HOLDING_USD):
        self.min_holding_usd = min_holding_usd

    def generate(
        self,
        holdings: Iterable[AssetHolding],
        opportunities: Sequence[YieldOpportunity],
        risk_tolerance: float,
        preferences: Optional[OptimizationPreferences] = None,
    ) -> List[YieldRecommendation]:
        """Matches each holding to its best opportunity and returns recommendations, most urgent first."""
        recommendations: List[YieldRecommendation] = []

        for holding in holdings:
            holding_value = holding.usd_value
            if holding_value < self.min_holding_usd:
                logger.debug("Skipping %s: $%.2f is below the dust floor", holding.symbol, holding_value)
                continue

            best = best_opportunity_for_asset(opportunities, holding.symbol, risk_tolerance, preferences)
            if best is None:
                logger.debug("Skipping %s: no qualifying opportunity", holding.symbol)
                continue

            amount = suggested_amount(holding_value, best)
            if amount <= best.requirements.min_deposit:
                logger.debug(
                    "Skipping %s: $%.2f cannot cover %s minimum deposit of %s",
                    holding.symbol, amount, best.protocol_name, best.requirements.min_deposit,
                )
                continue

            expected_return = amount * best.apy / 100
            confidence_value = confidence(best)
            recommendations.append(YieldRecommendation(
                opportunity=best,
                suggested_amount=amount,
                expected_return=expected_return,
                timeframe_days=RECOMMENDATION_TIMEFRAME_DAYS,
                confidence=confidence_value,
                priority=priority(expected_return, best.risk_score, confidence_value),
                reasoning=self._build_reasoning(best, holding_value, expected_return),
                actions=self._build_actions(holding, best, amount),
                holding_symbol=holding.symbol,
            ))

        recommendations.sort(key=lambda rec: (-rec.priority.rank, -rec.expected_return))
        return recommendations

    def _build_reasoning(self, opportunity: YieldOpportunity, holding_value: float, expected_return: float) -> List[str]:
        reasons = [
            f"{opportunity.protocol_name} offers {opportunity.apy:.2f}% APY on {opportunity.asset}",
            f"Expected return of ${expected_return:,.2f} per year on a ${holding_value:,.2f} holding",
            f"Risk score {opportunity.risk_score}/10 with ${opportunity.tvl:,.0f} TVL",
        ]
        if opportunity.audit_status.value == 'audited':
            reasons.append("Protocol contracts are audited")
        elif opportunity.audit_status.value == 'unaudited':
            reasons.append("Protocol contracts are unaudited")
        if opportunity.auto_compounding:
            reasons.append("Rewards auto-compound")
        if opportunity.requirements.lock_period_days:
            reasons.append(f"Funds are locked for {opportunity.requirements.lock_period_days} days")
        fees = opportunity.requirements.fees
        if fees.performance or fees.entry_exit_total:
            reasons.append(
                f"Fees: {fees.deposit:g}% deposit, {fees.withdrawal:g}% withdrawal, {fees.performance:g}% performance"
            )
        if opportunity.apy_history:
            _, interpretation = describe_apy_history(opportunity.apy_history)
            reasons.append(interpretation)
        return reasons

    def _build_actions(self, holding: AssetHolding, opportunity: YieldOpportunity, amount: float) -> List[RecommendationAction]:
        actions: List[RecommendationAction] = []
        if holding.symbol == 'ETH' and opportunity.asset == 'WETH':
            actions.append(RecommendationAction(
                type='swap',
                description=f"Wrap ${amount:,.2f} of ETH into WETH",
                estimated_gas=GAS_ESTIMATES['swap'],
            ))
        actions.append(RecommendationAction(
            type='deposit',
            description=f"Deposit ${amount:,.2f} of {holding.symbol} into {opportunity.protocol_name}",
            estimated_gas=GAS_ESTIMATES['deposit'],
            contract_address=opportunity.actions.deposit_target,
        ))
        if opportunity.actions.claim_target and not opportunity.auto_compounding:
            actions.append(RecommendationAction(
                type='compound',
                description=f"Claim and re-deposit {opportunity.governance_token or 'reward'} rewards periodically",
                estimated_gas=GAS_ESTIMATES['compound'],
                contract_address=opportunity.actions.claim_target,
            ))
        return actions
