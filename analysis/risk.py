#!/usr/bin/env python3
from typing import Sequence

from analysis.models import RiskAssessment, YieldRecommendation

NO_OPPORTUNITIES_NOTE = 'No yield opportunities found for current risk tolerance'
DIVERSIFICATION_NOTE = 'Consider diversifying across more protocols'
RISK_EXCEEDED_NOTE = 'Some recommendations exceed your risk tolerance'
LIQUIDITY_NOTE = 'Be aware of lock-up periods that may affect liquidity'

LOCKED_LIQUIDITY_RISK = 7
LIQUID_LIQUIDITY_RISK = 3
LOCK_PERIOD_THRESHOLD_DAYS = 30
PROTOCOLS_FOR_FULL_DIVERSIFICATION = 5


def no_opportunities_assessment() -> RiskAssessment:
    return RiskAssessment(
        overall_risk=1,
        diversification_score=0,
        liquidity_risk=1,
        smart_contract_risk=1,
        recommendations=[NO_OPPORTUNITIES_NOTE],
    )


class RiskAssessor:
    def assess(self, recommendations: Sequence[YieldRecommendation], risk_tolerance: float) -> RiskAssessment:
        """Aggregates recommendation-level risk into portfolio-level metrics."""
        if not recommendations:
            return no_opportunities_assessment()

        overall_risk = sum(rec.opportunity.risk_score for rec in recommendations) / len(recommendations)
        protocol_count = len({rec.opportunity.protocol_name for rec in recommendations})
        diversification_score = min(protocol_count / PROTOCOLS_FOR_FULL_DIVERSIFICATION, 1.0)

        has_long_lock = any(
            (rec.opportunity.requirements.lock_period_days or 0) > LOCK_PERIOD_THRESHOLD_DAYS
            for rec in recommendations
        )
        liquidity_risk = LOCKED_LIQUIDITY_RISK if has_long_lock else LIQUID_LIQUIDITY_RISK

        # Coarse proxy: no per-contract data yet, so this mirrors overall_risk.
        smart_contract_risk = overall_risk

        notes = []
        if diversification_score < 0.5:
            notes.append(DIVERSIFICATION_NOTE)
        if overall_risk > risk_tolerance:
            notes.append(RISK_EXCEEDED_NOTE)
        if liquidity_risk > 5:
            notes.append(LIQUIDITY_NOTE)

        return RiskAssessment(
            overall_risk=overall_risk,
            diversification_score=diversification_score,
            liquidity_risk=liquidity_risk,
            smart_contract_risk=smart_contract_risk,
            recommendations=notes,
        )
