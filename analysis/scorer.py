#!/usr/bin/env python3
"""Confidence and priority scoring for yield opportunities."""
from typing import Optional, Tuple

from analysis.models import OptimizationPreferences, Priority, YieldOpportunity
from constants import ESTABLISHED_PROTOCOLS

# (min expected return USD, min confidence, max risk score), highest tier first
PRIORITY_TIERS = (
    (Priority.CRITICAL, 1000.0, 0.8, 4),
    (Priority.HIGH, 250.0, 0.7, 6),
    (Priority.MEDIUM, 50.0, 0.6, 8),
)

GAS_SENSITIVE_THRESHOLD = 7


def confidence(opportunity: YieldOpportunity) -> float:
    """
    Heuristic confidence in [0, 1] that an opportunity will deliver its quoted APY.

    Starts at 0.5 and adds a TVL bucket bonus, a bonus that shrinks as the risk
    score grows, and a reputation bonus for established protocols.
    """
    score = 0.5

    if opportunity.tvl > 1e9:
        score += 0.2
    elif opportunity.tvl > 1e8:
        score += 0.1

    score += (10 - opportunity.risk_score) * 0.03

    if opportunity.protocol_name in ESTABLISHED_PROTOCOLS:
        score += 0.1

    return max(0.0, min(score, 1.0))


def priority(expected_return: float, risk_score: float, confidence_value: float) -> Priority:
    """Classifies a recommendation; higher return and confidence raise it, higher risk lowers it."""
    for tier, min_return, min_confidence, max_risk in PRIORITY_TIERS:
        if expected_return >= min_return and confidence_value >= min_confidence and risk_score <= max_risk:
            return tier
    return Priority.LOW


def ranking_key(opportunity: YieldOpportunity,
                preferences: Optional[OptimizationPreferences] = None) -> Tuple[float, ...]:
    """Ascending sort key: APY desc, confidence desc, then preference tie-breakers."""
    prefs = preferences or OptimizationPreferences()
    key = [-opportunity.apy, -confidence(opportunity)]
    if prefs.auto_compound_preference:
        key.append(0.0 if opportunity.auto_compounding else 1.0)
    if prefs.gas_cost_sensitivity >= GAS_SENSITIVE_THRESHOLD:
        key.append(opportunity.requirements.fees.entry_exit_total)
    return tuple(key)
