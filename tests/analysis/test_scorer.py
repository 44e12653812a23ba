import pytest

from analysis.models import FeeSchedule, OptimizationPreferences, OpportunityRequirements, Priority
from analysis.scorer import confidence, priority, ranking_key


def test_confidence_for_established_large_protocol(make_opportunity):
    opp = make_opportunity(tvl=1_200_000_000.0, risk_score=3, protocol_name='Aave')
    # 0.5 + 0.2 (tvl) + 0.21 (risk) + 0.1 (established)
    assert confidence(opp) == pytest.approx(1.0)


def test_confidence_mid_tvl_unknown_protocol(make_opportunity):
    opp = make_opportunity(tvl=250_000_000.0, risk_score=5, protocol_name='Yearn Finance')
    assert confidence(opp) == pytest.approx(0.5 + 0.1 + 0.15)


def test_confidence_small_tvl_gets_no_bucket_bonus(make_opportunity):
    opp = make_opportunity(tvl=50_000_000.0, risk_score=10, protocol_name='Unknown')
    assert confidence(opp) == pytest.approx(0.5)


def test_confidence_tvl_boundaries_are_strict(make_opportunity):
    at_billion = make_opportunity(tvl=1e9, risk_score=10, protocol_name='Unknown')
    at_hundred_million = make_opportunity(tvl=1e8, risk_score=10, protocol_name='Unknown')
    assert confidence(at_billion) == pytest.approx(0.6)
    assert confidence(at_hundred_million) == pytest.approx(0.5)


def test_confidence_is_bounded_and_deterministic(make_opportunity):
    for risk in range(1, 11):
        for tvl in (0.0, 5e8, 5e10):
            opp = make_opportunity(risk_score=risk, tvl=tvl)
            value = confidence(opp)
            assert 0.0 <= value <= 1.0
            assert confidence(opp) == value


def test_higher_risk_never_gets_higher_confidence(make_opportunity):
    for tvl in (0.0, 5e8, 5e10):
        for protocol in ('Aave', 'Unknown'):
            scores = [confidence(make_opportunity(risk_score=r, tvl=tvl, protocol_name=protocol)) for r in range(1, 11)]
            assert all(a >= b for a, b in zip(scores, scores[1:]))


def test_priority_tiers():
    assert priority(2000.0, 3, 0.9) == Priority.CRITICAL
    assert priority(300.0, 5, 0.75) == Priority.HIGH
    assert priority(60.0, 7, 0.65) == Priority.MEDIUM
    assert priority(33.6, 3, 1.0) == Priority.LOW


def test_priority_is_monotone():
    returns = [0.0, 50.0, 250.0, 1000.0, 5000.0]
    confidences = [0.5, 0.6, 0.7, 0.8, 1.0]
    risks = list(range(1, 11))
    for c in confidences:
        for r in risks:
            ranks = [priority(ret, r, c).rank for ret in returns]
            assert ranks == sorted(ranks)
    for ret in returns:
        for r in risks:
            ranks = [priority(ret, r, c).rank for c in confidences]
            assert ranks == sorted(ranks)
        for c in confidences:
            ranks = [priority(ret, r, c).rank for r in risks]
            assert ranks == sorted(ranks, reverse=True)


def test_ranking_key_orders_by_apy_then_confidence(make_opportunity):
    high_apy = make_opportunity(id='a', apy=6.0, risk_score=5)
    safe = make_opportunity(id='b', apy=5.0, risk_score=2)
    risky = make_opportunity(id='c', apy=5.0, risk_score=5)
    ranked = sorted([risky, safe, high_apy], key=ranking_key)
    assert [o.id for o in ranked] == ['a', 'b', 'c']


def test_ranking_key_prefers_auto_compounding_on_ties(make_opportunity):
    manual = make_opportunity(id='manual', auto_compounding=False)
    auto = make_opportunity(id='auto', auto_compounding=True)
    prefs = OptimizationPreferences(auto_compound_preference=True)
    ranked = sorted([manual, auto], key=lambda o: ranking_key(o, prefs))
    assert ranked[0].id == 'auto'


def test_ranking_key_prefers_cheaper_exit_when_gas_sensitive(make_opportunity):
    pricey = make_opportunity(id='pricey', requirements=OpportunityRequirements(1.0, FeeSchedule(withdrawal=0.5)))
    cheap = make_opportunity(id='cheap')
    prefs = OptimizationPreferences(gas_cost_sensitivity=9)
    ranked = sorted([pricey, cheap], key=lambda o: ranking_key(o, prefs))
    assert ranked[0].id == 'cheap'
