from datetime import datetime, timezone

import pytest

from analysis.models import (
    AssetHolding,
    AuditStatus,
    FeeSchedule,
    OpportunityActions,
    OpportunityRequirements,
    YieldCategory,
    YieldOpportunity,
)


def _base_opportunity(**overrides):
    min_deposit = overrides.pop('min_deposit', 1.0)
    lock_period_days = overrides.pop('lock_period_days', None)
    fees = overrides.pop('fees', FeeSchedule())
    claim_target = overrides.pop('claim_target', None)
    payload = dict(
        id='aave-usdc-1',
        protocol_name='Aave',
        asset='USDC',
        apy=4.2,
        tvl=1_200_000_000.0,
        risk_score=3,
        category=YieldCategory.LENDING,
        requirements=OpportunityRequirements(
            min_deposit=min_deposit,
            fees=fees,
            lock_period_days=lock_period_days,
        ),
        actions=OpportunityActions(
            deposit_target='0x7d2768dE32b0b80b7a3454c06BdAc94A69DDc7A9',
            withdraw_target='0x7d2768dE32b0b80b7a3454c06BdAc94A69DDc7A9',
            claim_target=claim_target,
        ),
        chain_id=1,
        updated_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        audit_status=AuditStatus.AUDITED,
    )
    payload.update(overrides)
    return YieldOpportunity(**payload)


def _base_holding(**overrides):
    payload = dict(
        contract_address='0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48',
        symbol='USDC',
        balance='1000',
        usd_value=1000.0,
    )
    payload.update(overrides)
    return AssetHolding(**payload)


@pytest.fixture
def make_opportunity():
    return _base_opportunity


@pytest.fixture
def make_holding():
    return _base_holding
