#!/usr/bin/env python3
"""Opportunity fetchers: one per protocol data source, plus fixture-backed fetchers."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

from analysis.errors import DataUnavailableError
from analysis.models import (
    AuditStatus,
    FeeSchedule,
    OpportunityActions,
    OpportunityRequirements,
    YieldCategory,
    YieldOpportunity,
)
from analysis.registry import chain_id_for_defillama_name
from services.defillama_client import DefiLlamaClient

logger = logging.getLogger(__name__)

MIN_POOL_TVL_USD = 1_000_000.0


class OpportunityFetcher(Protocol):
    name: str

    async def fetch(self, chain_id: int) -> List[YieldOpportunity]:
        ...


# Protocol profiles: DefiLlama project slugs plus the static metadata the pool feed lacks.
PROTOCOL_PROFILES: Dict[str, Dict[str, Any]] = {
    'aave': {
        'name': 'Aave',
        'projects': ('aave-v3', 'aave-v2'),
        'category': YieldCategory.LENDING,
        'baseRisk': 3,
        'minDeposit': 1.0,
        'fees': FeeSchedule(),
        'auditStatus': AuditStatus.AUDITED,
        'launchDate': datetime(2020, 1, 1, tzinfo=timezone.utc),
        'autoCompounding': False,
        'governanceToken': 'AAVE',
        'contracts': {
            1: {'deposit': '0x87870Bca3F3fD6335C3F4ce8392D69350B4fA4E2'},
            137: {'deposit': '0x794a61358D6845594F94dc1DB02A252b5b4814aD'},
            42161: {'deposit': '0x794a61358D6845594F94dc1DB02A252b5b4814aD'},
            10: {'deposit': '0x794a61358D6845594F94dc1DB02A252b5b4814aD'},
            43114: {'deposit': '0x794a61358D6845594F94dc1DB02A252b5b4814aD'},
            8453: {'deposit': '0xA238Dd80C259a72e81d7e4664a9801593F98d1c5'},
        },
    },
    'compound': {
        'name': 'Compound',
        'projects': ('compound-v3', 'compound-v2'),
        'category': YieldCategory.LENDING,
        'baseRisk': 4,
        'minDeposit': 1.0,
        'fees': FeeSchedule(),
        'auditStatus': AuditStatus.AUDITED,
        'launchDate': datetime(2018, 9, 1, tzinfo=timezone.utc),
        'autoCompounding': False,
        'governanceToken': 'COMP',
        'contracts': {
            1: {'deposit': '0xc3d688B66703497DAA19211EEdff47f25384cdc3'},
        },
    },
    'curve': {
        'name': 'Curve',
        'projects': ('curve-dex',),
        'category': YieldCategory.YIELD_FARMING,
        'baseRisk': 4,
        'minDeposit': 10.0,
        'fees': FeeSchedule(withdrawal=0.04),
        'auditStatus': AuditStatus.AUDITED,
        'launchDate': datetime(2020, 1, 1, tzinfo=timezone.utc),
        'autoCompounding': False,
        'governanceToken': 'CRV',
        'contracts': {
            1: {'deposit': '0xbEbc44782C7dB0a1A60Cb6fe97d0b483032FF1C7'},
        },
    },
    'lido': {
        'name': 'Lido',
        'projects': ('lido',),
        'category': YieldCategory.LIQUID_STAKING,
        'baseRisk': 2,
        'minDeposit': 0.001,
        'fees': FeeSchedule(performance=10.0),
        'auditStatus': AuditStatus.AUDITED,
        'launchDate': datetime(2020, 12, 1, tzinfo=timezone.utc),
        'autoCompounding': True,
        'governanceToken': 'LDO',
        'contracts': {
            1: {'deposit': '0xae7ab96520DE3A18E5e111B5EaAb095312D7fE84'},
        },
    },
    'uniswap': {
        'name': 'Uniswap V3',
        'projects': ('uniswap-v3',),
        'category': YieldCategory.LIQUIDITY_MINING,
        'baseRisk': 4,
        'minDeposit': 100.0,
        'fees': FeeSchedule(),
        'auditStatus': AuditStatus.AUDITED,
        'launchDate': datetime(2021, 5, 5, tzinfo=timezone.utc),
        'autoCompounding': False,
        'governanceToken': 'UNI',
        'contracts': {
            1: {'deposit': '0xC36442b4a4522E871399CD717aBDD847Ab11FE88'},
            137: {'deposit': '0xC36442b4a4522E871399CD717aBDD847Ab11FE88'},
            42161: {'deposit': '0xC36442b4a4522E871399CD717aBDD847Ab11FE88'},
            10: {'deposit': '0xC36442b4a4522E871399CD717aBDD847Ab11FE88'},
        },
    },
    'yearn': {
        'name': 'Yearn Finance',
        'projects': ('yearn-finance',),
        'category': YieldCategory.YIELD_FARMING,
        'baseRisk': 5,
        'minDeposit': 1.0,
        'fees': FeeSchedule(performance=20.0, management=2.0),
        'auditStatus': AuditStatus.AUDITED,
        'launchDate': datetime(2021, 3, 1, tzinfo=timezone.utc),
        'autoCompounding': True,
        'governanceToken': 'YFI',
        'contracts': {},
    },
    'convex': {
        'name': 'Convex Finance',
        'projects': ('convex-finance',),
        'category': YieldCategory.YIELD_FARMING,
        'baseRisk': 5,
        'minDeposit': 10.0,
        'fees': FeeSchedule(performance=17.0),
        'auditStatus': AuditStatus.AUDITED,
        'launchDate': datetime(2021, 5, 1, tzinfo=timezone.utc),
        'autoCompounding': False,
        'governanceToken': 'CVX',
        'contracts': {
            1: {
                'deposit': '0xF403C135812408BFbE8713b5A23a04b3D48AAE31',
                'claim': '0x0A760466E1B4621579a82a39CB56Dda2F4E70f03',
            },
        },
    },
}

DEFAULT_PROTOCOL_ORDER = ('aave', 'compound', 'uniswap', 'curve', 'lido', 'yearn', 'convex')


def _as_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class DefiLlamaProtocolFetcher:
    """Turns one protocol's DefiLlama pools into opportunities for a chain."""

    def __init__(self, client: DefiLlamaClient, profile_key: str, *, min_pool_tvl: float = MIN_POOL_TVL_USD):
        if profile_key not in PROTOCOL_PROFILES:
            raise ValueError(f"Unknown protocol profile: {profile_key}")
        self.client = client
        self.profile = PROTOCOL_PROFILES[profile_key]
        self.name = f"defillama:{profile_key}"
        self.min_pool_tvl = min_pool_tvl

    async def fetch(self, chain_id: int) -> List[YieldOpportunity]:
        pools = await self.client.get_pools()
        projects = self.profile['projects']
        opportunities = []
        for pool in pools:
            if pool.get('project') not in projects:
                continue
            if chain_id_for_defillama_name(str(pool.get('chain', ''))) != chain_id:
                continue
            opportunity = self._pool_to_opportunity(pool, chain_id)
            if opportunity:
                opportunities.append(opportunity)
        return opportunities

    def _risk_score(self, pool: Mapping[str, Any]) -> int:
        risk = self.profile['baseRisk']
        if pool.get('ilRisk') == 'yes':
            risk += 2
        if pool.get('exposure') == 'multi':
            risk += 1
        if pool.get('apyReward') and not pool.get('apyBase'):
            risk += 1
        return max(1, min(risk, 10))

    def _pool_to_opportunity(self, pool: Mapping[str, Any], chain_id: int) -> Optional[YieldOpportunity]:
        apy = _as_float(pool.get('apy'))
        tvl = _as_float(pool.get('tvlUsd'))
        pool_id = pool.get('pool')
        symbol = pool.get('symbol')
        if apy is None or apy < 0 or tvl is None or tvl < self.min_pool_tvl or not pool_id or not symbol:
            return None

        profile = self.profile
        contracts = profile['contracts'].get(chain_id, {})
        deposit_target = contracts.get('deposit') or pool.get('url') or str(pool_id)
        meta = pool.get('poolMeta')
        description = f"{profile['name']} {symbol} pool" + (f" ({meta})" if meta else '')

        return YieldOpportunity(
            id=f"{profile['projects'][0]}-{pool_id}",
            protocol_name=profile['name'],
            asset=str(symbol).replace('-', '/'),
            apy=apy,
            tvl=tvl,
            risk_score=self._risk_score(pool),
            category=profile['category'],
            requirements=OpportunityRequirements(
                min_deposit=profile['minDeposit'],
                fees=profile['fees'],
            ),
            actions=OpportunityActions(
                deposit_target=deposit_target,
                withdraw_target=deposit_target,
                claim_target=contracts.get('claim'),
            ),
            chain_id=chain_id,
            updated_at=datetime.now(timezone.utc),
            audit_status=profile['auditStatus'],
            launch_date=profile['launchDate'],
            auto_compounding=profile['autoCompounding'],
            governance_token=profile['governanceToken'],
            description=description,
        )


def build_defillama_fetchers(client: DefiLlamaClient,
                             protocols: Iterable[str] = DEFAULT_PROTOCOL_ORDER) -> List[DefiLlamaProtocolFetcher]:
    return [DefiLlamaProtocolFetcher(client, key) for key in protocols]


class StaticOpportunityFetcher:
    """Serves a fixed list of opportunities, filtered by chain."""

    def __init__(self, opportunities: Sequence[YieldOpportunity], name: str = 'static'):
        self.name = name
        self._opportunities = tuple(opportunities)

    async def fetch(self, chain_id: int) -> List[YieldOpportunity]:
        return [opp for opp in self._opportunities if opp.chain_id == chain_id]


class JsonFileOpportunityFetcher:
    """Reads opportunities from a JSON file (a list of dashboard-style opportunity objects)."""

    def __init__(self, path: Path | str, name: Optional[str] = None):
        self.path = Path(path)
        self.name = name or f"file:{self.path.name}"

    async def fetch(self, chain_id: int) -> List[YieldOpportunity]:
        try:
            payload = json.loads(self.path.read_text())
            opportunities = [YieldOpportunity.from_dict(item) for item in payload]
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise DataUnavailableError(self.name, str(exc)) from exc
        return [opp for opp in opportunities if opp.chain_id == chain_id]
