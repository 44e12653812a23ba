#!/usr/bin/env python3
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from analysis.errors import InvalidPreferencesError


class YieldCategory(str, Enum):
    LENDING = 'lending'
    LIQUIDITY_MINING = 'liquidity_mining'
    STAKING = 'staking'
    YIELD_FARMING = 'yield_farming'
    LIQUID_STAKING = 'liquid_staking'
    PERPETUAL_FUNDING = 'perpetual_funding'
    SYNTHETIC_ASSETS = 'synthetic_assets'
    DELTA_NEUTRAL = 'delta_neutral'
    OPTIONS_STRATEGIES = 'options_strategies'
    ALGORITHMIC_TRADING = 'algorithmic_trading'


class AuditStatus(str, Enum):
    AUDITED = 'audited'
    PARTIALLY_AUDITED = 'partially_audited'
    UNAUDITED = 'unaudited'


class Priority(str, Enum):
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'
    CRITICAL = 'critical'

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.LOW: 1,
    Priority.MEDIUM: 2,
    Priority.HIGH: 3,
    Priority.CRITICAL: 4,
}


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    text = str(value)
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    return datetime.fromisoformat(text)


@dataclass(frozen=True)
class AssetHolding:
    """A wallet balance with its USD valuation already attached."""
    contract_address: str
    symbol: str
    balance: str
    usd_value: float
    chain_id: Optional[int] = None

    @property
    def balance_decimal(self) -> Decimal:
        try:
            return Decimal(self.balance)
        except (InvalidOperation, TypeError):
            return Decimal(0)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'AssetHolding':
        return cls(
            contract_address=data.get('contractAddress') or data.get('address') or '',
            symbol=str(data['symbol']),
            balance=str(data.get('balance', '0')),
            usd_value=float(data.get('usdValue') or 0.0),
            chain_id=data.get('chainId'),
        )


@dataclass(frozen=True)
class APYHistoryPoint:
    timestamp: float
    apy: float
    tvl: float


@dataclass(frozen=True)
class FeeSchedule:
    deposit: float = 0.0
    withdrawal: float = 0.0
    performance: float = 0.0
    management: Optional[float] = None

    @property
    def entry_exit_total(self) -> float:
        return self.deposit + self.withdrawal


@dataclass(frozen=True)
class OpportunityRequirements:
    min_deposit: float
    fees: FeeSchedule = field(default_factory=FeeSchedule)
    lock_period_days: Optional[int] = None


@dataclass(frozen=True)
class OpportunityActions:
    deposit_target: str
    withdraw_target: str
    claim_target: Optional[str] = None


@dataclass(frozen=True)
class YieldOpportunity:
    """An immutable snapshot of one yield-bearing opportunity on one chain."""
    id: str
    protocol_name: str
    asset: str
    apy: float
    tvl: float
    risk_score: int
    category: YieldCategory
    requirements: OpportunityRequirements
    actions: OpportunityActions
    chain_id: int
    updated_at: datetime
    apy_history: Tuple[APYHistoryPoint, ...] = ()
    audit_status: AuditStatus = AuditStatus.UNAUDITED
    launch_date: Optional[datetime] = None
    auto_compounding: bool = False
    governance_token: Optional[str] = None
    description: str = ''

    def __post_init__(self):
        if not 1 <= self.risk_score <= 10:
            raise ValueError(f"risk_score must be within [1, 10], got {self.risk_score}")
        if self.apy < 0:
            raise ValueError(f"apy must be non-negative, got {self.apy}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'YieldOpportunity':
        """Builds an opportunity from the camelCase payload used by the dashboard API."""
        requirements = data.get('requirements', {})
        fees = requirements.get('fees', {})
        actions = data.get('actions', {})
        info = data.get('additionalInfo', data)
        history = tuple(
            APYHistoryPoint(float(p['timestamp']), float(p['apy']), float(p.get('tvl', 0.0)))
            for p in data.get('apyHistory', [])
        )
        return cls(
            id=str(data['id']),
            protocol_name=data.get('protocolName') or data['protocol'],
            asset=data['asset'],
            apy=float(data['apy']),
            tvl=float(data.get('tvl', 0.0)),
            risk_score=int(data['riskScore']),
            category=YieldCategory(data['category']),
            requirements=OpportunityRequirements(
                min_deposit=float(requirements.get('minDeposit', 0.0)),
                fees=FeeSchedule(
                    deposit=float(fees.get('deposit', 0.0)),
                    withdrawal=float(fees.get('withdrawal', 0.0)),
                    performance=float(fees.get('performance', 0.0)),
                    management=fees.get('management'),
                ),
                lock_period_days=requirements.get('lockPeriodDays', requirements.get('lockPeriod')),
            ),
            actions=OpportunityActions(
                deposit_target=actions.get('depositTarget') or actions.get('deposit', ''),
                withdraw_target=actions.get('withdrawTarget') or actions.get('withdraw', ''),
                claim_target=actions.get('claimTarget') or actions.get('claim'),
            ),
            chain_id=int(data['chainId']),
            updated_at=_parse_datetime(data.get('updatedAt')) or datetime.now(timezone.utc),
            apy_history=history,
            audit_status=AuditStatus(info.get('auditStatus', AuditStatus.UNAUDITED.value)),
            launch_date=_parse_datetime(info.get('launchDate')),
            auto_compounding=bool(info.get('autoCompounding', False)),
            governance_token=info.get('governanceToken'),
            description=data.get('description', ''),
        )


@dataclass(frozen=True)
class OptimizationPreferences:
    """Caller preferences. Every field defaults to "no filtering"."""
    max_risk_level: Optional[int] = None
    preferred_protocols: Tuple[str, ...] = ()
    excluded_protocols: Tuple[str, ...] = ()
    max_lock_period_days: Optional[int] = None
    min_liquidity: Optional[float] = None
    cross_chain_enabled: bool = True
    auto_compound_preference: bool = False
    gas_cost_sensitivity: int = 5

    def validate(self) -> 'OptimizationPreferences':
        if self.max_risk_level is not None and not _is_int_in_range(self.max_risk_level, 1, 10):
            raise InvalidPreferencesError(f"max_risk_level must be an integer in [1, 10], got {self.max_risk_level!r}")
        if not _is_int_in_range(self.gas_cost_sensitivity, 1, 10):
            raise InvalidPreferencesError(f"gas_cost_sensitivity must be an integer in [1, 10], got {self.gas_cost_sensitivity!r}")
        for name in ('max_lock_period_days', 'min_liquidity'):
            value = getattr(self, name)
            if value is not None and (not _is_number(value) or value < 0):
                raise InvalidPreferencesError(f"{name} must be a non-negative number, got {value!r}")
        for name in ('cross_chain_enabled', 'auto_compound_preference'):
            if not isinstance(getattr(self, name), bool):
                raise InvalidPreferencesError(f"{name} must be true or false, got {getattr(self, name)!r}")
        for name in ('preferred_protocols', 'excluded_protocols'):
            values = getattr(self, name)
            if not isinstance(values, (tuple, list, set, frozenset)) or not all(isinstance(v, str) for v in values):
                raise InvalidPreferencesError(f"{name} must be a sequence of protocol names")
        return self

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'OptimizationPreferences':
        known = {
            'maxRiskLevel': 'max_risk_level',
            'preferredProtocols': 'preferred_protocols',
            'excludedProtocols': 'excluded_protocols',
            'maxLockPeriod': 'max_lock_period_days',
            'maxLockPeriodDays': 'max_lock_period_days',
            'minLiquidity': 'min_liquidity',
            'crossChainEnabled': 'cross_chain_enabled',
            'autoCompoundPreference': 'auto_compound_preference',
            'gasCostSensitivity': 'gas_cost_sensitivity',
        }
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            attr = known.get(key, key)
            if attr not in cls.__dataclass_fields__:
                raise InvalidPreferencesError(f"Unknown preference: {key}")
            if attr in ('preferred_protocols', 'excluded_protocols'):
                if value is None:
                    value = ()
                if not isinstance(value, (list, tuple)):
                    raise InvalidPreferencesError(f"{key} must be a list of protocol names")
                value = tuple(value)
            kwargs[attr] = value
        return cls(**kwargs).validate()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int_in_range(value: Any, low: int, high: int) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and low <= value <= high


@dataclass
class RecommendationAction:
    type: str  # 'deposit', 'withdraw', 'swap', 'bridge' or 'compound'
    description: str
    estimated_gas: float
    contract_address: Optional[str] = None


@dataclass
class YieldRecommendation:
    opportunity: YieldOpportunity
    suggested_amount: float
    expected_return: float
    timeframe_days: int
    confidence: float
    priority: Priority
    reasoning: List[str]
    actions: List[RecommendationAction]
    holding_symbol: str = ''


@dataclass
class CrossChainArbitrage:
    id: str
    asset: str
    source_chain_id: int
    target_chain_id: int
    source_apy: float
    target_apy: float
    apy_difference: float
    potential_profit: float
    bridge_cost: float
    net_profit: float
    time_to_break_even_days: float
    risk: int
    bridge_name: str = ''
    target_protocol: str = ''


@dataclass(frozen=True)
class StrategyStep:
    order: int
    action: str
    protocol: str
    chain_id: int
    estimated_gas: float
    expected_outcome: str


@dataclass(frozen=True)
class YieldStrategy:
    id: str
    name: str
    description: str
    expected_apy: float
    risk_level: float
    time_horizon_days: int
    steps: Tuple[StrategyStep, ...]
    total_gas_cost: float
    break_even_time_days: float


@dataclass
class RiskAssessment:
    overall_risk: float
    diversification_score: float
    liquidity_risk: float
    smart_contract_risk: float
    recommendations: List[str]


@dataclass
class PortfolioOptimization:
    current_yield: float
    optimized_yield: float
    potential_gain: float
    recommendations: List[YieldRecommendation]
    risk_assessment: RiskAssessment
    cross_chain_opportunities: List[CrossChainArbitrage]
    yield_strategies: List[YieldStrategy]

    def to_dict(self) -> Dict[str, Any]:
        """Renders the aggregate as JSON-ready data."""
        return _jsonable(asdict(self))


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


@dataclass(frozen=True)
class BridgeRoute:
    name: str
    fee_rate: float
    eta_minutes: int
    max_amount: float


@dataclass(frozen=True)
class ChainInfo:
    chain_id: int
    name: str
    native_symbol: str
    defillama_name: str
