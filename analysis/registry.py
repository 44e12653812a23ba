#!/usr/bin/env python3
"""Lookups over the static chain registry and bridge table."""
from typing import Dict, Iterable, Optional

from analysis.errors import UnsupportedChainError
from analysis.models import BridgeRoute, ChainInfo
from constants import BRIDGE_ROUTES, CHAIN_CONFIG


def _build_registry() -> Dict[int, ChainInfo]:
    return {
        int(info['chainId']): ChainInfo(
            chain_id=int(info['chainId']),
            name=str(info['chainName']),
            native_symbol=str(info['nativeSymbol']),
            defillama_name=str(info['defillamaName']),
        )
        for info in CHAIN_CONFIG.values()
    }


CHAIN_REGISTRY: Dict[int, ChainInfo] = _build_registry()


def is_supported_chain(chain_id) -> bool:
    return chain_id in CHAIN_REGISTRY


def require_supported_chain(chain_id) -> ChainInfo:
    """Returns the registry entry or raises UnsupportedChainError."""
    if isinstance(chain_id, bool) or chain_id not in CHAIN_REGISTRY:
        raise UnsupportedChainError(chain_id)
    return CHAIN_REGISTRY[chain_id]


def chain_id_for_name(name: str) -> int:
    info = CHAIN_CONFIG.get(name.lower())
    if not info:
        raise UnsupportedChainError(name)
    return int(info['chainId'])


def chain_id_for_defillama_name(name: str) -> Optional[int]:
    for info in CHAIN_REGISTRY.values():
        if info.defillama_name.lower() == name.lower():
            return info.chain_id
    return None


def get_bridge_route(source_chain_id: int, target_chain_id: int,
                     routes: Optional[Dict] = None) -> Optional[BridgeRoute]:
    table = BRIDGE_ROUTES if routes is None else routes
    route = table.get((source_chain_id, target_chain_id))
    if not route:
        return None
    return BridgeRoute(
        name=str(route['name']),
        fee_rate=float(route['feeRate']),
        eta_minutes=int(route['etaMinutes']),
        max_amount=float(route['maxAmount']),
    )


def other_chains(chain_id: int, chain_ids: Optional[Iterable[int]] = None) -> list[int]:
    candidates = CHAIN_REGISTRY.keys() if chain_ids is None else chain_ids
    return [cid for cid in candidates if cid != chain_id]
