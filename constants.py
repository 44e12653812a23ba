#!/usr/bin/env python3
from typing import Dict, FrozenSet, Tuple, Union

# --- ANSI Color Codes ---
C_GREEN = '\033[92m'
C_RED = '\033[91m'
C_YELLOW = '\033[93m'
C_BLUE = '\033[94m'
C_RESET = '\033[0m'

# --- API Configuration ---
DEFILLAMA_YIELDS_URL = 'https://yields.llama.fi/pools'
# Worst case per download is retries * timeout + (retries - 1) * backoff = 7s, inside CATALOG_FETCH_TIMEOUT.
DEFILLAMA_REQUEST_TIMEOUT = 3.0
DEFILLAMA_RETRIES = 2
DEFILLAMA_BACKOFF = 1.0
DEFILLAMA_CACHE_TTL = 60.0

# --- Environment Variable Names ---
DEFILLAMA_YIELDS_URL_ENV_VAR = 'DEFILLAMA_YIELDS_URL'
LOG_LEVEL_ENV_VAR = 'YIELD_ENGINE_LOG_LEVEL'

# --- Chain Registry ---
CHAIN_CONFIG: Dict[str, Dict[str, Union[str, int]]] = {
    'ethereum': {
        'chainId': 1,
        'chainName': 'Ethereum',
        'nativeSymbol': 'ETH',
        'defillamaName': 'Ethereum',
    },
    'bsc': {
        'chainId': 56,
        'chainName': 'BNB Smart Chain',
        'nativeSymbol': 'BNB',
        'defillamaName': 'BSC',
    },
    'polygon': {
        'chainId': 137,
        'chainName': 'Polygon',
        'nativeSymbol': 'MATIC',
        'defillamaName': 'Polygon',
    },
    'arbitrum': {
        'chainId': 42161,
        'chainName': 'Arbitrum One',
        'nativeSymbol': 'ETH',
        'defillamaName': 'Arbitrum',
    },
    'optimism': {
        'chainId': 10,
        'chainName': 'Optimism',
        'nativeSymbol': 'ETH',
        'defillamaName': 'Optimism',
    },
    'avalanche': {
        'chainId': 43114,
        'chainName': 'Avalanche C-Chain',
        'nativeSymbol': 'AVAX',
        'defillamaName': 'Avalanche',
    },
    'base': {
        'chainId': 8453,
        'chainName': 'Base',
        'nativeSymbol': 'ETH',
        'defillamaName': 'Base',
    },
}

SUPPORTED_CHAIN_IDS: Tuple[int, ...] = tuple(int(info['chainId']) for info in CHAIN_CONFIG.values())

# --- Bridge Routes (static; keyed by (source chain id, target chain id)) ---
BRIDGE_ROUTES: Dict[Tuple[int, int], Dict[str, Union[str, float, int]]] = {
    (1, 137): {'name': 'Polygon Bridge', 'feeRate': 0.001, 'etaMinutes': 30, 'maxAmount': 10_000_000},
    (137, 1): {'name': 'Polygon Bridge', 'feeRate': 0.001, 'etaMinutes': 180, 'maxAmount': 10_000_000},
    (1, 42161): {'name': 'Arbitrum Bridge', 'feeRate': 0.0005, 'etaMinutes': 10, 'maxAmount': 5_000_000},
    (42161, 1): {'name': 'Arbitrum Bridge', 'feeRate': 0.0005, 'etaMinutes': 10080, 'maxAmount': 5_000_000},
    (1, 10): {'name': 'Optimism Bridge', 'feeRate': 0.0005, 'etaMinutes': 10, 'maxAmount': 5_000_000},
    (10, 1): {'name': 'Optimism Bridge', 'feeRate': 0.0005, 'etaMinutes': 10080, 'maxAmount': 5_000_000},
    (1, 8453): {'name': 'Base Bridge', 'feeRate': 0.0005, 'etaMinutes': 15, 'maxAmount': 5_000_000},
    (1, 56): {'name': 'Stargate', 'feeRate': 0.0006, 'etaMinutes': 5, 'maxAmount': 2_000_000},
    (1, 43114): {'name': 'Avalanche Bridge', 'feeRate': 0.001, 'etaMinutes': 20, 'maxAmount': 2_000_000},
}

# --- Scoring ---
ESTABLISHED_PROTOCOLS: FrozenSet[str] = frozenset({'Aave', 'Compound', 'Uniswap V3', 'Curve', 'Lido'})
STABLECOIN_SYMBOLS: Tuple[str, ...] = ('USDC', 'USDT', 'DAI', 'BUSD')
# Stablecoin pool markers; narrower than the holding set above (no BUSD).
STABLECOIN_ASSET_MARKERS: Tuple[str, ...] = ('USDC', 'USDT', 'DAI')

# --- Recommendation Thresholds ---
RECOMMENDATION_MIN_HOLDING_USD = 10.0
POSITION_SIZE_FRACTION = 0.8
RECOMMENDATION_TIMEFRAME_DAYS = 365

# --- Cross-Chain Thresholds ---
ARBITRAGE_MIN_HOLDING_USD = 100.0
ARBITRAGE_MIN_APY_SPREAD = 2.0
ARBITRAGE_MAX_BREAK_EVEN_DAYS = 365.0
ARBITRAGE_MIN_RISK = 6

# --- Strategy Thresholds ---
CONSERVATIVE_MIN_STABLE_USD = 1000.0
CONSERVATIVE_MIN_TOLERANCE = 3
CONSERVATIVE_MAX_RISK = 4
AGGRESSIVE_MIN_TOLERANCE = 7
AGGRESSIVE_MIN_APY = 15.0
CROSS_CHAIN_MIN_TOLERANCE = 6

# --- Catalog Defaults ---
CATALOG_REFRESH_INTERVAL = 300.0
CATALOG_FETCH_TIMEOUT = 8.0
APY_HISTORY_MAX_POINTS = 100

# --- Estimated Gas per Action (native token units) ---
GAS_ESTIMATES: Dict[str, float] = {
    'swap': 0.01,
    'deposit': 0.05,
    'compound': 0.02,
    'bridge': 0.1,
    'rebalance': 0.02,
}
