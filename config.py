#!/usr/bin/env python3
import os
import argparse
import logging
from typing import NamedTuple, Optional, Sequence

import constants
from analysis.errors import InvalidPreferencesError
from analysis.models import OptimizationPreferences, YieldCategory
from services.fetchers import DEFAULT_PROTOCOL_ORDER, PROTOCOL_PROFILES


class AppConfig(NamedTuple):
    """Typed configuration object."""
    holdings_file: str | None
    chain: str
    chain_id: int
    risk_tolerance: int
    preferences: OptimizationPreferences
    refresh_interval: float
    fetch_timeout: float
    opportunities_file: str | None
    defillama_url: str
    protocols: tuple[str, ...]
    list_top: int | None
    category: str | None
    json_output: bool
    log_level: str


def load_config(argv: Optional[Sequence[str]] = None) -> AppConfig:
    """
    Parses command-line arguments and loads environment variables to create a configuration object.
    """
    parser = argparse.ArgumentParser(
        description="Recommend yield opportunities and cross-chain moves for a set of wallet holdings.",
        epilog="Example: ./main.py --holdings wallet.json --chain ethereum --risk-tolerance 6"
    )
    # --- Input ---
    parser.add_argument('--holdings', help='JSON file with a list of holdings ({contractAddress, symbol, balance, usdValue}).')
    parser.add_argument('--chain', default='ethereum', choices=constants.CHAIN_CONFIG.keys(), help='Chain the holdings live on (default: ethereum).')
    parser.add_argument('--risk-tolerance', type=int, default=5, help='Risk tolerance from 1 (safest) to 10 (default: 5).')

    # --- Preferences ---
    parser.add_argument('--max-risk-level', type=int, help='Hard cap on opportunity risk score (1-10).')
    parser.add_argument('--preferred-protocol', action='append', default=[], help='Only consider this protocol (repeatable).')
    parser.add_argument('--exclude-protocol', action='append', default=[], help='Never consider this protocol (repeatable).')
    parser.add_argument('--max-lock-days', type=int, help='Skip opportunities locked for longer than this many days.')
    parser.add_argument('--min-liquidity', type=float, help='Minimum TVL in USD for an opportunity.')
    parser.add_argument('--no-cross-chain', action='store_true', help='Disable cross-chain arbitrage analysis.')
    parser.add_argument('--auto-compound', action='store_true', help='Prefer auto-compounding opportunities on ties.')
    parser.add_argument('--gas-sensitivity', type=int, default=5, help='Gas cost sensitivity from 1 to 10 (default: 5).')

    # --- Catalog ---
    parser.add_argument('--refresh-interval', type=float, default=constants.CATALOG_REFRESH_INTERVAL, help='Seconds before catalog data is considered stale (default: 300).')
    parser.add_argument('--fetch-timeout', type=float, default=constants.CATALOG_FETCH_TIMEOUT, help='Per-fetcher timeout in seconds (default: 8).')
    parser.add_argument('--opportunities-file', help='Read opportunities from a JSON file instead of DefiLlama.')
    parser.add_argument('--protocol', action='append', choices=sorted(PROTOCOL_PROFILES), help='Protocol fetchers to enable (repeatable; default: all).')

    # --- Output ---
    parser.add_argument('--list-top', type=int, help='List the N highest-APY opportunities and exit.')
    parser.add_argument('--category', choices=[c.value for c in YieldCategory], help='With --list-top, restrict to one category.')
    parser.add_argument('--json', action='store_true', help='Print the optimization result as JSON.')
    parser.add_argument('--log-level', help='Logging level (default: WARNING).')

    args = parser.parse_args(argv)

    if args.list_top is None and not args.holdings:
        parser.error('--holdings is required unless --list-top is specified.')
    if args.list_top is not None and args.list_top <= 0:
        parser.error('--list-top must be positive.')
    if not 1 <= args.risk_tolerance <= 10:
        parser.error('--risk-tolerance must be between 1 and 10.')
    if args.refresh_interval < 0 or args.fetch_timeout <= 0:
        parser.error('--refresh-interval must be non-negative and --fetch-timeout positive.')

    try:
        preferences = OptimizationPreferences(
            max_risk_level=args.max_risk_level,
            preferred_protocols=tuple(args.preferred_protocol),
            excluded_protocols=tuple(args.exclude_protocol),
            max_lock_period_days=args.max_lock_days,
            min_liquidity=args.min_liquidity,
            cross_chain_enabled=not args.no_cross_chain,
            auto_compound_preference=args.auto_compound,
            gas_cost_sensitivity=args.gas_sensitivity,
        ).validate()
    except InvalidPreferencesError as e:
        parser.error(str(e))

    # Load from environment
    defillama_url = os.environ.get(constants.DEFILLAMA_YIELDS_URL_ENV_VAR) or constants.DEFILLAMA_YIELDS_URL
    log_level = (args.log_level or os.environ.get(constants.LOG_LEVEL_ENV_VAR) or 'WARNING').upper()
    if not isinstance(logging.getLevelName(log_level), int):
        parser.error(f'Unknown log level: {log_level}')

    return AppConfig(
        holdings_file=args.holdings,
        chain=args.chain,
        chain_id=int(constants.CHAIN_CONFIG[args.chain]['chainId']),
        risk_tolerance=args.risk_tolerance,
        preferences=preferences,
        refresh_interval=args.refresh_interval,
        fetch_timeout=args.fetch_timeout,
        opportunities_file=args.opportunities_file,
        defillama_url=defillama_url,
        protocols=tuple(args.protocol) if args.protocol else DEFAULT_PROTOCOL_ORDER,
        list_top=args.list_top,
        category=args.category,
        json_output=args.json,
        log_level=log_level,
    )
