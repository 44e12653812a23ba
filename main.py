#!/usr/bin/env python3
import asyncio
import json
import logging
from pathlib import Path
from typing import List

import aiohttp

import constants
from analysis.models import AssetHolding, PortfolioOptimization, YieldCategory, YieldOpportunity
from config import AppConfig, load_config
from optimizer import build_default_optimizer


def load_holdings(path: str) -> List[AssetHolding]:
    """Reads a wallet holdings export: a JSON list of {contractAddress, symbol, balance, usdValue}."""
    payload = json.loads(Path(path).read_text())
    return [AssetHolding.from_dict(item) for item in payload]


async def run(config: AppConfig) -> None:
    async with aiohttp.ClientSession(headers={'User-Agent': 'DefiYieldEngine/1.0'}) as session:
        optimizer = build_default_optimizer(session, config)

        if config.list_top is not None:
            await optimizer.catalog.get_snapshot()
            if config.category:
                opportunities = optimizer.opportunities_by_category(YieldCategory(config.category))[:config.list_top]
            else:
                opportunities = optimizer.top_opportunities(config.list_top)
            _print_opportunities(opportunities, config.list_top)
            return

        holdings = load_holdings(config.holdings_file)
        result = await optimizer.optimize_portfolio(
            holdings,
            config.chain_id,
            config.risk_tolerance,
            config.preferences,
        )

    if config.json_output:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        _print_optimization(result, config)


def main() -> None:
    """The main synchronous entry point for the application."""
    config = load_config()
    logging.basicConfig(
        level=config.log_level,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    try:
        asyncio.run(run(config))
    except (OSError, ValueError) as exc:
        print(f"{constants.C_RED}Optimization failed: {exc}{constants.C_RESET}")
        raise SystemExit(1)


def _print_opportunities(opportunities: List[YieldOpportunity], limit: int) -> None:
    heading = f"Showing up to {limit} yield opportunities"
    print(heading)
    print("=" * len(heading))

    if not opportunities:
        print("No opportunities in the catalog.")
        return

    headers = ["Protocol", "Asset", "Chain", "APY %", "TVL $", "Risk", "Category"]
    rows = [
        [
            opp.protocol_name,
            opp.asset,
            str(opp.chain_id),
            f"{opp.apy:.2f}",
            f"{opp.tvl:,.0f}",
            str(opp.risk_score),
            opp.category.value,
        ]
        for opp in opportunities
    ]
    _print_table(headers, rows)


def _print_optimization(result: PortfolioOptimization, config: AppConfig) -> None:
    chain_label = constants.CHAIN_CONFIG[config.chain]['chainName']
    print(f"Yield optimization for {constants.C_BLUE}{chain_label}{constants.C_RESET} (risk tolerance {config.risk_tolerance}/10)")
    print("=" * 60)
    print(f"Optimized yield: {constants.C_GREEN}${result.optimized_yield:,.2f}/yr{constants.C_RESET}"
          f"  (potential gain ${result.potential_gain:,.2f})")

    print("\nRecommendations")
    print("-" * 40)
    if not result.recommendations:
        print("No opportunities currently meet your criteria.")
    else:
        rows = [
            [
                rec.holding_symbol,
                rec.opportunity.protocol_name,
                rec.opportunity.asset,
                f"{rec.opportunity.apy:.2f}",
                f"{rec.suggested_amount:,.2f}",
                f"{rec.expected_return:,.2f}",
                f"{rec.confidence:.2f}",
                rec.priority.value,
            ]
            for rec in result.recommendations
        ]
        _print_table(["Holding", "Protocol", "Asset", "APY %", "Amount $", "Return $", "Conf", "Priority"], rows)

    if result.cross_chain_opportunities:
        print("\nCross-chain opportunities")
        print("-" * 40)
        rows = [
            [
                arb.asset,
                f"{arb.source_chain_id} -> {arb.target_chain_id}",
                f"{arb.apy_difference:.2f}",
                f"{arb.bridge_cost:,.2f}",
                f"{arb.net_profit:,.2f}",
                f"{arb.time_to_break_even_days:.1f}",
                str(arb.risk),
            ]
            for arb in result.cross_chain_opportunities
        ]
        _print_table(["Asset", "Route", "Spread", "Bridge $", "Net $", "Break-even d", "Risk"], rows)

    if result.yield_strategies:
        print("\nStrategies")
        print("-" * 40)
        for strategy in result.yield_strategies:
            print(f"{constants.C_YELLOW}{strategy.name}{constants.C_RESET}: {strategy.expected_apy:.1f}% APY, risk {strategy.risk_level}")
            for step in strategy.steps:
                print(f"  {step.order}. {step.action} [{step.protocol}] -> {step.expected_outcome}")

    assessment = result.risk_assessment
    print("\nRisk assessment")
    print("-" * 40)
    print(f"Overall {assessment.overall_risk:.1f}/10, diversification {assessment.diversification_score:.2f}, "
          f"liquidity {assessment.liquidity_risk}/10, smart contract {assessment.smart_contract_risk:.1f}/10")
    for note in assessment.recommendations:
        print(f"{constants.C_YELLOW}- {note}{constants.C_RESET}")


def _print_table(headers: List[str], rows: List[List[str]]) -> None:
    widths = [len(h) for h in headers]
    for row in rows:
        for idx, cell in enumerate(row):
            widths[idx] = max(widths[idx], len(cell))

    def _format_line(row: List[str]) -> str:
        return "  ".join(cell.ljust(widths[idx]) for idx, cell in enumerate(row))

    print(_format_line(headers))
    print("  ".join('-' * w for w in widths))
    for row in rows:
        print(_format_line(row))


if __name__ == "__main__":
    main()
