import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from analysis.errors import DataUnavailableError
from analysis.models import AuditStatus, YieldCategory
from services.fetchers import (
    DEFAULT_PROTOCOL_ORDER,
    DefiLlamaProtocolFetcher,
    JsonFileOpportunityFetcher,
    StaticOpportunityFetcher,
    build_defillama_fetchers,
)


def _pool(**overrides):
    pool = {
        'pool': 'aa70268e-4b52-42bf-a116-608b370f9501',
        'chain': 'Ethereum',
        'project': 'aave-v3',
        'symbol': 'USDC',
        'tvlUsd': 250_000_000,
        'apy': 4.5,
        'apyBase': 4.5,
        'apyReward': None,
        'ilRisk': 'no',
        'exposure': 'single',
        'poolMeta': None,
    }
    pool.update(overrides)
    return pool


def _client(pools):
    client = MagicMock()
    client.get_pools = AsyncMock(return_value=pools)
    return client


@pytest.mark.asyncio
async def test_fetch_maps_pool_to_opportunity():
    fetcher = DefiLlamaProtocolFetcher(_client([_pool()]), 'aave')

    opportunities = await fetcher.fetch(1)

    assert fetcher.name == 'defillama:aave'
    assert len(opportunities) == 1
    opp = opportunities[0]
    assert opp.id == 'aave-v3-aa70268e-4b52-42bf-a116-608b370f9501'
    assert opp.protocol_name == 'Aave'
    assert opp.asset == 'USDC'
    assert opp.apy == 4.5
    assert opp.tvl == 250_000_000.0
    assert opp.risk_score == 3
    assert opp.category is YieldCategory.LENDING
    assert opp.audit_status is AuditStatus.AUDITED
    assert opp.chain_id == 1
    assert opp.actions.deposit_target == '0x87870Bca3F3fD6335C3F4ce8392D69350B4fA4E2'
    assert opp.governance_token == 'AAVE'


@pytest.mark.asyncio
async def test_fetch_filters_by_project_chain_and_tvl():
    pools = [
        _pool(pool='a'),
        _pool(pool='b', project='compound-v3'),
        _pool(pool='c', chain='Polygon'),
        _pool(pool='d', tvlUsd=10_000),
        _pool(pool='e', apy=None),
        _pool(pool='f', chain='Fantom'),
        _pool(pool='g', project='aave-v2'),
    ]
    fetcher = DefiLlamaProtocolFetcher(_client(pools), 'aave')
    assert [o.id for o in await fetcher.fetch(1)] == ['aave-v3-a', 'aave-v3-g']
    assert [o.id for o in await fetcher.fetch(137)] == ['aave-v3-c']


@pytest.mark.asyncio
async def test_risk_adjustments_are_clamped():
    pools = [
        _pool(pool='lp', project='uniswap-v3', symbol='WETH-USDC', ilRisk='yes', exposure='multi'),
        _pool(pool='reward', project='uniswap-v3', symbol='ARB-WETH', ilRisk='yes', exposure='multi',
              apyBase=None, apyReward=30.0),
    ]
    fetcher = DefiLlamaProtocolFetcher(_client(pools), 'uniswap')
    by_id = {o.id: o for o in await fetcher.fetch(1)}
    assert by_id['uniswap-v3-lp'].risk_score == 7
    assert by_id['uniswap-v3-lp'].asset == 'WETH/USDC'
    assert by_id['uniswap-v3-reward'].risk_score == 8


@pytest.mark.asyncio
async def test_deposit_target_falls_back_to_pool_url():
    pool = _pool(project='yearn-finance', url='https://yearn.fi/vaults/1/0xabc')
    opp = (await DefiLlamaProtocolFetcher(_client([pool]), 'yearn').fetch(1))[0]
    assert opp.actions.deposit_target == 'https://yearn.fi/vaults/1/0xabc'
    assert opp.auto_compounding is True


@pytest.mark.asyncio
async def test_claim_target_from_profile():
    pool = _pool(project='convex-finance', symbol='CRVUSD-USDC', poolMeta='crvUSD/USDC')
    opp = (await DefiLlamaProtocolFetcher(_client([pool]), 'convex').fetch(1))[0]
    assert opp.actions.claim_target == '0x0A760466E1B4621579a82a39CB56Dda2F4E70f03'
    assert opp.description == 'Convex Finance CRVUSD-USDC pool (crvUSD/USDC)'


@pytest.mark.asyncio
async def test_client_errors_propagate():
    client = MagicMock()
    client.get_pools = AsyncMock(side_effect=DataUnavailableError('defillama', 'down'))
    with pytest.raises(DataUnavailableError):
        await DefiLlamaProtocolFetcher(client, 'aave').fetch(1)


def test_unknown_profile_rejected():
    with pytest.raises(ValueError):
        DefiLlamaProtocolFetcher(_client([]), 'sushiswap')


def test_build_defillama_fetchers_defaults_to_all_profiles():
    fetchers = build_defillama_fetchers(_client([]))
    assert [f.name for f in fetchers] == [f"defillama:{key}" for key in DEFAULT_PROTOCOL_ORDER]
    assert [f.name for f in build_defillama_fetchers(_client([]), ['lido'])] == ['defillama:lido']


@pytest.mark.asyncio
async def test_static_fetcher_filters_chain(make_opportunity):
    fetcher = StaticOpportunityFetcher([make_opportunity(), make_opportunity(id='poly', chain_id=137)])
    assert [o.id for o in await fetcher.fetch(137)] == ['poly']
    assert await fetcher.fetch(10) == []


@pytest.mark.asyncio
async def test_json_file_fetcher(tmp_path):
    path = tmp_path / 'opportunities.json'
    path.write_text(json.dumps([
        {
            'id': 'compound-usdc-1', 'protocolName': 'Compound', 'asset': 'USDC', 'apy': 3.8,
            'tvl': 8e8, 'riskScore': 3, 'category': 'lending', 'chainId': 1,
            'requirements': {'minDeposit': 1}, 'actions': {'depositTarget': '0xc3d6'},
        },
        {
            'id': 'aave-usdc-137', 'protocolName': 'Aave', 'asset': 'USDC', 'apy': 5.1,
            'tvl': 2e8, 'riskScore': 3, 'category': 'lending', 'chainId': 137,
            'requirements': {'minDeposit': 1}, 'actions': {'depositTarget': '0x794a'},
        },
    ]))
    fetcher = JsonFileOpportunityFetcher(path)
    assert fetcher.name == 'file:opportunities.json'
    assert [o.id for o in await fetcher.fetch(1)] == ['compound-usdc-1']


@pytest.mark.asyncio
@pytest.mark.parametrize('content', [None, 'not json', '[{"id": "x"}]'])
async def test_json_file_fetcher_wraps_errors(tmp_path, content):
    path = tmp_path / 'opportunities.json'
    if content is not None:
        path.write_text(content)
    with pytest.raises(DataUnavailableError):
        await JsonFileOpportunityFetcher(path).fetch(1)
