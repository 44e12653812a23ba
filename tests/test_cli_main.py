import json
import sys

import pytest

import main


def _opportunity(id, asset, apy, chain_id=1, category='lending', risk=3):
    return {
        'id': id,
        'protocolName': 'Aave',
        'asset': asset,
        'apy': apy,
        'tvl': 5e8,
        'riskScore': risk,
        'category': category,
        'chainId': chain_id,
        'requirements': {'minDeposit': 1},
        'actions': {'depositTarget': '0x87870Bca3F3fD6335C3F4ce8392D69350B4fA4E2'},
        'additionalInfo': {'auditStatus': 'audited'},
    }


@pytest.fixture
def opportunities_file(tmp_path):
    path = tmp_path / 'opportunities.json'
    path.write_text(json.dumps([
        _opportunity('aave-usdc-1', 'USDC', 4.2),
        _opportunity('lido-steth-1', 'ETH', 3.1, category='liquid_staking', risk=2),
        _opportunity('aave-usdc-42161', 'USDC', 9.0, chain_id=42161),
    ]))
    return path


@pytest.fixture
def holdings_file(tmp_path):
    path = tmp_path / 'wallet.json'
    path.write_text(json.dumps([
        {'contractAddress': '0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48', 'symbol': 'USDC',
         'balance': '10000', 'usdValue': 10000.0},
    ]))
    return path


@pytest.fixture
def reset_sys_argv():
    original = sys.argv.copy()
    yield
    sys.argv = original


@pytest.mark.usefixtures("reset_sys_argv")
def test_list_top_outputs_table(capsys, opportunities_file):
    sys.argv = ["prog", "--list-top", "2", "--opportunities-file", str(opportunities_file)]
    main.main()

    output = capsys.readouterr().out
    assert "Showing up to 2 yield opportunities" in output
    assert "9.00" in output
    assert "4.20" in output
    assert "3.10" not in output


@pytest.mark.usefixtures("reset_sys_argv")
def test_list_top_by_category(capsys, opportunities_file):
    sys.argv = ["prog", "--list-top", "5", "--category", "liquid_staking",
                "--opportunities-file", str(opportunities_file)]
    main.main()

    output = capsys.readouterr().out
    assert "liquid_staking" in output
    assert "4.20" not in output


@pytest.mark.usefixtures("reset_sys_argv")
def test_optimize_prints_report(capsys, opportunities_file, holdings_file):
    sys.argv = ["prog", "--holdings", str(holdings_file), "--risk-tolerance", "6",
                "--opportunities-file", str(opportunities_file)]
    main.main()

    output = capsys.readouterr().out
    assert "Yield optimization for" in output
    assert "Recommendations" in output
    assert "Cross-chain opportunities" in output
    assert "1 -> 42161" in output
    assert "Cross-Chain Yield Arbitrage" in output


@pytest.mark.usefixtures("reset_sys_argv")
def test_optimize_json_output(capsys, opportunities_file, holdings_file):
    sys.argv = ["prog", "--holdings", str(holdings_file), "--json", "--no-cross-chain",
                "--opportunities-file", str(opportunities_file)]
    main.main()

    data = json.loads(capsys.readouterr().out)
    assert data['cross_chain_opportunities'] == []
    assert data['recommendations'][0]['suggested_amount'] == pytest.approx(8000.0)
    assert data['recommendations'][0]['priority'] == 'high'


@pytest.mark.usefixtures("reset_sys_argv")
def test_no_matches_prints_message(capsys, opportunities_file, tmp_path):
    wallet = tmp_path / 'wallet.json'
    wallet.write_text(json.dumps([{'symbol': 'LINK', 'balance': '10', 'usdValue': 150.0}]))
    sys.argv = ["prog", "--holdings", str(wallet), "--opportunities-file", str(opportunities_file)]
    main.main()

    output = capsys.readouterr().out
    assert "No opportunities currently meet your criteria." in output
    assert "No yield opportunities found for current risk tolerance" in output


@pytest.mark.usefixtures("reset_sys_argv")
def test_missing_holdings_file_exits(capsys, opportunities_file, tmp_path):
    sys.argv = ["prog", "--holdings", str(tmp_path / 'missing.json'), "--opportunities-file", str(opportunities_file)]
    with pytest.raises(SystemExit) as excinfo:
        main.main()
    assert excinfo.value.code == 1
    assert "Optimization failed" in capsys.readouterr().out
