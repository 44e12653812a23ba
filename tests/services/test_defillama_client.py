import asyncio

import aiohttp
import pytest

from analysis.errors import DataUnavailableError
from services.defillama_client import DefiLlamaClient, api_get, retry_budget


class FakeResponse:
    def __init__(self, payload=None, error=None):
        self._payload = payload
        self._error = error

    async def __aenter__(self):
        if self._error:
            raise self._error
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def raise_for_status(self):
        pass

    async def json(self):
        return self._payload


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append(url)
        return self.responses.pop(0)


@pytest.fixture
def no_sleep(monkeypatch):
    async def fake_sleep(_delay):
        return None
    monkeypatch.setattr('services.defillama_client.asyncio.sleep', fake_sleep)


@pytest.mark.asyncio
async def test_api_get_returns_json():
    session = FakeSession([FakeResponse({'status': 'success', 'data': []})])
    assert await api_get('https://example.test/pools', session) == {'status': 'success', 'data': []}


@pytest.mark.asyncio
async def test_api_get_retries_then_succeeds(no_sleep):
    session = FakeSession([
        FakeResponse(error=aiohttp.ClientConnectionError('reset')),
        FakeResponse({'data': [1]}),
    ])
    assert await api_get('https://example.test/pools', session, retries=3) == {'data': [1]}
    assert len(session.calls) == 2


@pytest.mark.asyncio
async def test_api_get_gives_up_after_retries(no_sleep):
    session = FakeSession([FakeResponse(error=aiohttp.ClientConnectionError('down')) for _ in range(3)])
    assert await api_get('https://example.test/pools', session, retries=3) is None
    assert len(session.calls) == 3


@pytest.mark.asyncio
async def test_get_pools_caches_within_ttl(monkeypatch):
    calls = []

    async def fake_get(url, session, retries=3, timeout=30, backoff=2.0):
        calls.append(url)
        return {'status': 'success', 'data': [{'pool': 'abc'}]}

    monkeypatch.setattr('services.defillama_client.api_get', fake_get)
    client = DefiLlamaClient(session=None, url='https://example.test/pools', cache_ttl=60)

    first = await client.get_pools()
    second = await client.get_pools()

    assert first == [{'pool': 'abc'}]
    assert second is first
    assert calls == ['https://example.test/pools']


@pytest.mark.asyncio
async def test_get_pools_refetches_when_cache_disabled(monkeypatch):
    calls = []

    async def fake_get(url, session, retries=3, timeout=30, backoff=2.0):
        calls.append(url)
        return {'data': []}

    monkeypatch.setattr('services.defillama_client.api_get', fake_get)
    client = DefiLlamaClient(session=None, cache_ttl=0)
    await client.get_pools()
    await client.get_pools()
    assert len(calls) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize('payload', [None, {}, {'data': 'oops'}])
async def test_get_pools_raises_when_payload_unusable(monkeypatch, payload):
    async def fake_get(url, session, retries=3, timeout=30, backoff=2.0):
        return payload

    monkeypatch.setattr('services.defillama_client.api_get', fake_get)
    client = DefiLlamaClient(session=None)

    with pytest.raises(DataUnavailableError) as excinfo:
        await client.get_pools()
    assert excinfo.value.source == 'defillama'


@pytest.mark.asyncio
async def test_api_get_retries_after_timeout(no_sleep):
    session = FakeSession([FakeResponse(error=asyncio.TimeoutError()), FakeResponse({'data': []})])
    assert await api_get('https://example.test/pools', session, retries=2) == {'data': []}
    assert len(session.calls) == 2


@pytest.mark.asyncio
async def test_get_pools_passes_request_budget(monkeypatch):
    seen = {}

    async def fake_get(url, session, retries=3, timeout=30, backoff=2.0):
        seen.update(retries=retries, timeout=timeout, backoff=backoff)
        return {'data': []}

    monkeypatch.setattr('services.defillama_client.api_get', fake_get)
    client = DefiLlamaClient(session=None, retries=2, request_timeout=3.0, backoff=1.0)
    await client.get_pools()

    assert seen == {'retries': 2, 'timeout': 3.0, 'backoff': 1.0}
    assert client.worst_case_seconds == pytest.approx(7.0)


@pytest.mark.parametrize('budget', [0.5, 1.0, 8.0, 30.0])
@pytest.mark.parametrize('retries', [1, 2, 3])
def test_retry_budget_fits_inside_fetch_timeout(budget, retries):
    request_timeout, backoff = retry_budget(budget, retries)
    assert request_timeout > 0
    assert retries * request_timeout + (retries - 1) * backoff < budget


def test_retry_budget_for_default_fetch_timeout():
    assert retry_budget(8.0) == (3.0, 1.0)
