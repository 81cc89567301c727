import re
from decimal import Decimal

import aiohttp
import pytest
from aioresponses import CallbackResult, aioresponses

from core.errors import AuthenticationRejected, TransportError, VenueUnavailable
from core.models import MarketRules, OrderIntent, OrderSide, Venue
from core.order_builder import OrderBuilder
from core.submission import SubmissionPipeline
from exchanges.auth import CLOB_AUTH_FIELDS, CLOB_AUTH_MESSAGE, RequestAuthenticator
from exchanges.clob_client import ClobClient
from exchanges.wallet import LocalAccountWallet, recover_signer
from utils.config_loader import ClobConfig
from tests.conftest import TEST_ADDR, TEST_PRIV

HOST = "https://clob.polymarket.com"
BOOK_URL = re.compile(r"https://clob\.polymarket\.com/book.*")


@pytest.fixture
def no_backoff(monkeypatch):
    sleeps = []

    async def fake_sleep(delay, *args, **kwargs):
        sleeps.append(delay)

    monkeypatch.setattr("exchanges.base_client.asyncio.sleep", fake_sleep)
    return sleeps


async def _signed_order(client):
    intent = OrderIntent(
        venue=Venue.POLYMARKET,
        outcome_token_id="1234567890",
        side=OrderSide.BUY,
        size=Decimal("10"),
        price=Decimal("0.65"),
        wallet_address=TEST_ADDR,
    )
    pipeline = SubmissionPipeline(OrderBuilder(), LocalAccountWallet(TEST_PRIV), client)
    return await pipeline.sign(pipeline.builder.build(intent))


def _client(session, credentials=None, **config):
    authenticator = RequestAuthenticator(credentials, clock=lambda: 1_700_000_000) if credentials else None
    return ClobClient(session, ClobConfig(**config), authenticator=authenticator)


@pytest.mark.asyncio
async def test_orderbook_and_best_price():
    async with aiohttp.ClientSession() as session:
        client = _client(session)
        with aioresponses() as mocked:
            payload = {
                "asset_id": "42",
                "bids": [{"price": "0.40", "size": "10"}, {"price": "0.45", "size": "5"}],
                "asks": [{"price": "0.55", "size": "3"}, {"price": "0.50", "size": "7"}],
            }
            mocked.get(BOOK_URL, payload=payload)
            mocked.get(BOOK_URL, payload=payload)
            book = await client.get_orderbook("42")
            best_ask = await client.best_price("42", OrderSide.BUY)
        await client.rate_limit.close()

    assert book.bids[0].price == 0.45
    assert book.asks[0].price == 0.50
    assert best_ask == 0.50


@pytest.mark.asyncio
async def test_price_market_and_server_time():
    async with aiohttp.ClientSession() as session:
        client = _client(session)
        with aioresponses() as mocked:
            mocked.get(re.compile(r"https://clob\.polymarket\.com/price.*"), payload={"price": "0.515"})
            mocked.get(f"{HOST}/markets/0xcond", payload={"condition_id": "0xcond", "tokens": []})
            mocked.get(f"{HOST}/time", body="1700000000")
            price = await client.get_price("42", OrderSide.SELL)
            market = await client.get_market("0xcond")
            server_time = await client.get_server_time()
            requested = [str(key[1]) for key in mocked.requests]
        await client.rate_limit.close()

    assert price == pytest.approx(0.515)
    assert market["condition_id"] == "0xcond"
    assert server_time == 1_700_000_000
    assert any("side=SELL" in url for url in requested)


@pytest.mark.asyncio
async def test_reads_retry_transient_failures(no_backoff):
    async with aiohttp.ClientSession() as session:
        client = _client(session)
        with aioresponses() as mocked:
            mocked.get(BOOK_URL, status=503, body="busy")
            mocked.get(BOOK_URL, exception=aiohttp.ClientConnectionError("reset"))
            mocked.get(BOOK_URL, payload={"bids": [], "asks": [{"price": "0.5", "size": "1"}]})
            book = await client.get_orderbook("42")
        await client.rate_limit.close()

    assert book.asks[0].price == 0.5
    assert len(no_backoff) >= 2


@pytest.mark.asyncio
async def test_reads_give_up_after_max_retries(no_backoff):
    async with aiohttp.ClientSession() as session:
        client = _client(session)
        with aioresponses() as mocked:
            for _ in range(client.max_retries):
                mocked.get(BOOK_URL, status=500, body="down")
            with pytest.raises(TransportError):
                await client.get_orderbook("42")
        await client.rate_limit.close()


@pytest.mark.asyncio
async def test_read_not_found_is_venue_unavailable():
    async with aiohttp.ClientSession() as session:
        client = _client(session)
        with aioresponses() as mocked:
            mocked.get(BOOK_URL, status=404, payload={"error": "No orderbook exists for the requested token id"})
            with pytest.raises(VenueUnavailable):
                await client.get_orderbook("42")
        await client.rate_limit.close()


@pytest.mark.asyncio
async def test_post_is_never_retried(credentials):
    async with aiohttp.ClientSession() as session:
        client = _client(session, credentials)
        with aioresponses() as mocked:
            mocked.post(f"{HOST}/order", status=503, body="busy")
            mocked.post(f"{HOST}/order", payload={"orderID": "should-not-be-used"})
            signed = await _signed_order(client)
            response = await client.post_order(signed)
            post_calls = [key for key in mocked.requests if key[0] == "POST"]
            call_count = sum(len(mocked.requests[key]) for key in post_calls)
        await client.rate_limit.close()

    assert response.status == 503
    assert response.payload is None
    assert response.text == "busy"
    assert call_count == 1


@pytest.mark.asyncio
async def test_post_network_error_is_transport_error(credentials):
    async with aiohttp.ClientSession() as session:
        client = _client(session, credentials)
        signed = await _signed_order(client)
        with aioresponses() as mocked:
            mocked.post(f"{HOST}/order", exception=aiohttp.ClientConnectionError("refused"))
            with pytest.raises(TransportError):
                await client.post_order(signed)
        await client.rate_limit.close()


@pytest.mark.asyncio
async def test_server_time_used_for_signing_when_configured(credentials):
    captured = {}

    def _capture(url, **kwargs):
        captured["headers"] = kwargs["headers"]
        return CallbackResult(status=200, payload={"orderID": "t-1"})

    async with aiohttp.ClientSession() as session:
        client = _client(session, credentials, use_server_time=True)
        signed = await _signed_order(client)
        with aioresponses() as mocked:
            mocked.get(f"{HOST}/time", body="1700000999")
            mocked.post(f"{HOST}/order", callback=_capture)
            response = await client.post_order(signed)
        await client.rate_limit.close()

    assert response.status == 200
    assert captured["headers"]["POLY_TIMESTAMP"] == "1700000999"


@pytest.mark.asyncio
async def test_api_keys_requires_valid_credentials(credentials):
    async with aiohttp.ClientSession() as session:
        client = _client(session, credentials)
        with aioresponses() as mocked:
            mocked.get(f"{HOST}/auth/api-keys", payload={"apiKeys": ["test-api-key"]})
            mocked.get(f"{HOST}/auth/api-keys", status=401, payload={"error": "Unauthorized/Invalid api key"})
            keys = await client.get_api_keys()
            with pytest.raises(AuthenticationRejected) as exc_info:
                await client.get_api_keys()
        await client.rate_limit.close()

    assert keys == {"apiKeys": ["test-api-key"]}
    assert exc_info.value.status == 401


@pytest.mark.asyncio
async def test_private_call_without_credentials_fails_fast():
    async with aiohttp.ClientSession() as session:
        client = _client(session)
        with pytest.raises(AuthenticationRejected):
            await client.get_api_keys()
        await client.rate_limit.close()


@pytest.mark.asyncio
async def test_market_rules_from_tick_size_and_neg_risk():
    async with aiohttp.ClientSession() as session:
        client = _client(session)
        with aioresponses() as mocked:
            mocked.get(re.compile(r"https://clob\.polymarket\.com/tick-size.*"), payload={"minimum_tick_size": 0.001})
            mocked.get(re.compile(r"https://clob\.polymarket\.com/neg-risk.*"), payload={"neg_risk": True})
            rules = await client.get_market_rules("42")
        await client.rate_limit.close()

    assert rules == MarketRules(tick_size=Decimal("0.001"), neg_risk=True)


@pytest.mark.parametrize("payload", [{}, {"minimum_tick_size": "abc"}, {"minimum_tick_size": 0}])
@pytest.mark.asyncio
async def test_malformed_tick_size_is_transport_error(payload):
    async with aiohttp.ClientSession() as session:
        client = _client(session)
        with aioresponses() as mocked:
            mocked.get(re.compile(r"https://clob\.polymarket\.com/tick-size.*"), payload=payload)
            with pytest.raises(TransportError):
                await client.get_tick_size("42")
        await client.rate_limit.close()


@pytest.mark.asyncio
async def test_signing_timestamp_maps_time_errors(credentials):
    async with aiohttp.ClientSession() as session:
        local = _client(session, credentials)
        local.clock = lambda: 1_700_000_123.9
        remote = _client(session, credentials, use_server_time=True)
        with aioresponses() as mocked:
            mocked.get(f"{HOST}/time", status=404, body="not found")
            mocked.get(f"{HOST}/time", status=401, body="unauthorized")
            assert await local.signing_timestamp() == 1_700_000_123
            with pytest.raises(TransportError):
                await remote.signing_timestamp()
            with pytest.raises(TransportError):
                await remote.signing_timestamp()
        await local.rate_limit.close()
        await remote.rate_limit.close()


@pytest.mark.asyncio
async def test_open_orders_follow_cursor(credentials):
    orders_url = re.compile(r"https://clob\.polymarket\.com/data/orders.*")
    async with aiohttp.ClientSession() as session:
        client = _client(session, credentials)
        with aioresponses() as mocked:
            mocked.get(orders_url, payload={"data": [{"id": "o-1"}, {"id": "o-2"}], "next_cursor": "MTAw"})
            mocked.get(orders_url, payload={"data": [{"id": "o-3"}], "next_cursor": "LTE="})
            orders = await client.get_open_orders(asset_id="42")
            requested = [str(key[1]) for key in mocked.requests]
        await client.rate_limit.close()

    assert [order["id"] for order in orders] == ["o-1", "o-2", "o-3"]
    assert any("next_cursor=MTAw" in url for url in requested)
    assert all("asset_id=42" in url for url in requested)


@pytest.mark.asyncio
async def test_open_orders_need_credentials():
    async with aiohttp.ClientSession() as session:
        client = _client(session)
        with pytest.raises(AuthenticationRejected):
            await client.get_open_orders()
        await client.rate_limit.close()


@pytest.mark.asyncio
async def test_create_api_key_signs_wallet_attestation():
    captured = {}

    def _capture(url, **kwargs):
        captured["headers"] = kwargs["headers"]
        return CallbackResult(status=200, payload={"apiKey": "new-key", "secret": "c2VjcmV0", "passphrase": "pp"})

    wallet = LocalAccountWallet(TEST_PRIV)
    async with aiohttp.ClientSession() as session:
        client = _client(session)
        client.clock = lambda: 1_700_000_000
        with aioresponses() as mocked:
            mocked.post(f"{HOST}/auth/api-key", callback=_capture)
            created = await client.create_or_derive_api_key(wallet)
        await client.rate_limit.close()

    assert created.api_key == "new-key"
    assert created.wallet_address == wallet.address()
    headers = captured["headers"]
    assert headers["POLY_TIMESTAMP"] == "1700000000"
    assert headers["POLY_NONCE"] == "0"
    message = {
        "address": wallet.address(),
        "timestamp": "1700000000",
        "nonce": 0,
        "message": CLOB_AUTH_MESSAGE,
    }
    recovered = recover_signer(
        {"name": "ClobAuthDomain", "version": "1", "chainId": 137},
        {"ClobAuth": CLOB_AUTH_FIELDS},
        message,
        headers["POLY_SIGNATURE"],
    )
    assert recovered == wallet.address()


@pytest.mark.asyncio
async def test_existing_api_key_is_derived():
    wallet = LocalAccountWallet(TEST_PRIV)
    async with aiohttp.ClientSession() as session:
        client = _client(session)
        with aioresponses() as mocked:
            mocked.post(f"{HOST}/auth/api-key", status=400, payload={"error": "Could not create api key"})
            mocked.get(
                f"{HOST}/auth/derive-api-key",
                payload={"apiKey": "old-key", "secret": "c2VjcmV0", "passphrase": "pp"},
            )
            derived = await client.create_or_derive_api_key(wallet)
        await client.rate_limit.close()

    assert derived.api_key == "old-key"
    assert derived.passphrase == "pp"


@pytest.mark.asyncio
async def test_api_key_creation_unauthorized():
    async with aiohttp.ClientSession() as session:
        client = _client(session)
        with aioresponses() as mocked:
            mocked.post(f"{HOST}/auth/api-key", status=401, payload={"error": "Invalid L1 Request headers"})
            with pytest.raises(AuthenticationRejected):
                await client.create_or_derive_api_key(LocalAccountWallet(TEST_PRIV))
        await client.rate_limit.close()
