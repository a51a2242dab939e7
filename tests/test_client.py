"""
Tests for the WarpClient facade.
"""
import pytest

from warp_sdk import WarpClient
from warp_sdk.config import AccountConfig, ProtocolConfig
from warp_sdk.exceptions import AccountProviderMissingError
from warp_sdk.models import Call, IntentResult, Transaction

from conftest import BASE, TEST_ACCOUNT, TEST_ORCHESTRATOR_URL, TEST_TARGET, TEST_TOKEN, make_order_path_json

PATH_URL = f"{TEST_ORCHESTRATOR_URL}/accounts/{TEST_ACCOUNT}/bundles/path"
BASE_SEPOLIA = 84532


@pytest.fixture
def client(config):
    return WarpClient(config)


def test_rejects_plain_http_orchestrator(config):
    config.orchestrator_url = "http://orchestrator.example.com"
    with pytest.raises(ValueError, match="orchestrator_url must use https://"):
        WarpClient(config)


def test_rejects_plain_http_bundler(config):
    config.bundler_urls = {BASE: "http://bundler.example.com"}
    with pytest.raises(ValueError, match=r"bundler_urls\[8453\] must use https://"):
        WarpClient(config)


@pytest.mark.parametrize("url", ["http://localhost:8080", "http://127.0.0.1:3000/api"])
def test_allows_local_http(config, url):
    config.orchestrator_url = url
    config.bundler_urls = {BASE: url}
    WarpClient(config)


def test_address(client):
    assert client.address == TEST_ACCOUNT


def test_address_without_account():
    client = WarpClient(AccountConfig())
    with pytest.raises(AccountProviderMissingError):
        client.address


def test_default_orchestrator_url(config):
    config.orchestrator_url = None
    client = WarpClient(config)
    assert client.orchestrator.base_url == ProtocolConfig.get_protocol().production_url
    assert client.orchestrator.api_key == config.api_key


def test_send_transaction(client, requests_mock):
    requests_mock.post(PATH_URL, json=make_order_path_json())
    requests_mock.post(f"{TEST_ORCHESTRATOR_URL}/bundles", json={"bundleResults": [{"bundleId": "55"}]})
    requests_mock.get(f"{TEST_ORCHESTRATOR_URL}/bundles/55", json={"status": "COMPLETED"})

    tx = Transaction(chain=BASE, calls=(Call(to=TEST_TARGET, data="0x"),))
    result = client.send_transaction(tx)
    assert result == IntentResult(id=55, source_chain=BASE, target_chain=BASE)
    assert client.wait_for_execution(result, poll_interval=0).status.value == "COMPLETED"


def test_prepare_sign_submit(client, requests_mock):
    """The three steps can be driven separately"""
    requests_mock.post(PATH_URL, json=make_order_path_json())
    requests_mock.post(f"{TEST_ORCHESTRATOR_URL}/bundles", json={"bundleResults": [{"bundleId": "56"}]})
    tx = Transaction(target_chain=BASE, calls=(Call(to=TEST_TARGET),))
    prepared = client.prepare_transaction(tx)
    signed = client.sign_transaction(prepared)
    assert client.submit_transaction(signed).id == 56


def test_get_bundle_status(client, requests_mock):
    requests_mock.get(f"{TEST_ORCHESTRATOR_URL}/bundles/3", json={"status": "PENDING"})
    assert client.get_bundle_status(3).status.value == "PENDING"


def test_get_pending_bundles(client, requests_mock):
    requests_mock.get(f"{TEST_ORCHESTRATOR_URL}/accounts/{TEST_ACCOUNT}/bundles/events", json={"events": []})
    assert client.get_pending_bundles(count=10) == {"events": []}
    assert requests_mock.last_request.qs == {"count": ["10"]}


def test_get_portfolio(client, requests_mock):
    requests_mock.get(
        f"{TEST_ORCHESTRATOR_URL}/accounts/{TEST_ACCOUNT}/portfolio",
        json={"portfolio": [{"tokenName": "ETH", "tokenDecimals": 18, "balance": {"locked": "1", "unlocked": "2"}}]},
    )
    portfolio = client.get_portfolio()
    assert portfolio[0].token_name == "ETH"
    assert portfolio[0].balance.locked == 1


def test_get_max_token_amount(client, requests_mock):
    requests_mock.post(PATH_URL, json=make_order_path_json())
    assert client.get_max_token_amount(BASE, TEST_TOKEN, gas_limit=100_000) == 499_000
    body = requests_mock.last_request.json()
    assert body["tokenTransfers"] == [{"tokenAddress": TEST_TOKEN}]
    assert body["targetGasUnits"] == "100000"
    assert body["targetExecutions"] == []


def test_get_max_token_amount_sponsored(client, requests_mock):
    requests_mock.post(PATH_URL, json=make_order_path_json())
    assert client.get_max_token_amount(BASE, TEST_TOKEN, sponsored=True) == 500_000
    sponsor_settings = requests_mock.last_request.json()["options"]["sponsorSettings"]
    assert sponsor_settings["gasSponsored"] is True


def test_get_max_token_amount_uses_backend_of_target_chain(config, requests_mock):
    """Testnet quotes go to the development backend, mainnet quotes to production"""
    config.orchestrator_url = None
    protocol = ProtocolConfig.get_protocol()
    client = WarpClient(config)
    for url in (protocol.development_url, protocol.production_url):
        requests_mock.post(f"{url}/accounts/{TEST_ACCOUNT}/bundles/path", json=make_order_path_json())

    assert client.get_max_token_amount(BASE_SEPOLIA, TEST_TOKEN) == 499_000
    assert requests_mock.last_request.url.startswith(protocol.development_url)
    assert client.get_max_token_amount(BASE, TEST_TOKEN) == 499_000
    assert requests_mock.last_request.url.startswith(protocol.production_url)

    executor = client.executor
    assert executor.orchestrator_for(BASE_SEPOLIA) is executor.orchestrator_for(BASE_SEPOLIA)
    assert executor.orchestrator_for(BASE) is client.orchestrator
    assert executor.orchestrator_for(BASE_SEPOLIA).base_url == protocol.development_url


def test_get_max_token_amount_unroutable(client, requests_mock):
    requests_mock.post(PATH_URL, json=make_order_path_json(has_fulfilled_all=False))
    assert client.get_max_token_amount(BASE, TEST_TOKEN) == 0
