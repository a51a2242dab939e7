"""
Pytest fixtures for the Warp SDK tests.
"""
import time
from unittest.mock import MagicMock

import pytest

from warp_sdk._rate_limited_log import reset_rate_limits
from warp_sdk.bundler import BundlerClient
from warp_sdk.config import AccountConfig, ProtocolConfig
from warp_sdk.hashing import AccountDomain
from warp_sdk.models import EcdsaOwners
from warp_sdk.orchestrator.client import OrchestratorClient
from warp_sdk.signers import LocalSigner
from warp_sdk.userop import UserOpGasEstimate

# Constants for testing
TEST_ACCOUNT = "0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf"
TEST_ARBITER = "0x000000000000000000000000000000000000a11c"
TEST_TOKEN = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
TEST_TARGET = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
TEST_INJECTED = "0x000000000000000000000000000000000000beef"
TEST_FACTORY = "0x000000000000000000000000000000000000fac7"
TEST_ORCHESTRATOR_URL = "https://orchestrator.example.com"
TEST_BUNDLER_URL = "https://bundler.example.com/8453"
TEST_API_KEY = "test-api-key"
OWNER_KEY_1 = "0x" + "11" * 32
OWNER_KEY_2 = "0x" + "22" * 32
SESSION_KEY = "0x" + "33" * 32
BASE = 8453
OPTIMISM = 10
FAR_FUTURE = 4102444800  # 2100-01-01


# ─────────────────────────────────────────────────────────────────────────
#  GLOBAL STATE RESET
# ─────────────────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def _fast_sleep(monkeypatch):
    monkeypatch.setattr(time, "sleep", lambda *_a, **_kw: None)


@pytest.fixture(autouse=True)
def _reset_caches(monkeypatch):
    """Each test starts with fresh protocol config and rate-limit state."""
    monkeypatch.delenv("WARP_PROTOCOL_VERSION", raising=False)
    ProtocolConfig.reset()
    reset_rate_limits()
    yield
    ProtocolConfig.reset()
    reset_rate_limits()


class FakeAccount:
    """In-memory account provider."""

    def __init__(self, address=TEST_ACCOUNT, deployed=True, factory=None, nonce=7):
        self.address = address
        self.deployed = deployed
        self.factory = factory
        self.nonce = nonce
        self.nonce_keys = []

    def get_factory_args(self):
        if self.factory is None:
            return None
        return self.factory, b"\x12\x34"

    def is_deployed(self, chain_id):
        return self.deployed

    def get_eip712_domain(self, chain_id):
        return AccountDomain(name="Nexus", version="1.0.0", chain_id=chain_id, verifying_contract=self.address)

    def get_nonce(self, chain_id, key):
        self.nonce_keys.append(key)
        return self.nonce


def make_bundle_json(chain_ids=(BASE,), target_chain=BASE, expires=FAR_FUTURE, execs=()):
    """Settlement bundle as the backend sends it."""
    return {
        "sponsor": TEST_ACCOUNT,
        "nonce": "42",
        "expires": str(expires),
        "segments": [
            {
                "arbiter": TEST_ARBITER,
                "chainId": str(chain_id),
                "idsAndAmounts": [["1000", "500000"]],
                "witness": {
                    "recipient": TEST_ACCOUNT,
                    "tokenOut": [["2000", "499000"]],
                    "depositId": "0",
                    "targetChain": str(target_chain),
                    "fillDeadline": "1700000000",
                    "execs": list(execs),
                    "userOpHash": "0x" + "00" * 32,
                    "maxFeeBps": "0",
                },
            }
            for chain_id in chain_ids
        ],
    }


def make_order_path_json(has_fulfilled_all=True, **bundle_kwargs):
    return {
        "orderBundles": [
            {
                "orderBundle": make_bundle_json(**bundle_kwargs),
                "injectedExecutions": [{"to": TEST_INJECTED, "value": "0", "data": "0xdeadbeef"}],
                "intentCost": {
                    "hasFulfilledAll": has_fulfilled_all,
                    "tokensReceived": [
                        {
                            "tokenAddress": TEST_TOKEN,
                            "hasFulfilled": has_fulfilled_all,
                            "amountSpent": "500000",
                            "destinationAmount": "499000",
                            "fee": "1000",
                        }
                    ],
                    "tokensSpent": {str(BASE): {TEST_TOKEN: "500000"}},
                },
            }
        ]
    }


@pytest.fixture
def owners():
    return EcdsaOwners(accounts=(LocalSigner(OWNER_KEY_1), LocalSigner(OWNER_KEY_2)), threshold=2)


@pytest.fixture
def account():
    return FakeAccount()


@pytest.fixture
def config(account, owners):
    return AccountConfig(
        account=account,
        owners=owners,
        api_key=TEST_API_KEY,
        sessions_enabled=True,
        bundler_urls={BASE: TEST_BUNDLER_URL},
        orchestrator_url=TEST_ORCHESTRATOR_URL,
    )


@pytest.fixture
def orchestrator():
    return OrchestratorClient(TEST_ORCHESTRATOR_URL, api_key=TEST_API_KEY, retry_count=0)


@pytest.fixture
def mock_bundler():
    """Bundler client whose RPC methods are mocked."""
    bundler = MagicMock(spec=BundlerClient)
    bundler.get_user_operation_gas_price.return_value = (2_000_000_000, 1_000_000_000)
    bundler.estimate_user_operation_gas.return_value = UserOpGasEstimate(
        call_gas_limit=100_000,
        verification_gas_limit=200_000,
        pre_verification_gas=50_000,
    )
    bundler.send_user_operation.return_value = "0x" + "ab" * 32
    return bundler
