"""
Tests for the web3-backed account provider.
"""
from unittest.mock import MagicMock, patch

import pytest

from warp_sdk.account import OnchainAccount
from warp_sdk.config import ProtocolConfig
from warp_sdk.hashing import AccountDomain

from conftest import BASE, TEST_ACCOUNT, TEST_FACTORY


@pytest.fixture
def mock_w3():
    with patch("warp_sdk.account.Web3") as web3_cls:
        w3 = MagicMock()
        web3_cls.return_value = w3
        yield w3


def _account(**kwargs):
    return OnchainAccount(
        TEST_ACCOUNT.lower(),
        {BASE: "https://rpc.example.com"},
        ProtocolConfig.get_protocol().entry_point,
        **kwargs,
    )


def test_address_is_checksummed():
    assert _account().address == TEST_ACCOUNT


def test_factory_args():
    assert _account().get_factory_args() is None
    factory, data = _account(factory=TEST_FACTORY, factory_data="0xabcd").get_factory_args()
    assert factory.lower() == TEST_FACTORY
    assert data == b"\xab\xcd"


def test_is_deployed(mock_w3):
    mock_w3.eth.get_code.return_value = b"\x60\x80"
    assert _account().is_deployed(BASE) is True
    mock_w3.eth.get_code.return_value = b""
    assert _account().is_deployed(BASE) is False


def test_missing_rpc_url():
    with pytest.raises(ValueError, match="No RPC URL configured for chain 10"):
        _account().is_deployed(10)


def test_get_eip712_domain(mock_w3):
    contract = mock_w3.eth.contract.return_value
    contract.functions.eip712Domain.return_value.call.return_value = (
        b"\x0f", "Nexus", "1.2.0", BASE, TEST_ACCOUNT, b"\x00" * 32, [],
    )
    domain = _account().get_eip712_domain(BASE)
    assert domain == AccountDomain(name="Nexus", version="1.2.0", chain_id=BASE, verifying_contract=TEST_ACCOUNT)


def test_get_nonce(mock_w3):
    contract = mock_w3.eth.contract.return_value
    contract.functions.getNonce.return_value.call.return_value = 12
    account = _account()
    assert account.get_nonce(BASE, 5 << 32) == 12
    contract.functions.getNonce.assert_called_once_with(TEST_ACCOUNT, 5 << 32)
    assert mock_w3.eth.contract.call_args.kwargs["address"] == account.entry_point


def test_web3_cached_per_chain(mock_w3):
    account = _account()
    assert account.w3(BASE) is account.w3(BASE)
