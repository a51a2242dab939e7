"""
Tests for protocol and account configuration.
"""
import pytest
from eth_utils import keccak

from warp_sdk.config import AccountConfig, ProtocolConfig


def test_default_protocol_version():
    """The active version defaults to v0"""
    protocol = ProtocolConfig.get_protocol()
    assert protocol.version == "v0"
    assert protocol.compact_name == "The Compact"
    assert protocol.compact_version == "0"
    assert protocol.hook_address.lower() == "0x0000000000f6ed8be424d673c63eeff8b9267420"


def test_addresses_are_checksummed():
    """Lowercase addresses in protocol.json come back checksummed"""
    protocol = ProtocolConfig.get_protocol("v0")
    assert protocol.smart_session_emissary.lower() == "0x4411abbbede0215626284d0385dd55b4303012b7"
    assert protocol.smart_session_emissary != protocol.smart_session_emissary.lower()
    assert protocol.entry_point == "0x0000000071727De22E5E9d8BAf0edAc6f37da032"
    assert protocol.ownable_v0_validator == "0x2483DA3A338895199E5e538530213157e931Bf06"
    assert protocol.multi_factor_validator == "0xf6bDf42c9BE18cEcA5C06c42A43DAf7FBbe7896b"


def test_typehashes_derive_from_type_strings():
    """Typehashes are keccak of the configured type strings"""
    protocol = ProtocolConfig.get_protocol()
    assert protocol.typehash("XchainExec") == keccak(text="XchainExec(address to,uint256 value,bytes data)")
    assert protocol.typehash("MultichainCompact") == keccak(text=protocol.types["MultichainCompact"])


def test_unknown_typehash():
    with pytest.raises(ValueError, match="Unknown type"):
        ProtocolConfig.get_protocol().typehash("Mandate")


def test_unknown_protocol_version():
    """Unknown versions list the available ones"""
    with pytest.raises(ValueError, match="Protocol version 'v9' not found. Available versions: v0"):
        ProtocolConfig.get_protocol("v9")


def test_protocol_version_from_environment(monkeypatch):
    """WARP_PROTOCOL_VERSION selects the active version"""
    monkeypatch.setenv("WARP_PROTOCOL_VERSION", "v9")
    assert ProtocolConfig.active_version() == "v9"
    with pytest.raises(ValueError, match="not found"):
        ProtocolConfig.get_protocol()


def test_protocols_loaded_once():
    """protocol.json is read once and cached"""
    first = ProtocolConfig.load_protocols()
    second = ProtocolConfig.load_protocols()
    assert first is second
    assert ProtocolConfig.get_protocol() is ProtocolConfig.get_protocol("v0")


def test_reset_drops_cache():
    first = ProtocolConfig.load_protocols()
    ProtocolConfig.reset()
    assert ProtocolConfig.load_protocols() is not first


def test_orchestrator_url_by_chain():
    """Testnets use the development backend, mainnets production"""
    protocol = ProtocolConfig.get_protocol()
    assert protocol.orchestrator_url(84532) == "https://dev.orchestrator.rhinestone.wtf"
    assert protocol.orchestrator_url(8453) == "https://orchestrator.rhinestone.wtf"
    assert protocol.orchestrator_url() == "https://orchestrator.rhinestone.wtf"
    assert protocol.is_testnet(11155111)
    assert not protocol.is_testnet(1)


def test_account_config_urls():
    """Per-chain URLs are looked up and missing ones raise ValueError"""
    config = AccountConfig(
        bundler_urls={8453: "https://bundler.example.com"},
        rpc_urls={8453: "https://rpc.example.com"},
    )
    assert config.get_bundler_url(8453) == "https://bundler.example.com"
    assert config.get_rpc_url(8453) == "https://rpc.example.com"
    with pytest.raises(ValueError, match="No bundler URL configured for chain 10"):
        config.get_bundler_url(10)
    with pytest.raises(ValueError, match="No RPC URL configured for chain 10"):
        config.get_rpc_url(10)


def test_account_config_orchestrator_override():
    """An explicit backend URL wins over the protocol default"""
    config = AccountConfig(orchestrator_url="https://orchestrator.example.com/")
    assert config.get_orchestrator_url(84532) == "https://orchestrator.example.com"
    assert AccountConfig().get_orchestrator_url(84532) == "https://dev.orchestrator.rhinestone.wtf"


def test_account_config_protocol_version():
    config = AccountConfig(protocol_version="v0")
    assert config.protocol.version == "v0"
