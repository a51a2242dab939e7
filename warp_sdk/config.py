"""
Protocol and account configuration for the Warp SDK.

Protocol constants (module addresses, EIP-712 type strings, backend URLs) are
grouped by protocol version in ``protocol.json`` and loaded once per process.
"""
import importlib.resources
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from eth_utils import keccak, to_checksum_address

logger = logging.getLogger(__name__)

DEFAULT_PROTOCOL_VERSION = "v0"
PROTOCOL_VERSION_ENV = "WARP_PROTOCOL_VERSION"


@dataclass(frozen=True)
class Protocol:
    """Resolved, read-only view of one protocol version."""
    version: str
    compact_name: str
    compact_version: str
    hook_address: str
    types: Dict[str, str]
    typed_data_sign_prefix: str
    ownable_validator: str
    ownable_v0_validator: str
    webauthn_validator: str
    social_recovery_validator: str
    multi_factor_validator: str
    smart_session_emissary: str
    sudo_policy: str
    emissary_name: str
    emissary_version: str
    emissary_scope: int
    emissary_reset_period: int
    entry_point: str
    entry_point_version: str
    production_url: str
    development_url: str
    testnet_chain_ids: frozenset = field(default_factory=frozenset)

    def typehash(self, type_name: str) -> bytes:
        """Return keccak256 of the full EIP-712 type string for ``type_name``."""
        try:
            return keccak(text=self.types[type_name])
        except KeyError:
            raise ValueError(f"Unknown type '{type_name}' in protocol {self.version}")

    def orchestrator_url(self, chain_id: Optional[int] = None) -> str:
        """Pick the backend URL: development for testnets, production otherwise."""
        if chain_id is not None and chain_id in self.testnet_chain_ids:
            return self.development_url
        return self.production_url

    def is_testnet(self, chain_id: int) -> bool:
        return chain_id in self.testnet_chain_ids


class ProtocolConfig:
    """Loader for the versioned protocol constants."""

    _protocols_cache: Optional[Dict[str, Dict[str, Any]]] = None
    _resolved: Dict[str, Protocol] = {}

    @classmethod
    def load_protocols(cls) -> Dict[str, Dict[str, Any]]:
        """
        Load all protocol versions from the bundled ``protocol.json``.

        Returns:
            Mapping of version name to raw protocol configuration

        Raises:
            FileNotFoundError: If the package data file is missing
        """
        if cls._protocols_cache is not None:
            return cls._protocols_cache

        resource = importlib.resources.files("warp_sdk").joinpath("protocol.json")
        with resource.open("r", encoding="utf-8") as f:
            cls._protocols_cache = json.load(f)
        logger.debug(f"Loaded protocol versions: {list(cls._protocols_cache)}")
        return cls._protocols_cache

    @classmethod
    def active_version(cls) -> str:
        return os.environ.get(PROTOCOL_VERSION_ENV, DEFAULT_PROTOCOL_VERSION)

    @classmethod
    def get_protocol(cls, version: Optional[str] = None) -> Protocol:
        """
        Get the resolved constants for a protocol version.

        Args:
            version: Protocol version name; defaults to ``WARP_PROTOCOL_VERSION``
                or ``"v0"``

        Returns:
            Protocol view with checksummed addresses

        Raises:
            ValueError: If the version is not defined
        """
        version = version or cls.active_version()
        if version in cls._resolved:
            return cls._resolved[version]

        protocols = cls.load_protocols()
        if version not in protocols:
            available = ", ".join(sorted(protocols))
            raise ValueError(f"Protocol version '{version}' not found. Available versions: {available}")

        raw = protocols[version]
        modules = raw["modules"]
        emissary = raw["smartSessionEmissary"]
        orchestrator = raw["orchestrator"]
        protocol = Protocol(
            version=version,
            compact_name=raw["compact"]["name"],
            compact_version=raw["compact"]["version"],
            hook_address=to_checksum_address(raw["compact"]["hookAddress"]),
            types=dict(raw["compact"]["types"]),
            typed_data_sign_prefix=raw["erc7739"]["typedDataSignPrefix"],
            ownable_validator=to_checksum_address(modules["ownableValidator"]),
            ownable_v0_validator=to_checksum_address(modules["ownableV0Validator"]),
            webauthn_validator=to_checksum_address(modules["webauthnValidator"]),
            social_recovery_validator=to_checksum_address(modules["socialRecoveryValidator"]),
            multi_factor_validator=to_checksum_address(modules["multiFactorValidator"]),
            smart_session_emissary=to_checksum_address(modules["smartSessionEmissary"]),
            sudo_policy=to_checksum_address(modules["sudoPolicy"]),
            emissary_name=emissary["name"],
            emissary_version=emissary["version"],
            emissary_scope=int(emissary["scope"]),
            emissary_reset_period=int(emissary["resetPeriod"]),
            entry_point=to_checksum_address(raw["entryPoint"]["address"]),
            entry_point_version=raw["entryPoint"]["version"],
            production_url=orchestrator["productionUrl"].rstrip("/"),
            development_url=orchestrator["developmentUrl"].rstrip("/"),
            testnet_chain_ids=frozenset(int(c) for c in orchestrator["testnetChainIds"]),
        )
        cls._resolved[version] = protocol
        return protocol

    @classmethod
    def reset(cls) -> None:
        """Drop cached configuration (used by tests)."""
        cls._protocols_cache = None
        cls._resolved = {}


@dataclass
class AccountConfig:
    """
    Everything the SDK needs to act for one smart account.

    Attributes:
        account: Account provider collaborator (address, init data, EIP-712 domain)
        owners: Root owner set of the account
        api_key: Settlement backend API key
        sessions_enabled: Whether the session emissary is installed on the account
        session_module: Override for the session emissary address
        bundler_urls: ERC-4337 bundler endpoint per chain id
        rpc_urls: JSON-RPC endpoint per chain id
        orchestrator_url: Override for the settlement backend base URL
        protocol_version: Protocol constants version to use
    """
    account: Any = None
    owners: Any = None
    api_key: Optional[str] = None
    sessions_enabled: bool = False
    session_module: Optional[str] = None
    bundler_urls: Dict[int, str] = field(default_factory=dict)
    rpc_urls: Dict[int, str] = field(default_factory=dict)
    orchestrator_url: Optional[str] = None
    protocol_version: Optional[str] = None

    @property
    def protocol(self) -> Protocol:
        return ProtocolConfig.get_protocol(self.protocol_version)

    def get_rpc_url(self, chain_id: int) -> str:
        """
        Get the JSON-RPC endpoint for a chain.

        Raises:
            ValueError: If no endpoint is configured for the chain
        """
        url = self.rpc_urls.get(chain_id)
        if not url:
            raise ValueError(f"No RPC URL configured for chain {chain_id}")
        return url

    def get_bundler_url(self, chain_id: int) -> str:
        """
        Get the bundler endpoint for a chain.

        Raises:
            ValueError: If no bundler is configured for the chain
        """
        url = self.bundler_urls.get(chain_id)
        if not url:
            raise ValueError(f"No bundler URL configured for chain {chain_id}")
        return url

    def get_orchestrator_url(self, chain_id: Optional[int] = None) -> str:
        if self.orchestrator_url:
            return self.orchestrator_url.rstrip("/")
        return self.protocol.orchestrator_url(chain_id)
