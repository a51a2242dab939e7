"""
Smart account collaborator.

Address derivation and module installation belong to the account
implementation; the SDK only needs the reads below. :class:`OnchainAccount`
serves them over JSON-RPC with web3.
"""
import logging
from typing import Dict, Optional, Protocol, Tuple

from web3 import Web3
from web3.exceptions import Web3Exception

from .hashing import AccountDomain
from .utils import hex_to_bytes, normalize_address


class AccountProvider(Protocol):
    """Protocol for smart account providers"""
    address: str

    def get_factory_args(self) -> Optional[Tuple[str, bytes]]:
        """Return ``(factory, factoryData)`` for undeployed accounts, else None"""
        ...

    def is_deployed(self, chain_id: int) -> bool:
        ...

    def get_eip712_domain(self, chain_id: int) -> AccountDomain:
        ...

    def get_nonce(self, chain_id: int, key: int) -> int:
        ...


class OnchainAccount:
    """
    Account provider that reads state through web3.

    Attributes:
        address: Smart account address
        rpc_urls: JSON-RPC endpoint per chain id
        entry_point: EntryPoint used for nonce reads
    """

    EIP712_DOMAIN_ABI = [
        {
            "inputs": [],
            "name": "eip712Domain",
            "outputs": [
                {"internalType": "bytes1", "name": "fields", "type": "bytes1"},
                {"internalType": "string", "name": "name", "type": "string"},
                {"internalType": "string", "name": "version", "type": "string"},
                {"internalType": "uint256", "name": "chainId", "type": "uint256"},
                {"internalType": "address", "name": "verifyingContract", "type": "address"},
                {"internalType": "bytes32", "name": "salt", "type": "bytes32"},
                {"internalType": "uint256[]", "name": "extensions", "type": "uint256[]"}
            ],
            "stateMutability": "view",
            "type": "function"
        }
    ]

    ENTRY_POINT_ABI = [
        {
            "inputs": [
                {"internalType": "address", "name": "sender", "type": "address"},
                {"internalType": "uint192", "name": "key", "type": "uint192"}
            ],
            "name": "getNonce",
            "outputs": [{"internalType": "uint256", "name": "nonce", "type": "uint256"}],
            "stateMutability": "view",
            "type": "function"
        }
    ]

    def __init__(
        self,
        address: str,
        rpc_urls: Dict[int, str],
        entry_point: str,
        factory: Optional[str] = None,
        factory_data: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.address = normalize_address(address)
        self.rpc_urls = dict(rpc_urls)
        self.entry_point = normalize_address(entry_point)
        self.factory = normalize_address(factory) if factory else None
        self.factory_data = hex_to_bytes(factory_data) if factory_data else b""
        self.logger = logger or logging.getLogger(__name__)
        self._web3: Dict[int, Web3] = {}

    def w3(self, chain_id: int) -> Web3:
        """
        Get (and cache) the Web3 instance for a chain.

        Raises:
            ValueError: If no RPC URL is configured for the chain
        """
        if chain_id not in self._web3:
            url = self.rpc_urls.get(chain_id)
            if not url:
                raise ValueError(f"No RPC URL configured for chain {chain_id}")
            self._web3[chain_id] = Web3(Web3.HTTPProvider(url))
        return self._web3[chain_id]

    def get_factory_args(self) -> Optional[Tuple[str, bytes]]:
        if not self.factory:
            return None
        return self.factory, self.factory_data

    def is_deployed(self, chain_id: int) -> bool:
        code = self.w3(chain_id).eth.get_code(self.address)
        return len(code) > 0

    def get_eip712_domain(self, chain_id: int) -> AccountDomain:
        """
        Read the account's ERC-5267 ``eip712Domain()``.

        Raises:
            Web3Exception: If the call fails (e.g., the account is not deployed)
        """
        contract = self.w3(chain_id).eth.contract(address=self.address, abi=self.EIP712_DOMAIN_ABI)
        try:
            _, name, version, domain_chain_id, verifying_contract, salt, _ = contract.functions.eip712Domain().call()
        except Web3Exception as e:
            self.logger.error(f"eip712Domain() failed for {self.address} on chain {chain_id}: {e}")
            raise
        return AccountDomain(
            name=name,
            version=version,
            chain_id=domain_chain_id,
            verifying_contract=verifying_contract,
            salt=bytes(salt),
        )

    def get_nonce(self, chain_id: int, key: int) -> int:
        contract = self.w3(chain_id).eth.contract(address=self.entry_point, abi=self.ENTRY_POINT_ABI)
        return contract.functions.getNonce(self.address, key).call()
