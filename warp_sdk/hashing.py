"""
Struct hashing for settlement bundles.

Reproduces the EIP-712 hash tree the compact register recomputes on chain:

    XchainExec -> Witness -> Segment -> Segment[] -> MultichainCompact

and the ERC-7739 ``TypedDataSign`` envelope used when a session key has to
satisfy the account's own ERC-1271 check. Field order and types are part of
the protocol version; the type strings live in ``protocol.json``.
"""
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

from eth_abi import encode as abi_encode
from eth_utils import keccak

from .config import Protocol, ProtocolConfig
from .models import Execution, Segment, SettlementBundle, Witness
from .utils import hex_to_bytes, to_bytes32

EIP712_DOMAIN_TYPE = "EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
EIP712_DOMAIN_TYPEHASH = keccak(text=EIP712_DOMAIN_TYPE)


@dataclass(frozen=True)
class AccountDomain:
    """EIP-712 domain reported by an account's ``eip712Domain()``."""
    name: str
    version: str
    chain_id: int
    verifying_contract: str
    salt: bytes = b"\x00" * 32


@dataclass(frozen=True)
class Erc7739Hash:
    hash: bytes
    app_domain_separator: bytes
    contents_type: str
    struct_hash: bytes


def _protocol(protocol: Optional[Protocol]) -> Protocol:
    return protocol or ProtocolConfig.get_protocol()


def hash_execution(execution: Execution, protocol: Optional[Protocol] = None) -> bytes:
    p = _protocol(protocol)
    return keccak(abi_encode(
        ["bytes32", "address", "uint256", "bytes32"],
        [p.typehash("XchainExec"), execution.to, execution.value, keccak(hex_to_bytes(execution.data))],
    ))


def hash_execution_array(execs: Sequence[Execution], protocol: Optional[Protocol] = None) -> bytes:
    """Hash an ``XchainExec[]``; an empty array hashes as ``keccak("")``."""
    return keccak(b"".join(hash_execution(e, protocol) for e in execs))


def hash_ids_and_amounts(pairs: Iterable[Tuple[int, int]]) -> bytes:
    """Hash a ``uint256[2][]`` as the packed concatenation of its words."""
    return keccak(b"".join(to_bytes32(a) + to_bytes32(b) for a, b in pairs))


def hash_witness(witness: Witness, protocol: Optional[Protocol] = None) -> bytes:
    p = _protocol(protocol)
    return keccak(abi_encode(
        ["bytes32", "address", "bytes32", "uint256", "uint256", "uint32", "bytes32", "bytes32", "uint32"],
        [
            p.typehash("Witness"),
            witness.recipient,
            hash_ids_and_amounts(witness.token_out),
            witness.deposit_id,
            witness.target_chain,
            witness.fill_deadline,
            hash_execution_array(witness.execs, p),
            to_bytes32(witness.user_op_hash),
            witness.max_fee_bps,
        ],
    ))


def hash_segment(segment: Segment, protocol: Optional[Protocol] = None) -> bytes:
    p = _protocol(protocol)
    return keccak(abi_encode(
        ["bytes32", "address", "uint256", "bytes32", "bytes32"],
        [
            p.typehash("Segment"),
            segment.arbiter,
            segment.chain_id,
            hash_ids_and_amounts(segment.ids_and_amounts),
            hash_witness(segment.witness, p),
        ],
    ))


def hash_segments(segments: Sequence[Segment], protocol: Optional[Protocol] = None) -> bytes:
    if not segments:
        raise ValueError("Cannot hash an empty segment list")
    return keccak(b"".join(hash_segment(s, protocol) for s in segments))


def hash_bundle_struct(bundle: SettlementBundle, protocol: Optional[Protocol] = None) -> bytes:
    """Struct hash of the whole bundle, without any domain."""
    p = _protocol(protocol)
    return keccak(abi_encode(
        ["bytes32", "address", "uint256", "uint256", "bytes32"],
        [
            p.typehash("MultichainCompact"),
            bundle.sponsor,
            bundle.nonce,
            bundle.expires,
            hash_segments(bundle.segments, p),
        ],
    ))


def get_domain_separator(name: str, version: str, chain_id: int, verifying_contract: str) -> bytes:
    return keccak(abi_encode(
        ["bytes32", "bytes32", "bytes32", "uint256", "address"],
        [EIP712_DOMAIN_TYPEHASH, keccak(text=name), keccak(text=version), chain_id, verifying_contract],
    ))


def get_compact_domain_separator(
    chain_id: int,
    verifying_contract: Optional[str] = None,
    protocol: Optional[Protocol] = None,
) -> bytes:
    """
    Domain separator of the compact register on ``chain_id``.

    Args:
        chain_id: Chain the register lives on
        verifying_contract: Override for the hook address
        protocol: Protocol constants; defaults to the active version

    Returns:
        32-byte domain separator
    """
    p = _protocol(protocol)
    return get_domain_separator(
        p.compact_name,
        p.compact_version,
        chain_id,
        verifying_contract or p.hook_address,
    )


def typed_data_digest(domain_separator: bytes, struct_hash: bytes) -> bytes:
    return keccak(b"\x19\x01" + domain_separator + struct_hash)


def get_bundle_hash(bundle: SettlementBundle, protocol: Optional[Protocol] = None) -> bytes:
    """
    Signing digest of a settlement bundle.

    The domain is bound to segment 0, the notarized chain. Hashing seals the
    bundle against further edits.

    Args:
        bundle: Fully populated settlement bundle
        protocol: Protocol constants; defaults to the active version

    Returns:
        32-byte ``keccak(0x1901 || domainSeparator || structHash)``
    """
    p = _protocol(protocol)
    struct_hash = hash_bundle_struct(bundle, p)
    domain_separator = get_compact_domain_separator(bundle.notarized_chain_id, protocol=p)
    bundle.seal()
    return typed_data_digest(domain_separator, struct_hash)


def get_session_allowed_erc7739_content(chain_id: int, protocol: Optional[Protocol] = None) -> Tuple[bytes, str]:
    """Return the app domain separator and contents type a session may sign on ``chain_id``."""
    p = _protocol(protocol)
    return get_compact_domain_separator(chain_id, protocol=p), p.types["MultichainCompact"]


def hash_erc7739(
    bundle: SettlementBundle,
    account_domain: AccountDomain,
    app_domain_separator: Optional[bytes] = None,
    contents_type: Optional[str] = None,
    protocol: Optional[Protocol] = None,
) -> Erc7739Hash:
    """
    Hash a bundle inside an ERC-7739 ``TypedDataSign`` envelope.

    Args:
        bundle: Settlement bundle (sealed by this call)
        account_domain: The signing account's own EIP-712 domain
        app_domain_separator: Compact domain separator; defaults to the one
            of the notarized chain
        contents_type: Nested contents type string; defaults to the
            ``MultichainCompact`` type string
        protocol: Protocol constants; defaults to the active version

    Returns:
        Erc7739Hash with the digest and the fields needed to wrap the signature
    """
    p = _protocol(protocol)
    if app_domain_separator is None:
        app_domain_separator = get_compact_domain_separator(bundle.notarized_chain_id, protocol=p)
    contents_type = contents_type or p.types["MultichainCompact"]

    struct_hash = hash_bundle_struct(bundle, p)
    bundle.seal()
    typehash = keccak(text=p.typed_data_sign_prefix + contents_type)
    envelope_hash = keccak(abi_encode(
        ["bytes32", "bytes32", "bytes32", "bytes32", "uint256", "address", "bytes32"],
        [
            typehash,
            struct_hash,
            keccak(text=account_domain.name),
            keccak(text=account_domain.version),
            account_domain.chain_id,
            account_domain.verifying_contract,
            to_bytes32(account_domain.salt),
        ],
    ))
    return Erc7739Hash(
        hash=typed_data_digest(app_domain_separator, envelope_hash),
        app_domain_separator=app_domain_separator,
        contents_type=contents_type,
        struct_hash=struct_hash,
    )
