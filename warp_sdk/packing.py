"""
Signature packing.

Turns raw signer output into the byte layouts the account, the session
emissary and the compact register accept. Transforms such as ERC-7739
wrapping always run before the validator prefix is added.
"""
from enum import IntEnum
from typing import Callable, List, Optional, Tuple

from eth_abi import encode as abi_encode
from eth_utils import keccak

from ._libzip import flz_compress
from .config import Protocol, ProtocolConfig
from .models import Session, SessionEnableData, ValidatorRef
from .utils import ZERO_ADDRESS, hex_to_bytes, to_bytes32
from .validators import get_owner_validator

ECDSA_SIGNATURE_LENGTH = 65
ADDRESS_LENGTH = 20

POLICY_DATA = "(address,bytes)"
ERC7739_DATA = f"((bytes32,string[])[],{POLICY_DATA}[])"
ACTION_DATA = f"(bytes4,address,{POLICY_DATA}[])"
SESSION_DATA = f"(address,bytes,bytes32,{POLICY_DATA}[],{ERC7739_DATA},{ACTION_DATA}[],bool)"
ENABLE_SESSION = f"(uint8,(uint64,bytes32)[],{SESSION_DATA},bytes)"
EMISSARY_CONFIG = "(uint8,uint8,address,bytes32)"


class SessionMode(IntEnum):
    USE = 0x00
    ENABLE = 0x01


def pack_signature(
    raw: bytes,
    validator: ValidatorRef,
    transform: Optional[Callable[[bytes], bytes]] = None,
) -> bytes:
    """
    Prefix a raw signature with its validator address.

    Args:
        raw: Raw signature bytes from the signer
        validator: Validator that will check the signature
        transform: Optional step applied to ``raw`` before the prefix

    Returns:
        ``validator || transform(raw)``
    """
    raw = hex_to_bytes(raw)
    if transform is not None:
        raw = transform(raw)
    return hex_to_bytes(validator.address) + raw


def split_ecdsa_signatures(packed: bytes, has_validator_prefix: bool = False) -> List[bytes]:
    """
    Split concatenated 65-byte ECDSA signatures.

    Raises:
        ValueError: If the length is not a multiple of 65
    """
    packed = hex_to_bytes(packed)
    if has_validator_prefix:
        packed = packed[ADDRESS_LENGTH:]
    if len(packed) % ECDSA_SIGNATURE_LENGTH:
        raise ValueError(f"Packed signature length {len(packed)} is not a multiple of {ECDSA_SIGNATURE_LENGTH}")
    return [packed[i:i + ECDSA_SIGNATURE_LENGTH] for i in range(0, len(packed), ECDSA_SIGNATURE_LENGTH)]


def get_session_data(session: Session, protocol: Optional[Protocol] = None) -> Tuple:
    """Session descriptor as registered with the emissary, in ABI tuple form."""
    p = protocol or ProtocolConfig.get_protocol()
    validator = get_owner_validator(session.owners, p)
    allowed_content = [(b"\x00" * 32, [""])]
    erc1271_policies = [(p.sudo_policy, b"")]
    return (
        validator.address,
        validator.init_data,
        to_bytes32(session.salt),
        [],
        (allowed_content, erc1271_policies),
        [],
        False,
    )


def get_permission_id(session: Session, protocol: Optional[Protocol] = None) -> bytes:
    """``keccak(abi.encode(sessionValidator, sessionValidatorInitData, salt))``"""
    validator, init_data, salt = get_session_data(session, protocol)[:3]
    return keccak(abi_encode(["address", "bytes", "bytes32"], [validator, init_data, salt]))


def get_emissary_config(
    permission_id: bytes,
    allocator: str = ZERO_ADDRESS,
    protocol: Optional[Protocol] = None,
) -> Tuple:
    p = protocol or ProtocolConfig.get_protocol()
    return (p.emissary_scope, p.emissary_reset_period, allocator, to_bytes32(permission_id))


def encode_session_signature(
    mode: SessionMode,
    permission_id: bytes,
    raw: bytes,
    enable_data: Optional[SessionEnableData] = None,
    session: Optional[Session] = None,
    protocol: Optional[Protocol] = None,
) -> bytes:
    """
    Encode a session signature for the session emissary.

    ``USE`` mode is ``0x00 || permissionId || raw``. ``ENABLE`` mode is
    ``0x01 || flzCompress(abi.encode(enableSession, emissaryConfig, raw))``
    and registers the session on first use.

    Args:
        mode: Use an enabled session or enable it in the same call
        permission_id: 32-byte session permission id
        raw: Raw signature from the session owners
        enable_data: Enable signature and chain digests (ENABLE only)
        session: Session being enabled (ENABLE only)
        protocol: Protocol constants; defaults to the active version

    Raises:
        ValueError: If ENABLE mode is missing its enable data or session
    """
    raw = hex_to_bytes(raw)
    permission_id = to_bytes32(permission_id)
    if mode == SessionMode.USE:
        return bytes([SessionMode.USE]) + permission_id + raw

    if mode != SessionMode.ENABLE:
        raise ValueError(f"Unknown session mode: {mode}")
    if enable_data is None or session is None:
        raise ValueError("Enable mode requires both enable data and the session")

    p = protocol or ProtocolConfig.get_protocol()
    enable_session = (
        enable_data.chain_digest_index,
        [(d.chain_id, to_bytes32(d.session_digest)) for d in enable_data.hashes_and_chain_ids],
        get_session_data(session, p),
        hex_to_bytes(enable_data.signature),
    )
    payload = abi_encode(
        [ENABLE_SESSION, EMISSARY_CONFIG, "bytes"],
        [enable_session, get_emissary_config(permission_id, protocol=p), raw],
    )
    return bytes([SessionMode.ENABLE]) + flz_compress(payload)


def wrap_erc7739_session_signature(
    raw: bytes,
    app_domain_separator: bytes,
    struct_hash: bytes,
    contents_type: str,
) -> bytes:
    """``raw || appDomainSeparator || structHash || contentsType || uint16(len(contentsType))``"""
    contents = contents_type.encode("utf-8")
    if len(contents) > 0xFFFF:
        raise ValueError("Contents type is too long")
    return (
        hex_to_bytes(raw)
        + to_bytes32(app_domain_separator)
        + to_bytes32(struct_hash)
        + contents
        + len(contents).to_bytes(2, "big")
    )
