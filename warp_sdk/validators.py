"""
Validator module descriptors.

Each builder returns the module address and the ``onInstall`` init data the
account was (or will be) configured with. The init data also feeds the
session permission id, so encodings here must match the modules exactly.
"""
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

from eth_abi import encode as abi_encode

from .config import Protocol, ProtocolConfig
from .models import OwnerSet
from .utils import hex_to_bytes, normalize_address

MODULE_TYPE_VALIDATOR = 1


@dataclass(frozen=True)
class Module:
    address: str
    init_data: bytes
    module_type: int = MODULE_TYPE_VALIDATOR


def parse_public_key(public_key: Union[str, bytes, Tuple[int, int]]) -> Tuple[int, int]:
    """
    Split a P-256 public key into its affine coordinates.

    Accepts an ``(x, y)`` tuple, 64 raw bytes, or 65 bytes with the 0x04
    uncompressed prefix.

    Raises:
        ValueError: If the key is compressed or malformed
    """
    if isinstance(public_key, tuple):
        return int(public_key[0]), int(public_key[1])
    raw = hex_to_bytes(public_key)
    if len(raw) == 65:
        if raw[0] != 4:
            raise ValueError("Only uncompressed public keys are supported")
        raw = raw[1:]
    if len(raw) != 64:
        raise ValueError(f"Invalid P-256 public key length: {len(raw)}")
    return int.from_bytes(raw[:32], "big"), int.from_bytes(raw[32:], "big")


def _sorted_addresses(addresses: Sequence[str]) -> list:
    return sorted(normalize_address(a).lower() for a in addresses)


def get_ownable_validator(
    threshold: int,
    owners: Sequence[str],
    address: Optional[str] = None,
    protocol: Optional[Protocol] = None,
) -> Module:
    p = protocol or ProtocolConfig.get_protocol()
    return Module(
        address=normalize_address(address or p.ownable_validator),
        init_data=abi_encode(["uint256", "address[]"], [threshold, _sorted_addresses(owners)]),
    )


def get_webauthn_validator(
    threshold: int,
    public_keys: Sequence[Union[str, bytes, Tuple[int, int]]],
    address: Optional[str] = None,
    protocol: Optional[Protocol] = None,
) -> Module:
    """
    WebAuthn validator holding one credential per passkey.

    Init data is ``abi.encode(uint256 threshold, (uint256 x, uint256 y, bool requireUV)[])``.
    """
    p = protocol or ProtocolConfig.get_protocol()
    credentials = [(x, y, False) for x, y in (parse_public_key(k) for k in public_keys)]
    return Module(
        address=normalize_address(address or p.webauthn_validator),
        init_data=abi_encode(["uint256", "(uint256,uint256,bool)[]"], [threshold, credentials]),
    )


def get_social_recovery_validator(
    guardians: Sequence[str],
    threshold: int = 1,
    protocol: Optional[Protocol] = None,
) -> Module:
    p = protocol or ProtocolConfig.get_protocol()
    return Module(
        address=p.social_recovery_validator,
        init_data=abi_encode(["uint256", "address[]"], [threshold, _sorted_addresses(guardians)]),
    )


def pack_validator_id(index: int, address: str) -> bytes:
    """``bytes12(index) || address``, the key of a multi-factor sub-validator."""
    return index.to_bytes(12, "big") + hex_to_bytes(normalize_address(address))


def get_multi_factor_validator(
    threshold: int,
    factors: Sequence[Tuple[int, Module]],
    address: Optional[str] = None,
    protocol: Optional[Protocol] = None,
) -> Module:
    """
    Multi-factor validator over already-resolved sub-validators.

    Init data is ``uint8(threshold) || abi.encode((bytes32 packedValidatorAndId, bytes initData)[])``.

    Args:
        threshold: Number of sub-validators that must sign
        factors: ``(id, module)`` pairs; the id is the sub-validator's position
        address: Override for the multi-factor validator address
        protocol: Protocol constants; defaults to the active version
    """
    p = protocol or ProtocolConfig.get_protocol()
    entries = [(pack_validator_id(index, module.address), module.init_data) for index, module in factors]
    return Module(
        address=normalize_address(address or p.multi_factor_validator),
        init_data=bytes([threshold]) + abi_encode(["(bytes32,bytes)[]"], [entries]),
    )


def get_owner_validator(owners: OwnerSet, protocol: Optional[Protocol] = None) -> Module:
    """
    Validator for an owner set.

    Raises:
        ValueError: If the owner set kind is unknown
    """
    kind = getattr(owners, "kind", None)
    if kind in ("ecdsa", "ecdsa-v0"):
        p = protocol or ProtocolConfig.get_protocol()
        default = p.ownable_v0_validator if kind == "ecdsa-v0" else p.ownable_validator
        return get_ownable_validator(
            owners.threshold,
            [a.address for a in owners.accounts],
            address=owners.module or default,
            protocol=p,
        )
    if kind == "passkey":
        return get_webauthn_validator(
            owners.threshold,
            [a.public_key for a in owners.accounts],
            address=owners.module,
            protocol=protocol,
        )
    if kind == "multi-factor":
        return get_multi_factor_validator(
            owners.threshold,
            [(index, get_owner_validator(factor, protocol)) for index, factor in owners.factors],
            address=owners.module,
            protocol=protocol,
        )
    raise ValueError(f"Unsupported owner set: {type(owners).__name__}")
