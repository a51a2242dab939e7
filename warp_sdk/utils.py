"""
Utility functions for the Warp SDK.
"""
from typing import Any, Union

from eth_utils import is_hex, to_checksum_address

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
ZERO_HASH = "0x" + "00" * 32

HexLike = Union[str, bytes, bytearray]


def hex_to_bytes(value: HexLike) -> bytes:
    """
    Convert a 0x-prefixed (or bare) hex string to bytes.

    Args:
        value: Hex string, bytes or bytearray

    Returns:
        Raw bytes

    Raises:
        ValueError: If the string is not valid hex
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if not isinstance(value, str):
        raise ValueError(f"Expected hex string or bytes, got {type(value).__name__}")
    body = value[2:] if value[:2].lower() == "0x" else value
    if len(body) % 2:
        body = "0" + body
    try:
        return bytes.fromhex(body)
    except ValueError as e:
        raise ValueError(f"Invalid hex string '{value}': {e}")


def bytes_to_hex(value: HexLike) -> str:
    """Render bytes as lowercase 0x-prefixed hex."""
    return "0x" + hex_to_bytes(value).hex()


def to_bytes32(value: Union[HexLike, int]) -> bytes:
    """Left-pad a value to exactly 32 bytes."""
    if isinstance(value, int):
        return value.to_bytes(32, "big")
    raw = hex_to_bytes(value)
    if len(raw) > 32:
        raise ValueError(f"Value is longer than 32 bytes: {bytes_to_hex(raw)}")
    return raw.rjust(32, b"\x00")


def normalize_address(address: str) -> str:
    """
    Return the checksummed form of an address.

    Raises:
        ValueError: If the value is not a 20-byte hex address
    """
    if not isinstance(address, str) or not is_hex(address) or len(hex_to_bytes(address)) != 20:
        raise ValueError(f"Invalid address: {address!r}")
    return to_checksum_address(address)


def parse_int(value: Any) -> int:
    """
    Parse a wire integer.

    Integers cross the backend API as decimal strings; bundler RPC values are
    0x-prefixed quantities. Both are accepted here.
    """
    if isinstance(value, bool):
        raise ValueError("Boolean is not a valid integer value")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text[:2].lower() == "0x":
            return int(text, 16)
        return int(text, 10)
    raise ValueError(f"Cannot parse integer from {type(value).__name__}")


def to_wire(value: Any) -> Any:
    """
    Convert a value into its JSON wire form.

    Integers become decimal strings and bytes become lowercase 0x hex.
    Mappings and sequences are converted recursively.
    """
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, dict):
        return {k: to_wire(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_wire(v) for v in value]
    return value


def to_rpc_quantity(value: int) -> str:
    """Encode an integer as a JSON-RPC hex quantity."""
    return hex(int(value))


def redact(value: Any) -> str:
    return f"[REDACTED - {len(str(value))} chars]"
