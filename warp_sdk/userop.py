"""
ERC-4337 UserOperation models and helpers (EntryPoint v0.7).
"""
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Sequence

from eth_abi import encode as abi_encode
from eth_utils import keccak

from .models import Call
from .utils import bytes_to_hex, hex_to_bytes, parse_int, to_rpc_quantity

EXECUTE_SELECTOR = keccak(text="execute(bytes32,bytes)")[:4]
CALL_TYPE_SINGLE = b"\x00"
CALL_TYPE_BATCH = b"\x01"


def encode_execute_calldata(calls: Sequence[Call]) -> bytes:
    """
    Encode ERC-7579 ``execute(bytes32 mode, bytes executionCalldata)``.

    One call uses single mode with ``abi.encodePacked(target, value, data)``;
    several calls use batch mode with ``abi.encode((address,uint256,bytes)[])``.

    Raises:
        ValueError: If ``calls`` is empty
    """
    if not calls:
        raise ValueError("At least one call is required")
    if len(calls) == 1:
        call = calls[0]
        mode = CALL_TYPE_SINGLE.ljust(32, b"\x00")
        execution = hex_to_bytes(call.to) + call.value.to_bytes(32, "big") + hex_to_bytes(call.data)
    else:
        mode = CALL_TYPE_BATCH.ljust(32, b"\x00")
        execution = abi_encode(
            ["(address,uint256,bytes)[]"],
            [[(c.to, c.value, hex_to_bytes(c.data)) for c in calls]],
        )
    return EXECUTE_SELECTOR + abi_encode(["bytes32", "bytes"], [mode, execution])


def get_nonce_key(validator_address: str) -> int:
    """192-bit EntryPoint nonce key that routes validation to ``validator_address``."""
    return int.from_bytes(hex_to_bytes(validator_address), "big") << 32


@dataclass
class UserOperation:
    """
    ERC-4337 v0.7 UserOperation in its unpacked RPC form.

    Values are raw integers (wei / gas units) and are encoded as hex
    quantities for RPC calls. ``signature`` is the last field filled in.
    """
    sender: str
    nonce: int
    call_data: str
    call_gas_limit: int = 0
    verification_gas_limit: int = 0
    pre_verification_gas: int = 0
    max_fee_per_gas: int = 0
    max_priority_fee_per_gas: int = 0
    factory: Optional[str] = None
    factory_data: str = "0x"
    paymaster: Optional[str] = None
    paymaster_verification_gas_limit: int = 0
    paymaster_post_op_gas_limit: int = 0
    paymaster_data: str = "0x"
    signature: str = "0x"

    @property
    def init_code(self) -> bytes:
        if not self.factory:
            return b""
        return hex_to_bytes(self.factory) + hex_to_bytes(self.factory_data)

    @property
    def paymaster_and_data(self) -> bytes:
        if not self.paymaster:
            return b""
        return (
            hex_to_bytes(self.paymaster)
            + self.paymaster_verification_gas_limit.to_bytes(16, "big")
            + self.paymaster_post_op_gas_limit.to_bytes(16, "big")
            + hex_to_bytes(self.paymaster_data)
        )

    def with_signature(self, signature: bytes) -> "UserOperation":
        return replace(self, signature=bytes_to_hex(signature))

    def with_gas(self, estimate: "UserOpGasEstimate") -> "UserOperation":
        changes = dict(
            call_gas_limit=estimate.call_gas_limit,
            verification_gas_limit=estimate.verification_gas_limit,
            pre_verification_gas=estimate.pre_verification_gas,
        )
        if self.paymaster:
            changes["paymaster_verification_gas_limit"] = estimate.paymaster_verification_gas_limit or 0
            changes["paymaster_post_op_gas_limit"] = estimate.paymaster_post_op_gas_limit or 0
        return replace(self, **changes)

    def to_rpc_dict(self) -> Dict[str, Any]:
        data = {
            "sender": self.sender,
            "nonce": to_rpc_quantity(self.nonce),
            "callData": bytes_to_hex(self.call_data),
            "callGasLimit": to_rpc_quantity(self.call_gas_limit),
            "verificationGasLimit": to_rpc_quantity(self.verification_gas_limit),
            "preVerificationGas": to_rpc_quantity(self.pre_verification_gas),
            "maxFeePerGas": to_rpc_quantity(self.max_fee_per_gas),
            "maxPriorityFeePerGas": to_rpc_quantity(self.max_priority_fee_per_gas),
            "signature": bytes_to_hex(self.signature),
        }
        if self.factory:
            data["factory"] = self.factory
            data["factoryData"] = bytes_to_hex(self.factory_data)
        if self.paymaster:
            data["paymaster"] = self.paymaster
            data["paymasterVerificationGasLimit"] = to_rpc_quantity(self.paymaster_verification_gas_limit)
            data["paymasterPostOpGasLimit"] = to_rpc_quantity(self.paymaster_post_op_gas_limit)
            data["paymasterData"] = bytes_to_hex(self.paymaster_data)
        return data

    def to_wire(self) -> Dict[str, Any]:
        """Backend form: integers as decimal strings."""
        return {
            key: str(parse_int(value)) if key in _QUANTITY_FIELDS else value
            for key, value in self.to_rpc_dict().items()
        }


_QUANTITY_FIELDS = {
    "nonce",
    "callGasLimit",
    "verificationGasLimit",
    "preVerificationGas",
    "maxFeePerGas",
    "maxPriorityFeePerGas",
    "paymasterVerificationGasLimit",
    "paymasterPostOpGasLimit",
}


def get_user_operation_hash(user_op: UserOperation, chain_id: int, entry_point: str) -> bytes:
    """
    EntryPoint v0.7 ``getUserOpHash``.

    Args:
        user_op: Operation to hash (the signature is not part of the hash)
        chain_id: Chain the operation runs on
        entry_point: EntryPoint address

    Returns:
        32-byte user operation hash
    """
    account_gas_limits = (user_op.verification_gas_limit << 128) | user_op.call_gas_limit
    gas_fees = (user_op.max_priority_fee_per_gas << 128) | user_op.max_fee_per_gas
    packed = abi_encode(
        ["address", "uint256", "bytes32", "bytes32", "bytes32", "uint256", "bytes32", "bytes32"],
        [
            user_op.sender,
            user_op.nonce,
            keccak(user_op.init_code),
            keccak(hex_to_bytes(user_op.call_data)),
            account_gas_limits.to_bytes(32, "big"),
            user_op.pre_verification_gas,
            gas_fees.to_bytes(32, "big"),
            keccak(user_op.paymaster_and_data),
        ],
    )
    return keccak(abi_encode(["bytes32", "address", "uint256"], [keccak(packed), entry_point, chain_id]))


@dataclass
class UserOpGasEstimate:
    call_gas_limit: int
    verification_gas_limit: int
    pre_verification_gas: int
    paymaster_verification_gas_limit: Optional[int] = None
    paymaster_post_op_gas_limit: Optional[int] = None

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> "UserOpGasEstimate":
        def parse(value: Optional[str]) -> Optional[int]:
            if value is None:
                return None
            return parse_int(value)

        return cls(
            call_gas_limit=parse(data.get("callGasLimit")) or 0,
            verification_gas_limit=parse(data.get("verificationGasLimit")) or 0,
            pre_verification_gas=parse(data.get("preVerificationGas")) or 0,
            paymaster_verification_gas_limit=parse(data.get("paymasterVerificationGasLimit")),
            paymaster_post_op_gas_limit=parse(data.get("paymasterPostOpGasLimit")),
        )


@dataclass
class UserOpReceipt:
    user_op_hash: str
    success: bool
    transaction_hash: Optional[str] = None
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    reason: Optional[str] = None
    logs: list = field(default_factory=list)
