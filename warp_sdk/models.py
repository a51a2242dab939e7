"""
Data models for the Warp SDK.

Wire models parse the backend's JSON eagerly: integers arrive as decimal
strings and are stored as ``int``, addresses are checksummed and byte fields
are kept as lowercase 0x hex.
"""
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator, model_validator
from pydantic.functional_validators import AfterValidator, BeforeValidator

from .exceptions import BundleSealedError
from .utils import ZERO_ADDRESS, ZERO_HASH, bytes_to_hex, normalize_address, parse_int, to_wire

WireInt = Annotated[int, BeforeValidator(parse_int)]
Address = Annotated[str, AfterValidator(normalize_address)]
HexBytes = Annotated[str, BeforeValidator(bytes_to_hex)]


class WireModel(BaseModel):
    """Frozen base model that reads and writes the backend's camelCase JSON."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, arbitrary_types_allowed=True)

    def to_wire(self) -> Dict[str, Any]:
        return to_wire(self.model_dump(by_alias=True, exclude_none=True))


# ─────────────────────────────────────────────────────────────────────────
#  Caller input
# ─────────────────────────────────────────────────────────────────────────

class Call(WireModel):
    """A single call to run on the target chain."""
    to: Address
    value: WireInt = 0
    data: HexBytes = "0x"


class TokenRequest(WireModel):
    """
    A token amount the account must hold on the target chain.

    Without an ``amount`` the backend quotes the largest amount it can route.
    """
    address: Address
    amount: Optional[WireInt] = None


class EcdsaOwners(WireModel):
    """ECDSA owner set; ``accounts`` are :class:`warp_sdk.signers.Signer` objects."""
    kind: Literal["ecdsa"] = "ecdsa"
    accounts: Tuple[Any, ...]
    threshold: int = 1
    module: Optional[Address] = None

    @model_validator(mode="after")
    def _check_threshold(self):
        if not self.accounts:
            raise ValueError("At least one owner account is required")
        if not 1 <= self.threshold <= len(self.accounts):
            raise ValueError(f"Threshold {self.threshold} is out of range for {len(self.accounts)} owners")
        return self


class EcdsaV0Owners(EcdsaOwners):
    """ECDSA owner set of a legacy account, checked by the v0 ownable validator."""
    kind: Literal["ecdsa-v0"] = "ecdsa-v0"


class PasskeyOwners(WireModel):
    """WebAuthn owner set; ``accounts`` are :class:`warp_sdk.signers.PasskeyAccount` objects."""
    kind: Literal["passkey"] = "passkey"
    accounts: Tuple[Any, ...]
    threshold: int = 1
    module: Optional[Address] = None

    @model_validator(mode="after")
    def _check_threshold(self):
        if not self.accounts:
            raise ValueError("At least one passkey is required")
        if not 1 <= self.threshold <= len(self.accounts):
            raise ValueError(f"Threshold {self.threshold} is out of range for {len(self.accounts)} passkeys")
        return self


FactorOwnerSet = Annotated[Union[EcdsaOwners, EcdsaV0Owners, PasskeyOwners], Field(discriminator="kind")]


class MultiFactorOwners(WireModel):
    """
    Owner set checked by the multi-factor validator.

    Each entry is a sub-validator identified by its position in
    ``validators``; a ``None`` entry keeps its position unused.
    """
    kind: Literal["multi-factor"] = "multi-factor"
    validators: Tuple[Optional[FactorOwnerSet], ...]
    threshold: int = 1
    module: Optional[Address] = None

    @property
    def factors(self) -> List[Tuple[int, Any]]:
        """``(id, owner set)`` pairs of the configured sub-validators."""
        return [(index, v) for index, v in enumerate(self.validators) if v is not None]

    @model_validator(mode="after")
    def _check_threshold(self):
        count = len(self.factors)
        if not count:
            raise ValueError("At least one sub-validator is required")
        if not 1 <= self.threshold <= min(count, 255):
            raise ValueError(f"Threshold {self.threshold} is out of range for {count} sub-validators")
        return self


OwnerSet = Annotated[
    Union[EcdsaOwners, EcdsaV0Owners, PasskeyOwners, MultiFactorOwners],
    Field(discriminator="kind"),
]


class ChainDigest(WireModel):
    chain_id: WireInt = Field(..., alias="chainId")
    session_digest: HexBytes = Field(..., alias="sessionDigest")


class SessionEnableData(WireModel):
    """Pre-computed data that registers a session on first use."""
    hashes_and_chain_ids: Tuple[ChainDigest, ...] = Field(..., alias="hashesAndChainIds")
    chain_digest_index: int = Field(0, alias="chainDigestIndex")
    signature: HexBytes


class Session(WireModel):
    """A delegated signing key set scoped by the session emissary."""
    owners: OwnerSet
    salt: HexBytes = ZERO_HASH
    chain_id: Optional[int] = None


class OwnerSigners(WireModel):
    type: Literal["owner"] = "owner"
    owners: OwnerSet

    @property
    def kind(self) -> str:
        return self.owners.kind


class SessionSigners(WireModel):
    type: Literal["session"] = "session"
    session: Session
    enable_data: Optional[SessionEnableData] = None


class GuardianSigners(WireModel):
    type: Literal["guardians"] = "guardians"
    guardians: Tuple[Any, ...]
    threshold: int = 1

    @model_validator(mode="after")
    def _check_guardians(self):
        if not self.guardians:
            raise ValueError("At least one guardian is required")
        return self


SignerSet = Annotated[Union[OwnerSigners, SessionSigners, GuardianSigners], Field(discriminator="type")]


class Transaction(WireModel):
    """
    A caller's intended effect.

    ``chain`` is shorthand that sets both the source and the target chain.
    """
    calls: Tuple[Call, ...] = ()
    token_requests: Tuple[TokenRequest, ...] = ()
    target_chain: int
    source_chain: Optional[int] = None
    source_chains: Optional[Tuple[int, ...]] = None
    gas_limit: Optional[int] = None
    signers: Optional[SignerSet] = None
    sponsored: bool = False

    @model_validator(mode="before")
    @classmethod
    def _expand_chain(cls, data: Any) -> Any:
        if isinstance(data, dict) and "chain" in data:
            data = dict(data)
            chain = data.pop("chain")
            data.setdefault("target_chain", chain)
            data.setdefault("source_chain", chain)
        return data

    @property
    def is_cross_chain(self) -> bool:
        if self.source_chains:
            return any(c != self.target_chain for c in self.source_chains)
        return self.source_chain is not None and self.source_chain != self.target_chain


class ValidatorRef(WireModel):
    address: Address
    is_root: bool


# ─────────────────────────────────────────────────────────────────────────
#  Settlement bundle
# ─────────────────────────────────────────────────────────────────────────

class Execution(WireModel):
    to: Address
    value: WireInt = 0
    data: HexBytes = "0x"

    @classmethod
    def from_call(cls, call: Call) -> "Execution":
        return cls(to=call.to, value=call.value, data=call.data)


class Witness(WireModel):
    recipient: Address
    token_out: Tuple[Tuple[WireInt, WireInt], ...] = Field((), alias="tokenOut")
    deposit_id: WireInt = Field(0, alias="depositId")
    target_chain: WireInt = Field(..., alias="targetChain")
    fill_deadline: WireInt = Field(..., alias="fillDeadline")
    execs: Tuple[Execution, ...] = ()
    user_op_hash: HexBytes = Field(ZERO_HASH, alias="userOpHash")
    max_fee_bps: WireInt = Field(0, alias="maxFeeBps")


class Segment(WireModel):
    arbiter: Address
    chain_id: WireInt = Field(..., alias="chainId")
    ids_and_amounts: Tuple[Tuple[WireInt, WireInt], ...] = Field((), alias="idsAndAmounts")
    witness: Witness


class SettlementBundle(WireModel):
    """
    Cross-chain order to be signed.

    Segment 0 is the notarized chain whose domain binds the whole bundle.
    The bundle is sealed once its hash has been computed; later edits raise
    :class:`BundleSealedError`.
    """
    sponsor: Address
    nonce: WireInt
    expires: WireInt
    segments: Tuple[Segment, ...]

    _sealed: bool = PrivateAttr(default=False)

    @field_validator("segments")
    @classmethod
    def _non_empty(cls, value):
        if not value:
            raise ValueError("A settlement bundle needs at least one segment")
        return value

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def notarized_chain_id(self) -> int:
        return self.segments[0].chain_id

    def seal(self) -> "SettlementBundle":
        self._sealed = True
        return self

    def _replace_first_witness(self, **changes) -> "SettlementBundle":
        if self._sealed:
            raise BundleSealedError("Settlement bundle was already hashed and cannot be modified")
        first = self.segments[0]
        witness = first.witness.model_copy(update=changes)
        segments = (first.model_copy(update={"witness": witness}),) + self.segments[1:]
        return SettlementBundle(
            sponsor=self.sponsor,
            nonce=self.nonce,
            expires=self.expires,
            segments=segments,
        )

    def with_executions(self, injected: Sequence[Execution], calls: Sequence[Execution]) -> "SettlementBundle":
        """Return a copy whose segment 0 runs ``injected`` followed by ``calls``."""
        return self._replace_first_witness(execs=tuple(injected) + tuple(calls))

    def with_user_op_hash(self, user_op_hash: str) -> "SettlementBundle":
        return self._replace_first_witness(user_op_hash=bytes_to_hex(user_op_hash))


class TokenReceived(WireModel):
    token_address: Address = Field(..., alias="tokenAddress")
    has_fulfilled: bool = Field(True, alias="hasFulfilled")
    amount_spent: WireInt = Field(0, alias="amountSpent")
    destination_amount: WireInt = Field(0, alias="destinationAmount")
    fee: WireInt = 0

    @model_validator(mode="before")
    @classmethod
    def _target_amount_alias(cls, data: Any) -> Any:
        if isinstance(data, dict) and "destinationAmount" not in data and "targetAmount" in data:
            data = dict(data)
            data["destinationAmount"] = data["targetAmount"]
        return data


class IntentCost(WireModel):
    """Cost breakdown returned with an order path."""
    has_fulfilled_all: bool = Field(..., alias="hasFulfilledAll")
    tokens_received: Tuple[TokenReceived, ...] = Field((), alias="tokensReceived")
    tokens_spent: Dict[str, Any] = Field(default_factory=dict, alias="tokensSpent")
    token_shortfall: Tuple[Dict[str, Any], ...] = Field((), alias="tokenShortfall")
    total_token_shortfall_in_usd: Optional[float] = Field(None, alias="totalTokenShortfallInUSD")


class OrderPathItem(WireModel):
    order_bundle: SettlementBundle = Field(..., alias="orderBundle")
    injected_executions: Tuple[Execution, ...] = Field((), alias="injectedExecutions")
    intent_cost: IntentCost = Field(..., alias="intentCost")


class Claim(WireModel):
    chain_id: WireInt = Field(..., alias="chainId")
    status: str
    claim_transaction_hash: Optional[str] = Field(None, alias="claimTransactionHash")


class BundleStatus(str, Enum):
    PENDING = "PENDING"
    PARTIALLY_COMPLETED = "PARTIALLY_COMPLETED"
    PRECONFIRMED = "PRECONFIRMED"
    FILLED = "FILLED"
    COMPLETED = "COMPLETED"
    EXPIRED = "EXPIRED"
    FAILED = "FAILED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Any) -> "BundleStatus":
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self in (BundleStatus.FILLED, BundleStatus.COMPLETED, BundleStatus.EXPIRED, BundleStatus.FAILED)


class BundleResult(WireModel):
    status: BundleStatus
    fill_timestamp: Optional[WireInt] = Field(None, alias="fillTimestamp")
    fill_transaction_hash: Optional[str] = Field(None, alias="fillTransactionHash")
    claims: Tuple[Claim, ...] = ()

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value):
        return BundleStatus.parse(value)


class BundleSubmission(WireModel):
    bundle_id: WireInt = Field(..., alias="bundleId")
    status: BundleStatus = BundleStatus.PENDING

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value):
        return BundleStatus.parse(value)


class PortfolioBalance(WireModel):
    locked: WireInt = 0
    unlocked: WireInt = 0


class PortfolioChainBalance(WireModel):
    chain_id: WireInt = Field(..., alias="chainId")
    token_address: Address = Field(..., alias="tokenAddress")
    balance: PortfolioBalance = PortfolioBalance()


class PortfolioToken(WireModel):
    token_name: str = Field(..., alias="tokenName")
    token_decimals: int = Field(18, alias="tokenDecimals")
    balance: PortfolioBalance = PortfolioBalance()
    token_chain_balance: Tuple[PortfolioChainBalance, ...] = Field((), alias="tokenChainBalance")


# ─────────────────────────────────────────────────────────────────────────
#  Results
# ─────────────────────────────────────────────────────────────────────────

class UserOpResult(WireModel):
    type: Literal["userop"] = "userop"
    hash: HexBytes
    source_chain: int
    target_chain: int


class IntentResult(WireModel):
    type: Literal["intent"] = "intent"
    id: int
    source_chain: Optional[int] = None
    target_chain: int


TransactionResult = Union[UserOpResult, IntentResult]


class BundleData(WireModel):
    """Output of a builder: the digest to sign and what will be submitted."""
    hash: HexBytes
    order_path: Tuple[OrderPathItem, ...] = ()
    user_op: Optional[Any] = None

    @property
    def bundle(self) -> Optional[SettlementBundle]:
        return self.order_path[0].order_bundle if self.order_path else None


class PreparedTransaction(WireModel):
    transaction: Transaction
    data: BundleData
    mode: Literal["intent", "userop"]


class SignedTransaction(WireModel):
    prepared: PreparedTransaction
    signature: HexBytes
    bundle: Optional[SettlementBundle] = None
    user_op: Optional[Any] = None


def default_token_requests() -> List[TokenRequest]:
    """Minimal non-zero native token request used when none is given."""
    return [TokenRequest(address=ZERO_ADDRESS, amount=1)]
