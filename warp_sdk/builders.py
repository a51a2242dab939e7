"""
Route and bundle builders.

Both builders return :class:`~warp_sdk.models.BundleData`: the digest to
sign plus what will be submitted. The intent path hashes a settlement bundle
with the struct hashing engine; the user operation path hashes with the
EntryPoint's ``getUserOpHash``. The two schemes are never mixed.
"""
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence

from .account import AccountProvider
from .bundler import BundlerClient
from .config import Protocol
from .hashing import get_bundle_hash
from .models import (
    BundleData,
    Call,
    Execution,
    OrderPathItem,
    OwnerSet,
    SessionSigners,
    TokenRequest,
    Transaction,
    default_token_requests,
)
from .orchestrator.client import OrchestratorClient
from .orchestrator.errors import InsufficientBalanceError
from .packing import SessionMode, encode_session_signature, get_permission_id
from .signers import ResolvedSigner, WebAuthnAssertion, pack_multi_factor_signature, pack_passkey_signature
from .userop import UserOperation, encode_execute_calldata, get_nonce_key, get_user_operation_hash
from .validators import get_owner_validator

logger = logging.getLogger(__name__)

# signature used only for gas estimation; never submitted
ECDSA_MOCK_SIGNATURE = bytes.fromhex(
    "81d4b4981670cb18f99f0b4a66446df1bf5b204d24cfcb659bf38ba27a4359b5"
    "711649ec2423c5e1247245eba2964679b6a1dbb85c992ae40b9b00c6935b02ff1b"
)
MOCK_ASSERTION = WebAuthnAssertion(
    authenticator_data=b"\x49" * 32 + b"\x05" + b"\x00" * 4,
    client_data_json=(
        '{"type":"webauthn.get","challenge":"' + "A" * 43
        + '","origin":"http://localhost","crossOrigin":false}'
    ),
    challenge_index=23,
    type_index=1,
    r=0x635BC6D0F68FF895CAE8A288ECF7542A6A9CD555DF784B73E1E2EA7E9104B1DB,
    s=0x15E9015D280CB19527881C625FEE43FD3A405D5B0D199A8C8E6589A7381209E4,
)


def resolve_token_requests(transaction: Transaction) -> List[TokenRequest]:
    """Caller token requests, or a minimal native token request when there are none."""
    if transaction.token_requests:
        return list(transaction.token_requests)
    return default_token_requests()


def _token_transfer(request: TokenRequest) -> Dict[str, Any]:
    transfer: Dict[str, Any] = {"tokenAddress": request.address}
    if request.amount is not None:
        transfer["amount"] = request.amount
    return transfer


def build_meta_intent(
    transaction: Transaction,
    account_address: str,
    executions: Sequence[Execution],
    token_requests: Sequence[TokenRequest],
) -> Dict[str, Any]:
    """
    Route request body for the settlement backend.

    Integers are converted to decimal strings by the client.
    """
    meta_intent: Dict[str, Any] = {
        "targetChainId": transaction.target_chain,
        "targetAccount": account_address,
        "tokenTransfers": [_token_transfer(r) for r in token_requests],
        "targetExecutions": [e.to_wire() for e in executions],
        "options": {
            "sponsorSettings": {
                "gasSponsored": transaction.sponsored,
                "bridgeFeesSponsored": transaction.sponsored,
                "swapFeesSponsored": transaction.sponsored,
            },
        },
    }
    if transaction.gas_limit is not None:
        meta_intent["targetGasUnits"] = transaction.gas_limit
    source_chains = transaction.source_chains or (
        (transaction.source_chain,) if transaction.source_chain is not None else ()
    )
    if source_chains:
        meta_intent["accountAccessList"] = {"chainIds": list(source_chains)}
    return meta_intent


def get_order_path(
    orchestrator: OrchestratorClient,
    transaction: Transaction,
    account_address: str,
    executions: Sequence[Execution],
) -> List[OrderPathItem]:
    """
    Fetch a route and reject it when the account cannot fund it.

    Raises:
        InsufficientBalanceError: If the backend reports ``hasFulfilledAll == false``
    """
    meta_intent = build_meta_intent(
        transaction, account_address, executions, resolve_token_requests(transaction)
    )
    order_path = orchestrator.get_order_path(meta_intent, account_address)
    cost = order_path[0].intent_cost
    if not cost.has_fulfilled_all:
        logger.warning(f"Route for {account_address} cannot be fulfilled: {cost.to_wire()}")
        raise InsufficientBalanceError(
            context={"intentCost": cost.to_wire()},
            error_type="Insufficient Liquidity",
        )
    return order_path


def prepare_intent_bundle(
    orchestrator: OrchestratorClient,
    transaction: Transaction,
    account_address: str,
    protocol: Optional[Protocol] = None,
) -> BundleData:
    """
    Build and hash a settlement bundle.

    Backend-injected executions run before the caller's calls in segment 0.

    Args:
        orchestrator: Settlement backend client
        transaction: Caller transaction
        account_address: Smart account address (the bundle sponsor)
        protocol: Protocol constants; defaults to the active version

    Returns:
        BundleData whose hash is the compact signing digest
    """
    calls = [Execution.from_call(c) for c in transaction.calls]
    order_path = get_order_path(orchestrator, transaction, account_address, calls)

    first = order_path[0]
    bundle = first.order_bundle.with_executions(first.injected_executions, calls)
    digest = get_bundle_hash(bundle, protocol)
    order_path[0] = first.model_copy(update={"order_bundle": bundle})
    logger.debug(f"Prepared intent bundle {digest.hex()} with {len(bundle.segments)} segment(s)")
    return BundleData(hash=digest, order_path=tuple(order_path))


def get_owner_mock_signature(owners: OwnerSet) -> bytes:
    """
    Placeholder raw signature for an owner set.

    Raises:
        ValueError: If the owner set kind is unknown
    """
    kind = getattr(owners, "kind", None)
    if kind in ("ecdsa", "ecdsa-v0"):
        return ECDSA_MOCK_SIGNATURE * len(owners.accounts)
    if kind == "passkey":
        count = len(owners.accounts)
        return pack_passkey_signature([b"\x00" * 32] * count, [MOCK_ASSERTION] * count)
    if kind == "multi-factor":
        return pack_multi_factor_signature([
            (index, get_owner_validator(factor).address, get_owner_mock_signature(factor))
            for index, factor in owners.factors
        ])
    raise ValueError(f"Unsupported owner set: {type(owners).__name__}")


def get_mock_signature(resolved: ResolvedSigner, signers: Any = None) -> bytes:
    """Placeholder signature with the right shape for gas estimation."""
    if resolved.kind == "guardians":
        raw = ECDSA_MOCK_SIGNATURE * len(resolved.owners)
    else:
        raw = get_owner_mock_signature(resolved.owners)
    if isinstance(signers, SessionSigners):
        return encode_session_signature(SessionMode.USE, get_permission_id(signers.session), raw)
    return raw


def prepare_user_operation(
    account: AccountProvider,
    bundler: BundlerClient,
    transaction: Transaction,
    resolved: ResolvedSigner,
    protocol: Protocol,
    orchestrator: Optional[OrchestratorClient] = None,
) -> BundleData:
    """
    Build and hash a user operation for the target chain.

    For a cross-chain transaction an order path is fetched first to learn the
    injected executions and the cost; the operation then runs the injected
    calls followed by the caller's calls, and the settlement bundle only
    funds the account.

    Args:
        account: Account provider (nonce, deployment, factory data)
        bundler: Bundler client for the target chain
        transaction: Caller transaction
        resolved: Signer the operation will be validated by
        protocol: Protocol constants
        orchestrator: Settlement backend client (cross-chain only)

    Returns:
        BundleData whose hash is the EntryPoint v0.7 user operation hash
    """
    calls: List[Call] = list(transaction.calls)
    order_path: List[OrderPathItem] = []

    if transaction.is_cross_chain:
        if orchestrator is None:
            raise ValueError("Cross-chain user operations need a settlement backend client")
        order_path = get_order_path(orchestrator, transaction, account.address, [])
        first = order_path[0]
        injected = [Call(to=e.to, value=e.value, data=e.data) for e in first.injected_executions]
        calls = injected + calls
        order_path[0] = first.model_copy(update={"order_bundle": first.order_bundle.with_executions((), ())})

    chain_id = transaction.target_chain
    nonce = account.get_nonce(chain_id, get_nonce_key(resolved.validator.address))
    max_fee, priority_fee = bundler.get_user_operation_gas_price()

    factory, factory_data = None, b""
    factory_args = account.get_factory_args()
    if factory_args is not None and not account.is_deployed(chain_id):
        factory, factory_data = factory_args

    user_op = UserOperation(
        sender=account.address,
        nonce=nonce,
        call_data=encode_execute_calldata(calls),
        max_fee_per_gas=max_fee,
        max_priority_fee_per_gas=priority_fee,
        factory=factory,
        factory_data=factory_data,
    )
    estimate = bundler.estimate_user_operation_gas(
        user_op.with_signature(get_mock_signature(resolved, transaction.signers))
    )
    user_op = user_op.with_gas(estimate)
    if transaction.gas_limit is not None:
        user_op = replace(user_op, call_gas_limit=transaction.gas_limit)

    digest = get_user_operation_hash(user_op, chain_id, protocol.entry_point)
    logger.debug(f"Prepared user operation {digest.hex()} on chain {chain_id}")
    return BundleData(hash=digest, order_path=tuple(order_path), user_op=user_op)

