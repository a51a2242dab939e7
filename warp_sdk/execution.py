"""
Transaction execution: prepare -> sign -> submit -> wait.

Each call runs one linear pipeline with no shared mutable state, so
independent transactions can be processed concurrently. Submission is never
retried automatically; the status poll in :meth:`TransactionExecutor.wait_for_execution`
is the only built-in loop and it can be cancelled.
"""
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Union

from ._rate_limited_log import rate_limited_log
from .bundler import BundlerClient
from .config import AccountConfig
from .exceptions import (
    AccountProviderMissingError,
    ExecutionCancelledError,
    ExecutionTimeoutError,
    IntentExpiredError,
    IntentFailedError,
    StaleRouteError,
    UserOperationRevertedError,
)
from .hashing import get_bundle_hash, get_session_allowed_erc7739_content, hash_erc7739
from .models import (
    BundleResult,
    BundleStatus,
    GuardianSigners,
    IntentResult,
    PreparedTransaction,
    SessionSigners,
    SettlementBundle,
    SignedTransaction,
    Transaction,
    TransactionResult,
    UserOpResult,
)
from .builders import prepare_intent_bundle, prepare_user_operation
from .orchestrator.client import OrchestratorClient
from .orchestrator.errors import OrchestratorError
from .packing import (
    SessionMode,
    encode_session_signature,
    get_permission_id,
    pack_signature,
    wrap_erc7739_session_signature,
)
from .signers import ResolvedSigner, resolve_signer
from .userop import UserOperation, UserOpReceipt
from .utils import bytes_to_hex, hex_to_bytes

DEFAULT_POLL_INTERVAL = 0.5


class TransactionExecutor:
    """
    Drives transactions through the settlement backend or a bundler.

    Session and guardian signers go through the user operation path; account
    owners go through the intent path unless a user operation is requested.
    """

    def __init__(
        self,
        config: AccountConfig,
        orchestrator: Optional[OrchestratorClient] = None,
        bundler_factory: Optional[Callable[[int], BundlerClient]] = None,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the TransactionExecutor

        Args:
            config: Account configuration
            orchestrator: Settlement backend client; built from config when omitted
            bundler_factory: Returns the bundler client for a chain id
            clock: Wall-clock source used for bundle expiry checks
            logger: Optional logger instance to use for debug/info logging
        """
        self.config = config
        self.protocol = config.protocol
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock
        self._orchestrator = orchestrator
        self._bundler_factory = bundler_factory
        self._orchestrators: Dict[str, OrchestratorClient] = {}
        self._bundlers: Dict[int, BundlerClient] = {}
        self._lock = threading.Lock()

    @property
    def account(self):
        if self.config.account is None:
            raise AccountProviderMissingError("No account provider configured")
        return self.config.account

    def orchestrator_for(self, chain_id: Optional[int]) -> OrchestratorClient:
        """
        Backend client serving ``chain_id``.

        Testnets and mainnets live on different backends, so clients are
        cached per base URL. An injected client serves every chain.
        """
        if self._orchestrator is not None:
            return self._orchestrator
        url = self.config.get_orchestrator_url(chain_id)
        with self._lock:
            if url not in self._orchestrators:
                self._orchestrators[url] = OrchestratorClient(
                    url,
                    api_key=self.config.api_key,
                    logger=self.logger,
                )
            return self._orchestrators[url]

    def bundler_for(self, chain_id: int) -> BundlerClient:
        with self._lock:
            if chain_id not in self._bundlers:
                if self._bundler_factory is not None:
                    self._bundlers[chain_id] = self._bundler_factory(chain_id)
                else:
                    self._bundlers[chain_id] = BundlerClient(
                        self.config.get_bundler_url(chain_id),
                        self.protocol.entry_point,
                        logger=self.logger,
                    )
            return self._bundlers[chain_id]

    def _resolve(self, transaction: Transaction) -> ResolvedSigner:
        return resolve_signer(self.config, transaction.signers, self.account.address)

    @staticmethod
    def select_mode(transaction: Transaction, use_user_operation: bool = False) -> str:
        if use_user_operation or isinstance(transaction.signers, (SessionSigners, GuardianSigners)):
            return "userop"
        return "intent"

    # ─────────────────────────────────────────────────────────────────────
    #  Prepare
    # ─────────────────────────────────────────────────────────────────────

    def prepare_transaction(self, transaction: Transaction, use_user_operation: bool = False) -> PreparedTransaction:
        """
        Build the payload for a transaction and compute its signing digest.

        Args:
            transaction: Caller transaction
            use_user_operation: Force the user operation path for owner signers

        Returns:
            PreparedTransaction with the digest and the data to submit

        Raises:
            AccountProviderMissingError: If no account provider is configured
            ValidatorUnavailableError: If the signer set cannot be resolved
            InsufficientBalanceError: If the route cannot be funded
        """
        account = self.account
        resolved = self._resolve(transaction)
        mode = self.select_mode(transaction, use_user_operation)
        self.logger.debug(f"Preparing {mode} transaction for {account.address} on chain {transaction.target_chain}")

        if mode == "userop":
            data = prepare_user_operation(
                account,
                self.bundler_for(transaction.target_chain),
                transaction,
                resolved,
                self.protocol,
                orchestrator=self.orchestrator_for(transaction.target_chain) if transaction.is_cross_chain else None,
            )
        else:
            data = prepare_intent_bundle(
                self.orchestrator_for(transaction.target_chain),
                transaction,
                account.address,
                self.protocol,
            )
        return PreparedTransaction(transaction=transaction, data=data, mode=mode)

    # ─────────────────────────────────────────────────────────────────────
    #  Sign
    # ─────────────────────────────────────────────────────────────────────

    def sign_transaction(self, prepared: PreparedTransaction) -> SignedTransaction:
        """
        Sign a prepared transaction and pack the signature.

        Signer errors (declined prompts, failed passkey assertions) propagate
        unchanged and are never retried.
        """
        transaction = prepared.transaction
        resolved = self._resolve(transaction)
        digest = hex_to_bytes(prepared.data.hash)

        if prepared.mode == "intent":
            bundle = prepared.data.bundle
            signature = pack_signature(resolved.sign(digest), resolved.validator)
            return SignedTransaction(prepared=prepared, signature=signature, bundle=bundle)

        user_op: UserOperation = prepared.data.user_op
        signers = transaction.signers
        raw = resolved.sign(digest)
        if isinstance(signers, SessionSigners):
            permission_id = get_permission_id(signers.session, self.protocol)
            session_mode = SessionMode.ENABLE if signers.enable_data is not None else SessionMode.USE
            op_signature = encode_session_signature(
                session_mode,
                permission_id,
                raw,
                enable_data=signers.enable_data,
                session=signers.session,
                protocol=self.protocol,
            )
        else:
            op_signature = raw
        signed_op = user_op.with_signature(op_signature)

        bundle = prepared.data.bundle
        if bundle is None:
            return SignedTransaction(prepared=prepared, signature=op_signature, user_op=signed_op)

        bundle = bundle.with_user_op_hash(digest)
        signature = self._sign_bundle(bundle, resolved, signers, transaction)
        return SignedTransaction(prepared=prepared, signature=signature, bundle=bundle, user_op=signed_op)

    @staticmethod
    def _origin_chain(bundle: SettlementBundle, transaction: Transaction) -> int:
        if transaction.source_chain is not None:
            return transaction.source_chain
        if transaction.source_chains:
            return transaction.source_chains[0]
        return bundle.notarized_chain_id

    def _sign_bundle(self, bundle: SettlementBundle, resolved: ResolvedSigner, signers: Any,
                     transaction: Transaction) -> bytes:
        if not isinstance(signers, SessionSigners):
            return pack_signature(resolved.sign(get_bundle_hash(bundle, self.protocol)), resolved.validator)

        # the session key signs on the origin chain, inside the account's ERC-1271 domain there
        chain_id = self._origin_chain(bundle, transaction)
        account_domain = self.account.get_eip712_domain(chain_id)
        app_domain_separator, contents_type = get_session_allowed_erc7739_content(chain_id, self.protocol)
        envelope = hash_erc7739(bundle, account_domain, app_domain_separator, contents_type, self.protocol)
        permission_id = get_permission_id(signers.session, self.protocol)

        def wrap(raw: bytes) -> bytes:
            return permission_id + wrap_erc7739_session_signature(
                raw, envelope.app_domain_separator, envelope.struct_hash, envelope.contents_type
            )

        return pack_signature(resolved.sign(envelope.hash), resolved.validator, transform=wrap)

    # ─────────────────────────────────────────────────────────────────────
    #  Submit
    # ─────────────────────────────────────────────────────────────────────

    def _signed_bundle_payload(self, signed: SignedTransaction) -> Dict[str, Any]:
        """
        Wire form of a signed bundle.

        The bundle fields sit next to its signatures under ``signedOrderBundle``;
        intents carry the account's ``initCode``, user operation funding
        bundles carry the signed ``userOp`` instead.
        """
        bundle = signed.bundle
        signature = bytes_to_hex(signed.signature)
        payload: Dict[str, Any] = {
            "signedOrderBundle": {
                **bundle.to_wire(),
                "originSignatures": [signature] * len(bundle.segments),
                "targetSignature": signature,
            },
        }
        if signed.user_op is not None:
            payload["userOp"] = signed.user_op.to_wire()
            return payload
        factory_args = self.account.get_factory_args()
        if factory_args is not None:
            factory, factory_data = factory_args
            payload["initCode"] = bytes_to_hex(hex_to_bytes(factory) + hex_to_bytes(factory_data))
        return payload

    def submit_transaction(self, signed: SignedTransaction, dry_run: bool = False) -> TransactionResult:
        """
        Submit a signed transaction.

        Returns:
            UserOpResult for bundler submissions, IntentResult for the backend

        Raises:
            StaleRouteError: If the bundle expired before submission
            OrchestratorError: If the backend rejects the bundle
            BundlerError: If the bundler rejects the user operation
        """
        transaction = signed.prepared.transaction
        source_chain = transaction.source_chain

        if signed.bundle is None:
            chain_id = transaction.target_chain
            user_op_hash = self.bundler_for(chain_id).send_user_operation(signed.user_op)
            return UserOpResult(
                hash=user_op_hash,
                source_chain=source_chain if source_chain is not None else chain_id,
                target_chain=chain_id,
            )

        now = int(self.clock())
        if signed.bundle.expires <= now:
            raise StaleRouteError(
                f"Settlement bundle expired at {signed.bundle.expires} (now {now}); prepare it again",
                expires=signed.bundle.expires,
            )

        results = self.orchestrator_for(transaction.target_chain).post_signed_order_bundle(
            [self._signed_bundle_payload(signed)],
            dry_run=dry_run,
        )
        if not results:
            raise OrchestratorError(message="Backend did not return a bundle id")
        return IntentResult(
            id=results[0].bundle_id,
            source_chain=source_chain,
            target_chain=transaction.target_chain,
        )

    # ─────────────────────────────────────────────────────────────────────
    #  Wait
    # ─────────────────────────────────────────────────────────────────────

    def wait_for_execution(
        self,
        result: TransactionResult,
        accepts_preconfirmations: bool = False,
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> Union[BundleResult, UserOpReceipt]:
        """
        Block until a submitted transaction reaches an accepted terminal state.

        Args:
            result: Value returned by :meth:`submit_transaction`
            accepts_preconfirmations: Treat PRECONFIRMED as done (faster, riskier)
            cancel: Event that aborts the wait when set
            timeout: Overall limit in seconds; no limit when None
            poll_interval: Seconds between status checks

        Returns:
            The final bundle status, or the user operation receipt

        Raises:
            IntentFailedError: If the bundle reaches FAILED
            IntentExpiredError: If the bundle reaches EXPIRED
            UserOperationRevertedError: If the user operation reverted
            ExecutionCancelledError: If ``cancel`` is set
            ExecutionTimeoutError: If ``timeout`` elapses first
        """
        cancel = cancel or threading.Event()

        if isinstance(result, UserOpResult):
            receipt = self.bundler_for(result.target_chain).wait_for_user_operation_receipt(
                result.hash, timeout=timeout, cancel=cancel
            )
            if not receipt.success:
                raise UserOperationRevertedError(
                    f"User operation {result.hash} reverted: {receipt.reason or 'no reason given'}",
                    user_op_hash=result.hash,
                    receipt={"transactionHash": receipt.transaction_hash},
                )
            return receipt

        accepted = {BundleStatus.FILLED, BundleStatus.COMPLETED}
        if accepts_preconfirmations:
            accepted.add(BundleStatus.PRECONFIRMED)

        orchestrator = self.orchestrator_for(result.target_chain)
        deadline = time.monotonic() + timeout if timeout is not None else None
        while True:
            status = orchestrator.get_bundle_status(result.id)
            if status.status in accepted:
                self.logger.info(f"Bundle {result.id} reached {status.status.value}")
                return status
            if status.status == BundleStatus.FAILED:
                raise IntentFailedError(f"Bundle {result.id} failed", result.id, status.to_wire())
            if status.status == BundleStatus.EXPIRED:
                raise IntentExpiredError(f"Bundle {result.id} expired before it was filled", result.id, status.to_wire())

            if deadline is not None and time.monotonic() >= deadline:
                raise ExecutionTimeoutError(f"Bundle {result.id} still {status.status.value} after {timeout}s")
            rate_limited_log(
                f"Bundle {result.id} is {status.status.value}, waiting",
                level="debug",
                logger_instance=self.logger,
            )
            if cancel.wait(poll_interval):
                raise ExecutionCancelledError(f"Wait for bundle {result.id} was cancelled")

    def send_transaction(self, transaction: Transaction, use_user_operation: bool = False,
                         dry_run: bool = False) -> TransactionResult:
        """Prepare, sign and submit ``transaction`` in one call."""
        prepared = self.prepare_transaction(transaction, use_user_operation=use_user_operation)
        signed = self.sign_transaction(prepared)
        return self.submit_transaction(signed, dry_run=dry_run)
