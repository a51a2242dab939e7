"""
WarpClient - Main client for the Warp SDK.
"""
import logging
import threading
import urllib.parse
from typing import Any, Dict, List, Optional, Sequence, Union

from .builders import build_meta_intent, resolve_token_requests
from .config import AccountConfig
from .execution import DEFAULT_POLL_INTERVAL, TransactionExecutor
from .models import (
    BundleResult,
    Call,
    Execution,
    PortfolioToken,
    PreparedTransaction,
    SignedTransaction,
    TokenRequest,
    Transaction,
    TransactionResult,
)
from .orchestrator.client import OrchestratorClient
from .userop import UserOpReceipt


def _validate_url(name: str, url: str) -> None:
    parsed = urllib.parse.urlparse(url)
    host = parsed.netloc.split(":")[0]
    if parsed.scheme != "https" and host not in ("localhost", "127.0.0.1"):
        raise ValueError(f"{name} must use https:// for security (got: {parsed.scheme}://)")


class WarpClient:
    """
    Client for one smart account.

    This client handles:
    1. Routing and submitting cross-chain intents through the settlement backend
    2. Building and submitting ERC-4337 user operations through a bundler
    3. Reading the account's portfolio

    To use this client, you'll need:
    - An account provider (see :class:`~warp_sdk.account.OnchainAccount`)
    - The account's owner set
    - A settlement backend API key for mainnet chains
    - A bundler URL for every chain user operations are sent on
    """

    def __init__(
        self,
        config: AccountConfig,
        orchestrator: Optional[OrchestratorClient] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the WarpClient

        Args:
            config: Account configuration
            orchestrator: Settlement backend client; built from config when omitted
            logger: Optional logger instance to use for debug/info logging

        Raises:
            ValueError: If a configured URL is not https (unless it is localhost/127.0.0.1)
        """
        if config.orchestrator_url:
            _validate_url("orchestrator_url", config.orchestrator_url)
        for chain_id, url in config.bundler_urls.items():
            _validate_url(f"bundler_urls[{chain_id}]", url)

        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.executor = TransactionExecutor(config, orchestrator=orchestrator, logger=self.logger)

    @property
    def address(self) -> str:
        return self.executor.account.address

    @property
    def orchestrator(self) -> OrchestratorClient:
        return self.executor.orchestrator_for(None)

    def prepare_transaction(self, transaction: Transaction, use_user_operation: bool = False) -> PreparedTransaction:
        return self.executor.prepare_transaction(transaction, use_user_operation=use_user_operation)

    def sign_transaction(self, prepared: PreparedTransaction) -> SignedTransaction:
        return self.executor.sign_transaction(prepared)

    def submit_transaction(self, signed: SignedTransaction, dry_run: bool = False) -> TransactionResult:
        return self.executor.submit_transaction(signed, dry_run=dry_run)

    def send_transaction(self, transaction: Transaction, use_user_operation: bool = False,
                         dry_run: bool = False) -> TransactionResult:
        """
        Prepare, sign and submit a transaction.

        Use the three separate steps when signing needs user interaction
        or must happen elsewhere.
        """
        return self.executor.send_transaction(transaction, use_user_operation=use_user_operation, dry_run=dry_run)

    def wait_for_execution(
        self,
        result: TransactionResult,
        accepts_preconfirmations: bool = False,
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> Union[BundleResult, UserOpReceipt]:
        return self.executor.wait_for_execution(
            result,
            accepts_preconfirmations=accepts_preconfirmations,
            cancel=cancel,
            timeout=timeout,
            poll_interval=poll_interval,
        )

    def get_bundle_status(self, bundle_id: int) -> BundleResult:
        return self.orchestrator.get_bundle_status(bundle_id)

    def get_pending_bundles(self, count: Optional[int] = None, offset: Optional[int] = None) -> Any:
        return self.orchestrator.get_pending_bundles(self.address, count=count, offset=offset)

    def get_portfolio(
        self,
        chain_ids: Optional[Sequence[int]] = None,
        tokens: Optional[Dict[int, Sequence[str]]] = None,
    ) -> List[PortfolioToken]:
        """Token balances of this account, optionally filtered by chain and token."""
        return self.orchestrator.get_portfolio(self.address, chain_ids=chain_ids, tokens=tokens)

    def get_max_token_amount(
        self,
        target_chain: int,
        token_address: str,
        calls: Sequence[Call] = (),
        gas_limit: Optional[int] = None,
        sponsored: bool = False,
    ) -> int:
        """
        Largest amount of a token this account can bring to ``target_chain``.

        Args:
            target_chain: Destination chain id
            token_address: Token to quote
            calls: Calls the route must also fund
            gas_limit: Gas units reserved for the calls
            sponsored: Whether fees are sponsored

        Returns:
            Amount in the token's base units; 0 when no route exists
        """
        transaction = Transaction(
            target_chain=target_chain,
            calls=tuple(calls),
            token_requests=(TokenRequest(address=token_address),),
            gas_limit=gas_limit,
            sponsored=sponsored,
        )
        meta_intent = build_meta_intent(
            transaction,
            self.address,
            [Execution.from_call(c) for c in transaction.calls],
            resolve_token_requests(transaction),
        )
        orchestrator = self.executor.orchestrator_for(target_chain)
        return orchestrator.get_max_token_amount(meta_intent, self.address, token_address, sponsored=sponsored)
