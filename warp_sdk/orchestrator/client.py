"""
OrchestratorClient - HTTP client for the settlement backend.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..models import BundleResult, BundleSubmission, OrderPathItem, PortfolioToken
from ..utils import redact, to_wire
from .errors import OrchestratorError, parse_error


class OrchestratorClient:
    """
    Client for the settlement backend REST API.

    Every failed response is turned into a typed error by
    :func:`warp_sdk.orchestrator.errors.parse_error`. Connection errors and
    gateway failures (502/503/504) on reads are retried with exponential
    backoff; submissions are never replayed once the request was sent.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        retry_count: int = 3,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the OrchestratorClient

        Args:
            base_url: Backend base URL (e.g., "https://orchestrator.rhinestone.wtf")
            api_key: API key sent as ``x-api-key``
            retry_count: Number of retries for connection and gateway errors
            timeout: Timeout for HTTP requests in seconds
            session: Pre-configured requests session (mainly for tests)
            logger: Optional logger instance to use for debug/info logging
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

        if session is None:
            session = requests.Session()
            retries = Retry(
                total=retry_count,
                backoff_factor=0.5,
                status_forcelist=[502, 503, 504],
                allowed_methods=["GET"],
                raise_on_status=False,
                connect=retry_count,
                read=retry_count,
            )
            session.mount("http://", HTTPAdapter(max_retries=retries))
            session.mount("https://", HTTPAdapter(max_retries=retries))
        self.session = session

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                headers=self._headers(),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            self.logger.error(f"Request to {url} failed: {e}")
            raise OrchestratorError(message=f"Request to {url} failed: {e}", error_type="Connection")

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {"message": response.text} if response.text else {}
            self.logger.debug(f"{method} {path} failed with {response.status_code}: {body}")
            parse_error(response.status_code, body, response.headers.get("Retry-After"))

        try:
            return response.json()
        except ValueError as e:
            raise OrchestratorError(
                message=f"Invalid JSON response from {path}: {e}",
                status_code=response.status_code,
            )

    def get_order_path(self, meta_intent: Dict[str, Any], account_address: str) -> List[OrderPathItem]:
        """
        Request a route (order bundle plus cost) for a meta intent.

        Args:
            meta_intent: Target chain, token transfers, destination calls and
                account access list hint
            account_address: Smart account the route is for

        Returns:
            Parsed order path items, first item notarized

        Raises:
            OrchestratorError: If the backend rejects the request
        """
        self.logger.debug(f"Requesting order path for {account_address}")
        data = self._request(
            "POST",
            f"/accounts/{account_address}/bundles/path",
            json=to_wire(meta_intent),
        )
        items = data.get("orderBundles") or []
        if not items:
            raise OrchestratorError(message="Backend returned an empty order path")
        return [OrderPathItem.model_validate(item) for item in items]

    def post_signed_order_bundle(
        self,
        signed_bundles: Sequence[Dict[str, Any]],
        dry_run: bool = False,
    ) -> List[BundleSubmission]:
        """
        Submit signed order bundles.

        Args:
            signed_bundles: Wire-form submissions, each a ``signedOrderBundle``
                plus ``initCode`` or ``userOp``
            dry_run: Ask the backend to validate without executing

        Returns:
            One submission result (id and status) per bundle
        """
        payload: Dict[str, Any] = {"bundles": to_wire(list(signed_bundles))}
        if dry_run:
            payload["options"] = {"dryRun": True}
        self.logger.debug(f"Submitting bundles: {self._sanitize_payload(payload)}")
        data = self._request("POST", "/bundles", json=payload)
        results = [BundleSubmission.model_validate(r) for r in data.get("bundleResults") or []]
        for result in results:
            self.logger.info(f"Bundle {result.bundle_id} submitted with status {result.status.value}")
        return results

    def get_bundle_status(self, bundle_id: int) -> BundleResult:
        data = self._request("GET", f"/bundles/{bundle_id}")
        return BundleResult.model_validate(data)

    def get_pending_bundles(self, account_address: str, count: Optional[int] = None,
                            offset: Optional[int] = None) -> Dict[str, Any]:
        """List bundle events for an account, newest first."""
        params = {}
        if count is not None:
            params["count"] = count
        if offset is not None:
            params["offset"] = offset
        return self._request("GET", f"/accounts/{account_address}/bundles/events", params=params)

    def get_portfolio(
        self,
        account_address: str,
        chain_ids: Optional[Sequence[int]] = None,
        tokens: Optional[Dict[int, Sequence[str]]] = None,
    ) -> List[PortfolioToken]:
        """
        Get an account's token balances across chains.

        Args:
            account_address: Smart account address
            chain_ids: Restrict to these chains
            tokens: Restrict to these token addresses per chain

        Returns:
            One entry per token with locked and unlocked balances
        """
        params = {}
        if chain_ids:
            params["chainIds"] = ",".join(str(c) for c in chain_ids)
        if tokens:
            params["tokens"] = ",".join(
                f"{chain_id}:{token}" for chain_id, addresses in tokens.items() for token in addresses
            )
        data = self._request("GET", f"/accounts/{account_address}/portfolio", params=params)
        return [PortfolioToken.model_validate(t) for t in data.get("portfolio") or []]

    def get_max_token_amount(
        self,
        meta_intent: Dict[str, Any],
        account_address: str,
        token_address: str,
        sponsored: bool = False,
    ) -> int:
        """
        Largest amount of ``token_address`` the account can receive on the
        target chain, or 0 when the route cannot be fulfilled.
        """
        cost = self.get_order_path(meta_intent, account_address)[0].intent_cost
        if not cost.has_fulfilled_all:
            return 0
        for received in cost.tokens_received:
            if received.token_address.lower() == token_address.lower():
                amount = received.amount_spent if sponsored else received.destination_amount
                return max(amount, 0)
        return 0

    def _sanitize_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Remove signatures from a submission payload for logging

        Args:
            payload: Wire payload

        Returns:
            Copy with signature fields redacted
        """
        bundles = []
        for bundle in payload.get("bundles", []):
            if not isinstance(bundle, dict):
                bundles.append(bundle)
                continue
            safe = bundle.copy()
            if isinstance(safe.get("signedOrderBundle"), dict):
                signed = safe["signedOrderBundle"].copy()
                if "originSignatures" in signed:
                    signed["originSignatures"] = [redact(s) for s in signed["originSignatures"]]
                if "targetSignature" in signed:
                    signed["targetSignature"] = redact(signed["targetSignature"])
                safe["signedOrderBundle"] = signed
            if isinstance(safe.get("userOp"), dict) and "signature" in safe["userOp"]:
                safe["userOp"] = {**safe["userOp"], "signature": redact(safe["userOp"]["signature"])}
            bundles.append(safe)
        return {**payload, "bundles": bundles}
