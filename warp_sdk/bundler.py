"""
ERC-4337 bundler JSON-RPC client.
"""
import itertools
import logging
import threading
import time
from typing import Any, List, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ._rate_limited_log import rate_limited_log
from .exceptions import BundlerError, ExecutionCancelledError, ExecutionTimeoutError
from .userop import UserOperation, UserOpGasEstimate, UserOpReceipt
from .utils import bytes_to_hex, parse_int


class BundlerClient:
    """
    Client for an ERC-4337 bundler.

    Speaks the standard ``eth_*UserOperation*`` methods against one EntryPoint.
    """

    def __init__(
        self,
        rpc_url: str,
        entry_point: str,
        retry_count: int = 3,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.rpc_url = rpc_url
        self.entry_point = entry_point
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self._ids = itertools.count(1)

        if session is None:
            session = requests.Session()
            # connection errors only; JSON-RPC POSTs are not replayed
            retries = Retry(total=retry_count, connect=retry_count, read=0, status=0, backoff_factor=0.5)
            session.mount("http://", HTTPAdapter(max_retries=retries))
            session.mount("https://", HTTPAdapter(max_retries=retries))
        self.session = session

    def _rpc_call(self, method: str, params: List[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            response = self.session.post(self.rpc_url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as e:
            self.logger.error(f"Bundler request {method} failed: {e}")
            raise BundlerError(f"Bundler request {method} failed: {e}")
        except ValueError as e:
            raise BundlerError(f"Invalid JSON from bundler for {method}: {e}")

        if body.get("error"):
            error = body["error"]
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            code = error.get("code") if isinstance(error, dict) else None
            data = error.get("data") if isinstance(error, dict) else None
            raise BundlerError(f"{method} failed: {message}", code=code, data=data)
        return body.get("result")

    def estimate_user_operation_gas(self, user_op: UserOperation) -> UserOpGasEstimate:
        result = self._rpc_call("eth_estimateUserOperationGas", [user_op.to_rpc_dict(), self.entry_point])
        if not isinstance(result, dict):
            raise BundlerError("Invalid bundler response for eth_estimateUserOperationGas")
        return UserOpGasEstimate.from_rpc(result)

    def get_user_operation_gas_price(self) -> Tuple[int, int]:
        """
        Current ``(maxFeePerGas, maxPriorityFeePerGas)``.

        Uses the bundler's ``pimlico_getUserOperationGasPrice`` when available
        and falls back to ``eth_gasPrice``.
        """
        try:
            result = self._rpc_call("pimlico_getUserOperationGasPrice", [])
            fast = result["fast"]
            return parse_int(fast["maxFeePerGas"]), parse_int(fast["maxPriorityFeePerGas"])
        except (BundlerError, KeyError, TypeError) as e:
            self.logger.debug(f"pimlico_getUserOperationGasPrice unavailable, using eth_gasPrice: {e}")
        gas_price = parse_int(self._rpc_call("eth_gasPrice", []))
        return gas_price, gas_price

    def send_user_operation(self, user_op: UserOperation) -> str:
        """
        Submit a signed user operation.

        Returns:
            User operation hash reported by the bundler
        """
        result = self._rpc_call("eth_sendUserOperation", [user_op.to_rpc_dict(), self.entry_point])
        if not isinstance(result, str):
            raise BundlerError("Invalid bundler response for eth_sendUserOperation")
        self.logger.info(f"User operation sent: {result}")
        return result

    def get_user_operation_receipt(self, user_op_hash: str) -> Optional[UserOpReceipt]:
        user_op_hash = bytes_to_hex(user_op_hash)
        result = self._rpc_call("eth_getUserOperationReceipt", [user_op_hash])
        if not result:
            return None

        receipt = result.get("receipt") or {}
        success = result.get("success")
        if success is None:
            success = receipt.get("status") == "0x1"
        return UserOpReceipt(
            user_op_hash=user_op_hash,
            success=bool(success),
            transaction_hash=receipt.get("transactionHash"),
            block_number=parse_int(receipt["blockNumber"]) if receipt.get("blockNumber") else None,
            gas_used=parse_int(result["actualGasUsed"]) if result.get("actualGasUsed") else None,
            reason=result.get("reason"),
            logs=list(result.get("logs") or []),
        )

    def wait_for_user_operation_receipt(
        self,
        user_op_hash: str,
        poll_interval: float = 1.0,
        timeout: Optional[float] = 120,
        cancel: Optional[threading.Event] = None,
    ) -> UserOpReceipt:
        """
        Block until the bundler reports a receipt.

        Raises:
            ExecutionTimeoutError: If no receipt arrives within ``timeout``
            ExecutionCancelledError: If ``cancel`` is set while waiting
        """
        cancel = cancel or threading.Event()
        deadline = time.monotonic() + timeout if timeout is not None else None
        while True:
            receipt = self.get_user_operation_receipt(user_op_hash)
            if receipt is not None:
                return receipt
            if deadline is not None and time.monotonic() >= deadline:
                raise ExecutionTimeoutError(f"No receipt for user operation {user_op_hash} after {timeout}s")
            rate_limited_log(
                f"Waiting for user operation {user_op_hash}",
                level="debug",
                logger_instance=self.logger,
            )
            if cancel.wait(poll_interval):
                raise ExecutionCancelledError(f"Wait for user operation {user_op_hash} was cancelled")
