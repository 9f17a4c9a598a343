"""
ERC-4337 bundler / paymaster JSON-RPC client (Pimlico-compatible).

• One HTTP endpoint serves both the bundler and the sponsorship methods.
• No retries: every failure surfaces as RelayerError to the dispatcher.
"""

from __future__ import annotations

import itertools
from typing import Any, Dict, List, Optional

import requests
from loguru import logger

from ..core.errors import RelayerError


class RelayerClient:
    def __init__(self, url: str, timeout: int = 10, session: Optional[requests.Session] = None) -> None:
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        self._ids = itertools.count(1)
        if not url:
            logger.warning("Relayer client instantiated without an endpoint; requests will fail.")

    def _rpc(self, method: str, params: List[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            resp = self.session.post(self.url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning(f"relayer {method} transport error: {exc}")
            raise RelayerError(f"{method} failed: {exc}") from exc
        if resp.status_code != 200:
            logger.error(f"relayer {method} returned {resp.status_code}: {resp.text[:200]}")
            raise RelayerError(f"{method} returned HTTP {resp.status_code}", code=resp.status_code)
        try:
            body = resp.json()
        except ValueError as exc:
            raise RelayerError(f"{method} returned non-JSON body") from exc
        if not isinstance(body, dict):
            raise RelayerError(f"{method} returned a non-object JSON body")
        err = body.get("error")
        if err:
            logger.error(f"relayer {method} error: {err}")
            if isinstance(err, dict):
                raise RelayerError(f"{method}: {err.get('message', err)}", code=err.get("code"))
            raise RelayerError(f"{method}: {err}")
        return body.get("result")

    # ------------------------------------------------------------------
    # bundler
    # ------------------------------------------------------------------
    def send_user_operation(self, user_op: Dict[str, Any], entry_point: str) -> str:
        return self._rpc("eth_sendUserOperation", [user_op, entry_point])

    def get_user_operation_receipt(self, user_op_hash: str) -> Optional[Dict[str, Any]]:
        return self._rpc("eth_getUserOperationReceipt", [user_op_hash])

    def estimate_user_operation_gas(self, user_op: Dict[str, Any], entry_point: str) -> Dict[str, Any]:
        return self._rpc("eth_estimateUserOperationGas", [user_op, entry_point])

    def get_user_operation_gas_price(self) -> Dict[str, Dict[str, str]]:
        """Tiers ``slow`` / ``standard`` / ``fast`` each with maxFeePerGas and maxPriorityFeePerGas."""
        return self._rpc("pimlico_getUserOperationGasPrice", [])

    # ------------------------------------------------------------------
    # paymaster
    # ------------------------------------------------------------------
    def sponsor_user_operation(self, user_op: Dict[str, Any], entry_point: str) -> Dict[str, Any]:
        return self._rpc("pm_sponsorUserOperation", [user_op, entry_point])
