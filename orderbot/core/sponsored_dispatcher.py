"""
Sponsored execution through an ERC-4337 smart account.

The batch becomes one ``executeBatch`` user operation. A paymaster may cover
gas; gas prices come from a pluggable callback. A user operation is not a
chain transaction, so once the bundler reports it included the underlying
bundle transaction's receipt is fetched to get decodable logs.
"""

import time
from typing import Any, Callable, Dict, Optional

from loguru import logger

from ..chain.chain_client import ChainClient
from ..chain.relayer_client import RelayerClient
from ..chain.smart_account import GAS_FIELDS, SimpleSmartAccount
from .errors import RelayerError
from .dispatcher_base import TransactionDispatcher
from .order import ExecutionBatch, ExecutionReceipt, SubmissionHandle

GasPriceFn = Callable[[], Dict[str, Any]]


class SponsoredDispatcher(TransactionDispatcher):
    strategy = "sponsored"
    authorization = "approve"
    default_timeout_ms = 60_000

    def __init__(
        self,
        account: SimpleSmartAccount,
        relayer: RelayerClient,
        chain: ChainClient,
        sponsor: bool = True,
        gas_price_fn: Optional[GasPriceFn] = None,
        gas_speed: str = "fast",
        timeout_ms: int = 60_000,
        poll_interval_ms: int = 1000,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(poll_interval_ms=poll_interval_ms, sleep=sleep, clock=clock)
        self.account = account
        self.relayer = relayer
        self.chain = chain
        self.sponsor = sponsor
        self.gas_speed = gas_speed
        self.gas_price_fn = gas_price_fn or self._relayer_gas_price
        self.default_timeout_ms = timeout_ms

    @property
    def owner_address(self) -> str:
        return self.account.address

    def _relayer_gas_price(self) -> Dict[str, Any]:
        tiers = self.relayer.get_user_operation_gas_price()
        if not tiers or self.gas_speed not in tiers:
            raise RelayerError(f"gas price tier {self.gas_speed!r} missing from relayer response")
        return tiers[self.gas_speed]

    def build_user_operation(self, batch: ExecutionBatch) -> Dict[str, Any]:
        call_data = self.account.encode_execute_batch(batch.calls)
        op = self.account.build_user_operation(call_data, self.gas_price_fn())
        entry_point = self.account.entry_point
        if self.sponsor:
            limits = self.relayer.sponsor_user_operation(op, entry_point)
            op.update({k: v for k, v in limits.items() if v is not None})
        else:
            limits = self.relayer.estimate_user_operation_gas(op, entry_point)
            op.update({k: limits[k] for k in GAS_FIELDS if limits.get(k) is not None})
        op["signature"] = self.account.sign_user_operation(op, self.chain.chain_id())
        return op

    def submit(self, batch: ExecutionBatch) -> SubmissionHandle:
        op = self.build_user_operation(batch)
        op_hash = self.relayer.send_user_operation(op, self.account.entry_point)
        logger.info(f"UserOperation hash: {op_hash} (sender={op['sender']}, sponsored={self.sponsor})")
        return SubmissionHandle(strategy=self.strategy, hash=op_hash, submitted_at=time.time())

    def wait_for_receipt(self, handle: SubmissionHandle, timeout_ms: Optional[int] = None) -> ExecutionReceipt:
        op_receipt = self._poll(handle, lambda: self.relayer.get_user_operation_receipt(handle.hash), timeout_ms)
        tx_hash = op_receipt["receipt"]["transactionHash"]
        success = bool(op_receipt.get("success"))
        if not success:
            logger.warning(f"UserOperation {handle.hash} failed in bundle {tx_hash}: {op_receipt.get('reason')}")
        tx_receipt = self.chain.get_transaction_receipt(tx_hash)
        if tx_receipt is None:
            raise RelayerError(f"bundle transaction {tx_hash} reported by relayer has no chain receipt")
        return ExecutionReceipt(
            tx_hash=tx_receipt.tx_hash,
            success=success,
            logs=tx_receipt.logs,
            block_number=tx_receipt.block_number,
            gas_used=tx_receipt.gas_used,
            user_op_hash=handle.hash,
        )
