import time
from typing import Callable, Optional

from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address
from hexbytes import HexBytes
from loguru import logger

from ..chain.chain_client import ChainClient
from .bundler import ExecutionBundler
from .dispatcher_base import TransactionDispatcher
from .order import ExecutionBatch, ExecutionReceipt, SubmissionHandle


class DirectDispatcher(TransactionDispatcher):
    """Holder signs and broadcasts one transaction calling the processor's multicall."""

    strategy = "direct"
    authorization = "permit"
    default_timeout_ms = 120_000

    def __init__(
        self,
        signer: LocalAccount,
        chain: ChainClient,
        bundler: ExecutionBundler,
        gas_multiplier: float = 1.2,
        timeout_ms: int = 120_000,
        poll_interval_ms: int = 1000,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(poll_interval_ms=poll_interval_ms, sleep=sleep, clock=clock)
        self.signer = signer
        self.chain = chain
        self.bundler = bundler
        self.gas_multiplier = gas_multiplier
        self.default_timeout_ms = timeout_ms

    @property
    def owner_address(self) -> str:
        return self.signer.address

    def build_transaction(self, batch: ExecutionBatch) -> dict:
        tx = {
            "from": self.signer.address,
            "to": to_checksum_address(self.bundler.processor),
            "data": HexBytes(self.bundler.encode_multicall(batch)).to_0x_hex(),
            "value": 0,
            "chainId": self.chain.chain_id(),
        }
        # a reverting batch fails here, before anything is broadcast
        estimated = self.chain.estimate_gas(tx)
        tx["gas"] = int(estimated * self.gas_multiplier)
        tx["nonce"] = self.chain.transaction_count(self.signer.address)
        tx.update(self.chain.fee_params())
        return tx

    def submit(self, batch: ExecutionBatch) -> SubmissionHandle:
        tx = self.build_transaction(batch)
        signed = self.signer.sign_transaction(tx)
        tx_hash = self.chain.send_raw_transaction(signed.raw_transaction)
        logger.info(f"tx hash: {tx_hash} (gas={tx['gas']}, nonce={tx['nonce']})")
        return SubmissionHandle(strategy=self.strategy, hash=tx_hash, submitted_at=time.time())

    def wait_for_receipt(self, handle: SubmissionHandle, timeout_ms: Optional[int] = None) -> ExecutionReceipt:
        receipt = self._poll(handle, lambda: self.chain.get_transaction_receipt(handle.hash), timeout_ms)
        logger.info(f"tx {receipt.tx_hash} mined in block {receipt.block_number} success={receipt.success}")
        return receipt
