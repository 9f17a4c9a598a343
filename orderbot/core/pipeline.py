"""
Order submission pipeline.

Builds the intent, fetches a fee quote, authorizes the exact spend, batches
the authorization with ``createOrder`` and dispatches it through the
configured strategy, then decodes the created order from the receipt.

Stages run strictly in order: the quote is priced for the intent, the
authorized amount is ``payment quantity + fee`` and the batch carries that
quote. Submissions for the same owner are serialized because the permit
nonce is shared on-chain state.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol, Set, Union

from eth_account import Account
from eth_account.signers.local import LocalAccount
from loguru import logger

from ..chain.chain_client import ChainClient, Web3ChainClient
from ..chain.relayer_client import RelayerClient
from ..chain.smart_account import SimpleSmartAccount
from ..utils.config import Config
from .bundler import ExecutionBundler
from .direct_dispatcher import DirectDispatcher
from .dispatcher_base import TransactionDispatcher
from .errors import ChainRevertError, QuoteExpiredError, ValidationError
from .fee_quote import FeeQuoteClient
from .intent_builder import OrderIntentBuilder
from .order import (
    CreatedOrder,
    ExecutionBatch,
    ExecutionReceipt,
    FeeQuote,
    OrderIntent,
    OrderKind,
    OrderSide,
    OrderStatus,
    PermitAuthorization,
    SubmissionHandle,
    TimeInForce,
)
from .permit import PermitAuthorizer, total_spend
from .receipt_parser import ReceiptParser
from .sponsored_dispatcher import SponsoredDispatcher


class SubmissionJournal(Protocol):
    def log_submission(self, record: Dict) -> None: ...


@dataclass(frozen=True)
class SubmissionResult:
    intent: OrderIntent
    quote: FeeQuote
    total_spend: int
    permit: Optional[PermitAuthorization]
    batch: ExecutionBatch
    handle: SubmissionHandle
    receipt: ExecutionReceipt
    created: CreatedOrder
    status: OrderStatus


_owner_locks: Dict[str, threading.Lock] = {}
_owner_locks_guard = threading.Lock()


def owner_lock(owner: str) -> threading.Lock:
    """Process-wide lock per token owner, shared by every pipeline instance."""
    key = owner.lower()
    with _owner_locks_guard:
        lock = _owner_locks.get(key)
        if lock is None:
            lock = _owner_locks[key] = threading.Lock()
        return lock


class OrderPipeline:
    def __init__(
        self,
        signer: LocalAccount,
        chain: ChainClient,
        processor: str,
        quote_client: FeeQuoteClient,
        dispatcher: TransactionDispatcher,
        bundler: Optional[ExecutionBundler] = None,
        permit_deadline_seconds: int = 300,
        min_quote_remaining_sec: int = 5,
        receipt_timeout_ms: Optional[int] = None,
        journal: Optional[SubmissionJournal] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.signer = signer
        self.chain = chain
        self.processor = processor
        self.quote_client = quote_client
        self.dispatcher = dispatcher
        self.bundler = bundler or ExecutionBundler(processor)
        self.intent_builder = OrderIntentBuilder(chain, processor, clock=clock)
        self.permit_authorizer = PermitAuthorizer(chain, deadline_seconds=permit_deadline_seconds)
        self.receipt_parser = ReceiptParser(chain, processor)
        self.min_quote_remaining_sec = min_quote_remaining_sec
        self.receipt_timeout_ms = receipt_timeout_ms
        self.journal = journal
        self.clock = clock
        self._consumed_quotes: Set[int] = set()

    @classmethod
    def from_config(cls, cfg: Config, journal: Optional[SubmissionJournal] = None) -> "OrderPipeline":
        if not cfg.chain.private_key:
            raise ValueError("PRIVATE_KEY_EOA is required")
        signer = Account.from_key(cfg.chain.private_key)
        chain = Web3ChainClient(cfg.chain.rpc_url, timeout=cfg.chain.request_timeout_sec)
        processor = cfg.resolve_processor_address(chain.chain_id())
        bundler = ExecutionBundler(processor)

        strategy = cfg.execution.strategy
        if strategy == "sponsored":
            account = SimpleSmartAccount(
                signer,
                chain,
                entry_point=cfg.relayer.entry_point,
                factory=cfg.relayer.factory,
                salt=cfg.relayer.salt,
            )
            relayer = RelayerClient(cfg.relayer.url, timeout=cfg.relayer.timeout_sec)
            dispatcher: TransactionDispatcher = SponsoredDispatcher(
                account,
                relayer,
                chain,
                sponsor=cfg.relayer.sponsor,
                gas_speed=cfg.relayer.gas_speed,
                timeout_ms=cfg.relayer.receipt_timeout_ms,
                poll_interval_ms=cfg.relayer.poll_interval_ms,
            )
        elif strategy == "direct":
            dispatcher = DirectDispatcher(
                signer,
                chain,
                bundler,
                gas_multiplier=cfg.execution.gas_multiplier,
                timeout_ms=cfg.execution.receipt_timeout_ms,
                poll_interval_ms=cfg.execution.poll_interval_ms,
            )
        else:
            raise ValueError(f"Unknown execution strategy {strategy}")

        quote_client = FeeQuoteClient(
            api_key=cfg.pricing.api_key,
            base_url=cfg.pricing.base_url,
            fee_path=cfg.pricing.fee_path,
            timeout=cfg.pricing.timeout_sec,
        )
        logger.info(f"Signer {signer.address} on chain {chain.chain_id()}, processor {processor}, strategy {strategy}")
        return cls(
            signer,
            chain,
            processor,
            quote_client,
            dispatcher,
            bundler=bundler,
            permit_deadline_seconds=cfg.permit.deadline_seconds,
            min_quote_remaining_sec=cfg.quote.min_remaining_sec,
            journal=journal,
        )

    def submit(
        self,
        asset: str,
        payment: str,
        side: Union[OrderSide, str],
        quantity: int,
        kind: Union[OrderKind, int] = OrderKind.MARKET,
        limit_price: int = 0,
        tif: Union[TimeInForce, int] = TimeInForce.GTC,
        recipient: Optional[str] = None,
    ) -> SubmissionResult:
        record: Dict = {
            "strategy": self.dispatcher.strategy,
            "asset": asset,
            "side": str(getattr(side, "value", side)),
            "quantity": quantity,
        }
        try:
            # the sponsored owner is a factory read and can fail like any other stage
            owner = self.dispatcher.owner_address
            record["owner"] = owner
            with owner_lock(owner):
                result = self._run(record, asset, payment, side, quantity, kind, limit_price, tif, recipient or owner)
        except Exception as exc:
            record["status"] = "failed"
            record["error"] = f"{type(exc).__name__}: {exc}"
            self._journal(record)
            raise
        record["status"] = result.status.name
        self._journal(record)
        return result

    def _run(self, record, asset, payment, side, quantity, kind, limit_price, tif, recipient) -> SubmissionResult:
        intent = self.intent_builder.build(asset, payment, side, quantity, kind, limit_price, recipient, tif)

        quote = self.quote_client.request_quote(self.chain.chain_id(), self.processor, intent)
        if quote.quote_id in self._consumed_quotes:
            raise ValidationError(f"fee quote {quote.quote_id} was already used by an earlier submission")
        spend = total_spend(intent, quote)
        record.update(fee=quote.fee, total_spend=spend, quote_id=quote.quote_id)
        logger.info(f"fees: {quote.fee} totalSpendAmount: {spend}")

        permit: Optional[PermitAuthorization] = None
        if self.dispatcher.authorization == "permit":
            permit = self.permit_authorizer.build(self.signer, intent.payment_token, self.processor, spend)
            auth_call = self.bundler.encode_authorization_call(permit)
        else:
            auth_call = self.bundler.encode_approval_call(intent.payment_token, spend)
        order_call = self.bundler.encode_order_creation_call(intent, quote)
        batch = self.bundler.assemble_batch([auth_call, order_call])

        self._ensure_quote_fresh(quote)
        self._consumed_quotes.add(quote.quote_id)
        handle = self.dispatcher.submit(batch)
        record.update(handle=handle.hash, ts=handle.submitted_at)

        receipt = self.dispatcher.wait_for_receipt(handle, self.receipt_timeout_ms)
        record["tx_hash"] = receipt.tx_hash
        if not receipt.success:
            raise ChainRevertError("order batch reverted", tx_hash=receipt.tx_hash)

        created = self.receipt_parser.parse_order_created(receipt, self.processor)
        record.update(order_id=created.order_id, order_account=created.order_account)
        status = self.receipt_parser.query_status(created.order_id)
        return SubmissionResult(
            intent=intent,
            quote=quote,
            total_spend=spend,
            permit=permit,
            batch=batch,
            handle=handle,
            receipt=receipt,
            created=created,
            status=status,
        )

    def _ensure_quote_fresh(self, quote: FeeQuote) -> None:
        now = int(self.clock())
        if quote.is_expired(now, self.min_quote_remaining_sec):
            raise QuoteExpiredError(quote.quote_id, quote.deadline, now)

    def _journal(self, record: Dict) -> None:
        """A journal failure is logged; it never replaces the submission's own outcome."""
        if self.journal is None:
            return
        try:
            self.journal.log_submission(record)
        except Exception:
            logger.exception(f"could not journal submission {record.get('handle') or record.get('quote_id')}")
