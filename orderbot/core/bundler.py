from typing import Sequence

from eth_utils import to_checksum_address

from ..chain.abi import (
    APPROVE_SIG,
    CREATE_ORDER_SIG,
    FEE_QUOTE_TUPLE,
    MULTICALL_SIG,
    ORDER_TUPLE,
    SELF_PERMIT_SIG,
    encode_call,
    selector,
)
from .errors import ValidationError
from .order import Call, ExecutionBatch, FeeQuote, OrderIntent, PermitAuthorization


class ExecutionBundler:
    """Encodes the authorization and order-creation calls and batches them atomically."""

    def __init__(self, processor: str):
        self.processor = to_checksum_address(processor)

    def encode_authorization_call(self, permit: PermitAuthorization) -> Call:
        msg = permit.message
        data = encode_call(
            SELF_PERMIT_SIG,
            ["address", "address", "uint256", "uint256", "uint8", "bytes32", "bytes32"],
            [
                permit.domain.verifying_contract,
                msg.owner,
                msg.value,
                msg.deadline,
                permit.v,
                permit.r,
                permit.s,
            ],
        )
        return Call(target=self.processor, data=data)

    def encode_approval_call(self, token: str, amount: int) -> Call:
        # smart accounts cannot produce an EOA permit signature; they approve inside the batch instead
        data = encode_call(APPROVE_SIG, ["address", "uint256"], [self.processor, amount])
        return Call(target=to_checksum_address(token), data=data)

    def encode_order_creation_call(self, intent: OrderIntent, quote: FeeQuote) -> Call:
        data = encode_call(
            CREATE_ORDER_SIG,
            [ORDER_TUPLE, FEE_QUOTE_TUPLE, "bytes"],
            [intent.to_tuple(), quote.to_tuple(), quote.signature],
        )
        return Call(target=self.processor, data=data)

    def assemble_batch(self, calls: Sequence[Call]) -> ExecutionBatch:
        if len(calls) != 2:
            raise ValidationError(f"execution batch needs exactly 2 calls, got {len(calls)}")
        auth, order = calls
        create_selector = selector(CREATE_ORDER_SIG)
        if auth.data[:4] not in (selector(SELF_PERMIT_SIG), selector(APPROVE_SIG)):
            raise ValidationError("first batch call must be the spend authorization (selfPermit or approve)")
        if order.data[:4] != create_selector or to_checksum_address(order.target) != self.processor:
            raise ValidationError("second batch call must be createOrder on the processor")
        return ExecutionBatch(calls=(auth, order))

    def encode_multicall(self, batch: ExecutionBatch) -> bytes:
        """Single processor call that applies every batch entry or none of them."""
        for call in batch.calls:
            if to_checksum_address(call.target) != self.processor:
                raise ValidationError(f"multicall can only target the processor, got {call.target}")
        return encode_call(MULTICALL_SIG, ["bytes[]"], [[c.data for c in batch.calls]])
