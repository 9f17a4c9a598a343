import pytest
from eth_abi import decode as abi_decode

from orderbot.chain.abi import (
    APPROVE_SIG,
    CREATE_ORDER_SIG,
    FEE_QUOTE_TUPLE,
    MULTICALL_SIG,
    ORDER_TUPLE,
    SELF_PERMIT_SIG,
    selector,
)
from orderbot.core.bundler import ExecutionBundler
from orderbot.core.errors import ValidationError
from orderbot.core.intent_builder import OrderIntentBuilder
from orderbot.core.permit import PermitAuthorizer
from stubs import ASSET, BLOCK_TIME, PROCESSOR, SIGNER, USDC, ChainStub, fee_quote


def build_calls():
    intent = OrderIntentBuilder(ChainStub(), PROCESSOR, clock=lambda: BLOCK_TIME).build(
        ASSET, USDC, "buy", 1_000_000, recipient=SIGNER.address
    )
    quote = fee_quote(fee=2_500)
    permit = PermitAuthorizer(ChainStub()).build(SIGNER, USDC, PROCESSOR, 1_002_500)
    bundler = ExecutionBundler(PROCESSOR)
    return bundler, intent, quote, bundler.encode_authorization_call(permit), bundler.encode_order_creation_call(intent, quote)


def test_batch_is_authorization_then_order_creation():
    bundler, _, _, auth, order = build_calls()
    batch = bundler.assemble_batch([auth, order])
    assert len(batch.calls) == 2
    assert batch.authorization.data[:4] == selector(SELF_PERMIT_SIG)
    assert batch.order_creation.data[:4] == selector(CREATE_ORDER_SIG)
    assert all(c.target == PROCESSOR for c in batch.calls)


def test_assemble_rejects_wrong_order_or_size():
    bundler, _, _, auth, order = build_calls()
    with pytest.raises(ValidationError):
        bundler.assemble_batch([order, auth])
    with pytest.raises(ValidationError):
        bundler.assemble_batch([auth, order, order])
    with pytest.raises(ValidationError):
        bundler.assemble_batch([order])


def test_self_permit_carries_signed_total_spend():
    _, _, _, auth, _ = build_calls()
    token, owner, value, deadline, v, r, s = abi_decode(
        ["address", "address", "uint256", "uint256", "uint8", "bytes32", "bytes32"], auth.data[4:]
    )
    assert token == USDC
    assert owner == SIGNER.address
    assert value == 1_002_500
    assert deadline == BLOCK_TIME + 300


def test_create_order_embeds_intent_and_quote():
    _, intent, quote, _, order = build_calls()
    order_tuple, quote_tuple, signature = abi_decode([ORDER_TUPLE, FEE_QUOTE_TUPLE, "bytes"], order.data[4:])
    assert order_tuple == intent.to_tuple()
    assert quote_tuple == quote.to_tuple()
    assert signature == quote.signature


def test_multicall_wraps_both_calls_for_processor_only():
    bundler, intent, quote, auth, order = build_calls()
    batch = bundler.assemble_batch([auth, order])
    data = bundler.encode_multicall(batch)
    assert data[:4] == selector(MULTICALL_SIG)
    (inner,) = abi_decode(["bytes[]"], data[4:])
    assert list(inner) == [auth.data, order.data]

    approve = bundler.encode_approval_call(USDC, 1_002_500)
    assert approve.target == USDC and approve.data[:4] == selector(APPROVE_SIG)
    approve_batch = bundler.assemble_batch([approve, order])
    with pytest.raises(ValidationError):
        bundler.encode_multicall(approve_batch)
