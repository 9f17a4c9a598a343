import pytest
from eth_abi import decode as abi_decode
from eth_account import Account

from orderbot.chain.abi import MULTICALL_SIG, selector
from orderbot.core.bundler import ExecutionBundler
from orderbot.core.direct_dispatcher import DirectDispatcher
from orderbot.core.errors import ChainRevertError, ReceiptTimeoutError
from orderbot.core.intent_builder import OrderIntentBuilder
from orderbot.core.permit import PermitAuthorizer
from stubs import ASSET, BLOCK_TIME, CHAIN_ID, PROCESSOR, SIGNER, USDC, ChainStub, FakeClock, fee_quote


def make_batch(bundler):
    intent = OrderIntentBuilder(ChainStub(), PROCESSOR, clock=lambda: BLOCK_TIME).build(
        ASSET, USDC, "buy", 1_000_000, recipient=SIGNER.address
    )
    permit = PermitAuthorizer(ChainStub()).build(SIGNER, USDC, PROCESSOR, 1_002_500)
    return bundler.assemble_batch(
        [bundler.encode_authorization_call(permit), bundler.encode_order_creation_call(intent, fee_quote())]
    )


def make_dispatcher(chain, clock=None):
    clock = clock or FakeClock()
    return DirectDispatcher(SIGNER, chain, ExecutionBundler(PROCESSOR), sleep=clock.sleep, clock=clock)


def test_build_transaction_targets_processor_multicall():
    chain = ChainStub()
    d = make_dispatcher(chain)
    batch = make_batch(d.bundler)
    tx = d.build_transaction(batch)

    assert tx["from"] == SIGNER.address
    assert tx["to"] == PROCESSOR
    assert tx["chainId"] == CHAIN_ID
    assert tx["value"] == 0
    assert tx["gas"] == 120_000
    assert tx["nonce"] == 3
    assert tx["maxFeePerGas"] == 2_000_000_000
    data = bytes.fromhex(tx["data"][2:])
    assert data[:4] == selector(MULTICALL_SIG)
    (inner,) = abi_decode(["bytes[]"], data[4:])
    assert list(inner) == [c.data for c in batch.calls]


def test_submit_sends_signed_transaction_and_waits_for_receipt():
    chain = ChainStub()
    chain.pending_polls = 2
    clock = FakeClock()
    d = make_dispatcher(chain, clock)
    handle = d.submit(make_batch(d.bundler))

    assert handle.strategy == "direct"
    assert len(chain.sent) == 1
    assert Account.recover_transaction(chain.sent[0]) == SIGNER.address

    rec = d.wait_for_receipt(handle)
    assert rec.tx_hash == handle.hash
    assert rec.success is True
    assert len(chain.receipt_lookups) == 3
    assert clock.sleeps == [1.0, 1.0]


def test_wait_times_out_after_bound():
    chain = ChainStub()
    chain.pending_polls = 10**6
    clock = FakeClock()
    d = make_dispatcher(chain, clock)
    handle = d.submit(make_batch(d.bundler))
    with pytest.raises(ReceiptTimeoutError) as exc:
        d.wait_for_receipt(handle, timeout_ms=5_000)
    assert exc.value.timeout_ms == 5_000
    assert clock.now == pytest.approx(5.0)


def test_reverting_batch_fails_before_broadcast():
    chain = ChainStub()
    chain.revert_reason = "ERC20: insufficient allowance"
    d = make_dispatcher(chain)
    with pytest.raises(ChainRevertError) as exc:
        d.submit(make_batch(d.bundler))
    assert "insufficient allowance" in str(exc.value)
    assert chain.sent == []


def test_last_sleep_is_cut_to_the_remaining_bound():
    chain = ChainStub()
    chain.pending_polls = 10**6
    clock = FakeClock()
    d = make_dispatcher(chain, clock)
    handle = d.submit(make_batch(d.bundler))
    with pytest.raises(ReceiptTimeoutError):
        d.wait_for_receipt(handle, timeout_ms=2_500)
    assert clock.sleeps == [1.0, 1.0, 0.5]
    assert clock.now == pytest.approx(2.5)
