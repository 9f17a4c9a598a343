from dataclasses import replace

from orderbot.core.intent_builder import OrderIntentBuilder
from orderbot.core.permit import PermitAuthorizer, recover_permit_signer, total_spend, verify_permit
from stubs import ASSET, BLOCK_TIME, CHAIN_ID, PROCESSOR, SIGNER, USDC, ChainStub, fee_quote


def buy_intent(quantity=1_000_000):
    b = OrderIntentBuilder(ChainStub(), PROCESSOR, clock=lambda: BLOCK_TIME)
    return b.build(ASSET, USDC, "buy", quantity, recipient=SIGNER.address)


def test_total_spend_is_quantity_plus_fee():
    assert total_spend(buy_intent(1_000_000), fee_quote(fee=2_500)) == 1_002_500


def test_total_spend_is_exact_beyond_float_precision():
    big = 10**30 + 1
    assert total_spend(buy_intent(big), fee_quote(fee=1)) == 10**30 + 2


def test_permit_signs_exact_total_spend_and_recovers_owner():
    chain = ChainStub()
    chain.nonces[SIGNER.address] = 4
    spend = total_spend(buy_intent(), fee_quote(fee=2_500))
    permit = PermitAuthorizer(chain).build(SIGNER, USDC, PROCESSOR, spend)

    assert permit.message.value == 1_002_500
    assert permit.message.owner == SIGNER.address
    assert permit.message.spender == PROCESSOR
    assert permit.message.nonce == 4
    assert permit.message.deadline == BLOCK_TIME + 300
    assert permit.domain.name == "USD Coin"
    assert permit.domain.version == "2"
    assert permit.domain.chain_id == CHAIN_ID
    assert permit.domain.verifying_contract == USDC
    assert len(permit.r) == 32 and len(permit.s) == 32 and permit.v in (27, 28)
    assert permit.signature[:32] == permit.r and permit.signature[32:64] == permit.s

    assert recover_permit_signer(permit) == SIGNER.address
    assert verify_permit(permit, current_nonce=4, now=BLOCK_TIME + 10)


def test_permit_with_consumed_nonce_fails_verification():
    chain = ChainStub()
    permit = PermitAuthorizer(chain).build(SIGNER, USDC, PROCESSOR, 1_002_500)
    assert verify_permit(permit, current_nonce=0)
    # the token advanced the nonce when the permit was used; replay must fail
    assert not verify_permit(permit, current_nonce=1)


def test_permit_fails_verification_after_deadline_or_tampering():
    permit = PermitAuthorizer(ChainStub(), deadline_seconds=60).build(SIGNER, USDC, PROCESSOR, 1_002_500)
    assert not verify_permit(permit, current_nonce=0, now=BLOCK_TIME + 61)
    tampered = replace(permit, message=replace(permit.message, value=1_002_501))
    assert recover_permit_signer(tampered) != SIGNER.address
    assert not verify_permit(tampered, current_nonce=0)


def test_missing_version_accessor_defaults_to_one():
    chain = ChainStub()
    del chain.versions[USDC]
    permit = PermitAuthorizer(chain).build(SIGNER, USDC, PROCESSOR, 10)
    assert permit.domain.version == "1"
    assert recover_permit_signer(permit) == SIGNER.address
