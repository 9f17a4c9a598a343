"""
EIP-2612 permit construction and signing.

The signed ``value`` must equal the intent's payment quantity plus the quoted
fee. A stale nonce or a fee that moved after quoting yields a permit the
token rejects on-chain; nothing here retries.
"""

from typing import Optional

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address
from loguru import logger

from ..chain.abi import PERMIT_TYPES
from ..chain.chain_client import ChainClient
from .errors import ChainRevertError
from .order import FeeQuote, OrderIntent, PermitAuthorization, PermitDomain, PermitMessage

DEFAULT_PERMIT_VERSION = "1"


def total_spend(intent: OrderIntent, quote: FeeQuote) -> int:
    return int(intent.payment_token_quantity) + int(quote.fee)


class PermitAuthorizer:
    def __init__(self, chain: ChainClient, deadline_seconds: int = 300):
        self.chain = chain
        self.deadline_seconds = deadline_seconds

    def _token_version(self, token: str) -> str:
        try:
            return self.chain.token_version(token)
        except ChainRevertError as exc:
            logger.debug(f"{token} has no version() accessor ({exc}); using {DEFAULT_PERMIT_VERSION}")
            return DEFAULT_PERMIT_VERSION

    def build(self, signer: LocalAccount, payment_token: str, spender: str, total_spend: int) -> PermitAuthorization:
        token = to_checksum_address(payment_token)
        owner = signer.address
        nonce = self.chain.token_nonce(token, owner)
        deadline = self.chain.block_timestamp() + self.deadline_seconds

        domain = PermitDomain(
            name=self.chain.token_name(token),
            version=self._token_version(token),
            chain_id=self.chain.chain_id(),
            verifying_contract=token,
        )
        message = PermitMessage(
            owner=owner,
            spender=to_checksum_address(spender),
            value=total_spend,
            nonce=nonce,
            deadline=deadline,
        )
        signed = signer.sign_typed_data(
            domain_data=domain.to_dict(),
            message_types=PERMIT_TYPES,
            message_data=message.to_dict(),
        )
        logger.info(f"Signed permit owner={owner} value={total_spend} nonce={nonce} deadline={deadline}")
        return PermitAuthorization(
            domain=domain,
            message=message,
            v=signed.v,
            r=signed.r.to_bytes(32, "big"),
            s=signed.s.to_bytes(32, "big"),
            signature=bytes(signed.signature),
        )


def recover_permit_signer(permit: PermitAuthorization) -> str:
    encoded = encode_typed_data(
        domain_data=permit.domain.to_dict(),
        message_types=PERMIT_TYPES,
        message_data=permit.message.to_dict(),
    )
    return Account.recover_message(encoded, vrs=(permit.v, permit.r, permit.s))


def verify_permit(permit: PermitAuthorization, current_nonce: int, now: Optional[int] = None) -> bool:
    """Mirror of the token's permit check: signer, unconsumed nonce and deadline."""
    if permit.message.nonce != current_nonce:
        return False
    if now is not None and now > permit.message.deadline:
        return False
    return recover_permit_signer(permit) == to_checksum_address(permit.message.owner)
