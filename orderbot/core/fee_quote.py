"""
Fee quote client for the off-chain pricing service.

• Bearer-token authenticated POST; the service signs the quote it returns.
• No retries: transport / HTTP failures and malformed bodies raise
  QuoteServiceError. The caller decides whether to try again.
"""

from __future__ import annotations

import os
from typing import Any, Dict, Optional, Union

import requests
from eth_utils import is_address, is_hex, to_bytes, to_checksum_address
from loguru import logger
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import QuoteServiceError
from .order import FeeQuote, OrderIntent

DEFAULT_BASE_URL = "https://api-enterprise.sandbox.dinari.com"
DEFAULT_FEE_PATH = "/api/v1/web3/orders/fee"


class FeeQuotePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    orderId: int
    requester: str
    fee: int
    timestamp: int
    deadline: int

    @field_validator("requester")
    @classmethod
    def _requester_is_address(cls, v: str) -> str:
        if not is_address(v):
            raise ValueError(f"requester is not an address: {v!r}")
        return to_checksum_address(v)

    @field_validator("fee")
    @classmethod
    def _fee_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("fee must be >= 0")
        return v


class FeeQuoteResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    fee_quote: FeeQuotePayload
    fee_quote_signature: str

    @field_validator("fee_quote_signature")
    @classmethod
    def _signature_is_hex(cls, v: str) -> str:
        if not v or not is_hex(v):
            raise ValueError("fee_quote_signature must be a hex string")
        return v

    def to_fee_quote(self) -> FeeQuote:
        q = self.fee_quote
        return FeeQuote(
            quote_id=q.orderId,
            requester=q.requester,
            fee=q.fee,
            timestamp=q.timestamp,
            deadline=q.deadline,
            signature=to_bytes(hexstr=self.fee_quote_signature),
        )


class FeeQuoteClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        fee_path: str = DEFAULT_FEE_PATH,
        timeout: int = 10,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key or os.getenv("DINARI_API_KEY")
        self.base_url = base_url
        self.fee_path = fee_path
        self.timeout = timeout
        self.session = session or requests.Session()
        self.default_headers = {"Content-Type": "application/json"}
        if not self.api_key:
            logger.warning("Fee quote client instantiated without an API key; requests will be rejected.")

    def _headers(self) -> Dict[str, str]:
        return {**self.default_headers, "Authorization": f"Bearer {self.api_key or ''}"}

    def request_quote(self, chain_id: int, processor_address: str, intent: OrderIntent) -> FeeQuote:
        body = {
            "chain_id": chain_id,
            "contract_address": processor_address,
            "order_data": intent.to_order_data(),
        }
        url = self.base_url.rstrip("/") + self.fee_path
        try:
            resp = self.session.post(url, json=body, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning(f"POST {self.fee_path} failed: {exc}")
            raise QuoteServiceError(f"fee quote request failed: {exc}") from exc
        if resp.status_code not in (200, 201):
            logger.error(f"Fee quote error {resp.status_code}: {resp.text[:200]}")
            raise QuoteServiceError(
                f"fee quote request returned HTTP {resp.status_code}",
                status_code=resp.status_code,
                body=resp.text[:500],
            )
        try:
            data = resp.json()
        except ValueError as exc:
            raise QuoteServiceError("fee quote response is not JSON", status_code=resp.status_code) from exc
        quote = parse_fee_quote(data)
        logger.info(f"Fee quote {quote.quote_id}: fee={quote.fee} deadline={quote.deadline}")
        return quote


def parse_fee_quote(data: Union[Dict[str, Any], Any]) -> FeeQuote:
    try:
        return FeeQuoteResponse.model_validate(data).to_fee_quote()
    except PydanticValidationError as exc:
        raise QuoteServiceError(f"malformed fee quote response: {exc}") from exc
