import time
from typing import Callable, Optional, Union

from eth_utils import is_address, to_checksum_address
from loguru import logger

from ..chain.chain_client import ChainClient
from .errors import PrecisionError, ValidationError
from .order import OrderIntent, OrderKind, OrderSide, TimeInForce


class OrderIntentBuilder:
    def __init__(self, chain: ChainClient, processor: str, clock: Optional[Callable[[], float]] = None):
        self.chain = chain
        self.processor = processor
        self.clock = clock or time.time

    def build(
        self,
        asset: str,
        payment: str,
        side: Union[OrderSide, str],
        quantity: int,
        kind: Union[OrderKind, int] = OrderKind.MARKET,
        limit_price: int = 0,
        recipient: str = "",
        tif: Union[TimeInForce, int] = TimeInForce.GTC,
    ) -> OrderIntent:
        # bool is an int subclass; token amounts must be real integers
        if not isinstance(quantity, int) or isinstance(quantity, bool):
            raise ValidationError(f"quantity must be an integer in smallest units, got {quantity!r}")
        if quantity <= 0:
            raise ValidationError(f"quantity must be > 0, got {quantity}")
        if not isinstance(limit_price, int) or isinstance(limit_price, bool) or limit_price < 0:
            raise ValidationError(f"limit price must be a non-negative integer, got {limit_price!r}")
        for label, addr in (("asset", asset), ("payment", payment), ("recipient", recipient)):
            if not is_address(addr):
                raise ValidationError(f"{label} is not a valid address: {addr!r}")
        try:
            side = OrderSide(str(getattr(side, "value", side)).lower())
            kind = OrderKind(kind)
            tif = TimeInForce(tif)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        if kind == OrderKind.LIMIT and limit_price <= 0:
            raise ValidationError("limit orders need a positive limit price")
        if kind == OrderKind.MARKET and limit_price != 0:
            raise ValidationError("market orders must carry limit price 0")

        sell = side == OrderSide.SELL
        if sell:
            self.validate_precision(asset, quantity)

        intent = OrderIntent(
            request_timestamp=int(self.clock() * 1000),
            recipient=to_checksum_address(recipient),
            asset_token=to_checksum_address(asset),
            payment_token=to_checksum_address(payment),
            sell=sell,
            order_kind=kind,
            asset_token_quantity=quantity if sell else 0,
            payment_token_quantity=0 if sell else quantity,
            price=limit_price,
            tif=tif,
        )
        logger.info(f"Built {side.value} intent qty={quantity} kind={kind.name} tif={tif.name}")
        return intent

    def validate_precision(self, asset: str, quantity: int) -> None:
        """Sell quantities may not use more decimals than the processor allows for the asset."""
        reduction = self.chain.order_decimal_reduction(self.processor, asset)
        allowable_precision_reduction = 10 ** reduction
        if quantity % allowable_precision_reduction != 0:
            max_decimals = self.chain.token_decimals(asset) - reduction
            raise PrecisionError(quantity, max_decimals)
