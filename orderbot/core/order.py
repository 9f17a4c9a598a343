from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Optional, Tuple


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


class OrderKind(IntEnum):
    MARKET = 0
    LIMIT = 1


class TimeInForce(IntEnum):
    DAY = 0
    GTC = 1  # good til cancelled
    IOC = 2
    FOK = 3


class OrderStatus(IntEnum):
    NONE = 0
    ACTIVE = 1
    FULFILLED = 2
    CANCELLED = 3


@dataclass(frozen=True)
class OrderIntent:
    request_timestamp: int  # ms
    recipient: str
    asset_token: str
    payment_token: str
    sell: bool
    order_kind: OrderKind
    asset_token_quantity: int
    payment_token_quantity: int
    price: int  # limit price, 0 for market orders
    tif: TimeInForce

    @property
    def side(self) -> OrderSide:
        return OrderSide.SELL if self.sell else OrderSide.BUY

    @property
    def quantity(self) -> int:
        return self.asset_token_quantity if self.sell else self.payment_token_quantity

    def to_order_data(self) -> Dict[str, Any]:
        """Shape expected by the pricing service under ``order_data``."""
        return {
            "requestTimestamp": self.request_timestamp,
            "recipient": self.recipient,
            "assetToken": self.asset_token,
            "paymentToken": self.payment_token,
            "sell": self.sell,
            "orderType": int(self.order_kind),
            "assetTokenQuantity": self.asset_token_quantity,
            "paymentTokenQuantity": self.payment_token_quantity,
            "price": self.price,
            "tif": int(self.tif),
        }

    def to_tuple(self) -> Tuple:
        # field order of the processor's Order struct
        return (
            self.request_timestamp,
            self.recipient,
            self.asset_token,
            self.payment_token,
            self.sell,
            int(self.order_kind),
            self.asset_token_quantity,
            self.payment_token_quantity,
            self.price,
            int(self.tif),
        )


@dataclass(frozen=True)
class FeeQuote:
    quote_id: int
    requester: str
    fee: int
    timestamp: int  # unix seconds
    deadline: int  # unix seconds
    signature: bytes

    def to_tuple(self) -> Tuple:
        return (self.quote_id, self.requester, self.fee, self.timestamp, self.deadline)

    def is_expired(self, now: int, margin: int = 0) -> bool:
        return self.deadline <= now + margin


@dataclass(frozen=True)
class PermitDomain:
    name: str
    version: str
    chain_id: int
    verifying_contract: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chain_id,
            "verifyingContract": self.verifying_contract,
        }


@dataclass(frozen=True)
class PermitMessage:
    owner: str
    spender: str
    value: int
    nonce: int
    deadline: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "spender": self.spender,
            "value": self.value,
            "nonce": self.nonce,
            "deadline": self.deadline,
        }


@dataclass(frozen=True)
class PermitAuthorization:
    domain: PermitDomain
    message: PermitMessage
    v: int
    r: bytes
    s: bytes
    signature: bytes


@dataclass(frozen=True)
class Call:
    target: str
    data: bytes
    value: int = 0


@dataclass(frozen=True)
class ExecutionBatch:
    calls: Tuple[Call, ...]

    @property
    def authorization(self) -> Call:
        return self.calls[0]

    @property
    def order_creation(self) -> Call:
        return self.calls[1]


@dataclass(frozen=True)
class SubmissionHandle:
    strategy: str  # direct | sponsored
    hash: str  # tx hash or user operation hash
    submitted_at: float = 0.0


@dataclass(frozen=True)
class LogEntry:
    address: str
    topics: Tuple[bytes, ...]
    data: bytes


@dataclass(frozen=True)
class ExecutionReceipt:
    tx_hash: str
    success: bool
    logs: Tuple[LogEntry, ...] = ()
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    user_op_hash: Optional[str] = None


@dataclass(frozen=True)
class CreatedOrder:
    order_id: int
    order_account: str
    fees_taken: int = 0
    order: Dict[str, Any] = field(default_factory=dict)
