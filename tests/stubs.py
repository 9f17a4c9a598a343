from typing import Dict, List, Optional

from eth_abi import encode as abi_encode
from eth_account import Account
from eth_utils import keccak, to_checksum_address

from orderbot.chain.abi import ORDER_CREATED_TOPIC, ORDER_TUPLE
from orderbot.chain.chain_client import ChainClient
from orderbot.core.errors import ChainRevertError
from orderbot.core.order import ExecutionReceipt, FeeQuote, LogEntry

SIGNER = Account.from_key("0x" + "11" * 32)
PROCESSOR = to_checksum_address("0x" + "aa" * 20)
USDC = to_checksum_address("0x" + "bb" * 20)
ASSET = to_checksum_address("0x" + "cc" * 20)
SMART_ACCOUNT = to_checksum_address("0x" + "dd" * 20)
CHAIN_ID = 11155111
BLOCK_TIME = 1_700_000_000


class ChainStub(ChainClient):
    def __init__(self):
        self.id = CHAIN_ID
        self.block_time = BLOCK_TIME
        self.names = {USDC: "USD Coin", ASSET: "Dinari Asset"}
        self.versions = {USDC: "2"}
        self.decimals = {USDC: 6, ASSET: 18}
        self.nonces: Dict[str, int] = {}
        self.reductions: Dict[str, int] = {ASSET: 0}
        self.statuses: Dict[int, int] = {}
        self.code: Dict[str, bytes] = {}
        self.receipts: Dict[str, ExecutionReceipt] = {}
        self.receipt_logs: tuple = ()
        self.receipt_success = True
        self.pending_polls = 0
        self.revert_reason: Optional[str] = None
        self.sent: List[bytes] = []
        self.estimated: List[Dict] = []
        self.receipt_lookups: List[str] = []
        self.calls: List[str] = []

    def chain_id(self) -> int:
        return self.id

    def block_timestamp(self) -> int:
        return self.block_time

    def token_name(self, token: str) -> str:
        self.calls.append("name")
        return self.names[token]

    def token_decimals(self, token: str) -> int:
        self.calls.append("decimals")
        return self.decimals[token]

    def token_version(self, token: str) -> str:
        self.calls.append("version")
        if token not in self.versions:
            raise ChainRevertError("read call failed", reason="execution reverted")
        return self.versions[token]

    def token_nonce(self, token: str, owner: str) -> int:
        self.calls.append("nonces")
        return self.nonces.get(owner, 0)

    def order_decimal_reduction(self, processor: str, asset: str) -> int:
        self.calls.append("orderDecimalReduction")
        return self.reductions.get(asset, 0)

    def order_status(self, processor: str, order_id: int) -> int:
        return self.statuses.get(order_id, 1)

    def get_code(self, address: str) -> bytes:
        return self.code.get(address, b"")

    def smart_account_address(self, factory: str, owner: str, salt: int) -> str:
        return SMART_ACCOUNT

    def entry_point_nonce(self, entry_point: str, sender: str, key: int = 0) -> int:
        return 7

    def estimate_gas(self, tx: Dict) -> int:
        if self.revert_reason:
            raise ChainRevertError("gas estimation reverted", reason=self.revert_reason)
        self.estimated.append(tx)
        return 100_000

    def transaction_count(self, address: str) -> int:
        return 3

    def fee_params(self) -> Dict[str, int]:
        return {"maxFeePerGas": 2_000_000_000, "maxPriorityFeePerGas": 1_000_000_000}

    def send_raw_transaction(self, raw_tx: bytes) -> str:
        self.sent.append(raw_tx)
        tx_hash = "0x" + keccak(raw_tx).hex()
        self.receipts[tx_hash] = ExecutionReceipt(
            tx_hash=tx_hash,
            success=self.receipt_success,
            logs=self.receipt_logs,
            block_number=42,
            gas_used=90_000,
        )
        return tx_hash

    def get_transaction_receipt(self, tx_hash: str) -> Optional[ExecutionReceipt]:
        self.receipt_lookups.append(tx_hash)
        if self.pending_polls > 0:
            self.pending_polls -= 1
            return None
        return self.receipts.get(tx_hash)


class FakeClock:
    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


def order_created_log(
    order_id: int,
    account: str,
    emitter: str = PROCESSOR,
    fees_taken: int = 2_500,
    order=(1_700_000_000_000, SIGNER.address, ASSET, USDC, False, 0, 0, 1_000_000, 0, 1),
) -> LogEntry:
    return LogEntry(
        address=emitter,
        topics=(
            ORDER_CREATED_TOPIC,
            order_id.to_bytes(32, "big"),
            bytes(12) + bytes.fromhex(account[2:]),
        ),
        data=abi_encode([ORDER_TUPLE, "uint256"], [order, fees_taken]),
    )


def fee_quote(fee: int = 2_500, quote_id: int = 77, deadline: int = BLOCK_TIME + 600) -> FeeQuote:
    return FeeQuote(
        quote_id=quote_id,
        requester=SIGNER.address,
        fee=fee,
        timestamp=BLOCK_TIME,
        deadline=deadline,
        signature=b"\x01" * 65,
    )
