"""
ABI fragments for the settlement (order processor) contract, payment/asset
tokens and the ERC-4337 account stack.

Write calls are encoded with eth-abi against the type strings below; web3 only
needs the minimal read ABIs.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from eth_abi import encode as abi_encode
from eth_utils import event_signature_to_log_topic, function_signature_to_4byte_selector, to_bytes
from hexbytes import HexBytes

from ..core.order import ExecutionReceipt, LogEntry

ORDER_TUPLE = "(uint64,address,address,address,bool,uint8,uint256,uint256,uint256,uint8)"
FEE_QUOTE_TUPLE = "(uint256,address,uint256,uint64,uint64)"

ORDER_FIELDS = (
    "requestTimestamp",
    "recipient",
    "assetToken",
    "paymentToken",
    "sell",
    "orderType",
    "assetTokenQuantity",
    "paymentTokenQuantity",
    "price",
    "tif",
)

CREATE_ORDER_SIG = f"createOrder({ORDER_TUPLE},{FEE_QUOTE_TUPLE},bytes)"
SELF_PERMIT_SIG = "selfPermit(address,address,uint256,uint256,uint8,bytes32,bytes32)"
MULTICALL_SIG = "multicall(bytes[])"
APPROVE_SIG = "approve(address,uint256)"
EXECUTE_BATCH_SIG = "executeBatch(address[],uint256[],bytes[])"
CREATE_ACCOUNT_SIG = "createAccount(address,uint256)"

ORDER_CREATED_SIG = f"OrderCreated(uint256,address,{ORDER_TUPLE},uint256)"
ORDER_CREATED_TOPIC = event_signature_to_log_topic(ORDER_CREATED_SIG)

PERMIT_TYPES = {
    "Permit": [
        {"name": "owner", "type": "address"},
        {"name": "spender", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "nonce", "type": "uint256"},
        {"name": "deadline", "type": "uint256"},
    ]
}


def selector(signature: str) -> bytes:
    return function_signature_to_4byte_selector(signature)


def encode_call(signature: str, arg_types: List[str], args: Iterable[Any]) -> bytes:
    return selector(signature) + abi_encode(arg_types, list(args))


def _view(name: str, inputs: List[Tuple[str, str]], output: str) -> Dict[str, Any]:
    return {
        "name": name,
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": "", "type": output}],
    }


TOKEN_ABI = [
    _view("name", [], "string"),
    _view("decimals", [], "uint8"),
    _view("version", [], "string"),
    _view("nonces", [("owner", "address")], "uint256"),
]

PROCESSOR_ABI = [
    _view("orderDecimalReduction", [("token", "address")], "uint8"),
    _view("getOrderStatus", [("id", "uint256")], "uint8"),
]

ENTRY_POINT_ABI = [
    _view("getNonce", [("sender", "address"), ("key", "uint192")], "uint256"),
]

ACCOUNT_FACTORY_ABI = [
    _view("getAddress", [("owner", "address"), ("salt", "uint256")], "address"),
]


def _as_bytes(value) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return to_bytes(hexstr=value)


def _as_int(value) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    return int(value, 16) if str(value).startswith("0x") else int(value)


def _as_hex(value) -> str:
    if isinstance(value, (bytes, bytearray)):
        return HexBytes(value).to_0x_hex()
    return value if str(value).startswith("0x") else "0x" + str(value)


def normalize_receipt(raw: Mapping[str, Any], success: Optional[bool] = None, user_op_hash: Optional[str] = None) -> ExecutionReceipt:
    """Build an ExecutionReceipt from a web3 receipt or a raw JSON-RPC receipt dict."""
    logs = tuple(
        LogEntry(
            address=str(log["address"]),
            topics=tuple(_as_bytes(t) for t in log.get("topics", [])),
            data=_as_bytes(log.get("data") or b""),
        )
        for log in raw.get("logs", [])
    )
    if success is None:
        success = _as_int(raw.get("status", 0)) == 1
    return ExecutionReceipt(
        tx_hash=_as_hex(raw["transactionHash"]),
        success=success,
        logs=logs,
        block_number=_as_int(raw.get("blockNumber")),
        gas_used=_as_int(raw.get("gasUsed")),
        user_op_hash=user_op_hash,
    )
