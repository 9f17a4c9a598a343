from typing import Optional

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import to_checksum_address
from loguru import logger

from ..chain.abi import ORDER_CREATED_TOPIC, ORDER_FIELDS, ORDER_TUPLE
from ..chain.chain_client import ChainClient
from .errors import EventNotFoundError
from .order import CreatedOrder, ExecutionReceipt, LogEntry, OrderStatus


def decode_order_created(log: LogEntry) -> CreatedOrder:
    if len(log.topics) < 3:
        raise EventNotFoundError(f"OrderCreated log from {log.address} is missing indexed topics")
    order_id = int.from_bytes(log.topics[1], "big")
    order_account = to_checksum_address(log.topics[2][-20:])
    try:
        order, fees_taken = abi_decode([ORDER_TUPLE, "uint256"], log.data)
    except DecodingError as exc:
        raise EventNotFoundError(f"OrderCreated data for order {order_id} is undecodable: {exc}") from exc
    return CreatedOrder(
        order_id=order_id,
        order_account=order_account,
        fees_taken=fees_taken,
        order=dict(zip(ORDER_FIELDS, order)),
    )


class ReceiptParser:
    def __init__(self, chain: ChainClient, processor: str):
        self.chain = chain
        self.processor = to_checksum_address(processor)

    def parse_order_created(self, receipt: ExecutionReceipt, processor_address: Optional[str] = None) -> CreatedOrder:
        processor = (processor_address or self.processor).lower()
        for log in receipt.logs:
            if log.address.lower() != processor or not log.topics:
                continue
            if log.topics[0] != ORDER_CREATED_TOPIC:
                continue
            created = decode_order_created(log)
            logger.info(f"Order ID: {created.order_id} Order Account: {created.order_account}")
            return created
        logger.error(f"No OrderCreated event in {receipt.tx_hash} ({len(receipt.logs)} logs)")
        raise EventNotFoundError(f"no OrderCreated event from {processor} in {receipt.tx_hash}")

    def query_status(self, order_id: int) -> OrderStatus:
        status = OrderStatus(self.chain.order_status(self.processor, order_id))
        logger.info(f"Order Status: {status.name}")
        return status
