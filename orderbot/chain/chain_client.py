from abc import ABC, abstractmethod
from typing import Dict, Optional

from eth_utils import to_checksum_address
from loguru import logger
from web3 import Web3
from web3.exceptions import ContractLogicError, TransactionNotFound, Web3Exception

from ..core.errors import ChainRevertError
from ..core.order import ExecutionReceipt
from .abi import ACCOUNT_FACTORY_ABI, ENTRY_POINT_ABI, PROCESSOR_ABI, TOKEN_ABI, normalize_receipt


class ChainClient(ABC):
    """Read/write surface of the node used by every pipeline stage."""

    @abstractmethod
    def chain_id(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def block_timestamp(self) -> int:
        """Timestamp of the latest block (unix seconds)."""
        raise NotImplementedError

    @abstractmethod
    def token_name(self, token: str) -> str:
        raise NotImplementedError

    @abstractmethod
    def token_decimals(self, token: str) -> int:
        raise NotImplementedError

    @abstractmethod
    def token_version(self, token: str) -> str:
        """Raises ChainRevertError when the token has no version() accessor."""
        raise NotImplementedError

    @abstractmethod
    def token_nonce(self, token: str, owner: str) -> int:
        raise NotImplementedError

    @abstractmethod
    def order_decimal_reduction(self, processor: str, asset: str) -> int:
        raise NotImplementedError

    @abstractmethod
    def order_status(self, processor: str, order_id: int) -> int:
        raise NotImplementedError

    @abstractmethod
    def get_code(self, address: str) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def smart_account_address(self, factory: str, owner: str, salt: int) -> str:
        raise NotImplementedError

    @abstractmethod
    def entry_point_nonce(self, entry_point: str, sender: str, key: int = 0) -> int:
        raise NotImplementedError

    @abstractmethod
    def estimate_gas(self, tx: Dict) -> int:
        raise NotImplementedError

    @abstractmethod
    def transaction_count(self, address: str) -> int:
        raise NotImplementedError

    @abstractmethod
    def fee_params(self) -> Dict[str, int]:
        """EIP-1559 ``maxFeePerGas`` / ``maxPriorityFeePerGas``."""
        raise NotImplementedError

    @abstractmethod
    def send_raw_transaction(self, raw_tx: bytes) -> str:
        raise NotImplementedError

    @abstractmethod
    def get_transaction_receipt(self, tx_hash: str) -> Optional[ExecutionReceipt]:
        """None while the transaction is not yet included."""
        raise NotImplementedError


class Web3ChainClient(ChainClient):
    def __init__(self, rpc_url: str, timeout: int = 10, w3: Optional[Web3] = None):
        self.w3 = w3 or Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
        self._chain_id: Optional[int] = None

    def _contract(self, address: str, abi):
        return self.w3.eth.contract(address=to_checksum_address(address), abi=abi)

    def _read(self, fn):
        try:
            return fn.call()
        except ContractLogicError as exc:
            raise ChainRevertError("read call reverted", reason=str(exc)) from exc
        except Web3Exception as exc:
            # empty return data (missing accessor) surfaces as BadFunctionCallOutput
            raise ChainRevertError("read call failed", reason=str(exc)) from exc

    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = int(self.w3.eth.chain_id)
        return self._chain_id

    def block_timestamp(self) -> int:
        return int(self.w3.eth.get_block("latest")["timestamp"])

    def token_name(self, token: str) -> str:
        return self._read(self._contract(token, TOKEN_ABI).functions.name())

    def token_decimals(self, token: str) -> int:
        return int(self._read(self._contract(token, TOKEN_ABI).functions.decimals()))

    def token_version(self, token: str) -> str:
        return self._read(self._contract(token, TOKEN_ABI).functions.version())

    def token_nonce(self, token: str, owner: str) -> int:
        fn = self._contract(token, TOKEN_ABI).functions.nonces(to_checksum_address(owner))
        return int(self._read(fn))

    def order_decimal_reduction(self, processor: str, asset: str) -> int:
        fn = self._contract(processor, PROCESSOR_ABI).functions.orderDecimalReduction(to_checksum_address(asset))
        return int(self._read(fn))

    def order_status(self, processor: str, order_id: int) -> int:
        return int(self._read(self._contract(processor, PROCESSOR_ABI).functions.getOrderStatus(order_id)))

    def get_code(self, address: str) -> bytes:
        return bytes(self.w3.eth.get_code(to_checksum_address(address)))

    def smart_account_address(self, factory: str, owner: str, salt: int) -> str:
        fn = self._contract(factory, ACCOUNT_FACTORY_ABI).functions.getAddress(to_checksum_address(owner), salt)
        return to_checksum_address(self._read(fn))

    def entry_point_nonce(self, entry_point: str, sender: str, key: int = 0) -> int:
        fn = self._contract(entry_point, ENTRY_POINT_ABI).functions.getNonce(to_checksum_address(sender), key)
        return int(self._read(fn))

    def estimate_gas(self, tx: Dict) -> int:
        try:
            return int(self.w3.eth.estimate_gas(tx))
        except ContractLogicError as exc:
            raise ChainRevertError("gas estimation reverted", reason=str(exc)) from exc

    def transaction_count(self, address: str) -> int:
        return int(self.w3.eth.get_transaction_count(to_checksum_address(address), "pending"))

    def fee_params(self) -> Dict[str, int]:
        base_fee = int(self.w3.eth.get_block("latest").get("baseFeePerGas", 0))
        priority = int(self.w3.eth.max_priority_fee)
        return {"maxFeePerGas": base_fee * 2 + priority, "maxPriorityFeePerGas": priority}

    def send_raw_transaction(self, raw_tx: bytes) -> str:
        tx_hash = self.w3.eth.send_raw_transaction(raw_tx)
        return tx_hash.to_0x_hex()

    def get_transaction_receipt(self, tx_hash: str) -> Optional[ExecutionReceipt]:
        try:
            raw = self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        receipt = normalize_receipt(raw)
        logger.debug(f"receipt {receipt.tx_hash} status={int(receipt.success)} logs={len(receipt.logs)}")
        return receipt
