"""
SimpleAccount (EntryPoint v0.7) helpers for the sponsored execution path.

User operations are kept in the bundler's JSON-RPC shape (hex strings,
unpacked factory / paymaster fields); hashing packs them the way the
EntryPoint does before signing.
"""

from typing import Any, Dict, Iterable, Optional

from eth_abi import encode as abi_encode
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from eth_utils import keccak, to_bytes, to_checksum_address
from hexbytes import HexBytes

from ..core.order import Call
from .abi import CREATE_ACCOUNT_SIG, EXECUTE_BATCH_SIG, encode_call
from .chain_client import ChainClient

ENTRY_POINT_V07 = "0x0000000071727De22E5E9d8BAf0edAc6f37da032"
SIMPLE_ACCOUNT_FACTORY = "0x91E60e0613810449d098b0b5Ec8b51A0FE8c8985"

# signature shape accepted by SimpleAccount during simulation
DUMMY_SIGNATURE = (
    "0xfffffffffffffffffffffffffffffff0000000000000000000000000000000007"
    "aaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa1c"
)

GAS_FIELDS = (
    "callGasLimit",
    "verificationGasLimit",
    "preVerificationGas",
    "paymasterVerificationGasLimit",
    "paymasterPostOpGasLimit",
)


def to_hex(value: int) -> str:
    return hex(int(value))


def _int(value) -> int:
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    return int(value, 16) if str(value).startswith("0x") else int(value)


def _bytes(value: Optional[str]) -> bytes:
    if not value:
        return b""
    return to_bytes(hexstr=value)


def _pack_uint128_pair(high: int, low: int) -> bytes:
    return high.to_bytes(16, "big") + low.to_bytes(16, "big")


def pack_user_operation(op: Dict[str, Any]) -> bytes:
    init_code = b""
    if op.get("factory"):
        init_code = _bytes(op["factory"]) + _bytes(op.get("factoryData"))
    paymaster_and_data = b""
    if op.get("paymaster"):
        paymaster_and_data = (
            _bytes(op["paymaster"])
            + _int(op.get("paymasterVerificationGasLimit")).to_bytes(16, "big")
            + _int(op.get("paymasterPostOpGasLimit")).to_bytes(16, "big")
            + _bytes(op.get("paymasterData"))
        )
    return abi_encode(
        ["address", "uint256", "bytes32", "bytes32", "bytes32", "uint256", "bytes32", "bytes32"],
        [
            to_checksum_address(op["sender"]),
            _int(op["nonce"]),
            keccak(init_code),
            keccak(_bytes(op["callData"])),
            _pack_uint128_pair(_int(op["verificationGasLimit"]), _int(op["callGasLimit"])),
            _int(op["preVerificationGas"]),
            _pack_uint128_pair(_int(op["maxPriorityFeePerGas"]), _int(op["maxFeePerGas"])),
            keccak(paymaster_and_data),
        ],
    )


def user_operation_hash(op: Dict[str, Any], entry_point: str, chain_id: int) -> bytes:
    inner = keccak(pack_user_operation(op))
    return keccak(abi_encode(["bytes32", "address", "uint256"], [inner, to_checksum_address(entry_point), chain_id]))


class SimpleSmartAccount:
    def __init__(
        self,
        owner: LocalAccount,
        chain: ChainClient,
        entry_point: str = ENTRY_POINT_V07,
        factory: str = SIMPLE_ACCOUNT_FACTORY,
        salt: int = 0,
        address: Optional[str] = None,
    ):
        self.owner = owner
        self.chain = chain
        self.entry_point = to_checksum_address(entry_point)
        self.factory = to_checksum_address(factory)
        self.salt = salt
        self._address = to_checksum_address(address) if address else None

    @property
    def address(self) -> str:
        if self._address is None:
            self._address = self.chain.smart_account_address(self.factory, self.owner.address, self.salt)
        return self._address

    def is_deployed(self) -> bool:
        return len(self.chain.get_code(self.address)) > 0

    def factory_data(self) -> bytes:
        return encode_call(CREATE_ACCOUNT_SIG, ["address", "uint256"], [self.owner.address, self.salt])

    def nonce(self) -> int:
        return self.chain.entry_point_nonce(self.entry_point, self.address, 0)

    def encode_execute_batch(self, calls: Iterable[Call]) -> bytes:
        calls = list(calls)
        return encode_call(
            EXECUTE_BATCH_SIG,
            ["address[]", "uint256[]", "bytes[]"],
            [
                [to_checksum_address(c.target) for c in calls],
                [c.value for c in calls],
                [c.data for c in calls],
            ],
        )

    def build_user_operation(self, call_data: bytes, gas_price: Dict[str, Any]) -> Dict[str, Any]:
        """Unsigned operation carrying the dummy signature; gas limits still zero."""
        op: Dict[str, Any] = {
            "sender": self.address,
            "nonce": to_hex(self.nonce()),
            "callData": HexBytes(call_data).to_0x_hex(),
            "callGasLimit": "0x0",
            "verificationGasLimit": "0x0",
            "preVerificationGas": "0x0",
            "maxFeePerGas": to_hex(_int(gas_price["maxFeePerGas"])),
            "maxPriorityFeePerGas": to_hex(_int(gas_price["maxPriorityFeePerGas"])),
            "signature": DUMMY_SIGNATURE,
        }
        if not self.is_deployed():
            op["factory"] = self.factory
            op["factoryData"] = HexBytes(self.factory_data()).to_0x_hex()
        return op

    def sign_user_operation(self, op: Dict[str, Any], chain_id: int) -> str:
        op_hash = user_operation_hash(op, self.entry_point, chain_id)
        signed = self.owner.sign_message(encode_defunct(primitive=op_hash))
        return HexBytes(signed.signature).to_0x_hex()
