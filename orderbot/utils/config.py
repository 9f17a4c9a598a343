from typing import Dict, Optional
import yaml
from pathlib import Path
from pydantic import BaseModel, Field
from dotenv import load_dotenv
import os


class ChainConfig(BaseModel):
    rpc_url: str = Field(default_factory=lambda: os.getenv("RPC_URL", ""))
    private_key: str = Field(default_factory=lambda: os.getenv("PRIVATE_KEY_EOA", os.getenv("PRIVATE_KEY", "")))
    request_timeout_sec: int = 10


class PricingConfig(BaseModel):
    base_url: str = "https://api-enterprise.sandbox.dinari.com"
    fee_path: str = "/api/v1/web3/orders/fee"
    api_key: str = Field(default_factory=lambda: os.getenv("DINARI_API_KEY", ""))
    timeout_sec: int = 10


class ProcessorConfig(BaseModel):
    address: Optional[str] = None  # explicit override
    network_addresses: Dict[int, str] = {}  # chain id -> processor address


class OrderConfig(BaseModel):
    asset_token: str = Field(default_factory=lambda: os.getenv("ASSETTOKEN", ""))
    payment_token: str = Field(default_factory=lambda: os.getenv("PAYMENTTOKEN", ""))
    side: str = "buy"
    quantity: int = 1_000_000  # 1 USDC
    kind: int = 0  # 0 market, 1 limit
    limit_price: int = 0
    tif: int = 1  # good til cancelled
    recipient: Optional[str] = None  # defaults to the executing account


class PermitConfig(BaseModel):
    deadline_seconds: int = 300


class QuoteConfig(BaseModel):
    # seconds of validity a quote must still have when the batch is dispatched
    min_remaining_sec: int = 5


class ExecutionConfig(BaseModel):
    strategy: str = "direct"  # direct | sponsored
    gas_multiplier: float = 1.2
    receipt_timeout_ms: int = 120_000
    poll_interval_ms: int = 1000


class RelayerConfig(BaseModel):
    url_template: str = "https://api.pimlico.io/v2/{chain}/rpc?apikey={api_key}"
    chain: str = "sepolia"
    api_key: str = Field(default_factory=lambda: os.getenv("PIMLICO_API_KEY", ""))
    entry_point: str = "0x0000000071727De22E5E9d8BAf0edAc6f37da032"
    factory: str = "0x91E60e0613810449d098b0b5Ec8b51A0FE8c8985"
    salt: int = 0
    sponsor: bool = True
    gas_speed: str = "fast"  # slow | standard | fast
    receipt_timeout_ms: int = 60_000
    poll_interval_ms: int = 1000
    timeout_sec: int = 10

    @property
    def url(self) -> str:
        return self.url_template.format(chain=self.chain, api_key=self.api_key)


class LoggingConfig(BaseModel):
    log_dir: str = "logs"
    backend: str = "csv"  # csv | sqlite
    submissions_csv_path: str = "logs/submissions.csv"
    sqlite_path: str = "logs/submissions.db"


class Config(BaseModel):
    chain: ChainConfig = Field(default_factory=ChainConfig)
    pricing: PricingConfig = Field(default_factory=PricingConfig)
    processor: ProcessorConfig = ProcessorConfig()
    order: OrderConfig = Field(default_factory=OrderConfig)
    permit: PermitConfig = PermitConfig()
    quote: QuoteConfig = QuoteConfig()
    execution: ExecutionConfig = ExecutionConfig()
    relayer: RelayerConfig = Field(default_factory=RelayerConfig)
    assets: Dict[str, str] = {}  # token address -> display symbol
    logging: LoggingConfig = LoggingConfig()

    def resolve_processor_address(self, chain_id: int) -> str:
        if self.processor.address:
            return self.processor.address
        try:
            return self.processor.network_addresses[chain_id]
        except KeyError:
            raise ValueError(f"no order processor configured for chain {chain_id}") from None

    def asset_symbol(self, address: str) -> str:
        by_lower = {k.lower(): v for k, v in self.assets.items()}
        return by_lower.get(address.lower(), address)


def load_config(path: str) -> Config:
    load_dotenv()
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    assets_file = data.pop("assets_file", None)
    if assets_file:
        assets_path = Path(path).parent / assets_file
        with open(assets_path, "r", encoding="utf-8") as f:
            data.setdefault("assets", {}).update(yaml.safe_load(f) or {})
    return Config(**data)
