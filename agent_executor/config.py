import os
from dotenv import load_dotenv
from dataclasses import dataclass
from functools import lru_cache
from typing import List

load_dotenv()


@dataclass
class Settings:
    # chain / signing
    RPC_URL: str = "https://arb1.arbitrum.io/rpc"
    CHAIN_ID: int = 42161
    CHAIN_NAME: str = "arbitrum"
    EXECUTOR_PRIVATE_KEY: str = ""  # hex 0x..., empty when missing
    TRADING_MODULE_ADDRESS: str = ""

    USDC_ADDRESS: str = "0xaf88d065e77c8cC2239327C5EDb3A432268e5831"
    USDC_DECIMALS: int = 6

    UNI_V3_ROUTER: str = "0xE592427A0AEce92De3Edee1F18E0157C05861564"  # SwapRouter
    UNI_V3_QUOTER: str = "0x61fFE014bA17989E743c5F6cB21bF9697530B21e"  # QuoterV2
    SPOT_FEE_TIERS: str = "3000,500,10000"
    DEFAULT_SWAP_POOL_FEE: int = 3000

    # trading rules
    MAX_SLIPPAGE_BPS: int = 100
    SWAP_DEADLINE_SEC: int = 1200
    MIN_POSITION_USDC: float = 0.1
    TRAILING_ACTIVATION_PCT: float = 3.0
    TRAILING_DEFAULT_PCT: float = 1.0
    FIXED_STOP_LOSS_ENABLED: bool = False
    PROFIT_SHARE_BPS: int = 2000

    # gas / deadlines
    GAS_LIMIT_TRADE: int = 1_000_000
    GAS_LIMIT_SETUP: int = 300_000
    GAS_LIMIT_MODULE_CALL: int = 1_500_000
    TX_RECEIPT_TIMEOUT_SEC: float = 120.0
    NONCE_ACQUIRE_TIMEOUT_SEC: float = 30.0
    PENDING_TX_MAX_AGE_SEC: float = 900.0

    # loops
    EXECUTOR_INTERVAL_SEC: float = 300.0
    MONITOR_INTERVAL_SEC: float = 60.0
    ITEM_DELAY_SEC: float = 0.5
    SIGNAL_BATCH_LIMIT: int = 20
    MONITOR_SHARD_INDEX: int = 0
    MONITOR_SHARD_COUNT: int = 1

    # infra
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DB_NAME: str = "agent_executor"

    # generic
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    @property
    def fee_tiers(self) -> List[int]:
        return [int(x) for x in self.SPOT_FEE_TIERS.split(",") if x.strip()]


def _as_bool(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


@lru_cache()
def get_settings() -> Settings:
    return Settings(
        RPC_URL=os.getenv("RPC_URL", "https://arb1.arbitrum.io/rpc"),
        CHAIN_ID=int(os.getenv("CHAIN_ID", 42161)),
        CHAIN_NAME=os.getenv("CHAIN_NAME", "arbitrum"),
        EXECUTOR_PRIVATE_KEY=os.environ.get("EXECUTOR_PRIVATE_KEY", ""),
        TRADING_MODULE_ADDRESS=os.environ.get("TRADING_MODULE_ADDRESS", ""),

        USDC_ADDRESS=os.getenv("USDC_ADDRESS", "0xaf88d065e77c8cC2239327C5EDb3A432268e5831"),
        USDC_DECIMALS=int(os.getenv("USDC_DECIMALS", 6)),

        UNI_V3_ROUTER=os.environ.get("UNI_V3_ROUTER", "0xE592427A0AEce92De3Edee1F18E0157C05861564"),
        UNI_V3_QUOTER=os.environ.get("UNI_V3_QUOTER", "0x61fFE014bA17989E743c5F6cB21bF9697530B21e"),
        SPOT_FEE_TIERS=os.getenv("SPOT_FEE_TIERS", "3000,500,10000"),
        DEFAULT_SWAP_POOL_FEE=int(os.environ.get("DEFAULT_SWAP_POOL_FEE", 3000)),

        MAX_SLIPPAGE_BPS=int(os.getenv("MAX_SLIPPAGE_BPS", 100)),
        SWAP_DEADLINE_SEC=int(os.getenv("SWAP_DEADLINE_SEC", 1200)),
        MIN_POSITION_USDC=float(os.getenv("MIN_POSITION_USDC", 0.1)),
        TRAILING_ACTIVATION_PCT=float(os.getenv("TRAILING_ACTIVATION_PCT", 3.0)),
        TRAILING_DEFAULT_PCT=float(os.getenv("TRAILING_DEFAULT_PCT", 1.0)),
        FIXED_STOP_LOSS_ENABLED=_as_bool(os.getenv("FIXED_STOP_LOSS_ENABLED", "false")),
        PROFIT_SHARE_BPS=int(os.getenv("PROFIT_SHARE_BPS", 2000)),

        GAS_LIMIT_TRADE=int(os.getenv("GAS_LIMIT_TRADE", 1_000_000)),
        GAS_LIMIT_SETUP=int(os.getenv("GAS_LIMIT_SETUP", 300_000)),
        GAS_LIMIT_MODULE_CALL=int(os.getenv("GAS_LIMIT_MODULE_CALL", 1_500_000)),
        TX_RECEIPT_TIMEOUT_SEC=float(os.getenv("TX_RECEIPT_TIMEOUT_SEC", 120)),
        NONCE_ACQUIRE_TIMEOUT_SEC=float(os.getenv("NONCE_ACQUIRE_TIMEOUT_SEC", 30)),
        PENDING_TX_MAX_AGE_SEC=float(os.getenv("PENDING_TX_MAX_AGE_SEC", 900)),

        EXECUTOR_INTERVAL_SEC=float(os.getenv("EXECUTOR_INTERVAL_SEC", 300)),
        MONITOR_INTERVAL_SEC=float(os.getenv("MONITOR_INTERVAL_SEC", 60)),
        ITEM_DELAY_SEC=float(os.getenv("ITEM_DELAY_SEC", 0.5)),
        SIGNAL_BATCH_LIMIT=int(os.getenv("SIGNAL_BATCH_LIMIT", 20)),
        MONITOR_SHARD_INDEX=int(os.getenv("MONITOR_SHARD_INDEX", 0)),
        MONITOR_SHARD_COUNT=int(os.getenv("MONITOR_SHARD_COUNT", 1)),

        MONGODB_URI=os.getenv("MONGODB_URI", "mongodb://localhost:27017"),
        MONGODB_DB_NAME=os.getenv("MONGODB_DB_NAME", "agent_executor"),

        ENV=os.getenv("ENV", "dev"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
    )
