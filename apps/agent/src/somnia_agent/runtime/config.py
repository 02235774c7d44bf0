from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_RPC_URL = "https://dream-rpc.somnia.network"
DEFAULT_EXPLORER_URL = "https://shannon-explorer.somnia.network"
DEFAULT_TOKEN_FACTORY_ADDRESS = "0x19Fae13F4C2fac0539b5E0baC8Ad1785f1C7dEE1"
DEFAULT_SWAP_ROUTER_ADDRESS = "0x6aac14f090a35eea150705f72d90e4cdc4a49b2c"
DEFAULT_PING_ADDRESS = "0xbecd9b5f373877881d91cbdbaf013d97eb532154"
DEFAULT_PONG_ADDRESS = "0x7968ac15a72629e05f41b8271e4e7292e0cc9f90"
DEFAULT_PRICE_API_URL = "https://api.coingecko.com/api/v3"


@dataclass(frozen=True)
class RuntimeConfig:
    rpc_url: str
    network_name: str
    explorer_url: str
    token_factory_address: str
    nft_factory_address: str
    dao_factory_address: str
    airdrop_address: str
    swap_router_address: str
    swap_fee_tier: int
    ping_token_address: str
    pong_token_address: str
    price_api_url: str
    price_api_timeout_seconds: float
    rpc_timeout_seconds: float
    receipt_timeout_seconds: Optional[float] = None
    receipt_poll_seconds: float = 1.0
    collection_creation_fee_wei: int = 0
    mint_fee_wei: int = 0
    log_level: str = "INFO"
    log_json: bool = False


def _optional_float(name: str) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    return float(raw)


def load_runtime_config() -> RuntimeConfig:
    return RuntimeConfig(
        rpc_url=os.getenv("SOMNIA_RPC_URL", DEFAULT_RPC_URL),
        network_name=os.getenv("SOMNIA_NETWORK_NAME", "Somnia Testnet"),
        explorer_url=os.getenv("SOMNIA_EXPLORER_URL", DEFAULT_EXPLORER_URL),
        token_factory_address=os.getenv("TOKEN_FACTORY_ADDRESS", DEFAULT_TOKEN_FACTORY_ADDRESS),
        nft_factory_address=os.getenv("NFT_FACTORY_ADDRESS", ""),
        dao_factory_address=os.getenv("DAO_FACTORY_ADDRESS", ""),
        airdrop_address=os.getenv("AIRDROP_CONTRACT_ADDRESS", ""),
        swap_router_address=os.getenv("SWAP_ROUTER_ADDRESS", DEFAULT_SWAP_ROUTER_ADDRESS),
        swap_fee_tier=int(os.getenv("SWAP_FEE_TIER", "500")),
        ping_token_address=os.getenv("PING_TOKEN_ADDRESS", DEFAULT_PING_ADDRESS),
        pong_token_address=os.getenv("PONG_TOKEN_ADDRESS", DEFAULT_PONG_ADDRESS),
        price_api_url=os.getenv("PRICE_API_URL", DEFAULT_PRICE_API_URL),
        price_api_timeout_seconds=float(os.getenv("PRICE_API_TIMEOUT", "10")),
        rpc_timeout_seconds=float(os.getenv("SOMNIA_RPC_TIMEOUT", "30")),
        receipt_timeout_seconds=_optional_float("SOMNIA_RECEIPT_TIMEOUT"),
        receipt_poll_seconds=float(os.getenv("SOMNIA_RECEIPT_POLL", "1")),
        collection_creation_fee_wei=int(os.getenv("NFT_COLLECTION_FEE_WEI", "0")),
        mint_fee_wei=int(os.getenv("NFT_MINT_FEE_WEI", "0")),
        log_level=os.getenv("SOMNIA_LOG_LEVEL", "INFO"),
        log_json=os.getenv("SOMNIA_LOG_JSON", "").strip().lower() in {"1", "true", "yes"},
    )
