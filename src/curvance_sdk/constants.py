"""Protocol constants: fixed-point scales, oracle adapter ids and endpoints."""

from typing import TypedDict

WAD = 10**18
BPS = 10_000
USD_DECIMALS = 18

UINT256_MAX = 2**256 - 1
EMPTY_ADDRESS = "0x0000000000000000000000000000000000000000"
NATIVE_ADDRESS = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"
EMPTY_BYTES = b""

DEFAULT_SLIPPAGE = "0.005"  # 0.5%

# Oracle adapter type ids as reported by the protocol reader
ADAPTER_CHAINLINK = 1
ADAPTER_REDSTONE_CORE = 2
ADAPTER_REDSTONE_CLASSIC = 3
ADAPTER_MOCK = 1337

# RedStone signed price feed
REDSTONE_DATA_SERVICE_ID = "redstone-primary-prod"
REDSTONE_UNIQUE_SIGNERS = 3
REDSTONE_AUTHORIZED_SIGNERS = [
    "0x8BB8F32Df04c8b654987DAaeD53D6B6091e3B774",
    "0xdEB22f54738d54976C4c0fe5ce6d408E40d88499",
    "0x51Ce04Be4b3E32572C4Ec9135221d0691Ba7d202",
    "0xDD682daEC5A90dD295d14DA4b0bec9281017b5bE",
]
REDSTONE_GATEWAY_URLS = [
    "https://oracle-gateway-1.a.redstone.finance",
    "https://oracle-gateway-2.a.redstone.finance",
]
REDSTONE_MARKER = bytes.fromhex("000002ed57011e0000")
REDSTONE_VALUE_DECIMALS = 8
REDSTONE_VALUE_BYTE_SIZE = 32
REDSTONE_SIGNATURE_BYTE_SIZE = 65

DEFAULT_REFERRAL_ADDRESS = "0x0Acb7eF4D8733C719d60e0992B489b629bc55C02"


class DexAggregatorDefaults(TypedDict):
    api_url: str
    router: str


KYBERSWAP_DEFAULTS: DexAggregatorDefaults = {
    "api_url": "https://aggregator-api.kyberswap.com",
    "router": "0x6131B5fae19EA4f9D964eAc0408E4408b66337b5",
}

KURU_DEFAULTS: DexAggregatorDefaults = {
    "api_url": "https://ws.kuru.io/api",
    "router": "0xb3e6778480b2E488385E8205eA05E20060B813cb",
}

# KyberSwap names chains differently from the rest of the stack
KYBERSWAP_CHAIN_NAMES: dict[str, str] = {
    "monad-mainnet": "monad",
    "monad-testnet": "monad-testnet",
}

DEFAULT_MAINNET_RPC_URL = "https://rpc.monad.xyz"
DEFAULT_TESTNET_RPC_URL = "https://testnet-rpc.monad.xyz"
