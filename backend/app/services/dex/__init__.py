# DEX module initialization
from .oracles import (
    TokenPriceOracle, DexScreenerTokenOracle, DexScreenerSearchOracle, JupiterPriceOracle,
)
from .jupiter import JupiterSwapClient, SwapResult, SwapError, SOL_MINT
from .solana_rpc import SolanaRpcClient, SolanaRpcError

__all__ = [
    "TokenPriceOracle", "DexScreenerTokenOracle", "DexScreenerSearchOracle", "JupiterPriceOracle",
    "JupiterSwapClient", "SwapResult", "SwapError", "SOL_MINT",
    "SolanaRpcClient", "SolanaRpcError",
]
