"""
SolBridge - Jupiter Swap Client
Quote, build, sign and submit Solana swaps through the Jupiter v6 API.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
import base64
import logging

import httpx
from solders.keypair import Keypair
from solders.transaction import VersionedTransaction

from .solana_rpc import SolanaRpcClient, SolanaRpcError, TransactionFailedError
from core.exceptions import OrderOutcomeUnknownError, TradingException

logger = logging.getLogger(__name__)

SOL_MINT = "So11111111111111111111111111111111111111112"

SubmitHook = Callable[[str], None]


class SwapError(TradingException):
    """Quote, build or submission of a swap failed"""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message, "SWAP_FAILED", details)


@dataclass
class SwapResult:
    """Confirmed swap"""
    signature: str
    input_mint: str
    output_mint: str
    in_amount: int  # Raw units of the input mint
    out_amount: int  # Raw units of the output mint


def to_raw_amount(amount: float, decimals: int) -> int:
    """UI amount -> integer base units"""
    return int(amount * (10 ** decimals))


class JupiterSwapClient:
    """Swaps a user's tokens against SOL"""

    def __init__(
        self,
        client: httpx.AsyncClient,
        rpc: SolanaRpcClient,
        quote_urls: List[str],
        swap_url: str,
        confirm_timeout: float = 45.0
    ):
        if not quote_urls:
            raise ValueError("At least one Jupiter quote endpoint is required")
        self.client = client
        self.rpc = rpc
        self.quote_urls = quote_urls
        self.swap_url = swap_url.rstrip("/")
        self.confirm_timeout = confirm_timeout

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int = 100,
        swap_mode: str = "ExactIn"
    ) -> Dict[str, Any]:
        """Best route quote, trying each configured endpoint in order"""
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": amount,
            "slippageBps": slippage_bps,
            "swapMode": swap_mode,
            "onlyDirectRoutes": "false",
        }
        last_error: Optional[Exception] = None

        for endpoint in self.quote_urls:
            try:
                response = await self.client.get(f"{endpoint.rstrip('/')}/quote", params=params)
                response.raise_for_status()
                quote = response.json()
                if quote.get("error"):
                    raise SwapError(f"Quote rejected: {quote['error']}")
                logger.debug(f"Quote received from {endpoint}")
                return quote
            except (httpx.HTTPError, ValueError, SwapError) as e:
                logger.warning(f"Jupiter endpoint {endpoint} failed: {e}")
                last_error = e

        raise SwapError(f"All Jupiter endpoints failed: {last_error}")

    async def execute_swap(
        self,
        private_key: str,
        quote: Dict[str, Any],
        on_submit: Optional[SubmitHook] = None
    ) -> str:
        """
        Build the swap transaction, sign it with the wallet and confirm it.

        `on_submit` receives the signature right before the transaction is
        sent. From then on a failure that does not prove the transaction was
        dropped raises OrderOutcomeUnknownError instead of SwapError.
        """
        wallet = Keypair.from_base58_string(private_key)

        try:
            response = await self.client.post(
                f"{self.swap_url}/swap",
                json={
                    "quoteResponse": quote,
                    "userPublicKey": str(wallet.pubkey()),
                    "wrapAndUnwrapSol": True,
                    "dynamicComputeUnitLimit": True,
                    "prioritizationFeeLamports": "auto",
                }
            )
            response.raise_for_status()
            swap_transaction = response.json()["swapTransaction"]
        except (httpx.HTTPError, KeyError, ValueError) as e:
            raise SwapError(f"Swap build failed: {e}")

        unsigned = VersionedTransaction.from_bytes(base64.b64decode(swap_transaction))
        signed = VersionedTransaction(unsigned.message, [wallet])
        signature = str(signed.signatures[0])

        if on_submit is not None:
            on_submit(signature)

        try:
            await self.rpc.send_transaction(bytes(signed))
        except SolanaRpcError as e:
            # Rejected in preflight, never forwarded to the cluster
            raise SwapError(f"Swap rejected: {e.message}")
        except httpx.HTTPStatusError as e:
            if e.response.status_code < 500:
                raise SwapError(f"Swap rejected by RPC: {e}")
            raise OrderOutcomeUnknownError(signature, f"sendTransaction failed: {e}")
        except httpx.HTTPError as e:
            raise OrderOutcomeUnknownError(signature, f"sendTransaction did not answer: {e}")

        logger.info(f"Swap submitted: {signature}")

        try:
            await self.rpc.confirm_transaction(signature, timeout=self.confirm_timeout)
        except TransactionFailedError as e:
            raise SwapError(e.message)
        except (SolanaRpcError, httpx.HTTPError) as e:
            message = e.message if isinstance(e, SolanaRpcError) else str(e)
            raise OrderOutcomeUnknownError(signature, message)
        return signature

    async def sell_tokens(
        self,
        private_key: str,
        token_address: str,
        amount: float,
        decimals: int,
        slippage_percent: float = 1.0,
        on_submit: Optional[SubmitHook] = None
    ) -> SwapResult:
        """Sell exactly `amount` tokens for SOL"""
        raw_amount = to_raw_amount(amount, decimals)
        quote = await self.get_quote(
            token_address, SOL_MINT, raw_amount, int(slippage_percent * 100), "ExactIn"
        )
        signature = await self.execute_swap(private_key, quote, on_submit)
        return SwapResult(
            signature=signature,
            input_mint=token_address,
            output_mint=SOL_MINT,
            in_amount=int(quote.get("inAmount") or raw_amount),
            out_amount=int(quote.get("outAmount") or 0)
        )

    async def buy_tokens_exact(
        self,
        private_key: str,
        token_address: str,
        amount: float,
        decimals: int,
        slippage_percent: float = 1.0,
        on_submit: Optional[SubmitHook] = None
    ) -> SwapResult:
        """Buy back exactly `amount` tokens with SOL"""
        raw_amount = to_raw_amount(amount, decimals)
        quote = await self.get_quote(
            SOL_MINT, token_address, raw_amount, int(slippage_percent * 100), "ExactOut"
        )
        signature = await self.execute_swap(private_key, quote, on_submit)
        return SwapResult(
            signature=signature,
            input_mint=SOL_MINT,
            output_mint=token_address,
            in_amount=int(quote.get("inAmount") or 0),
            out_amount=int(quote.get("outAmount") or raw_amount)
        )
