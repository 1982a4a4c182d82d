"""
SolBridge - Solana JSON-RPC Client
Transaction submission and confirmation over plain JSON-RPC.
"""
from typing import Any, List, Optional
import asyncio
import base64
import logging

import httpx

from core.exceptions import TradingException

logger = logging.getLogger(__name__)


class SolanaRpcError(TradingException):
    """RPC call failed or a transaction was rejected on-chain"""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message, "SOLANA_RPC_ERROR", details)


class TransactionFailedError(SolanaRpcError):
    """Transaction landed with an error; nothing but the fee was spent"""


class TransactionUnconfirmedError(SolanaRpcError):
    """No final status within the timeout; the transaction may still land"""


class SolanaRpcClient:
    """Minimal async client for the RPC methods used by swaps"""

    def __init__(
        self,
        client: httpx.AsyncClient,
        rpc_url: str,
        commitment: str = "confirmed",
        poll_interval: float = 1.0
    ):
        self.client = client
        self.rpc_url = rpc_url
        self.commitment = commitment
        self.poll_interval = poll_interval
        self._request_id = 0

    async def call(self, method: str, params: List[Any]) -> Any:
        self._request_id += 1
        response = await self.client.post(
            self.rpc_url,
            json={"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}
        )
        response.raise_for_status()
        payload = response.json()

        if payload.get("error"):
            raise SolanaRpcError(f"{method} failed: {payload['error']}", payload["error"])
        return payload.get("result")

    async def send_transaction(self, raw_transaction: bytes) -> str:
        """Submit a signed transaction; returns its signature"""
        return await self.call("sendTransaction", [
            base64.b64encode(raw_transaction).decode("ascii"),
            {
                "encoding": "base64",
                "skipPreflight": False,
                "preflightCommitment": self.commitment,
                "maxRetries": 3,
            },
        ])

    async def confirm_transaction(
        self,
        signature: str,
        timeout: float = 45.0
    ) -> None:
        """Wait until the signature reaches the configured commitment"""
        accepted = {"confirmed", "finalized"} if self.commitment == "confirmed" else {"finalized"}
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while loop.time() < deadline:
            result = await self.call("getSignatureStatuses", [[signature], {"searchTransactionHistory": False}])
            status = (result or {}).get("value", [None])[0]

            if status:
                if status.get("err"):
                    raise TransactionFailedError(f"Transaction {signature} failed: {status['err']}", status["err"])
                if status.get("confirmationStatus") in accepted:
                    return

            await asyncio.sleep(self.poll_interval)

        raise TransactionUnconfirmedError(f"Transaction {signature} not confirmed within {timeout}s")
