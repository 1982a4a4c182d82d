"""
SolBridge - Order Execution Adapter
Places the exit order for a position: a market order on the owner's CEX
or a Jupiter swap signed with the owner's wallet.

OrderExecutionError means nothing was executed and the exit may be
retried. OrderOutcomeUnknownError means the order may have reached the
venue and must not be sent again.
"""
from dataclasses import dataclass
from typing import Any, Optional
import asyncio
import logging

from core.exceptions import OrderExecutionError, OrderOutcomeUnknownError, SolBridgeException
from db.repositories.base import RepositoryScope
from db.repositories.credential import CredentialRepository
from models.position import PositionSide, Venue
from services.dex.jupiter import JupiterSwapClient
from services.exchange.sessions import ExchangeSessionCache

logger = logging.getLogger(__name__)


@dataclass
class ExitFill:
    """What the venue reported for an exit order"""
    order_id: str  # CEX order id or Solana signature
    filled_quantity: float
    filled_price: Optional[float] = None  # Quote-currency fill price when the venue reports one


class OrderSubmission:
    """Marks the moment an exit order leaves our hands"""

    def __init__(self):
        self.submitted = False
        self.reference: Optional[str] = None

    def mark(self, reference: Optional[str] = None) -> None:
        self.submitted = True
        self.reference = reference


class OrderExecutionAdapter:
    """execute_exit(position) -> ExitFill"""

    def __init__(
        self,
        exchange_sessions: ExchangeSessionCache,
        swaps: JupiterSwapClient,
        credentials: RepositoryScope[CredentialRepository],
        timeout: float = 60.0
    ):
        self.exchange_sessions = exchange_sessions
        self.swaps = swaps
        self.credentials = credentials
        self.timeout = timeout

    async def execute_exit(self, position: Any) -> ExitFill:
        submission = OrderSubmission()
        try:
            return await asyncio.wait_for(self._execute(position, submission), timeout=self.timeout)
        except asyncio.TimeoutError:
            if submission.submitted:
                logger.warning(
                    f"Exit order for position {position.id} timed out after {self.timeout}s; "
                    f"venue outcome unknown"
                )
                raise OrderOutcomeUnknownError(
                    submission.reference, f"timed out after {self.timeout}s", position.id
                )
            raise OrderExecutionError(position.id, f"timed out after {self.timeout}s before submission")
        except OrderOutcomeUnknownError as e:
            raise OrderOutcomeUnknownError(e.reference, e.reason, position.id)
        except OrderExecutionError:
            raise
        except SolBridgeException as e:
            # Venue clients raise OrderOutcomeUnknownError themselves when in doubt
            raise OrderExecutionError(position.id, e.message)
        except Exception as e:
            reason = str(e) or type(e).__name__
            if submission.submitted:
                raise OrderOutcomeUnknownError(submission.reference, reason, position.id)
            raise OrderExecutionError(position.id, reason)

    async def _execute(self, position: Any, submission: OrderSubmission) -> ExitFill:
        if position.venue == Venue.DEX:
            return await self._execute_dex(position, submission)
        return await self._execute_cex(position, submission)

    async def _execute_cex(self, position: Any, submission: OrderSubmission) -> ExitFill:
        exchange = await self.exchange_sessions.get(position.owner_id)

        submission.mark()
        result = await exchange.close_position(position.symbol, position.amount, position.side)

        if result.outcome_unknown:
            raise OrderOutcomeUnknownError(result.order_id, result.error or "no response from exchange")
        if not result.success:
            raise OrderExecutionError(position.id, result.error or f"order {result.status}")
        filled = result.filled_quantity
        if not filled and result.status != "closed":
            # Accepted but not filled yet; it can still fill later
            raise OrderOutcomeUnknownError(result.order_id, f"order {result.status} with nothing filled")
        if filled == 0:
            raise OrderExecutionError(position.id, f"order {result.order_id} closed with nothing filled")
        if filled is None:
            # Closed market order without a reported quantity
            filled = position.amount
        elif filled < position.amount:
            logger.warning(
                f"Partial exit fill for position {position.id}: "
                f"{filled} of {position.amount} {position.symbol} (order {result.order_id})"
            )

        logger.info(
            f"CEX exit filled for position {position.id}: {result.side.value} "
            f"{filled} {position.symbol} @ {result.average_price} (order {result.order_id})"
        )
        return ExitFill(
            order_id=result.order_id or "",
            filled_quantity=filled,
            filled_price=result.average_price
        )

    async def _execute_dex(self, position: Any, submission: OrderSubmission) -> ExitFill:
        async with self.credentials() as repo:
            wallet = await repo.get_active_wallet(position.owner_id)

        if not wallet:
            raise OrderExecutionError(position.id, "user wallet not found")

        swap_args = (
            wallet.private_key,
            position.token_address,
            position.amount,
            position.token_decimals,
            position.slippage_percent,
        )
        if position.side == PositionSide.LONG:
            swap = await self.swaps.sell_tokens(*swap_args, on_submit=submission.mark)
        else:
            swap = await self.swaps.buy_tokens_exact(*swap_args, on_submit=submission.mark)

        logger.info(f"DEX exit executed for position {position.id}: {swap.signature}")
        # Swap amounts are in SOL, not in the USD terms of entry_price, so no fill price
        return ExitFill(order_id=swap.signature, filled_quantity=position.amount)
