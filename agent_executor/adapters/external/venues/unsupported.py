import logging
from typing import Any, Dict, Optional

from ....core.domain.entities.execution_result import ExecutionSummary
from ....core.domain.entities.signal_entity import SignalEntity
from ....core.domain.enums.trade_enums import Venue
from ..chain.exceptions import QuoteUnavailableError
from .base import SwapQuote, VenueAdapter


class UnsupportedVenueAdapter(VenueAdapter):
    """
    Placeholder for venues without an execution path (GMX, Hyperliquid).
    Answers "not supported" and never prices anything.
    """

    def __init__(self, venue: Venue, logger: Optional[logging.Logger] = None):
        self.venue = venue
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    def supports_execution(self) -> bool:
        return False

    def router_address(self) -> Optional[str]:
        return None

    async def quote(self, token_in: str, token_out: str, amount_in: int) -> SwapQuote:
        raise QuoteUnavailableError(token_in, token_out, amount_in)

    async def get_price(self, token_symbol: str) -> Optional[float]:
        self._logger.debug("no price reader for %s on %s", token_symbol, self.venue.value)
        return None

    async def get_execution_summary(
        self,
        signal: SignalEntity,
        safe_address: str,
        size_usdc: float,
    ) -> ExecutionSummary:
        return ExecutionSummary(can_execute=False, reason=f"{self.venue.value} not supported")

    def build_approval(self, token: str, amount: int) -> Dict[str, Any]:
        raise NotImplementedError(f"{self.venue.value} not supported")

    def build_swap(self, token_in, token_out, amount_in, min_amount_out, deadline, recipient, fee=None):
        raise NotImplementedError(f"{self.venue.value} not supported")

    def build_close_swap(self, token_in, token_out, amount_in, min_amount_out, deadline, recipient, fee=None):
        raise NotImplementedError(f"{self.venue.value} not supported")
