from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ....core.domain.entities.execution_result import ExecutionSummary
from ....core.domain.entities.signal_entity import SignalEntity
from ....core.domain.enums.trade_enums import Venue


@dataclass
class SwapQuote:
    amount_out: int
    fee: int


class VenueAdapter(ABC):
    """
    Abstract adapter that turns a trade intent into venue-specific swap
    parameters. One instance per venue, shared by all deployments.
    """

    venue: Venue

    # ---------- capabilities ----------
    @abstractmethod
    def supports_execution(self) -> bool: ...

    @abstractmethod
    def router_address(self) -> Optional[str]: ...

    # ---------- read ----------
    @abstractmethod
    async def quote(self, token_in: str, token_out: str, amount_in: int) -> SwapQuote:
        """Expected output for amount_in. Raises QuoteUnavailableError."""
        ...

    @abstractmethod
    async def get_price(self, token_symbol: str) -> Optional[float]:
        """USD price of one token, or None when unavailable."""
        ...

    @abstractmethod
    async def get_execution_summary(
        self,
        signal: SignalEntity,
        safe_address: str,
        size_usdc: float,
    ) -> ExecutionSummary:
        """Read-only affordability check before committing gas."""
        ...

    # ---------- build ----------
    @abstractmethod
    def build_approval(self, token: str, amount: int) -> Dict[str, Any]: ...

    @abstractmethod
    def build_swap(
        self,
        token_in: str,
        token_out: str,
        amount_in: int,
        min_amount_out: int,
        deadline: int,
        recipient: str,
        fee: Optional[int] = None,
    ) -> Dict[str, Any]: ...

    @abstractmethod
    def build_close_swap(
        self,
        token_in: str,
        token_out: str,
        amount_in: int,
        min_amount_out: int,
        deadline: int,
        recipient: str,
        fee: Optional[int] = None,
    ) -> Dict[str, Any]: ...

    # ---------- helpers ----------
    @staticmethod
    def compute_min_amount_out(quoted_out: int, slippage_bps: int) -> int:
        """
        Minimum acceptable output: quote * (1 - slippage_bps / 10000), rounded down.
        """
        bps = max(0, min(int(slippage_bps), 10_000))
        return int(quoted_out) * (10_000 - bps) // 10_000
