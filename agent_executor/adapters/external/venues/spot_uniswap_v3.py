import logging
from typing import Any, Dict, List, Optional

from web3 import AsyncWeb3, Web3

from ....core.domain.entities.execution_result import ExecutionSummary
from ....core.domain.entities.signal_entity import SignalEntity
from ....core.domain.enums.trade_enums import Venue
from ....core.repositories.venue_repository import VenueRepository
from ..chain.abis import ABI_QUOTER_V2
from ..chain.exceptions import QuoteUnavailableError
from ..chain.module_gateway import TradingModuleGateway
from ..chain.utils import checksum, encode_call
from .base import SwapQuote, VenueAdapter

EXACT_INPUT_SINGLE_SIG = "exactInputSingle((address,address,uint24,address,uint256,uint256,uint256,uint160))"
EXACT_INPUT_SINGLE_TYPES = ["(address,address,uint24,address,uint256,uint256,uint256,uint160)"]


class SpotUniswapV3Adapter(VenueAdapter):
    """Spot swaps through Uniswap v3 SwapRouter, quoted with QuoterV2."""

    venue = Venue.SPOT

    def __init__(
        self,
        w3: AsyncWeb3,
        gateway: TradingModuleGateway,
        venue_repo: VenueRepository,
        router: str,
        quoter: str,
        usdc_address: str,
        usdc_decimals: int = 6,
        fee_tiers: Optional[List[int]] = None,
        chain: str = "arbitrum",
        logger: Optional[logging.Logger] = None,
    ):
        self.w3 = w3
        self._gateway = gateway
        self._venues = venue_repo
        self._router = checksum(router)
        self._quoter = checksum(quoter)
        self._usdc = checksum(usdc_address)
        self._usdc_decimals = usdc_decimals
        self._fee_tiers = fee_tiers or [3000, 500, 10000]
        self._chain = chain
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    def supports_execution(self) -> bool:
        return True

    def router_address(self) -> Optional[str]:
        return self._router

    def quoter(self):
        return self.w3.eth.contract(address=self._quoter, abi=ABI_QUOTER_V2)

    # ---------- read ----------

    async def quote(self, token_in: str, token_out: str, amount_in: int) -> SwapQuote:
        """
        Tries each fee tier in order; first non-zero quote wins.
        """
        q = self.quoter()
        for fee in self._fee_tiers:
            params = (checksum(token_in), checksum(token_out), int(amount_in), int(fee), 0)
            try:
                out = await q.functions.quoteExactInputSingle(params).call()
            except Exception as exc:
                self._logger.debug("no quote at fee=%s for %s->%s: %s", fee, token_in, token_out, exc)
                continue
            amount_out = int(out[0])
            if amount_out > 0:
                return SwapQuote(amount_out=amount_out, fee=int(fee))
        raise QuoteUnavailableError(token_in, token_out, amount_in)

    async def get_price(self, token_symbol: str) -> Optional[float]:
        """
        USD price of one whole token, quoted against USDC.
        """
        symbol = token_symbol.upper()
        if symbol == "USDC":
            return 1.0
        token = await self._venues.get_token(self._chain, symbol)
        if token is None:
            self._logger.warning("price lookup: %s not in token registry", symbol)
            return None
        try:
            q = await self.quote(token.token_address, self._usdc, 10 ** token.decimals)
        except QuoteUnavailableError:
            self._logger.warning("price lookup: no quote for %s", symbol)
            return None
        except Exception as exc:
            self._logger.warning("price lookup failed for %s: %s", symbol, exc)
            return None
        return q.amount_out / float(10 ** self._usdc_decimals)

    async def get_execution_summary(
        self,
        signal: SignalEntity,
        safe_address: str,
        size_usdc: float,
    ) -> ExecutionSummary:
        usdc_raw = await self._gateway.token_balance(self._usdc, safe_address)
        usdc_balance = usdc_raw / float(10 ** self._usdc_decimals)

        token_balance = 0.0
        token = await self._venues.get_token(self._chain, signal.base_token_symbol)
        if token is not None:
            raw = await self._gateway.token_balance(token.token_address, safe_address)
            token_balance = raw / float(10 ** token.decimals)

        if usdc_balance < size_usdc:
            return ExecutionSummary(
                can_execute=False,
                reason=f"insufficient USDC: have {usdc_balance}, need {size_usdc}",
                usdc_balance=usdc_balance,
                token_balance=token_balance,
            )
        return ExecutionSummary(can_execute=True, usdc_balance=usdc_balance, token_balance=token_balance)

    # ---------- build ----------

    def build_approval(self, token: str, amount: int) -> Dict[str, Any]:
        data = encode_call("approve(address,uint256)", ["address", "uint256"], [self._router, int(amount)])
        return {"to": checksum(token), "value": 0, "data": Web3.to_hex(data)}

    def build_swap(
        self,
        token_in: str,
        token_out: str,
        amount_in: int,
        min_amount_out: int,
        deadline: int,
        recipient: str,
        fee: Optional[int] = None,
    ) -> Dict[str, Any]:
        params = (
            checksum(token_in),
            checksum(token_out),
            int(fee or self._fee_tiers[0]),
            checksum(recipient),
            int(deadline),
            int(amount_in),
            int(min_amount_out),
            0,
        )
        data = encode_call(EXACT_INPUT_SINGLE_SIG, EXACT_INPUT_SINGLE_TYPES, [params])
        return {"to": self._router, "value": 0, "data": Web3.to_hex(data)}

    def build_close_swap(
        self,
        token_in: str,
        token_out: str,
        amount_in: int,
        min_amount_out: int,
        deadline: int,
        recipient: str,
        fee: Optional[int] = None,
    ) -> Dict[str, Any]:
        return self.build_swap(token_in, token_out, amount_in, min_amount_out, deadline, recipient, fee)
