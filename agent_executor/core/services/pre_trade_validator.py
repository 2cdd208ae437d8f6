import logging
from typing import Optional

from ..domain.entities.deployment_entity import DeploymentEntity
from ..domain.entities.execution_result import PreTradeCheck
from ..domain.entities.signal_entity import SignalEntity
from ..domain.entities.venue_entities import TokenRegistryEntity, VenueConstraintEntity
from ..domain.enums.trade_enums import FailureReason, Venue
from ..repositories.venue_repository import VenueRepository
from .position_sizing import InsufficientBalanceError, compute_position_size


def evaluate_pre_trade(
    signal: SignalEntity,
    usdc_balance: float,
    constraint: Optional[VenueConstraintEntity],
    token: Optional[TokenRegistryEntity],
    min_position_usdc: float,
) -> PreTradeCheck:
    """
    Pure executability decision. Checks run in order and stop at the first
    failure:

    1. venue constraint exists for (venue, token)     -> VENUE_UNAVAILABLE
    2. USDC balance is non-zero                        -> NO_COLLATERAL
    3. size from the size model fits the balance       -> INSUFFICIENT_BALANCE
       and is at least the minimum notional            -> POSITION_TOO_SMALL
    4. SPOT tokens are in the registry for the chain   -> TOKEN_NOT_REGISTERED
    """
    if constraint is None:
        return PreTradeCheck(can_execute=False, reason=FailureReason.VENUE_UNAVAILABLE)

    if usdc_balance <= 0:
        return PreTradeCheck(can_execute=False, reason=FailureReason.NO_COLLATERAL, constraint=constraint)

    try:
        size = compute_position_size(signal.size_model, usdc_balance)
    except InsufficientBalanceError:
        return PreTradeCheck(can_execute=False, reason=FailureReason.INSUFFICIENT_BALANCE, constraint=constraint)

    if size < min_position_usdc or size < constraint.min_size:
        return PreTradeCheck(
            can_execute=False,
            reason=FailureReason.POSITION_TOO_SMALL,
            size_usdc=size,
            constraint=constraint,
        )

    if signal.venue == Venue.SPOT and token is None:
        return PreTradeCheck(
            can_execute=False,
            reason=FailureReason.TOKEN_NOT_REGISTERED,
            size_usdc=size,
            constraint=constraint,
        )

    return PreTradeCheck(can_execute=True, size_usdc=size, constraint=constraint, token=token)


class PreTradeValidator:
    """
    Gathers the read-only inputs of evaluate_pre_trade() from the venue
    repository. No side effects.
    """

    def __init__(
        self,
        venue_repo: VenueRepository,
        min_position_usdc: float = 0.1,
        logger: Optional[logging.Logger] = None,
    ):
        self._venues = venue_repo
        self._min_position_usdc = min_position_usdc
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    async def validate(
        self,
        signal: SignalEntity,
        deployment: DeploymentEntity,
        usdc_balance: float,
    ) -> PreTradeCheck:
        symbol = signal.base_token_symbol
        constraint = await self._venues.get_venue_constraint(signal.venue, symbol)
        token = None
        if signal.venue == Venue.SPOT:
            token = await self._venues.get_token(deployment.chain, symbol)

        check = evaluate_pre_trade(
            signal=signal,
            usdc_balance=usdc_balance,
            constraint=constraint,
            token=token,
            min_position_usdc=self._min_position_usdc,
        )
        if not check.can_execute:
            self._logger.info(
                "pre-trade rejected signal=%s deployment=%s reason=%s",
                signal.id, deployment.id, check.reason.value,
            )
        return check
