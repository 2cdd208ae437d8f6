from decimal import Decimal

from ..domain.entities.signal_entity import BalancePercentageSize, FixedUsdcSize, SizeModel


class InsufficientBalanceError(Exception):
    def __init__(self, requested: float, available: float):
        super().__init__(f"requested {requested} USDC but only {available} available")
        self.requested = requested
        self.available = available


def compute_position_size(size_model: SizeModel, usdc_balance: float) -> float:
    """
    Requested notional in USDC for a size model against the current balance.

    balance-percentage: balance * value / 100
    fixed-usdc:         value, rejected (InsufficientBalanceError) when above balance
    """
    if isinstance(size_model, BalancePercentageSize):
        return usdc_balance * size_model.value / 100.0
    if isinstance(size_model, FixedUsdcSize):
        if size_model.value > usdc_balance:
            raise InsufficientBalanceError(size_model.value, usdc_balance)
        return float(size_model.value)
    raise TypeError(f"unsupported size model: {type(size_model).__name__}")


def to_raw_amount(amount: float, decimals: int) -> int:
    """Human amount -> integer base units, rounded down."""
    return int(Decimal(str(amount)) * (Decimal(10) ** decimals))


def from_raw_amount(raw: int, decimals: int) -> float:
    return int(raw) / float(10 ** decimals)
