"""
privault/core/conversion.py

Share/asset conversion with a virtual-liquidity offset.

The pool is priced as if it already held 10**offset virtual shares and
one virtual asset on top of the real balances:

    shares = round(assets * (total_supply + 10**offset) / (total_assets + 1))
    assets = round(shares * (total_assets + 1) / (total_supply + 10**offset))

Rounding is fixed per operation and always favors the pool:

    deposit   assets → shares   DOWN
    issue     shares → assets   UP
    withdraw  assets → shares   UP
    redeem    shares → assets   DOWN

Callers never pick the direction; they pick the operation.
"""

import logging
from typing import Dict

from privault.core.exceptions import ArithmeticOverflowError, ValidationError
from privault.core.models import (
    MAX_OFFSET,
    U128_MAX,
    OperationKind,
    OverflowMode,
    PoolState,
    Rounding,
)

logger = logging.getLogger(__name__)


# Operation → rounding. Never caller-selectable.
ROUNDING_POLICY: Dict[OperationKind, Rounding] = {
    OperationKind.DEPOSIT:  Rounding.DOWN,
    OperationKind.ISSUE:    Rounding.UP,
    OperationKind.WITHDRAW: Rounding.UP,
    OperationKind.REDEEM:   Rounding.DOWN,
}


def mul_div(
    x:        int,
    y:        int,
    z:        int,
    rounding: Rounding = Rounding.DOWN,
    mode:     OverflowMode = OverflowMode.WIDE,
) -> int:
    """
    Compute x * y / z rounded in the given direction.

    Args:
        x, y:     Non-negative factors.
        z:        Positive divisor.
        rounding: Rounding.DOWN (floor) or Rounding.UP (ceil).
        mode:     OverflowMode, see models.py.

    Raises:
        ArithmeticOverflowError: per mode, when the intermediate product or
                                 the result leaves uint128.
        ValidationError:         on a negative operand or zero divisor.
    """
    if x < 0 or y < 0:
        raise ValidationError("mul_div operands must be non-negative", {"x": x, "y": y})
    if z <= 0:
        raise ValidationError("mul_div divisor must be positive", {"z": z})

    product = x * y
    if product > U128_MAX:
        if mode is OverflowMode.CHECKED:
            raise ArithmeticOverflowError(
                "Intermediate product exceeds uint128",
                {"x": x, "y": y},
            )
        if mode is OverflowMode.WRAPPING:
            product &= U128_MAX

    quotient, remainder = divmod(product, z)
    if rounding is Rounding.UP and remainder:
        quotient += 1

    if quotient > U128_MAX:
        raise ArithmeticOverflowError(
            "Conversion result exceeds uint128",
            {"x": x, "y": y, "z": z},
        )
    return quotient


class ConversionEngine:
    """
    Pure share/asset conversion.

    Holds only the overflow mode; every call takes the pool numbers it
    needs, so one engine serves any number of pools.
    """

    def __init__(self, overflow_mode: OverflowMode = OverflowMode.WIDE):
        self.overflow_mode = overflow_mode

    # ── Raw conversions ───────────────────────────────────────

    def shares_for(
        self,
        assets:       int,
        total_assets: int,
        total_supply: int,
        offset:       int,
        round_up:     bool,
    ) -> int:
        """Shares worth ``assets`` at the current rate."""
        _check_offset(offset)
        if assets == 0:
            return 0
        return mul_div(
            assets,
            total_supply + 10 ** offset,
            total_assets + 1,
            Rounding.UP if round_up else Rounding.DOWN,
            self.overflow_mode,
        )

    def assets_for(
        self,
        shares:       int,
        total_assets: int,
        total_supply: int,
        offset:       int,
        round_up:     bool,
    ) -> int:
        """Assets worth ``shares`` at the current rate."""
        _check_offset(offset)
        if shares == 0:
            return 0
        return mul_div(
            shares,
            total_assets + 1,
            total_supply + 10 ** offset,
            Rounding.UP if round_up else Rounding.DOWN,
            self.overflow_mode,
        )

    # ── Operation-level conversions ───────────────────────────

    def convert(self, kind: OperationKind, amount: int, pool: PoolState) -> int:
        """
        Counter-amount for ``kind`` with its mandated rounding.

            DEPOSIT  amount = assets in   → shares out
            ISSUE    amount = shares out  → assets in
            WITHDRAW amount = assets out  → shares in
            REDEEM   amount = shares in   → assets out
        """
        round_up = ROUNDING_POLICY[kind] is Rounding.UP
        if kind in (OperationKind.DEPOSIT, OperationKind.WITHDRAW):
            result = self.shares_for(
                amount, pool.total_assets, pool.total_supply, pool.offset, round_up
            )
        else:
            result = self.assets_for(
                amount, pool.total_assets, pool.total_supply, pool.offset, round_up
            )
        logger.debug(
            "conversion %s amount=%d -> %d (assets=%d supply=%d offset=%d)",
            kind.value, amount, result,
            pool.total_assets, pool.total_supply, pool.offset,
        )
        return result


def _check_offset(offset: int) -> None:
    if not isinstance(offset, int) or not 0 <= offset <= MAX_OFFSET:
        raise ValidationError(
            f"offset must be an int in 0..{MAX_OFFSET}", {"offset": offset}
        )
