"""Amount arithmetic: decimal input to base units and slippage bounds.

Everything that reaches a contract call is an integer in base units. Decimal
is only used to parse what a user typed; all bounds are computed with integer
floor division so a minimum output can never be rounded up past what the pool
would actually deliver.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, Inexact, InvalidOperation, localcontext

from usdc_hub.domain.exceptions import (
    InvalidAmountError,
    InvalidBasisPointsError,
    InvalidSlippageError,
)

BPS_DENOMINATOR = 10_000

# Enough digits for any uint256
_PRECISION = 80


@dataclass(frozen=True)
class AmountBounds:
    """Base-unit amounts for one action.

    Attributes:
        base_units: The input amount sent to the contract.
        expected_output_base_units: Output at the current quote, before slippage.
        min_output_base_units: Slippage-bounded minimum the contract must deliver.
        gas_reserve_base_units: Portion of the input allowed to be swapped for
            destination gas (withdrawals only, else 0).
    """

    base_units: int
    expected_output_base_units: int
    min_output_base_units: int
    gas_reserve_base_units: int = 0

    def __post_init__(self) -> None:
        if min(
            self.base_units,
            self.expected_output_base_units,
            self.min_output_base_units,
            self.gas_reserve_base_units,
        ) < 0:
            raise ValueError("AmountBounds values must be non-negative")
        if self.min_output_base_units > self.expected_output_base_units:
            raise ValueError("min_output_base_units exceeds expected output")

    def to_dict(self) -> dict:
        return {
            "base_units": self.base_units,
            "expected_output_base_units": self.expected_output_base_units,
            "min_output_base_units": self.min_output_base_units,
            "gas_reserve_base_units": self.gas_reserve_base_units,
        }


def parse_decimal(value: str | int | Decimal) -> Decimal:
    """Parse user input into a positive, finite Decimal.

    Floats are rejected: they cannot represent most decimal amounts exactly.

    Raises:
        InvalidAmountError: If the value is not a positive finite decimal.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmountError(f"{value!r} must be given as a decimal string")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise InvalidAmountError("amount is empty")
    try:
        parsed = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as err:
        raise InvalidAmountError(f"{value!r} is not a decimal number") from err
    if not parsed.is_finite():
        raise InvalidAmountError(f"{value!r} is not finite")
    if parsed <= 0:
        raise InvalidAmountError(f"{value!r} must be greater than zero")
    return parsed


def to_base_units(decimal_amount: str | int | Decimal, decimals: int) -> int:
    """Convert a user-facing decimal amount to integer base units.

    ``"100"`` with 6 decimals becomes ``100_000_000``.

    Raises:
        InvalidAmountError: If the amount is not positive and finite, or has
            more fractional digits than ``decimals`` allows.
    """
    if decimals < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")
    parsed = parse_decimal(decimal_amount)
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        ctx.traps[Inexact] = True
        try:
            scaled = parsed.scaleb(decimals)
        except Inexact as err:
            raise InvalidAmountError(
                f"{decimal_amount!r} is not exactly representable with {decimals} decimals"
            ) from err
        if scaled != scaled.to_integral_value():
            raise InvalidAmountError(
                f"{decimal_amount!r} has more than {decimals} decimal places"
            )
        return int(scaled)


def from_base_units(base_units: int, decimals: int) -> Decimal:
    """Convert integer base units back to an exact Decimal amount."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return Decimal(base_units).scaleb(-decimals)


def _check_bps(value: int) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value < BPS_DENOMINATOR


def _check_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
        raise InvalidAmountError(f"{amount!r} must be a non-negative integer", field="base_units")


def apply_slippage(amount: int, slippage_bps: int) -> int:
    """Return ``floor(amount * (10000 - slippage_bps) / 10000)``.

    Raises:
        InvalidSlippageError: If slippage_bps is outside [0, 10000).
    """
    if not _check_bps(slippage_bps):
        raise InvalidSlippageError(slippage_bps)
    _check_amount(amount)
    return amount * (BPS_DENOMINATOR - slippage_bps) // BPS_DENOMINATOR


def proportional_allocation(total: int, ratio_bps: int) -> int:
    """Return ``floor(total * ratio_bps / 10000)``, used for gas-reserve carve-outs.

    Raises:
        InvalidBasisPointsError: If ratio_bps is outside [0, 10000).
    """
    if not _check_bps(ratio_bps):
        raise InvalidBasisPointsError(ratio_bps)
    _check_amount(total)
    return total * ratio_bps // BPS_DENOMINATOR


def rescale(amount: int, from_decimals: int, to_decimals: int) -> int:
    """Re-express a 1:1 pegged amount at another precision, flooring."""
    _check_amount(amount)
    if to_decimals >= from_decimals:
        return amount * 10 ** (to_decimals - from_decimals)
    return amount // 10 ** (from_decimals - to_decimals)


def compute_bounds(
    base_units: int,
    expected_output_base_units: int,
    slippage_bps: int,
    gas_reserve_base_units: int = 0,
) -> AmountBounds:
    """Build AmountBounds from an input amount and a fresh expected output."""
    return AmountBounds(
        base_units=base_units,
        expected_output_base_units=expected_output_base_units,
        min_output_base_units=apply_slippage(expected_output_base_units, slippage_bps),
        gas_reserve_base_units=gas_reserve_base_units,
    )


def format_amount(base_units: int, decimals: int, places: int = 2) -> str:
    """Format base units for display with thousands separators, e.g. ``"1,234.50"``."""
    value = from_base_units(base_units, decimals)
    return f"{value:,.{places}f}"
