"""Money rounding.

Every derived money value in the engine passes through ``round_cents`` at the
point it is derived, so identical facts always produce identical results.
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def round_cents(amount: float) -> float:
    """Round a dollar amount to cents, half away from zero.

    The value is first trimmed to 8 decimals so binary float noise
    (e.g. 1339.0749999999998 for 46175 * 0.029) does not flip the half-cent.
    """
    return float(Decimal(str(round(amount, 8))).quantize(CENT, rounding=ROUND_HALF_UP))


def round_rate(rate: float, places: int = 2) -> float:
    """Round a percentage for display (e.g. effective rate 12.3456 -> 12.35)."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(round(rate, 8))).quantize(quantum, rounding=ROUND_HALF_UP))
