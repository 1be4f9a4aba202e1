"""Progressive bracket tax, standard deduction and deduction selection."""

from typing import Iterable, Literal, Union

from ..schemas import FILING_STATUSES, InputError
from .money import round_cents
from .schemas import TaxBracket, TaxRules, bracket_problems

BracketLike = Union[TaxBracket, dict]


def _coerce_brackets(brackets: Iterable[BracketLike]) -> list[TaxBracket]:
    coerced = []
    for b in brackets:
        if isinstance(b, TaxBracket):
            coerced.append(b)
        elif isinstance(b, dict):
            try:
                coerced.append(TaxBracket(**b))
            except (TypeError, ValueError) as e:
                raise InputError(f"Malformed tax bracket {b}: {e}") from e
        else:
            raise InputError(f"Malformed tax bracket {b!r}")

    problems = bracket_problems(coerced)
    if problems:
        raise InputError("Malformed tax brackets: " + "; ".join(problems))
    return coerced


def _walk(taxable_income: float, brackets: list[TaxBracket]) -> list[dict]:
    """Split income across brackets. Unrounded; callers round once."""
    rows = []
    remaining = taxable_income
    for bracket in brackets:
        if remaining <= 0:
            break
        width = remaining if bracket.max is None else bracket.max - bracket.min
        income_in_bracket = min(remaining, width)
        rows.append({
            "min": bracket.min,
            "max": bracket.max,
            "rate": bracket.rate,
            "income": income_in_bracket,
            "tax": income_in_bracket * bracket.rate,
        })
        remaining -= income_in_bracket
    return rows


def compute_bracket_tax(taxable_income: float, brackets: Iterable[BracketLike]) -> float:
    """Tax on taxable income under a progressive bracket schedule.

    Each bracket taxes min(remaining income, bracket width) at its rate,
    walking upward until no income remains.

    Args:
        taxable_income: Non-negative taxable income
        brackets: Contiguous ascending brackets, last one unbounded

    Returns:
        Tax rounded to cents

    Raises:
        InputError: If income is negative or the brackets are malformed
    """
    if taxable_income < 0:
        raise InputError(f"Taxable income cannot be negative: {taxable_income}")
    rows = _walk(taxable_income, _coerce_brackets(brackets))
    return round_cents(sum(row["tax"] for row in rows))


def bracket_breakdown(taxable_income: float, brackets: Iterable[BracketLike]) -> list[dict]:
    """Per-bracket income and tax, for display.

    Returns:
        List of dicts with min, max, rate, income, tax (rounded to cents)
    """
    if taxable_income < 0:
        raise InputError(f"Taxable income cannot be negative: {taxable_income}")
    rows = _walk(taxable_income, _coerce_brackets(brackets))
    for row in rows:
        row["income"] = round_cents(row["income"])
        row["tax"] = round_cents(row["tax"])
    return rows


def marginal_rate(taxable_income: float, brackets: Iterable[BracketLike]) -> float:
    """Rate applied to the next dollar of taxable income."""
    if taxable_income < 0:
        raise InputError(f"Taxable income cannot be negative: {taxable_income}")
    for bracket in _coerce_brackets(brackets):
        if bracket.max is None or taxable_income < bracket.max:
            return bracket.rate
    raise InputError("Brackets do not cover taxable income")  # unreachable for validated brackets


def compute_standard_deduction(filing_status: str, rules: TaxRules) -> float:
    """Standard deduction for the filing status from the year's table."""
    if filing_status not in FILING_STATUSES:
        raise InputError(
            f"Unknown filing status '{filing_status}'. Expected one of: {', '.join(FILING_STATUSES)}"
        )
    return rules.filing_statuses.for_status(filing_status).standard_deduction


def select_deduction(standard: float, itemized: float) -> tuple[float, Literal["standard", "itemized"]]:
    """Pick the larger deduction. Ties go to the standard deduction."""
    if itemized > standard:
        return itemized, "itemized"
    return standard, "standard"
