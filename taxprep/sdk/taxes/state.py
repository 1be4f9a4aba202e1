"""State income tax.

Simplified model: one schedule per state (flat rate or brackets) applied to
federal taxable income. States without a broad income tax owe nothing.
Filing requirements compare income earned in a state with that state's
filing threshold.
"""

from typing import Iterable, Mapping, Optional

from ..schemas import InputError
from .brackets import compute_bracket_tax
from .money import round_cents, round_rate
from .schemas import StateRules, StateTaxInfo


def _lookup(state_code: str, rules: StateRules) -> tuple[str, StateTaxInfo]:
    code = (state_code or "").strip().upper()
    info = rules.states.get(code)
    if info is None:
        raise InputError(f"Unknown state code '{state_code}'")
    return code, info


def get_state_info(state_code: str, rules: StateRules) -> dict:
    """Describe a state's schedule.

    Raises:
        InputError: If the state code is unknown
    """
    code, info = _lookup(state_code, rules)
    return {
        "code": code,
        "name": info.name,
        "has_income_tax": info.has_income_tax,
        "is_flat": info.is_flat,
        "flat_rate": info.flat_rate,
        "brackets": [b.model_dump() for b in info.brackets] if info.brackets else None,
        "note": info.note,
        "form": info.form,
        "filing_threshold": get_state_filing_threshold(code, rules),
    }


def get_state_filing_threshold(state_code: str, rules: StateRules) -> float:
    """Income that requires a return in the state; 0 where there is no income tax.

    Raises:
        InputError: If the state code is unknown
    """
    _, info = _lookup(state_code, rules)
    if not info.has_income_tax:
        return 0.0
    if info.filing_threshold is not None:
        return info.filing_threshold
    return rules.default_filing_threshold


def get_required_state_returns(income_by_state: Mapping[str, float], rules: StateRules) -> list[dict]:
    """States where the income earned there requires filing a return.

    Args:
        income_by_state: Income earned in each state, keyed by state code
        rules: State tables for the year

    Returns:
        One dict per required return (state_code, state_name, income,
        filing_threshold, form), in the order given

    Raises:
        InputError: If a state code is unknown
    """
    required = []
    for state_code, income in income_by_state.items():
        code, info = _lookup(state_code, rules)
        if not info.has_income_tax:
            continue
        threshold = get_state_filing_threshold(code, rules)
        if income >= threshold:
            required.append({
                "state_code": code,
                "state_name": info.name,
                "income": income,
                "filing_threshold": threshold,
                "form": info.form,
            })
    return required


def calculate_state_tax(state_code: str, taxable_income: float, rules: StateRules) -> dict:
    """State tax on taxable income.

    Args:
        state_code: Two-letter state code (case-insensitive)
        taxable_income: Non-negative taxable income
        rules: State tables for the year

    Returns:
        Dict with state_code, state_name, has_income_tax, is_flat,
        taxable_income, tax_liability, effective_rate (percent)

    Raises:
        InputError: If the state code is unknown or income is negative
    """
    code, info = _lookup(state_code, rules)
    if taxable_income < 0:
        raise InputError(f"Taxable income cannot be negative: {taxable_income}")

    if not info.has_income_tax:
        return {
            "state_code": code,
            "state_name": info.name,
            "has_income_tax": False,
            "is_flat": False,
            "taxable_income": taxable_income,
            "tax_liability": 0.0,
            "effective_rate": 0.0,
            "message": f"{info.name} has no state income tax",
        }

    if info.is_flat:
        liability = round_cents(taxable_income * info.flat_rate)
    else:
        liability = compute_bracket_tax(taxable_income, info.brackets)

    effective_rate = round_rate(liability / taxable_income * 100) if taxable_income > 0 else 0.0
    return {
        "state_code": code,
        "state_name": info.name,
        "has_income_tax": True,
        "is_flat": info.is_flat,
        "taxable_income": taxable_income,
        "tax_liability": liability,
        "effective_rate": effective_rate,
        "note": info.note,
    }


def list_states(rules: StateRules) -> list[dict]:
    """All states sorted by name."""
    states = [
        {"code": code, "name": info.name, "has_income_tax": info.has_income_tax}
        for code, info in rules.states.items()
    ]
    return sorted(states, key=lambda s: s["name"])


def get_no_income_tax_states(rules: StateRules) -> list[dict]:
    return [s for s in list_states(rules) if not s["has_income_tax"]]


def compare_state_taxes(
    taxable_income: float,
    rules: StateRules,
    state_codes: Optional[Iterable[str]] = None,
) -> list[dict]:
    """Tax on the same income across states, lowest liability first."""
    codes = list(state_codes) if state_codes else list(rules.states)
    results = [calculate_state_tax(code, taxable_income, rules) for code in codes]
    return sorted(
        (
            {
                "state_code": r["state_code"],
                "state_name": r["state_name"],
                "tax_liability": r["tax_liability"],
                "effective_rate": r["effective_rate"],
                "has_income_tax": r["has_income_tax"],
            }
            for r in results
        ),
        key=lambda r: (r["tax_liability"], r["state_code"]),
    )
