"""Federal and state return calculation.

Orchestrates the calculators in sdk/taxes into a CalculationResult:

    total income  = wages + other income + Schedule C net profit
    AGI           = total income - adjustments (incl. half of SE tax)
    taxable       = max(0, AGI - max(standard, itemized))
    total tax     = bracket tax + SE tax + AMT + NIIT - credits (floored at 0)
    refund/owed   = withholding vs total tax
"""

import logging
from typing import Optional

from .schemas import CalculationResult, InputError, TaxReturnFacts
from .taxes.amt import calculate_amt, calculate_niit
from .taxes.brackets import compute_bracket_tax, compute_standard_deduction, select_deduction
from .taxes.depreciation import calculate_total_depreciation
from .taxes.money import round_cents, round_rate
from .taxes.rules import load_state_rules, load_tax_rules
from .taxes.schemas import LimitRules, StateRules, TaxRules
from .taxes.self_employment import calculate_schedule_c
from .taxes.state import calculate_state_tax

logger = logging.getLogger(__name__)

# Form 1040 income lines, keyed by the document type reporting the income
INCOME_LINE_BY_SOURCE = {
    "W-2": "other",
    "1099-INT": "interest",
    "1099-DIV": "dividends",
    "capital_gain": "capital_gains",
    "1099-R": "retirement",
    "1099-G": "unemployment",
    "rental": "rental",
    "1099-NEC": "business",
    "1099-MISC": "business",
    "other": "other",
}

INCOME_LINES = (
    "wages",
    "interest",
    "dividends",
    "capital_gains",
    "retirement",
    "unemployment",
    "rental",
    "business",
    "other",
)

SALT_CATEGORIES = ("state_local_tax", "property_tax")


def schedule_c_for(facts: TaxReturnFacts, rules: TaxRules) -> Optional[dict]:
    """Schedule C for the return, or None without self-employment facts."""
    business = facts.self_employment
    if business is None:
        return None
    depreciation = None
    if business.assets:
        depreciation = calculate_total_depreciation(business.assets, facts.tax_year, rules.depreciation)
    return calculate_schedule_c(business, rules.self_employment, depreciation)


def income_components(facts: TaxReturnFacts, schedule_c: Optional[dict] = None) -> dict[str, float]:
    """Total income split into Form 1040 income lines."""
    lines = {line: 0.0 for line in INCOME_LINES}
    for item in facts.income_items:
        lines["wages"] += item.wages
        lines[INCOME_LINE_BY_SOURCE[item.source_type]] += item.other_income
    if schedule_c is not None:
        lines["business"] += schedule_c["net_profit_loss"]
    return {line: round_cents(amount) for line, amount in lines.items()}


def salt_cap(filing_status: str, agi: float, limits: LimitRules) -> float:
    """SALT deduction cap, phased down above the MAGI threshold where the year has one."""
    mfs = filing_status == "married_filing_separately"
    cap = limits.salt_cap_mfs if mfs else limits.salt_cap
    threshold = limits.salt_phase_out_threshold_mfs if mfs else limits.salt_phase_out_threshold
    if threshold is None or agi <= threshold:
        return cap
    floor = limits.salt_floor_mfs if mfs else limits.salt_floor
    return round_cents(max(floor, cap - (agi - threshold) * limits.salt_phase_out_rate))


def capped_itemized_deductions(facts: TaxReturnFacts, agi: float, rules: TaxRules) -> float:
    """Itemized total after the SALT cap, charitable cash AGI limit and medical floor."""
    limits = rules.limits
    salt = facts.deduction_total(*SALT_CATEGORIES, itemized=True)
    charitable_cash = facts.deduction_total("charitable_cash", itemized=True)
    medical = facts.deduction_total("medical", itemized=True)
    rest = sum(
        d.amount for d in facts.itemized_items
        if d.category not in SALT_CATEGORIES + ("charitable_cash", "medical")
    )

    allowed_salt = min(salt, salt_cap(facts.filing_status, agi, limits))
    allowed_charitable = min(charitable_cash, agi * limits.charitable_cash_agi_fraction)
    allowed_medical = max(0.0, medical - agi * limits.medical_agi_floor)
    return round_cents(allowed_salt + allowed_charitable + allowed_medical + rest)


def federal_worksheet(facts: TaxReturnFacts, rules: Optional[TaxRules] = None, enforce_caps: bool = False) -> dict:
    """Every intermediate figure of the federal computation.

    Args:
        facts: Tax return facts
        rules: Tax rules (defaults to the facts' tax year)
        enforce_caps: Apply SALT, charitable and medical limits to the itemized total

    Returns:
        Dict of intermediate values plus schedule_c, amt and niit detail
    """
    if rules is None:
        rules = load_tax_rules(facts.tax_year)

    schedule_c = schedule_c_for(facts, rules)
    income = income_components(facts, schedule_c)
    gross_income = round_cents(sum(income.values()))

    se_tax = schedule_c["self_employment_tax"] if schedule_c else None
    se_deduction = se_tax["deductible_portion"] if se_tax else 0.0
    above_the_line = round_cents(sum(d.amount for d in facts.adjustment_items))
    adjustments = round_cents(above_the_line + se_deduction)
    agi = round_cents(gross_income - adjustments)

    standard = compute_standard_deduction(facts.filing_status, rules)
    if enforce_caps:
        itemized = capped_itemized_deductions(facts, agi, rules)
    else:
        itemized = round_cents(sum(d.amount for d in facts.itemized_items))
    deduction_amount, deduction_used = select_deduction(standard, itemized)
    taxable_income = round_cents(max(0.0, agi - deduction_amount))

    tax_liability = compute_bracket_tax(taxable_income, rules.brackets_for(facts.filing_status))
    amt = calculate_amt(
        taxable_income, tax_liability, facts.filing_status, facts.amt_preference_items, rules.amt
    )
    niit = calculate_niit(agi, facts.investment_income, facts.filing_status, rules.niit)
    self_employment_tax = se_tax["total_se_tax"] if se_tax else 0.0

    nonrefundable = sum(c.amount for c in facts.credit_claims if not c.is_refundable)
    refundable = sum(c.amount for c in facts.credit_claims if c.is_refundable)
    nonrefundable_allowed = min(nonrefundable, tax_liability)
    total_credits = round_cents(nonrefundable_allowed + refundable)

    total_tax = round_cents(max(
        0.0, tax_liability + self_employment_tax + amt["amt"] + niit["niit"] - total_credits
    ))
    total_withheld = round_cents(facts.federal_withheld)

    logger.debug(
        f"{facts.taxpayer_id}/{facts.tax_year}: AGI {agi:.2f}, taxable {taxable_income:.2f}, "
        f"{deduction_used} deduction {deduction_amount:.2f}, total tax {total_tax:.2f}"
    )

    return {
        "income": income,
        "gross_income": gross_income,
        "above_the_line_adjustments": above_the_line,
        "se_tax_deduction": se_deduction,
        "adjustments": adjustments,
        "agi": agi,
        "standard_deduction": standard,
        "itemized_deduction": itemized,
        "deduction_used": deduction_used,
        "deduction_amount": deduction_amount,
        "taxable_income": taxable_income,
        "tax_liability": tax_liability,
        "self_employment_tax": self_employment_tax,
        "amt": amt["amt"],
        "niit": niit["niit"],
        "nonrefundable_credits_allowed": round_cents(nonrefundable_allowed),
        "refundable_credits": round_cents(refundable),
        "total_credits": total_credits,
        "total_tax": total_tax,
        "total_withheld": total_withheld,
        "schedule_c": schedule_c,
        "amt_detail": amt,
        "niit_detail": niit,
    }


def settle_balance(total_tax: float, withheld: float) -> tuple[float, float]:
    """(refund, amount_owed); at most one is non-zero."""
    balance = round_cents(withheld - total_tax)
    return (balance, 0.0) if balance >= 0 else (0.0, -balance)


def _effective_rate(total_tax: float, gross_income: float) -> float:
    return round_rate(total_tax / gross_income * 100) if gross_income > 0 else 0.0


def calculate_federal_return(
    facts: TaxReturnFacts,
    rules: Optional[TaxRules] = None,
    enforce_caps: bool = False,
) -> CalculationResult:
    """Compute the federal return.

    Args:
        facts: Tax return facts
        rules: Tax rules (defaults to the facts' tax year)
        enforce_caps: Apply statutory itemized limits before choosing the deduction

    Returns:
        Federal CalculationResult

    Raises:
        InputError: If the facts reference an unknown year or are malformed
    """
    ws = federal_worksheet(facts, rules, enforce_caps)
    refund, owed = settle_balance(ws["total_tax"], ws["total_withheld"])

    return CalculationResult(
        jurisdiction="federal",
        taxpayer_id=facts.taxpayer_id,
        tax_year=facts.tax_year,
        filing_status=facts.filing_status,
        gross_income=ws["gross_income"],
        adjustments=ws["adjustments"],
        agi=ws["agi"],
        standard_deduction=ws["standard_deduction"],
        itemized_deduction=ws["itemized_deduction"],
        deduction_used=ws["deduction_used"],
        deduction_amount=ws["deduction_amount"],
        taxable_income=ws["taxable_income"],
        tax_liability=ws["tax_liability"],
        self_employment_tax=ws["self_employment_tax"],
        amt=ws["amt"],
        niit=ws["niit"],
        total_credits=ws["total_credits"],
        total_tax=ws["total_tax"],
        total_withheld=ws["total_withheld"],
        refund=refund,
        amount_owed=owed,
        effective_rate=_effective_rate(ws["total_tax"], ws["gross_income"]),
    )


def calculate_state_return(
    facts: TaxReturnFacts,
    federal_result: CalculationResult,
    state_code: Optional[str] = None,
    state_rules: Optional[StateRules] = None,
) -> CalculationResult:
    """Compute a state return from the federal taxable income.

    Args:
        facts: Tax return facts (state withholding is summed from income items)
        federal_result: Federal result for the same facts
        state_code: State to compute (defaults to facts.state_code)
        state_rules: State tables (defaults to the facts' tax year)

    Raises:
        InputError: If no state is given or the state code is unknown
    """
    code = state_code or facts.state_code
    if not code:
        raise InputError("No state code given and facts have no state_code")
    if state_rules is None:
        state_rules = load_state_rules(facts.tax_year)

    state = calculate_state_tax(code, federal_result.taxable_income, state_rules)
    total_tax = state["tax_liability"]
    withheld = round_cents(facts.state_withheld)
    refund, owed = settle_balance(total_tax, withheld)

    return CalculationResult(
        jurisdiction=state["state_code"],
        taxpayer_id=facts.taxpayer_id,
        tax_year=facts.tax_year,
        filing_status=facts.filing_status,
        gross_income=federal_result.gross_income,
        adjustments=federal_result.adjustments,
        agi=federal_result.agi,
        standard_deduction=federal_result.standard_deduction,
        itemized_deduction=federal_result.itemized_deduction,
        deduction_used=federal_result.deduction_used,
        deduction_amount=federal_result.deduction_amount,
        taxable_income=federal_result.taxable_income,
        tax_liability=total_tax,
        total_tax=total_tax,
        total_withheld=withheld,
        refund=refund,
        amount_owed=owed,
        effective_rate=_effective_rate(total_tax, federal_result.gross_income),
    )
