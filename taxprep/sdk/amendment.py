"""Amended return (Form 1040-X) support.

Compares an original and an amended return line by line, checks whether the
original can still be amended, and accrues interest and penalties on any
additional tax owed.

Refund effect of a line: +1 for Total Payments, -1 for Total Tax, 0 for
informational lines. The summary net change always equals the sum of
refund_effect * change over the lines.
"""

import logging
from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .calculation import income_components, schedule_c_for, settle_balance
from .schemas import CalculationResult, InputError, TaxReturnFacts
from .taxes.money import round_cents
from .taxes.rules import load_tax_rules
from .taxes.schemas import AmendmentRules, TaxRules

logger = logging.getLogger(__name__)

CHANGE_TOLERANCE = 0.01
AMENDABLE_STATUSES = ("filed", "accepted")
AMENDMENT_COUNT_WARNING = 3
DEFAULT_EXPLANATION = "Correcting previously filed return."

ReturnStatus = Literal["draft", "filed", "accepted", "rejected"]


class ReturnSnapshot(BaseModel):
    """A return as filed (or prepared): facts, computed result and filing state."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    facts: TaxReturnFacts
    result: CalculationResult
    status: ReturnStatus = "draft"
    filed_date: Optional[date] = None
    due_date: Optional[date] = Field(default=None, description="Original payment due date")
    under_audit: bool = False
    amendment_count: int = Field(default=0, ge=0)


class AmendmentLine(BaseModel):
    """One tracked line of the comparison."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    line_label: str
    section: str
    original_amount: float
    amended_amount: float
    change: float
    refund_effect: Literal[-1, 0, 1] = 0

    @property
    def changed(self) -> bool:
        return abs(self.change) > CHANGE_TOLERANCE


class AmendmentSummary(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    original_refund: float
    original_owed: float
    amended_refund: float
    amended_owed: float
    net_change: float = Field(..., description="Positive: more refund / less owed")
    additional_refund: float = Field(..., ge=0)
    additional_tax_owed: float = Field(..., ge=0)


class AmendmentDiff(BaseModel):
    """Line-by-line difference between an original and an amended return."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    taxpayer_id: str
    tax_year: int
    lines: tuple[AmendmentLine, ...]
    summary: AmendmentSummary

    @property
    def changed_lines(self) -> list[AmendmentLine]:
        return [line for line in self.lines if line.changed]

    @property
    def has_changes(self) -> bool:
        return bool(self.changed_lines)


class EligibilityResult(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    eligible: bool
    deadline: Optional[date]
    issues: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()


class EligibilityError(Exception):
    """Raised when a return cannot be amended (outside the window or not final)."""

    def __init__(self, message: str, deadline: Optional[date] = None, issues: tuple = ()):
        super().__init__(message)
        self.deadline = deadline
        self.issues = tuple(issues)


class Amendment(BaseModel):
    """Result of amend_return: eligibility, diff and accruals on additional tax."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    eligibility: EligibilityResult
    diff: AmendmentDiff
    accruals: dict
    explanation: str


# =============================================================================
# Line extraction
# =============================================================================

INCOME_LABELS = (
    ("wages", "Wages, salaries, tips"),
    ("interest", "Interest income"),
    ("dividends", "Dividend income"),
    ("capital_gains", "Capital gains"),
    ("retirement", "IRA/pension distributions"),
    ("unemployment", "Unemployment and government payments"),
    ("rental", "Rental income"),
    ("business", "Business income"),
    ("other", "Other income"),
)

ADJUSTMENT_LABELS = (
    ("educator_expenses", "Educator expenses"),
    ("hsa_contribution", "HSA deduction"),
    ("ira_contribution", "IRA deduction"),
    ("student_loan_interest", "Student loan interest"),
    ("self_employed_health_insurance", "Self-employed health insurance"),
    ("other_adjustment", "Other adjustments"),
)


def _snapshot_lines(snapshot: ReturnSnapshot, rules: TaxRules) -> list[tuple[str, str, float, int]]:
    """(section, label, amount, refund_effect) for every tracked line, in form order."""
    facts, result = snapshot.facts, snapshot.result
    schedule_c = schedule_c_for(facts, rules)
    income = income_components(facts, schedule_c)
    se_deduction = schedule_c["self_employment_tax"]["deductible_portion"] if schedule_c else 0.0

    lines = [("Income", label, income[key], 0) for key, label in INCOME_LABELS]
    lines.append(("Income", "Total Income", result.gross_income, 0))

    lines.extend(
        ("Adjustments", label, facts.deduction_total(category, itemized=False), 0)
        for category, label in ADJUSTMENT_LABELS
    )
    lines.append(("Adjustments", "Self-employment tax deduction", se_deduction, 0))
    lines.append(("Adjustments", "Adjusted Gross Income", result.agi, 0))

    lines.append(("Deductions", "Standard/itemized deduction", result.deduction_amount, 0))
    lines.append(("Deductions", "Taxable Income", result.taxable_income, 0))

    lines.append(("Tax", "Tax", result.tax_liability, 0))
    lines.append(("Tax", "Self-employment tax", result.self_employment_tax, 0))
    lines.append(("Tax", "Alternative minimum tax", result.amt, 0))
    lines.append(("Tax", "Net investment income tax", result.niit, 0))

    lines.append(("Credits", "Child tax credit", facts.credit_total("child_tax_credit"), 0))
    lines.append((
        "Credits", "Education credits",
        facts.credit_total("american_opportunity_credit", "lifetime_learning_credit"), 0,
    ))
    lines.append((
        "Credits", "Other credits",
        facts.credit_total("earned_income_credit", "child_care_credit", "foreign_tax_credit", "energy_credit", "other"),
        0,
    ))

    lines.append(("Totals", "Total Tax", result.total_tax, -1))
    lines.append(("Totals", "Total Payments", result.total_withheld, 1))
    return lines


# =============================================================================
# Operations
# =============================================================================


def diff_returns(
    original: ReturnSnapshot,
    amended: ReturnSnapshot,
    rules: Optional[TaxRules] = None,
) -> AmendmentDiff:
    """Compare two returns for the same taxpayer and year.

    Args:
        original: Return as originally filed
        amended: Corrected return
        rules: Tax rules for the year (defaults to the original's tax year)

    Returns:
        AmendmentDiff with every tracked line (changed or not) and a summary

    Raises:
        InputError: If the returns belong to different taxpayers or years
    """
    if original.facts.taxpayer_id != amended.facts.taxpayer_id:
        raise InputError(
            f"Cannot compare returns of different taxpayers "
            f"({original.facts.taxpayer_id} vs {amended.facts.taxpayer_id})"
        )
    if original.facts.tax_year != amended.facts.tax_year:
        raise InputError(
            f"Cannot compare returns for different years "
            f"({original.facts.tax_year} vs {amended.facts.tax_year})"
        )
    if rules is None:
        rules = load_tax_rules(original.facts.tax_year)

    lines = []
    for (section, label, orig_amount, effect), (_, _, amended_amount, _) in zip(
        _snapshot_lines(original, rules), _snapshot_lines(amended, rules)
    ):
        lines.append(AmendmentLine(
            line_label=label,
            section=section,
            original_amount=round_cents(orig_amount),
            amended_amount=round_cents(amended_amount),
            change=round_cents(amended_amount - orig_amount),
            refund_effect=effect,
        ))

    # Settle each side from total tax and payments, not the stored refund/owed
    o_refund, o_owed = settle_balance(original.result.total_tax, original.result.total_withheld)
    a_refund, a_owed = settle_balance(amended.result.total_tax, amended.result.total_withheld)
    net_change = round_cents((a_refund - o_refund) - (a_owed - o_owed))
    summary = AmendmentSummary(
        original_refund=o_refund,
        original_owed=o_owed,
        amended_refund=a_refund,
        amended_owed=a_owed,
        net_change=net_change,
        additional_refund=max(0.0, net_change),
        additional_tax_owed=max(0.0, -net_change),
    )

    diff = AmendmentDiff(
        taxpayer_id=original.facts.taxpayer_id,
        tax_year=original.facts.tax_year,
        lines=tuple(lines),
        summary=summary,
    )
    logger.debug(
        f"Amendment diff {diff.taxpayer_id}/{diff.tax_year}: "
        f"{len(diff.changed_lines)} changed line(s), net change {net_change:.2f}"
    )
    return diff


def _add_years(d: date, years: int) -> date:
    """Same calendar day `years` later; Feb 29 maps to Feb 28."""
    try:
        return d.replace(year=d.year + years)
    except ValueError:
        return d.replace(year=d.year + years, day=28)


def check_amendment_eligibility(
    original: ReturnSnapshot,
    as_of: Optional[date] = None,
    rules: Optional[AmendmentRules] = None,
) -> EligibilityResult:
    """Check whether the original return can be amended on `as_of`.

    Returns:
        EligibilityResult; eligible is False when any issue is found
    """
    if rules is None:
        rules = load_tax_rules(original.facts.tax_year).amendment
    as_of = as_of or date.today()

    issues = []
    warnings = []
    deadline = None

    if original.status not in AMENDABLE_STATUSES:
        issues.append(f"Cannot amend a return that has not been filed (status: {original.status})")

    if original.filed_date is None:
        issues.append("Original return has no filing date")
    else:
        deadline = _add_years(original.filed_date, rules.deadline_years)
        if as_of > deadline:
            issues.append(
                f"Amendment deadline has passed. Original return filed {original.filed_date.isoformat()}, "
                f"deadline was {deadline.isoformat()}"
            )

    if original.under_audit:
        warnings.append("Return is under audit. Consult with the IRS before filing an amendment.")
    if original.amendment_count >= AMENDMENT_COUNT_WARNING:
        warnings.append("Multiple amendments may trigger additional IRS scrutiny")

    return EligibilityResult(
        eligible=not issues,
        deadline=deadline,
        issues=tuple(issues),
        warnings=tuple(warnings),
    )


def calculate_interest_and_penalties(
    additional_tax_owed: float,
    due_date: Optional[date],
    as_of: date,
    rules: AmendmentRules,
) -> dict:
    """Accrue interest and failure-to-pay penalty on additional tax owed.

    Interest compounds daily at the annual rate. The penalty is the monthly
    rate per full month late, capped. `charges` is interest plus penalty;
    `total` is the full amount due (additional tax plus charges). Everything
    is zero when nothing is owed.
    """
    days_late = max(0, (as_of - due_date).days) if due_date else 0
    if additional_tax_owed <= 0:
        return {
            "days_late": days_late, "months_late": 0,
            "interest": 0.0, "penalty": 0.0, "charges": 0.0, "total": 0.0,
        }

    months_late = days_late // rules.days_per_month
    interest = round_cents(
        additional_tax_owed * ((1 + rules.annual_interest_rate / 365) ** days_late - 1)
    )
    penalty_rate = min(months_late * rules.penalty_rate_per_month, rules.penalty_cap)
    penalty = round_cents(additional_tax_owed * penalty_rate)
    return {
        "days_late": days_late,
        "months_late": months_late,
        "interest": interest,
        "penalty": penalty,
        "charges": round_cents(interest + penalty),
        "total": round_cents(additional_tax_owed + interest + penalty),
    }


def generate_explanation(diff: AmendmentDiff) -> str:
    """Form 1040-X Part II explanation, one paragraph per changed section."""
    sections: dict[str, list[str]] = {}
    for line in diff.changed_lines:
        sections.setdefault(line.section, []).append(
            f"{line.line_label}: changed from ${line.original_amount:,.2f} to ${line.amended_amount:,.2f}"
        )
    if not sections:
        return DEFAULT_EXPLANATION
    return "\n\n".join(f"{section}: {'; '.join(items)}" for section, items in sections.items())


def form_1040x(diff: AmendmentDiff, explanation: Optional[str] = None) -> dict:
    """Form 1040-X column data (A: original, B: net change, C: correct amount)."""
    return {
        "form": "1040-X",
        "tax_year": diff.tax_year,
        "taxpayer_id": diff.taxpayer_id,
        "lines": [
            {
                "section": line.section,
                "line": line.line_label,
                "column_a": line.original_amount,
                "column_b": line.change,
                "column_c": line.amended_amount,
            }
            for line in diff.lines
        ],
        "summary": diff.summary.model_dump(),
        "explanation": explanation or generate_explanation(diff),
    }


def amend_return(
    original: ReturnSnapshot,
    amended: ReturnSnapshot,
    as_of: Optional[date] = None,
    rules: Optional[TaxRules] = None,
) -> Amendment:
    """Prepare an amendment: eligibility check, diff and accruals.

    Raises:
        EligibilityError: If the original cannot be amended as of the date
        InputError: If the returns belong to different taxpayers or years
    """
    as_of = as_of or date.today()
    if rules is None:
        rules = load_tax_rules(original.facts.tax_year)

    eligibility = check_amendment_eligibility(original, as_of, rules.amendment)
    if not eligibility.eligible:
        raise EligibilityError("; ".join(eligibility.issues), eligibility.deadline, eligibility.issues)

    diff = diff_returns(original, amended, rules)
    accruals = calculate_interest_and_penalties(
        diff.summary.additional_tax_owed, original.due_date, as_of, rules.amendment
    )
    return Amendment(
        eligibility=eligibility,
        diff=diff,
        accruals=accruals,
        explanation=generate_explanation(diff),
    )
