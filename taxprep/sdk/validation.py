"""Validation and limit enforcement.

validate() runs independent checks over a return's facts and its computed
result and sorts findings into errors, warnings and suggestions. Statutory
problems are reported, never raised; only structurally malformed input
raises InputError.

Checks:
- Itemized limits: SALT cap, charitable cash 60% of AGI, medical 7.5% floor
- Contribution limits: IRA, HSA, 401(k) elective deferrals, student loan interest
- Credits: child tax credit phase-out, EITC eligibility, education credit caps,
  non-refundable credits above tax liability
- Math consistency between facts and the result (within $1)
- Filing requirement and data-quality checks
- Section 179 business income limit and the mid-quarter convention
- Optimization suggestions
"""

import logging
import math
from typing import Callable, Optional, Union

from pydantic import ValidationError

from .calculation import federal_worksheet, salt_cap, schedule_c_for, SALT_CATEGORIES
from .schemas import (
    CalculationResult,
    InputError,
    TaxReturnFacts,
    ValidationIssue,
    ValidationReport,
    parse_facts,
)
from .taxes.amt import assess_amt_risk
from .taxes.depreciation import check_section_179
from .taxes.money import round_cents
from .taxes.rules import load_tax_rules
from .taxes.schemas import TaxRules

logger = logging.getLogger(__name__)

MATH_TOLERANCE = 1.00
HIGH_INCOME_REVIEW = 200000
ESTIMATED_PAYMENTS_THRESHOLD = 5000
EXPENSE_RATIO_REVIEW = 0.90
SENIOR_AGE = 65


class _Findings:
    """Accumulates issues by severity while checks run."""

    def __init__(self):
        self.errors: list[ValidationIssue] = []
        self.warnings: list[ValidationIssue] = []
        self.suggestions: list[ValidationIssue] = []

    def error(self, field: str, message: str, correction: Optional[float] = None, kind: str = "limit_violation"):
        self.errors.append(ValidationIssue(field=field, message=message, correction=correction, kind=kind))

    def warning(self, field: str, message: str, correction: Optional[float] = None, kind: str = "limit_violation"):
        self.warnings.append(ValidationIssue(field=field, message=message, correction=correction, kind=kind))

    def suggest(self, field: str, message: str, kind: str = "optimization"):
        self.suggestions.append(ValidationIssue(field=field, message=message, kind=kind))

    def report(self) -> ValidationReport:
        return ValidationReport(
            errors=tuple(self.errors),
            warnings=tuple(self.warnings),
            suggestions=tuple(self.suggestions),
        )


class _Context:
    """Inputs shared by all checks, with the schedule C computed once."""

    def __init__(self, facts: TaxReturnFacts, result: CalculationResult, rules: TaxRules):
        self.facts = facts
        self.result = result
        self.rules = rules
        self.schedule_c = schedule_c_for(facts, rules)

    @property
    def agi(self) -> float:
        return self.result.agi

    def covered_ages(self) -> list[Optional[int]]:
        """Ages of each person with their own contribution limit."""
        ages = [self.facts.taxpayer_age]
        if self.facts.filing_status == "married_filing_jointly":
            ages.append(self.facts.spouse_age)
        return ages


def _at_least(age: Optional[int], threshold: int) -> bool:
    return age is not None and age >= threshold


# =============================================================================
# Itemized deduction limits
# =============================================================================


def _check_salt(ctx: _Context, out: _Findings):
    salt = ctx.facts.deduction_total(*SALT_CATEGORIES, itemized=True)
    cap = salt_cap(ctx.facts.filing_status, ctx.agi, ctx.rules.limits)
    if salt > cap:
        out.warning(
            "state_local_tax",
            f"State and local tax deduction (${salt:,.2f}) is limited to ${cap:,.2f}",
            correction=cap,
        )


def _check_charitable(ctx: _Context, out: _Findings):
    cash = ctx.facts.deduction_total("charitable_cash", itemized=True)
    limit = round_cents(max(0.0, ctx.agi) * ctx.rules.limits.charitable_cash_agi_fraction)
    if cash > limit:
        pct = ctx.rules.limits.charitable_cash_agi_fraction * 100
        out.warning(
            "charitable_cash",
            f"Cash charitable contributions limited to {pct:g}% of AGI (${limit:,.2f})",
            correction=limit,
        )


def _check_medical(ctx: _Context, out: _Findings):
    medical = ctx.facts.deduction_total("medical", itemized=True)
    if medical <= 0:
        return
    floor = round_cents(max(0.0, ctx.agi) * ctx.rules.limits.medical_agi_floor)
    pct = ctx.rules.limits.medical_agi_floor * 100
    if medical <= floor:
        out.warning(
            "medical",
            f"Medical expenses (${medical:,.2f}) do not exceed {pct:g}% of AGI (${floor:,.2f}); none are deductible",
            correction=0.0,
        )
    else:
        out.warning(
            "medical",
            f"Only medical expenses above {pct:g}% of AGI (${floor:,.2f}) are deductible",
            correction=round_cents(medical - floor),
        )


# =============================================================================
# Contribution limits
# =============================================================================


def _check_ira(ctx: _Context, out: _Findings):
    contributed = ctx.facts.deduction_total("ira_contribution")
    if contributed <= 0:
        return
    limits = ctx.rules.limits
    limit = sum(
        limits.ira_contribution + (limits.ira_catch_up if _at_least(age, limits.ira_catch_up_age) else 0)
        for age in ctx.covered_ages()
    )
    if contributed > limit:
        out.error(
            "ira_contribution",
            f"IRA contributions (${contributed:,.2f}) exceed the ${limit:,.2f} limit",
            correction=limit,
        )


def _check_hsa(ctx: _Context, out: _Findings):
    contributed = ctx.facts.deduction_total("hsa_contribution")
    if contributed <= 0:
        return
    limits = ctx.rules.limits
    limit = limits.hsa_family if ctx.facts.hsa_coverage == "family" else limits.hsa_individual
    limit += limits.hsa_catch_up * sum(1 for age in ctx.covered_ages() if _at_least(age, limits.hsa_catch_up_age))
    if contributed > limit:
        out.error(
            "hsa_contribution",
            f"HSA contributions (${contributed:,.2f}) exceed the ${limit:,.2f} {ctx.facts.hsa_coverage} coverage limit",
            correction=limit,
        )


def _check_401k(ctx: _Context, out: _Findings):
    deferred = ctx.facts.elective_deferrals_401k
    if deferred <= 0:
        return
    limits = ctx.rules.limits
    limit = sum(
        limits.elective_deferral_401k
        + (limits.elective_deferral_401k_catch_up if _at_least(age, limits.elective_deferral_401k_catch_up_age) else 0)
        for age in ctx.covered_ages()
    )
    if deferred > limit:
        out.error(
            "elective_deferrals_401k",
            f"401(k) elective deferrals (${deferred:,.2f}) exceed the ${limit:,.2f} limit",
            correction=limit,
        )


def _check_student_loan(ctx: _Context, out: _Findings):
    interest = ctx.facts.deduction_total("student_loan_interest")
    limit = ctx.rules.limits.student_loan_interest
    if interest > limit:
        out.warning(
            "student_loan_interest",
            f"Student loan interest deduction limited to ${limit:,.2f}",
            correction=limit,
        )


# =============================================================================
# Credits
# =============================================================================


def allowed_child_tax_credit(facts: TaxReturnFacts, agi: float, rules: TaxRules) -> float:
    """Child tax credit after the phase-out for the return's AGI."""
    ctc = rules.child_tax_credit
    base = facts.ctc_children * ctc.amount_per_child
    excess = max(0.0, agi - ctc.phase_out_threshold.for_status(facts.filing_status))
    reduction = math.floor(excess / ctc.phase_out_step) * ctc.phase_out_per_step
    return round_cents(max(0.0, base - reduction))


def _check_child_tax_credit(ctx: _Context, out: _Findings):
    claimed = ctx.facts.credit_total("child_tax_credit")
    if claimed <= 0:
        return
    allowed = allowed_child_tax_credit(ctx.facts, ctx.agi, ctx.rules)
    if claimed > allowed:
        out.warning(
            "child_tax_credit",
            f"Child tax credit for {ctx.facts.ctc_children} qualifying child(ren) at this AGI is ${allowed:,.2f}",
            correction=allowed,
        )


def _check_eitc(ctx: _Context, out: _Findings):
    claimed = ctx.facts.credit_total("earned_income_credit")
    if claimed <= 0:
        return
    eitc = ctx.rules.eitc
    children = min(ctx.facts.eitc_children, eitc.max_qualifying_children)
    joint = ctx.facts.filing_status == "married_filing_jointly"
    income_limit = (eitc.income_limit_joint if joint else eitc.income_limit)[children]
    max_credit = eitc.max_credit[children]

    if ctx.agi > income_limit:
        out.error(
            "earned_income_credit",
            f"AGI (${ctx.agi:,.2f}) exceeds the EITC limit of ${income_limit:,.2f} with {children} qualifying child(ren)",
            correction=0.0,
            kind="eligibility",
        )
    if claimed > max_credit:
        out.error(
            "earned_income_credit",
            f"EITC with {children} qualifying child(ren) cannot exceed ${max_credit:,.2f}",
            correction=max_credit,
        )
    if ctx.facts.investment_income > eitc.investment_income_limit:
        out.error(
            "earned_income_credit",
            f"Investment income above ${eitc.investment_income_limit:,.2f} disqualifies the EITC",
            correction=0.0,
            kind="eligibility",
        )


def _check_education_credits(ctx: _Context, out: _Findings):
    education = ctx.rules.education
    aotc = ctx.facts.credit_total("american_opportunity_credit")
    aotc_limit = education.american_opportunity_per_student * max(1, ctx.facts.student_dependents)
    if aotc > aotc_limit:
        out.error(
            "american_opportunity_credit",
            f"American Opportunity Credit limited to ${education.american_opportunity_per_student:,.2f} per student",
            correction=aotc_limit,
        )

    llc = ctx.facts.credit_total("lifetime_learning_credit")
    if llc > education.lifetime_learning_per_return:
        out.error(
            "lifetime_learning_credit",
            f"Lifetime Learning Credit limited to ${education.lifetime_learning_per_return:,.2f} per return",
            correction=education.lifetime_learning_per_return,
        )


def _check_nonrefundable_ceiling(ctx: _Context, out: _Findings):
    nonrefundable = sum(c.amount for c in ctx.facts.credit_claims if not c.is_refundable)
    if nonrefundable > ctx.result.tax_liability:
        out.warning(
            "credit_claims",
            f"Non-refundable credits (${nonrefundable:,.2f}) exceed tax liability (${ctx.result.tax_liability:,.2f})",
            correction=ctx.result.tax_liability,
        )


# =============================================================================
# Math consistency
# =============================================================================


def _check_math(ctx: _Context, out: _Findings):
    result = ctx.result
    ws = federal_worksheet(ctx.facts, ctx.rules)
    withheld = ctx.facts.federal_withheld if result.jurisdiction == "federal" else ctx.facts.state_withheld

    checks = [
        ("gross_income", "Total income", ws["gross_income"], result.gross_income),
        ("agi", "Adjusted gross income", ws["agi"], result.agi),
        ("taxable_income", "Taxable income", max(0.0, result.agi - result.deduction_amount), result.taxable_income),
        ("refund", "Refund minus amount owed", withheld - result.total_tax, result.refund - result.amount_owed),
    ]
    for field, label, expected, actual in checks:
        expected = round_cents(expected)
        if abs(expected - actual) > MATH_TOLERANCE:
            out.error(
                field,
                f"{label} ({actual:,.2f}) does not match recomputed value ({expected:,.2f})",
                correction=expected,
                kind="math_mismatch",
            )


# =============================================================================
# Filing requirement and data quality
# =============================================================================


def filing_threshold(facts: TaxReturnFacts, rules: TaxRules) -> float:
    """Gross income at which the return must be filed."""
    threshold = rules.filing_thresholds.for_status(facts.filing_status)
    if facts.filing_status == "married_filing_jointly":
        seniors = sum(1 for age in (facts.taxpayer_age, facts.spouse_age) if _at_least(age, SENIOR_AGE))
    else:
        seniors = 1 if _at_least(facts.taxpayer_age, SENIOR_AGE) else 0
    if seniors >= 2 and threshold.both_65_plus is not None:
        return threshold.both_65_plus
    if seniors >= 1:
        return threshold.age_65_plus
    return threshold.under_65


def _check_filing_requirement(ctx: _Context, out: _Findings):
    threshold = filing_threshold(ctx.facts, ctx.rules)
    if ctx.result.gross_income >= threshold:
        return
    se_earnings = ctx.schedule_c["self_employment_tax"]["net_earnings"] if ctx.schedule_c else 0.0
    se_threshold = ctx.rules.self_employment.filing_threshold
    if se_earnings >= se_threshold:
        out.warning(
            "self_employment",
            f"Net self-employment earnings of ${se_threshold:,.0f} or more require filing a return",
            kind="filing_requirement",
        )
    else:
        out.suggest(
            "gross_income",
            f"Gross income is below the ${threshold:,.2f} filing threshold; you may not be required to file",
            kind="filing_requirement",
        )


def _check_data_quality(ctx: _Context, out: _Findings):
    facts = ctx.facts
    if facts.total_wages > 0 and facts.federal_withheld == 0:
        out.warning(
            "income_items",
            "Wages reported with no federal income tax withheld",
            kind="data_quality",
        )
    if facts.filing_status == "head_of_household" and not facts.dependents:
        out.warning(
            "filing_status",
            "Head of household status requires a qualifying person",
            kind="data_quality",
        )

    mortgage = facts.deduction_total("mortgage_interest", itemized=True)
    if mortgage > ctx.rules.limits.mortgage_interest_review:
        out.warning(
            "mortgage_interest",
            f"Mortgage interest above ${ctx.rules.limits.mortgage_interest_review:,.0f} may exceed the acquisition debt limit",
            kind="data_quality",
        )

    business = facts.self_employment
    if business is None:
        return
    max_sq_ft = ctx.rules.self_employment.home_office_max_square_feet
    if business.home_office_square_feet and business.home_office_square_feet > max_sq_ft:
        out.warning(
            "self_employment.home_office_square_feet",
            f"Simplified home office deduction is limited to {max_sq_ft:g} square feet",
            correction=max_sq_ft,
            kind="data_quality",
        )
    if business.gross_receipts > 0 and ctx.schedule_c["total_expenses"] > business.gross_receipts * EXPENSE_RATIO_REVIEW:
        out.warning(
            "self_employment.expense_line_items",
            f"Business expenses exceed {EXPENSE_RATIO_REVIEW:.0%} of gross receipts",
            kind="data_quality",
        )


def _check_depreciation(ctx: _Context, out: _Findings):
    business = ctx.facts.self_employment
    if business is None or not business.assets:
        return
    depreciation = ctx.schedule_c["depreciation"]
    income_before_179 = ctx.schedule_c["net_profit_loss"] + depreciation["total_section_179"]
    section_179 = check_section_179(
        business.assets, ctx.facts.tax_year, income_before_179, ctx.rules.depreciation
    )
    if depreciation["total_section_179"] > section_179["allowed_section_179"]:
        out.warning(
            "self_employment.assets",
            "; ".join(section_179["issues"]) + ". The excess carries forward to next year.",
            correction=section_179["allowed_section_179"],
        )
    if depreciation["mid_quarter"]["requires_mid_quarter"]:
        out.suggest(
            "self_employment.assets",
            depreciation["mid_quarter"]["note"] + " Depreciation was computed with half-year tables.",
            kind="data_quality",
        )


# =============================================================================
# Optimization suggestions
# =============================================================================


def _suggest_optimizations(ctx: _Context, out: _Findings):
    facts, result = ctx.facts, ctx.result
    itemized = sum(d.amount for d in facts.itemized_items)
    if 0 < itemized < result.standard_deduction:
        out.suggest(
            "deduction_items",
            f"Standard deduction (${result.standard_deduction:,.2f}) exceeds itemized deductions (${itemized:,.2f})",
        )
    if result.gross_income > HIGH_INCOME_REVIEW:
        out.suggest(
            "gross_income",
            "Income above $200,000: review AMT and net investment income tax exposure",
        )
    if ctx.schedule_c and ctx.schedule_c["net_profit_loss"] > ESTIMATED_PAYMENTS_THRESHOLD:
        out.suggest(
            "self_employment",
            "Self-employment income may require quarterly estimated tax payments",
        )
    risk = assess_amt_risk(result.taxable_income, facts.amt_preference_items, facts.dependent_count)
    if risk.risk_level == "high":
        out.suggest("amt_preference_items", f"High AMT risk: {risk.recommendation}")


CHECKS: tuple[Callable[[_Context, _Findings], None], ...] = (
    _check_salt,
    _check_charitable,
    _check_medical,
    _check_ira,
    _check_hsa,
    _check_401k,
    _check_student_loan,
    _check_child_tax_credit,
    _check_eitc,
    _check_education_credits,
    _check_nonrefundable_ceiling,
    _check_math,
    _check_filing_requirement,
    _check_data_quality,
    _check_depreciation,
    _suggest_optimizations,
)


def validate(
    facts: Union[TaxReturnFacts, dict],
    result: Union[CalculationResult, dict],
    rules: Optional[TaxRules] = None,
) -> ValidationReport:
    """Validate a computed return against its facts and the year's limits.

    Args:
        facts: Tax return facts (or a dict parsed with parse_facts)
        result: Computed result for the facts (or its model_dump())
        rules: Tax rules (defaults to the facts' tax year)

    Returns:
        A new ValidationReport

    Raises:
        InputError: If facts or result are structurally malformed
    """
    if isinstance(facts, dict):
        facts = parse_facts(facts)
    elif not isinstance(facts, TaxReturnFacts):
        raise InputError(f"Expected TaxReturnFacts, got {type(facts).__name__}")

    if isinstance(result, dict):
        try:
            result = CalculationResult.model_validate(result)
        except ValidationError as e:
            raise InputError(f"Invalid calculation result: {e}") from e
    elif not isinstance(result, CalculationResult):
        raise InputError(f"Expected CalculationResult, got {type(result).__name__}")

    if rules is None:
        rules = load_tax_rules(facts.tax_year)

    ctx = _Context(facts, result, rules)
    findings = _Findings()
    for check in CHECKS:
        check(ctx, findings)

    report = findings.report()
    logger.debug(f"Validated {facts.taxpayer_id}/{facts.tax_year}: {report.summary}")
    return report
