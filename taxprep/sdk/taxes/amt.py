"""Alternative Minimum Tax (Form 6251) and Net Investment Income Tax (Form 8960)."""

import logging
from typing import Literal

from pydantic import BaseModel, ConfigDict

from ..schemas import AMTPreferenceItems
from .money import round_cents
from .schemas import AMTRules, NIITRules

logger = logging.getLogger(__name__)

RISK_INCOME_THRESHOLD = 200000
RISK_SALT_THRESHOLD = 10000
RISK_DEPENDENTS_THRESHOLD = 3


def calculate_amt_exemption(amti: float, filing_status: str, rules: AMTRules) -> float:
    """Exemption reduced by the phase-out rate on AMTI above the threshold, floored at 0."""
    base = rules.exemption.for_status(filing_status)
    excess = max(0.0, amti - rules.phase_out_threshold.for_status(filing_status))
    return round_cents(max(0.0, base - excess * rules.phase_out_rate))


def calculate_tentative_minimum_tax(amt_taxable_income: float, filing_status: str, rules: AMTRules) -> float:
    """Two-rate TMT. The rate threshold is halved for married filing separately."""
    if amt_taxable_income <= 0:
        return 0.0
    threshold = rules.rate_threshold_mfs if filing_status == "married_filing_separately" else rules.rate_threshold
    if amt_taxable_income <= threshold:
        return round_cents(amt_taxable_income * rules.low_rate)
    return round_cents(threshold * rules.low_rate + (amt_taxable_income - threshold) * rules.high_rate)


def calculate_amt(
    regular_taxable_income: float,
    regular_tax: float,
    filing_status: str,
    preference_items: AMTPreferenceItems,
    rules: AMTRules,
) -> dict:
    """Compute AMT owed on top of regular tax.

    Args:
        regular_taxable_income: Taxable income from the regular computation
        regular_tax: Regular income tax (before credits)
        filing_status: Filing status
        preference_items: Add-backs and preference items
        rules: Year's AMT rules

    Returns:
        Dict with amti, exemption, amt_taxable_income,
        tentative_minimum_tax, regular_tax, amt, is_subject_to_amt
    """
    amti = round_cents(regular_taxable_income + preference_items.total)
    exemption = calculate_amt_exemption(amti, filing_status, rules)
    amt_taxable_income = round_cents(max(0.0, amti - exemption))
    tmt = calculate_tentative_minimum_tax(amt_taxable_income, filing_status, rules)
    amt = round_cents(max(0.0, tmt - regular_tax))

    if amt > 0:
        logger.debug(f"AMT applies: TMT {tmt:.2f} exceeds regular tax {regular_tax:.2f}")

    return {
        "amti": amti,
        "exemption": exemption,
        "amt_taxable_income": amt_taxable_income,
        "tentative_minimum_tax": tmt,
        "regular_tax": regular_tax,
        "amt": amt,
        "is_subject_to_amt": amt > 0,
    }


def calculate_niit(magi: float, net_investment_income: float, filing_status: str, rules: NIITRules) -> dict:
    """3.8% tax on the lesser of NII and MAGI over the status threshold."""
    threshold = rules.threshold.for_status(filing_status)
    excess_magi = max(0.0, magi - threshold)
    taxable = min(net_investment_income, excess_magi) if excess_magi > 0 else 0.0
    return {
        "magi": magi,
        "threshold": threshold,
        "excess_magi": round_cents(excess_magi),
        "net_investment_income": net_investment_income,
        "taxable_amount": round_cents(taxable),
        "niit": round_cents(taxable * rules.rate),
    }


def calculate_additional_taxes(
    regular_taxable_income: float,
    regular_tax: float,
    magi: float,
    net_investment_income: float,
    filing_status: str,
    preference_items: AMTPreferenceItems,
    amt_rules: AMTRules,
    niit_rules: NIITRules,
) -> dict:
    """AMT and NIIT together, with a combined total."""
    amt = calculate_amt(regular_taxable_income, regular_tax, filing_status, preference_items, amt_rules)
    niit = calculate_niit(magi, net_investment_income, filing_status, niit_rules)
    return {
        "amt": amt,
        "niit": niit,
        "total_additional_tax": round_cents(amt["amt"] + niit["niit"]),
    }


RiskLevel = Literal["low", "medium", "high"]


class AMTRiskAssessment(BaseModel):
    """Advisory estimate of AMT exposure. Not a tax computation."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    risk_score: int
    risk_level: RiskLevel
    indicators: tuple[str, ...]
    recommendation: str


def assess_amt_risk(
    regular_taxable_income: float,
    preference_items: AMTPreferenceItems,
    dependent_count: int = 0,
) -> AMTRiskAssessment:
    """Score AMT exposure from common triggers."""
    indicators = []
    score = 0

    if regular_taxable_income > RISK_INCOME_THRESHOLD:
        indicators.append("High income increases AMT risk")
        score += 20
    if preference_items.state_local_tax_deduction > RISK_SALT_THRESHOLD:
        indicators.append("State/local tax deduction above $10,000 (add-back for AMT)")
        score += 30
    if preference_items.exercised_isos > 0:
        indicators.append("Exercised incentive stock options")
        score += 40
    if preference_items.private_activity_bond_interest > 0:
        indicators.append("Private activity bond interest")
        score += 15
    if dependent_count > RISK_DEPENDENTS_THRESHOLD:
        indicators.append("Multiple dependents")
        score += 10

    score = min(100, score)
    if score >= 50:
        level, recommendation = "high", "Calculate AMT to determine if additional tax is owed."
    elif score >= 25:
        level, recommendation = "medium", "Consider reviewing AMT calculations as a precaution."
    else:
        level, recommendation = "low", "AMT is unlikely to apply."

    return AMTRiskAssessment(
        risk_score=score,
        risk_level=level,
        indicators=tuple(indicators),
        recommendation=recommendation,
    )
