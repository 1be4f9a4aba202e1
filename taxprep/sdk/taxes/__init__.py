"""taxes - Year-specific tax rules and pure tax calculators.

Scope:
- Federal tax rules per year (tax_rules/YYYY.yaml) and state tables
  (tax_rules/states-YYYY.yaml), validated by pydantic schemas
- Progressive bracket tax, standard deduction, deduction selection
- Schedule C and self-employment tax
- AMT, NIIT and AMT risk assessment
- Depreciation (MACRS, straight-line, units of production, section 179, bonus)
- State income tax and state filing requirements

Constraints:
- Pure calculation - receives facts and rules, returns results
- No I/O beyond reading the (cached, immutable) rules files
- All money rounded to cents via money.round_cents

Usage:
    from taxprep.sdk.taxes import compute_bracket_tax, load_tax_rules

    rules = load_tax_rules(2024)
    tax = compute_bracket_tax(62250, rules.brackets_for("single"))
"""

from .money import round_cents, round_rate

from .schemas import (
    TaxBracket,
    TaxRules,
    StateRules,
    StateTaxInfo,
)

from .rules import (
    load_tax_rules,
    load_state_rules,
    get_available_years,
    clear_rules_cache,
    TaxRulesNotFoundError,
)

from .brackets import (
    compute_bracket_tax,
    compute_standard_deduction,
    select_deduction,
    bracket_breakdown,
    marginal_rate,
)

from .self_employment import (
    SCHEDULE_C_EXPENSE_CATEGORIES,
    categorize_expenses,
    calculate_schedule_c,
    calculate_se_tax,
    calculate_cost_of_goods_sold,
    calculate_vehicle_expense,
)

from .depreciation import (
    calculate_depreciation,
    calculate_total_depreciation,
    check_mid_quarter_convention,
    check_section_179,
    depreciation_schedule,
    macrs_depreciation,
    recovery_period_for,
    straight_line_depreciation,
    units_of_production_depreciation,
)

from .amt import (
    AMTRiskAssessment,
    calculate_amt,
    calculate_amt_exemption,
    calculate_tentative_minimum_tax,
    calculate_niit,
    calculate_additional_taxes,
    assess_amt_risk,
)

from .state import (
    calculate_state_tax,
    compare_state_taxes,
    get_state_info,
    list_states,
    get_no_income_tax_states,
    get_state_filing_threshold,
    get_required_state_returns,
)

__all__ = [
    # Money
    "round_cents",
    "round_rate",
    # Rules
    "TaxBracket",
    "TaxRules",
    "StateRules",
    "StateTaxInfo",
    "load_tax_rules",
    "load_state_rules",
    "get_available_years",
    "clear_rules_cache",
    "TaxRulesNotFoundError",
    # Brackets
    "compute_bracket_tax",
    "compute_standard_deduction",
    "select_deduction",
    "bracket_breakdown",
    "marginal_rate",
    # Self-employment
    "SCHEDULE_C_EXPENSE_CATEGORIES",
    "categorize_expenses",
    "calculate_schedule_c",
    "calculate_se_tax",
    "calculate_cost_of_goods_sold",
    "calculate_vehicle_expense",
    # Depreciation
    "calculate_depreciation",
    "calculate_total_depreciation",
    "check_mid_quarter_convention",
    "check_section_179",
    "depreciation_schedule",
    "macrs_depreciation",
    "recovery_period_for",
    "straight_line_depreciation",
    "units_of_production_depreciation",
    # AMT / NIIT
    "AMTRiskAssessment",
    "calculate_amt",
    "calculate_amt_exemption",
    "calculate_tentative_minimum_tax",
    "calculate_niit",
    "calculate_additional_taxes",
    "assess_amt_risk",
    # State
    "calculate_state_tax",
    "compare_state_taxes",
    "get_state_info",
    "list_states",
    "get_no_income_tax_states",
    "get_state_filing_threshold",
    "get_required_state_returns",
]
