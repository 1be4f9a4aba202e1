"""Tax Prep SDK - Core tax computation and compliance checks."""

from .config import (
    get_config_dir,
    get_settings_path,
    load_settings,
    save_settings,
    get_setting,
    set_setting,
    get_tax_rules_dirs,
    KNOWN_SETTINGS,
)

from .schemas import (
    InputError,
    FilingStatus,
    FILING_STATUSES,
    IncomeItem,
    DeductionItem,
    CreditClaim,
    ExpenseLineItem,
    SelfEmploymentFacts,
    DepreciableAsset,
    AMTPreferenceItems,
    Dependent,
    TaxReturnFacts,
    parse_facts,
    CalculationResult,
    ValidationIssue,
    ValidationReport,
)

from .calculation import (
    calculate_federal_return,
    calculate_state_return,
    federal_worksheet,
)

from .validation import validate

from .amendment import (
    ReturnSnapshot,
    AmendmentLine,
    AmendmentDiff,
    Amendment,
    EligibilityResult,
    EligibilityError,
    diff_returns,
    check_amendment_eligibility,
    calculate_interest_and_penalties,
    generate_explanation,
    form_1040x,
    amend_return,
)

from .taxes import (
    load_tax_rules,
    load_state_rules,
    get_available_years,
    TaxRulesNotFoundError,
    TaxRules,
    compute_bracket_tax,
    compute_standard_deduction,
    select_deduction,
    calculate_schedule_c,
    calculate_se_tax,
    calculate_total_depreciation,
    depreciation_schedule,
    calculate_amt,
    calculate_niit,
    assess_amt_risk,
    calculate_state_tax,
    compare_state_taxes,
    get_required_state_returns,
)

__all__ = [
    # Config
    "get_config_dir",
    "get_settings_path",
    "load_settings",
    "save_settings",
    "get_setting",
    "set_setting",
    "get_tax_rules_dirs",
    "KNOWN_SETTINGS",
    # Facts and results
    "InputError",
    "FilingStatus",
    "FILING_STATUSES",
    "IncomeItem",
    "DeductionItem",
    "CreditClaim",
    "ExpenseLineItem",
    "SelfEmploymentFacts",
    "DepreciableAsset",
    "AMTPreferenceItems",
    "Dependent",
    "TaxReturnFacts",
    "parse_facts",
    "CalculationResult",
    "ValidationIssue",
    "ValidationReport",
    # Calculation
    "calculate_federal_return",
    "calculate_state_return",
    "federal_worksheet",
    # Validation
    "validate",
    # Amendment
    "ReturnSnapshot",
    "AmendmentLine",
    "AmendmentDiff",
    "Amendment",
    "EligibilityResult",
    "EligibilityError",
    "diff_returns",
    "check_amendment_eligibility",
    "calculate_interest_and_penalties",
    "generate_explanation",
    "form_1040x",
    "amend_return",
    # Taxes
    "load_tax_rules",
    "load_state_rules",
    "get_available_years",
    "TaxRulesNotFoundError",
    "TaxRules",
    "compute_bracket_tax",
    "compute_standard_deduction",
    "select_deduction",
    "calculate_schedule_c",
    "calculate_se_tax",
    "calculate_total_depreciation",
    "depreciation_schedule",
    "calculate_amt",
    "calculate_niit",
    "assess_amt_risk",
    "calculate_state_tax",
    "compare_state_taxes",
    "get_required_state_returns",
]
