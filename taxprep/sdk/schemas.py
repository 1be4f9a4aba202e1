"""Pydantic schemas for tax return facts and calculation outputs.

All schemas use extra='forbid' to reject unknown fields, ensuring
typos in facts files cause clear errors rather than silent ignoring.
Facts and results are frozen: a calculation run never mutates its inputs.
"""

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator


class InputError(ValueError):
    """Raised when facts are structurally malformed or reference unknown values."""
    pass


# =============================================================================
# Enumerations
# =============================================================================

FilingStatus = Literal[
    "single",
    "married_filing_jointly",
    "married_filing_separately",
    "head_of_household",
    "qualifying_widow",
]

FILING_STATUSES: tuple[str, ...] = FilingStatus.__args__

IncomeSourceType = Literal[
    "W-2",
    "1099-NEC",
    "1099-INT",
    "1099-DIV",
    "1099-R",
    "1099-G",
    "1099-MISC",
    "capital_gain",
    "rental",
    "other",
]

DeductionCategory = Literal[
    # Itemized (Schedule A)
    "state_local_tax",
    "property_tax",
    "mortgage_interest",
    "charitable_cash",
    "charitable_noncash",
    "medical",
    "casualty_loss",
    "other_itemized",
    # Above-the-line (Schedule 1 Part II)
    "ira_contribution",
    "hsa_contribution",
    "student_loan_interest",
    "educator_expenses",
    "self_employed_health_insurance",
    "other_adjustment",
]

CreditType = Literal[
    "child_tax_credit",
    "earned_income_credit",
    "american_opportunity_credit",
    "lifetime_learning_credit",
    "child_care_credit",
    "foreign_tax_credit",
    "energy_credit",
    "other",
]

DeductionUsed = Literal["standard", "itemized"]

DepreciationMethod = Literal["macrs", "straight_line", "units_of_production"]

IssueKind = Literal[
    "limit_violation",
    "math_mismatch",
    "eligibility",
    "filing_requirement",
    "data_quality",
    "optimization",
]


# =============================================================================
# Input facts
# =============================================================================


class IncomeItem(BaseModel):
    """One income document (W-2, 1099, broker statement, etc.)."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    source_type: IncomeSourceType
    payer: Optional[str] = Field(default=None, description="Employer or payer name")
    wages: float = Field(default=0, ge=0, description="Wages, salaries, tips (W-2 box 1)")
    other_income: float = Field(
        default=0,
        description="Non-wage income on this document. Negative for capital or rental losses.",
    )
    federal_withheld: float = Field(default=0, ge=0)
    state_withheld: float = Field(default=0, ge=0)


class DeductionItem(BaseModel):
    """A deduction or adjustment claimed on the return."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    category: DeductionCategory
    amount: float = Field(..., ge=0)
    is_itemized: bool = Field(
        ...,
        description="True for Schedule A deductions, False for above-the-line adjustments",
    )


class CreditClaim(BaseModel):
    """A credit claimed on the return."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    credit_type: CreditType
    amount: float = Field(..., ge=0)
    is_refundable: bool = False


class ExpenseLineItem(BaseModel):
    """A Schedule C business expense."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    category: str = Field(..., description="Schedule C category, e.g. 'supplies' or 'Office Expense'")
    amount: float = Field(..., ge=0)
    description: Optional[str] = None


class DepreciableAsset(BaseModel):
    """Business property depreciated on Form 4562 and Schedule C line 13."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    cost_basis: float = Field(..., ge=0)
    placed_in_service: date
    asset_type: Optional[str] = Field(
        default=None, description="Asset class used to look up the recovery period, e.g. 'computers'",
    )
    recovery_period: Optional[float] = Field(default=None, gt=0, description="Overrides the asset type lookup")
    method: DepreciationMethod = "macrs"
    salvage_value: float = Field(default=0, ge=0, description="Straight-line and units-of-production only")
    business_use_percent: float = Field(default=100, ge=0, le=100)
    section_179_amount: float = Field(default=0, ge=0, description="Section 179 expense elected")
    bonus_depreciation: bool = False
    is_vehicle: bool = False
    total_units: Optional[float] = Field(default=None, gt=0)
    units_this_year: float = Field(default=0, ge=0)

    @model_validator(mode="after")
    def check_method_inputs(self) -> "DepreciableAsset":
        if self.method == "units_of_production" and self.total_units is None:
            raise ValueError(f"{self.name}: units_of_production requires total_units")
        if self.salvage_value > self.cost_basis:
            raise ValueError(f"{self.name}: salvage value exceeds cost basis")
        return self


class SelfEmploymentFacts(BaseModel):
    """Schedule C inputs for a sole proprietorship."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    gross_receipts: float = Field(default=0, ge=0)
    returns_allowances: float = Field(default=0, ge=0)
    cost_of_goods_sold: float = Field(default=0, ge=0)
    other_income: float = Field(default=0, ge=0)
    expense_line_items: tuple[ExpenseLineItem, ...] = ()
    home_office_square_feet: Optional[float] = Field(default=None, ge=0)
    assets: tuple[DepreciableAsset, ...] = ()


class AMTPreferenceItems(BaseModel):
    """Form 6251 add-backs and preference items."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    state_local_tax_deduction: float = Field(default=0, ge=0)
    misc_itemized_deductions: float = Field(default=0, ge=0)
    private_activity_bond_interest: float = Field(default=0, ge=0)
    exercised_isos: float = Field(
        default=0, ge=0,
        description="Bargain element of incentive stock options exercised and held",
    )
    depreciation_adjustment: float = Field(default=0, ge=0)

    @property
    def total(self) -> float:
        return (
            self.state_local_tax_deduction
            + self.misc_itemized_deductions
            + self.private_activity_bond_interest
            + self.exercised_isos
            + self.depreciation_adjustment
        )


class Dependent(BaseModel):
    """A dependent claimed on the return."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    age: int = Field(..., ge=0)
    is_student: bool = False
    is_disabled: bool = False

    @property
    def is_ctc_child(self) -> bool:
        """Qualifying child for the Child Tax Credit (under 17)."""
        return self.age < 17

    @property
    def is_eitc_child(self) -> bool:
        """Qualifying child for EITC (under 19, student under 24, or disabled)."""
        return self.age < 19 or (self.is_student and self.age < 24) or self.is_disabled


class TaxReturnFacts(BaseModel):
    """All raw financial facts for one taxpayer and tax year."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    taxpayer_id: str = Field(..., min_length=1)
    tax_year: int = Field(..., ge=1900, le=2100)
    filing_status: FilingStatus
    taxpayer_age: Optional[int] = Field(default=None, ge=0)
    spouse_age: Optional[int] = Field(default=None, ge=0)
    state_code: Optional[str] = Field(default=None, description="Two-letter residence state")

    income_items: tuple[IncomeItem, ...] = ()
    deduction_items: tuple[DeductionItem, ...] = ()
    credit_claims: tuple[CreditClaim, ...] = ()
    self_employment: Optional[SelfEmploymentFacts] = None
    amt_preference_items: AMTPreferenceItems = Field(default_factory=AMTPreferenceItems)
    investment_income: float = Field(default=0, ge=0, description="Net investment income (Form 8960)")
    dependents: tuple[Dependent, ...] = ()

    hsa_coverage: Literal["individual", "family"] = "individual"
    elective_deferrals_401k: float = Field(default=0, ge=0, description="W-2 box 12 codes D/E")

    @field_validator("taxpayer_id")
    @classmethod
    def _strip_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("taxpayer_id must not be blank")
        return value

    @field_validator("state_code")
    @classmethod
    def _upper_state(cls, value: Optional[str]) -> Optional[str]:
        return value.strip().upper() if value else None

    # --- Aggregates (order-independent sums) ---

    @property
    def total_wages(self) -> float:
        return sum(item.wages for item in self.income_items)

    @property
    def total_other_income(self) -> float:
        return sum(item.other_income for item in self.income_items)

    @property
    def federal_withheld(self) -> float:
        return sum(item.federal_withheld for item in self.income_items)

    @property
    def state_withheld(self) -> float:
        return sum(item.state_withheld for item in self.income_items)

    @property
    def itemized_items(self) -> list[DeductionItem]:
        return [d for d in self.deduction_items if d.is_itemized]

    @property
    def adjustment_items(self) -> list[DeductionItem]:
        return [d for d in self.deduction_items if not d.is_itemized]

    def deduction_total(self, *categories: str, itemized: Optional[bool] = None) -> float:
        """Sum deduction amounts in the given categories.

        Args:
            categories: Category names to include
            itemized: Restrict to itemized (True) or above-the-line (False) items
        """
        return sum(
            d.amount for d in self.deduction_items
            if d.category in categories and (itemized is None or d.is_itemized == itemized)
        )

    def credit_total(self, *credit_types: str) -> float:
        return sum(c.amount for c in self.credit_claims if c.credit_type in credit_types)

    @property
    def dependent_count(self) -> int:
        return len(self.dependents)

    @property
    def ctc_children(self) -> int:
        return sum(1 for d in self.dependents if d.is_ctc_child)

    @property
    def eitc_children(self) -> int:
        return sum(1 for d in self.dependents if d.is_eitc_child)

    @property
    def student_dependents(self) -> int:
        return sum(1 for d in self.dependents if d.is_student)


def parse_facts(data: dict) -> TaxReturnFacts:
    """Build TaxReturnFacts from a plain dict (YAML/JSON document).

    Raises:
        InputError: If required identifiers are missing or any field is malformed
    """
    if not isinstance(data, dict):
        raise InputError(f"Tax return facts must be a mapping, got {type(data).__name__}")
    try:
        return TaxReturnFacts.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        )
        raise InputError(f"Invalid tax return facts: {problems}") from e


# =============================================================================
# Outputs
# =============================================================================


class CalculationResult(BaseModel):
    """Computed liability for one jurisdiction (federal or a state).

    Invariants: at most one of refund/amount_owed is non-zero and
    refund - amount_owed == total_withheld - total_tax.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    jurisdiction: str = Field(default="federal", description="'federal' or a two-letter state code")
    taxpayer_id: str
    tax_year: int
    filing_status: FilingStatus

    gross_income: float = 0
    adjustments: float = 0
    agi: float = 0
    standard_deduction: float = 0
    itemized_deduction: float = 0
    deduction_used: DeductionUsed = "standard"
    deduction_amount: float = 0
    taxable_income: float = Field(default=0, ge=0)

    tax_liability: float = Field(default=0, ge=0)
    self_employment_tax: float = Field(default=0, ge=0)
    amt: float = Field(default=0, ge=0)
    niit: float = Field(default=0, ge=0)
    total_credits: float = Field(default=0, ge=0)
    total_tax: float = Field(default=0, ge=0)

    total_withheld: float = Field(default=0, ge=0)
    refund: float = Field(default=0, ge=0)
    amount_owed: float = Field(default=0, ge=0)
    effective_rate: float = Field(default=0, description="total_tax / gross_income, percent")


class ValidationIssue(BaseModel):
    """One finding from the validation engine."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    field: str
    message: str
    correction: Optional[float] = Field(default=None, description="Suggested corrected value")
    kind: IssueKind = "limit_violation"


class ValidationReport(BaseModel):
    """Errors, warnings and suggestions for one return.

    Errors block e-file and amendment. Warnings are auto-correctable and
    must be surfaced. Suggestions are informational.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    errors: tuple[ValidationIssue, ...] = ()
    warnings: tuple[ValidationIssue, ...] = ()
    suggestions: tuple[ValidationIssue, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def summary(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "errors": len(self.errors),
            "warnings": len(self.warnings),
            "suggestions": len(self.suggestions),
        }
