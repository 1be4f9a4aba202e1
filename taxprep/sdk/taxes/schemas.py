"""Pydantic schemas for tax rules validation.

These schemas validate the tax_rules/*.yaml files and provide typed access
to per-year parameters: brackets, standard deductions, SE tax rates, depreciation, AMT and
NIIT thresholds, contribution limits, credit phase-outs and amendment terms.
"""

from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TaxBracket(BaseModel):
    """Single tax bracket entry. max=None means unbounded."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    min: float = Field(..., ge=0, description="Lower bound (inclusive)")
    max: Optional[float] = Field(default=None, description="Upper bound (None for top bracket)")
    rate: float = Field(..., ge=0, le=1, description="Tax rate as decimal")


def bracket_problems(brackets: Iterable[TaxBracket]) -> list[str]:
    """Check brackets are contiguous, ascending, start at 0 and end unbounded.

    Returns:
        List of problem descriptions (empty when well formed)
    """
    brackets = list(brackets)
    if not brackets:
        return ["no brackets defined"]

    problems = []
    if brackets[0].min != 0:
        problems.append(f"first bracket starts at {brackets[0].min}, expected 0")

    for i, bracket in enumerate(brackets):
        is_last = i == len(brackets) - 1
        if bracket.max is None and not is_last:
            problems.append(f"bracket {i} is unbounded but is not the last bracket")
        if bracket.max is not None and bracket.max <= bracket.min:
            problems.append(f"bracket {i} max {bracket.max} is not above min {bracket.min}")
        if is_last and bracket.max is not None:
            problems.append(f"last bracket must be unbounded, got max={bracket.max}")
        if i > 0 and brackets[i - 1].max is not None and brackets[i - 1].max != bracket.min:
            problems.append(
                f"bracket {i} starts at {bracket.min}, previous ends at {brackets[i - 1].max}"
            )
    return problems


class PerStatus(BaseModel):
    """A value that varies by filing status."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    single: float
    married_filing_jointly: float
    married_filing_separately: float
    head_of_household: float
    qualifying_widow: float

    def for_status(self, filing_status: str) -> float:
        return getattr(self, filing_status)


class FilingStatusRules(BaseModel):
    """Tax rules for a filing status (single, MFJ, etc.)."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    standard_deduction: float = Field(..., ge=0)
    tax_brackets: tuple[TaxBracket, ...]

    @model_validator(mode="after")
    def check_brackets(self) -> "FilingStatusRules":
        problems = bracket_problems(self.tax_brackets)
        if problems:
            raise ValueError("; ".join(problems))
        return self


class FilingStatuses(BaseModel):
    """Brackets and standard deduction for every filing status."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    single: FilingStatusRules
    married_filing_jointly: FilingStatusRules
    married_filing_separately: FilingStatusRules
    head_of_household: FilingStatusRules
    qualifying_widow: FilingStatusRules

    def for_status(self, filing_status: str) -> FilingStatusRules:
        return getattr(self, filing_status)


class SelfEmploymentRules(BaseModel):
    """Schedule C and Schedule SE parameters."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    net_earnings_rate: float = Field(..., gt=0, le=1, description="Share of net profit subject to SE tax")
    social_security_rate: float = Field(..., ge=0, le=1)
    social_security_wage_base: float = Field(..., gt=0)
    medicare_rate: float = Field(..., ge=0, le=1)
    additional_medicare_rate: float = Field(..., ge=0, le=1)
    additional_medicare_threshold: float = Field(
        ..., ge=0, description="Flat threshold, not adjusted for filing status",
    )
    deductible_fraction: float = Field(..., ge=0, le=1)
    filing_threshold: float = Field(..., ge=0, description="Net SE earnings that require a return")
    meals_deductible_fraction: float = Field(..., ge=0, le=1)
    home_office_rate: float = Field(..., ge=0, description="Simplified method, dollars per sq ft")
    home_office_max_square_feet: float = Field(..., ge=0)
    standard_mileage_rate: float = Field(..., ge=0)


class DepreciationRules(BaseModel):
    """MACRS tables, section 179 limits and bonus depreciation (Form 4562)."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    macrs_half_year: dict[int, tuple[float, ...]] = Field(
        ..., description="200%/150% DB half-year convention rates by recovery period",
    )
    recovery_periods: dict[str, float] = Field(
        ..., description="Asset type -> recovery period in years",
    )
    default_recovery_period: float = Field(default=7, gt=0)
    real_property_periods: tuple[float, ...] = Field(
        default=(27.5, 39), description="Straight-line only; no bonus, excluded from the mid-quarter test",
    )
    section_179_limit: float = Field(..., ge=0)
    section_179_phase_out_threshold: float = Field(..., ge=0)
    section_179_vehicle_limit: float = Field(..., ge=0)
    bonus_rate: float = Field(..., ge=0, le=1)
    mid_quarter_threshold: float = Field(default=0.40, ge=0, le=1)

    @model_validator(mode="after")
    def check_tables(self) -> "DepreciationRules":
        for period, rates in self.macrs_half_year.items():
            if len(rates) != period + 1:
                raise ValueError(f"MACRS {period}-year table needs {period + 1} rates, got {len(rates)}")
            if abs(sum(rates) - 1) > 0.001:
                raise ValueError(f"MACRS {period}-year rates sum to {sum(rates):.4f}, expected 1")
        return self


class AMTRules(BaseModel):
    """Alternative Minimum Tax parameters (Form 6251)."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    exemption: PerStatus
    phase_out_threshold: PerStatus
    phase_out_rate: float = Field(..., ge=0, le=1)
    rate_threshold: float = Field(..., gt=0, description="Upper bound of the low AMT rate")
    rate_threshold_mfs: float = Field(..., gt=0)
    low_rate: float = Field(..., ge=0, le=1)
    high_rate: float = Field(..., ge=0, le=1)


class NIITRules(BaseModel):
    """Net Investment Income Tax parameters (Form 8960)."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    rate: float = Field(..., ge=0, le=1)
    threshold: PerStatus


class LimitRules(BaseModel):
    """Statutory deduction caps and contribution limits."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    salt_cap: float = Field(..., ge=0)
    salt_cap_mfs: float = Field(..., ge=0)
    salt_phase_out_threshold: Optional[float] = Field(
        default=None, description="MAGI above which the SALT cap phases down",
    )
    salt_phase_out_threshold_mfs: Optional[float] = None
    salt_phase_out_rate: float = Field(default=0, ge=0, le=1)
    salt_floor: float = Field(default=0, ge=0, description="Cap never phases below this")
    salt_floor_mfs: float = Field(default=0, ge=0)
    charitable_cash_agi_fraction: float = Field(..., ge=0, le=1)
    medical_agi_floor: float = Field(..., ge=0, le=1)
    mortgage_interest_review: float = Field(..., ge=0)
    student_loan_interest: float = Field(..., ge=0)
    ira_contribution: float = Field(..., ge=0)
    ira_catch_up: float = Field(..., ge=0)
    ira_catch_up_age: int = Field(..., ge=0)
    hsa_individual: float = Field(..., ge=0)
    hsa_family: float = Field(..., ge=0)
    hsa_catch_up: float = Field(..., ge=0)
    hsa_catch_up_age: int = Field(..., ge=0)
    elective_deferral_401k: float = Field(..., ge=0)
    elective_deferral_401k_catch_up: float = Field(..., ge=0)
    elective_deferral_401k_catch_up_age: int = Field(..., ge=0)


class ChildTaxCreditRules(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    amount_per_child: float = Field(..., ge=0)
    phase_out_threshold: PerStatus
    phase_out_step: float = Field(..., gt=0, description="Income step, e.g. each $1,000")
    phase_out_per_step: float = Field(..., ge=0, description="Reduction per full step")


class EITCRules(BaseModel):
    """Earned Income Tax Credit tables, indexed by qualifying children (0-3)."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    max_credit: tuple[float, float, float, float]
    income_limit: tuple[float, float, float, float]
    income_limit_joint: tuple[float, float, float, float]
    investment_income_limit: float = Field(..., ge=0)
    max_qualifying_children: int = Field(default=3, ge=0)


class EducationCreditRules(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    american_opportunity_per_student: float = Field(..., ge=0)
    lifetime_learning_per_return: float = Field(..., ge=0)


class FilingThreshold(BaseModel):
    """Gross income that requires a return, by age bracket."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    under_65: float = Field(..., ge=0)
    age_65_plus: float = Field(..., ge=0, description="One spouse (or the filer) 65 or older")
    both_65_plus: Optional[float] = Field(default=None, ge=0, description="Joint filers only")


class FilingThresholds(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    single: FilingThreshold
    married_filing_jointly: FilingThreshold
    married_filing_separately: FilingThreshold
    head_of_household: FilingThreshold
    qualifying_widow: FilingThreshold

    def for_status(self, filing_status: str) -> FilingThreshold:
        return getattr(self, filing_status)


class AmendmentRules(BaseModel):
    """Form 1040-X window and late-payment accrual terms."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    deadline_years: int = Field(default=3, ge=1)
    annual_interest_rate: float = Field(default=0.07, ge=0)
    penalty_rate_per_month: float = Field(default=0.005, ge=0)
    penalty_cap: float = Field(default=0.25, ge=0)
    days_per_month: int = Field(default=30, gt=0)


class TaxRules(BaseModel):
    """Complete federal tax rules for a year."""
    model_config = ConfigDict(extra="ignore", frozen=True)  # Allow unknown fields for forward compat

    tax_year: int
    filing_statuses: FilingStatuses
    self_employment: SelfEmploymentRules
    depreciation: DepreciationRules
    amt: AMTRules
    niit: NIITRules
    limits: LimitRules
    child_tax_credit: ChildTaxCreditRules
    eitc: EITCRules
    education: EducationCreditRules
    filing_thresholds: FilingThresholds
    amendment: AmendmentRules = Field(default_factory=AmendmentRules)

    def brackets_for(self, filing_status: str) -> tuple[TaxBracket, ...]:
        return self.filing_statuses.for_status(filing_status).tax_brackets


class StateTaxInfo(BaseModel):
    """One state's income tax schedule."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    has_income_tax: bool
    flat_rate: Optional[float] = Field(default=None, ge=0, le=1)
    brackets: Optional[tuple[TaxBracket, ...]] = None
    note: Optional[str] = None
    form: Optional[str] = Field(default=None, description="Resident return form, e.g. 'Form 540'")
    filing_threshold: Optional[float] = Field(
        default=None, ge=0, description="Income that requires a return (default_filing_threshold if unset)",
    )

    @property
    def is_flat(self) -> bool:
        return self.flat_rate is not None

    @model_validator(mode="after")
    def check_schedule(self) -> "StateTaxInfo":
        if not self.has_income_tax:
            return self
        if (self.flat_rate is None) == (self.brackets is None):
            raise ValueError(f"{self.name}: exactly one of flat_rate or brackets is required")
        if self.brackets is not None:
            problems = bracket_problems(self.brackets)
            if problems:
                raise ValueError(f"{self.name}: " + "; ".join(problems))
        return self


class StateRules(BaseModel):
    """State income tax tables for a year, keyed by two-letter code."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    default_filing_threshold: float = Field(default=5000, ge=0)
    states: dict[str, StateTaxInfo]
