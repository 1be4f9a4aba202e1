"""Tests for the validation engine."""

import pytest

from taxprep.sdk import InputError, calculate_federal_return, validate
from taxprep.sdk.validation import allowed_child_tax_credit, filing_threshold

from tests.factories import asset, credit, deduction, w2


def _fields(issues):
    return [issue.field for issue in issues]


def _issue(issues, field):
    matches = [issue for issue in issues if issue.field == field]
    assert matches, f"no issue for {field}: {_fields(issues)}"
    return matches[0]


@pytest.fixture
def check(make_facts):
    """Build facts, compute the federal result and validate it."""
    def _check(**overrides):
        overrides.setdefault("income_items", [w2(75000, withheld=9000)])
        facts = make_facts(**overrides)
        return validate(facts, calculate_federal_return(facts))
    return _check


def test_clean_return_has_no_issues(check):
    report = check()
    assert report.is_valid
    assert report.summary == {"is_valid": True, "errors": 0, "warnings": 0, "suggestions": 0}


def test_validate_returns_new_report_each_time(make_facts):
    facts = make_facts(income_items=[w2(75000, withheld=9000)])
    result = calculate_federal_return(facts)
    assert validate(facts, result) is not validate(facts, result)


class TestItemizedLimits:

    def test_salt_over_cap(self, check):
        report = check(deduction_items=[deduction("state_local_tax", 9000), deduction("property_tax", 5200)])
        issue = _issue(report.warnings, "state_local_tax")
        assert issue.correction == 10000
        assert report.is_valid

    def test_salt_cap_halved_for_separate_filers(self, check):
        report = check(
            filing_status="married_filing_separately",
            deduction_items=[deduction("state_local_tax", 7000)],
        )
        assert _issue(report.warnings, "state_local_tax").correction == 5000

    def test_charitable_cash_over_sixty_percent(self, check):
        report = check(
            income_items=[w2(50000, withheld=4000)],
            deduction_items=[deduction("charitable_cash", 40000)],
        )
        assert _issue(report.warnings, "charitable_cash").correction == 30000

    def test_medical_below_floor(self, check):
        report = check(
            income_items=[w2(80000, withheld=9000)],
            deduction_items=[deduction("medical", 5000)],
        )
        assert _issue(report.warnings, "medical").correction == 0

    def test_medical_above_floor(self, check):
        report = check(
            income_items=[w2(80000, withheld=9000)],
            deduction_items=[deduction("medical", 10000)],
        )
        assert _issue(report.warnings, "medical").correction == 4000


class TestContributionLimits:

    def test_ira_over_limit(self, check):
        report = check(deduction_items=[deduction("ira_contribution", 8000, itemized=False)])
        issue = _issue(report.errors, "ira_contribution")
        assert issue.correction == 7000
        assert not report.is_valid

    def test_ira_catch_up_at_fifty(self, check):
        report = check(taxpayer_age=52, deduction_items=[deduction("ira_contribution", 8000, itemized=False)])
        assert "ira_contribution" not in _fields(report.errors)

    def test_ira_limit_per_spouse(self, check):
        report = check(
            filing_status="married_filing_jointly",
            taxpayer_age=52,
            spouse_age=45,
            deduction_items=[deduction("ira_contribution", 16000, itemized=False)],
        )
        assert _issue(report.errors, "ira_contribution").correction == 15000

    def test_hsa_family_limit(self, check):
        report = check(
            hsa_coverage="family",
            deduction_items=[deduction("hsa_contribution", 9000, itemized=False)],
        )
        assert _issue(report.errors, "hsa_contribution").correction == 8300

    def test_hsa_catch_up_at_fifty_five(self, check):
        report = check(
            taxpayer_age=56,
            hsa_coverage="family",
            deduction_items=[deduction("hsa_contribution", 9300, itemized=False)],
        )
        assert "hsa_contribution" not in _fields(report.errors)

    def test_401k_over_limit(self, check):
        report = check(elective_deferrals_401k=25000)
        assert _issue(report.errors, "elective_deferrals_401k").correction == 23000

    def test_401k_catch_up(self, check):
        report = check(taxpayer_age=50, elective_deferrals_401k=30500)
        assert "elective_deferrals_401k" not in _fields(report.errors)

    def test_student_loan_interest_capped(self, check):
        report = check(deduction_items=[deduction("student_loan_interest", 3000, itemized=False)])
        assert _issue(report.warnings, "student_loan_interest").correction == 2500


class TestCredits:

    def test_child_tax_credit_phase_out(self, check):
        report = check(
            income_items=[w2(210500, withheld=40000)],
            dependents=[{"age": 5}, {"age": 10}],
            credit_claims=[credit("child_tax_credit", 4000)],
        )
        assert _issue(report.warnings, "child_tax_credit").correction == 3500

    def test_child_tax_credit_allowed_amount(self, make_facts, rules_2024):
        facts = make_facts(dependents=[{"age": 5}, {"age": 16}, {"age": 17}])
        # Only children under 17 qualify
        assert allowed_child_tax_credit(facts, 100000, rules_2024) == 4000
        assert allowed_child_tax_credit(facts, 300000, rules_2024) == 0

    def test_eitc_over_income_limit(self, check):
        report = check(
            income_items=[w2(50000, withheld=3000)],
            dependents=[{"age": 8}],
            credit_claims=[credit("earned_income_credit", 3000, refundable=True)],
        )
        issue = _issue(report.errors, "earned_income_credit")
        assert issue.kind == "eligibility"
        assert issue.correction == 0

    def test_eitc_over_max_credit(self, check):
        report = check(
            income_items=[w2(30000, withheld=1000)],
            dependents=[{"age": 8}],
            credit_claims=[credit("earned_income_credit", 5000, refundable=True)],
        )
        assert _issue(report.errors, "earned_income_credit").correction == 4213

    def test_eitc_investment_income_disqualifies(self, check):
        report = check(
            income_items=[w2(30000, withheld=1000)],
            investment_income=12000,
            dependents=[{"age": 8}],
            credit_claims=[credit("earned_income_credit", 2000, refundable=True)],
        )
        assert _issue(report.errors, "earned_income_credit").kind == "eligibility"

    def test_american_opportunity_limit(self, check):
        report = check(credit_claims=[credit("american_opportunity_credit", 3000)])
        assert _issue(report.errors, "american_opportunity_credit").correction == 2500

    def test_american_opportunity_per_student(self, check):
        report = check(
            dependents=[{"age": 19, "is_student": True}, {"age": 20, "is_student": True}],
            credit_claims=[credit("american_opportunity_credit", 5000)],
        )
        assert "american_opportunity_credit" not in _fields(report.errors)

    def test_lifetime_learning_limit(self, check):
        report = check(credit_claims=[credit("lifetime_learning_credit", 2500)])
        assert _issue(report.errors, "lifetime_learning_credit").correction == 2000

    def test_nonrefundable_above_liability(self, check):
        report = check(
            income_items=[w2(20000, withheld=1000)],
            credit_claims=[credit("child_care_credit", 2000)],
        )
        assert _issue(report.warnings, "credit_claims").correction == 540

    def test_ceiling_matches_credits_applied(self, make_facts):
        facts = make_facts(
            income_items=[w2(150000, withheld=30000)],
            amt_preference_items={"exercised_isos": 200000},
            credit_claims=[credit("foreign_tax_credit", 30000)],
        )
        result = calculate_federal_return(facts)
        report = validate(facts, result)
        assert _issue(report.warnings, "credit_claims").correction == result.total_credits


class TestMathConsistency:

    def test_tampered_agi_is_error(self, make_facts):
        facts = make_facts(income_items=[w2(75000, withheld=9000)])
        result = calculate_federal_return(facts)
        tampered = result.model_copy(update={"agi": result.agi + 500})

        report = validate(facts, tampered)
        issue = _issue(report.errors, "agi")
        assert issue.kind == "math_mismatch"
        assert issue.correction == 75000

    def test_differences_within_a_dollar_pass(self, make_facts):
        facts = make_facts(income_items=[w2(75000, withheld=9000)])
        result = calculate_federal_return(facts)
        nudged = result.model_copy(update={"gross_income": result.gross_income + 0.5})
        assert validate(facts, nudged).is_valid

    def test_wrong_refund_is_error(self, make_facts):
        facts = make_facts(income_items=[w2(75000, withheld=9000)])
        result = calculate_federal_return(facts)
        tampered = result.model_copy(update={"refund": 2000.0})
        assert "refund" in _fields(validate(facts, tampered).errors)


class TestFilingRequirementAndDataQuality:

    def test_below_filing_threshold(self, check):
        report = check(income_items=[w2(10000, withheld=500)])
        issue = _issue(report.suggestions, "gross_income")
        assert issue.kind == "filing_requirement"

    def test_self_employment_requires_filing(self, check):
        report = check(income_items=[], self_employment={"gross_receipts": 5000})
        issue = _issue(report.warnings, "self_employment")
        assert issue.kind == "filing_requirement"

    @pytest.mark.parametrize("overrides,expected", [
        ({}, 14600),
        ({"taxpayer_age": 70}, 16550),
        ({"filing_status": "married_filing_jointly", "taxpayer_age": 66}, 30750),
        ({"filing_status": "married_filing_jointly", "taxpayer_age": 66, "spouse_age": 67}, 32300),
    ])
    def test_filing_threshold(self, make_facts, rules_2024, overrides, expected):
        assert filing_threshold(make_facts(**overrides), rules_2024) == expected

    def test_wages_without_withholding(self, check):
        report = check(income_items=[w2(50000)])
        assert _issue(report.warnings, "income_items").kind == "data_quality"

    def test_head_of_household_without_dependents(self, check):
        report = check(filing_status="head_of_household")
        assert "filing_status" in _fields(report.warnings)

    def test_home_office_over_maximum(self, check):
        report = check(self_employment={"gross_receipts": 40000, "home_office_square_feet": 450})
        assert _issue(report.warnings, "self_employment.home_office_square_feet").correction == 300

    def test_large_mortgage_interest_flagged(self, check):
        report = check(
            income_items=[w2(400000, withheld=100000)],
            deduction_items=[deduction("mortgage_interest", 60000)],
        )
        assert _issue(report.warnings, "mortgage_interest").kind == "data_quality"

    def test_mortgage_interest_at_limit_not_flagged(self, check):
        report = check(deduction_items=[deduction("mortgage_interest", 50000)])
        assert "mortgage_interest" not in _fields(report.warnings)

    def test_expenses_near_gross_receipts(self, check):
        report = check(self_employment={
            "gross_receipts": 10000,
            "expense_line_items": [{"category": "supplies", "amount": 9500}],
        })
        assert _issue(report.warnings, "self_employment.expense_line_items").kind == "data_quality"

    def test_section_179_above_business_income(self, check):
        report = check(self_employment={
            "gross_receipts": 20000,
            "assets": [asset("Equipment", 40000, section_179_amount=40000)],
        })
        issue = _issue(report.warnings, "self_employment.assets")
        assert issue.correction == 20000.00
        assert "carries forward" in issue.message

    def test_section_179_within_business_income(self, check):
        report = check(self_employment={
            "gross_receipts": 60000,
            "assets": [asset("Equipment", 10000, section_179_amount=10000)],
        })
        assert "self_employment.assets" not in _fields(report.warnings)

    def test_mid_quarter_convention_suggested(self, check):
        report = check(self_employment={
            "gross_receipts": 40000,
            "assets": [asset("Server", 3000, "2024-11-01")],
        })
        assert _issue(report.suggestions, "self_employment.assets").kind == "data_quality"


class TestSuggestions:

    def test_standard_beats_small_itemized(self, check):
        report = check(deduction_items=[deduction("mortgage_interest", 5000)])
        assert "deduction_items" in _fields(report.suggestions)
        assert report.is_valid

    def test_high_income_review(self, check):
        report = check(income_items=[w2(250000, withheld=60000)])
        assert "gross_income" in _fields(report.suggestions)

    def test_estimated_payments_for_self_employment(self, check):
        report = check(self_employment={"gross_receipts": 30000})
        assert "self_employment" in _fields(report.suggestions)

    def test_high_amt_risk(self, check):
        report = check(
            income_items=[w2(150000, withheld=30000)],
            amt_preference_items={"exercised_isos": 50000, "state_local_tax_deduction": 12000},
        )
        assert _issue(report.suggestions, "amt_preference_items").message.startswith("High AMT risk")

    def test_medium_amt_risk_not_suggested(self, check):
        report = check(amt_preference_items={"exercised_isos": 50000})
        assert "amt_preference_items" not in _fields(report.suggestions)


class TestInputs:

    def test_accepts_plain_dicts(self, make_facts):
        facts = make_facts(income_items=[w2(75000, withheld=9000)])
        result = calculate_federal_return(facts)
        report = validate(facts.model_dump(), result.model_dump())
        assert report.is_valid

    def test_rejects_wrong_types(self, make_facts):
        with pytest.raises(InputError):
            validate("facts", {})

    def test_rejects_malformed_result(self, make_facts):
        with pytest.raises(InputError, match="Invalid calculation result"):
            validate(make_facts(), {"taxpayer_id": "tp-001"})
