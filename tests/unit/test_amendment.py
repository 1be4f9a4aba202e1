"""Tests for amended return comparison, eligibility and accruals."""

from datetime import date

import pytest

from taxprep.sdk import (
    CalculationResult,
    EligibilityError,
    InputError,
    ReturnSnapshot,
    amend_return,
    calculate_federal_return,
    calculate_interest_and_penalties,
    check_amendment_eligibility,
    diff_returns,
    form_1040x,
    generate_explanation,
)

from tests.factories import form_1099, w2


@pytest.fixture
def snapshot(make_facts):
    """Snapshot factory: facts overrides plus filing state."""
    def _snapshot(status="accepted", filed_date=date(2025, 4, 10), due_date=date(2025, 4, 15), **facts):
        facts.setdefault("income_items", [w2(16000, withheld=1140)])
        parsed = make_facts(**facts)
        return ReturnSnapshot(
            facts=parsed,
            result=calculate_federal_return(parsed),
            status=status,
            filed_date=filed_date,
            due_date=due_date,
        )
    return _snapshot


@pytest.fixture
def forgot_interest(snapshot):
    """Original refund of $1,000; the amended return adds $8,000 of interest."""
    original = snapshot()
    amended = snapshot(income_items=[w2(16000, withheld=1140), form_1099("1099-INT", 8000)])
    return original, amended


def _line(diff, label):
    return next(line for line in diff.lines if line.line_label == label)


class TestDiffReturns:

    def test_added_interest_income(self, forgot_interest):
        original, amended = forgot_interest
        assert original.result.refund == 1000.00
        assert amended.result.refund == 200.00

        diff = diff_returns(original, amended)

        assert _line(diff, "Interest income").change == 8000
        assert _line(diff, "Total Income").change == 8000
        assert _line(diff, "Taxable Income").change == 8000
        assert _line(diff, "Total Tax").change == 800.00
        assert _line(diff, "Total Tax").refund_effect == -1
        assert _line(diff, "Total Payments").change == 0
        assert diff.summary.net_change == -800.00
        assert diff.summary.additional_tax_owed == 800.00
        assert diff.summary.additional_refund == 0

    def test_net_change_matches_refund_effects(self, forgot_interest):
        diff = diff_returns(*forgot_interest)
        weighted = sum(line.refund_effect * line.change for line in diff.lines)
        assert weighted == pytest.approx(diff.summary.net_change)

    def test_summary_settled_from_tax_and_payments(self, make_facts):
        """Results loaded from storage may carry no refund or owed figures."""
        facts = make_facts()

        def stored(total_tax):
            result = CalculationResult(
                taxpayer_id="tp-001", tax_year=2024, filing_status="single",
                total_tax=total_tax, total_withheld=7000,
            )
            return ReturnSnapshot(facts=facts, result=result, status="filed")

        diff = diff_returns(stored(6000), stored(6800))

        assert diff.summary.original_refund == 1000.00
        assert diff.summary.amended_refund == 200.00
        assert diff.summary.net_change == -800.00
        assert diff.summary.additional_tax_owed == 800.00
        weighted = sum(line.refund_effect * line.change for line in diff.lines)
        assert weighted == pytest.approx(diff.summary.net_change)

    def test_every_line_reported_in_form_order(self, forgot_interest):
        diff = diff_returns(*forgot_interest)
        sections = [line.section for line in diff.lines]
        assert sections[0] == "Income"
        assert sections[-1] == "Totals"
        assert len(diff.lines) == 29
        assert {line.line_label for line in diff.changed_lines} == {
            "Interest income", "Total Income", "Adjusted Gross Income",
            "Taxable Income", "Tax", "Total Tax",
        }

    def test_reversed_diff_negates_net_change(self, forgot_interest):
        original, amended = forgot_interest
        forward = diff_returns(original, amended)
        backward = diff_returns(amended, original)
        assert backward.summary.net_change == -forward.summary.net_change
        assert backward.summary.additional_refund == 800.00

    def test_identical_returns_have_no_changes(self, snapshot):
        diff = diff_returns(snapshot(), snapshot())
        assert not diff.has_changes
        assert diff.summary.net_change == 0

    def test_extra_withholding_increases_refund(self, snapshot):
        diff = diff_returns(snapshot(), snapshot(income_items=[w2(16000, withheld=1540)]))
        assert _line(diff, "Total Payments").change == 400
        assert diff.summary.additional_refund == 400

    def test_different_taxpayers_raise(self, snapshot):
        with pytest.raises(InputError, match="different taxpayers"):
            diff_returns(snapshot(), snapshot(taxpayer_id="tp-002"))

    def test_different_years_raise(self, snapshot):
        with pytest.raises(InputError, match="different years"):
            diff_returns(snapshot(), snapshot(tax_year=2025))


class TestEligibility:

    def test_within_window(self, snapshot):
        result = check_amendment_eligibility(
            snapshot(filed_date=date(2021, 4, 15)), as_of=date(2024, 4, 15)
        )
        assert result.eligible
        assert result.deadline == date(2024, 4, 15)

    def test_past_deadline(self, snapshot):
        result = check_amendment_eligibility(
            snapshot(filed_date=date(2021, 4, 15)), as_of=date(2024, 4, 16)
        )
        assert not result.eligible
        assert result.issues[0].startswith("Amendment deadline has passed")

    def test_leap_day_filing(self, snapshot):
        result = check_amendment_eligibility(snapshot(filed_date=date(2024, 2, 29)), as_of=date(2025, 1, 1))
        assert result.deadline == date(2027, 2, 28)

    @pytest.mark.parametrize("status", ["draft", "rejected"])
    def test_unfiled_return(self, snapshot, status):
        result = check_amendment_eligibility(snapshot(status=status), as_of=date(2025, 6, 1))
        assert not result.eligible

    def test_missing_filed_date(self, snapshot):
        result = check_amendment_eligibility(snapshot(filed_date=None), as_of=date(2025, 6, 1))
        assert not result.eligible
        assert result.deadline is None

    def test_audit_and_repeat_amendments_warn(self, snapshot):
        original = snapshot().model_copy(update={"under_audit": True, "amendment_count": 3})
        result = check_amendment_eligibility(original, as_of=date(2025, 6, 1))
        assert result.eligible
        assert len(result.warnings) == 2


class TestInterestAndPenalties:

    def test_ninety_days_late(self, rules_2024):
        accruals = calculate_interest_and_penalties(
            1000, date(2025, 4, 15), date(2025, 7, 14), rules_2024.amendment
        )
        assert accruals["days_late"] == 90
        assert accruals["months_late"] == 3
        assert accruals["interest"] == 17.41
        assert accruals["penalty"] == 15.00
        assert accruals["charges"] == 32.41
        assert accruals["total"] == 1032.41

    def test_penalty_capped(self, rules_2024):
        accruals = calculate_interest_and_penalties(
            1000, date(2020, 4, 15), date(2024, 9, 1), rules_2024.amendment
        )
        assert accruals["penalty"] == 250.00

    def test_nothing_owed(self, rules_2024):
        accruals = calculate_interest_and_penalties(0, date(2025, 4, 15), date(2025, 7, 14), rules_2024.amendment)
        assert accruals["total"] == 0

    def test_not_yet_due(self, rules_2024):
        accruals = calculate_interest_and_penalties(500, date(2025, 4, 15), date(2025, 4, 1), rules_2024.amendment)
        assert accruals["days_late"] == 0
        assert accruals["charges"] == 0
        assert accruals["total"] == 500.00


class TestExplanationAndForm:

    def test_explanation_groups_by_section(self, forgot_interest):
        text = generate_explanation(diff_returns(*forgot_interest))
        assert text.startswith("Income: Interest income: changed from $0.00 to $8,000.00")
        assert "\n\nTotals: Total Tax: changed from $140.00 to $940.00" in text

    def test_default_explanation(self, snapshot):
        assert generate_explanation(diff_returns(snapshot(), snapshot())) == "Correcting previously filed return."

    def test_form_columns(self, forgot_interest):
        form = form_1040x(diff_returns(*forgot_interest))
        interest = next(row for row in form["lines"] if row["line"] == "Interest income")
        assert form["form"] == "1040-X"
        assert (interest["column_a"], interest["column_b"], interest["column_c"]) == (0, 8000, 8000)
        assert form["summary"]["net_change"] == -800.00


class TestAmendReturn:

    def test_amendment_with_accruals(self, forgot_interest):
        original, amended = forgot_interest
        amendment = amend_return(original, amended, as_of=date(2025, 7, 14))

        assert amendment.eligibility.eligible
        assert amendment.diff.summary.additional_tax_owed == 800.00
        assert amendment.accruals["interest"] == 13.93
        assert amendment.accruals["penalty"] == 12.00
        assert amendment.explanation.startswith("Income:")

    def test_ineligible_raises(self, forgot_interest):
        original, amended = forgot_interest
        with pytest.raises(EligibilityError) as exc_info:
            amend_return(original, amended, as_of=date(2030, 1, 1))
        assert exc_info.value.deadline == date(2028, 4, 10)
        assert "deadline has passed" in str(exc_info.value)
