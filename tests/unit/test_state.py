"""Tests for state income tax tables and calculators."""

import pytest

from taxprep.sdk import InputError
from taxprep.sdk.taxes import (
    calculate_state_tax,
    compare_state_taxes,
    get_no_income_tax_states,
    get_required_state_returns,
    get_state_filing_threshold,
    get_state_info,
    list_states,
    load_state_rules,
)

NO_TAX_STATES = {"AK", "FL", "NV", "SD", "TN", "TX", "WA", "WY"}


@pytest.fixture
def state_rules():
    return load_state_rules(2024)


def test_table_covers_fifty_states_and_dc(state_rules):
    assert len(state_rules.states) == 51
    assert "DC" in state_rules.states


def test_no_income_tax_states(state_rules):
    codes = {s["code"] for s in get_no_income_tax_states(state_rules)}
    assert codes == NO_TAX_STATES


def test_list_sorted_by_name(state_rules):
    names = [s["name"] for s in list_states(state_rules)]
    assert names == sorted(names)
    assert names[0] == "Alabama"


class TestCalculateStateTax:

    def test_flat_rate(self, state_rules):
        result = calculate_state_tax("IL", 100000, state_rules)
        assert result["is_flat"] is True
        assert result["tax_liability"] == 4950.00
        assert result["effective_rate"] == 4.95

    def test_progressive_brackets(self, state_rules):
        result = calculate_state_tax("CA", 50000, state_rules)
        assert result["is_flat"] is False
        assert result["tax_liability"] == 1664.41
        assert result["state_name"] == "California"

    def test_no_income_tax(self, state_rules):
        result = calculate_state_tax("TX", 250000, state_rules)
        assert result["tax_liability"] == 0
        assert result["has_income_tax"] is False
        assert result["message"] == "Texas has no state income tax"

    def test_code_is_case_insensitive(self, state_rules):
        assert calculate_state_tax("ca", 50000, state_rules)["state_code"] == "CA"

    def test_zero_income(self, state_rules):
        result = calculate_state_tax("CA", 0, state_rules)
        assert result["tax_liability"] == 0
        assert result["effective_rate"] == 0

    def test_unknown_state_raises(self, state_rules):
        with pytest.raises(InputError, match="Unknown state code"):
            calculate_state_tax("ZZ", 50000, state_rules)

    def test_negative_income_raises(self, state_rules):
        with pytest.raises(InputError):
            calculate_state_tax("CA", -5, state_rules)


def test_state_info_carries_note(state_rules):
    info = get_state_info("nh", state_rules)
    assert info["code"] == "NH"
    assert info["flat_rate"] == 0.03
    assert info["note"] == "Interest and dividends only"
    assert info["brackets"] is None


class TestCompareStateTaxes:

    def test_sorted_lowest_first(self, state_rules):
        results = compare_state_taxes(100000, state_rules, ["CA", "TX", "IL"])
        assert [r["state_code"] for r in results] == ["TX", "IL", "CA"]

    def test_all_states_with_ties_broken_by_code(self, state_rules):
        results = compare_state_taxes(100000, state_rules)
        assert len(results) == 51
        zero = [r["state_code"] for r in results if r["tax_liability"] == 0]
        assert zero == sorted(NO_TAX_STATES)


def test_later_year_falls_back_to_newest_table(state_rules):
    assert load_state_rules(2025).states == state_rules.states


def test_year_before_any_table_raises():
    with pytest.raises(InputError, match="No state tax tables"):
        load_state_rules(1999)


class TestFilingRequirements:

    def test_state_info_names_return_form(self, state_rules):
        info = get_state_info("CA", state_rules)
        assert info["form"] == "Form 540"
        assert info["filing_threshold"] == 20913

    @pytest.mark.parametrize("code,expected", [("CA", 20913), ("NY", 4000), ("AL", 5000), ("TX", 0)])
    def test_filing_threshold(self, state_rules, code, expected):
        assert get_state_filing_threshold(code, state_rules) == expected

    def test_required_returns(self, state_rules):
        required = get_required_state_returns({"CA": 52000, "NY": 3500, "TX": 12000, "il": 3000}, state_rules)
        assert [r["state_code"] for r in required] == ["CA", "IL"]
        assert required[0]["form"] == "Form 540"
        assert required[0]["income"] == 52000

    def test_income_at_threshold_requires_return(self, state_rules):
        required = get_required_state_returns({"NY": 4000}, state_rules)
        assert [r["state_code"] for r in required] == ["NY"]

    def test_unknown_state_raises(self, state_rules):
        with pytest.raises(InputError, match="Unknown state code"):
            get_required_state_returns({"ZZ": 1000}, state_rules)
