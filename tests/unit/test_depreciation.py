"""Tests for business asset depreciation and Schedule C line 13."""

import pytest

from taxprep.sdk import DepreciableAsset, InputError
from taxprep.sdk.calculation import schedule_c_for
from taxprep.sdk.taxes import (
    calculate_depreciation,
    calculate_total_depreciation,
    check_mid_quarter_convention,
    check_section_179,
    depreciation_schedule,
    recovery_period_for,
    straight_line_depreciation,
)

from tests.factories import asset


@pytest.fixture
def dep_rules(rules_2024):
    return rules_2024.depreciation


def _asset(name="Laptop", cost=10000, placed_in_service="2024-03-01", **overrides):
    return DepreciableAsset(**asset(name, cost, placed_in_service, **overrides))


class TestRecoveryPeriod:

    @pytest.mark.parametrize("overrides,expected", [
        ({}, 5),
        ({"asset_type": "Office Furniture"}, 7),
        ({"asset_type": "residential_rental"}, 27.5),
        ({"asset_type": "spaceship"}, 7),
        ({"asset_type": None}, 7),
        ({"recovery_period": 10}, 10),
    ])
    def test_lookup(self, dep_rules, overrides, expected):
        assert recovery_period_for(_asset(**overrides), dep_rules) == expected


class TestCalculateDepreciation:

    def test_macrs_first_and_second_year(self, dep_rules):
        laptop = _asset()
        assert calculate_depreciation(laptop, 2024, dep_rules)["current_year_depreciation"] == 2000.00
        assert calculate_depreciation(laptop, 2025, dep_rules)["current_year_depreciation"] == 3200.00

    def test_before_and_after_recovery(self, dep_rules):
        laptop = _asset()
        assert calculate_depreciation(laptop, 2023, dep_rules)["current_year_depreciation"] == 0
        assert calculate_depreciation(laptop, 2030, dep_rules)["current_year_depreciation"] == 0

    def test_section_179_and_bonus_taken_in_first_year(self, dep_rules):
        laptop = _asset(section_179_amount=4000, bonus_depreciation=True)

        first = calculate_depreciation(laptop, 2024, dep_rules)
        assert first["section_179_deduction"] == 4000.00
        assert first["bonus_depreciation"] == 3600.00
        assert first["regular_depreciation"] == 480.00
        assert first["current_year_depreciation"] == 8080.00

        second = calculate_depreciation(laptop, 2025, dep_rules)
        assert second["section_179_deduction"] == 0
        assert second["bonus_depreciation"] == 0
        assert second["current_year_depreciation"] == 768.00

    def test_business_use_percentage(self, dep_rules):
        result = calculate_depreciation(_asset(business_use_percent=50), 2024, dep_rules)
        assert result["adjusted_basis"] == 5000.00
        assert result["current_year_depreciation"] == 1000.00

    def test_vehicle_section_179_capped(self, dep_rules):
        truck = _asset("Truck", 60000, asset_type="automobiles", is_vehicle=True, section_179_amount=60000)
        result = calculate_depreciation(truck, 2024, dep_rules)
        assert result["section_179_deduction"] == 30500.00
        assert result["regular_depreciation"] == 5900.00

    def test_units_of_production(self, dep_rules):
        press = _asset(
            "Press", 50000, method="units_of_production", salvage_value=5000,
            total_units=100000, units_this_year=12000,
        )
        assert calculate_depreciation(press, 2024, dep_rules)["current_year_depreciation"] == 5400.00

    def test_real_property_is_straight_line_without_bonus(self, dep_rules):
        rental = _asset("Rental", 275000, "2024-01-15", asset_type="residential_rental", bonus_depreciation=True)
        result = calculate_depreciation(rental, 2024, dep_rules)
        assert result["bonus_depreciation"] == 0
        assert result["current_year_depreciation"] == 5000.00


class TestStraightLine:

    @pytest.mark.parametrize("year,expected", [
        (0, 0), (1, 900), (2, 1800), (5, 1800), (6, 900), (7, 0),
    ])
    def test_half_year_convention(self, year, expected):
        assert straight_line_depreciation(10000, 1000, 5, year) == expected

    def test_schedule_stops_at_salvage(self, dep_rules):
        rows = depreciation_schedule(
            _asset(method="straight_line", recovery_period=5, salvage_value=1000), dep_rules
        )
        assert len(rows) == 6
        assert rows[-1]["ending_book_value"] == 1000.00


class TestSchedule:

    def test_five_year_macrs(self, dep_rules):
        rows = depreciation_schedule(_asset(), dep_rules)
        assert [row["depreciation"] for row in rows] == [2000, 3200, 1920, 1152, 1152, 576]
        assert [row["tax_year"] for row in rows] == list(range(2024, 2030))
        assert rows[0]["beginning_book_value"] == 10000.00
        assert rows[-1]["accumulated_depreciation"] == 10000.00
        assert rows[-1]["ending_book_value"] == 0

    def test_residential_rental(self, dep_rules):
        rows = depreciation_schedule(_asset("Rental", 275000, asset_type="residential_rental"), dep_rules)
        assert len(rows) == 28
        assert rows[0]["depreciation"] == 5000.00
        assert rows[-1]["ending_book_value"] == 0

    def test_units_of_production_single_row(self, dep_rules):
        press = _asset("Press", 50000, method="units_of_production", total_units=100000, units_this_year=1000)
        assert len(depreciation_schedule(press, dep_rules)) == 1


class TestMidQuarter:

    def test_q4_majority_requires_mid_quarter(self, dep_rules):
        assets = [_asset("Server", 10000, "2024-11-05"), _asset("Laptop", 5000, "2024-03-01")]
        result = check_mid_quarter_convention(assets, 2024, dep_rules)
        assert result["requires_mid_quarter"]
        assert result["q4_percentage"] == 67

    def test_real_property_and_prior_years_excluded(self, dep_rules):
        assets = [
            _asset("Server", 3000, "2024-10-01"),
            _asset("Laptop", 10000, "2024-02-01"),
            _asset("Rental", 500000, "2024-12-01", asset_type="residential_rental"),
            _asset("Old server", 50000, "2023-11-01"),
        ]
        result = check_mid_quarter_convention(assets, 2024, dep_rules)
        assert not result["requires_mid_quarter"]
        assert result["q4_percentage"] == 23
        assert result["note"] == "Half-year convention applies."


class TestSection179:

    def test_phase_out_reduces_election_pro_rata(self, dep_rules):
        assets = [
            _asset("Combine", 2000000, asset_type="agricultural_machinery", section_179_amount=1220000),
            _asset("Copiers", 1100000, asset_type="office_equipment"),
        ]
        totals = calculate_total_depreciation(assets, 2024, dep_rules)
        assert totals["total_section_179"] == 1170000.00
        assert totals["asset_count"] == 2

        check = check_section_179(assets, 2024, 5000000, dep_rules)
        assert check["limit"] == 1170000.00
        assert not check["is_valid"]
        assert "reduced" in check["issues"][0]

    def test_limited_to_business_income(self, dep_rules):
        assets = [_asset("Van", 60000, asset_type="automobiles", section_179_amount=50000)]
        check = check_section_179(assets, 2024, 30000, dep_rules)
        assert check["allowed_section_179"] == 30000.00
        assert check["issues"] == ["Section 179 limited to business income of $30,000.00"]

    def test_within_limits(self, dep_rules):
        check = check_section_179([_asset(section_179_amount=4000)], 2024, 50000, dep_rules)
        assert check["is_valid"]
        assert check["allowed_section_179"] == 4000.00


class TestScheduleC:

    def test_assets_flow_to_line_13(self, make_facts, rules_2024):
        facts = make_facts(income_items=[], self_employment={
            "gross_receipts": 50000,
            "assets": [asset("Laptop", 10000)],
        })
        schedule_c = schedule_c_for(facts, rules_2024)

        assert schedule_c["expenses_by_category"]["depreciation"]["amount"] == 2000.00
        assert schedule_c["net_profit_loss"] == 48000.00
        assert schedule_c["depreciation"]["total_depreciation"] == 2000.00

    def test_no_assets(self, make_facts, rules_2024):
        facts = make_facts(income_items=[], self_employment={"gross_receipts": 50000})
        schedule_c = schedule_c_for(facts, rules_2024)
        assert schedule_c["depreciation"] is None
        assert schedule_c["net_profit_loss"] == 50000.00

    def test_units_without_total_rejected(self, make_facts):
        with pytest.raises(InputError, match="requires total_units"):
            make_facts(self_employment={"assets": [asset("Press", 5000, method="units_of_production")]})
