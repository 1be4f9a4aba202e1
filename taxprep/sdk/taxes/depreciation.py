"""Depreciation of business property (Form 4562, Schedule C line 13).

MACRS uses the half-year convention tables. Residential and nonresidential
real property (27.5 and 39 years) is depreciated straight-line. Section 179
expense and bonus depreciation are taken in the first year and reduce the
basis used for regular depreciation in every later year.
"""

import logging
from datetime import date
from typing import Iterable, Optional

from ..schemas import DepreciableAsset
from .money import round_cents
from .schemas import DepreciationRules

logger = logging.getLogger(__name__)

Q4_FIRST_MONTH = 10


def recovery_period_for(asset: DepreciableAsset, rules: DepreciationRules) -> float:
    """Recovery period set on the asset, else looked up by asset type, else the default."""
    if asset.recovery_period:
        return asset.recovery_period
    if asset.asset_type:
        key = "_".join(asset.asset_type.strip().lower().split())
        if key in rules.recovery_periods:
            return rules.recovery_periods[key]
    return rules.default_recovery_period


def year_in_service(placed_in_service: date, tax_year: int) -> int:
    """1 in the year the asset was placed in service, below 1 for earlier tax years."""
    return tax_year - placed_in_service.year + 1


def straight_line_depreciation(basis: float, salvage_value: float, useful_life: float, year: int) -> float:
    """Straight-line with the half-year convention.

    Half a year's depreciation in the first year, full years after that,
    and whatever is left in the year after the last full year.
    """
    if year < 1 or useful_life <= 0:
        return 0.0
    depreciable = max(0.0, basis - salvage_value)
    annual = depreciable / useful_life
    if year == 1:
        return round_cents(annual / 2)
    taken = annual / 2 + annual * (year - 2)
    return round_cents(max(0.0, min(annual, depreciable - taken)))


def macrs_depreciation(basis: float, recovery_period: float, year: int, rules: DepreciationRules) -> float:
    """MACRS deduction for one year in service.

    Periods without a half-year table (real property) use straight-line
    over the recovery period with no salvage value.
    """
    rates = rules.macrs_half_year.get(recovery_period)
    if rates is None:
        return straight_line_depreciation(basis, 0.0, recovery_period, year)
    if year < 1 or year > len(rates):
        return 0.0
    return round_cents(basis * rates[year - 1])


def units_of_production_depreciation(
    basis: float, salvage_value: float, total_units: float, units_this_year: float
) -> float:
    if not total_units:
        return 0.0
    return round_cents(max(0.0, basis - salvage_value) / total_units * units_this_year)


def _business_basis(asset: DepreciableAsset) -> float:
    return round_cents(asset.cost_basis * asset.business_use_percent / 100)


def elected_section_179(asset: DepreciableAsset, rules: DepreciationRules) -> float:
    """The asset's section 179 election, capped by the dollar limit, vehicle limit and basis."""
    amount = min(asset.section_179_amount, rules.section_179_limit, _business_basis(asset))
    if asset.is_vehicle:
        amount = min(amount, rules.section_179_vehicle_limit)
    return round_cents(amount)


def _regular_depreciation(
    asset: DepreciableAsset, basis: float, recovery_period: float, year: int, rules: DepreciationRules
) -> float:
    if year < 1 or basis <= 0:
        return 0.0
    if asset.method == "straight_line":
        return straight_line_depreciation(basis, asset.salvage_value, recovery_period, year)
    if asset.method == "units_of_production":
        return units_of_production_depreciation(
            basis, asset.salvage_value, asset.total_units, asset.units_this_year
        )
    return macrs_depreciation(basis, recovery_period, year, rules)


def calculate_depreciation(
    asset: DepreciableAsset,
    tax_year: int,
    rules: DepreciationRules,
    section_179: Optional[float] = None,
) -> dict:
    """Depreciation of one asset for a tax year.

    Args:
        asset: The asset
        tax_year: Year being computed
        rules: Year's depreciation rules
        section_179: Section 179 expense allowed for the asset (defaults to
            the capped election; see calculate_total_depreciation for the
            aggregate limit)

    Returns:
        Dict with adjusted_basis, section_179_deduction, bonus_depreciation,
        regular_depreciation and current_year_depreciation. Section 179 and
        bonus amounts are only reported in the first year.
    """
    year = year_in_service(asset.placed_in_service, tax_year)
    period = recovery_period_for(asset, rules)
    adjusted_basis = _business_basis(asset)

    if section_179 is None:
        section_179 = elected_section_179(asset, rules)
    section_179 = round_cents(min(section_179, adjusted_basis))
    remaining = round_cents(adjusted_basis - section_179)

    bonus = 0.0
    if asset.bonus_depreciation and period not in rules.real_property_periods:
        bonus = round_cents(remaining * rules.bonus_rate)

    regular = _regular_depreciation(asset, round_cents(remaining - bonus), period, year, rules)
    first_year = year == 1
    section_179_taken = section_179 if first_year else 0.0
    bonus_taken = bonus if first_year else 0.0

    return {
        "name": asset.name,
        "method": asset.method,
        "recovery_period": period,
        "year_in_service": year,
        "cost_basis": asset.cost_basis,
        "business_use_percent": asset.business_use_percent,
        "adjusted_basis": adjusted_basis,
        "section_179_deduction": section_179_taken,
        "bonus_depreciation": bonus_taken,
        "regular_depreciation": regular,
        "current_year_depreciation": round_cents(section_179_taken + bonus_taken + regular),
    }


def depreciation_schedule(asset: DepreciableAsset, rules: DepreciationRules) -> list[dict]:
    """Year-by-year schedule from the year placed in service until fully depreciated.

    Units-of-production assets only get the placed-in-service year, since
    later years depend on units not yet known.
    """
    placed_year = asset.placed_in_service.year
    last_year = 1 if asset.method == "units_of_production" else int(recovery_period_for(asset, rules)) + 2

    rows = []
    accumulated = 0.0
    for year in range(1, last_year + 1):
        result = calculate_depreciation(asset, placed_year + year - 1, rules)
        amount = result["current_year_depreciation"]
        if year > 1 and amount == 0:
            break
        beginning = round_cents(result["adjusted_basis"] - accumulated)
        accumulated = round_cents(accumulated + amount)
        rows.append({
            "year": year,
            "tax_year": placed_year + year - 1,
            "beginning_book_value": beginning,
            "depreciation": amount,
            "accumulated_depreciation": accumulated,
            "ending_book_value": round_cents(result["adjusted_basis"] - accumulated),
        })
    return rows


def _placed_in_year(assets: Iterable[DepreciableAsset], tax_year: int) -> list[DepreciableAsset]:
    return [a for a in assets if year_in_service(a.placed_in_service, tax_year) == 1]


def section_179_limit(assets: Iterable[DepreciableAsset], tax_year: int, rules: DepreciationRules) -> float:
    """Dollar limit after the phase-out on property placed in service during the year."""
    investment = sum(a.cost_basis for a in _placed_in_year(assets, tax_year))
    reduction = max(0.0, investment - rules.section_179_phase_out_threshold)
    return round_cents(max(0.0, rules.section_179_limit - reduction))


def check_mid_quarter_convention(
    assets: Iterable[DepreciableAsset], tax_year: int, rules: DepreciationRules
) -> dict:
    """Whether more than the threshold share of basis was placed in service in Q4.

    Real property is left out of the test.
    """
    placed = [
        a for a in _placed_in_year(assets, tax_year)
        if recovery_period_for(a, rules) not in rules.real_property_periods
    ]
    total = sum(a.cost_basis for a in placed)
    q4 = sum(a.cost_basis for a in placed if a.placed_in_service.month >= Q4_FIRST_MONTH)
    share = q4 / total if total > 0 else 0.0
    required = share > rules.mid_quarter_threshold

    if required:
        note = (
            f"More than {rules.mid_quarter_threshold:.0%} of depreciable basis placed in service in Q4. "
            "Mid-quarter convention required."
        )
    else:
        note = "Half-year convention applies."
    return {"requires_mid_quarter": required, "q4_percentage": round(share * 100), "note": note}


def check_section_179(
    assets: Iterable[DepreciableAsset],
    tax_year: int,
    business_income: float,
    rules: DepreciationRules,
) -> dict:
    """Check section 179 elections against the dollar limit and business income.

    Expense above business income is not lost; it carries forward.

    Returns:
        Dict with is_valid, issues, elected, limit and allowed_section_179
    """
    assets = list(assets)
    placed = _placed_in_year(assets, tax_year)
    requested = round_cents(sum(a.section_179_amount for a in placed))
    elected = round_cents(sum(elected_section_179(a, rules) for a in placed))
    limit = section_179_limit(assets, tax_year, rules)

    issues = []
    if requested > elected:
        issues.append(
            f"Section 179 elections of ${requested:,.2f} exceed the per-asset limits; ${elected:,.2f} allowed"
        )
    if elected > limit:
        if limit < rules.section_179_limit:
            issues.append(
                f"Section 179 limit reduced to ${limit:,.2f} because property placed in service "
                f"exceeds ${rules.section_179_phase_out_threshold:,.0f}"
            )
        else:
            issues.append(f"Section 179 exceeds maximum of ${limit:,.0f}")
    business_income = max(0.0, business_income)
    if min(elected, limit) > business_income:
        issues.append(f"Section 179 limited to business income of ${business_income:,.2f}")

    return {
        "is_valid": not issues,
        "issues": issues,
        "elected": elected,
        "limit": limit,
        "allowed_section_179": round_cents(min(elected, limit, business_income)),
    }


def calculate_total_depreciation(
    assets: Iterable[DepreciableAsset],
    tax_year: int,
    rules: DepreciationRules,
) -> dict:
    """Depreciation of every asset for the year.

    When first-year section 179 elections exceed the phased-out dollar limit,
    each election is reduced pro rata. Assets placed in service in earlier
    years keep their capped election as the basis reduction.

    Returns:
        Dict with total_depreciation, total_section_179, total_bonus,
        asset_count, mid_quarter and per-asset details
    """
    assets = list(assets)
    placed = _placed_in_year(assets, tax_year)
    elected_total = sum(elected_section_179(a, rules) for a in placed)
    limit = section_179_limit(assets, tax_year, rules)
    scale = min(1.0, limit / elected_total) if elected_total > 0 else 1.0

    details = []
    for asset in assets:
        section_179 = None
        if year_in_service(asset.placed_in_service, tax_year) == 1:
            section_179 = round_cents(elected_section_179(asset, rules) * scale)
        details.append(calculate_depreciation(asset, tax_year, rules, section_179))

    total = round_cents(sum(d["current_year_depreciation"] for d in details))
    logger.debug(f"Depreciation {tax_year}: {len(details)} asset(s), total {total:.2f}")

    return {
        "total_depreciation": total,
        "total_section_179": round_cents(sum(d["section_179_deduction"] for d in details)),
        "total_bonus": round_cents(sum(d["bonus_depreciation"] for d in details)),
        "asset_count": len(details),
        "mid_quarter": check_mid_quarter_convention(assets, tax_year, rules),
        "details": details,
    }
