"""Schedule C (profit or loss from business) and Schedule SE.

Every derived money value is rounded to cents where it is derived;
downstream values are computed from the rounded figures.
"""

import logging
from typing import Iterable, Optional, Union

from ..schemas import ExpenseLineItem, InputError, SelfEmploymentFacts
from .money import round_cents
from .schemas import SelfEmploymentRules

logger = logging.getLogger(__name__)

# Schedule C Part II lines
SCHEDULE_C_EXPENSE_CATEGORIES = {
    "advertising": {"line": "8", "description": "Advertising"},
    "car_truck": {"line": "9", "description": "Car and truck expenses"},
    "commissions": {"line": "10", "description": "Commissions and fees"},
    "contract_labor": {"line": "11", "description": "Contract labor"},
    "depletion": {"line": "12", "description": "Depletion"},
    "depreciation": {"line": "13", "description": "Depreciation and section 179"},
    "employee_benefits": {"line": "14", "description": "Employee benefit programs"},
    "insurance": {"line": "15", "description": "Insurance (other than health)"},
    "interest_mortgage": {"line": "16a", "description": "Interest - Mortgage"},
    "interest_other": {"line": "16b", "description": "Interest - Other"},
    "legal_professional": {"line": "17", "description": "Legal and professional services"},
    "office_expense": {"line": "18", "description": "Office expense"},
    "pension_profit_sharing": {"line": "19", "description": "Pension and profit-sharing plans"},
    "rent_vehicles": {"line": "20a", "description": "Rent - Vehicles, machinery, equipment"},
    "rent_other": {"line": "20b", "description": "Rent - Other business property"},
    "repairs": {"line": "21", "description": "Repairs and maintenance"},
    "supplies": {"line": "22", "description": "Supplies"},
    "taxes_licenses": {"line": "23", "description": "Taxes and licenses"},
    "travel": {"line": "24a", "description": "Travel"},
    "meals": {"line": "24b", "description": "Deductible meals"},
    "utilities": {"line": "25", "description": "Utilities"},
    "wages": {"line": "26", "description": "Wages"},
    "other": {"line": "27a", "description": "Other expenses"},
}

MEALS_NOTE = "50% limitation applied"


def normalize_category(category: Optional[str]) -> str:
    """Map a free-form category name onto a Schedule C category key."""
    if not category:
        return "other"
    key = "_".join(category.strip().lower().split())
    return key if key in SCHEDULE_C_EXPENSE_CATEGORIES else "other"


def categorize_expenses(
    expenses: Iterable[Union[ExpenseLineItem, dict]],
    rules: SelfEmploymentRules,
) -> dict[str, dict]:
    """Group expenses by Schedule C line, applying the meals limitation.

    Args:
        expenses: Expense line items (unknown categories go to "other")
        rules: Year's self-employment rules (meals deductible fraction)

    Returns:
        Dict keyed by category with line, description, amount, items
        and, for limited meals, a note.
    """
    categorized = {
        key: {**info, "amount": 0.0, "items": []}
        for key, info in SCHEDULE_C_EXPENSE_CATEGORIES.items()
    }

    for expense in expenses:
        if isinstance(expense, dict):
            expense = ExpenseLineItem(**expense)
        key = normalize_category(expense.category)
        categorized[key]["amount"] += expense.amount
        categorized[key]["items"].append(expense.model_dump())

    for entry in categorized.values():
        entry["amount"] = round_cents(entry["amount"])

    meals = categorized["meals"]
    if meals["amount"] > 0:
        meals["amount"] = round_cents(meals["amount"] * rules.meals_deductible_fraction)
        meals["note"] = MEALS_NOTE

    return categorized


def calculate_se_tax(net_profit_loss: float, rules: SelfEmploymentRules) -> dict:
    """Self-employment tax (Schedule SE) on Schedule C net profit.

    The additional Medicare surtax uses a flat threshold regardless of
    filing status.

    Returns:
        Dict with net_earnings, social_security_tax, medicare_tax,
        additional_medicare_tax, total_se_tax, deductible_portion.
        All zero when net_profit_loss <= 0.
    """
    if net_profit_loss <= 0:
        return {
            "net_earnings": 0.0,
            "social_security_tax": 0.0,
            "medicare_tax": 0.0,
            "additional_medicare_tax": 0.0,
            "total_se_tax": 0.0,
            "deductible_portion": 0.0,
        }

    net_earnings = round_cents(net_profit_loss * rules.net_earnings_rate)
    ss_earnings = min(net_earnings, rules.social_security_wage_base)
    social_security_tax = round_cents(ss_earnings * rules.social_security_rate)
    medicare_tax = round_cents(net_earnings * rules.medicare_rate)
    additional_medicare_tax = round_cents(
        max(0.0, net_earnings - rules.additional_medicare_threshold) * rules.additional_medicare_rate
    )
    total_se_tax = round_cents(social_security_tax + medicare_tax + additional_medicare_tax)
    deductible_portion = round_cents(total_se_tax * rules.deductible_fraction)

    logger.debug(
        f"SE tax: net earnings {net_earnings:.2f}, SS {social_security_tax:.2f}, "
        f"Medicare {medicare_tax:.2f}, surtax {additional_medicare_tax:.2f}"
    )

    return {
        "net_earnings": net_earnings,
        "social_security_tax": social_security_tax,
        "medicare_tax": medicare_tax,
        "additional_medicare_tax": additional_medicare_tax,
        "total_se_tax": total_se_tax,
        "deductible_portion": deductible_portion,
    }


def calculate_home_office_deduction(square_feet: Optional[float], rules: SelfEmploymentRules) -> float:
    """Simplified-method home office deduction: capped square footage times the rate."""
    if not square_feet:
        return 0.0
    return round_cents(min(square_feet, rules.home_office_max_square_feet) * rules.home_office_rate)


def calculate_schedule_c(
    business: SelfEmploymentFacts,
    rules: SelfEmploymentRules,
    depreciation: Optional[dict] = None,
) -> dict:
    """Compute Schedule C profit or loss and the resulting SE tax.

    Args:
        business: Schedule C facts
        rules: Year's self-employment rules
        depreciation: calculate_total_depreciation result for the business
            assets, added to line 13

    Returns:
        Dict with gross_income, gross_profit, total_income,
        expenses_by_category, total_expenses, home_office_deduction,
        net_profit_loss, is_profit, self_employment_tax and depreciation.
    """
    gross_income = round_cents(business.gross_receipts - business.returns_allowances)
    gross_profit = round_cents(gross_income - business.cost_of_goods_sold)
    total_income = round_cents(gross_profit + business.other_income)

    expenses_by_category = categorize_expenses(business.expense_line_items, rules)
    if depreciation is not None:
        line_13 = expenses_by_category["depreciation"]
        line_13["amount"] = round_cents(line_13["amount"] + depreciation["total_depreciation"])
    total_expenses = round_cents(sum(cat["amount"] for cat in expenses_by_category.values()))

    home_office_deduction = calculate_home_office_deduction(business.home_office_square_feet, rules)
    net_profit_loss = round_cents(total_income - total_expenses - home_office_deduction)

    return {
        "gross_receipts": business.gross_receipts,
        "returns_allowances": business.returns_allowances,
        "gross_income": gross_income,
        "cost_of_goods_sold": business.cost_of_goods_sold,
        "gross_profit": gross_profit,
        "other_income": business.other_income,
        "total_income": total_income,
        "expenses_by_category": expenses_by_category,
        "total_expenses": total_expenses,
        "home_office_deduction": home_office_deduction,
        "net_profit_loss": net_profit_loss,
        "is_profit": net_profit_loss > 0,
        "self_employment_tax": calculate_se_tax(net_profit_loss, rules),
        "depreciation": depreciation,
    }


def calculate_cost_of_goods_sold(
    beginning_inventory: float = 0,
    purchases: float = 0,
    labor_costs: float = 0,
    materials: float = 0,
    other_costs: float = 0,
    ending_inventory: float = 0,
) -> dict:
    """Schedule C Part III cost of goods sold."""
    amounts = [beginning_inventory, purchases, labor_costs, materials, other_costs, ending_inventory]
    if any(a < 0 for a in amounts):
        raise InputError("Inventory amounts cannot be negative")

    goods_available = round_cents(beginning_inventory + purchases + labor_costs + materials + other_costs)
    return {
        "beginning_inventory": beginning_inventory,
        "purchases": purchases,
        "labor_costs": labor_costs,
        "materials": materials,
        "other_costs": other_costs,
        "goods_available": goods_available,
        "ending_inventory": ending_inventory,
        "cost_of_goods_sold": round_cents(goods_available - ending_inventory),
    }


def calculate_vehicle_expense(
    method: str,
    rules: SelfEmploymentRules,
    business_miles: float = 0,
    total_miles: float = 0,
    actual_expenses: float = 0,
) -> dict:
    """Car and truck expense by standard mileage or actual-expense method.

    Args:
        method: "standard" or "actual"
        rules: Year's self-employment rules (mileage rate)
        business_miles: Miles driven for business
        total_miles: All miles driven (actual method)
        actual_expenses: Total vehicle operating costs (actual method)
    """
    if method == "standard":
        rate = rules.standard_mileage_rate
        return {
            "method": "standard",
            "business_miles": business_miles,
            "rate": rate,
            "deduction": round_cents(business_miles * rate),
            "note": f"{business_miles:g} miles x ${rate}/mile",
        }

    if method == "actual":
        business_fraction = business_miles / total_miles if total_miles > 0 else 0.0
        business_pct = round(business_fraction * 100)
        return {
            "method": "actual",
            "total_expenses": actual_expenses,
            "business_percentage": business_pct,
            "deduction": round_cents(actual_expenses * business_fraction),
            "note": f"{business_pct}% business use",
        }

    raise InputError(f"Unknown vehicle expense method '{method}'. Expected 'standard' or 'actual'.")
