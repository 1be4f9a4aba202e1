"""Tax Prep MCP Server - FastMCP implementation for tax computation tools."""

import logging
from datetime import date
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP
from pydantic import Field

from taxprep.sdk import (
    EligibilityError,
    InputError,
    ReturnSnapshot,
    amend_return,
    calculate_federal_return,
    calculate_state_return,
    load_state_rules,
    parse_facts,
    validate,
)
from taxprep.sdk.taxes import calculate_state_tax, compare_state_taxes, get_required_state_returns

logger = logging.getLogger(__name__)

# Initialize FastMCP server
mcp = FastMCP("tax-prep")


def _snapshot(data: dict) -> ReturnSnapshot:
    facts = parse_facts(data.get("facts"))
    result = data.get("result") or calculate_federal_return(facts)
    return ReturnSnapshot.model_validate({**data, "facts": facts, "result": result})


# --- Tools ---

@mcp.tool()
async def calculate_return(
    facts: dict[str, Any] = Field(description="Tax return facts (taxpayer_id, tax_year, filing_status, income_items, ...)"),
    state_code: Optional[str] = Field(default=None, description="Also compute this state's return (two-letter code)"),
    enforce_caps: bool = Field(default=False, description="Apply SALT, charitable and medical limits to itemized deductions"),
) -> dict[str, Any]:
    """Compute federal (and optionally state) tax liability, refund or amount owed for one return."""
    try:
        parsed = parse_facts(facts)
        federal = calculate_federal_return(parsed, enforce_caps=enforce_caps)
        state = None
        if state_code or parsed.state_code:
            state = calculate_state_return(parsed, federal, state_code=state_code).model_dump()
        return {"federal": federal.model_dump(), "state": state}
    except InputError as e:
        logger.error(f"Error calculating return: {e}")
        return {"error": str(e)}


@mcp.tool()
async def validate_return(
    facts: dict[str, Any] = Field(description="Tax return facts"),
) -> dict[str, Any]:
    """Check a return against IRS limits, phase-outs and math consistency. Returns errors, warnings and suggestions."""
    try:
        parsed = parse_facts(facts)
        report = validate(parsed, calculate_federal_return(parsed))
        return {**report.model_dump(), "summary": report.summary}
    except InputError as e:
        logger.error(f"Error validating return: {e}")
        return {"error": str(e)}


@mcp.tool()
async def state_tax(
    taxable_income: float = Field(description="Taxable income"),
    state_codes: list[str] = Field(description="One or more two-letter state codes"),
    tax_year: int = Field(default=2024, description="Tax year of the state tables"),
) -> dict[str, Any]:
    """Estimate state income tax on a taxable income for one or more states, lowest first."""
    try:
        rules = load_state_rules(tax_year)
        if len(state_codes) == 1:
            return {"results": [calculate_state_tax(state_codes[0], taxable_income, rules)]}
        return {"results": compare_state_taxes(taxable_income, rules, state_codes)}
    except InputError as e:
        logger.error(f"Error computing state tax: {e}")
        return {"error": str(e), "results": []}


@mcp.tool()
async def required_state_returns(
    income_by_state: dict[str, float] = Field(description="Income earned in each state, keyed by two-letter code"),
    tax_year: int = Field(default=2024, description="Tax year of the state tables"),
) -> dict[str, Any]:
    """List the state returns a taxpayer must file given where the income was earned."""
    try:
        return {"required": get_required_state_returns(income_by_state, load_state_rules(tax_year))}
    except InputError as e:
        logger.error(f"Error checking state filing requirements: {e}")
        return {"error": str(e), "required": []}


@mcp.tool()
async def amendment_diff(
    original: dict[str, Any] = Field(description="Original return snapshot: facts, status, filed_date, due_date"),
    amended: dict[str, Any] = Field(description="Amended return snapshot: facts"),
    as_of: Optional[str] = Field(default=None, description="Amendment date YYYY-MM-DD (default today)"),
) -> dict[str, Any]:
    """Compare an original and amended return line by line and compute the refund change and accruals."""
    try:
        as_of_date = date.fromisoformat(as_of) if as_of else date.today()
        amendment = amend_return(_snapshot(original), _snapshot(amended), as_of_date)
        return amendment.model_dump(mode="json")
    except EligibilityError as e:
        return {
            "error": str(e),
            "deadline": e.deadline.isoformat() if e.deadline else None,
            "issues": list(e.issues),
        }
    except ValueError as e:
        logger.error(f"Error preparing amendment: {e}")
        return {"error": str(e)}


# --- Server Entry Point ---

def run_server():
    """Run the MCP server in stdio mode."""
    mcp.run(transport="stdio")


if __name__ == "__main__":
    run_server()
