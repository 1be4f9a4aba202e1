"""State income tax commands."""

from typing import Optional, Tuple

import click

from taxprep.sdk import load_state_rules
from taxprep.sdk.taxes import (
    calculate_state_tax,
    compare_state_taxes,
    get_no_income_tax_states,
    get_required_state_returns,
    get_state_info,
    list_states,
)

from .common import echo_json, format_option, money, resolve_format, resolve_year, sdk_errors

year_option = click.option("--year", type=int, help="Tax year (default: settings default_tax_year, else latest).")


@click.group()
def state():
    """State income tax tables and estimates.

    Uses a single simplified schedule per state applied to federal
    taxable income.
    """
    pass


@state.command("calc")
@click.argument("state_code")
@click.argument("taxable_income", type=float)
@year_option
@format_option
@sdk_errors
def state_calc(state_code: str, taxable_income: float, year: Optional[int], output_format: Optional[str]):
    """Compute STATE_CODE tax on TAXABLE_INCOME."""
    rules = load_state_rules(resolve_year(year))
    result = calculate_state_tax(state_code, taxable_income, rules)

    if resolve_format(output_format) == "json":
        echo_json(result)
        return

    click.echo(f"{result['state_name']} ({result['state_code']})")
    if not result["has_income_tax"]:
        click.echo(result["message"])
        return
    click.echo(f"  Taxable income: {money(taxable_income)}")
    click.echo(f"  Tax:            {money(result['tax_liability'])}")
    click.echo(f"  Effective rate: {result['effective_rate']:.2f}%")
    if result.get("note"):
        click.echo(f"  Note: {result['note']}")


@state.command("compare")
@click.argument("taxable_income", type=float)
@click.argument("state_codes", nargs=-1)
@click.option("--limit", type=int, help="Show only the first N states.")
@year_option
@format_option
@sdk_errors
def state_compare(taxable_income: float, state_codes: Tuple[str, ...], limit: Optional[int],
                  year: Optional[int], output_format: Optional[str]):
    """Compare tax on TAXABLE_INCOME across states (all states if none given).

    \b
    Examples:
      tax-prep state compare 85000
      tax-prep state compare 85000 CA NY TX WA
    """
    rules = load_state_rules(resolve_year(year))
    results = compare_state_taxes(taxable_income, rules, state_codes or None)
    if limit:
        results = results[:limit]

    if resolve_format(output_format) == "json":
        echo_json(results)
        return

    click.echo(f"{'State':<24} {'Tax':>14} {'Rate':>8}")
    click.echo("-" * 48)
    for r in results:
        click.echo(f"{r['state_name']:<24} {money(r['tax_liability']):>14} {r['effective_rate']:>7.2f}%")


@state.command("list")
@click.option("--no-tax", is_flag=True, help="Only states without an income tax.")
@year_option
@format_option
@sdk_errors
def state_list(no_tax: bool, year: Optional[int], output_format: Optional[str]):
    """List states and whether they tax income."""
    rules = load_state_rules(resolve_year(year))
    states = get_no_income_tax_states(rules) if no_tax else list_states(rules)

    if resolve_format(output_format) == "json":
        echo_json(states)
        return

    for s in states:
        marker = "" if s["has_income_tax"] else "  (no income tax)"
        click.echo(f"{s['code']}  {s['name']}{marker}")


@state.command("info")
@click.argument("state_code")
@year_option
@format_option
@sdk_errors
def state_info(state_code: str, year: Optional[int], output_format: Optional[str]):
    """Show STATE_CODE's rate schedule."""
    info = get_state_info(state_code, load_state_rules(resolve_year(year)))

    if resolve_format(output_format) == "json":
        echo_json(info)
        return

    click.echo(f"{info['name']} ({info['code']})")
    if not info["has_income_tax"]:
        click.echo("  No state income tax")
    elif info["is_flat"]:
        click.echo(f"  Flat rate: {info['flat_rate']:.2%}")
    else:
        for b in info["brackets"]:
            upper = money(b["max"]) if b["max"] is not None else "and up"
            click.echo(f"  {b['rate']:>7.2%}  {money(b['min']):>14}  {upper:>14}")
    if info["form"]:
        click.echo(f"  Return: {info['form']} (required from {money(info['filing_threshold'])} of income)")
    if info["note"]:
        click.echo(f"  Note: {info['note']}")


def _parse_state_income(pairs: Tuple[str, ...]) -> dict[str, float]:
    income_by_state = {}
    for pair in pairs:
        code, sep, amount = pair.partition("=")
        try:
            value = float(amount)
        except ValueError:
            value = None
        if not sep or value is None:
            raise click.BadParameter(f"Expected STATE=AMOUNT, got '{pair}'", param_hint="STATE_INCOME")
        income_by_state[code.strip().upper()] = value
    return income_by_state


@state.command("required")
@click.argument("state_income", nargs=-1, required=True)
@year_option
@format_option
@sdk_errors
def state_required(state_income: Tuple[str, ...], year: Optional[int], output_format: Optional[str]):
    """List the state returns required for income earned in each state.

    \b
    Examples:
      tax-prep state required CA=52000 NY=3500 TX=12000
    """
    income_by_state = _parse_state_income(state_income)
    required = get_required_state_returns(income_by_state, load_state_rules(resolve_year(year)))

    if resolve_format(output_format) == "json":
        echo_json(required)
        return

    if not required:
        click.echo("No state returns required")
        return
    for r in required:
        form = r["form"] or "state return"
        click.echo(
            f"{r['state_code']}  {r['state_name']:<22} {form:<14} "
            f"income {money(r['income'])} >= {money(r['filing_threshold'])}"
        )
