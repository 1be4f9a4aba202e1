"""Tax Prep CLI - Command-line interface for tax computation and compliance checks."""

import logging
import os
from typing import Optional

import click

from taxprep import __version__
from taxprep.sdk import (
    CalculationResult,
    FILING_STATUSES,
    ValidationReport,
    assess_amt_risk,
    calculate_federal_return,
    calculate_state_return,
    calculate_total_depreciation,
    depreciation_schedule,
    load_tax_rules,
    validate,
)
from taxprep.sdk.taxes import bracket_breakdown, compute_bracket_tax, marginal_rate

from .amend_commands import amend
from .common import echo_json, format_option, load_document, load_facts, money, resolve_format, resolve_year, sdk_errors
from .settings_commands import settings as settings_group
from .state_commands import state as state_group


@click.group()
@click.version_option(version=__version__, prog_name="tax-prep")
def cli():
    """Tax Prep - Federal and state income tax computation.

    Reads tax return facts from YAML or JSON files and computes
    liability, validates limits, and diffs amended returns.

    Configuration is loaded from (in order):

    \b
    1. TAX_PREP_CONFIG_PATH environment variable
    2. ~/.config/tax-prep/settings.json (XDG default)

    Set LOG_LEVEL=DEBUG to trace each derivation.
    """
    pass


cli.add_command(settings_group)
cli.add_command(state_group)
cli.add_command(amend)


# =============================================================================
# Text formatters
# =============================================================================


def _format_result_text(result: CalculationResult) -> str:
    """Format a calculation result as an ASCII table."""
    title = "FEDERAL" if result.jurisdiction == "federal" else f"STATE ({result.jurisdiction})"
    lines = [
        f"{title} RETURN {result.tax_year} - {result.taxpayer_id} ({result.filing_status})",
        "=" * 60,
    ]

    rows = [
        ("Total income", result.gross_income),
        ("Adjustments", result.adjustments),
        ("Adjusted gross income", result.agi),
        (f"Deduction ({result.deduction_used})", result.deduction_amount),
        ("Taxable income", result.taxable_income),
        None,
        ("Income tax", result.tax_liability),
        ("Self-employment tax", result.self_employment_tax),
        ("Alternative minimum tax", result.amt),
        ("Net investment income tax", result.niit),
        ("Credits", -result.total_credits),
        ("Total tax", result.total_tax),
        None,
        ("Withholding", result.total_withheld),
    ]
    for row in rows:
        if row is None:
            lines.append("-" * 60)
            continue
        label, amount = row
        lines.append(f"{label:<40} {money(amount):>19}")

    lines.append("=" * 60)
    if result.amount_owed > 0:
        lines.append(f"{'AMOUNT OWED':<40} {money(result.amount_owed):>19}")
    else:
        lines.append(f"{'REFUND':<40} {money(result.refund):>19}")
    lines.append(f"{'Effective rate':<40} {result.effective_rate:>18.2f}%")
    return "\n".join(lines)


def _format_report_text(report: ValidationReport) -> str:
    """Format a validation report, grouped by severity."""
    lines = []
    sections = (
        ("ERRORS", report.errors, "✗"),
        ("WARNINGS", report.warnings, "⚠"),
        ("SUGGESTIONS", report.suggestions, "•"),
    )
    for title, issues, marker in sections:
        if not issues:
            continue
        lines.append(f"{title} ({len(issues)})")
        for issue in issues:
            line = f"  {marker} [{issue.field}] {issue.message}"
            if issue.correction is not None:
                line += f" -> {money(issue.correction)}"
            lines.append(line)
        lines.append("")

    if not lines:
        return "✓ No issues found"
    status = "✓ Valid" if report.is_valid else "✗ Not valid for filing"
    lines.append(status)
    return "\n".join(lines)


# =============================================================================
# Commands
# =============================================================================


@cli.command("calc")
@click.argument("facts_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--state", "state_code", help="Also compute this state's return (default: facts state_code).")
@click.option("--enforce-caps", is_flag=True,
              help="Apply SALT, charitable and medical limits before choosing the deduction.")
@format_option
@sdk_errors
def calc(facts_file: str, state_code: Optional[str], enforce_caps: bool, output_format: Optional[str]):
    """Compute the federal (and state) return for FACTS_FILE.

    FACTS_FILE is a YAML or JSON document of tax return facts.

    \b
    Examples:
      tax-prep calc 2024-facts.yaml
      tax-prep calc 2024-facts.yaml --state CA --format json
    """
    facts = load_facts(facts_file)
    result = calculate_federal_return(facts, enforce_caps=enforce_caps)
    state_result = None
    if state_code or facts.state_code:
        state_result = calculate_state_return(facts, result, state_code=state_code)
    report = validate(facts, result)

    if resolve_format(output_format) == "json":
        echo_json({
            "federal": result.model_dump(),
            "state": state_result.model_dump() if state_result else None,
            "validation": {**report.model_dump(), "summary": report.summary},
        })
        return

    click.echo(_format_result_text(result))
    if state_result:
        click.echo()
        click.echo(_format_result_text(state_result))
    click.echo()
    click.echo(_format_report_text(report))


@cli.command("validate")
@click.argument("facts_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--result", "result_file", type=click.Path(exists=True, dir_okay=False),
              help="Validate this stored result instead of recomputing it.")
@format_option
@click.pass_context
@sdk_errors
def validate_cmd(ctx, facts_file: str, result_file: Optional[str], output_format: Optional[str]):
    """Validate FACTS_FILE against the year's limits.

    Exits with status 1 when the report contains errors.
    """
    facts = load_facts(facts_file)
    if result_file:
        result = load_document(result_file)
    else:
        result = calculate_federal_return(facts)
    report = validate(facts, result)

    if resolve_format(output_format) == "json":
        echo_json({**report.model_dump(), "summary": report.summary})
    else:
        click.echo(_format_report_text(report))

    if not report.is_valid:
        ctx.exit(1)


@cli.command("brackets")
@click.option("--year", type=int, help="Tax year (default: settings default_tax_year, else latest).")
@click.option("--filing-status", "-s", type=click.Choice(FILING_STATUSES), default="single",
              show_default=True)
@click.option("--income", type=float, help="Show how this taxable income spreads across brackets.")
@format_option
@sdk_errors
def brackets(year: Optional[int], filing_status: str, income: Optional[float], output_format: Optional[str]):
    """Show the federal bracket schedule for a year and filing status."""
    year = resolve_year(year)
    rules = load_tax_rules(year)
    schedule = rules.brackets_for(filing_status)
    standard = rules.filing_statuses.for_status(filing_status).standard_deduction

    breakdown = bracket_breakdown(income, schedule) if income is not None else None
    if resolve_format(output_format) == "json":
        echo_json({
            "year": year,
            "filing_status": filing_status,
            "standard_deduction": standard,
            "brackets": [b.model_dump() for b in schedule],
            "income": income,
            "breakdown": breakdown,
            "tax": compute_bracket_tax(income, schedule) if income is not None else None,
            "marginal_rate": marginal_rate(income, schedule) if income is not None else None,
        })
        return

    click.echo(f"{year} FEDERAL BRACKETS - {filing_status}")
    click.echo(f"Standard deduction: {money(standard)}")
    click.echo()
    click.echo(f"{'Rate':>6}  {'From':>14}  {'To':>14}")
    for b in schedule:
        upper = money(b.max) if b.max is not None else "and up"
        click.echo(f"{b.rate:>6.0%}  {money(b.min):>14}  {upper:>14}")

    if breakdown is not None:
        click.echo()
        click.echo(f"Taxable income {money(income)}:")
        for row in breakdown:
            click.echo(f"  {row['rate']:>4.0%} on {money(row['income']):>14} = {money(row['tax']):>12}")
        click.echo(f"  Total tax: {money(compute_bracket_tax(income, schedule))}"
                   f" (marginal rate {marginal_rate(income, schedule):.0%})")


@cli.command("amt-risk")
@click.argument("facts_file", type=click.Path(exists=True, dir_okay=False))
@format_option
@sdk_errors
def amt_risk(facts_file: str, output_format: Optional[str]):
    """Estimate AMT exposure for FACTS_FILE."""
    facts = load_facts(facts_file)
    result = calculate_federal_return(facts)
    risk = assess_amt_risk(result.taxable_income, facts.amt_preference_items, facts.dependent_count)

    if resolve_format(output_format) == "json":
        echo_json({**risk.model_dump(), "amt": result.amt})
        return

    click.echo(f"AMT risk: {risk.risk_level.upper()} (score {risk.risk_score}/100)")
    for indicator in risk.indicators:
        click.echo(f"  • {indicator}")
    click.echo(risk.recommendation)
    click.echo(f"Computed AMT: {money(result.amt)}")


@cli.command("depreciation")
@click.argument("facts_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--schedule", "show_schedule", is_flag=True, help="Show each asset's year-by-year schedule.")
@format_option
@sdk_errors
def depreciation(facts_file: str, show_schedule: bool, output_format: Optional[str]):
    """Depreciation of the business assets in FACTS_FILE (Schedule C line 13)."""
    facts = load_facts(facts_file)
    assets = facts.self_employment.assets if facts.self_employment else ()
    if not assets:
        raise click.ClickException("Facts have no self_employment.assets")
    rules = load_tax_rules(facts.tax_year).depreciation
    totals = calculate_total_depreciation(assets, facts.tax_year, rules)
    schedules = {asset.name: depreciation_schedule(asset, rules) for asset in assets} if show_schedule else None

    if resolve_format(output_format) == "json":
        echo_json({**totals, "schedules": schedules})
        return

    click.echo(f"DEPRECIATION {facts.tax_year} - {facts.taxpayer_id}")
    for d in totals["details"]:
        click.echo(
            f"  {d['name']:<28} {d['method']:<20} year {d['year_in_service']:>2}  "
            f"{money(d['current_year_depreciation']):>14}"
        )
    click.echo(f"  Section 179:  {money(totals['total_section_179'])}")
    click.echo(f"  Bonus:        {money(totals['total_bonus'])}")
    click.echo(f"  Total:        {money(totals['total_depreciation'])}")
    click.echo(totals["mid_quarter"]["note"])

    for name, rows in (schedules or {}).items():
        click.echo()
        click.echo(f"{name}:")
        for row in rows:
            click.echo(
                f"  {row['tax_year']}  {money(row['depreciation']):>14}  "
                f"book value {money(row['ending_book_value']):>14}"
            )


def _configure_logging() -> None:
    """Configure logging from the LOG_LEVEL environment variable."""
    log_level = os.environ.get("LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.WARNING),
        format="%(asctime)s.%(msecs)03d %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def main():
    """Entry point for the CLI."""
    _configure_logging()
    cli()


if __name__ == "__main__":
    main()
