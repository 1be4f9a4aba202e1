"""Amended return (1040-X) command."""

from datetime import date
from typing import Optional

import click
from pydantic import ValidationError

from taxprep.sdk import (
    Amendment,
    InputError,
    ReturnSnapshot,
    amend_return,
    calculate_federal_return,
    form_1040x,
    parse_facts,
)

from .common import echo_json, format_option, load_document, money, resolve_format, sdk_errors


def load_snapshot(path: str) -> ReturnSnapshot:
    """Load a return snapshot document.

    The document holds `facts` plus filing state (status, filed_date,
    due_date, under_audit, amendment_count). When `result` is absent the
    federal result is computed from the facts.
    """
    data = load_document(path)
    if "facts" not in data:
        raise InputError(f"{path}: return snapshot needs a 'facts' section")

    facts = parse_facts(data["facts"])
    result = data.get("result") or calculate_federal_return(facts)
    try:
        return ReturnSnapshot.model_validate({**data, "facts": facts, "result": result})
    except ValidationError as e:
        raise InputError(f"Invalid return snapshot {path}: {e}") from e


def _format_amendment_text(amendment: Amendment) -> str:
    diff = amendment.diff
    lines = [
        f"FORM 1040-X - {diff.taxpayer_id} ({diff.tax_year})",
        "=" * 78,
        f"{'Line':<40} {'Original':>12} {'Change':>12} {'Amended':>12}",
        "-" * 78,
    ]
    for line in diff.changed_lines:
        lines.append(
            f"{line.line_label:<40} {line.original_amount:>12,.2f} "
            f"{line.change:>+12,.2f} {line.amended_amount:>12,.2f}"
        )
    if not diff.has_changes:
        lines.append("No line changes")
    lines.append("=" * 78)

    summary = diff.summary
    if summary.additional_refund > 0:
        lines.append(f"Additional refund:   {money(summary.additional_refund)}")
    elif summary.additional_tax_owed > 0:
        lines.append(f"Additional tax owed: {money(summary.additional_tax_owed)}")
        accruals = amendment.accruals
        if accruals["charges"] > 0:
            lines.append(
                f"  Interest {money(accruals['interest'])} + penalty {money(accruals['penalty'])}"
                f" ({accruals['days_late']} days late)"
            )
    else:
        lines.append("No change to refund or amount owed")

    lines.append(f"Amendment deadline:  {amendment.eligibility.deadline}")
    for warning in amendment.eligibility.warnings:
        lines.append(f"⚠ {warning}")
    lines.append("")
    lines.append("Explanation of changes:")
    lines.append(amendment.explanation)
    return "\n".join(lines)


@click.command("amend")
@click.argument("original_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("amended_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--as-of", type=click.DateTime(formats=["%Y-%m-%d"]),
              help="Date the amendment is filed (default: today).")
@click.option("--form", "show_form", is_flag=True, help="Output Form 1040-X column data (JSON).")
@format_option
@sdk_errors
def amend(original_file: str, amended_file: str, as_of, show_form: bool, output_format: Optional[str]):
    """Compare ORIGINAL_FILE with AMENDED_FILE and prepare a 1040-X.

    Both files are return snapshots: a `facts` section plus the original's
    status, filed_date and due_date. Fails if the original can no longer
    be amended.
    """
    original = load_snapshot(original_file)
    amended = load_snapshot(amended_file)
    as_of_date: date = as_of.date() if as_of else date.today()

    amendment = amend_return(original, amended, as_of_date)

    if show_form:
        echo_json(form_1040x(amendment.diff, amendment.explanation))
        return
    if resolve_format(output_format) == "json":
        echo_json(amendment.model_dump(mode="json"))
        return
    click.echo(_format_amendment_text(amendment))
