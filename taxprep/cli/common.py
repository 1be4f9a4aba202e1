"""Shared helpers for CLI commands: input loading, error mapping, output format."""

import functools
import json
from pathlib import Path
from typing import Optional

import click
import yaml

from taxprep.sdk import (
    EligibilityError,
    InputError,
    TaxReturnFacts,
    get_available_years,
    get_setting,
    parse_facts,
)

OUTPUT_FORMATS = ["text", "json"]


def format_option(f):
    """--format text|json, defaulting to the default_output_format setting."""
    return click.option(
        "--format", "output_format", type=click.Choice(OUTPUT_FORMATS), default=None,
        help="Output format (default: settings default_output_format, else text).",
    )(f)


def resolve_format(output_format: Optional[str]) -> str:
    return output_format or get_setting("default_output_format", "text")


def resolve_year(year: Optional[int]) -> int:
    """Explicit year, else the default_tax_year setting, else the newest rules year."""
    if year:
        return int(year)
    configured = get_setting("default_tax_year")
    if configured:
        return int(configured)
    available = get_available_years()
    if not available:
        raise click.ClickException("No tax rules available")
    return available[0]


def sdk_errors(f):
    """Map SDK and file errors onto ClickException (exit code 1)."""
    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except (InputError, EligibilityError, FileNotFoundError) as e:
            raise click.ClickException(str(e))
    return wrapper


def load_document(path: str) -> dict:
    """Read a YAML or JSON document (by extension; YAML otherwise)."""
    file_path = Path(path)
    with open(file_path, "r") as f:
        try:
            if file_path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise InputError(f"Cannot parse {file_path}: {e}") from e
    if not isinstance(data, dict):
        raise InputError(f"{file_path} must contain a mapping at the top level")
    return data


def load_facts(path: str) -> TaxReturnFacts:
    return parse_facts(load_document(path))


def money(amount: float) -> str:
    return f"${amount:,.2f}"


def echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2, default=str))
