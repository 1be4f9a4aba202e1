"""Settings CLI commands for Tax Prep.

Manages settings.json - default tax year, output format, custom rules directory.
"""

from pathlib import Path

import click

from taxprep.sdk import (
    KNOWN_SETTINGS,
    get_setting,
    get_settings_path,
    get_tax_rules_dirs,
    load_settings,
    set_setting,
)
from taxprep.sdk.taxes import clear_rules_cache


@click.group()
def settings():
    """Manage settings (settings.json).

    \b
    Available settings:
    - default_tax_year: year used when a command is not given --year
    - default_output_format: text or json
    - tax_rules_dir: directory with custom YYYY.yaml rules files
    """
    pass


@settings.command("show")
def settings_show():
    """Show current settings and the effective rules search path."""
    settings_path = get_settings_path()
    current = load_settings()

    click.echo(f"Settings file: {settings_path}")
    click.echo(f"File exists: {settings_path.exists()}")
    click.echo()

    if current:
        click.echo("Current settings:")
        for key, value in current.items():
            click.echo(f"  {key}: {value}")
    else:
        click.echo("No settings configured (using defaults).")

    click.echo()
    click.echo("Tax rules search path:")
    for rules_dir in get_tax_rules_dirs():
        status = "" if rules_dir.is_dir() else " (missing)"
        click.echo(f"  {rules_dir}{status}")


@settings.command("get")
@click.argument("key", type=click.Choice(KNOWN_SETTINGS))
def settings_get(key: str):
    """Print a setting value."""
    value = get_setting(key)
    if value is None:
        click.echo(f"{key} is not set")
    else:
        click.echo(value)


@settings.command("set")
@click.argument("key", type=click.Choice(KNOWN_SETTINGS))
@click.argument("value")
def settings_set(key: str, value: str):
    """Set a setting value.

    \b
    Examples:
        tax-prep settings set default_tax_year 2024
        tax-prep settings set default_output_format json
        tax-prep settings set tax_rules_dir ~/tax-rules
    """
    if key == "default_tax_year":
        if not (value.isdigit() and len(value) == 4):
            raise click.BadParameter(f"Invalid year '{value}'. Must be 4 digits.")
        stored = int(value)
    elif key == "default_output_format":
        if value not in ("text", "json"):
            raise click.BadParameter("Output format must be 'text' or 'json'.")
        stored = value
    else:
        rules_path = Path(value).expanduser().resolve()
        if not rules_path.is_dir():
            raise click.ClickException(f"Not a directory: {rules_path}")
        stored = str(rules_path)
        clear_rules_cache()

    path = set_setting(key, stored)
    click.echo(f"Set {key}: {stored}")
    click.echo(f"Saved to: {path}")


@settings.command("unset")
@click.argument("key", type=click.Choice(KNOWN_SETTINGS))
def settings_unset(key: str):
    """Remove a setting, reverting to the default."""
    if get_setting(key) is None:
        click.echo(f"{key} was not set.")
        return
    set_setting(key, None)
    if key == "tax_rules_dir":
        clear_rules_cache()
    click.echo(f"Cleared {key}.")
