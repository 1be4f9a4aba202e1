"""Configuration for Tax Prep.

The config directory holds settings.json and an optional tax-rules/
directory of user-supplied rules files.

    TAX_PREP_CONFIG_PATH          overrides the config directory
    $XDG_CONFIG_HOME/tax-prep/    default (~/.config/tax-prep/)

settings.json keys:
   - default_tax_year: year used when a command is not given one
   - default_output_format: "text" or "json"
   - tax_rules_dir: directory with custom YYYY.yaml / states-YYYY.yaml files

Rules files are searched in the tax_rules_dir setting, then
<config dir>/tax-rules/, then the tables shipped in taxprep/sdk/taxes/tax_rules/.
The first directory holding the requested file wins.
"""

import json
import os
from pathlib import Path
from typing import Any

from .schemas import InputError

APP_NAME = "tax-prep"
CONFIG_ENV_VAR = "TAX_PREP_CONFIG_PATH"
SETTINGS_FILENAME = "settings.json"
USER_RULES_DIRNAME = "tax-rules"
PACKAGED_RULES_DIR = Path(__file__).parent / "taxes" / "tax_rules"

KNOWN_SETTINGS = ("default_tax_year", "default_output_format", "tax_rules_dir")


def get_config_dir() -> Path:
    """Directory holding settings.json and user rules (may not exist yet)."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    base = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(base) / APP_NAME


def get_settings_path() -> Path:
    return get_config_dir() / SETTINGS_FILENAME


def load_settings() -> dict:
    """Read settings.json.

    Returns:
        Settings mapping, empty when the file is absent

    Raises:
        InputError: If the file is not a JSON object
    """
    path = get_settings_path()
    if not path.exists():
        return {}
    with open(path, "r") as f:
        try:
            settings = json.load(f)
        except json.JSONDecodeError as e:
            raise InputError(f"Cannot parse {path}: {e}") from e
    if not isinstance(settings, dict):
        raise InputError(f"{path} must contain a JSON object")
    return settings


def save_settings(settings: dict) -> Path:
    """Write settings.json, creating the config directory on first use."""
    path = get_settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(settings, f, indent=2, sort_keys=True)
    return path


def get_setting(key: str, default: Any = None) -> Any:
    return load_settings().get(key, default)


def set_setting(key: str, value: Any) -> Path:
    """Store one setting; a value of None removes the key.

    Returns:
        Path of the written settings file
    """
    settings = load_settings()
    if value is None:
        settings.pop(key, None)
    else:
        settings[key] = value
    return save_settings(settings)


def get_tax_rules_dirs() -> list[Path]:
    """Directories searched for tax rules files, highest priority first."""
    dirs = []
    custom = get_setting("tax_rules_dir")
    if custom:
        dirs.append(Path(custom).expanduser())
    dirs.append(get_config_dir() / USER_RULES_DIRNAME)
    dirs.append(PACKAGED_RULES_DIR)
    return dirs
