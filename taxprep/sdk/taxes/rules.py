"""Tax rules loading.

Federal rules live in YYYY.yaml, state tables in states-YYYY.yaml. Both are
validated against the schemas in taxes/schemas.py and cached per year, so
every calculation in a process sees the same immutable tables.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from ..config import get_tax_rules_dirs
from ..schemas import InputError
from .schemas import StateRules, TaxRules

logger = logging.getLogger(__name__)

STATE_RULES_PREFIX = "states-"


class TaxRulesNotFoundError(InputError):
    """Raised when no rules file exists for the requested tax year."""
    pass


def _find_rules_file(filename: str) -> Optional[Path]:
    for rules_dir in get_tax_rules_dirs():
        candidate = rules_dir / filename
        if candidate.exists():
            return candidate
    return None


def _read_yaml(path: Path) -> dict:
    with open(path, "r") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise InputError(f"Tax rules file {path} is empty or not a mapping")
    return data


def get_available_years() -> list[int]:
    """Get sorted list of years with federal rules available (descending)."""
    years = set()
    for rules_dir in get_tax_rules_dirs():
        if rules_dir.is_dir():
            years.update(int(p.stem) for p in rules_dir.glob("*.yaml") if p.stem.isdigit())
    return sorted(years, reverse=True)


def _get_available_state_years() -> list[int]:
    years = set()
    for rules_dir in get_tax_rules_dirs():
        if rules_dir.is_dir():
            for p in rules_dir.glob(f"{STATE_RULES_PREFIX}*.yaml"):
                suffix = p.stem[len(STATE_RULES_PREFIX):]
                if suffix.isdigit():
                    years.add(int(suffix))
    return sorted(years, reverse=True)


@lru_cache(maxsize=None)
def load_tax_rules(year: int) -> TaxRules:
    """Load and validate federal tax rules for a specific year.

    Args:
        year: Tax year (e.g., 2024)

    Returns:
        Validated TaxRules

    Raises:
        TaxRulesNotFoundError: If no YYYY.yaml exists for the year
        InputError: If the file fails schema validation
    """
    year = int(year)
    path = _find_rules_file(f"{year}.yaml")
    if path is None:
        available = ", ".join(str(y) for y in get_available_years()) or "none"
        raise TaxRulesNotFoundError(f"No tax rules for year {year} (available: {available})")

    logger.debug(f"Loading tax rules for {year} from {path}")
    try:
        rules = TaxRules.model_validate(_read_yaml(path))
    except ValidationError as e:
        raise InputError(f"Invalid tax rules file {path}: {e}") from e

    if rules.tax_year != year:
        raise InputError(f"Tax rules file {path} declares tax_year {rules.tax_year}, expected {year}")
    return rules


@lru_cache(maxsize=None)
def load_state_rules(year: int) -> StateRules:
    """Load state tax tables for a year, falling back to the newest prior year.

    State tables change less predictably than federal ones, so a year
    without its own file uses the most recent year before it.

    Raises:
        TaxRulesNotFoundError: If no state table exists at or before the year
    """
    year = int(year)
    candidates = [y for y in _get_available_state_years() if y <= year]
    if not candidates:
        raise TaxRulesNotFoundError(f"No state tax tables for year {year} or earlier")

    source_year = candidates[0]
    if source_year != year:
        logger.info(f"No state tables for {year}, using {source_year}")

    path = _find_rules_file(f"{STATE_RULES_PREFIX}{source_year}.yaml")
    try:
        return StateRules.model_validate(_read_yaml(path))
    except ValidationError as e:
        raise InputError(f"Invalid state rules file {path}: {e}") from e


def clear_rules_cache() -> None:
    """Forget cached rules (after settings or rule files change)."""
    load_tax_rules.cache_clear()
    load_state_rules.cache_clear()
