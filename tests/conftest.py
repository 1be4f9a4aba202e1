"""Shared fixtures: isolated config directory, rules and a facts factory."""

import pytest

from taxprep.sdk import parse_facts
from taxprep.sdk.taxes import clear_rules_cache, load_tax_rules

from tests.factories import facts_dict


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the config dir at a temp directory and reset cached rules."""
    config_dir = tmp_path / "config"
    monkeypatch.setenv("TAX_PREP_CONFIG_PATH", str(config_dir))
    clear_rules_cache()
    yield config_dir
    clear_rules_cache()


@pytest.fixture
def rules_2024():
    return load_tax_rules(2024)


@pytest.fixture
def make_facts():
    """Factory building validated TaxReturnFacts from keyword overrides."""
    def _make(**overrides):
        return parse_facts(facts_dict(**overrides))
    return _make
