"""Pytest configuration and shared fixtures."""

import pytest

from labqc.core.config import get_settings
from labqc.core.engine import RuleConfiguration


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Settings read the environment; isolate each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def all_rules_config() -> RuleConfiguration:
    """Every rule and CUSUM enabled."""
    return RuleConfiguration(
        enable_2of3_2s_reject=True,
        enable_3_1s_reject=True,
        enable_6x_reject=True,
        enable_9x_reject=True,
        enable_7t_reject=True,
        enable_cusum=True,
    )


@pytest.fixture
def classic_config() -> RuleConfiguration:
    """Classic Westgard rules only (catalogue defaults)."""
    return RuleConfiguration()
