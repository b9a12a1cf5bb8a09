"""Shared test fixtures for the cruise contract parser test suite."""

from pathlib import Path

import pytest

SAMPLE_CONTRACT = """ROYAL CARIBBEAN INTERNATIONAL
Booking Confirmation
All amounts are in USD
Cabin 8254 - Balcony - $3,500.00
Stateroom 9120 - Oceanview - $2,800.00
Sail Date: 06/15/2025
Deposit Due: 01/10/2025
Final Payment Due: March 1, 2025
"""


@pytest.fixture
def sample_contract() -> str:
    """A clean USD contract with two priced cabins and three dates."""
    return SAMPLE_CONTRACT


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def config_dir(project_root: Path) -> Path:
    """Return the configs directory path."""
    return project_root / "configs"
