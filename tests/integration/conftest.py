"""Integration test fixtures: a real on-disk store, no network."""

from __future__ import annotations

import pytest

from greco_tracker.core.config import GrecoConfig
from greco_tracker.services import Services, create_services


@pytest.fixture
def services(greco_config: GrecoConfig) -> Services:
    """Service graph over the shared test data directory."""
    return create_services(greco_config)
