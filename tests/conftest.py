"""Shared fixtures for the town generator tests."""

import pytest

from py_towngen.core.params import TownParams
from py_towngen.core.town import generate_town

VIEWPORT = (1200, 800)


@pytest.fixture(scope="session")
def default_params():
    return TownParams().clamped()


@pytest.fixture(scope="session")
def default_town(default_params):
    """Full pipeline run with the default parameters (expensive, shared)."""
    return generate_town(default_params, VIEWPORT)
