"""Unit test configuration."""

import pytest
from fastapi import FastAPI

from ferry_captain.factory import create_app as _create_app


@pytest.fixture
def app(fake_backend, test_settings) -> FastAPI:
    """Return a fresh app instance wired to the fake backend."""
    from tests.conftest import reset_settings_cache

    reset_settings_cache()
    return _create_app(test_settings, backend=fake_backend)


@pytest.fixture
def unconfigured_app(test_settings) -> FastAPI:
    """Return an app with no backend configured."""
    return _create_app(test_settings)
