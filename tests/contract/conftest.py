"""Contract test configuration."""

import pytest

from ferry_captain.integrations.supabase import SupabaseBackend

SUPABASE_URL = "https://project.supabase.co"
REST = f"{SUPABASE_URL}/rest/v1"


@pytest.fixture
def supabase() -> SupabaseBackend:
    return SupabaseBackend(SUPABASE_URL, "service-key", timeout=5.0)


@pytest.fixture
def respx_mock():
    """Function-scoped respx mock for external HTTP calls."""
    import respx

    with respx.mock(assert_all_mocked=True, assert_all_called=False) as respx_mock:
        yield respx_mock
