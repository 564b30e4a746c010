import pytest
from sqlhelper.cache import Cache
from sqlhelper.connection import dispose_all_engines


@pytest.fixture(autouse=True)
def clear_caches():
    """Clear all caches before and after each test to ensure test isolation."""
    Cache.get_instance().clear_all()
    yield
    Cache.get_instance().clear_all()


@pytest.fixture(autouse=True)
def dispose_engines():
    """Release engines created by a test so database files can be removed."""
    yield
    dispose_all_engines()


pytest_plugins = [
    'tests.fixtures.models',
    'tests.fixtures.mocks',
    'tests.fixtures.sqlite',
]
