import pathlib
import site

import pytest
from procmap.binding import get_bindings
from procmap.connection import dispose_all_engines

HERE = pathlib.Path(pathlib.Path(__file__).resolve()).parent
site.addsitedir(HERE)


@pytest.fixture(autouse=True)
def clear_caches():
    """Clear binding cache and engine registry so tests stay isolated."""
    get_bindings.cache_clear()
    yield
    get_bindings.cache_clear()
    dispose_all_engines()


pytest_plugins = [
    'tests.fixtures.mocks',
    'tests.fixtures.sqlserver',
]
