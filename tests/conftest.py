import pytest

from worldwiki.core.logging import setup_logging

from .fakes import make_settings


@pytest.fixture(scope="session", autouse=True)
def _logging():
    setup_logging(make_settings(log_level="WARNING"))
