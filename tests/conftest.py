import logging

import pytest


@pytest.fixture(autouse=True)
def debug_logging(caplog):
    """Capture package debug logs so SQL logging paths run in every test."""
    caplog.set_level(logging.DEBUG, logger='dbaccess')
    yield


pytest_plugins = [
    'tests.fixtures.mocks',
    'tests.fixtures.sqlite',
]
