import pytest
import structlog


@pytest.fixture(autouse=True)
def _reset_structlog():
    # configure_logging binds the current stderr; captured streams close after each test.
    yield
    structlog.reset_defaults()
