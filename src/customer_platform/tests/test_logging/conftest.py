import pytest

from customer_platform.config import get_settings
from customer_platform.core.logging.builder import setup_logging, stop_queue_logging


@pytest.fixture(autouse=True)
def restore_app_logging():
    """These tests install their own logging config; put the session one back afterwards."""
    yield
    stop_queue_logging()
    setup_logging(get_settings())
