import pytest

from dynamic_logging.context import clear_ambient_context
from dynamic_logging.engine import DynamicLogger


@pytest.fixture(autouse=True)
def reset_dynamic_logging_state():
    """Every test starts without a process wide logger or ambient entries"""
    DynamicLogger.reset_instance()
    clear_ambient_context()
    yield
    DynamicLogger.reset_instance()
    clear_ambient_context()
