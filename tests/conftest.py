import datetime as dt
import os
import sys

import pytest

ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)


@pytest.fixture
def fixed_today():
    """Clock pinned to Wednesday 2025-01-15 for navigator tests."""
    return dt.date(2025, 1, 15)


@pytest.fixture
def clock(fixed_today):
    return lambda: fixed_today


@pytest.fixture
def q1_window():
    import task_calendar as tc
    return tc.BoundWindow(dt.date(2025, 1, 1), dt.date(2025, 3, 31))
