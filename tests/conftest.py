"""
Shared test configuration.

Environment defaults are applied before anything under ``app`` is imported so
the module-level settings object sees them.
"""

import os
import sys

import pytest

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "10000")
os.environ.setdefault("AUTO_REPLY_MIN_DELAY_MS", "0")
os.environ.setdefault("AUTO_REPLY_MAX_DELAY_MS", "0")
os.environ.setdefault("ENABLE_METRICS", "false")

from app.models.enums import UserRole  # noqa: E402
from tests.utils.fakes import FakeStore, SharedLockTable  # noqa: E402

TEST_JWT_SECRET = os.environ["JWT_SECRET"]

BRAND_ID = 1
AMBASSADOR_ID = 2
OUTSIDER_ID = 3


@pytest.fixture
def store() -> FakeStore:
    """A preview brand matched with a simulated ambassador, plus an outsider."""
    fake = FakeStore()
    fake.add_user(BRAND_ID, "Acme", UserRole.BRAND.value, is_preview=True)
    fake.add_user(AMBASSADOR_ID, "Riley", UserRole.AMBASSADOR.value, is_preview_ambassador=True, bio="Trail runner")
    fake.add_user(OUTSIDER_ID, "Mallory", UserRole.BRAND.value)
    fake.add_match(BRAND_ID, AMBASSADOR_ID)
    return fake


@pytest.fixture
def lock_table() -> SharedLockTable:
    return SharedLockTable()
