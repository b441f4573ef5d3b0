"""
Pytest configuration.

Adds the project root to the Python path so tests can import domain,
repositories, services and api, and provides an in-memory database.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path
from uuid import UUID

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.identity import Actor, Role  # noqa: E402
from repositories.client import use_client  # noqa: E402
from tests.fake_supabase import FakeSupabase  # noqa: E402


@pytest.fixture
def fake_db():
    """Route every repository call to a fresh in-memory database."""

    db = FakeSupabase()
    use_client(db)
    yield db
    use_client(None)


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def sales_rep() -> Actor:
    return Actor(
        user_id=UUID("00000000-0000-0000-0000-0000000000a1"),
        role=Role.SALES,
        name="Sam Rep",
        email="sam@example.com",
    )


@pytest.fixture
def admin() -> Actor:
    return Actor(
        user_id=UUID("00000000-0000-0000-0000-0000000000ad"),
        role=Role.ADMIN,
        name="Ada Admin",
        email="ada@example.com",
    )
