"""Shared pytest fixtures for finledger tests."""

import tempfile
import os
from pathlib import Path
import pytest

from finledger.database.factories import create_sqlite_database
from finledger.domain.categorization import CategoryRuleService
from finledger.domain.category import CategoryService
from finledger.domain.quota import QuotaService

from helpers import TODAY


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def category_service(temp_db):
    """Create a CategoryService with a temporary database."""
    return CategoryService(temp_db)


@pytest.fixture
def rule_service(temp_db):
    """Create a CategoryRuleService with a temporary database."""
    return CategoryRuleService(temp_db)


@pytest.fixture
def quota_service(temp_db):
    """Create a QuotaService with a fixed clock and a small limit."""
    return QuotaService(temp_db, default_limit=3, clock=lambda: TODAY)


@pytest.fixture
def sample_document(temp_db):
    """Register a document and return its ID."""
    return temp_db.create_document(owner_id="owner-1", original_name="statement.csv", media_type="text/csv")


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def fixtures_dir():
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"
