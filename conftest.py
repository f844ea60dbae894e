"""Pytest configuration and shared fixtures."""

import pytest
from db.client import init_db, close_db, db_host, apply_schema

# Load env vars
from dotenv import load_dotenv
load_dotenv()


# =============================================================================
# SAFETY CHECK: Prevent tests from running against production database
# =============================================================================

ALLOWED_DB_HOSTS = {"localhost", "127.0.0.1", "host.docker.internal", "db", "postgres"}


def pytest_configure(config):
    """Register custom markers and check database safety."""
    config.addinivalue_line("markers", "no_db: mark test to skip database setup")
    config.addinivalue_line("markers", "integration: mark test as integration test (hits the record store)")

    # Check database host (unset means DB tests are skipped)
    host = db_host()

    if host and host not in ALLOWED_DB_HOSTS:
        pytest.exit(
            f"\n\n"
            f"{'=' * 60}\n"
            f"SAFETY CHECK FAILED: Cannot run tests against production DB!\n"
            f"{'=' * 60}\n"
            f"\n"
            f"Current database host: {host}\n"
            f"Allowed hosts: {', '.join(sorted(ALLOWED_DB_HOSTS))}\n"
            f"\n"
            f"To run tests, set OFFICEHUB_DB_HOST to 'localhost' in your .env\n"
            f"{'=' * 60}\n",
            returncode=1,
        )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(scope="function", autouse=True)
def require_db(request):
    """Skip tests that need the database when none is configured.

    Tests marked with @pytest.mark.no_db always run.
    """
    if "no_db" in [marker.name for marker in request.node.iter_markers()]:
        return
    if not db_host():
        pytest.skip("No database configured (set OFFICEHUB_DB_HOST or DATABASE_URL)")


@pytest.fixture
async def db():
    """Initialize database connection pool (and schema) for tests that need it."""
    pool = await init_db()
    await apply_schema()
    yield pool
    await close_db()
