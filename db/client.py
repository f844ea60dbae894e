import os
from pathlib import Path
from contextlib import asynccontextmanager
from typing import Optional, Dict, Any
from urllib.parse import urlparse
import asyncpg
import aiosql
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

SCHEMA = "officehub"
SCHEMA_FILE = Path(__file__).parent / "schema.sql"


def _connection_settings() -> Optional[Dict[str, Any]]:
    """DATABASE_URL first (production), then OFFICEHUB_DB_* vars (local dev).

    Returns None when neither names a host.
    """
    url = os.getenv("DATABASE_URL")
    if url:
        parsed = urlparse(url)
        return {
            "host": parsed.hostname,
            "port": parsed.port or 5432,
            "database": parsed.path.lstrip("/"),
            "user": parsed.username,
            "password": parsed.password,
        }

    host = os.getenv("OFFICEHUB_DB_HOST")
    if not host:
        return None
    return {
        "host": host,
        "port": int(os.getenv("OFFICEHUB_DB_PORT", "5432")),
        "database": os.getenv("OFFICEHUB_DB_NAME"),
        "user": os.getenv("OFFICEHUB_DB_USER"),
        "password": os.getenv("OFFICEHUB_DB_PASSWORD"),
    }


def db_host() -> Optional[str]:
    """Host the pool would connect to, or None when nothing is configured."""
    settings = _connection_settings()
    return settings["host"] if settings else None


# Named queries, one file per collection
queries = aiosql.from_path(
    Path(__file__).parent / "queries",
    "asyncpg",
)

# Global connection pool
_pool = None


async def _init_connection(conn):
    await conn.execute(f"SET search_path TO {SCHEMA}, public")


async def init_db():
    """Initialize connection pool once at startup."""
    global _pool
    if _pool is None:
        settings = _connection_settings()
        if settings is None:
            raise RuntimeError("No database configured (set DATABASE_URL or OFFICEHUB_DB_HOST)")

        _pool = await asyncpg.create_pool(
            **settings,
            min_size=1,
            max_size=10,
            command_timeout=60,
            max_inactive_connection_lifetime=300,
            init=_init_connection,
        )
    return _pool


@asynccontextmanager
async def get_conn():
    """Get connection from pool."""
    pool = await init_db()
    async with pool.acquire() as conn:
        yield conn


@asynccontextmanager
async def get_transaction():
    """Get connection with transaction context. Rolls back if the block raises."""
    pool = await init_db()
    async with pool.acquire() as conn:
        async with conn.transaction():
            yield conn


async def apply_schema():
    """Create the schema, tables and constraints. Safe to run repeatedly."""
    async with get_conn() as conn:
        await conn.execute(SCHEMA_FILE.read_text())


async def close_db():
    """Gracefully close all connections."""
    global _pool
    if _pool:
        await _pool.close()
        _pool = None
