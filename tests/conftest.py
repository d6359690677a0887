"""Pytest configuration and shared fixtures for lanston tests"""

import os
import sys
from pathlib import Path
from typing import AsyncGenerator, Optional

import pytest
from dotenv import load_dotenv

from lanston import Database, DatabaseConfig

# Load environment variables
load_dotenv()

# Fix for Windows: asyncpg requires SelectorEventLoop on Windows
if sys.platform == "win32":
    import asyncio

    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())  # type: ignore[attr-defined]


SQLITE_TABLES = [
    """
    create table if not exists users (
      id integer primary key autoincrement,
      first_name text not null,
      last_name text
    )
    """,
    """
    create table if not exists emails (
      email text unique not null,
      user_id integer not null references users (id)
    )
    """,
]


# ==================== Configuration Fixtures ====================


@pytest.fixture(scope="session")
def pg_database_url() -> Optional[str]:
    """PostgreSQL test database URL from environment"""
    return os.getenv("PG_TEST_DATABASE_URL")


@pytest.fixture
def sqlite_url(tmp_path: Path) -> str:
    """File-backed SQLite database, fresh for every test"""
    return f"sqlite:///{tmp_path / 'lanston.db'}"


@pytest.fixture
def sqlite_config(sqlite_url: str) -> DatabaseConfig:
    """SQLite configuration with a small pool"""
    return DatabaseConfig(url=sqlite_url, pool_size=2, pool_timeout=5)


# ==================== SQLite Fixtures ====================


@pytest.fixture
async def sqlite_database(
    sqlite_config: DatabaseConfig,
) -> AsyncGenerator[Database, None]:
    """Connected database with the users and emails tables"""
    database = Database(sqlite_config)
    await database.connect()
    try:
        for ddl in SQLITE_TABLES:
            await database.query(ddl)
        yield database
    finally:
        await database.disconnect()


# ==================== PostgreSQL Fixtures ====================


@pytest.fixture
async def pg_config(pg_database_url: Optional[str]) -> DatabaseConfig:
    """PostgreSQL database configuration"""
    if not pg_database_url:
        pytest.skip("PG_TEST_DATABASE_URL not set in environment")
    return DatabaseConfig(url=pg_database_url, pool_size=4)


@pytest.fixture
async def pg_database(pg_config: DatabaseConfig) -> AsyncGenerator[Database, None]:
    """PostgreSQL database with a scratch ``tropos`` schema, dropped afterwards"""
    database = Database(pg_config)
    await database.connect()
    try:
        await database.query("create schema if not exists tropos")
        await database.query(
            """
            create table if not exists tropos.users (
              id serial primary key,
              first_name text not null,
              last_name text
            )
            """
        )
        await database.query(
            """
            create table if not exists tropos.emails (
              email text unique not null,
              user_id int not null references tropos.users
            )
            """
        )
        yield database
    finally:
        try:
            await database.query("drop schema tropos cascade")
        finally:
            await database.disconnect()


# ==================== Pytest Configuration ====================


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "postgresql: PostgreSQL-specific tests")
    config.addinivalue_line("markers", "sqlite: Tests against a SQLite file database")
    config.addinivalue_line(
        "markers", "integration: Integration tests requiring database"
    )
    config.addinivalue_line("markers", "slow: Slow-running tests")
