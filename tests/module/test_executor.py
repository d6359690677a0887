"""Module Tests for StatementExecutor

Runs against a SQLite file database. Validates:
- Ambient execution (lease, commit, release)
- Named and positional parameters
- StatementError wrapping
- Diagnostics recording and sink isolation
"""

import logging

import pytest

from lanston import Database, DatabaseConfig, QueryStats
from lanston.core import StatementExecutor
from lanston.core.statements import build_select
from lanston.errors import NotConnectedError, StatementError

pytestmark = [pytest.mark.sqlite]


class TestExecute:
    """Test statement execution on the shared pool."""

    async def test_select_rows(self, sqlite_database: Database):
        result = await sqlite_database.query("select 1 as test_col, 'a' as name")

        assert result.row_count == 1
        assert result.columns == ["test_col", "name"]
        assert result.rows == [{"test_col": 1, "name": "a"}]
        assert result.execution_time_ms is not None

    async def test_named_params(self, sqlite_database: Database):
        await sqlite_database.query(
            "insert into users (first_name, last_name) values (:first, :last)",
            {"first": "alois", "last": "barreras"},
        )
        result = await sqlite_database.query(
            "select first_name from users where last_name = :last",
            {"last": "barreras"},
        )
        assert result.rows == [{"first_name": "alois"}]

    async def test_positional_params(self, sqlite_database: Database):
        """Sequences go to the driver in its own placeholder style."""
        result = await sqlite_database.query("select ? as value", ["x"])
        assert result.rows == [{"value": "x"}]

    async def test_dml_row_count(self, sqlite_database: Database):
        for name in ["a", "b", "c"]:
            await sqlite_database.query(
                "insert into users (first_name) values (:n)", {"n": name}
            )
        result = await sqlite_database.query(
            "update users set last_name = 'x' where first_name in ('a', 'b')"
        )
        assert result.rows == []
        assert result.row_count == 2

    async def test_ambient_statement_commits(self, sqlite_database: Database):
        """Each ambient statement is visible to the next one."""
        await sqlite_database.query("insert into users (first_name) values ('a')")
        result = await sqlite_database.query("select count(*) as n from users")
        assert result.rows[0]["n"] == 1
        assert sqlite_database.pool.leased_count == 0

    async def test_colon_literal_without_params(self, sqlite_database: Database):
        """Text without params reaches the driver untouched."""
        result = await sqlite_database.query(
            """select '{"a":1}' as j, 'a :b' as k"""
        )
        assert result.rows == [{"j": '{"a":1}', "k": "a :b"}]

    async def test_executable_statement(self, sqlite_database: Database):
        await sqlite_database.query("insert into users (first_name) values ('a')")
        result = await sqlite_database.query(build_select("users", "main", {"id": 1}))
        assert result.rows[0]["first_name"] == "a"
        assert "main.users" in result.statement


class TestErrors:
    """Test error handling."""

    async def test_not_connected(self, sqlite_config: DatabaseConfig):
        database = Database(sqlite_config)
        with pytest.raises(NotConnectedError):
            await database.query("select 1")

    async def test_after_disconnect(self, sqlite_config: DatabaseConfig):
        database = Database(sqlite_config)
        await database.connect()
        await database.disconnect()
        with pytest.raises(NotConnectedError):
            await database.query("select 1")

    async def test_syntax_error(self, sqlite_database: Database):
        with pytest.raises(StatementError) as exc_info:
            await sqlite_database.query("selec 1")

        error = exc_info.value
        assert error.statement == "selec 1"
        assert error.orig is not None
        assert "syntax error" in str(error)
        assert sqlite_database.pool.leased_count == 0

    async def test_deferred_constraint_fails_at_commit(self, sqlite_url: str):
        """A violation raised by the ambient commit is wrapped too."""
        config = DatabaseConfig(url=sqlite_url, pool_size=1, pool_timeout=5)
        async with Database(config) as database:
            await database.query("pragma foreign_keys = on")
            await database.query("create table parent (id integer primary key)")
            await database.query(
                "create table child (pid integer references parent (id) "
                "deferrable initially deferred)"
            )

            with pytest.raises(StatementError) as exc_info:
                await database.query("insert into child (pid) values (42)")

            error = exc_info.value
            assert error.statement == "insert into child (pid) values (42)"
            assert "FOREIGN KEY" in str(error)
            assert database.pool.leased_count == 0

            result = await database.query("select count(*) as n from child")
            assert result.rows[0]["n"] == 0

    async def test_constraint_violation(self, sqlite_database: Database):
        """A NOT NULL violation surfaces as StatementError and changes nothing."""
        with pytest.raises(StatementError):
            await sqlite_database.query("insert into users (last_name) values ('x')")

        result = await sqlite_database.query("select count(*) as n from users")
        assert result.rows[0]["n"] == 0


class TestDiagnostics:
    """Test query diagnostics."""

    async def test_sink_receives_stats(self, sqlite_config: DatabaseConfig):
        events: list[QueryStats] = []
        async with Database(sqlite_config, stats_sink=events.append) as database:
            await database.query("select 1 as a union all select 2")

        assert len(events) == 1
        assert events[0].statement == "select 1 as a union all select 2"
        assert events[0].row_count == 2
        assert events[0].duration_ms >= 0

    async def test_failing_sink_does_not_mask_result(
        self, sqlite_config: DatabaseConfig, caplog: pytest.LogCaptureFixture
    ):
        def broken_sink(stats: QueryStats) -> None:
            raise RuntimeError("sink down")

        async with Database(sqlite_config, stats_sink=broken_sink) as database:
            with caplog.at_level(logging.WARNING, logger="lanston.core.executor"):
                result = await database.query("select 1 as a")

        assert result.rows == [{"a": 1}]
        assert "diagnostics sink failed" in caplog.text

    async def test_stats_logged_at_debug(
        self, sqlite_database: Database, caplog: pytest.LogCaptureFixture
    ):
        with caplog.at_level(logging.DEBUG, logger="lanston.query_stats"):
            await sqlite_database.query("select 1")

        records = [r for r in caplog.records if r.name == "lanston.query_stats"]
        assert records
        assert records[-1].statement == "select 1"

    async def test_executor_on_explicit_connection(self, sqlite_database: Database):
        """With a connection the executor runs on it and does not commit."""
        executor = StatementExecutor(sqlite_database.pool)
        async with sqlite_database.pool.connection() as conn:
            trans = await conn.begin()
            await executor.execute(
                "insert into users (first_name) values ('a')", connection=conn
            )
            await trans.rollback()

        result = await sqlite_database.query("select count(*) as n from users")
        assert result.rows[0]["n"] == 0
