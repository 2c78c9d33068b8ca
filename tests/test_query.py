import pytest

from flowsql import execute_query
from flowsql.definitions import (
    AffectedRows, ExecuteType, Input, Options, Parameter, ScalarValue, TransactionIsolationLevel,
)
from flowsql.errors import DatabaseConnectionError, ExecutionError, InvalidArgumentError

NO_THROW = Options(throw_error_on_failure=False)


@pytest.mark.asyncio
async def test_select_returns_rows_in_order(db_url):
    result = await execute_query(Input(query="SELECT * FROM lista", connection_string=db_url))

    assert result.success is True
    assert result.error_message is None
    assert result.data == [
        {"id": 1, "name": "a"},
        {"id": 2, "name": "b"},
        {"id": 3, "name": "c"},
    ]


@pytest.mark.asyncio
async def test_select_with_parameter_matching_no_rows(db_url):
    task_input = Input(
        query="SELECT * FROM lista WHERE id = :ehto",
        parameters=[Parameter(name="ehto", value=0)],
        connection_string=db_url,
    )

    result = await execute_query(task_input)

    assert result.success is True
    assert result.data == []


@pytest.mark.asyncio
async def test_insert_without_returning_reports_affected_rows(db_url, fetch):
    task_input = Input(query="INSERT INTO lista (id, name) VALUES (5, 'x')", connection_string=db_url)

    result = await execute_query(task_input)

    assert result.records_affected == 1
    assert result.data == AffectedRows(affected_rows=1)
    assert result.to_dict()["data"] == {"AffectedRows": 1}
    assert fetch("SELECT name FROM lista WHERE id = 5") == [{"name": "x"}]


@pytest.mark.asyncio
async def test_insert_with_returning_returns_rows(db_url, fetch):
    task_input = Input(
        query="INSERT INTO lista (id, name) VALUES (6, 'y') RETURNING id, name",
        connection_string=db_url,
    )

    result = await execute_query(task_input)

    assert result.success is True
    assert result.data == [{"id": 6, "name": "y"}]
    assert fetch("SELECT id FROM lista WHERE id = 6") == [{"id": 6}]


@pytest.mark.asyncio
async def test_update_reports_every_affected_row(db_url, fetch):
    task_input = Input(
        query="UPDATE lista SET name = :name",
        parameters=[Parameter(name="name", value="z")],
        connection_string=db_url,
    )

    result = await execute_query(task_input)

    assert result.records_affected == 3
    assert result.data == AffectedRows(affected_rows=3)
    assert fetch("SELECT DISTINCT name FROM lista") == [{"name": "z"}]


@pytest.mark.asyncio
async def test_null_values_become_empty_strings(db_url):
    insert = Input(
        query="INSERT INTO lista (id, name) VALUES (:id, :name)",
        parameters=[Parameter(name="id", value=4), Parameter(name="name", value=None)],
        connection_string=db_url,
    )
    await execute_query(insert)

    result = await execute_query(Input(query="SELECT id, name FROM lista WHERE id = 4", connection_string=db_url))

    assert result.data == [{"id": 4, "name": ""}]


@pytest.mark.asyncio
async def test_scalar_returns_first_column_of_first_row(db_url):
    task_input = Input(
        query="SELECT COUNT(*) AS total, 'ignored' FROM lista",
        connection_string=db_url,
        execute_type=ExecuteType.SCALAR,
    )

    result = await execute_query(task_input)

    assert result.records_affected == 1
    assert result.data == ScalarValue(value=3)
    assert result.to_dict()["data"] == {"Value": 3}


@pytest.mark.asyncio
async def test_explicit_reader_accepts_execute_reader_name(db_url):
    result = await execute_query({
        "query": "SELECT name FROM lista WHERE id = 2",
        "connectionString": db_url,
        "executeType": "ExecuteReader",
    })

    assert result.data == [{"name": "b"}]


@pytest.mark.asyncio
async def test_sync_sqlite_url_is_switched_to_async_driver(db_path):
    result = await execute_query(Input(query="SELECT id FROM lista WHERE id = 1", connection_string=f"sqlite:///{db_path}"))
    assert result.data == [{"id": 1}]


@pytest.mark.asyncio
async def test_failed_statement_leaves_no_partial_effect(db_url, fetch):
    # The second row collides with an existing primary key
    task_input = Input(
        query="INSERT INTO lista (id, name) VALUES (7, 'new'), (1, 'dup')",
        connection_string=db_url,
    )

    with pytest.raises(ExecutionError, match="transaction rolled back"):
        await execute_query(task_input)

    assert fetch("SELECT * FROM lista WHERE id = 7") == []
    result = await execute_query(Input(query="SELECT * FROM lista WHERE id = 7", connection_string=db_url))
    assert result.data == []


@pytest.mark.asyncio
async def test_failure_without_transaction_says_nothing_was_rolled_back(db_url):
    task_input = Input(query="INSERT INTO lista (id, name) VALUES (1, 'dup')", connection_string=db_url)
    options = Options(isolation_level=TransactionIsolationLevel.NONE, throw_error_on_failure=False)

    result = await execute_query(task_input, options)

    assert result.success is False
    assert "IntegrityError" in result.error_message
    assert "no transaction was open" in result.error_message


@pytest.mark.asyncio
async def test_isolation_none_commits_each_statement(db_url, fetch):
    task_input = Input(query="DELETE FROM lista WHERE id = 3", connection_string=db_url)

    result = await execute_query(task_input, Options(isolation_level=TransactionIsolationLevel.NONE))

    assert result.data == AffectedRows(affected_rows=1)
    assert fetch("SELECT id FROM lista ORDER BY id") == [{"id": 1}, {"id": 2}]


# -------------------------------
# Failure policy
# -------------------------------
@pytest.mark.asyncio
async def test_throw_on_failure_raises_execution_error(db_url):
    with pytest.raises(ExecutionError, match="no such table"):
        await execute_query(Input(query="SELECT * FROM missing_table", connection_string=db_url))


@pytest.mark.asyncio
async def test_throw_on_failure_raises_invalid_argument():
    with pytest.raises(InvalidArgumentError):
        await execute_query(Input(query="", connection_string="sqlite+aiosqlite:///unused.db"))


@pytest.mark.asyncio
async def test_throw_on_failure_raises_connection_error(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'dir' / 'db.sqlite'}"
    with pytest.raises(DatabaseConnectionError):
        await execute_query(Input(query="SELECT 1", connection_string=url))


@pytest.mark.parametrize("raw_input", [
    {"query": "", "connection_string": "sqlite+aiosqlite:///unused.db"},
    {"query": "SELECT 1", "connection_string": None},
    {"query": "SELECT 1", "connection_string": "Database=postgres"},
    {"query": "SELECT 1", "connection_string": "sqlite+aiosqlite:///db.sqlite", "executeType": "Sometimes"},
    {"query": "SELEC * FROM lista"},
    {"query": "SELECT * FROM missing_table"},
    {"query": "INSERT INTO lista (id, name) VALUES (1, 'dup')"},
    {"query": "SELECT * FROM lista WHERE id = :not_bound"},
])
@pytest.mark.asyncio
async def test_no_throw_always_returns_failed_result(db_url, raw_input):
    raw_input = {"connection_string": db_url, **raw_input}

    result = await execute_query(raw_input, NO_THROW)

    assert result.success is False
    assert result.records_affected == 0
    assert result.error_message
    assert result.data is None


@pytest.mark.asyncio
async def test_no_throw_reports_connection_failure(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'dir' / 'db.sqlite'}"

    result = await execute_query(Input(query="SELECT 1", connection_string=url), NO_THROW)

    assert result.success is False
    assert result.error_message.startswith("Could not open connection")


@pytest.mark.parametrize("options", [
    {"throw_error_on_failure": False, "command_timeout_seconds": -5},
    {"throwErrorOnFailure": "false", "commandTimeoutSeconds": "soon"},
    {"throwErrorOnFailure": 0, "unknown_option": True, "command_timeout_seconds": None},
])
@pytest.mark.asyncio
async def test_no_throw_returns_invalid_options_as_failed_result(db_url, options):
    result = await execute_query(Input(query="SELECT 1", connection_string=db_url), options)

    assert result.success is False
    assert result.error_message.startswith("Invalid options")
    assert result.data is None


@pytest.mark.parametrize("options", [
    {"command_timeout_seconds": -5},
    {"throw_error_on_failure": "maybe", "command_timeout_seconds": -5},
])
@pytest.mark.asyncio
async def test_invalid_options_raise_when_failures_throw(db_url, options):
    with pytest.raises(InvalidArgumentError, match="Invalid options"):
        await execute_query(Input(query="SELECT 1", connection_string=db_url), options)


@pytest.mark.parametrize("options", [
    {"isolation_level": "Chaos"},
    {"isolationLevel": "Chaos", "throwErrorOnFailure": False},
])
@pytest.mark.asyncio
async def test_unrecognized_isolation_level_runs_as_serializable(db_url, options):
    result = await execute_query(Input(query="SELECT id FROM lista WHERE id = 1", connection_string=db_url), options)

    assert result.success is True
    assert result.data == [{"id": 1}]


# -------------------------------
# Statement text
# -------------------------------
@pytest.mark.asyncio
async def test_colons_inside_literals_are_not_parameters(db_url):
    task_input = Input(
        query="SELECT '{\"a\":1}' AS j, 'at 12:30' AS t, :name AS n -- note: no bind here",
        parameters=[Parameter(name="name", value="b")],
        connection_string=db_url,
    )

    result = await execute_query(task_input)

    assert result.data == [{"j": '{"a":1}', "t": "at 12:30", "n": "b"}]


@pytest.mark.asyncio
async def test_plain_select_reports_unknown_records_affected(db_url):
    result = await execute_query(Input(query="SELECT * FROM lista", connection_string=db_url))
    assert result.records_affected == -1
