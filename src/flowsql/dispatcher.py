"""
dispatcher.py
-------------
Runs a CommandDescriptor against the database. Opens one connection per call,
applies the isolation level, wraps the statement in a transaction unless the
level is None, and commits or rolls back. The connection is always closed.
"""
import asyncio
import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from .definitions import ExecuteType, Options, Result, TransactionIsolationLevel
from .errors import DatabaseConnectionError, ExecutionError, RollbackError, raise_if_cancelled
from .mapper import map_result
from .normalizer import CommandDescriptor, escape_literal_colons, modifies_data, resolve_execute_type

logger = logging.getLogger(__name__)

AUTOCOMMIT = "AUTOCOMMIT"
SERIALIZABLE = "SERIALIZABLE"
SNAPSHOT_DIALECTS = {"mssql"}

ISOLATION_LEVELS = {
    TransactionIsolationLevel.NONE: None,
    TransactionIsolationLevel.REPEATABLE_READ: "REPEATABLE READ",
    TransactionIsolationLevel.READ_UNCOMMITTED: "READ UNCOMMITTED",
    TransactionIsolationLevel.READ_COMMITTED: "READ COMMITTED",
    TransactionIsolationLevel.SNAPSHOT: "SNAPSHOT",
    TransactionIsolationLevel.DEFAULT: SERIALIZABLE,
    TransactionIsolationLevel.SERIALIZABLE: SERIALIZABLE,
}


def get_isolation_level(level, dialect_name: str = "postgresql") -> Optional[str]:
    """
    Maps a TransactionIsolationLevel to the backend level name.
    Returns None when no transaction should be opened.
    Unrecognized levels and Snapshot on backends without it fall back to SERIALIZABLE.
    """
    try:
        level = TransactionIsolationLevel(level)
    except ValueError:
        return SERIALIZABLE
    backend_level = ISOLATION_LEVELS[level]
    if backend_level == "SNAPSHOT" and dialect_name not in SNAPSHOT_DIALECTS:
        return SERIALIZABLE
    return backend_level


def create_engine(url):
    # One connection per invocation; nothing is pooled across calls
    return create_async_engine(url, poolclass=NullPool)


def _driver_message(error: BaseException) -> str:
    if isinstance(error, DBAPIError) and error.orig is not None:
        return f"{type(error.orig).__name__}: {error.orig}"
    return str(error) or error.__class__.__name__


async def dispatch(command: CommandDescriptor, options: Options, cancel_event=None) -> Result:
    raise_if_cancelled(cancel_event, "before connecting")
    logger.debug("Connecting to %s", command.url.render_as_string(hide_password=True))
    try:
        engine = create_engine(command.url)
    except Exception as error:
        raise DatabaseConnectionError(f"Could not create database engine: {error}") from error

    try:
        try:
            conn = await engine.connect()
        except Exception as error:
            raise DatabaseConnectionError(f"Could not open connection: {_driver_message(error)}") from error
        try:
            return await _run(conn, command, options, cancel_event)
        finally:
            await conn.close()
    finally:
        await engine.dispose()


async def _run(conn, command: CommandDescriptor, options: Options, cancel_event) -> Result:
    execute_type = resolve_execute_type(command.sql_text, command.execute_type)
    isolation_level = get_isolation_level(options.isolation_level, conn.dialect.name)
    logger.debug("Executing as %s, isolation %s", execute_type.value, isolation_level or AUTOCOMMIT)

    try:
        conn = await conn.execution_options(isolation_level=isolation_level or AUTOCOMMIT)
    except Exception as error:
        raise ExecutionError(
            f"Isolation level {isolation_level or AUTOCOMMIT} is not supported: {_driver_message(error)}"
        ) from error

    if isolation_level is None:
        try:
            result = await _execute(conn, command, execute_type, cancel_event)
        except ExecutionError as error:
            logger.warning("Query failed without a transaction: %s", error)
            raise ExecutionError(
                f"{error} (no transaction was open, nothing was rolled back; partial effects may remain)",
                transactional=False,
            ) from error.__cause__
        _log_outcome(result)
        return result

    transaction = await conn.begin()
    try:
        result = await _execute(conn, command, execute_type, cancel_event)
        try:
            await transaction.commit()
        except Exception as error:
            raise ExecutionError(f"Commit failed: {_driver_message(error)}") from error
    except ExecutionError as error:
        await _rollback(transaction, error)
        raise ExecutionError(f"{error} (transaction rolled back)") from error.__cause__
    except BaseException as error:
        await _rollback(transaction, error)
        raise
    _log_outcome(result)
    return result


async def _execute(conn, command: CommandDescriptor, execute_type, cancel_event) -> Result:
    raise_if_cancelled(cancel_event, "before execution")
    statement = text(escape_literal_colons(command.sql_text))
    try:
        # 0 means no limit
        result = await asyncio.wait_for(
            conn.execute(statement, command.bind_parameters),
            command.timeout_seconds or None,
        )
    except asyncio.TimeoutError as error:
        raise ExecutionError(f"Command timed out after {command.timeout_seconds} seconds") from error
    except Exception as error:
        raise ExecutionError(_driver_message(error)) from error
    # Auto statements that turn out to return rows (TABLE t, CALL proc()) are read
    if command.execute_type is ExecuteType.AUTO and result.returns_rows:
        execute_type = ExecuteType.READER
    return map_result(execute_type, result, cancel_event, modifies_data(command.sql_text))


async def _rollback(transaction, error: BaseException):
    logger.warning("Rolling back transaction after %s: %s", type(error).__name__, error)
    # A rollback in progress must finish even if the calling task is cancelled
    rollback = asyncio.ensure_future(transaction.rollback())
    try:
        await asyncio.shield(rollback)
    except asyncio.CancelledError:
        await asyncio.wait({rollback})
        if not rollback.cancelled() and rollback.exception() is not None:
            logger.error("Rollback failed after cancellation: %s", rollback.exception())
        raise
    except Exception as rollback_error:
        logger.error("Rollback failed: %s (original error: %s)", rollback_error, error)
        if isinstance(error, asyncio.CancelledError):
            return
        raise RollbackError(error, rollback_error) from rollback_error


def _log_outcome(result: Result):
    if isinstance(result.data, list):
        logger.info("Query returned %d rows", len(result.data))
    else:
        logger.info("Query succeeded, records affected: %s", result.records_affected)
