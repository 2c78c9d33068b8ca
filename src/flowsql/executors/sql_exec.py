"""
sql_exec.py
-----------
Implements SQLExecutor for running SQL queries as workflow tasks.
Task params carry the query input and options; missing options fall back to settings.
"""
from typing import Mapping

from .base import BaseExecutor
from ..config import settings
from ..query import execute_query


def _parameters(raw):
    # {"id": 1} is shorthand for [{"name": "id", "value": 1}]
    if isinstance(raw, Mapping):
        return [{"name": name, "value": value} for name, value in raw.items()]
    return raw


def _option(params, name, alias, default):
    for key in (name, alias):
        if params.get(key) is not None:
            return params[key]
    return default


class SQLExecutor(BaseExecutor):
    async def execute(self, params, context=None):
        context = context or {}
        task_input = dict(params)
        task_input.pop("connectionString", None)
        task_input["connection_string"] = _option(
            params, "connection_string", "connectionString", settings.DB_URL
        )
        task_input["parameters"] = _parameters(params.get("parameters"))

        options = {
            "throw_error_on_failure": _option(
                params, "throw_error_on_failure", "throwErrorOnFailure", settings.THROW_ERROR_ON_FAILURE
            ),
            "command_timeout_seconds": _option(
                params, "command_timeout_seconds", "commandTimeoutSeconds", settings.COMMAND_TIMEOUT_SECONDS
            ),
            "isolation_level": _option(
                params, "isolation_level", "isolationLevel", settings.ISOLATION_LEVEL
            ),
        }
        result = await execute_query(task_input, options, context.get("cancel_event"))
        return result.to_dict()
