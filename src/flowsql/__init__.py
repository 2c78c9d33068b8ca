# Re-export main modules and objects for easier imports
from .definitions import (
    AffectedRows, ExecuteType, Input, Options, Parameter, Result, ScalarValue, TransactionIsolationLevel,
)
from .errors import (
    DatabaseConnectionError, ExecutionError, InvalidArgumentError, QueryCancelledError, QueryError, RollbackError,
)
from .query import execute_query
from .executors import BaseExecutor, SQLExecutor
from .celery_worker import run_task
from .config import settings
