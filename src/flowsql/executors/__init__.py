from .base import BaseExecutor
from .sql_exec import SQLExecutor
