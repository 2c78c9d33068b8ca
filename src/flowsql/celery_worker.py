"""
celery_worker.py
---------------
Defines the Celery app and the task that runs an executor on behalf of a workflow engine.
Executors are looked up by name in a registry; "sql" is registered by default.
"""

import asyncio
import logging
from celery import Celery
from celery.signals import worker_init
from .config import BROKER_URL, RESULT_BACKEND, configure_logging

logger = logging.getLogger(__name__)

app = Celery("flowsql", broker=BROKER_URL, backend=RESULT_BACKEND)


# --- Executor registry ---
EXECUTOR_REGISTRY = {}


def register_executor(name, executor_cls):
    EXECUTOR_REGISTRY[name] = executor_cls


def _register_builtin_executors():
    from .executors.sql_exec import SQLExecutor

    register_executor("sql", SQLExecutor)


_register_builtin_executors()


def get_executor(executor_name):
    if executor_name in EXECUTOR_REGISTRY:
        return EXECUTOR_REGISTRY[executor_name]()
    raise ValueError(f"Unknown executor: {executor_name}")


@app.task(bind=True, name="flowsql.run_task")
def run_task(self, executor_name, params, context=None):
    executor = get_executor(executor_name)
    task_id = getattr(self.request, "id", None)
    logger.info("Running %s executor (task %s)", executor_name, task_id)
    # Each call gets its own event loop; failures propagate so Celery marks the task failed
    result = asyncio.run(executor.execute(params, context or {}))
    logger.info("Executor %s finished (task %s)", executor_name, task_id)
    return result


# --- Signals ---

@worker_init.connect
def worker_ready(sender=None, **kwargs):
    configure_logging()
    logger.info("Worker initialized with executors: %s", ", ".join(sorted(EXECUTOR_REGISTRY)))
