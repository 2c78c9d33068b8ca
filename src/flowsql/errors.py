"""
errors.py
---------
Exception taxonomy for query execution failures.
Every failure raised by execute_query derives from QueryError.
"""


class QueryError(Exception):
    pass


class InvalidArgumentError(QueryError, ValueError):
    pass


class DatabaseConnectionError(QueryError):
    pass


class ExecutionError(QueryError):
    def __init__(self, message: str, transactional: bool = True):
        super().__init__(message)
        self.transactional = transactional


class RollbackError(QueryError):
    """
    Raised when rolling back a failed transaction fails too.
    original: the error that triggered the rollback
    rollback_error: the error raised by the rollback itself
    """

    def __init__(self, original: BaseException, rollback_error: BaseException):
        super().__init__(f"Rollback failed: {rollback_error}. Original error: {original}")
        self.original = original
        self.rollback_error = rollback_error


class QueryCancelledError(QueryError):
    pass


def raise_if_cancelled(cancel_event, stage: str):
    if cancel_event is not None and cancel_event.is_set():
        raise QueryCancelledError(f"Query cancelled {stage}")
