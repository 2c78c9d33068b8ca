"""
base.py
-------
Defines the BaseExecutor interface for all task executors.
All custom executors should inherit from this class and implement the async execute method.
"""


class BaseExecutor:
    async def execute(self, params: dict, context: dict) -> dict:
        """
        params: task-specific parameters
        context: values supplied by the host, e.g. a cancel_event
        Returns: dict with result data
        """
        raise NotImplementedError
