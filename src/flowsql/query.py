"""
query.py
--------
execute_query: the single operation of this package.
Normalizes the request, dispatches it and applies the failure policy.
"""
import logging
from typing import Any, Mapping, Union

from .definitions import Input, Options, Result
from .dispatcher import dispatch
from .errors import QueryError
from .mapper import failure_result
from .normalizer import build_command, parse_input, parse_options, throws_on_failure

logger = logging.getLogger(__name__)


async def execute_query(
    input: Union[Input, Mapping[str, Any]],
    options: Union[Options, Mapping[str, Any], None] = None,
    cancel_event=None,
) -> Result:
    """
    Executes one SQL statement and returns a Result.
    With throw_error_on_failure=False every QueryError is returned as a failed Result,
    invalid options included. The flag is read before the other options are validated.
    cancel_event: optional asyncio.Event checked while binding and reading rows
    """
    throw = throws_on_failure(options)
    try:
        options = parse_options(options)
        command = build_command(parse_input(input), options, cancel_event)
        return await dispatch(command, options, cancel_event)
    except QueryError as error:
        if throw:
            raise
        logger.warning("Query failed (%s): %s", type(error).__name__, error)
        return failure_result(error)
