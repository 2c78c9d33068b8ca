"""
mapper.py
---------
Converts raw driver results into Result envelopes, and errors into failure Results.
"""
import uuid
from decimal import Decimal

from .definitions import AffectedRows, ExecuteType, Result, RowSet, ScalarValue
from .errors import raise_if_cancelled


def convert_value(value):
    if isinstance(value, Decimal):
        if value.is_finite() and value == value.to_integral_value():
            return int(value)
        return float(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (memoryview, bytearray)):
        return bytes(value)
    return value


def read_rows(result, cancel_event=None) -> RowSet:
    """
    Materializes every row as a dict in column order.
    SQL NULL becomes "" so consumers always see a value for each column.
    """
    raise_if_cancelled(cancel_event, "before reading rows")
    columns = list(result.keys())
    rows = []
    for row in result:
        raise_if_cancelled(cancel_event, "while reading rows")
        rows.append({
            column: "" if value is None else convert_value(value)
            for column, value in zip(columns, row)
        })
    return rows


def map_result(execute_type: ExecuteType, result, cancel_event=None, modifies: bool = True) -> Result:
    """
    modifies: whether the statement can change data. Row sets of statements
    that cannot report -1 records affected.
    """
    rowcount = result.rowcount
    if execute_type is ExecuteType.NON_QUERY:
        result.close()
        return Result(success=True, records_affected=rowcount, data=AffectedRows(affected_rows=rowcount))

    if execute_type is ExecuteType.SCALAR:
        row = result.first() if result.returns_rows else None
        value = None if row is None or row[0] is None else convert_value(row[0])
        return Result(success=True, records_affected=1, data=ScalarValue(value=value))

    if not modifies:
        rowcount = -1
    if not result.returns_rows:
        return Result(success=True, records_affected=rowcount, data=[])
    return Result(success=True, records_affected=rowcount, data=read_rows(result, cancel_event))


def failure_result(error: BaseException) -> Result:
    return Result(
        success=False,
        records_affected=0,
        error_message=str(error) or error.__class__.__name__,
        data=None,
    )
