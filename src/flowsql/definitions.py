"""
definitions.py
--------------
Pydantic schemas for the query task: Input, Options, Parameter and the Result envelope.
Models accept snake_case names and the camelCase aliases used by workflow configuration.
"""
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional, Union
import enum

from pydantic import BaseModel, ConfigDict, Field


def _lookup(enum_cls, value, aliases):
    if not isinstance(value, str):
        return None
    key = value.replace(" ", "").replace("_", "").lower()
    for member in enum_cls:
        if member.value.lower() == key:
            return member
    return aliases.get(key)


# Enums

class ExecuteType(str, enum.Enum):
    AUTO = "Auto"
    NON_QUERY = "NonQuery"
    READER = "Reader"
    SCALAR = "Scalar"

    @classmethod
    def _missing_(cls, value):
        return _lookup(cls, value, {"executereader": cls.READER})


class TransactionIsolationLevel(str, enum.Enum):
    DEFAULT = "Default"
    READ_COMMITTED = "ReadCommitted"
    NONE = "None"
    SERIALIZABLE = "Serializable"
    READ_UNCOMMITTED = "ReadUncommitted"
    REPEATABLE_READ = "RepeatableRead"
    SNAPSHOT = "Snapshot"

    @classmethod
    def _missing_(cls, value):
        # Unrecognized levels run as Serializable
        return _lookup(cls, value, {
            "readcommited": cls.READ_COMMITTED,
            "readuncommited": cls.READ_UNCOMMITTED,
        }) or cls.SERIALIZABLE


ParameterValue = Union[None, bool, int, float, datetime, date, time, str, bytes]


# Input schemas

class Parameter(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    value: ParameterValue = None


class Input(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    query: Optional[str] = None
    parameters: Optional[List[Parameter]] = None
    connection_string: Optional[str] = Field(None, alias="connectionString", repr=False)
    execute_type: ExecuteType = Field(ExecuteType.AUTO, alias="executeType")


class Options(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    throw_error_on_failure: bool = Field(True, alias="throwErrorOnFailure")
    command_timeout_seconds: int = Field(30, ge=0, alias="commandTimeoutSeconds")
    isolation_level: TransactionIsolationLevel = Field(
        TransactionIsolationLevel.DEFAULT, alias="isolationLevel"
    )


# Result schemas

RowSet = List[Dict[str, Any]]


class AffectedRows(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    affected_rows: int = Field(alias="AffectedRows")


class ScalarValue(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    value: Any = Field(None, alias="Value")


class Result(BaseModel):
    """
    Outcome of one query execution.
    data is a row set for Reader, AffectedRows for NonQuery, ScalarValue for Scalar
    and None for failures.
    """
    model_config = ConfigDict(populate_by_name=True, ser_json_bytes="base64")

    success: bool
    records_affected: int = Field(-1, alias="recordsAffected")
    error_message: Optional[str] = Field(None, alias="errorMessage")
    data: Union[AffectedRows, ScalarValue, RowSet, None] = None

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
