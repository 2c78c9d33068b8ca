"""
normalizer.py
-------------
Turns raw task input into an executable CommandDescriptor.
Covers input validation, parameter binding, connection string normalization
and resolution of the Auto execute type.
"""
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Tuple, Union

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from .definitions import ExecuteType, Input, Options
from .errors import InvalidArgumentError, raise_if_cancelled


@dataclass(frozen=True)
class CommandDescriptor:
    sql_text: str
    parameters: Tuple[Tuple[str, Any], ...]
    execute_type: ExecuteType
    timeout_seconds: int
    url: URL = field(repr=False)

    @property
    def bind_parameters(self) -> dict:
        return dict(self.parameters)


# -------------------------------
# Input / Options parsing
# -------------------------------
def _describe(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in e['loc']) or 'value'}: {e['msg']}" for e in error.errors()
    )


def _parse(model, raw, label):
    if isinstance(raw, model):
        return raw
    try:
        return model.model_validate(raw)
    except ValidationError as error:
        raise InvalidArgumentError(f"Invalid {label}: {_describe(error)}") from error


def parse_input(raw: Union[Input, Mapping[str, Any]]) -> Input:
    return _parse(Input, raw, "input")


def parse_options(raw: Union[Options, Mapping[str, Any], None]) -> Options:
    if raw is None:
        return Options()
    return _parse(Options, raw, "options")


_FLAG = TypeAdapter(bool)


def throws_on_failure(raw: Union[Options, Mapping[str, Any], None]) -> bool:
    """
    Reads throw_error_on_failure on its own, without validating the other options.
    Anything missing or unreadable counts as True.
    """
    if isinstance(raw, Options):
        return raw.throw_error_on_failure
    if not isinstance(raw, Mapping):
        return True
    for key in ("throw_error_on_failure", "throwErrorOnFailure"):
        if key in raw:
            try:
                return _FLAG.validate_python(raw[key])
            except ValidationError:
                return True
    return True


# -------------------------------
# Connection strings
# -------------------------------
ASYNC_DRIVERS = {"postgresql": "asyncpg", "sqlite": "aiosqlite"}
SYNC_DRIVERS = {"", "psycopg2", "pg8000", "pysqlite"}
_BACKEND_ALIASES = {"postgres": "postgresql"}

_KEYWORDS = {
    "host": "host",
    "server": "host",
    "port": "port",
    "database": "database",
    "user id": "username",
    "userid": "username",
    "username": "username",
    "user": "username",
    "uid": "username",
    "password": "password",
    "pwd": "password",
}


def _url_from_keywords(connection_string: str) -> URL:
    fields = {}
    for segment in connection_string.split(";"):
        if not segment.strip():
            continue
        key, sep, value = segment.partition("=")
        if not sep:
            raise InvalidArgumentError(f"Invalid connection string segment: {key.strip()!r}")
        target = _KEYWORDS.get(key.strip().lower())
        if target:
            fields[target] = value.strip()
    if not fields.get("host"):
        raise InvalidArgumentError("Connection string does not name a host")
    port = fields.pop("port", None)
    if port:
        try:
            port = int(port)
        except ValueError:
            raise InvalidArgumentError(f"Invalid port in connection string: {port!r}") from None
    return URL.create("postgresql+asyncpg", port=port or None, **fields)


def to_async_url(connection_string: str) -> URL:
    """
    Accepts a SQLAlchemy URL or a key/value connection string
    (Host=...;Port=...;Database=...;User Id=...;Password=...;)
    and returns a URL that names an asyncio driver.
    """
    if "://" not in connection_string:
        return _url_from_keywords(connection_string)
    try:
        url = make_url(connection_string)
    except ArgumentError as error:
        raise InvalidArgumentError(f"Invalid connection string: {error}") from error
    backend, _, driver = url.drivername.partition("+")
    backend = _BACKEND_ALIASES.get(backend, backend)
    if backend in ASYNC_DRIVERS and driver in SYNC_DRIVERS:
        driver = ASYNC_DRIVERS[backend]
    return url.set(drivername=f"{backend}+{driver}" if driver else backend)


# -------------------------------
# Execute type detection
# -------------------------------
# Best-effort textual match, not a parse: dollar-quoted bodies or unusual
# statements may be classified wrongly. Pass an explicit ExecuteType for those.
_LITERALS_AND_COMMENTS = re.compile(r"'(?:[^']|'')*'|\"(?:[^\"]|\"\")*\"|--[^\n]*|/\*.*?\*/", re.S)
_ROW_LOCKS = re.compile(r"\bfor\s+(?:no\s+key\s+)?update\b", re.I)
_RETURNING = re.compile(r"\breturning\b", re.I)
_READ = re.compile(r"\bselect\b|^\s*(?:with|values|show|explain)\b", re.I)
_MUTATION = re.compile(
    r"\b(?:insert|update|delete|merge|create|alter|drop|truncate|grant|revoke|call|copy)\b", re.I
)


def _keywords_only(sql_text: str) -> str:
    return _ROW_LOCKS.sub(" ", _LITERALS_AND_COMMENTS.sub(" ", sql_text))


def resolve_execute_type(sql_text: str, execute_type: ExecuteType = ExecuteType.AUTO) -> ExecuteType:
    if execute_type is not ExecuteType.AUTO:
        return execute_type
    text = _keywords_only(sql_text)
    if _RETURNING.search(text):
        return ExecuteType.READER
    if _READ.search(text) and not _MUTATION.search(text):
        return ExecuteType.READER
    return ExecuteType.NON_QUERY


def modifies_data(sql_text: str) -> bool:
    """True when the statement carries RETURNING or a mutation keyword outside literals."""
    text = _keywords_only(sql_text)
    return bool(_RETURNING.search(text) or _MUTATION.search(text))


def escape_literal_colons(sql_text: str) -> str:
    """
    Escapes colons inside string literals, quoted identifiers and comments,
    so text() only treats :name outside them as a bind parameter.
    """
    return _LITERALS_AND_COMMENTS.sub(lambda match: match.group(0).replace(":", "\\:"), sql_text)


# -------------------------------
# Command building
# -------------------------------
def build_command(input: Input, options: Options, cancel_event=None) -> CommandDescriptor:
    if not input.query or not input.query.strip():
        raise InvalidArgumentError("Query must not be empty")
    if not input.connection_string or not input.connection_string.strip():
        raise InvalidArgumentError("Connection string must not be empty")
    url = to_async_url(input.connection_string.strip())

    bound = []
    seen = set()
    for parameter in input.parameters or ():
        raise_if_cancelled(cancel_event, "while binding parameters")
        # Accept ":id" and "@id" as well as "id"
        name = parameter.name.strip().lstrip(":@")
        if not name:
            raise InvalidArgumentError("Parameter name must not be empty")
        if name in seen:
            raise InvalidArgumentError(f"Duplicate parameter name: {name}")
        seen.add(name)
        # None binds as SQL NULL; everything else is left to the driver's type inference
        bound.append((name, parameter.value))

    return CommandDescriptor(
        sql_text=input.query,
        parameters=tuple(bound),
        execute_type=input.execute_type,
        timeout_seconds=options.command_timeout_seconds,
        url=url,
    )
