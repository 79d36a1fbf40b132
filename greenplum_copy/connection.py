from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Optional

import psycopg2
from pyspark.sql.types import (
    BinaryType,
    BooleanType,
    ByteType,
    DataType,
    DateType,
    DecimalType,
    DoubleType,
    FloatType,
    IntegerType,
    LongType,
    ShortType,
    StringType,
    StructType,
    TimestampType,
    UserDefinedType,
)

from .common import PrintLogger, resolve_logger
from .errors import CleanupFailure


class PostgresConnectionFactory:
    """Picklable factory so executors can open their own connections."""

    def __init__(
        self,
        url: str,
        user: Optional[str] = None,
        password: Optional[str] = None,
        connect_options: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.dsn = self.normalize_url(url)
        self.user = user
        self.password = password
        self.connect_options = dict(connect_options or {})

    @staticmethod
    def normalize_url(url: str) -> str:
        # jdbc:postgresql://host:5432/db -> postgresql://host:5432/db
        return url[len("jdbc:"):] if url.startswith("jdbc:") else url

    def __call__(self):
        kwargs = dict(self.connect_options)
        if self.user is not None:
            kwargs["user"] = self.user
        if self.password is not None:
            kwargs["password"] = self.password
        conn = psycopg2.connect(self.dsn, **kwargs)
        conn.autocommit = True
        return conn


def close_conn_silent(conn, logger: Optional[PrintLogger] = None) -> None:
    if conn is None:
        return
    try:
        conn.close()
    except Exception as exc:
        resolve_logger(logger).warn("close_connection_failed", err=str(exc), error_type=type(exc).__name__)


def execute_statement(conn, sql: str) -> None:
    cursor = conn.cursor()
    try:
        cursor.execute(sql)
    finally:
        cursor.close()


def execute_in_transaction(conn, statements: Iterable[str]) -> None:
    """Run DDL statements as one transaction; Greenplum DDL is transactional."""
    previous = conn.autocommit
    conn.autocommit = False
    try:
        cursor = conn.cursor()
        try:
            for sql in statements:
                cursor.execute(sql)
        finally:
            cursor.close()
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.autocommit = previous


def table_exists(conn, table: str) -> bool:
    try:
        execute_statement(conn, f"SELECT * FROM {table} WHERE 1=0")
        return True
    except Exception:
        return False


def table_columns(conn, table: str) -> List[str]:
    """Column names of `table` in table order."""
    cursor = conn.cursor()
    try:
        cursor.execute(f"SELECT * FROM {table} WHERE 1=0")
        return [column[0] for column in cursor.description or ()]
    finally:
        cursor.close()


def drop_table(conn, table: str) -> None:
    execute_statement(conn, f"DROP TABLE {table}")


def truncate_table(conn, table: str) -> None:
    execute_statement(conn, f"TRUNCATE TABLE {table}")


def retrying_drop_table_silent(
    conn,
    table: str,
    max_retries: int = 3,
    logger: Optional[PrintLogger] = None,
) -> Optional[CleanupFailure]:
    """Drop `table`, retrying on errors. Returns the failure instead of raising it.

    A table that does not exist counts as dropped.
    """
    logger = resolve_logger(logger)
    if not table_exists(conn, table):
        return None
    last_exc: Optional[Exception] = None
    for attempt in range(1, max_retries + 1):
        try:
            drop_table(conn, table)
            return None
        except Exception as exc:
            last_exc = exc
            logger.warn(
                "drop_staging_table_failed",
                table=table,
                attempt=attempt,
                max_retries=max_retries,
                err=str(exc),
            )
    failure = CleanupFailure(f"Drop tempTable {table} failed for {max_retries} times, and will not retry.")
    failure.__cause__ = last_exc
    logger.error("drop_staging_table_gave_up", table=table, max_retries=max_retries, err=str(failure))
    return failure


# -------------------------
# CREATE TABLE column list
# -------------------------

def postgres_type(data_type: DataType) -> str:
    if isinstance(data_type, UserDefinedType):
        return postgres_type(data_type.sqlType())
    if isinstance(data_type, StringType):
        return "TEXT"
    if isinstance(data_type, BooleanType):
        return "BOOLEAN"
    if isinstance(data_type, (ByteType, ShortType)):
        return "SMALLINT"
    if isinstance(data_type, IntegerType):
        return "INTEGER"
    if isinstance(data_type, LongType):
        return "BIGINT"
    if isinstance(data_type, FloatType):
        return "FLOAT4"
    if isinstance(data_type, DoubleType):
        return "FLOAT8"
    if isinstance(data_type, DecimalType):
        return f"NUMERIC({data_type.precision},{data_type.scale})"
    if isinstance(data_type, DateType):
        return "DATE"
    if isinstance(data_type, TimestampType):
        return "TIMESTAMP"
    if isinstance(data_type, BinaryType):
        return "BYTEA"
    raise ValueError(f"Can't get JDBC type for {data_type.simpleString()}")


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _split_top_level(text: str) -> List[str]:
    parts, depth, current = [], 0, []
    for ch in text:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return [p.strip() for p in parts if p.strip()]


_COLUMN_TYPE = re.compile(r'("[^"]+"|\S+)\s+(.+)', re.DOTALL)


def parse_column_types(text: str) -> Dict[str, str]:
    """Parse `createTableColumnTypes`, e.g. `name VARCHAR(64), amount NUMERIC(10,2)`."""
    result: Dict[str, str] = {}
    for part in _split_top_level(text):
        match = _COLUMN_TYPE.fullmatch(part)
        if not match:
            raise ValueError(f"Invalid createTableColumnTypes entry: {part!r}")
        name, type_sql = match.groups()
        result[name.strip('"')] = type_sql.strip()
    return result


def schema_string(schema: StructType, create_table_column_types: Optional[str] = None) -> str:
    overrides = parse_column_types(create_table_column_types) if create_table_column_types else {}
    field_names = {f.name.lower() for f in schema.fields}
    for name in overrides:
        if name.lower() not in field_names:
            raise ValueError(f"createTableColumnTypes option column {name} not found in schema {schema.simpleString()}")
    lowered = {name.lower(): type_sql for name, type_sql in overrides.items()}
    columns = []
    for f in schema.fields:
        type_sql = lowered.get(f.name.lower()) or postgres_type(f.dataType)
        nullable = "" if f.nullable else " NOT NULL"
        columns.append(f"{quote_identifier(f.name)} {type_sql}{nullable}")
    return ", ".join(columns)
