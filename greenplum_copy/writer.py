from __future__ import annotations

import uuid
from typing import Any, List, Optional, Tuple

from pyspark.sql.types import StructType

from .common import PrintLogger, resolve_logger
from .connection import (
    close_conn_silent,
    execute_in_transaction,
    execute_statement,
    retrying_drop_table_silent,
    schema_string,
    table_columns,
    table_exists,
    truncate_table,
)
from .errors import PartitionCopyFailure, StagingCreationFailure, TableAlreadyExists
from .options import GreenplumOptions
from .partition_copy import copy_partition
from .tables import extract_table_name, staging_table_name, unqualified_name
from .tools.base import ExecutionTool, PartitionOutcome

SAVE_MODES = ("overwrite", "append", "errorifexists", "ignore")


def create_table_sql(table: str, schema: StructType, options: GreenplumOptions) -> str:
    columns = schema_string(schema, options.create_table_column_types)
    return f"CREATE TABLE {table} ({columns}) {options.create_table_options}".rstrip()


def transactional_copy(
    tool: ExecutionTool,
    dataset: Any,
    schema: StructType,
    options: GreenplumOptions,
    logger: Optional[PrintLogger] = None,
) -> int:
    """Copy `dataset` into a staging table and swap it in only if every partition succeeded.

    Returns the number of partitions copied.
    """
    logger = resolve_logger(logger)
    canonical = extract_table_name(options.table)
    temp_table = staging_table_name(canonical, uuid.uuid4().hex)

    # Stage 1. Create the staging table as a shadow of the target. Failing here aborts the job.
    create_sql = create_table_sql(temp_table, schema, options)
    conn = None
    try:
        conn = options.new_connection()
        execute_statement(conn, create_sql)
    except Exception as exc:
        raise StagingCreationFailure(f"Failed to create staging table {temp_table}: {exc}") from exc
    finally:
        close_conn_silent(conn, logger)
    logger.info("staging_table_created", table=options.table, staging=temp_table)

    conn2 = None
    try:
        # Stage 2. Every partition copies into the staging table and bumps the shared counter.
        accumulator = tool.counter("copySuccess")
        table_name = temp_table

        def _copy(rows, counter):
            copy_partition(rows, options, schema, table_name, counter, logger)

        outcomes = tool.run_partitions(dataset, _copy, counter=accumulator)
        part_num = tool.num_partitions(dataset)
        succeeded = accumulator.value
        logger.info("partitions_finished", total=part_num, succeeded=succeeded, failed=_failed(outcomes))

        # Stage 3. Commit with a rename when all partitions made it, otherwise abort.
        conn2 = options.new_connection()
        if succeeded != part_num:
            logger.error("copy_job_aborted", table=options.table, total=part_num, succeeded=succeeded)
            raise PartitionCopyFailure(part_num, succeeded)
        statements: List[str] = []
        if table_exists(conn2, options.table):
            statements.append(f"DROP TABLE {options.table}")
        statements.append(f"ALTER TABLE {temp_table} RENAME TO {unqualified_name(options.table)}")
        execute_in_transaction(conn2, statements)
        logger.info("copy_job_committed", table=options.table, partitions=part_num)
        return part_num
    finally:
        cleanup_conn = conn2
        try:
            if cleanup_conn is None:
                cleanup_conn = options.new_connection()
            retrying_drop_table_silent(cleanup_conn, temp_table, options.drop_retries, logger)
        except Exception as exc:
            logger.error("staging_cleanup_failed", staging=temp_table, err=str(exc))
        finally:
            close_conn_silent(cleanup_conn, logger)


def non_transactional_copy(
    tool: ExecutionTool,
    dataset: Any,
    schema: StructType,
    options: GreenplumOptions,
    logger: Optional[PrintLogger] = None,
) -> int:
    """Copy every partition straight into the target table, without atomicity."""
    logger = resolve_logger(logger)
    table_name = options.table

    def _copy(rows, counter):
        copy_partition(rows, options, schema, table_name, None, logger)

    outcomes = tool.run_partitions(dataset, _copy)
    total = len(outcomes)
    failed = _failed(outcomes)
    logger.info("partitions_finished", table=table_name, total=total, succeeded=total - failed, failed=failed)
    if failed:
        raise PartitionCopyFailure(total, total - failed)
    return total


def reorder_columns(
    tool: ExecutionTool,
    dataset: Any,
    schema: StructType,
    columns: List[str],
) -> Tuple[Any, StructType]:
    """Select the dataset's columns in the order of an existing table.

    COPY maps fields by position. Names match case-insensitively; dataset columns the table lacks are dropped.
    """
    if not columns:
        return dataset, schema
    by_name = {field.name.lower(): field for field in schema.fields}
    missing = [name for name in columns if name.lower() not in by_name]
    if missing:
        raise ValueError(f"Columns {missing} of the target table are not in the dataset")
    ordered = [by_name[name.lower()] for name in columns]
    names = [field.name for field in ordered]
    if names == schema.fieldNames():
        return dataset, schema
    return tool.select_columns(dataset, schema, names), StructType(ordered)


def save(
    tool: ExecutionTool,
    dataset: Any,
    schema: StructType,
    options: GreenplumOptions,
    mode: str = "errorifexists",
    logger: Optional[PrintLogger] = None,
) -> int:
    """Write `dataset` to the configured table following a Spark save mode."""
    logger = resolve_logger(logger)
    mode = (mode or "errorifexists").lower().replace("_", "")
    if mode == "default":
        mode = "errorifexists"
    if mode not in SAVE_MODES:
        raise ValueError(f"Unsupported save mode: {mode}")
    conn = options.new_connection()
    try:
        exists = table_exists(conn, options.table)
        if exists and mode == "errorifexists":
            raise TableAlreadyExists(f"Table or view '{options.table}' already exists. SaveMode: ErrorIfExists.")
        if exists and mode == "ignore":
            logger.info("save_skipped_existing_table", table=options.table)
            return 0
        if mode == "overwrite" and options.transaction_on:
            close_conn_silent(conn, logger)
            conn = None
            return transactional_copy(tool, dataset, schema, options, logger)
        if not exists:
            execute_statement(conn, create_table_sql(options.table, schema, options))
            logger.info("target_table_created", table=options.table)
        else:
            dataset, schema = reorder_columns(tool, dataset, schema, table_columns(conn, options.table))
            if mode == "overwrite":
                truncate_table(conn, options.table)
                logger.info("target_table_truncated", table=options.table)
    finally:
        close_conn_silent(conn, logger)
    if options.transaction_on:
        # A single COPY is atomic on its own.
        dataset = tool.coalesce(dataset, 1)
    return non_transactional_copy(tool, dataset, schema, options, logger)


def _failed(outcomes: List[PartitionOutcome]) -> int:
    return sum(1 for o in outcomes if not o.succeeded)
