from __future__ import annotations

import os
import tempfile
import threading
import time
from concurrent.futures import Future
from typing import Any, Iterable, Optional

from pyspark.sql.types import StructType

from .common import PrintLogger, resolve_logger
from .connection import close_conn_silent
from .encoding import convert_row, make_converters
from .errors import PartitionUploadFailure, TransferTimeout
from .options import GreenplumOptions
from .tools.base import SuccessCounter


def copy_sql(table_name: str, delimiter: str) -> str:
    literal = "''" if delimiter == "'" else delimiter
    return f"COPY {table_name} FROM STDIN WITH NULL AS 'NULL' DELIMITER AS E'{literal}'"


def write_partition_file(
    rows: Iterable[Any],
    schema: StructType,
    delimiter: str,
    path: str,
) -> int:
    converters = make_converters(schema)
    length = len(schema.fields)
    count = 0
    with open(path, "wb") as out:
        for row in rows:
            out.write(convert_row(row, length, delimiter, converters))
            count += 1
    return count


def _copy_in(conn, sql: str, stream, promise: Future) -> None:
    if not promise.set_running_or_notify_cancel():
        return
    try:
        cursor = conn.cursor()
        try:
            cursor.copy_expert(sql, stream)
            promise.set_result(cursor.rowcount)
        finally:
            cursor.close()
    except BaseException as exc:
        promise.set_exception(exc)


def _cancel_silent(conn, logger: PrintLogger) -> None:
    try:
        conn.cancel()
    except Exception as exc:
        logger.warn("copy_cancel_failed", err=str(exc), error_type=type(exc).__name__)


def copy_partition(
    rows: Iterable[Any],
    options: GreenplumOptions,
    schema: StructType,
    table_name: str,
    accumulator: Optional[SuccessCounter] = None,
    logger: Optional[PrintLogger] = None,
) -> int:
    """Copy one partition's rows into `table_name` and return the copied row count."""
    logger = resolve_logger(logger)
    fd, data_file = tempfile.mkstemp(prefix="greenplum-", dir=options.tmp_dir)
    os.close(fd)
    try:
        logger.info("partition_file_write_start", path=data_file)
        start_w = time.time()
        try:
            written = write_partition_file(rows, schema, options.delimiter, data_file)
        except Exception as exc:
            raise PartitionUploadFailure(f"Failed to encode partition rows to {data_file}: {exc}") from exc
        logger.info(
            "partition_file_write_done",
            path=data_file,
            rows=written,
            seconds=round(time.time() - start_w, 3),
        )
        return _stream_file(data_file, options, table_name, accumulator, logger)
    finally:
        try:
            os.remove(data_file)
        except OSError as exc:
            logger.warn("partition_file_remove_failed", path=data_file, err=str(exc))


def _stream_file(
    data_file: str,
    options: GreenplumOptions,
    table_name: str,
    accumulator: Optional[SuccessCounter],
    logger: PrintLogger,
) -> int:
    sql = copy_sql(table_name, options.delimiter)
    stream = open(data_file, "rb")
    conn = None
    copy_thread: Optional[threading.Thread] = None
    try:
        try:
            conn = options.new_connection()
        except Exception as exc:
            raise PartitionUploadFailure(f"Failed to open connection for {table_name}: {exc}") from exc
        promise: Future = Future()
        copy_thread = threading.Thread(
            target=_copy_in,
            args=(conn, sql, stream, promise),
            name="copy-to-gp-thread",
            daemon=True,
        )
        logger.info("copy_start", table=table_name, sql=sql)
        start = time.time()
        copy_thread.start()
        try:
            nums = promise.result(timeout=options.copy_timeout)
        except Exception as exc:
            # A TimeoutError raised by the COPY itself is a driver failure.
            if promise.done() and promise.exception() is exc:
                raise PartitionUploadFailure(f"COPY into {table_name} failed: {exc}") from exc
            _cancel_silent(conn, logger)
            raise TransferTimeout(options.copy_timeout) from None
        logger.info("copy_done", table=table_name, rows=nums, seconds=round(time.time() - start, 3))
        if accumulator is not None:
            accumulator.add(1)
        return nums
    finally:
        if copy_thread is not None:
            copy_thread.join(options.cancel_grace_seconds)
        if copy_thread is not None and copy_thread.is_alive():
            # The worker still reads the stream; it is left to the daemon thread.
            logger.error(
                "copy_thread_abandoned",
                table=table_name,
                grace_seconds=options.cancel_grace_seconds,
            )
        else:
            stream.close()
            close_conn_silent(conn, logger)
