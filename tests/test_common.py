"""JSON-line logger."""

import io
import json
import os
import shutil
import tempfile
import unittest
from contextlib import redirect_stdout

from greenplum_copy.common import RUN_ID, PrintLogger, resolve_logger


class PrintLoggerTest(unittest.TestCase):
    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp(prefix="gp-log-")

    def tearDown(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def test_writes_json_lines_to_stdout_and_file(self):
        path = os.path.join(self.tmp_dir, "job.log")
        logger = PrintLogger("orders_load", file_path=path)
        buf = io.StringIO()
        with redirect_stdout(buf):
            logger.info("copy_done", table="public.orders", rows=3)

        record = json.loads(buf.getvalue())
        self.assertEqual(record["msg"], "copy_done")
        self.assertEqual(record["level"], "INFO")
        self.assertEqual(record["job"], "orders_load")
        self.assertEqual(record["rows"], 3)
        self.assertEqual(record["run_id"], RUN_ID)
        with open(path, encoding="utf-8") as handle:
            self.assertEqual(json.loads(handle.read()), record)

    def test_level_filter(self):
        logger = PrintLogger("quiet", level="warn")
        buf = io.StringIO()
        with redirect_stdout(buf):
            logger.debug("hidden")
            logger.info("hidden")
            logger.warn("shown")
            logger.error("shown")
        self.assertEqual([json.loads(line)["level"] for line in buf.getvalue().splitlines()], ["WARN", "ERROR"])

    def test_resolve_logger(self):
        logger = PrintLogger("x")
        self.assertIs(resolve_logger(logger), logger)
        self.assertIsInstance(resolve_logger(None), PrintLogger)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
