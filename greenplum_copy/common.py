import json
import threading
from datetime import datetime
from typing import Any, Dict, Optional

# -------------------------
# Global run identifier
# -------------------------
RUN_ID = datetime.now().astimezone().strftime("%Y%m%d-%H%M%S")

_LEVELS = {"DEBUG": 10, "INFO": 20, "WARN": 30, "ERROR": 40}


class PrintLogger:
    """JSON-line logger that writes to stdout and an optional file.

    Instances only hold plain attributes so they can be shipped to Spark
    executors together with the partition closures.
    """

    _lock = threading.Lock()

    def __init__(self, job_name: str, file_path: Optional[str] = None, level: str = "INFO") -> None:
        self.job = job_name
        self.file_path = file_path
        self.level = level.upper()

    def _write_line(self, line: str) -> None:
        with self._lock:
            print(line)
            if self.file_path:
                with open(self.file_path, "a", encoding="utf-8") as handle:
                    handle.write(line + "\n")

    def enabled(self, level: str) -> bool:
        return _LEVELS.get(level, 0) >= _LEVELS.get(self.level, 0)

    def log(self, level: str, msg: str, **kv: Any) -> None:
        if not self.enabled(level):
            return
        rec: Dict[str, Any] = {
            "ts": datetime.now().astimezone().isoformat(timespec="milliseconds"),
            "level": level,
            "job": self.job,
            **kv,
            "msg": msg,
            "run_id": RUN_ID,
        }
        self._write_line(json.dumps(rec, separators=(",", ":"), ensure_ascii=False, default=str))

    def debug(self, msg: str, **kv: Any) -> None:
        self.log("DEBUG", msg, **kv)

    def info(self, msg: str, **kv: Any) -> None:
        self.log("INFO", msg, **kv)

    def warn(self, msg: str, **kv: Any) -> None:
        self.log("WARN", msg, **kv)

    def error(self, msg: str, **kv: Any) -> None:
        self.log("ERROR", msg, **kv)


_DEFAULT_LOGGER = PrintLogger(job_name="greenplum_copy")


def resolve_logger(logger: Optional[PrintLogger]) -> PrintLogger:
    return logger if logger is not None else _DEFAULT_LOGGER
