from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from .tables import extract_table_name

DEFAULT_DELIMITER = "\t"
DEFAULT_COPY_TIMEOUT = "1h"
DEFAULT_CANCEL_GRACE_SECONDS = 30.0
DEFAULT_DROP_RETRIES = 3

# Characters the COPY text format rejects as a delimiter.
_FORBIDDEN_DELIMITERS = set("\\.abcdefghijklmnopqrstuvwxyz0123456789\n\r\x00")

_DURATION = re.compile(r"\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]*)\s*")
_DURATION_UNITS = {
    "": 0.001,
    "us": 0.000001,
    "ms": 0.001,
    "s": 1.0,
    "sec": 1.0,
    "m": 60.0,
    "min": 60.0,
    "h": 3600.0,
    "d": 86400.0,
}


def parse_duration(value: Any) -> float:
    """Return seconds for a Spark-style time string ("2h", "100min", "30s").

    Bare numbers are milliseconds, like Spark's `timeStringAsMs`.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value) / 1000.0
    match = _DURATION.fullmatch(str(value))
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    number, unit = match.groups()
    unit = unit.lower()
    if unit not in _DURATION_UNITS:
        raise ValueError(f"Invalid duration unit {unit!r} in {value!r}")
    return float(number) * _DURATION_UNITS[unit]


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes", "on"}
    return bool(value)


def validate_delimiter(delimiter: str) -> str:
    if not isinstance(delimiter, str) or len(delimiter) != 1:
        raise ValueError(f"delimiter must be exactly one character, got {delimiter!r}")
    if delimiter in _FORBIDDEN_DELIMITERS:
        raise ValueError(f"delimiter {delimiter!r} clashes with the COPY text escaping")
    return delimiter


@dataclass
class GreenplumOptions:
    url: str
    table: str
    user: Optional[str] = None
    password: Optional[str] = None
    delimiter: str = DEFAULT_DELIMITER
    copy_timeout: float = 3600.0
    transaction_on: bool = False
    create_table_options: str = ""
    create_table_column_types: Optional[str] = None
    tmp_dir: Optional[str] = None
    cancel_grace_seconds: float = DEFAULT_CANCEL_GRACE_SECONDS
    drop_retries: int = DEFAULT_DROP_RETRIES
    connect_options: Dict[str, Any] = field(default_factory=dict)
    connection_factory: Optional[Callable[[], Any]] = None

    def __post_init__(self) -> None:
        validate_delimiter(self.delimiter)
        extract_table_name(self.table)
        if self.copy_timeout <= 0:
            raise ValueError("copyTimeout must be positive")
        if self.connection_factory is None:
            from .connection import PostgresConnectionFactory  # local import to avoid cycle

            self.connection_factory = PostgresConnectionFactory(
                self.url, self.user, self.password, self.connect_options
            )

    def new_connection(self):
        return self.connection_factory()

    @classmethod
    def from_config(cls, gp_cfg: Dict[str, Any], **overrides: Any) -> "GreenplumOptions":
        for key in ["url", "dbtable"]:
            if key not in gp_cfg:
                raise ValueError(f"Missing greenplum.{key}")
        kwargs: Dict[str, Any] = {
            "url": gp_cfg["url"],
            "table": gp_cfg["dbtable"],
            "user": gp_cfg.get("user"),
            "password": gp_cfg.get("password"),
            "delimiter": gp_cfg.get("delimiter", DEFAULT_DELIMITER),
            "copy_timeout": parse_duration(gp_cfg.get("copyTimeout", DEFAULT_COPY_TIMEOUT)),
            "transaction_on": _as_bool(gp_cfg.get("transactionOn", False)),
            "create_table_options": gp_cfg.get("createTableOptions", "") or "",
            "create_table_column_types": gp_cfg.get("createTableColumnTypes"),
            "tmp_dir": gp_cfg.get("tmpDir"),
            "cancel_grace_seconds": float(gp_cfg.get("cancelGraceSeconds", DEFAULT_CANCEL_GRACE_SECONDS)),
            "drop_retries": int(gp_cfg.get("dropRetries", DEFAULT_DROP_RETRIES)),
            "connect_options": dict(gp_cfg.get("connectOptions", {})),
        }
        kwargs.update(overrides)
        return cls(**kwargs)


def validate_config(cfg: Dict[str, Any]) -> None:
    for key in ["greenplum", "runtime", "source"]:
        if key not in cfg:
            raise ValueError(f"Missing config key: {key}")
    for key in ["url", "dbtable"]:
        if key not in cfg["greenplum"]:
            raise ValueError(f"Missing greenplum.{key}")
    if "path" not in cfg["source"]:
        raise ValueError("Missing source.path")
