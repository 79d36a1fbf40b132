from greenplum_copy import (
    RUN_ID,
    PrintLogger,
    non_transactional_copy,
    save,
    transactional_copy,
)
from greenplum_copy.cli import main, run_cli

__all__ = [
    "RUN_ID",
    "PrintLogger",
    "main",
    "non_transactional_copy",
    "run_cli",
    "save",
    "transactional_copy",
]


if __name__ == "__main__":
    run_cli()
