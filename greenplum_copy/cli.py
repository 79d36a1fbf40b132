import argparse
import json
from typing import Any, Dict, List, Optional

from .common import PrintLogger
from .options import GreenplumOptions, validate_config
from .writer import save


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="greenplum-copy")
    parser.add_argument("--config", required=True)
    parser.add_argument("--mode", help="Save mode: overwrite, append, errorifexists or ignore", default=None)
    parser.add_argument("--table", help="Override greenplum.dbtable", default=None)
    parser.add_argument("--source-path", help="Override source.path", default=None)
    parser.add_argument("--transactional", action="store_true", help="Force transactionOn=true")
    return parser.parse_args(argv)


def apply_overrides(cfg: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    cfg = json.loads(json.dumps(cfg))
    if args.table:
        cfg["greenplum"]["dbtable"] = args.table
    if args.source_path:
        cfg["source"]["path"] = args.source_path
    if args.transactional:
        cfg["greenplum"]["transactionOn"] = True
    if args.mode:
        cfg["mode"] = args.mode
    return cfg


def main(cfg: Dict[str, Any], logger: Optional[PrintLogger] = None, tool=None) -> int:
    from .tools.spark import SparkTool  # local import keeps the JVM out of non-Spark callers

    runtime = cfg.get("runtime", {})
    logger = logger or PrintLogger(job_name=runtime.get("job_name", "greenplum_copy"), file_path=runtime.get("log_file"))
    options = GreenplumOptions.from_config(cfg["greenplum"])
    own_tool = tool is None
    tool = tool or SparkTool.from_config(cfg, logger=logger)
    try:
        source = cfg["source"]
        df = tool.read(source["path"], source.get("format", "parquet"), source.get("options"))
        mode = cfg.get("mode", "errorifexists")
        logger.info(
            "job_start",
            table=options.table,
            mode=mode,
            transactional=options.transaction_on,
            source=source["path"],
        )
        partitions = save(tool, df, df.schema, options, mode=mode, logger=logger)
        logger.info("job_end", table=options.table, partitions=partitions)
        return partitions
    finally:
        if own_tool:
            tool.stop()


def run_cli(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    with open(args.config, "r", encoding="utf-8") as handle:
        cfg = json.load(handle)
    cfg = apply_overrides(cfg, args)
    validate_config(cfg)
    main(cfg)


__all__ = ["main", "parse_args", "run_cli"]
