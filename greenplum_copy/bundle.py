"""Zip the package so Spark executors can import it (`--py-files` / `addPyFile`)."""

from __future__ import annotations

import argparse
import tempfile
import zipfile
from pathlib import Path
from typing import List, Optional

PACKAGE_DIR = Path(__file__).resolve().parent
SKIP_PARTS = {"__pycache__", ".DS_Store"}


def package_files(package_dir: Path = PACKAGE_DIR) -> List[Path]:
    return sorted(
        path
        for path in package_dir.rglob("*.py")
        if not (set(path.relative_to(package_dir).parts) & SKIP_PARTS)
    )


def build_bundle(output: Optional[Path] = None, package_dir: Path = PACKAGE_DIR) -> Path:
    if output is None:
        output = Path(tempfile.mkdtemp(prefix="greenplum-copy-")) / "greenplum_copy_bundle.zip"
    output.parent.mkdir(parents=True, exist_ok=True)
    files = package_files(package_dir)
    with zipfile.ZipFile(output, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for src in files:
            zf.write(src, (Path(package_dir.name) / src.relative_to(package_dir)).as_posix())
    return output


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("dist") / "greenplum_copy_bundle.zip",
        help="Target zip path (default: dist/greenplum_copy_bundle.zip)",
    )
    args = parser.parse_args(argv)
    path = build_bundle(args.output)
    print(f"Created {path} ({len(package_files())} files)")


if __name__ == "__main__":
    main()
