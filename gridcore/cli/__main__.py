from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from gridcore.adapters.tabular import MissingColumnsError, SourceFormatError, read_rows, write_rows
from gridcore.config.loader import ConfigError, load_config
from gridcore.logging.error_log import ErrorLogBuffer
from gridcore.logging.init import log_summary, set_debug, setup_logging
from gridcore.models.options import ExportOptions, ImportMode, ValidationOptions
from gridcore.services.grid import DataGrid
from gridcore.services.progress import ProgressTracker
from gridcore.services.summary import render_import_summary

"""Headless batch CLI: import a file into a grid, validate it, optionally export.

Flow:
- load .env, then the grid config (``--config`` or ``GRIDCORE_CONFIG``)
- read the source file with the tabular adapters
- import with a progress bar, then validate all rows
- optionally export the grid (``--export``)
- flush the batch error log and print one SUMMARY line

Exit codes: 0 all rows imported and valid, 2 partial (failed or invalid rows),
1 fatal (config, source or unexpected batch failure).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

DEFAULT_CONFIG = Path("config/grid.yml")


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env via python-dotenv; a broken file only produces a warning."""
    try:
        if path.exists():
            load_dotenv(dotenv_path=path, override=override)
    except Exception as e:  # pragma: no cover
        print(f"WARNING: failed to load .env via python-dotenv: {e}")


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="gridcore", description="Import, validate and export tabular data")
    p.add_argument("source", type=Path, help="Source file (.csv, .xlsx, .json)")
    p.add_argument("--config", type=Path, default=None, help="Grid config YAML (default: config/grid.yml)")
    p.add_argument("--mode", choices=[m.value for m in ImportMode], default=None, help="Override import mode")
    p.add_argument("--export", type=Path, default=None, help="Write the grid to this file after validation")
    p.add_argument("--only-valid", action="store_true", help="Export only rows without validation errors")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # [] を渡されたときに sys.argv が混入しないよう None のときだけ読む
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    config_path = args.config or Path(os.getenv("GRIDCORE_CONFIG", str(DEFAULT_CONFIG)))
    try:
        cfg = load_config(config_path)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    error_log = ErrorLogBuffer()
    created = DataGrid.from_config(cfg, error_sink=error_log.append)
    if created.is_failure:
        logger.error(f"grid: {created.message}")
        return EXIT_FATAL
    grid = created.value

    try:
        source_rows = read_rows(args.source, expected_columns=[c.name for c in cfg.columns if c.required])
    except (SourceFormatError, MissingColumnsError) as e:
        logger.error(f"source: {e}")
        return EXIT_FATAL
    logger.info(f"Importing {len(source_rows)} rows from: {args.source}")

    options = cfg.import_options(ImportMode(args.mode) if args.mode else None)
    with ProgressTracker(len(source_rows), description="Importing") as tracker:
        imported = grid.import_rows(source_rows, options, progress=tracker)
    if imported.is_failure and imported.partial is None:
        logger.error(f"import: {imported.message}")
        error_log.flush()
        return EXIT_FATAL
    result = imported.value if imported.is_success else imported.partial
    if imported.is_failure:
        logger.warning(f"import: {imported.message}")

    validated = grid.validate_all(ValidationOptions(batch_size=cfg.batch_size, timeout=cfg.timeout_seconds))
    summary = validated.value if validated.is_success else validated.partial
    if validated.is_failure:
        logger.warning(f"validate: {validated.message}")

    if args.export is not None:
        exported = grid.export_rows(ExportOptions(
            only_valid_rows=args.only_valid,
            batch_size=cfg.batch_size,
            timeout=cfg.timeout_seconds,
        ))
        if exported.is_failure:
            logger.error(f"export: {exported.message}")
            error_log.flush()
            return EXIT_FATAL
        try:
            write_rows(args.export, exported.value.rows, exported.value.columns)
        except (SourceFormatError, OSError) as e:
            logger.error(f"export: {e}")
            error_log.flush()
            return EXIT_FATAL
        logger.info(f"exported rows={exported.value.exported_rows} to: {args.export}")

    log_path = error_log.flush()
    if log_path is not None:
        logger.info(f"error log written: {log_path}")

    line = render_import_summary(result, summary)
    # log_summary が "SUMMARY " を付けるので除去
    log_summary(line[len("SUMMARY "):])

    if imported.is_failure or validated.is_failure:
        return EXIT_PARTIAL_FAILURE
    if result.failed_rows > 0 or (summary is not None and not summary.is_valid):
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
