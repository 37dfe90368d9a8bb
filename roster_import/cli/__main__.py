from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from roster_import.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from roster_import.excel.reader import SheetHeaderError, UnsupportedFileError, load_parsed_sheet
from roster_import.logging.init import log_summary, setup_logging
from roster_import.services.column_mapper import auto_map
from roster_import.services.orchestrator import (
    ProcessingError,
    apply_overrides,
    load_catalog,
    load_registry,
    process,
)
from roster_import.services.summary import render_summary_line

"""CLI entrypoint.

    roster-import [--config PATH] [--debug] [--inspect-data]

Config path resolution: --config, then $ROSTER_IMPORT_CONFIG (``.env`` is
loaded first), then config/import.yml.

Exit codes:
    0  every record resolved, output written
    2  blocked: mapping, corrections, a date order or cell fixes are needed
    1  fatal: config, schema, catalog or source file problems
"""

EXIT_COMPLETE = 0
EXIT_BLOCKED = 2
EXIT_FATAL = 1

CONFIG_ENV = "ROSTER_IMPORT_CONFIG"


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env via python-dotenv; values in .env win over the environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="roster-import",
        description="Map, validate and correct a personnel spreadsheet against a remote schema",
    )
    p.add_argument("--config", type=Path, default=None, help="Config file (default: config/import.yml)")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument(
        "--inspect-data",
        action="store_true",
        help="Print headers, first rows and the auto-mapping report then exit",
    )
    return p.parse_args(argv)


def _config_path(args: argparse.Namespace) -> Path:
    if args.config is not None:
        return args.config
    env = os.getenv(CONFIG_ENV)
    return Path(env) if env else DEFAULT_CONFIG_PATH


def _inspect_data(cfg) -> int:
    try:
        sheet = load_parsed_sheet(Path(cfg.source_file), cfg.sheet, cfg.header_row, cfg.null_sentinels)
    except (OSError, SheetHeaderError, UnsupportedFileError, ValueError) as e:
        print(f"inspect: cannot read {cfg.source_file}: {e}")
        return EXIT_FATAL
    print(f"FILE: {cfg.source_file} headers={sheet.headers}")
    print("  sample_rows=", json.dumps(sheet.sample(3), ensure_ascii=False))
    try:
        catalog = load_catalog(cfg)
        registry = load_registry(cfg, catalog)
    except ProcessingError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    mapping = auto_map(sheet.headers, registry, threshold=cfg.matching.fuzzy_threshold)
    apply_overrides(mapping, cfg.column_overrides)
    for entry in mapping.report():
        target = entry["target"] or "-"
        print(f"  {entry['column']!r} -> {target} [{entry['status']}/{entry['match']} {entry['score']}]")
    return EXIT_COMPLETE


def main(argv: list[str] | None = None) -> int:
    # argv=[] (tests) must not fall back to sys.argv
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    if args.debug:
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    config_path = _config_path(args)
    try:
        cfg = load_config(config_path)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.inspect_data:
        try:
            return _inspect_data(cfg)
        except ProcessingError as e:
            logger.error(f"inspect: {e}")
            return EXIT_FATAL

    logger.info(f"Importing {cfg.source_file} (config: {config_path})")
    try:
        result = process(cfg)
    except ProcessingError as e:
        logger.error(f"processing: {e}")
        return EXIT_FATAL

    if not result.is_complete:
        logger.warning(f"blocked: {result.reason}")
    if result.report_path is not None:
        logger.info(f"validation report: {result.report_path}")

    # log_summary adds the "SUMMARY " label itself
    log_summary(render_summary_line(result)[len("SUMMARY "):])
    return EXIT_COMPLETE if result.is_complete else EXIT_BLOCKED


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
