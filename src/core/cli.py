"""
Command line entry point.

Runs the Legacy Edge WebCache extractor against a mounted evidence image and
stores the results in an SQLite artifact database.

Exit codes:
    0  run completed (possibly with nothing found)
    1  run completed but some files failed, or the run was cancelled
    2  the ESE decoder is not installed
"""

from __future__ import annotations

import argparse
import signal
from pathlib import Path
from typing import List, Optional

from .app_version import get_app_version
from .artifact_store import SqliteArtifactSink, init_db
from .config import load_app_config
from .evidence_fs import MountedFS
from .logging import configure_logging, get_logger
from .tool_discovery import InstalledToolLocator

LOGGER = get_logger("core.cli")

EXIT_OK = 0
EXIT_FILE_ERRORS = 1
EXIT_MISSING_TOOL = 2


def _default_base_dir() -> Path:
    return Path(__file__).resolve().parents[2]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cachesifter",
        description="Extract Legacy Edge browsing history from WebCacheV01.dat files in a mounted image.",
    )
    parser.add_argument("mount_point", type=Path, help="Root directory of the mounted evidence image.")
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Artifact database to write (default: <mount_point name>_artifacts.sqlite in the current directory).",
    )
    parser.add_argument("--base-dir", type=Path, default=None, help="Installation directory holding config/ and tools/.")
    parser.add_argument("--config", type=Path, default=None, help="Config file (default: <base-dir>/config/config.yml).")
    parser.add_argument("--temp-dir", type=Path, default=None, help="Override the scratch directory for decoder workspaces.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log at DEBUG level.")
    parser.add_argument("--version", "-V", action="version", version=f"%(prog)s {get_app_version()}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    # Imported here so `import core` never pulls in the extractor package
    from extractors.browser.edge_legacy import EdgeWebCacheExtractor, ExtractionContext
    from extractors.callbacks import LoggingCallbacks
    from extractors.exceptions import MissingToolError

    args = build_parser().parse_args(argv)

    base_dir = (args.base_dir or _default_base_dir()).resolve()
    app_config = load_app_config(base_dir, args.config)
    if args.temp_dir is not None:
        app_config.temp_dir = args.temp_dir.resolve()

    configure_logging(
        app_config.logs_dir,
        level="DEBUG" if args.verbose else app_config.logging.level,
        max_bytes=app_config.logging.log_max_mb * 1024 * 1024,
        backup_count=app_config.logging.log_backup_count,
    )
    LOGGER.debug("Configuration: %s", app_config.to_json())

    if not args.mount_point.is_dir():
        LOGGER.error("Mount point %s is not a directory", args.mount_point)
        return EXIT_FILE_ERRORS

    db_path = args.db or Path.cwd() / f"{args.mount_point.resolve().name or 'evidence'}_artifacts.sqlite"
    conn = init_db(db_path)
    sink = SqliteArtifactSink(conn)
    callbacks = LoggingCallbacks()

    def _handle_sigint(signum, frame):
        LOGGER.warning("Interrupt received, cancelling after the current step")
        callbacks.cancel()

    previous_handler = signal.signal(signal.SIGINT, _handle_sigint)

    extractor = EdgeWebCacheExtractor(
        ExtractionContext(
            temp_root=app_config.temp_dir,
            callbacks=callbacks,
            sink=sink,
            tool_locator=InstalledToolLocator(app_config.tool_roots, app_config.tool_paths),
            decoder=app_config.decoder,
        )
    )

    try:
        summary = extractor.run_extraction(MountedFS(args.mount_point))
    except MissingToolError as exc:
        LOGGER.error("%s", exc)
        return EXIT_MISSING_TOOL
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        extractor.warnings.flush_to_database(conn)
        conn.close()

    print(
        f"run {summary.run_id}: {summary.records_published} record(s) in "
        f"{summary.batches_published} batch(es) from {len(summary.outcomes)} WebCache file(s), "
        f"{len(summary.errors)} error(s), {len(summary.warnings)} warning(s) -> {db_path}"
    )
    if summary.errors or summary.cancelled:
        return EXIT_FILE_ERRORS
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
