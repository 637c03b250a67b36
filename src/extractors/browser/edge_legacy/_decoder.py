"""
ESEDatabaseView invocation.

ESEDatabaseView exports every table of an ESE database as comma-separated
text when run as::

    ESEDatabaseView.exe /table <database> * /scomma <out_dir>/<prefix>_*.csv

The ``*`` in the output name is replaced by each table name, so the History
containers land in files like ``WebCacheV01_Container_1.csv``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional, Sequence

from core.logging import get_logger
from ..._shared.process_runner import DecoderInvocation, build_invocation, run_process

LOGGER = get_logger("extractors.browser.edge_legacy.decoder")


def build_dump_arguments(input_file: Path, output_prefix: str, output_dir: Path) -> list[str]:
    """Arguments requesting a full-table comma-delimited export."""
    return [
        "/table",
        str(input_file),
        "*",
        "/scomma",
        str(output_dir / f"{output_prefix}_*.csv"),
    ]


def run_decoder(
    tool_path: Path,
    input_file: Path,
    output_prefix: str,
    output_dir: Path,
    *,
    is_cancelled: Callable[[], bool],
    launcher: Sequence[str] = (),
    poll_interval: float = 0.25,
    timeout: Optional[float] = None,
) -> DecoderInvocation:
    """
    Dump all tables of ``input_file`` into ``output_dir``.

    stdout and stderr are captured to ``<output_dir>/<prefix>.txt`` and
    ``.err``. The returned invocation carries the exit code and status; a
    failed run is not raised because it may still leave usable dumps.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    invocation = build_invocation(
        tool_path,
        build_dump_arguments(input_file, output_prefix, output_dir),
        output_dir,
        output_prefix,
        launcher=launcher,
    )
    LOGGER.info("Writing ESEDatabaseView results to: %s", output_dir)
    return run_process(
        invocation,
        is_cancelled=is_cancelled,
        poll_interval=poll_interval,
        timeout=timeout,
        cwd=output_dir,
    )
