"""
Run external forensic tools with file-captured output and cooperative cancellation.

The child's stdout and stderr go straight to files so diagnostics survive the
run. While the child runs, the caller's cancellation check is polled; a
cancelled or timed-out child is terminated (then killed if it does not exit
within a grace period) and the run reports that status instead of blocking.
"""

from __future__ import annotations

import subprocess
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from core.logging import get_logger

LOGGER = get_logger("extractors._shared.process_runner")

TERMINATE_GRACE_S = 5.0


class ProcessStatus(str, Enum):
    NOT_STARTED = "not_started"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


@dataclass
class DecoderInvocation:
    """One run of an external tool and where its output went."""

    executable: str
    arguments: List[str]
    stdout_path: Path
    stderr_path: Path
    exit_code: Optional[int] = None
    status: ProcessStatus = ProcessStatus.NOT_STARTED
    duration_s: float = 0.0
    launcher: List[str] = field(default_factory=list)

    @property
    def command(self) -> List[str]:
        return [*self.launcher, self.executable, *self.arguments]

    @property
    def succeeded(self) -> bool:
        return self.status == ProcessStatus.COMPLETED


def _stop(process: subprocess.Popen) -> None:
    process.terminate()
    try:
        process.wait(timeout=TERMINATE_GRACE_S)
    except subprocess.TimeoutExpired:
        LOGGER.warning("Process %d ignored terminate, killing", process.pid)
        process.kill()
        process.wait()


def run_process(
    invocation: DecoderInvocation,
    *,
    is_cancelled: Callable[[], bool],
    poll_interval: float = 0.25,
    timeout: Optional[float] = None,
    cwd: Optional[Path] = None,
) -> DecoderInvocation:
    """
    Execute ``invocation`` synchronously and fill in its exit code and status.

    Non-zero exit is reported as FAILED, not raised. A child that cannot be
    launched at all is FAILED with the reason written to the stderr capture.
    """
    if is_cancelled():
        invocation.status = ProcessStatus.CANCELLED
        return invocation

    command = invocation.command
    LOGGER.info("Running: %s", " ".join(command))
    invocation.stdout_path.parent.mkdir(parents=True, exist_ok=True)
    invocation.stderr_path.parent.mkdir(parents=True, exist_ok=True)

    start_time = time.monotonic()
    with invocation.stdout_path.open("wb") as stdout_handle, \
            invocation.stderr_path.open("wb") as stderr_handle:
        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=stdout_handle,
                stderr=stderr_handle,
                cwd=str(cwd) if cwd else None,
            )
        except OSError as exc:
            LOGGER.error("Unable to launch %s: %s", invocation.executable, exc)
            stderr_handle.write(f"launch failed: {exc}\n".encode("utf-8"))
            invocation.status = ProcessStatus.FAILED
            return invocation

        while True:
            try:
                invocation.exit_code = process.wait(timeout=poll_interval)
                break
            except subprocess.TimeoutExpired:
                pass

            if is_cancelled():
                LOGGER.info("Cancellation requested, terminating process %d", process.pid)
                _stop(process)
                invocation.exit_code = process.returncode
                invocation.status = ProcessStatus.CANCELLED
                invocation.duration_s = time.monotonic() - start_time
                return invocation

            if timeout is not None and time.monotonic() - start_time > timeout:
                LOGGER.warning("Process %d exceeded %.1fs timeout, terminating", process.pid, timeout)
                _stop(process)
                invocation.exit_code = process.returncode
                invocation.status = ProcessStatus.TIMED_OUT
                invocation.duration_s = time.monotonic() - start_time
                return invocation

    invocation.duration_s = time.monotonic() - start_time
    if invocation.exit_code == 0:
        invocation.status = ProcessStatus.COMPLETED
    else:
        invocation.status = ProcessStatus.FAILED
        LOGGER.warning(
            "%s exited with status %s (stderr: %s)",
            invocation.executable, invocation.exit_code, invocation.stderr_path,
        )
    LOGGER.debug("%s finished in %.1fs", invocation.executable, invocation.duration_s)
    return invocation


def build_invocation(
    executable: Path,
    arguments: Sequence[str],
    output_dir: Path,
    output_prefix: str,
    launcher: Sequence[str] = (),
) -> DecoderInvocation:
    """Describe a run whose stdout/stderr land in ``<output_dir>/<prefix>.txt`` / ``.err``."""
    return DecoderInvocation(
        executable=str(executable),
        arguments=list(arguments),
        stdout_path=output_dir / f"{output_prefix}.txt",
        stderr_path=output_dir / f"{output_prefix}.err",
        launcher=list(launcher),
    )
