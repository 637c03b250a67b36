"""
Per-file scratch workspaces for extractors that hand evidence to external tools.

A workspace holds the staged copy of one evidence file and a results
directory for whatever the tool writes. It is removed as a whole when the
file is done, whatever the outcome.

Layout:
    <temp_root>/<source_label>/<prefix><file_id>-<unique>/
        <prefix><file_id><suffix>    staged copy
        results/                     tool output

Usage:
    manager = WorkspaceManager(temp_root, "Edge", prefix="WebCacheV01")
    with manager.workspace(evidence_fs, candidate, callbacks.is_cancelled) as ws:
        run_tool(ws.staged_path, ws.results_dir)
"""

from __future__ import annotations

import shutil
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Optional

from core.evidence_fs import CandidateFile, EvidenceFS
from core.logging import get_logger
from ..exceptions import StagingError

LOGGER = get_logger("extractors._shared.workspace")

COPY_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class Workspace:
    """Scratch area owned by the extraction of one candidate file."""
    candidate: CandidateFile
    root: Path
    staged_path: Path
    results_dir: Path


class WorkspaceManager:
    """Allocate and release workspaces under a process temp root."""

    def __init__(
        self,
        temp_root: Path,
        source_label: str,
        *,
        prefix: str = "",
        suffix: str = ".dat",
    ) -> None:
        self.base_dir = Path(temp_root) / source_label
        self.prefix = prefix
        self.suffix = suffix
        self.allocated = 0

    def stage(
        self,
        evidence_fs: EvidenceFS,
        candidate: CandidateFile,
        is_cancelled: Optional[Callable[[], bool]] = None,
    ) -> Workspace:
        """
        Copy the candidate's bytes into a fresh workspace.

        The copy stops early when ``is_cancelled`` turns true; callers check
        cancellation themselves after staging.

        Raises:
            StagingError: The source could not be read or the copy could not be written
        """
        stem = f"{self.prefix}{candidate.file_id}"
        root = self.base_dir / f"{stem}-{uuid.uuid4().hex[:8]}"
        workspace = Workspace(
            candidate=candidate,
            root=root,
            staged_path=root / f"{stem}{self.suffix}",
            results_dir=root / "results",
        )

        try:
            workspace.results_dir.mkdir(parents=True)
            self.allocated += 1
            with evidence_fs.open_for_read(candidate.path) as src, \
                    workspace.staged_path.open("wb") as dst:
                while True:
                    if is_cancelled is not None and is_cancelled():
                        LOGGER.debug("Staging of %s interrupted by cancellation", candidate.path)
                        break
                    chunk = src.read(COPY_CHUNK_SIZE)
                    if not chunk:
                        break
                    dst.write(chunk)
        except (OSError, ValueError) as exc:
            self.release(workspace)
            raise StagingError(candidate.path, str(exc)) from exc

        LOGGER.debug("Staged %s -> %s", candidate.path, workspace.staged_path)
        return workspace

    def release(self, workspace: Workspace) -> None:
        """Remove the workspace tree. Failures are logged, never raised."""
        if not workspace.root.exists():
            return
        try:
            shutil.rmtree(workspace.root)
        except OSError as exc:
            LOGGER.warning("Failed to remove workspace %s: %s", workspace.root, exc)
            return
        LOGGER.debug("Released workspace %s", workspace.root)

    @contextmanager
    def workspace(
        self,
        evidence_fs: EvidenceFS,
        candidate: CandidateFile,
        is_cancelled: Optional[Callable[[], bool]] = None,
    ) -> Iterator[Workspace]:
        """Stage ``candidate`` and guarantee release when the block exits."""
        workspace = self.stage(evidence_fs, candidate, is_cancelled)
        try:
            yield workspace
        finally:
            self.release(workspace)
