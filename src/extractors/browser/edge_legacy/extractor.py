"""
Microsoft Edge (Legacy) WebCache Extractor

Finds WebCacheV01.dat databases in the evidence, dumps them with
ESEDatabaseView and publishes the browsing history found in the History
containers.

Per WebCache file:
    1. Stage a copy of the database into a private workspace
    2. Run ESEDatabaseView to export every table as CSV into the workspace
    3. Read the container dumps, keeping rows marked "Visited:"
    4. Publish one batch per record kind to the artifact sink
    5. Remove the workspace

Cancellation is polled before and after each blocking step and between dump
files. A cancelled file publishes nothing; batches already published for
earlier files stay published.

Errors are per file except a missing decoder, which stops the run before
anything is staged.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional

from core.artifacts import ArtifactSink, ExtractionBatch
from core.config import DecoderConfig
from core.evidence_fs import CandidateFile, EvidenceFS
from core.logging import get_logger
from core.tool_discovery import InstalledToolLocator, is_windows_os
from ...base import BaseExtractor, ExtractorMetadata
from ...callbacks import ExtractorCallbacks
from ...exceptions import MissingToolError, StagingError
from ..._shared.extraction_warnings import ExtractionWarning, ExtractionWarningCollector
from ..._shared.process_runner import ProcessStatus
from ..._shared.tabular_dump import find_dumps, open_dump
from ..._shared.workspace import Workspace, WorkspaceManager
from ._decoder import run_decoder
from ._patterns import (
    ESE_TOOL_INSTALL_HINT,
    ESE_TOOL_NAME,
    ESE_TOOL_NAMESPACE,
    ESE_TOOL_RELATIVE_PATH,
    SOURCE_LABEL,
    SPARTAN_NAME,
    WEBCACHE_NAME,
    WEBCACHE_PREFIX,
)
from ._records import ROW_BUILDERS, KindSpec


LOGGER = get_logger("extractors.browser.edge_legacy")

ERR_UNABLE_FIND_ESE_VIEWER = "Unable to find ESEDatabaseViewer"
ERR_GETTING_WEBCACHE_FILES = "Error trying to retrieve Edge WebCacheV01 file"
ERR_WEBCACHE_FAIL = "Failure processing Microsoft Edge WebCache file"
ERR_DECODE_FAIL = "ESEDatabaseView could not fully decode Microsoft Edge WebCache file"


class FileState(str, Enum):
    STAGED = "staged"
    DECODED = "decoded"
    PARSED = "parsed"
    PUBLISHED = "published"
    RELEASED = "released"
    CANCELLED = "cancelled"
    ERRORED = "errored"


@dataclass
class FileOutcome:
    """What happened to one WebCache file."""

    candidate: CandidateFile
    states: List[FileState] = field(default_factory=list)
    decoder_status: Optional[ProcessStatus] = None
    records_published: int = 0
    batches_published: int = 0
    error: Optional[str] = None

    def advance(self, state: FileState) -> None:
        self.states.append(state)

    @property
    def final_state(self) -> Optional[FileState]:
        """Last state before release."""
        for state in reversed(self.states):
            if state is not FileState.RELEASED:
                return state
        return None

    @property
    def cancelled(self) -> bool:
        return FileState.CANCELLED in self.states

    @property
    def released(self) -> bool:
        return bool(self.states) and self.states[-1] is FileState.RELEASED


@dataclass
class ExtractionSummary:
    """Result of one extraction run, suitable for display to the examiner."""

    run_id: str
    data_found: bool = False
    cancelled: bool = False
    spartan_files: int = 0
    outcomes: List[FileOutcome] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[ExtractionWarning] = field(default_factory=list)

    @property
    def records_published(self) -> int:
        return sum(outcome.records_published for outcome in self.outcomes)

    @property
    def batches_published(self) -> int:
        return sum(outcome.batches_published for outcome in self.outcomes)


def _generate_run_id() -> str:
    """Generate run ID: {timestamp}_{uuid4[:8]}."""
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
    return f"{timestamp}_{uuid.uuid4().hex[:8]}"


@dataclass
class ExtractionContext:
    """
    Everything a run needs from its surroundings.

    Attributes:
        temp_root: Process temp directory; workspaces are created below it
        callbacks: Progress reporting and the cancellation signal
        sink: Where discovered artifacts are published
        tool_locator: Resolves the ESEDatabaseView executable
        decoder: Launcher, polling and timeout settings for the decoder
    """
    temp_root: Path
    callbacks: ExtractorCallbacks
    sink: ArtifactSink
    tool_locator: InstalledToolLocator
    decoder: DecoderConfig = field(default_factory=DecoderConfig)
    run_id: str = field(default_factory=_generate_run_id)


class EdgeWebCacheExtractor(BaseExtractor):
    """Extract Legacy Edge browsing history from WebCacheV01.dat files."""

    def __init__(self, context: ExtractionContext) -> None:
        self.context = context
        self.workspaces = WorkspaceManager(
            context.temp_root,
            SOURCE_LABEL,
            prefix=WEBCACHE_PREFIX,
            suffix=".dat",
        )
        self.warnings = ExtractionWarningCollector(
            extractor_name=self.metadata.name,
            run_id=context.run_id,
        )

    @property
    def metadata(self) -> ExtractorMetadata:
        return ExtractorMetadata(
            name="edge_webcache",
            display_name="Microsoft Edge",
            description="Browsing history from Legacy Edge WebCacheV01.dat via ESEDatabaseView",
            category="browser",
            requires_tools=[ESE_TOOL_NAME],
        )

    def locate_decoder(self) -> Optional[Path]:
        return self.context.tool_locator.locate(ESE_TOOL_RELATIVE_PATH, ESE_TOOL_NAMESPACE)

    def decoder_can_execute(self) -> bool:
        """ESEDatabaseView is a Windows program; elsewhere it needs a launcher such as wine."""
        return is_windows_os() or bool(self.context.decoder.launcher)

    def can_run_extraction(self, evidence_fs: EvidenceFS) -> tuple[bool, str]:
        if not self.decoder_can_execute():
            return False, "ESEDatabaseView requires Windows or a configured decoder launcher"
        if self.locate_decoder() is None:
            return False, f"{ESE_TOOL_NAME} not installed"
        return True, ""

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run_extraction(self, evidence_fs: EvidenceFS) -> ExtractionSummary:
        """
        Process every WebCache file in the evidence.

        Raises:
            MissingToolError: ESEDatabaseView could not be located. Nothing has
                been staged when this is raised.
        """
        callbacks = self.context.callbacks
        summary = ExtractionSummary(run_id=self.context.run_id)

        callbacks.on_step("Locating Microsoft Edge WebCache files")
        try:
            webcache_files = evidence_fs.find_files(WEBCACHE_NAME)
            spartan_files = evidence_fs.find_files(SPARTAN_NAME)
        except OSError as exc:
            LOGGER.warning("Error fetching 'WebCacheV01.dat' files for Microsoft Edge", exc_info=True)
            self._report_error(summary, ERR_GETTING_WEBCACHE_FILES, str(exc))
            return self._finish(summary)

        if not webcache_files and not spartan_files:
            callbacks.on_log("No Microsoft Edge files found", "info")
            return self._finish(summary)

        summary.data_found = True
        summary.spartan_files = len(spartan_files)

        if not self.decoder_can_execute():
            LOGGER.info("Microsoft Edge files found, unable to parse on Non-Windows system")
            callbacks.on_log(
                "Microsoft Edge files found but ESEDatabaseView cannot run on this system "
                "(configure decoder.launcher to use one)",
                "info",
            )
            return self._finish(summary)

        tool_path = self.locate_decoder()
        if tool_path is None:
            LOGGER.error("Error finding ESEDatabaseViewer program")
            self._report_error(summary, ERR_UNABLE_FIND_ESE_VIEWER, ESE_TOOL_INSTALL_HINT)
            raise MissingToolError(ESE_TOOL_NAME, ESE_TOOL_INSTALL_HINT)

        if callbacks.is_cancelled():
            summary.cancelled = True
            return self._finish(summary)

        total = len(webcache_files)
        for index, candidate in enumerate(webcache_files, start=1):
            if callbacks.is_cancelled():
                summary.cancelled = True
                break

            callbacks.on_progress(index, total, f"Processing {candidate.path}")
            outcome = self.process_webcache_file(evidence_fs, candidate, tool_path)
            summary.outcomes.append(outcome)
            if outcome.error:
                self._report_error(summary, outcome.error)
            if outcome.cancelled:
                summary.cancelled = True
                break

        if spartan_files:
            # Bookmarks/reading list live in Spartan.edb; no parser for it yet
            LOGGER.info("Found %d %s file(s); bookmark extraction is not supported", len(spartan_files), SPARTAN_NAME)

        if summary.cancelled:
            callbacks.on_log("Microsoft Edge extraction cancelled", "warning")
        callbacks.on_log(
            f"Published {summary.records_published} Microsoft Edge record(s) "
            f"from {len(summary.outcomes)} WebCache file(s)",
            "info",
        )
        return self._finish(summary)

    def process_webcache_file(
        self,
        evidence_fs: EvidenceFS,
        candidate: CandidateFile,
        tool_path: Path,
    ) -> FileOutcome:
        """Run one WebCache file through stage, decode, parse and publish."""
        callbacks = self.context.callbacks
        outcome = FileOutcome(candidate=candidate)

        callbacks.on_step(f"Staging {candidate.path}")
        try:
            with self.workspaces.workspace(evidence_fs, candidate, callbacks.is_cancelled) as workspace:
                outcome.advance(FileState.STAGED)
                try:
                    self._process_staged(workspace, tool_path, outcome)
                except Exception as exc:
                    LOGGER.error("Error processing %s", candidate.path, exc_info=True)
                    outcome.advance(FileState.ERRORED)
                    outcome.error = f"{ERR_WEBCACHE_FAIL}: {candidate.path} ({exc})"
        except StagingError as exc:
            LOGGER.error("Error writing %s to workspace: %s", candidate.path, exc)
            outcome.advance(FileState.ERRORED)
            outcome.error = f"{ERR_WEBCACHE_FAIL}: {candidate.path}"

        outcome.advance(FileState.RELEASED)
        return outcome

    # ------------------------------------------------------------------
    # Per-file stages
    # ------------------------------------------------------------------

    def _process_staged(self, workspace: Workspace, tool_path: Path, outcome: FileOutcome) -> None:
        callbacks = self.context.callbacks
        candidate = workspace.candidate
        decoder = self.context.decoder

        if callbacks.is_cancelled():
            outcome.advance(FileState.CANCELLED)
            return

        callbacks.on_step(f"Decoding {candidate.path}")
        invocation = run_decoder(
            tool_path,
            workspace.staged_path,
            WEBCACHE_PREFIX,
            workspace.results_dir,
            is_cancelled=callbacks.is_cancelled,
            launcher=decoder.launcher,
            poll_interval=decoder.poll_interval_s,
            timeout=decoder.timeout_s,
        )
        outcome.decoder_status = invocation.status
        if invocation.status is ProcessStatus.CANCELLED or callbacks.is_cancelled():
            outcome.advance(FileState.CANCELLED)
            return
        outcome.advance(FileState.DECODED)

        if not invocation.succeeded:
            if invocation.status is ProcessStatus.TIMED_OUT:
                detail = "timed out"
            else:
                detail = f"exit status {invocation.exit_code}"
            self.warnings.add_decode_failure(ESE_TOOL_NAME, detail, candidate.path)
            outcome.error = f"{ERR_DECODE_FAIL}: {candidate.path} ({detail})"
        elif not find_dumps(workspace.results_dir, ""):
            self.warnings.add_decode_failure(ESE_TOOL_NAME, "no table dumps produced", candidate.path)
            outcome.error = f"{ERR_DECODE_FAIL}: {candidate.path} (no output)"

        batches: List[ExtractionBatch] = []
        for spec in ROW_BUILDERS.values():
            callbacks.on_step(f"Reading {spec.kind.value} from {candidate.path}")
            records = self._collect_records(spec, workspace)
            if records is None:
                outcome.advance(FileState.CANCELLED)
                return
            if records:
                batches.append(ExtractionBatch(kind=spec.kind, source=candidate, records=tuple(records)))
        outcome.advance(FileState.PARSED)

        if callbacks.is_cancelled():
            outcome.advance(FileState.CANCELLED)
            return

        for batch in batches:
            ids = self.context.sink.publish(batch)
            outcome.batches_published += 1
            outcome.records_published += len(ids)
        if batches:
            outcome.advance(FileState.PUBLISHED)

    def _collect_records(self, spec: KindSpec, workspace: Workspace) -> Optional[list]:
        """
        Build records of one kind from every matching dump.

        Returns None when cancellation was observed between dumps.
        """
        callbacks = self.context.callbacks
        candidate = workspace.candidate
        records: list = []

        for dump_path in find_dumps(workspace.results_dir, spec.dump_fragment):
            if callbacks.is_cancelled():
                return None

            dump = open_dump(dump_path)
            if dump is None:
                continue

            with dump:
                header = dump.header()
                found = 0
                if spec.key_column not in header:
                    # Only a dump that actually holds keyword rows is a mismatch
                    next(dump.rows(spec.row_keyword), None)
                    if dump.matched_rows:
                        self.warnings.add_schema_mismatch(dump_path.name, [spec.key_column], candidate.path)
                    continue
                for row in dump.rows(spec.row_keyword):
                    record = spec.build(header, row, candidate, self.warnings)
                    if record is None:
                        self.warnings.add_schema_mismatch(dump_path.name, [spec.key_column], candidate.path)
                        break
                    records.append(record)
                    found += 1

            if found or dump.dropped_rows:
                LOGGER.debug(
                    "%s: %d %s record(s), %d malformed row(s) skipped",
                    dump_path.name, found, spec.kind.value, dump.dropped_rows,
                )

        return records

    def _report_error(self, summary: ExtractionSummary, message: str, details: str = "") -> None:
        summary.errors.append(message)
        self.context.callbacks.on_error(message, details)

    def _finish(self, summary: ExtractionSummary) -> ExtractionSummary:
        summary.warnings = self.warnings.warnings
        return summary
