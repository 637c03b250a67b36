"""
Extraction warnings collected while parsing decoder output.

Warnings record what was seen but could not be used: dumps without the
expected columns, values that did not parse, decoder runs that failed. They
are logged as they happen and kept for the run summary; the CLI flushes them
to the artifact database.

Usage:
    collector = ExtractionWarningCollector(extractor_name="edge_webcache", run_id=run_id)
    collector.add_schema_mismatch("WebCacheV01_Container_1.csv", ["url"], source_file)
    ...
    collector.flush_to_database(conn)
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from core.logging import get_logger

if TYPE_CHECKING:
    import sqlite3

LOGGER = get_logger("extractors._shared.extraction_warnings")

WARNING_TYPE_SCHEMA_MISMATCH = "schema_mismatch"
WARNING_TYPE_TIMESTAMP_PARSE_ERROR = "timestamp_parse_error"
WARNING_TYPE_DECODE_FAILURE = "decode_failure"

SEVERITY_INFO = "info"
SEVERITY_WARNING = "warning"
SEVERITY_ERROR = "error"


@dataclass
class ExtractionWarning:
    """A single extraction warning record."""

    warning_type: str
    item_name: str
    severity: str = SEVERITY_WARNING
    source_file: Optional[str] = None
    item_value: Optional[str] = None

    def to_dict(self, run_id: str, extractor_name: str) -> Dict[str, Any]:
        return {
            "run_id": run_id,
            "extractor_name": extractor_name,
            "warning_type": self.warning_type,
            "severity": self.severity,
            "source_file": self.source_file,
            "item_name": self.item_name,
            "item_value": self.item_value,
        }


@dataclass
class ExtractionWarningCollector:
    """Accumulates warnings for one extraction run."""

    extractor_name: str
    run_id: str
    _warnings: List[ExtractionWarning] = field(default_factory=list)

    def add_warning(
        self,
        warning_type: str,
        item_name: str,
        *,
        severity: str = SEVERITY_WARNING,
        source_file: Optional[str] = None,
        item_value: Optional[str] = None,
    ) -> ExtractionWarning:
        warning = ExtractionWarning(
            warning_type=warning_type,
            item_name=item_name,
            severity=severity,
            source_file=source_file,
            item_value=item_value,
        )
        self._warnings.append(warning)
        return warning

    def add_schema_mismatch(
        self,
        dump_name: str,
        missing_columns: List[str],
        source_file: Optional[str] = None,
    ) -> ExtractionWarning:
        """A dump lacks a column required to build records."""
        LOGGER.warning(
            "Dump %s is missing required column(s) %s; skipping it",
            dump_name, ", ".join(missing_columns),
        )
        return self.add_warning(
            WARNING_TYPE_SCHEMA_MISMATCH,
            dump_name,
            source_file=source_file,
            item_value=",".join(missing_columns),
        )

    def add_timestamp_parse_error(
        self,
        column: str,
        raw_value: str,
        source_file: Optional[str] = None,
    ) -> ExtractionWarning:
        """A timestamp value did not match the expected pattern."""
        LOGGER.warning("The %s value %r has an invalid format", column, raw_value)
        return self.add_warning(
            WARNING_TYPE_TIMESTAMP_PARSE_ERROR,
            column,
            source_file=source_file,
            item_value=raw_value,
        )

    def add_decode_failure(
        self,
        tool_name: str,
        detail: str,
        source_file: Optional[str] = None,
    ) -> ExtractionWarning:
        LOGGER.warning("%s failed for %s: %s", tool_name, source_file, detail)
        return self.add_warning(
            WARNING_TYPE_DECODE_FAILURE,
            tool_name,
            severity=SEVERITY_ERROR,
            source_file=source_file,
            item_value=detail,
        )

    @property
    def warnings(self) -> List[ExtractionWarning]:
        return list(self._warnings)

    @property
    def warning_count(self) -> int:
        return len(self._warnings)

    def count_of(self, warning_type: str) -> int:
        return sum(1 for w in self._warnings if w.warning_type == warning_type)

    def get_counts_by_severity(self) -> Dict[str, int]:
        return dict(Counter(w.severity for w in self._warnings))

    def flush_to_database(self, conn: "sqlite3.Connection") -> int:
        """Write collected warnings to the artifact database and clear them."""
        from core.artifact_store import insert_extraction_warnings

        count = insert_extraction_warnings(
            conn,
            (w.to_dict(self.run_id, self.extractor_name) for w in self._warnings),
        )
        self._warnings.clear()
        return count
