"""
Shared utilities for extractors.

- workspace: per-file scratch directories with guaranteed cleanup
- process_runner: external tool runs with captured output and cancellation
- tabular_dump: delimited table dumps written by external decoders
- extraction_warnings: warnings collected during a run
"""

from .workspace import Workspace, WorkspaceManager
from .process_runner import (
    DecoderInvocation,
    ProcessStatus,
    build_invocation,
    run_process,
)
from .tabular_dump import HeaderIndex, TabularDump, find_dumps, open_dump
from .extraction_warnings import (
    ExtractionWarning,
    ExtractionWarningCollector,
    WARNING_TYPE_DECODE_FAILURE,
    WARNING_TYPE_SCHEMA_MISMATCH,
    WARNING_TYPE_TIMESTAMP_PARSE_ERROR,
)

__all__ = [
    "Workspace",
    "WorkspaceManager",
    "DecoderInvocation",
    "ProcessStatus",
    "build_invocation",
    "run_process",
    "HeaderIndex",
    "TabularDump",
    "find_dumps",
    "open_dump",
    "ExtractionWarning",
    "ExtractionWarningCollector",
    "WARNING_TYPE_DECODE_FAILURE",
    "WARNING_TYPE_SCHEMA_MISMATCH",
    "WARNING_TYPE_TIMESTAMP_PARSE_ERROR",
]
