"""
Extractors for forensic browser artifacts.

Each extractor is a self-contained module with:
- Discovery of its source files in the evidence
- Extraction logic (stage, decode, parse)
- Publication of typed records to an artifact sink
- Status reporting through callbacks

Folder Structure:
- browser/         Browser family extractors (edge_legacy/)
- _shared/         Shared utilities (workspace, process_runner, tabular_dump, extraction_warnings)
"""

from .base import BaseExtractor, ExtractorMetadata
from .callbacks import ExtractorCallbacks, LoggingCallbacks
from .exceptions import ExtractorError, MissingToolError, StagingError

from . import browser

__all__ = [
    'BaseExtractor',
    'ExtractorMetadata',
    'ExtractorCallbacks',
    'LoggingCallbacks',
    'ExtractorError',
    'MissingToolError',
    'StagingError',
    'browser',
]
