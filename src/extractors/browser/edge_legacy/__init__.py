"""
Legacy Edge (EdgeHTML) extractor.

Legacy Edge keeps its browsing history in the same ESE database as Internet
Explorer 10/11:

    Users/<user>/AppData/Local/Microsoft/Windows/WebCache/WebCacheV01.dat

The database is decoded with NirSoft ESEDatabaseView, which exports every
table as CSV. History rows live in the ``Container_N`` tables and are marked
``Visited: user@url`` in their Url column.

Spartan.edb (favorites and reading list) is located and counted but not
parsed.
"""

from .extractor import (
    EdgeWebCacheExtractor,
    ExtractionContext,
    ExtractionSummary,
    FileOutcome,
    FileState,
)

__all__ = [
    "EdgeWebCacheExtractor",
    "ExtractionContext",
    "ExtractionSummary",
    "FileOutcome",
    "FileState",
]
