"""
Browser extractors organized by browser family.

Structure:
    browser/
    └── edge_legacy/   # Legacy Edge (EdgeHTML), WebCacheV01.dat via ESEDatabaseView
"""

from .edge_legacy import EdgeWebCacheExtractor

__all__ = ["EdgeWebCacheExtractor"]
