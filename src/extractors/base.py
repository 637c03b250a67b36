"""
Base extractor interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List

from core.app_version import get_app_version
from core.evidence_fs import EvidenceFS


@dataclass
class ExtractorMetadata:
    """
    Metadata about an extractor module.

    Attributes:
        name: Internal identifier (e.g., "edge_webcache")
        display_name: Display name (e.g., "Microsoft Edge")
        description: Short description
        category: Category for grouping ("browser" | "system")
        requires_tools: External tools needed (e.g., ["ESEDatabaseView"])
        version: Module version string
    """
    name: str
    display_name: str
    description: str
    category: str
    requires_tools: List[str]
    version: str = field(default_factory=get_app_version)


class BaseExtractor(ABC):
    """
    Base class for extractor modules.

    Each module is responsible for:
    1. Declaring capabilities and requirements (metadata)
    2. Checking whether it can run against an evidence source
    3. Running extraction and publishing what it finds
    """

    @property
    @abstractmethod
    def metadata(self) -> ExtractorMetadata:
        """Return module metadata."""
        pass

    @abstractmethod
    def can_run_extraction(self, evidence_fs: EvidenceFS) -> tuple[bool, str]:
        """
        Check if extraction can run on this evidence.

        Returns:
            Tuple of (can_run, reason_if_not)
        """
        pass

    @abstractmethod
    def run_extraction(self, evidence_fs: EvidenceFS):
        """
        Run extraction against the evidence filesystem.

        Implementations report progress through their callbacks, honor
        cancellation at their checkpoints and return a run summary.
        """
        pass
