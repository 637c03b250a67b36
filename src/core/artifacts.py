"""
Typed forensic artifacts and the sink they are published to.

Record kinds form a tagged variant: every record class carries its
``RecordKind`` and a batch holds records of exactly one kind from exactly one
source file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Protocol, Tuple

from .evidence_fs import CandidateFile


class RecordKind(str, Enum):
    """Artifact kinds produced by browser extractors."""

    HISTORY = "web_history"
    COOKIE = "web_cookie"
    DOWNLOAD = "web_download"
    BOOKMARK = "web_bookmark"


@dataclass(frozen=True)
class HistoryRecord:
    """
    One web history entry.

    ``url`` is always a string (possibly empty). ``accessed_time`` is epoch
    seconds or None when the source value could not be parsed.
    """
    kind: ClassVar[RecordKind] = RecordKind.HISTORY

    url: str
    program_name: str
    domain: str = ""
    user: str = ""
    accessed_time: Optional[int] = None
    referrer: Optional[str] = None
    title: Optional[str] = None

    def to_attributes(self) -> Dict[str, Any]:
        """
        Flatten into the attribute map stored by the sink.

        Every declared string field is present; absent values become "".
        The access time is only present when known.
        """
        attributes: Dict[str, Any] = {
            "url": self.url if self.url is not None else "",
            "referrer": self.referrer or "",
            "title": self.title or "",
            "program_name": self.program_name or "",
            "domain": self.domain or "",
            "user_name": self.user or "",
        }
        if self.accessed_time is not None:
            attributes["datetime_accessed"] = self.accessed_time
        return attributes


@dataclass(frozen=True)
class ExtractionBatch:
    """Records of one kind discovered in one source file."""

    kind: RecordKind
    source: CandidateFile
    records: Tuple[Any, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        for record in self.records:
            if getattr(record, "kind", None) is not self.kind:
                raise ValueError(
                    f"Record of kind {getattr(record, 'kind', None)!r} in {self.kind.value} batch"
                )

    def __len__(self) -> int:
        return len(self.records)

    @property
    def is_empty(self) -> bool:
        return not self.records


class ArtifactSink(Protocol):
    """
    Destination for discovered artifacts.

    The sink owns identity and de-duplication. Callers only ever publish
    non-empty batches tied to one source file and one record kind.
    """

    def publish(self, batch: ExtractionBatch) -> List[int]:
        """Store the batch atomically and return the assigned artifact ids."""
        ...
