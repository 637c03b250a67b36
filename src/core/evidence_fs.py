from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Iterator, List

from .logging import get_logger

LOGGER = get_logger("core.evidence_fs")


@dataclass(frozen=True)
class CandidateFile:
    """
    A named file inside an evidence image.

    Attributes:
        file_id: Identifier that is stable within the image (inode / MFT entry)
        name: Logical file name (e.g. "WebCacheV01.dat")
        path: Normalized forward-slash path inside the image
        size_bytes: File size as recorded by the filesystem
    """
    file_id: int
    name: str
    path: str
    size_bytes: int


class EvidenceFS(ABC):
    """Read-only view of an evidence filesystem."""

    @abstractmethod
    def iter_all_files(self) -> Iterator[CandidateFile]:
        """Yield every regular file in the image."""

    @abstractmethod
    def open_for_read(self, path: str) -> BinaryIO:
        """Open a file inside the image for binary reading."""

    def find_files(self, name: str, case_sensitive: bool = False) -> List[CandidateFile]:
        """
        Return all files whose logical name equals ``name``.

        No match is an empty list, never an error.
        """
        wanted = name if case_sensitive else name.lower()
        matches = []
        for candidate in self.iter_all_files():
            current = candidate.name if case_sensitive else candidate.name.lower()
            if current == wanted:
                matches.append(candidate)
        LOGGER.debug("find_files(%s) matched %d file(s)", name, len(matches))
        return matches


class MountedFS(EvidenceFS):
    """Evidence filesystem wrapper for a locally mounted read-only path."""

    def __init__(self, mount_point: Path) -> None:
        if not mount_point.exists():
            raise FileNotFoundError(f"Mount point {mount_point} does not exist.")
        self.mount_point = mount_point
        LOGGER.info("MountedFS bound to %s", mount_point)

    def iter_all_files(self) -> Iterator[CandidateFile]:
        for root, dirs, files in os.walk(self.mount_point):
            dirs.sort()
            for name in sorted(files):
                full_path = Path(root) / name
                try:
                    st = full_path.stat()
                except OSError as exc:
                    LOGGER.debug("Skipping unreadable entry %s: %s", full_path, exc)
                    continue
                rel_path = full_path.relative_to(self.mount_point).as_posix()
                yield CandidateFile(
                    file_id=st.st_ino,
                    name=name,
                    path=rel_path,
                    size_bytes=st.st_size,
                )

    def open_for_read(self, path: str) -> BinaryIO:
        resolved = self._resolve_under_mount(path)
        if not resolved.is_file():
            raise FileNotFoundError(f"Path {path} not found under mount {self.mount_point}.")
        LOGGER.debug("Opening %s for read (MountedFS)", resolved)
        return resolved.open("rb")

    def _resolve_under_mount(self, path: str) -> Path:
        """Resolve ``path`` and refuse anything that escapes the mount root."""
        base = self.mount_point.resolve()
        resolved = (self.mount_point / PurePosixPath(path)).resolve()
        try:
            resolved.relative_to(base)
        except ValueError as exc:
            raise ValueError(
                f"Path traversal attempt: {path!r} resolves outside mount {self.mount_point}"
            ) from exc
        return resolved

    @property
    def root(self) -> Path:
        return self.mount_point
