"""
Reader for delimited table dumps written by external decoders.

A dump is a text file whose first line is the header (column names) and
whose remaining lines are data rows. Values are not quoted or escaped, so
parsing is a plain split on the delimiter. Rows that do not have exactly one
field per header column are dropped.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

from core.logging import get_logger

LOGGER = get_logger("extractors._shared.tabular_dump")


class HeaderIndex:
    """Lowercased column names with name -> position lookups."""

    def __init__(self, columns: Sequence[str]) -> None:
        self.columns: List[str] = [column.strip().lower() for column in columns]
        self._positions: Dict[str, int] = {}
        for position, column in enumerate(self.columns):
            # First occurrence wins for duplicated names
            self._positions.setdefault(column, position)

    def index_of(self, name: str) -> Optional[int]:
        """Position of ``name``, or None when the column is not present."""
        return self._positions.get(name.lower())

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._positions

    def __len__(self) -> int:
        return len(self.columns)

    def __repr__(self) -> str:
        return f"HeaderIndex({self.columns!r})"


class TabularDump:
    """
    One dump file, read once.

    ``rows()`` is a lazy, non-restartable iterator over the data lines.
    ``matched_rows`` counts lines that passed the keyword filter, including
    those later dropped for their width.
    """

    def __init__(self, path: Path, delimiter: str = ",") -> None:
        self.path = path
        self.delimiter = delimiter
        self.dropped_rows = 0
        self.matched_rows = 0
        self._handle = path.open("r", encoding="utf-8", errors="replace", newline="")
        self._header: Optional[HeaderIndex] = None
        self._consumed = False

    def __enter__(self) -> "TabularDump":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def close(self) -> None:
        self._handle.close()

    def _next_line(self) -> Optional[str]:
        for line in self._handle:
            line = line.rstrip("\r\n")
            if line.strip():
                return line
        return None

    def header(self) -> HeaderIndex:
        """Return the header, reading the first non-blank line on first use."""
        if self._header is None:
            first = self._next_line()
            self._header = HeaderIndex(first.split(self.delimiter) if first is not None else [])
        return self._header

    def rows(self, keyword: Optional[str] = None) -> Iterator[List[str]]:
        """
        Yield the data rows as field lists.

        Args:
            keyword: When given, reading stops at the first data line that does
                not contain it; the relevant rows are expected to form a
                leading block of the dump.
        """
        if self._consumed:
            raise RuntimeError(f"Rows of {self.path.name} were already read")
        self._consumed = True

        width = len(self.header())
        while True:
            line = self._next_line()
            if line is None:
                return
            if keyword is not None and keyword not in line:
                LOGGER.debug("Stopping %s at first row without %r", self.path.name, keyword)
                return
            self.matched_rows += 1
            fields = line.split(self.delimiter)
            if len(fields) != width:
                self.dropped_rows += 1
                continue
            yield fields


def open_dump(path: Path, delimiter: str = ",") -> Optional[TabularDump]:
    """Open a dump file, or return None when it is missing or cannot be read."""
    if not path.is_file():
        return None
    try:
        return TabularDump(path, delimiter)
    except FileNotFoundError:
        return None
    except OSError as exc:
        LOGGER.warning("Unable to read dump %s: %s", path, exc)
        return None


def find_dumps(results_dir: Path, name_fragment: str, suffix: str = ".csv") -> List[Path]:
    """Dump files in ``results_dir`` whose lowercased name contains ``name_fragment``."""
    if not results_dir.is_dir():
        return []
    fragment = name_fragment.lower()
    return sorted(
        path for path in results_dir.iterdir()
        if path.is_file()
        and path.suffix.lower() == suffix
        and fragment in path.name.lower()
    )
