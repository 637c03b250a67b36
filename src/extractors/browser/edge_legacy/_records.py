"""
Build typed records from rows of ESEDatabaseView table dumps.

Each record kind has a pure row builder. ``ROW_BUILDERS`` dispatches by kind
and says which dumps feed it and which keyword marks its rows.

History rows come from the ``Container_N`` tables. Their url column carries
the visiting user and the url in one value::

    Visited: alice@http://example.com/page
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence

from core.artifacts import HistoryRecord, RecordKind
from core.evidence_fs import CandidateFile
from core.logging import get_logger
from core.urls import extract_domain
from ..._shared.extraction_warnings import ExtractionWarningCollector
from ..._shared.tabular_dump import HeaderIndex
from ._patterns import (
    HISTORY_DUMP_FRAGMENT,
    HISTORY_HEAD_ACCESSTIME,
    HISTORY_HEAD_URL,
    HISTORY_KEYWORD_VISIT,
    PROGRAM_NAME,
    URL_USER_SEPARATOR,
)
from ._timestamps import parse_webcache_time

LOGGER = get_logger("extractors.browser.edge_legacy.records")

RowBuilder = Callable[
    [HeaderIndex, Sequence[str], CandidateFile, Optional[ExtractionWarningCollector]],
    Optional[object],
]


@dataclass(frozen=True)
class KindSpec:
    """How one record kind is read from the decoder output."""

    kind: RecordKind
    dump_fragment: str
    row_keyword: Optional[str]
    key_column: str
    build: RowBuilder


def split_url_user(value: str) -> tuple[str, str]:
    """
    Split ``"Visited: user@url"`` into ``(url, user)``.

    Without the separator the whole value is the url and the user is empty.
    """
    head, separator, tail = value.partition(URL_USER_SEPARATOR)
    if not separator:
        return value.replace(HISTORY_KEYWORD_VISIT, "").strip(), ""
    user = head.replace(HISTORY_KEYWORD_VISIT, "").strip()
    return tail.strip(), user


def build_history_record(
    header: HeaderIndex,
    row: Sequence[str],
    source: CandidateFile,
    warnings: Optional[ExtractionWarningCollector] = None,
) -> Optional[HistoryRecord]:
    """
    Map one history row to a HistoryRecord.

    Returns None only when the header has no url column, which makes every
    row of the dump unusable.
    """
    url_index = header.index_of(HISTORY_HEAD_URL)
    if url_index is None or url_index >= len(row):
        return None

    url, user = split_url_user(row[url_index])

    accessed_time = None
    time_index = header.index_of(HISTORY_HEAD_ACCESSTIME)
    raw_time = row[time_index].strip() if time_index is not None and time_index < len(row) else ""
    if raw_time:
        accessed_time = parse_webcache_time(raw_time)
    if accessed_time is None:
        if warnings is not None:
            warnings.add_timestamp_parse_error(HISTORY_HEAD_ACCESSTIME, raw_time, source.path)
        else:
            LOGGER.warning("The Accessed Time format in history file seems invalid %r", raw_time)

    return HistoryRecord(
        url=url,
        program_name=PROGRAM_NAME,
        domain=extract_domain(url),
        user=user,
        accessed_time=accessed_time,
    )


ROW_BUILDERS: Dict[RecordKind, KindSpec] = {
    RecordKind.HISTORY: KindSpec(
        kind=RecordKind.HISTORY,
        dump_fragment=HISTORY_DUMP_FRAGMENT,
        row_keyword=HISTORY_KEYWORD_VISIT,
        key_column=HISTORY_HEAD_URL,
        build=build_history_record,
    ),
}
