"""End-to-end tests for the Legacy Edge WebCache extractor using a scripted decoder."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from pathlib import Path

import pytest

from core.artifacts import RecordKind
from core.evidence_fs import MountedFS
from extractors._shared.extraction_warnings import (
    WARNING_TYPE_DECODE_FAILURE,
    WARNING_TYPE_SCHEMA_MISMATCH,
)
from extractors._shared.process_runner import ProcessStatus
from extractors.browser.edge_legacy import FileState
from extractors.browser.edge_legacy import extractor as extractor_module
from extractors.exceptions import MissingToolError
from tests.fixtures.webcache import (
    history_csv,
    webcache_payload,
    webcache_time,
)

VISIT_TIME = datetime(2020, 1, 2, 15, 4, 5)

CONTAINERS_CSV = (
    "ContainerId,SetId,Flags,Size,Limit,LastScavengeTime,Name,PartitionId,Directory\r\n"
    "1,0,768,0,0,01/02/2020 03:00:00 PM,History,L,C:\\Users\\alice\\AppData\\Local\\Microsoft\\Windows\\History\\History.IE5\\\r\n"
)


def _history_payload(*rows, **kwargs) -> str:
    return webcache_payload(
        {
            "Containers": CONTAINERS_CSV,
            "Container_1": history_csv(rows),
        },
        **kwargs,
    )


@pytest.fixture(autouse=True)
def _windows_host(monkeypatch):
    monkeypatch.setattr(extractor_module, "is_windows_os", lambda: True)


def test_history_is_published_per_file(evidence_root, add_webcache, make_extractor, sink, callbacks) -> None:
    add_webcache(
        "alice",
        _history_payload(
            ("Visited: alice@http://example.com", webcache_time(VISIT_TIME)),
            ("Visited: alice@https://www.bing.com/search?q=edge", webcache_time(VISIT_TIME)),
            (":2020010220200103: alice@http://example.com", webcache_time(VISIT_TIME)),
        ),
    )
    add_webcache("bob", _history_payload(("Visited: bob@http://news.example.co.uk/", "")))
    extractor = make_extractor()

    summary = extractor.run_extraction(MountedFS(evidence_root))

    assert summary.data_found
    assert summary.errors == []
    assert callbacks.errors == []
    assert len(sink.batches) == 2
    assert all(batch.kind is RecordKind.HISTORY for batch in sink.batches)
    assert [batch.source.path for batch in sink.batches] == [
        "Users/alice/AppData/Local/Microsoft/Windows/WebCache/WebCacheV01.dat",
        "Users/bob/AppData/Local/Microsoft/Windows/WebCache/WebCacheV01.dat",
    ]

    alice, bob = sink.batches
    assert [r.url for r in alice.records] == ["http://example.com", "https://www.bing.com/search?q=edge"]
    assert alice.records[0].user == "alice"
    assert alice.records[0].domain == "example.com"
    assert alice.records[1].domain == "bing.com"
    assert alice.records[0].accessed_time == int(VISIT_TIME.timestamp())

    assert bob.records[0].user == "bob"
    assert bob.records[0].domain == "example.co.uk"
    assert bob.records[0].accessed_time is None

    assert summary.records_published == 3
    assert summary.batches_published == 2
    assert [o.final_state for o in summary.outcomes] == [FileState.PUBLISHED, FileState.PUBLISHED]
    assert all(o.released for o in summary.outcomes)
    assert all(o.decoder_status is ProcessStatus.COMPLETED for o in summary.outcomes)
    assert [p[:2] for p in callbacks.progress] == [(1, 2), (2, 2)]
    assert list(extractor.workspaces.base_dir.iterdir()) == []


def test_every_container_dump_feeds_one_batch(evidence_root, add_webcache, make_extractor, sink) -> None:
    add_webcache(
        "alice",
        webcache_payload(
            {
                "Container_1": history_csv([("Visited: alice@http://a.com", webcache_time(VISIT_TIME))]),
                "Container_7": history_csv([("Visited: alice@http://b.com", webcache_time(VISIT_TIME))]),
                "Cookies": "Name,Value\r\nsid,1\r\n",
            }
        ),
    )

    make_extractor().run_extraction(MountedFS(evidence_root))

    assert len(sink.batches) == 1
    assert [r.url for r in sink.records] == ["http://a.com", "http://b.com"]


def test_nothing_found(evidence_root, make_extractor, sink, callbacks) -> None:
    extractor = make_extractor()

    summary = extractor.run_extraction(MountedFS(evidence_root))

    assert not summary.data_found
    assert summary.outcomes == []
    assert sink.batches == []
    assert callbacks.errors == []
    assert extractor.workspaces.allocated == 0


def test_dumps_without_history_publish_nothing(evidence_root, add_webcache, make_extractor, sink, callbacks) -> None:
    add_webcache("alice", webcache_payload({"Containers": CONTAINERS_CSV, "HstsEntries": "Host,Flags\r\na.com,1\r\n"}))

    summary = make_extractor().run_extraction(MountedFS(evidence_root))

    assert sink.batches == []
    assert callbacks.errors == []
    assert summary.warnings == []
    assert summary.outcomes[0].final_state is FileState.PARSED


def test_malformed_rows_are_skipped(evidence_root, add_webcache, make_extractor, sink) -> None:
    text = history_csv([("Visited: alice@http://a.com", webcache_time(VISIT_TIME))])
    text += "99,1,Visited: alice@http://short.com\r\n"
    text += f"100,1,3,{webcache_time(VISIT_TIME)},x,Visited: alice@http://c.com,,extra\r\n"
    text += f"101,1,3,{webcache_time(VISIT_TIME)},x,Visited: alice@http://d.com,\r\n"
    add_webcache("alice", webcache_payload({"Container_1": text}))

    make_extractor().run_extraction(MountedFS(evidence_root))

    assert [r.url for r in sink.records] == ["http://a.com", "http://d.com"]


def test_header_without_url_column(evidence_root, add_webcache, make_extractor, sink) -> None:
    text = "EntryId,AccessedTime,Location\r\n" + f"1,{webcache_time(VISIT_TIME)},Visited: alice@http://a.com\r\n"
    add_webcache("alice", webcache_payload({"Container_1": text}))
    extractor = make_extractor()

    summary = extractor.run_extraction(MountedFS(evidence_root))

    assert sink.batches == []
    assert extractor.warnings.count_of(WARNING_TYPE_SCHEMA_MISMATCH) == 1
    assert [w.item_name for w in summary.warnings] == ["WebCacheV01_Container_1.csv"]


def test_missing_decoder_aborts_before_staging(
    tmp_path: Path, evidence_root, add_webcache, make_extractor, sink, callbacks, monkeypatch
) -> None:
    monkeypatch.setattr("core.tool_discovery.shutil.which", lambda name: None)
    add_webcache("alice", _history_payload(("Visited: alice@http://a.com", "")))
    extractor = make_extractor(tool_roots=[tmp_path / "empty"])

    with pytest.raises(MissingToolError, match="ESEDatabaseView"):
        extractor.run_extraction(MountedFS(evidence_root))

    assert [error for error, _ in callbacks.errors] == [extractor_module.ERR_UNABLE_FIND_ESE_VIEWER]
    assert extractor.workspaces.allocated == 0
    assert not extractor.workspaces.base_dir.exists()
    assert sink.batches == []


def test_non_windows_without_launcher_only_logs(
    evidence_root, add_webcache, make_extractor, sink, callbacks, monkeypatch, caplog
) -> None:
    monkeypatch.setattr(extractor_module, "is_windows_os", lambda: False)
    add_webcache("alice", _history_payload(("Visited: alice@http://a.com", "")))
    extractor = make_extractor(launcher=[])

    with caplog.at_level(logging.INFO):
        summary = extractor.run_extraction(MountedFS(evidence_root))

    assert summary.data_found
    assert summary.outcomes == []
    assert callbacks.errors == []
    assert sink.batches == []
    assert extractor.workspaces.allocated == 0
    assert "unable to parse on Non-Windows system" in caplog.text
    assert extractor.can_run_extraction(MountedFS(evidence_root))[0] is False


def test_non_windows_with_launcher_runs(evidence_root, add_webcache, make_extractor, sink, monkeypatch) -> None:
    monkeypatch.setattr(extractor_module, "is_windows_os", lambda: False)
    add_webcache("alice", _history_payload(("Visited: alice@http://a.com", "")))
    extractor = make_extractor()

    assert extractor.can_run_extraction(MountedFS(evidence_root)) == (True, "")
    extractor.run_extraction(MountedFS(evidence_root))

    assert len(sink.batches) == 1


def test_cancel_after_decode_publishes_nothing(
    evidence_root, add_webcache, make_extractor, sink, callbacks, monkeypatch
) -> None:
    add_webcache("alice", _history_payload(("Visited: alice@http://a.com", webcache_time(VISIT_TIME))))
    add_webcache("bob", _history_payload(("Visited: bob@http://b.com", webcache_time(VISIT_TIME))))
    real_run_decoder = extractor_module.run_decoder

    def _decode_then_cancel(*args, **kwargs):
        invocation = real_run_decoder(*args, **kwargs)
        callbacks.cancel()
        return invocation

    monkeypatch.setattr(extractor_module, "run_decoder", _decode_then_cancel)
    extractor = make_extractor()

    summary = extractor.run_extraction(MountedFS(evidence_root))

    assert summary.cancelled
    assert sink.batches == []
    assert len(summary.outcomes) == 1
    assert summary.outcomes[0].final_state is FileState.CANCELLED
    assert summary.outcomes[0].released
    assert list(extractor.workspaces.base_dir.iterdir()) == []


def test_cancel_while_decoding_stops_decoder(
    evidence_root, add_webcache, make_extractor, sink, callbacks, monkeypatch
) -> None:
    add_webcache("alice", _history_payload(("Visited: alice@http://a.com", ""), sleep=30))
    real_run_decoder = extractor_module.run_decoder

    def _cancel_soon(*args, **kwargs):
        polls = {"count": 0}

        def _is_cancelled():
            polls["count"] += 1
            return polls["count"] > 3

        kwargs["is_cancelled"] = _is_cancelled
        invocation = real_run_decoder(*args, **kwargs)
        callbacks.cancel()
        return invocation

    monkeypatch.setattr(extractor_module, "run_decoder", _cancel_soon)
    extractor = make_extractor()

    summary = extractor.run_extraction(MountedFS(evidence_root))

    outcome = summary.outcomes[0]
    assert outcome.decoder_status is ProcessStatus.CANCELLED
    assert outcome.final_state is FileState.CANCELLED
    assert sink.batches == []
    assert list(extractor.workspaces.base_dir.iterdir()) == []


def test_cancel_before_run(evidence_root, add_webcache, make_extractor, sink, callbacks) -> None:
    add_webcache("alice", _history_payload(("Visited: alice@http://a.com", "")))
    callbacks.cancel()
    extractor = make_extractor()

    summary = extractor.run_extraction(MountedFS(evidence_root))

    assert summary.cancelled
    assert summary.outcomes == []
    assert extractor.workspaces.allocated == 0


def test_decoder_failure_still_parses_output(evidence_root, add_webcache, make_extractor, sink, callbacks) -> None:
    add_webcache("alice", _history_payload(("Visited: alice@http://a.com", ""), exit_code=3))
    extractor = make_extractor()

    summary = extractor.run_extraction(MountedFS(evidence_root))

    assert len(sink.batches) == 1
    assert len(summary.errors) == 1
    assert "exit status 3" in summary.errors[0]
    assert len(callbacks.errors) == 1
    assert extractor.warnings.count_of(WARNING_TYPE_DECODE_FAILURE) == 1
    assert summary.outcomes[0].decoder_status is ProcessStatus.FAILED


def test_decoder_without_output_is_an_error(evidence_root, add_webcache, make_extractor, sink) -> None:
    add_webcache("alice", webcache_payload({}))
    add_webcache("bob", _history_payload(("Visited: bob@http://b.com", "")))

    summary = make_extractor().run_extraction(MountedFS(evidence_root))

    assert len(summary.errors) == 1
    assert "Users/alice" in summary.errors[0]
    assert [batch.source.path.split("/")[1] for batch in sink.batches] == ["bob"]


def test_decoder_timeout(evidence_root, add_webcache, make_extractor, sink) -> None:
    add_webcache("alice", _history_payload(("Visited: alice@http://a.com", ""), sleep=30))
    extractor = make_extractor(timeout_s=0.5)

    summary = extractor.run_extraction(MountedFS(evidence_root))

    assert summary.outcomes[0].decoder_status is ProcessStatus.TIMED_OUT
    assert "timed out" in summary.errors[0]
    assert sink.batches == []


def test_staging_failure_moves_to_next_file(
    evidence_root, add_webcache, make_extractor, sink, callbacks, monkeypatch
) -> None:
    add_webcache("alice", _history_payload(("Visited: alice@http://a.com", "")))
    add_webcache("bob", _history_payload(("Visited: bob@http://b.com", "")))
    fs = MountedFS(evidence_root)
    real_open = fs.open_for_read

    def _open(path):
        if path.startswith("Users/alice/"):
            raise PermissionError(13, "Permission denied", path)
        return real_open(path)

    monkeypatch.setattr(fs, "open_for_read", _open)

    summary = make_extractor().run_extraction(fs)

    assert [o.final_state for o in summary.outcomes] == [FileState.ERRORED, FileState.PUBLISHED]
    assert summary.errors[0].startswith(extractor_module.ERR_WEBCACHE_FAIL)
    assert [r.url for r in sink.records] == ["http://b.com"]


def test_runs_are_idempotent(evidence_root, add_webcache, make_extractor, sink) -> None:
    add_webcache(
        "alice",
        _history_payload(
            ("Visited: alice@http://a.com", webcache_time(VISIT_TIME)),
            ("Visited: alice@http://b.com", "garbage"),
        ),
    )

    make_extractor().run_extraction(MountedFS(evidence_root))
    make_extractor().run_extraction(MountedFS(evidence_root))

    first, second = sink.batches
    assert first.records == second.records
    assert first.source == second.source


def test_spartan_is_counted_not_parsed(evidence_root, make_extractor, sink) -> None:
    spartan = evidence_root / "Users" / "alice" / "AppData" / "Local" / "Packages" / "Spartan.edb"
    spartan.parent.mkdir(parents=True)
    spartan.write_bytes(b"\x00" * 16)

    summary = make_extractor().run_extraction(MountedFS(evidence_root))

    assert summary.data_found
    assert summary.spartan_files == 1
    assert summary.outcomes == []
    assert sink.batches == []


def test_metadata(make_extractor) -> None:
    metadata = make_extractor().metadata

    assert metadata.name == "edge_webcache"
    assert metadata.display_name == "Microsoft Edge"
    assert metadata.requires_tools == ["ESEDatabaseView"]


def test_sink_failure_is_per_file(evidence_root, add_webcache, make_extractor, sink, callbacks, monkeypatch) -> None:
    add_webcache("alice", _history_payload(("Visited: alice@http://a.com", "")))
    add_webcache("bob", _history_payload(("Visited: bob@http://b.com", "")))
    real_publish = sink.publish
    calls = {"count": 0}

    def _publish(batch):
        calls["count"] += 1
        if calls["count"] == 1:
            raise RuntimeError("listener failed")
        return real_publish(batch)

    monkeypatch.setattr(sink, "publish", _publish)
    extractor = make_extractor()

    summary = extractor.run_extraction(MountedFS(evidence_root))

    assert [o.final_state for o in summary.outcomes] == [FileState.ERRORED, FileState.PUBLISHED]
    assert all(o.released for o in summary.outcomes)
    assert "listener failed" in summary.errors[0]
    assert len(callbacks.errors) == 1
    assert [r.url for r in sink.records] == ["http://b.com"]
    assert list(extractor.workspaces.base_dir.iterdir()) == []


def test_cancel_between_dumps_publishes_nothing(
    evidence_root, add_webcache, make_extractor, sink, callbacks, monkeypatch
) -> None:
    add_webcache(
        "alice",
        webcache_payload(
            {
                "Container_1": history_csv([("Visited: alice@http://a.com", "")]),
                "Container_2": history_csv([("Visited: alice@http://b.com", "")]),
            }
        ),
    )
    real_open_dump = extractor_module.open_dump
    opened = []

    def _open_then_cancel(path):
        opened.append(path.name)
        callbacks.cancel()
        return real_open_dump(path)

    monkeypatch.setattr(extractor_module, "open_dump", _open_then_cancel)
    extractor = make_extractor()

    summary = extractor.run_extraction(MountedFS(evidence_root))

    outcome = summary.outcomes[0]
    assert opened == ["WebCacheV01_Container_1.csv"]
    assert FileState.PARSED not in outcome.states
    assert outcome.final_state is FileState.CANCELLED
    assert summary.cancelled
    assert sink.batches == []
    assert list(extractor.workspaces.base_dir.iterdir()) == []


def test_cancel_before_publish_publishes_nothing(
    evidence_root, add_webcache, make_extractor, sink, callbacks, monkeypatch
) -> None:
    add_webcache("alice", _history_payload(("Visited: alice@http://a.com", "")))
    spec = extractor_module.ROW_BUILDERS[RecordKind.HISTORY]

    def _build_then_cancel(*args):
        record = spec.build(*args)
        callbacks.cancel()
        return record

    monkeypatch.setattr(
        extractor_module,
        "ROW_BUILDERS",
        {RecordKind.HISTORY: replace(spec, build=_build_then_cancel)},
    )
    extractor = make_extractor()

    summary = extractor.run_extraction(MountedFS(evidence_root))

    outcome = summary.outcomes[0]
    assert FileState.PARSED in outcome.states
    assert outcome.final_state is FileState.CANCELLED
    assert sink.batches == []
    assert list(extractor.workspaces.base_dir.iterdir()) == []


def test_cancel_on_later_file_keeps_earlier_batches(
    evidence_root, add_webcache, make_extractor, sink, callbacks, monkeypatch
) -> None:
    add_webcache("alice", _history_payload(("Visited: alice@http://a.com", "")))
    add_webcache("bob", _history_payload(("Visited: bob@http://b.com", "")))
    add_webcache("carol", _history_payload(("Visited: carol@http://c.com", "")))
    real_run_decoder = extractor_module.run_decoder
    calls = {"count": 0}

    def _cancel_on_second_file(*args, **kwargs):
        calls["count"] += 1
        invocation = real_run_decoder(*args, **kwargs)
        if calls["count"] == 2:
            callbacks.cancel()
        return invocation

    monkeypatch.setattr(extractor_module, "run_decoder", _cancel_on_second_file)
    extractor = make_extractor()

    summary = extractor.run_extraction(MountedFS(evidence_root))

    assert summary.cancelled
    assert [o.final_state for o in summary.outcomes] == [FileState.PUBLISHED, FileState.CANCELLED]
    assert [r.url for r in sink.records] == ["http://a.com"]
    assert summary.records_published == 1
    assert list(extractor.workspaces.base_dir.iterdir()) == []


def test_header_without_url_and_misshapen_rows_still_warns(
    evidence_root, add_webcache, make_extractor, sink
) -> None:
    text = (
        "EntryId,AccessedTime\r\n"
        f"1,{webcache_time(VISIT_TIME)},Visited: alice@http://a.com\r\n"
        f"2,{webcache_time(VISIT_TIME)},Visited: alice@http://b.com\r\n"
    )
    add_webcache("alice", webcache_payload({"Container_1": text}))
    extractor = make_extractor()

    extractor.run_extraction(MountedFS(evidence_root))

    assert sink.batches == []
    assert extractor.warnings.count_of(WARNING_TYPE_SCHEMA_MISMATCH) == 1


def test_unreadable_dump_does_not_stop_other_dumps(
    evidence_root, add_webcache, make_extractor, sink, callbacks, monkeypatch
) -> None:
    add_webcache(
        "alice",
        webcache_payload(
            {
                "Container_1": history_csv([("Visited: alice@http://a.com", "")]),
                "Container_2": history_csv([("Visited: alice@http://b.com", "")]),
            }
        ),
    )
    real_open = Path.open

    def _open(self, *args, **kwargs):
        if self.name == "WebCacheV01_Container_1.csv":
            raise PermissionError(13, "Permission denied", str(self))
        return real_open(self, *args, **kwargs)

    monkeypatch.setattr(Path, "open", _open)

    summary = make_extractor().run_extraction(MountedFS(evidence_root))

    assert [r.url for r in sink.records] == ["http://b.com"]
    assert summary.errors == []
    assert callbacks.errors == []
