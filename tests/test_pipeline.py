import copy
import json
import logging

from vulnrange.config import DEFAULT_CONFIG, build_config
from vulnrange.corpus import load_documents
from vulnrange.emit import emit_rows
from vulnrange.models import CorpusDocument
from vulnrange.pipeline import process_document, run_pipeline
from vulnrange.record import parse_record

CONFIG = build_config(DEFAULT_CONFIG)
LOGGER = logging.getLogger("test")


def _make_payload(cve_id: str, description: str, versions: list | None = None) -> dict:
    cna = {"descriptions": [{"lang": "en", "value": description}]}
    if versions is not None:
        cna["affected"] = [{"product": "MySQL", "versions": versions}]
    return {
        "cveMetadata": {"cveId": cve_id, "state": "PUBLISHED", "dateReserved": "2021-01-01"},
        "containers": {"cna": cna},
    }


def _documents() -> list[CorpusDocument]:
    return [
        CorpusDocument(
            path="a.json",
            payload=_make_payload(
                "CVE-2021-0001",
                "MySQL Server flaw",
                [{"version": "8.0.1"}, {"lessThan": "8.0.25"}],
            ),
        ),
        CorpusDocument(path="broken.json", error="Expecting value: line 1 column 1 (char 0)"),
        CorpusDocument(path="b.json", payload=_make_payload("CVE-2021-0002", "PostgreSQL server")),
        CorpusDocument(path="c.json", payload={"unexpected": True}),
        CorpusDocument(
            path="d.json",
            payload=_make_payload("CVE-2021-0003", "MariaDB server before 10.5.0 crashes"),
        ),
        CorpusDocument(
            path="e.json",
            payload=_make_payload("CVE-2021-0004", "MySQL server crash, no versions"),
        ),
    ]


def test_run_pipeline_rows_and_totals():
    result = run_pipeline(_documents(), CONFIG, LOGGER)
    assert [(row.cve_id, row.version) for row in result.rows] == [
        ("CVE-2021-0001", "8.0.1"),
        ("CVE-2021-0001", "8.0.24"),
        ("CVE-2021-0003", "10.4.9999"),
    ]
    assert result.totals == {
        "documents": 6,
        "relevant": 3,
        "excluded": 1,
        "skipped_malformed": 2,
        "rows": 3,
    }


def test_run_pipeline_with_workers_keeps_input_order():
    documents = [
        CorpusDocument(
            path=f"{index}.json",
            payload=_make_payload(
                f"CVE-2021-{index:04d}", "MySQL Server flaw", [{"version": f"5.7.{index}"}]
            ),
        )
        for index in range(200)
    ]
    result = run_pipeline(documents, CONFIG, LOGGER, workers=4)
    assert [row.patch for row in result.rows] == [str(index) for index in range(200)]
    assert result.totals["rows"] == 200


def test_malformed_documents_are_logged(caplog):
    with caplog.at_level(logging.WARNING, logger="test"):
        outcome = process_document(CorpusDocument(path="x.json", payload=[]), CONFIG, LOGGER)
    assert outcome.status == "malformed"
    assert outcome.rows == []
    assert "event=record_decode_failed" in caplog.text
    assert "path=x.json" in caplog.text


def test_progress_events(caplog):
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg["processing"]["progress_step_percent"] = 25
    config = build_config(cfg)
    documents = [
        CorpusDocument(path=f"{index}.json", payload=_make_payload(f"CVE-{index}", "nothing"))
        for index in range(8)
    ]
    with caplog.at_level(logging.INFO, logger="test"):
        run_pipeline(documents, config, LOGGER, total=len(documents))
    messages = [record.getMessage() for record in caplog.records]
    progress = [message for message in messages if "event=progress" in message]
    assert [message.split()[1] for message in progress] == [
        "percent=25",
        "percent=50",
        "percent=75",
    ]


def test_deeply_nested_file_is_skipped_not_fatal(tmp_path):
    nested = tmp_path / "CVE-2021-9999.json"
    nested.write_text("[" * 100000 + "]" * 100000, encoding="utf-8")
    fine = tmp_path / "CVE-2021-0001.json"
    fine.write_text(
        json.dumps(_make_payload("CVE-2021-0001", "MySQL Server flaw", [{"version": "8.0.1"}])),
        encoding="utf-8",
    )
    result = run_pipeline(load_documents([str(nested), str(fine)]), CONFIG, LOGGER)
    assert result.totals["skipped_malformed"] == 1
    assert result.totals["relevant"] == 1
    assert [row.version for row in result.rows] == ["8.0.1"]


def test_process_document_matches_emitter():
    payload = _make_payload(
        "CVE-2021-0005", "MySQL Server flaw", [{"version": "0", "lessThan": "8.0.25"}]
    )
    outcome = process_document(CorpusDocument(path="f.json", payload=payload), CONFIG, LOGGER)
    expected = emit_rows(parse_record(payload), CONFIG.classifier, CONFIG.extraction)
    assert outcome.status == "relevant"
    assert outcome.rows == expected
    assert [row.version for row in outcome.rows] == ["8.0.24"]


def test_relevant_record_without_versions_is_not_counted_excluded():
    document = CorpusDocument(
        path="g.json", payload=_make_payload("CVE-2021-0006", "MySQL server crash, no versions")
    )
    outcome = process_document(document, CONFIG, LOGGER)
    assert outcome.status == "relevant"
    assert outcome.rows == []
