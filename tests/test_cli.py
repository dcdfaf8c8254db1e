import json
import logging

import pytest

from vulnrange.cli import main
from vulnrange.publish import load_latest_report


@pytest.fixture(autouse=True)
def _isolated(tmp_path, monkeypatch):
    monkeypatch.setenv("VR_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("VR_CONFIG_PATH", raising=False)
    monkeypatch.delenv("VR_LOG_FILE", raising=False)
    root = logging.getLogger()
    original_handlers = list(root.handlers)
    yield
    root.handlers = original_handlers


def _write_record(path, cve_id: str, description: str, affected=None) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    cna = {"descriptions": [{"lang": "en", "value": description}]}
    if affected is not None:
        cna["affected"] = affected
    payload = {
        "cveMetadata": {"cveId": cve_id, "state": "PUBLISHED", "dateReserved": "2022-01-01"},
        "containers": {"cna": cna},
    }
    path.write_text(json.dumps(payload), encoding="utf-8")


def _seed_records(root) -> None:
    _write_record(
        root / "2022" / "0xxx" / "CVE-2022-0001.json",
        "CVE-2022-0001",
        "Vulnerability in the MySQL Server product",
        [{"product": "MySQL Server", "versions": [{"lessThan": "8.0.28"}]}],
    )
    _write_record(
        root / "2022" / "0xxx" / "CVE-2022-0002.json",
        "CVE-2022-0002",
        "PostgreSQL server issue",
    )
    _write_record(
        root / "2022" / "0xxx" / "CVE-2022-0003.json",
        "CVE-2022-0003",
        "MariaDB Server before 10.6.0 crashes",
    )
    (root / "2022" / "0xxx" / "CVE-2022-0004.json").write_text("{broken mysql", encoding="utf-8")


def test_run_writes_rows_and_report(tmp_path):
    records = tmp_path / "cves"
    _seed_records(records)
    output = tmp_path / "out" / "rows.csv"

    status = main(["run", "--records-dir", str(records), "--output", str(output)])

    assert status == 0
    lines = output.read_text(encoding="utf-8").splitlines()
    assert [line.split(";")[:5] for line in lines] == [
        ["8.0.27", "8", "0", "27", "CVE-2022-0001"],
        ["10.5.9999", "10", "5", "9999", "CVE-2022-0003"],
    ]
    report = load_latest_report(str(tmp_path / "data" / "reports"))
    assert report["files_total"] == 4
    assert report["files_candidates"] == 3
    assert report["documents"] == 3
    assert report["skipped_malformed"] == 1
    assert report["rows_written"] == 2


def test_run_without_prefilter_parses_everything(tmp_path):
    records = tmp_path / "cves"
    _seed_records(records)
    output = tmp_path / "rows.csv"

    status = main(
        [
            "run",
            "--records-dir",
            str(records),
            "--output",
            str(output),
            "--no-prefilter",
            "--workers",
            "2",
        ]
    )

    assert status == 0
    report = load_latest_report(str(tmp_path / "data" / "reports"))
    assert report["documents"] == 4
    assert report["excluded"] == 1
    assert report["rows"] == 2


def test_run_missing_records_dir_fails(tmp_path):
    assert main(["run", "--records-dir", str(tmp_path / "nope")]) == 1


def test_run_without_archive_and_no_download_fails(tmp_path):
    assert main(["run", "--no-download"]) == 1


def test_invalid_config_fails(tmp_path):
    config = tmp_path / "config.yml"
    config.write_text("unknown_section: {}\n")
    assert main(["--config", str(config), "report"]) == 1


def test_classify_prints_rows(tmp_path, capsys):
    records = tmp_path / "cves"
    _seed_records(records)
    path = records / "2022" / "0xxx" / "CVE-2022-0003.json"

    assert main(["classify", str(path)]) == 0

    out = capsys.readouterr().out
    rows = [json.loads(line) for line in out.splitlines() if line.startswith("{")]
    assert len(rows) == 1
    assert rows[0]["version"] == "10.5.9999"
    assert rows[0]["cve_id"] == "CVE-2022-0003"


def test_classify_reports_broken_files(tmp_path):
    records = tmp_path / "cves"
    _seed_records(records)
    assert main(["classify", str(records / "2022" / "0xxx" / "CVE-2022-0004.json")]) == 1


def test_report_without_runs(tmp_path):
    assert main(["report"]) == 1
