from __future__ import annotations

import argparse
import logging
import sys
import time

from .config import Config, ConfigError, load_config
from .corpus import (
    CorpusError,
    collect_record_files,
    ensure_archive,
    ensure_extracted,
    load_documents,
    prefilter_files,
)
from .emit import emit_rows
from .pipeline import run_pipeline
from .publish import load_latest_report, write_rows, write_run_report
from .record import RecordDecodeError, parse_record
from .utils import configure_logging, json_dumps, log_event, utc_now_iso


def _load(args: argparse.Namespace, logger: logging.Logger) -> Config | None:
    try:
        return load_config(args.config)
    except ConfigError as exc:
        log_event(logger, logging.ERROR, "config_error", error=str(exc))
        return None


def _cmd_fetch(args: argparse.Namespace, logger: logging.Logger) -> int:
    config = _load(args, logger)
    if config is None:
        return 1
    try:
        ensure_archive(config.corpus, config.paths, logger)
        records = ensure_extracted(config.corpus, config.paths, logger)
    except CorpusError as exc:
        log_event(logger, logging.ERROR, "corpus_error", error=str(exc))
        return 1
    log_event(logger, logging.INFO, "fetch_complete", records_dir=records)
    return 0


def _cmd_run(args: argparse.Namespace, logger: logging.Logger) -> int:
    config = _load(args, logger)
    if config is None:
        return 1

    run_started_at = utc_now_iso()
    started = time.monotonic()
    try:
        if args.records_dir:
            records = args.records_dir
        else:
            if not args.no_download:
                ensure_archive(config.corpus, config.paths, logger)
            records = ensure_extracted(config.corpus, config.paths, logger)
        files = collect_record_files(records)
    except CorpusError as exc:
        log_event(logger, logging.ERROR, "corpus_error", error=str(exc))
        return 1

    candidates = len(files)
    if config.corpus.prefilter and not args.no_prefilter:
        files = prefilter_files(files, config.classifier.family_keywords)
    log_event(
        logger,
        logging.INFO,
        "corpus_collected",
        records_dir=records,
        files=candidates,
        candidates=len(files),
    )

    result = run_pipeline(
        load_documents(files),
        config,
        logger,
        total=len(files),
        workers=args.workers,
    )

    output_path = args.output or config.paths.output_path
    try:
        written = write_rows(result.rows, output_path, config.output.delimiter)
    except OSError as exc:
        log_event(logger, logging.ERROR, "output_error", path=output_path, error=str(exc))
        return 1

    report = {
        "run_started_at": run_started_at,
        "run_finished_at": utc_now_iso(),
        "elapsed_seconds": round(time.monotonic() - started, 2),
        "records_dir": records,
        "output_path": output_path,
        "files_total": candidates,
        "files_candidates": len(files),
        "rows_written": written,
        **result.totals,
    }
    if config.output.write_run_report:
        report["report_path"] = write_run_report(config.paths.run_reports_dir, report)

    log_event(logger, logging.INFO, "run_complete", **report)
    return 0


def _cmd_classify(args: argparse.Namespace, logger: logging.Logger) -> int:
    config = _load(args, logger)
    if config is None:
        return 1
    status = 0
    for document in load_documents(args.paths):
        if document.error is not None:
            log_event(
                logger,
                logging.WARNING,
                "record_decode_failed",
                path=document.path,
                error=document.error,
            )
            status = 1
            continue
        try:
            record = parse_record(document.payload)
        except RecordDecodeError as exc:
            log_event(logger, logging.WARNING, "record_decode_failed", path=document.path, error=exc)
            status = 1
            continue
        rows = emit_rows(record, config.classifier, config.extraction, logger)
        if not rows:
            log_event(
                logger, logging.INFO, "record_no_rows", cve_id=record.cve_id, path=document.path
            )
        for row in rows:
            sys.stdout.write(json_dumps(row) + "\n")
    return status


def _cmd_report(args: argparse.Namespace, logger: logging.Logger) -> int:
    config = _load(args, logger)
    if config is None:
        return 1

    report = load_latest_report(config.paths.run_reports_dir)
    if not report:
        log_event(logger, logging.WARNING, "report_missing", path=config.paths.run_reports_dir)
        return 1

    log_event(logger, logging.INFO, "last_run_report", **report)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vulnrange",
        description="Extract affected version ranges for a product family from CVE records",
    )
    parser.add_argument(
        "--config",
        dest="config",
        default=None,
        help="Path to config.yml (defaults to VR_CONFIG_PATH, then built-in defaults)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    fetch_parser = subparsers.add_parser("fetch", help="Download and unpack the CVE archive")
    fetch_parser.set_defaults(func=_cmd_fetch)

    run_parser = subparsers.add_parser("run", help="Process the corpus and write version rows")
    run_parser.add_argument(
        "--records-dir",
        default=None,
        help="Read CVE JSON files from this directory instead of the archive",
    )
    run_parser.add_argument("--output", default=None, help="Output file path")
    run_parser.add_argument(
        "--no-download",
        action="store_true",
        help="Never download; use the archive or extracted tree already on disk",
    )
    run_parser.add_argument(
        "--no-prefilter",
        action="store_true",
        help="Parse every record instead of only those mentioning a family keyword",
    )
    run_parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Worker threads (defaults to processing.workers)",
    )
    run_parser.set_defaults(func=_cmd_run)

    classify_parser = subparsers.add_parser(
        "classify", help="Print the rows produced by individual record files"
    )
    classify_parser.add_argument("paths", nargs="+", help="CVE JSON record files")
    classify_parser.set_defaults(func=_cmd_classify)

    report_parser = subparsers.add_parser("report", help="Print last run summary")
    report_parser.set_defaults(func=_cmd_report)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = configure_logging("vulnrange")
    return args.func(args, logger)
