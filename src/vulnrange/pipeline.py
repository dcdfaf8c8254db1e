from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from itertools import islice
from typing import Iterable, Iterator

from .config import Config
from .emit import emit_rows
from .models import CorpusDocument, OutputRow, PipelineResult
from .record import RecordDecodeError, parse_record
from .relevance import rejection_reason
from .utils import log_event

_BATCH_PER_WORKER = 32


@dataclass(frozen=True)
class DocumentOutcome:
    path: str
    status: str
    rows: list[OutputRow]


def process_document(
    document: CorpusDocument,
    config: Config,
    logger: logging.Logger,
) -> DocumentOutcome:
    if document.error is not None:
        log_event(
            logger,
            logging.WARNING,
            "record_decode_failed",
            path=document.path,
            error=document.error,
        )
        return DocumentOutcome(path=document.path, status="malformed", rows=[])
    try:
        record = parse_record(document.payload)
    except RecordDecodeError as exc:
        log_event(logger, logging.WARNING, "record_decode_failed", path=document.path, error=exc)
        return DocumentOutcome(path=document.path, status="malformed", rows=[])

    rows = emit_rows(record, config.classifier, config.extraction, logger)
    # A relevant record can still yield no rows when no version token survives cleaning.
    if not rows and rejection_reason(record, config.classifier) is not None:
        return DocumentOutcome(path=document.path, status="excluded", rows=[])
    return DocumentOutcome(path=document.path, status="relevant", rows=rows)


def run_pipeline(
    documents: Iterable[CorpusDocument],
    config: Config,
    logger: logging.Logger,
    total: int | None = None,
    workers: int | None = None,
) -> PipelineResult:
    """Run every document through the emitter and collect rows in input order."""
    totals = {
        "documents": 0,
        "relevant": 0,
        "excluded": 0,
        "skipped_malformed": 0,
        "rows": 0,
    }
    rows: list[OutputRow] = []
    last_percent = -1
    step = max(config.processing.progress_step_percent, 1)

    for outcome in _outcomes(documents, config, logger, workers or config.processing.workers):
        totals["documents"] += 1
        if outcome.status == "malformed":
            totals["skipped_malformed"] += 1
        elif outcome.status == "excluded":
            totals["excluded"] += 1
        else:
            totals["relevant"] += 1
        rows.extend(outcome.rows)
        totals["rows"] += len(outcome.rows)

        if total:
            percent = int(totals["documents"] * 100 / total)
            if percent != last_percent and percent % step == 0 and percent != 100:
                log_event(
                    logger,
                    logging.INFO,
                    "progress",
                    percent=percent,
                    processed=totals["documents"],
                    total=total,
                )
                last_percent = percent

    return PipelineResult(rows=rows, totals=totals)


def _outcomes(
    documents: Iterable[CorpusDocument],
    config: Config,
    logger: logging.Logger,
    workers: int,
) -> Iterator[DocumentOutcome]:
    if workers <= 1:
        for document in documents:
            yield process_document(document, config, logger)
        return

    iterator = iter(documents)
    with ThreadPoolExecutor(max_workers=workers) as executor:
        while True:
            batch = list(islice(iterator, workers * _BATCH_PER_WORKER))
            if not batch:
                break
            yield from executor.map(
                lambda document: process_document(document, config, logger), batch
            )