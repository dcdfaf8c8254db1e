from __future__ import annotations

import logging

from .config import ClassifierConfig, ExtractionConfig
from .extract import extract_version_tokens
from .models import CveRecord, OutputRow, Reference
from .relevance import is_relevant
from .utils import one_line
from .versions import canonicalize

REFERENCE_SEPARATOR = "   |   "


def emit_rows(
    record: CveRecord,
    classifier: ClassifierConfig,
    extraction: ExtractionConfig,
    logger: logging.Logger | None = None,
) -> list[OutputRow]:
    if not is_relevant(record, classifier, logger):
        return []
    return build_rows(record, extraction)


def build_rows(record: CveRecord, extraction: ExtractionConfig) -> list[OutputRow]:
    description = one_line(record.description)
    references = one_line(join_references(record.references))
    rows: list[OutputRow] = []
    for token in extract_version_tokens(record, extraction):
        normalized = canonicalize(
            token,
            max_part=extraction.max_version_part,
            vendor_prefixes=extraction.vendor_prefixes,
        )
        if normalized is None:
            continue
        rows.append(
            OutputRow(
                version=normalized.dotted,
                major=normalized.major,
                minor=normalized.minor,
                patch=normalized.patch,
                cve_id=record.cve_id,
                status=record.status,
                description=description,
                references=references,
                date_reserved=record.date_reserved,
            )
        )
    return rows


def join_references(references: tuple[Reference, ...]) -> str:
    return REFERENCE_SEPARATOR.join(_format_reference(ref) for ref in references)


def _format_reference(reference: Reference) -> str:
    name = reference.name or ""
    url = reference.url or ""
    separator = ":" if reference.name and reference.url else ""
    return f"{name}{separator}{url}"
