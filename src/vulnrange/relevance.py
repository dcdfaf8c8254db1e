from __future__ import annotations

import logging
from typing import Iterable

from .config import ClassifierConfig
from .models import CveRecord
from .utils import log_event

NOT_APPLICABLE = "n/a"


def excluded_by_product(record: CveRecord, keywords: Iterable[str]) -> str | None:
    """Return the first product label scoped to something outside the family."""
    normalized = _normalize_keywords(keywords)
    for entry in record.affected:
        if entry.product is None or entry.product == NOT_APPLICABLE:
            continue
        if not _contains_any(entry.product, normalized):
            return entry.product
    return None


def is_relevant(
    record: CveRecord,
    rules: ClassifierConfig,
    logger: logging.Logger | None = None,
) -> bool:
    reason = rejection_reason(record, rules)
    if reason and logger:
        log_event(logger, logging.DEBUG, "record_excluded", cve_id=record.cve_id, reason=reason)
    return reason is None


def rejection_reason(record: CveRecord, rules: ClassifierConfig) -> str | None:
    product = excluded_by_product(record, rules.family_keywords)
    if product is not None:
        return "product_out_of_scope"

    description = record.description.lower()
    title = record.title.lower()
    family = _normalize_keywords(rules.family_keywords)
    if not (_contains_any(description, family) or _contains_any(title, family)):
        return "family_missing"
    for term in _normalize_keywords(rules.required_terms):
        if term not in description and term not in title:
            return "required_term_missing"
    if _contains_any(description, _normalize_keywords(rules.excluded_subproducts)):
        return "excluded_subproduct"
    if _contains_any(description, _normalize_keywords(rules.withdrawn_markers)):
        return "withdrawn_or_disputed"
    if _contains_any(description, _normalize_keywords(rules.deny_fragments)):
        return "deny_fragment"
    return None


def _normalize_keywords(values: Iterable[str]) -> list[str]:
    return [value.lower() for value in values if value and value.strip()]


def _contains_any(text: str, keywords: list[str]) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)
