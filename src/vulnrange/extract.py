from __future__ import annotations

import re
from typing import Callable, Iterable

from .config import ExtractionConfig
from .models import CveRecord
from .versions import normalize_exclusive_bound

NO_VERSION = "n/a"
_PLACEHOLDER_VERSIONS = {"n/a", "*"}
# "0" marks "affected from the start" in CVE JSON 5 and carries no bound.
_ABSENT_VALUES = {"", "0"}

_DOTTED_VERSION = re.compile(r"(\d{1,2}\.\d+\.\d+)")
_WILDCARD_VERSION = re.compile(r"(\d{1,2}\.\d+\.x)")
_BEFORE = re.compile(r"before", re.IGNORECASE)

DescriptionStrategy = Callable[[str, ExtractionConfig], list[str]]


def structured_versions(record: CveRecord, rules: ExtractionConfig) -> list[str]:
    tokens: list[str] = []
    for entry in record.affected:
        for constraint in entry.versions:
            if _present(constraint.version) and constraint.version not in _PLACEHOLDER_VERSIONS:
                tokens.append(constraint.version)
            if _present(constraint.less_than):
                tokens.append(
                    normalize_exclusive_bound(constraint.less_than, rules.max_version_part)
                )
            if _present(constraint.less_than_or_equal):
                tokens.append(constraint.less_than_or_equal)
    return tokens


def _present(value: str | None) -> bool:
    return value is not None and value not in _ABSENT_VALUES


def loose_versions(description: str, rules: ExtractionConfig) -> list[str]:
    return _DOTTED_VERSION.findall(description)


def anchored_versions(description: str, rules: ExtractionConfig) -> list[str]:
    found: list[str] = []
    for keyword in rules.anchor_keywords:
        if not keyword:
            continue
        pattern = re.compile(re.escape(keyword) + r"\s+(\d+\.\d+\.\d+)", re.IGNORECASE)
        match = pattern.search(description)
        if match:
            found.append(match.group(1))
    return found


def wildcard_versions(description: str, rules: ExtractionConfig) -> list[str]:
    return _WILDCARD_VERSION.findall(description)


# Tiers are tried in order; strategies inside a tier are combined.
DESCRIPTION_TIERS: tuple[tuple[DescriptionStrategy, ...], ...] = (
    (loose_versions, anchored_versions),
    (wildcard_versions,),
)


def description_versions(description: str, rules: ExtractionConfig) -> list[str]:
    if not description:
        return []
    candidates: list[str] = []
    for tier in DESCRIPTION_TIERS:
        for strategy in tier:
            candidates.extend(strategy(description, rules))
        if candidates:
            break
    if _BEFORE.search(description):
        candidates = [
            normalize_exclusive_bound(candidate, rules.max_version_part)
            for candidate in candidates
        ]
    return candidates


def extract_version_tokens(record: CveRecord, rules: ExtractionConfig) -> list[str]:
    """Ordered, de-duplicated version tokens for one record.

    Structured ``affected`` data wins; the description is only scanned when it yields
    nothing. A record with no usable version at all gets the single ``n/a`` token.
    """
    tokens = structured_versions(record, rules)
    if not tokens:
        tokens = description_versions(record.description, rules)
    if not tokens:
        tokens = [NO_VERSION]
    return unique(tokens)


def unique(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(values))
