from __future__ import annotations

import re
from typing import Any, Callable

import jsonschema

from .models import AffectedEntry, CveRecord, Reference, VersionConstraint

# Only the containers the pipeline reads; the full CVE schema is not enforced.
RECORD_SHAPE: dict[str, Any] = {
    "type": "object",
    "required": ["cveMetadata", "containers"],
    "properties": {
        "cveMetadata": {"type": "object"},
        "containers": {
            "type": "object",
            "required": ["cna"],
            "properties": {"cna": {"type": "object"}},
        },
    },
}

_RECORD_VALIDATOR = jsonschema.Draft7Validator(RECORD_SHAPE)
_ENGLISH = re.compile(r"^en", re.IGNORECASE)


class RecordDecodeError(ValueError):
    pass


def parse_record(payload: Any) -> CveRecord:
    try:
        _RECORD_VALIDATOR.validate(payload)
    except jsonschema.ValidationError as exc:
        raise RecordDecodeError(f"not a CVE record: {exc.message}") from exc

    metadata = payload["cveMetadata"]
    cna = payload["containers"]["cna"]
    return CveRecord(
        cve_id=_text(metadata.get("cveId")),
        status=_extract_status(metadata, cna),
        date_reserved=_text(metadata.get("dateReserved")),
        description=_first_text(payload, DESCRIPTION_STRATEGIES),
        title=_first_text(payload, TITLE_STRATEGIES),
        affected=tuple(_extract_affected(cna.get("affected"))),
        references=tuple(_extract_references(cna.get("references"))),
    )


def english_description(payload: dict[str, Any]) -> str:
    for entry in _dicts(payload["containers"]["cna"].get("descriptions")):
        if _ENGLISH.match(_text(entry.get("lang"))):
            return _text(entry.get("value"))
    return ""


def cna_title(payload: dict[str, Any]) -> str:
    return _text(payload["containers"]["cna"].get("title"))


def adp_title(payload: dict[str, Any]) -> str:
    for entry in _dicts(payload["containers"].get("adp")):
        title = _text(entry.get("title"))
        if title:
            return title
    return ""


DESCRIPTION_STRATEGIES: tuple[Callable[[dict[str, Any]], str], ...] = (english_description,)
TITLE_STRATEGIES: tuple[Callable[[dict[str, Any]], str], ...] = (cna_title, adp_title)


def _first_text(payload: dict[str, Any], strategies) -> str:
    for strategy in strategies:
        value = strategy(payload)
        if value:
            return value
    return ""


def _extract_status(metadata: dict[str, Any], cna: dict[str, Any]) -> str:
    state = metadata.get("state")
    if state is not None:
        return _text(state)
    legacy = cna.get("x_legacyV4Record")
    if isinstance(legacy, dict):
        meta = legacy.get("CVE_data_meta")
        if isinstance(meta, dict):
            return _text(meta.get("STATE"))
    return ""


def _extract_affected(entries: Any) -> list[AffectedEntry]:
    affected: list[AffectedEntry] = []
    for entry in _dicts(entries):
        product = entry.get("product")
        versions = [
            VersionConstraint(
                version=_optional_text(item.get("version")),
                less_than=_optional_text(item.get("lessThan")),
                less_than_or_equal=_optional_text(item.get("lessThanOrEqual")),
            )
            for item in _dicts(entry.get("versions"))
        ]
        affected.append(
            AffectedEntry(
                product=None if product is None else _text(product),
                versions=tuple(versions),
            )
        )
    return affected


def _extract_references(entries: Any) -> list[Reference]:
    return [
        Reference(name=_optional_text(entry.get("name")), url=_optional_text(entry.get("url")))
        for entry in _dicts(entries)
    ]


def _dicts(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)
