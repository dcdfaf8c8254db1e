from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class VersionConstraint:
    version: str | None = None
    less_than: str | None = None
    less_than_or_equal: str | None = None


@dataclass(frozen=True)
class AffectedEntry:
    product: str | None = None
    versions: tuple[VersionConstraint, ...] = ()


@dataclass(frozen=True)
class Reference:
    name: str | None = None
    url: str | None = None


@dataclass(frozen=True)
class CveRecord:
    cve_id: str
    status: str
    date_reserved: str
    description: str
    title: str
    affected: tuple[AffectedEntry, ...] = ()
    references: tuple[Reference, ...] = ()


@dataclass(frozen=True)
class NormalizedVersion:
    major: str
    minor: str
    patch: str

    @property
    def dotted(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


@dataclass(frozen=True)
class OutputRow:
    version: str
    major: str
    minor: str
    patch: str
    cve_id: str
    status: str
    description: str
    references: str
    date_reserved: str
    proposal: str = ""
    extra: str = ""

    def fields(self) -> list[str]:
        return [
            self.version,
            self.major,
            self.minor,
            self.patch,
            self.cve_id,
            self.status,
            f'"{self.description}"',
            f'"{self.references}"',
            self.date_reserved,
            self.proposal,
            self.extra,
        ]


@dataclass(frozen=True)
class CorpusDocument:
    path: str
    payload: Any = None
    error: str | None = None


@dataclass
class PipelineResult:
    rows: list[OutputRow] = field(default_factory=list)
    totals: dict[str, int] = field(default_factory=dict)
