from __future__ import annotations

import re
from typing import Iterable

from .models import NormalizedVersion

MAX_VERSION_PART = 9999
DEFAULT_VENDOR_PREFIXES = ("MySQL Server ",)

_NUMERIC = re.compile(r"[0-9]+")
_WILDCARD_SUFFIX = re.compile(r"\.x$")
_AND_EARLIER = re.compile(r"\s*and earlier", re.IGNORECASE)
_AND_EARLIER_JOINED = re.compile(r"andearlier", re.IGNORECASE)
_NOT_VERSION_CHARS = re.compile(r"[^0-9.]+")


def normalize_exclusive_bound(version: str, max_part: int = MAX_VERSION_PART) -> str:
    """Turn an exclusive upper bound into the matching inclusive one.

    ``5.7.30`` becomes ``5.7.29``; a zero patch borrows from the minor (``5.7.0`` becomes
    ``5.6.9999``) and a zero minor borrows from the major (``8.0.0`` becomes
    ``7.9999.9999``). ``max_part`` stands in for the unknown width of a component.
    Anything without a numeric patch component is returned unchanged.
    """
    parts = version.split(".")
    if len(parts) < 3 or not _is_number(parts[2]):
        return version
    major, minor, patch = parts[0], parts[1], int(parts[2])
    if patch == 0:
        patch = max_part
        if _is_number(minor):
            if int(minor) == 0:
                minor = str(max_part)
                if _is_number(major) and int(major) > 0:
                    major = str(int(major) - 1)
            else:
                minor = str(int(minor) - 1)
    else:
        patch -= 1
    return ".".join([major, minor, str(patch)])


def canonicalize(
    token: str,
    max_part: int = MAX_VERSION_PART,
    vendor_prefixes: Iterable[str] = DEFAULT_VENDOR_PREFIXES,
) -> NormalizedVersion | None:
    """Clean a raw token into (major, minor, patch), or None when nothing is left."""
    cleaned = _WILDCARD_SUFFIX.sub(f".{max_part}", token, count=1)
    cleaned = _AND_EARLIER.sub("", cleaned)
    cleaned = _AND_EARLIER_JOINED.sub("", cleaned)
    for prefix in vendor_prefixes:
        if prefix:
            cleaned = re.sub(re.escape(prefix), "", cleaned, flags=re.IGNORECASE)
    cleaned = _NOT_VERSION_CHARS.sub("", cleaned)

    parts = cleaned.split(".")[:3]
    parts.extend([""] * (3 - len(parts)))
    normalized = NormalizedVersion(major=parts[0], minor=parts[1], patch=parts[2])
    if normalized.dotted == "..":
        return None
    return normalized


def _is_number(value: str) -> bool:
    return bool(value) and _NUMERIC.fullmatch(value) is not None
