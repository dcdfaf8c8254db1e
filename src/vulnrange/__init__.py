from .emit import emit_rows
from .extract import extract_version_tokens
from .record import parse_record
from .relevance import is_relevant
from .versions import MAX_VERSION_PART, canonicalize, normalize_exclusive_bound

__all__ = [
    "MAX_VERSION_PART",
    "canonicalize",
    "emit_rows",
    "extract_version_tokens",
    "is_relevant",
    "normalize_exclusive_bound",
    "parse_record",
]
