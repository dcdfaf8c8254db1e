from __future__ import annotations

import json
import logging
import os
import shutil
import time
import zipfile
from pathlib import Path
from typing import Iterable, Iterator
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from .config import CorpusConfig, PathsConfig
from .models import CorpusDocument
from .utils import log_event

RECORD_GLOB = "CVE-*.json"
_RETRYABLE_STATUS = {429, 503}


class CorpusError(RuntimeError):
    pass


def ensure_archive(corpus: CorpusConfig, paths: PathsConfig, logger: logging.Logger) -> str:
    target = paths.archive_path
    if os.path.isfile(target):
        log_event(logger, logging.INFO, "archive_present", path=target)
        return target
    os.makedirs(os.path.dirname(target) or ".", exist_ok=True)
    log_event(logger, logging.INFO, "archive_download_start", url=corpus.archive_url, path=target)
    _download(corpus, target)
    log_event(
        logger,
        logging.INFO,
        "archive_download_complete",
        path=target,
        bytes=os.path.getsize(target),
    )
    return target


def ensure_extracted(corpus: CorpusConfig, paths: PathsConfig, logger: logging.Logger) -> str:
    """Unpack the archive unless its records directory already exists."""
    records = records_dir(corpus, paths)
    if os.path.isdir(records):
        log_event(logger, logging.INFO, "archive_already_extracted", path=records)
        return records
    target = paths.extract_dir
    log_event(logger, logging.INFO, "archive_extract_start", archive=paths.archive_path, path=target)
    try:
        with zipfile.ZipFile(paths.archive_path) as archive:
            archive.extractall(target)
    except (OSError, zipfile.BadZipFile) as exc:
        raise CorpusError(f"Failed to read archive {paths.archive_path}: {exc}") from exc
    log_event(logger, logging.INFO, "archive_extract_complete", path=target)
    return records


def records_dir(corpus: CorpusConfig, paths: PathsConfig) -> str:
    return os.path.join(paths.extract_dir, corpus.records_subdir)


def collect_record_files(root: str) -> list[str]:
    base = Path(root)
    if not base.is_dir():
        raise CorpusError(f"Records directory not found: {root}")
    return sorted(str(path) for path in base.rglob(RECORD_GLOB) if path.is_file())


def prefilter_files(paths: Iterable[str], keywords: Iterable[str]) -> list[str]:
    """Keep files whose raw text mentions any keyword, ignoring case."""
    needles = [keyword.lower() for keyword in keywords if keyword]
    if not needles:
        return list(paths)
    kept: list[str] = []
    for path in paths:
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as handle:
                text = handle.read().lower()
        except OSError:
            # Unreadable files are kept so the decode step reports them.
            kept.append(path)
            continue
        if any(needle in text for needle in needles):
            kept.append(path)
    return kept


def load_documents(paths: Iterable[str]) -> Iterator[CorpusDocument]:
    for path in paths:
        try:
            with open(path, "r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, ValueError, RecursionError) as exc:
            # JSONDecodeError and UnicodeDecodeError are ValueErrors.
            yield CorpusDocument(path=path, error=str(exc))
            continue
        yield CorpusDocument(path=path, payload=payload)


def _download(corpus: CorpusConfig, target: str) -> None:
    headers = {"User-Agent": corpus.user_agent}
    partial = f"{target}.part"
    attempt = 0
    while True:
        try:
            request = Request(corpus.archive_url, headers=headers)
            with urlopen(request, timeout=corpus.timeout_seconds) as response:
                with open(partial, "wb") as handle:
                    shutil.copyfileobj(response, handle)
            os.replace(partial, target)
            return
        except HTTPError as exc:
            if exc.code in _RETRYABLE_STATUS and attempt < corpus.max_retries:
                time.sleep(corpus.backoff_seconds * (attempt + 1))
                attempt += 1
                continue
            _discard(partial)
            raise CorpusError(f"Failed to download {corpus.archive_url}: HTTP {exc.code}") from exc
        except (URLError, TimeoutError) as exc:
            if attempt < corpus.max_retries:
                time.sleep(corpus.backoff_seconds * (attempt + 1))
                attempt += 1
                continue
            _discard(partial)
            raise CorpusError(f"Failed to download {corpus.archive_url}: {exc}") from exc


def _discard(path: str) -> None:
    if os.path.exists(path):
        os.remove(path)
