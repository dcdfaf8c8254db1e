from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any

import yaml


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class AppConfig:
    name: str


@dataclass(frozen=True)
class PathsConfig:
    data_dir: str
    archive_path: str
    extract_dir: str
    output_path: str
    run_reports_dir: str


@dataclass(frozen=True)
class CorpusConfig:
    archive_url: str
    records_subdir: str
    timeout_seconds: int
    user_agent: str
    max_retries: int
    backoff_seconds: float
    prefilter: bool


@dataclass(frozen=True)
class ClassifierConfig:
    family_keywords: list[str]
    required_terms: list[str]
    excluded_subproducts: list[str]
    withdrawn_markers: list[str]
    deny_fragments: list[str]


@dataclass(frozen=True)
class ExtractionConfig:
    anchor_keywords: list[str]
    vendor_prefixes: list[str]
    max_version_part: int


@dataclass(frozen=True)
class OutputConfig:
    delimiter: str
    write_run_report: bool


@dataclass(frozen=True)
class ProcessingConfig:
    workers: int
    progress_step_percent: int


@dataclass(frozen=True)
class Config:
    app: AppConfig
    paths: PathsConfig
    corpus: CorpusConfig
    classifier: ClassifierConfig
    extraction: ExtractionConfig
    output: OutputConfig
    processing: ProcessingConfig


DEFAULT_DATA_DIR = "data"

DEFAULT_CONFIG: dict[str, Any] = {
    "app": {
        "name": "vulnrange",
    },
    "paths": {
        "data_dir": DEFAULT_DATA_DIR,
        "archive_path": "",
        "extract_dir": "",
        "output_path": "",
        "run_reports_dir": "",
    },
    "corpus": {
        "archive_url": "https://github.com/CVEProject/cvelistV5/archive/refs/heads/main.zip",
        "records_subdir": "cvelistV5-main/cves",
        "timeout_seconds": 120,
        "user_agent": "vulnrange/0.1",
        "max_retries": 2,
        "backoff_seconds": 2.0,
        "prefilter": True,
    },
    "classifier": {
        "family_keywords": ["mysql", "mariadb", "percona"],
        "required_terms": ["server"],
        "excluded_subproducts": ["MaxDB"],
        "withdrawn_markers": ["** REJECT **", "** DISPUTED **"],
        "deny_fragments": [
            "Radius",
            "Proofpoint",
            "Active Record",
            "XAMPP",
            "TGS Content",
            "e107",
            "post-installation",
            "Apache HTTP",
            "Zmanda",
            "pforum",
            "phpMyAdmin",
            "Proxy Server",
            "on Windows",
            "ADOdb",
            "Mac OS",
            "Dreamweaver",
            "InterWorx",
            "libapache2",
            "cisco",
            "ProFTPD",
        ],
    },
    "extraction": {
        "anchor_keywords": ["mysql"],
        "vendor_prefixes": ["MySQL Server "],
        "max_version_part": 9999,
    },
    "output": {
        "delimiter": ";",
        "write_run_report": True,
    },
    "processing": {
        "workers": 1,
        "progress_step_percent": 5,
    },
}

# Derived from paths.data_dir when left empty.
_DERIVED_PATHS = {
    "archive_path": ("zip", "main.zip"),
    "extract_dir": ("zip",),
    "output_path": ("output", "vulnerabilities.csv"),
    "run_reports_dir": ("reports",),
}


def get_config_path(explicit: str | None = None) -> str | None:
    return explicit or os.environ.get("VR_CONFIG_PATH") or None


def load_config(path: str | None = None) -> Config:
    cfg = load_config_dict(path)
    return build_config(cfg)


def load_config_dict(path: str | None = None) -> dict[str, Any]:
    cfg = _deep_copy(DEFAULT_CONFIG)
    cfg["paths"]["data_dir"] = os.environ.get("VR_DATA_DIR", DEFAULT_DATA_DIR)
    config_path = get_config_path(path)
    if config_path:
        overrides = _read_yaml(config_path)
        cfg = _deep_merge(cfg, overrides)
    errors = validate_config(cfg)
    if errors:
        raise ConfigError("Invalid config: " + "; ".join(errors))
    return cfg


def validate_config(cfg: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    _validate_dict(cfg, DEFAULT_CONFIG, "config", errors)
    if errors:
        return errors
    if not cfg["classifier"]["family_keywords"]:
        errors.append("config.classifier.family_keywords must not be empty")
    if cfg["extraction"]["max_version_part"] <= 0:
        errors.append("config.extraction.max_version_part must be positive")
    if not cfg["output"]["delimiter"]:
        errors.append("config.output.delimiter must not be empty")
    if cfg["processing"]["workers"] < 1:
        errors.append("config.processing.workers must be at least 1")
    return errors


def _read_yaml(path: str) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle)
    except OSError as exc:
        raise ConfigError(f"Unable to read config {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ConfigError(f"Config {path} must be a mapping")
    return payload


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _validate_dict(value: dict[str, Any], schema: dict[str, Any], path: str, errors: list[str]) -> None:
    if not isinstance(value, dict):
        errors.append(f"{path} must be an object")
        return
    for key in schema.keys():
        if key not in value:
            errors.append(f"missing {path}.{key}")
    for key in value.keys():
        if key not in schema:
            errors.append(f"unknown {path}.{key}")
    for key, default in schema.items():
        if key not in value:
            continue
        _validate_value(value[key], default, f"{path}.{key}", errors)


def _validate_value(value: Any, default: Any, path: str, errors: list[str]) -> None:
    if isinstance(default, dict):
        if not isinstance(value, dict):
            errors.append(f"{path} must be an object")
            return
        _validate_dict(value, default, path, errors)
        return
    if isinstance(default, list):
        if not isinstance(value, list):
            errors.append(f"{path} must be a list")
            return
        for item in value:
            if not isinstance(item, str):
                errors.append(f"{path} must be a list of strings")
                break
        return
    if isinstance(default, bool):
        if not isinstance(value, bool):
            errors.append(f"{path} must be a boolean")
        return
    if isinstance(default, int):
        if not isinstance(value, int) or isinstance(value, bool):
            errors.append(f"{path} must be an integer")
        return
    if isinstance(default, float):
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            errors.append(f"{path} must be a number")
        return
    if isinstance(default, str):
        if not isinstance(value, str):
            errors.append(f"{path} must be a string")
        return


def build_config(cfg: dict[str, Any]) -> Config:
    app_cfg = cfg.get("app") or {}
    paths_cfg = cfg.get("paths") or {}
    corpus_cfg = cfg.get("corpus") or {}
    classifier_cfg = cfg.get("classifier") or {}
    extraction_cfg = cfg.get("extraction") or {}
    output_cfg = cfg.get("output") or {}
    processing_cfg = cfg.get("processing") or {}

    data_dir = str(paths_cfg.get("data_dir"))
    resolved_paths = {
        key: str(paths_cfg.get(key) or "") or os.path.join(data_dir, *parts)
        for key, parts in _DERIVED_PATHS.items()
    }

    return Config(
        app=AppConfig(name=str(app_cfg.get("name"))),
        paths=PathsConfig(data_dir=data_dir, **resolved_paths),
        corpus=CorpusConfig(
            archive_url=str(corpus_cfg.get("archive_url")),
            records_subdir=str(corpus_cfg.get("records_subdir")),
            timeout_seconds=int(corpus_cfg.get("timeout_seconds")),
            user_agent=str(corpus_cfg.get("user_agent")),
            max_retries=int(corpus_cfg.get("max_retries")),
            backoff_seconds=float(corpus_cfg.get("backoff_seconds")),
            prefilter=bool(corpus_cfg.get("prefilter")),
        ),
        classifier=ClassifierConfig(
            family_keywords=list(classifier_cfg.get("family_keywords")),
            required_terms=list(classifier_cfg.get("required_terms")),
            excluded_subproducts=list(classifier_cfg.get("excluded_subproducts")),
            withdrawn_markers=list(classifier_cfg.get("withdrawn_markers")),
            deny_fragments=list(classifier_cfg.get("deny_fragments")),
        ),
        extraction=ExtractionConfig(
            anchor_keywords=list(extraction_cfg.get("anchor_keywords")),
            vendor_prefixes=list(extraction_cfg.get("vendor_prefixes")),
            max_version_part=int(extraction_cfg.get("max_version_part")),
        ),
        output=OutputConfig(
            delimiter=str(output_cfg.get("delimiter")),
            write_run_report=bool(output_cfg.get("write_run_report")),
        ),
        processing=ProcessingConfig(
            workers=int(processing_cfg.get("workers")),
            progress_step_percent=int(processing_cfg.get("progress_step_percent")),
        ),
    )


def _deep_copy(value: dict[str, Any]) -> dict[str, Any]:
    return json.loads(json.dumps(value))
