from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml

from .mapping import extract_notion_id

TRUTHY = {"1", "true", "yes", "y", "on"}


@dataclass(frozen=True)
class ExportOptions:
    separate_database_files: bool = True  # write notion_database_<id>.md per database
    include_db_in_page: bool = True  # append database tables to the page document


@dataclass
class NotionConfig:
    token: str
    page_id: str


@dataclass
class OutputConfig:
    directory: str = "output"


@dataclass
class AppConfig:
    notion: NotionConfig
    output: OutputConfig = field(default_factory=OutputConfig)
    options: ExportOptions = field(default_factory=ExportOptions)
    log_level: str = "INFO"


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
        value = value[1:-1].strip()
    return value


def _as_bool(value: Any, default: bool) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUTHY


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return None


def _read_yaml(path: Optional[str]) -> Dict[str, Any]:
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ValueError(f"Cannot read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in config file {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ValueError(f"Config file {path} must contain a mapping at the top level")
    return raw


def load_config(path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> AppConfig:
    """Build the run configuration.

    Values are taken from ``overrides`` (CLI flags) first, then the YAML file at
    ``path``, then environment variables, then defaults.
    """
    overrides = overrides or {}
    raw = _read_yaml(path)

    notion_raw = raw.get("notion") or {}
    output_raw = raw.get("output") or {}
    export_raw = raw.get("export") or {}

    token: Optional[str] = _first(overrides.get("notion_token"), notion_raw.get("token"))
    if not token:
        token_env = notion_raw.get("token_env")
        if token_env:
            token = _get_env(token_env)
        if not token:
            token = _get_env("NOTION_TOKEN")
    if not token:
        raise ValueError("Notion token not provided. Set NOTION_TOKEN, notion.token in the config file, or pass --token.")

    page_ref = _first(overrides.get("page_id"), notion_raw.get("page_id"), _get_env("NOTION_PAGE_ID"))
    if not page_ref:
        raise ValueError("NOTION_PAGE_ID is not set. Check your .env file or pass the page ID as an argument.")
    page_id = extract_notion_id(str(page_ref))

    directory = _first(overrides.get("output_dir"), output_raw.get("directory"), _get_env("NOTION_EXPORT_DIR")) or "output"

    options = ExportOptions(
        separate_database_files=_as_bool(
            _first(
                overrides.get("separate_database_files"),
                export_raw.get("separate_database_files"),
                _get_env("SEPARATE_DATABASE_FILES"),
            ),
            True,
        ),
        include_db_in_page=_as_bool(
            _first(
                overrides.get("include_db_in_page"),
                export_raw.get("include_db_in_page"),
                _get_env("INCLUDE_DB_IN_PAGE"),
            ),
            True,
        ),
    )

    log_level = str(_first(overrides.get("log_level"), raw.get("log_level"), _get_env("LOG_LEVEL")) or "INFO").upper()

    return AppConfig(
        notion=NotionConfig(token=token, page_id=page_id),
        output=OutputConfig(directory=str(directory)),
        options=options,
        log_level=log_level,
    )


def get_config(overrides: Optional[Dict[str, Any]] = None) -> AppConfig:
    overrides = dict(overrides or {})
    return load_config(overrides.pop("config_path", None), overrides)
