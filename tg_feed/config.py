from __future__ import annotations

import hashlib
import json
import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from .config_schema import AppConfig
from .errors import ConfigError

# Sections that change what a crawl collects; debug output does not.
_HASHED_SECTIONS = ("browser", "crawl", "resources", "auth")


def _read_yaml_mapping(p: Path) -> dict[str, Any]:
    if not p.is_file():
        raise ConfigError(f"Config file not found: {p}")

    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read config file {p}: {e}") from e

    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file {p} is not valid YAML: {e}") from e

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file {p} must hold a mapping of sections, got {type(loaded).__name__}")
    return loaded


def load_config(path: str | Path) -> AppConfig:
    """
    Read crawler settings from YAML; an empty file means all defaults.

    Raises ConfigError listing every invalid field.
    """
    p = Path(path)
    raw = _read_yaml_mapping(p)
    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(_describe_validation_error(e, p)) from e


def resolve_storage_state(
    config: AppConfig,
    *,
    required: bool,
    environ: Mapping[str, str] | None = None,
) -> Path | None:
    """
    Locate the persisted browser storage state named by `auth.storage_state_env`.

    Authenticated crawls need it; public crawls get None when it is unset.
    """
    env = os.environ if environ is None else environ
    env_name = config.auth.storage_state_env
    raw = (env.get(env_name) or "").strip()

    if not raw:
        if required:
            raise ConfigError(f"Missing required environment variable: {env_name}")
        return None

    path = Path(raw).expanduser()
    if not path.is_file():
        if required:
            raise ConfigError(f"Storage state file from {env_name} not found: {path}")
        return None
    return path


def config_sha256(config: AppConfig) -> str:
    """Fingerprint of the crawl-affecting settings, logged with every run."""
    dumped = config.model_dump(mode="json")
    relevant = {name: dumped[name] for name in _HASHED_SECTIONS}
    blob = json.dumps(relevant, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(blob.encode("utf-8")).hexdigest()


def _describe_validation_error(err: ValidationError, path: Path) -> str:
    problems = [f"Invalid configuration in {path}:"]
    for item in err.errors():
        where = ".".join(str(part) for part in item.get("loc", ())) or "<top level>"
        problems.append(f"- {where}: {item.get('msg', 'invalid value')}")
    return "\n".join(problems)
