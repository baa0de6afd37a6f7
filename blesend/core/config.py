"""Configuration loading and validation for the YAML blesend config file."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import fields
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from blesend.core.errors import ConfigLoadError, ConfigValidationError
from blesend.core.model import SessionConfig, TransmissionMode, WritePolicy

_UUID128_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


def _load_schema_validator() -> Any:
    schema_text = resources.files("blesend.schemas").joinpath("config.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def default_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "blesend" / "config.yaml"


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigValidationError(f"Config file {path} must contain a mapping at root")
    return loaded


def _normalize_uuid(value: str, *, context: str) -> str:
    normalized = value.strip().lower()
    if not _UUID128_RE.match(normalized):
        raise ConfigValidationError(f"{context} must be a 128-bit UUID string")
    return normalized


def build_config(doc: dict[str, Any], source: Path | str = "<config>") -> SessionConfig:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    values: dict[str, Any] = {}
    for item in fields(SessionConfig):
        if item.name in doc:
            values[item.name] = doc[item.name]

    if "target_char_uuid" in values:
        values["target_char_uuid"] = _normalize_uuid(values["target_char_uuid"], context="target_char_uuid")
    for key in ("scan_duration_s", "connect_timeout_s", "tick_interval_s"):
        if key in values:
            values[key] = float(values[key])
    if "write_policy" in values:
        values["write_policy"] = WritePolicy(values["write_policy"])
    if "initial_mode" in values:
        values["initial_mode"] = TransmissionMode(values["initial_mode"])

    return SessionConfig(**values)


def load_config(path: Path | None = None) -> SessionConfig:
    """Load the session config from path, or the XDG default location.

    A missing default file yields built-in defaults; a missing explicit path
    is an error.
    """
    if path is None:
        path = default_config_path()
        if not path.is_file():
            LOGGER.debug("No config at %s; using defaults", path)
            return SessionConfig()
    elif not path.is_file():
        raise ConfigLoadError(f"Config file {path} does not exist")

    return build_config(_read_yaml(path), path)
