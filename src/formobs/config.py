"""
Configuration for the form/observation transforms.

Holds the few values that vary per deployment:
    - namespace: formNamespace stamped on every emitted observation
    - datetime_pattern: strings matching this are decoded back into datetimes
    - save_event: key under schema["events"] holding the save-time script

Configuration can be loaded from YAML so deployments can override defaults
without code changes.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, fields
from typing import Any, Dict

import yaml


DEFAULT_NAMESPACE = "Bahmni"
DATETIME_PATTERN = r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}"
SAVE_EVENT = "onFormSave"


class ConfigError(Exception):
    """Raised when a configuration document is invalid."""
    pass


@dataclass(frozen=True)
class FormsConfig:
    """
    Deployment settings shared by the encoder, decoder, notes extractor
    and script stage.

    Properties:
        namespace: Value written to Observation.namespace
        datetime_pattern: Regex a string must match to be decoded as a datetime
        save_event: Event name looked up in the form schema's "events" map
    """

    namespace: str = DEFAULT_NAMESPACE
    datetime_pattern: str = DATETIME_PATTERN
    save_event: str = SAVE_EVENT

    def datetime_regex(self) -> "re.Pattern[str]":
        return re.compile(self.datetime_pattern)


DEFAULT_CONFIG = FormsConfig()


def config_from_dict(d: Dict[str, Any] | None) -> FormsConfig:
    """
    Build a FormsConfig from a plain mapping.

    Missing keys keep their defaults. Unknown keys, non-string values and
    uncompilable patterns raise ConfigError.
    """
    if d is None:
        return DEFAULT_CONFIG
    if not isinstance(d, dict):
        raise ConfigError(f"Config must be a mapping, got {type(d).__name__}")

    known = {f.name for f in fields(FormsConfig)}
    unknown = set(d) - known
    if unknown:
        raise ConfigError(f"Unknown config keys: {sorted(unknown)}")

    for key, value in d.items():
        if not isinstance(value, str) or not value:
            raise ConfigError(f"Config value '{key}' must be a non-empty string")

    pattern = d.get("datetime_pattern", DATETIME_PATTERN)
    try:
        re.compile(pattern)
    except re.error as e:
        raise ConfigError(f"Invalid datetime_pattern '{pattern}': {e}") from e

    return FormsConfig(**d)


def config_to_dict(config: FormsConfig) -> Dict[str, Any]:
    return {
        "namespace": config.namespace,
        "datetime_pattern": config.datetime_pattern,
        "save_event": config.save_event,
    }


def config_from_yaml(s: str) -> FormsConfig:
    return config_from_dict(yaml.safe_load(s))


def load_config(filepath: str) -> FormsConfig:
    """
    Load a FormsConfig from a YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ConfigError: If the document is invalid
    """
    with open(filepath, "r", encoding="utf-8") as f:
        content = f.read()
    try:
        return config_from_yaml(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file {filepath} is not valid YAML: {e}") from e
