"""Configuration file loading and option merging for the CLI.

Precedence: CLI flags > config file > built-in defaults. The config file is
either given with ``--config`` or discovered in the package directory under
one of ``Constants.CONFIG_FILES``.
"""

from __future__ import annotations

import json
import logging
import os
import re
from typing import Any, Dict, Optional

import yaml

from constants import Constants
from common.errors import ConfigError
from publish_check import NeedsPublishOptions

logger = logging.getLogger(__name__)

_BOOL_KEYS = ("include_optional_deps", "package_json_only", "treat_narrowing_as_equivalent")
_LIST_KEYS = ("additional_significant_fields", "ignore_fields")
_STR_KEYS = ("registry",)
KNOWN_KEYS = _BOOL_KEYS + _LIST_KEYS + _STR_KEYS

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(key: str) -> str:
    return _CAMEL_RE.sub("_", key).replace("-", "_").lower()


def find_config(directory: str) -> Optional[str]:
    """Return the first default config file present in ``directory``."""
    for name in Constants.CONFIG_FILES:
        path = os.path.join(directory, name)
        if os.path.isfile(path):
            return path
    return None


def load_config_file(path: str) -> Dict[str, Any]:
    """Load a YAML or JSON config file and normalize its keys to snake_case.

    Raises:
        ConfigError: The file cannot be read, does not parse, is not a
            mapping, or holds a value of the wrong type.
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            if path.lower().endswith(".json"):
                raw = json.load(fh)
            else:
                raw = yaml.safe_load(fh)
    except OSError as exc:
        raise ConfigError(f"Unable to read config file {path}: {exc}") from exc
    except (ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"Unable to parse config file {path}: {exc}") from exc

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    config: Dict[str, Any] = {}
    for key, value in raw.items():
        name = _snake(str(key))
        if name not in KNOWN_KEYS:
            logger.warning("Ignoring unknown config key %r in %s", key, path)
            continue
        config[name] = _validate(name, value, path)
    logger.debug("Loaded config from %s: %s", path, sorted(config))
    return config


def _validate(name: str, value: Any, path: str) -> Any:
    if name in _BOOL_KEYS:
        if not isinstance(value, bool):
            raise ConfigError(f"{name} in {path} must be true or false")
        return value
    if name in _LIST_KEYS:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigError(f"{name} in {path} must be a list of field names")
        return tuple(value)
    if value is not None and not isinstance(value, str):
        raise ConfigError(f"{name} in {path} must be a string")
    return value


def resolve_directory(args) -> str:
    directory = getattr(args, "DIRECTORY", None) or getattr(args, "CWD", None) or os.getcwd()
    return os.path.abspath(directory)


def build_options(args) -> NeedsPublishOptions:
    """Merge CLI flags, the config file and defaults into NeedsPublishOptions."""
    directory = resolve_directory(args)
    config_path = getattr(args, "CONFIG", None) or find_config(directory)
    config = load_config_file(config_path) if config_path else {}

    cli = {
        "registry": getattr(args, "REGISTRY", None),
        "include_optional_deps": getattr(args, "INCLUDE_OPTIONAL_DEPS", None),
        "package_json_only": getattr(args, "PACKAGE_JSON_ONLY", None),
        "treat_narrowing_as_equivalent": getattr(args, "TREAT_NARROWING_AS_EQUIVALENT", None),
        "additional_significant_fields": tuple(getattr(args, "SIGNIFICANT_FIELDS", None) or ()) or None,
        "ignore_fields": tuple(getattr(args, "IGNORE_FIELDS", None) or ()) or None,
    }
    merged = dict(config)
    merged.update({key: value for key, value in cli.items() if value is not None})
    return NeedsPublishOptions(cwd=directory, **merged)
