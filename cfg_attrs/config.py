from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class Config:
    path: Optional[Path] = None
    raw: dict[str, Any] = field(default_factory=dict)
    directive_name: str = "cfg_attrs"
    native_name: str = "cfg_attr"
    error_macro: str = "compile_error"
    warn_unsupported: bool = True
    file_suffix: str = ".rs"


DEFAULT_CONFIG = Config()


def _require_identifier(value: Any, key: str, path: Path) -> str:
    if not isinstance(value, str) or not IDENTIFIER_RE.match(value):
        raise ConfigError(f"CONFIG_KEY_INVALID: {path}: {key}={value!r}")
    return value


def _section(raw: dict[str, Any], key: str, path: Path) -> dict[str, Any]:
    value = raw.get(key, {})
    if not isinstance(value, dict):
        raise ConfigError(f"CONFIG_KEY_INVALID: {path}: {key} must be an object")
    return value


def _require_bool(value: Any, key: str, path: Path) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"CONFIG_KEY_INVALID: {path}: {key}={value!r}")
    return value


def load_config(path: Path) -> Config:
    if not path.exists():
        raise ConfigError(f"CONFIG_NOT_FOUND: {path}")
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"CONFIG_INVALID_JSON: {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"CONFIG_INVALID_JSON: {path}: top-level value must be an object")

    directive_name = _require_identifier(
        _section(raw, "directive", path).get("name", DEFAULT_CONFIG.directive_name),
        "directive.name",
        path,
    )
    native_name = _require_identifier(
        _section(raw, "native", path).get("name", DEFAULT_CONFIG.native_name),
        "native.name",
        path,
    )
    diagnostics = _section(raw, "diagnostics", path)
    error_macro = _require_identifier(
        diagnostics.get("error_macro", DEFAULT_CONFIG.error_macro),
        "diagnostics.error_macro",
        path,
    )
    if directive_name == native_name:
        raise ConfigError(f"CONFIG_KEY_INVALID: {path}: directive.name must differ from native.name")
    warn_unsupported = _require_bool(
        diagnostics.get("warn_unsupported", DEFAULT_CONFIG.warn_unsupported),
        "diagnostics.warn_unsupported",
        path,
    )

    file_suffix = _section(raw, "files", path).get("suffix", DEFAULT_CONFIG.file_suffix)
    if not isinstance(file_suffix, str) or not file_suffix.startswith("."):
        raise ConfigError(f"CONFIG_KEY_INVALID: {path}: files.suffix={file_suffix!r}")

    return Config(
        path=path,
        raw=raw,
        directive_name=directive_name,
        native_name=native_name,
        error_macro=error_macro,
        warn_unsupported=warn_unsupported,
        file_suffix=file_suffix,
    )
