from __future__ import annotations

import json
import sys
from typing import Iterable, Optional

from .config import Config
from .errors import Diagnostic


def quote(value: str) -> str:
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def error_annotation(diagnostic: Diagnostic, config: Config, leading: str = "") -> str:
    return f"{leading}#[doc = ::core::{config.error_macro}!({quote(diagnostic.message)})]"


def compile_error(diagnostic: Diagnostic, config: Config) -> str:
    return f"::core::{config.error_macro}! {{ {quote(diagnostic.message)} }}"


def has_errors(diagnostics: Iterable[Diagnostic]) -> bool:
    return any(diag.severity == "error" for diag in diagnostics)


def print_diagnostics(diagnostics: list[Diagnostic], source: Optional[str] = None) -> None:
    payload = []
    for diag in diagnostics:
        entry = diag.to_dict()
        if source is not None:
            entry = {"file": source, **entry}
        payload.append(entry)
    print(json.dumps(payload, ensure_ascii=False, indent=2), file=sys.stderr)
