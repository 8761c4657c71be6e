from __future__ import annotations

from dataclasses import dataclass


def _escape_json_pointer_segment(segment: str) -> str:
    return segment.replace("~", "~0").replace("/", "~1")


def json_pointer(*segments: str) -> str:
    if not segments:
        return ""
    return "/" + "/".join(_escape_json_pointer_segment(s) for s in segments)


@dataclass(frozen=True)
class Diagnostic:
    code: str
    message: str
    expected: str
    got: str
    path: str
    line: int = 0
    col: int = 0
    severity: str = "error"

    def to_dict(self) -> dict[str, object]:
        return {
            "code": self.code,
            "severity": self.severity,
            "message": self.message,
            "expected": self.expected,
            "got": self.got,
            "path": self.path,
            "line": self.line,
            "col": self.col,
        }


class RewriteError(Exception):
    def __init__(self, diagnostic: Diagnostic) -> None:
        super().__init__(f"{diagnostic.code}: {diagnostic.message}")
        self.diagnostic = diagnostic
