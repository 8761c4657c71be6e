from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from .io_atomic import write_text_atomic

NOTICE = """\
<!-- cfg-attrs documentation source.
   - Rendered into README.md by `cfg-attrs-readme`. -->"""

NOTE = """\
<!-- This `README.md` file is automatically generated from `docs.md`, which uses `rustdoc`'s syntax
   - for hidden lines in code examples.
   -
   - Edit `docs.md` and run `cfg-attrs-readme --input docs.md --out README.md` to update it. -->"""

HEADER = "# `#[cfg_attrs(...)]`"

FENCE_INDENT_MAX = 3
HEADING_LEVELS = 6


@dataclass
class CodeBlock:
    backticks: str
    indentation: int
    info: Optional[str]
    lines: list[str] = field(default_factory=list)

    def render(self) -> list[str]:
        ws = " " * self.indentation
        out = [f"{ws}{self.backticks}{self.info or 'rust'}"]
        for line in self.lines:
            shown = unhide(line)
            if shown is not None:
                out.append(f"{ws}{shown}" if shown else "")
        out.append(f"{ws}{self.backticks}")
        return out


Node = Union[str, CodeBlock]


def fence_indentation(line: str) -> Optional[int]:
    """Leading spaces of a line that may open or close a fence, or None for
    an indented code line."""
    indentation = 0
    for ch in line[:FENCE_INDENT_MAX]:
        if ch != " ":
            break
        indentation += 1
    if indentation == FENCE_INDENT_MAX and line[FENCE_INDENT_MAX:FENCE_INDENT_MAX + 1].isspace():
        return None
    return indentation


def promote_heading(line: str) -> str:
    levels = 0
    for ch in line[:HEADING_LEVELS]:
        if ch != "#":
            break
        levels += 1
    if levels and line[levels:levels + 1] == " ":
        return "#" + line
    return line


def unhide(line: str) -> Optional[str]:
    trimmed = line.rstrip()
    if trimmed == "#" or trimmed.startswith("# "):
        return None
    if trimmed == "##" or trimmed.startswith("## "):
        return line[1:]
    return line


def parse_nodes(lines: list[str]) -> list[Node]:
    nodes: list[Node] = []
    block: Optional[CodeBlock] = None
    for line in lines:
        if block is not None:
            indentation = fence_indentation(line)
            if line and indentation is not None and indentation < block.indentation:
                nodes.append(block)
                block = None
            else:
                if line[block.indentation:].rstrip() == block.backticks and len(line) > block.indentation:
                    nodes.append(block)
                    block = None
                else:
                    block.lines.append(line[block.indentation:])
                continue

        indentation = fence_indentation(line)
        if indentation is not None:
            rest = line[indentation:]
            backticks = len(rest) - len(rest.lstrip("`"))
            if backticks >= 3:
                info = rest[backticks:].rstrip()
                block = CodeBlock(backticks=rest[:backticks], indentation=indentation, info=info or None)
                continue
        nodes.append(promote_heading(line))
    if block is not None:
        nodes.append(block)
    return nodes


def render_readme(source: str) -> str:
    skip = len(NOTICE.splitlines()) + 1
    nodes = parse_nodes(source.splitlines()[skip:])
    out = [NOTICE, "", NOTE, "", HEADER]
    for node in nodes:
        if isinstance(node, CodeBlock):
            out.extend(node.render())
        else:
            out.append(node)
    return "".join(line + "\n" for line in out)


def main() -> int:
    ap = argparse.ArgumentParser(description="Render README.md from docs.md.")
    ap.add_argument("--input", default="docs.md", help="Documentation source.")
    ap.add_argument("--out", default="README.md", help="Rendered README path.")
    ap.add_argument("--check", action="store_true", help="Fail if the README is out of date.")
    args = ap.parse_args()

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"E_INPUT_NOT_FOUND: {input_path}", file=sys.stderr)
        return 2
    text = render_readme(input_path.read_text(encoding="utf-8"))
    out_path = Path(args.out)

    if args.check:
        current = out_path.read_text(encoding="utf-8") if out_path.exists() else None
        if current != text:
            print(f"[DIFF] {out_path}", file=sys.stderr)
            return 2
        print(f"[OK] {out_path}")
        return 0

    try:
        write_text_atomic(out_path, text)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    print(f"[OK] {out_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
