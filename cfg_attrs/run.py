from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from .config import DEFAULT_CONFIG, Config, ConfigError, load_config
from .expand import Expansion, expand, transform_source
from .io_atomic import write_text_atomic
from .report import print_diagnostics


def iter_rust_files(root: Path, suffix: str) -> list[Path]:
    if root.is_file():
        return [root]
    return sorted(path for path in root.rglob(f"*{suffix}") if path.is_file())


def _output_path(path: Path, input_root: Path, out: Optional[Path]) -> Optional[Path]:
    if out is None:
        return None
    if input_root.is_file():
        return out / path.name if out.is_dir() else out
    return out / path.relative_to(input_root)


def _transform(text: str, item: bool, item_args: str, config: Config) -> Expansion:
    if item:
        return expand(text, item_args, config)
    return transform_source(text, config)


def main() -> int:
    ap = argparse.ArgumentParser(description="Rewrite cfg_attrs annotations into native cfg_attr form.")
    ap.add_argument("--input", required=True, help="Rust source file or directory.")
    ap.add_argument("--out", default=None, help="Output file or directory (default: stdout for one file).")
    ap.add_argument("--config", default=None, help="JSON config path.")
    ap.add_argument("--item", action="store_true", help="Treat each input as a single declaration.")
    ap.add_argument("--args", default="", help="Invocation arguments passed with --item.")
    ap.add_argument("--check", action="store_true", help="Report files that would change and exit 2.")
    args = ap.parse_args()

    config = DEFAULT_CONFIG
    if args.config:
        try:
            config = load_config(Path(args.config))
        except ConfigError as exc:
            print(str(exc), file=sys.stderr)
            return 2

    if args.args and not args.item:
        print("E_ARGS_REQUIRES_ITEM: --args is only valid with --item", file=sys.stderr)
        return 2

    input_root = Path(args.input)
    if not input_root.exists():
        print(f"E_INPUT_NOT_FOUND: {input_root}", file=sys.stderr)
        return 2
    files = iter_rust_files(input_root, config.file_suffix)
    if not files:
        print(f"E_INPUT_NOT_FOUND: no {config.file_suffix} files under {input_root}", file=sys.stderr)
        return 2
    out = Path(args.out) if args.out else None
    if input_root.is_dir() and out is None and not args.check:
        print("E_OUTPUT_REQUIRED: --out is required for directory input", file=sys.stderr)
        return 2

    failed = False
    for path in files:
        original = path.read_text(encoding="utf-8")
        result = _transform(original, args.item, args.args, config)
        if result.diagnostics:
            print_diagnostics(list(result.diagnostics), source=str(path))
        if not result.ok:
            failed = True

        if args.check:
            if result.text != original:
                print(f"[DIFF] {path}", file=sys.stderr)
                failed = True
            continue

        target = _output_path(path, input_root, out)
        if target is None:
            sys.stdout.write(result.text)
            continue
        try:
            write_text_atomic(target, result.text)
        except ValueError as exc:
            print(str(exc), file=sys.stderr)
            return 2
        print(f"[OK] {target}")

    return 2 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
