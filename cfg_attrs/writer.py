from __future__ import annotations

from typing import Iterable, Iterator

from .models import AttachmentPoint, MemberList, Part
from .tokens import render


def _write_parts(parts: Iterable[Part], rewritten: Iterator[str], out: list[str]) -> None:
    for part in parts:
        if isinstance(part, AttachmentPoint):
            out.append(next(rewritten))
        elif isinstance(part, MemberList):
            group = part.group
            out.append(group.leading)
            out.append(group.text)
            for member in part.members:
                out.append(next(rewritten))
                _write_parts(member.body, rewritten, out)
            out.append(group.close_leading)
            out.append(group.close)
        else:
            out.append(render(part))


def write_parts(parts: Iterable[Part], rewritten: list[str]) -> str:
    """Serialize declaration parts, splicing one rewritten annotation list per
    attachment point in the order the points were parsed."""
    chunks = iter(rewritten)
    out: list[str] = []
    try:
        _write_parts(parts, chunks, out)
    except StopIteration:
        raise ValueError("REWRITTEN_LISTS_SHORT") from None
    if next(chunks, None) is not None:
        raise ValueError("REWRITTEN_LISTS_EXCESS")
    return "".join(out)
