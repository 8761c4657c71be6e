from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Union

from .annotations import AnnotationList
from .tokens import Token


@dataclass(frozen=True)
class AttachmentPoint:
    kind: str
    name: str
    pointer: str
    annotations: AnnotationList


@dataclass(frozen=True)
class Member:
    point: AttachmentPoint
    body: tuple[Part, ...]


@dataclass(frozen=True)
class MemberList:
    group: Token
    members: tuple[Member, ...]


Part = Union[tuple[Token, ...], MemberList, AttachmentPoint]


def iter_attachment_points(parts: Iterable[Part]) -> Iterator[AttachmentPoint]:
    for part in parts:
        if isinstance(part, AttachmentPoint):
            yield part
        elif isinstance(part, MemberList):
            for member in part.members:
                yield member.point
                yield from iter_attachment_points(member.body)
