from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, ClassVar, Iterator, Optional, Sequence

from .annotations import AnnotationList, scan_annotations
from .config import Config
from .errors import Diagnostic, RewriteError, json_pointer
from .models import AttachmentPoint, Member, MemberList, Part, iter_attachment_points
from .tokens import Token, render
from .writer import write_parts

FN_QUALIFIERS = frozenset({"const", "async", "unsafe", "safe", "extern"})
TRAIT_QUALIFIERS = frozenset({"unsafe", "auto"})
SUPPORTED_SHAPES = (
    "const",
    "enum",
    "extern crate",
    "fn",
    "macro invocation",
    "static",
    "struct",
    "trait",
    "trait alias",
    "type",
    "use",
)

Tokens = tuple[Token, ...]


def _angle_delta(tokens: Sequence[Token], index: int) -> int:
    tok = tokens[index]
    if tok.is_punct("<"):
        return 1
    if tok.is_punct(">"):
        prev = tokens[index - 1] if index > 0 else None
        if prev is not None and prev.joint and (prev.is_punct("-") or prev.is_punct("=")):
            return 0
        return -1
    return 0


def _is_plain_eq(tokens: Sequence[Token], index: int) -> bool:
    tok = tokens[index]
    if not tok.is_punct("="):
        return False
    if tok.joint and index + 1 < len(tokens) and tokens[index + 1].text in ("=", ">"):
        return False
    prev = tokens[index - 1] if index > 0 else None
    return not (prev is not None and prev.kind == "punct" and prev.joint and prev.text in "<>!=+-*/%^&|")


class Declaration:
    kind: ClassVar[str] = "declaration"

    def parts(self) -> Iterator[Part]:
        raise NotImplementedError

    @property
    def leading_annotations(self) -> AnnotationList:
        point = getattr(self, "point", None)
        return point.annotations if point is not None else ()

    def attachment_points(self) -> list[AttachmentPoint]:
        return list(iter_attachment_points(self.parts()))

    def reconstruct(self, rewritten: list[str]) -> str:
        return write_parts(self.parts(), rewritten)


@dataclass(frozen=True)
class ConstDecl(Declaration):
    kind: ClassVar[str] = "const"
    point: AttachmentPoint
    visibility: Tokens
    keyword: Token
    name: Token
    ty: Tokens
    value: Tokens
    terminator: Token

    def parts(self) -> Iterator[Part]:
        yield self.point
        yield self.visibility
        yield (self.keyword, self.name)
        yield self.ty
        yield self.value
        yield (self.terminator,)


@dataclass(frozen=True)
class StaticDecl(Declaration):
    kind: ClassVar[str] = "static"
    point: AttachmentPoint
    visibility: Tokens
    keyword: Token
    mutability: Tokens
    name: Token
    ty: Tokens
    value: Tokens
    terminator: Token

    def parts(self) -> Iterator[Part]:
        yield self.point
        yield self.visibility
        yield (self.keyword,)
        yield self.mutability
        yield (self.name,)
        yield self.ty
        yield self.value
        yield (self.terminator,)


@dataclass(frozen=True)
class FunctionDecl(Declaration):
    kind: ClassVar[str] = "fn"
    point: AttachmentPoint
    visibility: Tokens
    qualifiers: Tokens
    keyword: Token
    name: Token
    generics: Tokens
    params: Token
    ret: Tokens
    where_clause: Tokens
    body: Token

    def parts(self) -> Iterator[Part]:
        yield self.point
        yield self.visibility
        yield self.qualifiers
        yield (self.keyword, self.name)
        yield self.generics
        yield (self.params,)
        yield self.ret
        yield self.where_clause
        yield (self.body,)


@dataclass(frozen=True)
class EnumDecl(Declaration):
    kind: ClassVar[str] = "enum"
    point: AttachmentPoint
    visibility: Tokens
    keyword: Token
    name: Token
    generics: Tokens
    where_clause: Tokens
    variants: MemberList

    def parts(self) -> Iterator[Part]:
        yield self.point
        yield self.visibility
        yield (self.keyword, self.name)
        yield self.generics
        yield self.where_clause
        yield self.variants


@dataclass(frozen=True)
class StructDecl(Declaration):
    kind: ClassVar[str] = "struct"
    point: AttachmentPoint
    visibility: Tokens
    keyword: Token
    name: Token
    generics: Tokens
    where_clause: Tokens
    fields: Optional[MemberList]
    terminator: Optional[Token]

    @property
    def is_tuple(self) -> bool:
        return self.fields is not None and self.fields.group.is_group("(")

    def parts(self) -> Iterator[Part]:
        yield self.point
        yield self.visibility
        yield (self.keyword, self.name)
        yield self.generics
        if self.is_tuple:
            yield self.fields
            yield self.where_clause
        else:
            yield self.where_clause
            if self.fields is not None:
                yield self.fields
        if self.terminator is not None:
            yield (self.terminator,)


@dataclass(frozen=True)
class TraitDecl(Declaration):
    kind: ClassVar[str] = "trait"
    point: AttachmentPoint
    visibility: Tokens
    qualifiers: Tokens
    keyword: Token
    name: Token
    generics: Tokens
    bounds: Tokens
    where_clause: Tokens
    items: MemberList

    def parts(self) -> Iterator[Part]:
        yield self.point
        yield self.visibility
        yield self.qualifiers
        yield (self.keyword, self.name)
        yield self.generics
        yield self.bounds
        yield self.where_clause
        yield self.items


@dataclass(frozen=True)
class TraitAliasDecl(Declaration):
    kind: ClassVar[str] = "trait alias"
    point: AttachmentPoint
    visibility: Tokens
    keyword: Token
    name: Token
    generics: Tokens
    bounds: Tokens
    where_clause: Tokens
    terminator: Token

    def parts(self) -> Iterator[Part]:
        yield self.point
        yield self.visibility
        yield (self.keyword, self.name)
        yield self.generics
        yield self.bounds
        yield self.where_clause
        yield (self.terminator,)


@dataclass(frozen=True)
class TypeAliasDecl(Declaration):
    kind: ClassVar[str] = "type"
    point: AttachmentPoint
    visibility: Tokens
    keyword: Token
    name: Token
    generics: Tokens
    rest: Tokens
    terminator: Token

    def parts(self) -> Iterator[Part]:
        yield self.point
        yield self.visibility
        yield (self.keyword, self.name)
        yield self.generics
        yield self.rest
        yield (self.terminator,)


@dataclass(frozen=True)
class ImportDecl(Declaration):
    kind: ClassVar[str] = "use"
    point: AttachmentPoint
    visibility: Tokens
    keyword: Token
    tree: Tokens
    terminator: Token

    def parts(self) -> Iterator[Part]:
        yield self.point
        yield self.visibility
        yield (self.keyword,)
        yield self.tree
        yield (self.terminator,)


@dataclass(frozen=True)
class ExternAliasDecl(Declaration):
    kind: ClassVar[str] = "extern crate"
    point: AttachmentPoint
    visibility: Tokens
    keyword: Token
    crate: Token
    name: Token
    alias: Tokens
    terminator: Token

    def parts(self) -> Iterator[Part]:
        yield self.point
        yield self.visibility
        yield (self.keyword, self.crate, self.name)
        yield self.alias
        yield (self.terminator,)


@dataclass(frozen=True)
class MacroInvocationDecl(Declaration):
    kind: ClassVar[str] = "macro invocation"
    point: AttachmentPoint
    visibility: Tokens
    path: Tokens
    bang: Token
    name: Tokens
    body: Token
    terminator: Tokens

    def parts(self) -> Iterator[Part]:
        yield self.point
        yield self.visibility
        yield self.path
        yield (self.bang,)
        yield self.name
        yield (self.body,)
        yield self.terminator


@dataclass(frozen=True)
class InnerAttributesDecl(Declaration):
    """Inner annotations at the head of a file; they apply to the enclosing module."""

    kind: ClassVar[str] = "inner attributes"
    point: AttachmentPoint

    def parts(self) -> Iterator[Part]:
        yield self.point


@dataclass(frozen=True)
class UnsupportedDecl(Declaration):
    kind: ClassVar[str] = "unsupported"
    tokens: Tokens
    diagnostic: Diagnostic

    def parts(self) -> Iterator[Part]:
        yield self.tokens


class _Cursor:
    def __init__(self, tokens: Sequence[Token], pos: int, pointer: str) -> None:
        self.tokens = tokens
        self.pos = pos
        self.pointer = pointer

    def peek(self, offset: int = 0) -> Optional[Token]:
        index = self.pos + offset
        if 0 <= index < len(self.tokens):
            return self.tokens[index]
        return None

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        self.pos += 1
        return tok

    def since(self, start: int) -> Tokens:
        return tuple(self.tokens[start : self.pos])

    def error(self, expected: str) -> RewriteError:
        tok = self.peek()
        anchor = tok if tok is not None else (self.tokens[-1] if self.tokens else None)
        return RewriteError(
            Diagnostic(
                code="W_DECLARATION_MALFORMED",
                message=f"expected {expected}; declaration passed through unchanged",
                expected=expected,
                got=tok.text if tok is not None else "end of input",
                path=self.pointer,
                line=anchor.line if anchor is not None else 0,
                col=anchor.col if anchor is not None else 0,
                severity="warning",
            )
        )

    def point(self, kind: str, name: str, annotations: AnnotationList) -> AttachmentPoint:
        return AttachmentPoint(kind=kind, name=name, pointer=self.pointer, annotations=annotations)

    def take_ident(self, name: Optional[str] = None, expected: Optional[str] = None) -> Token:
        tok = self.peek()
        if tok is None or not tok.is_ident(name):
            raise self.error(expected or f"`{name}`")
        return self.advance()

    def take_punct(self, ch: str) -> Token:
        tok = self.peek()
        if tok is None or not tok.is_punct(ch):
            raise self.error(f"`{ch}`")
        return self.advance()

    def take_group(self, delim: str) -> Token:
        tok = self.peek()
        if tok is None or not tok.is_group(delim):
            raise self.error(f"`{delim}`")
        return self.advance()

    def take_optional_ident(self, name: str) -> Tokens:
        tok = self.peek()
        if tok is not None and tok.is_ident(name):
            return (self.advance(),)
        return ()

    def take_optional_punct(self, ch: str) -> Tokens:
        tok = self.peek()
        if tok is not None and tok.is_punct(ch):
            return (self.advance(),)
        return ()

    def take_visibility(self) -> Tokens:
        start = self.pos
        if self.take_optional_ident("pub"):
            tok = self.peek()
            if tok is not None and tok.is_group("("):
                self.advance()
        return self.since(start)

    def take_generics(self) -> Tokens:
        tok = self.peek()
        if tok is None or not tok.is_punct("<"):
            return ()
        start = self.pos
        depth = 0
        while self.pos < len(self.tokens):
            depth += _angle_delta(self.tokens, self.pos)
            self.pos += 1
            if depth <= 0:
                return self.since(start)
        raise self.error("`>` closing the generic parameters")

    def take_until(self, stop: Callable[[Token], bool], angles: bool = True) -> Tokens:
        start = self.pos
        depth = 0
        while self.pos < len(self.tokens):
            tok = self.tokens[self.pos]
            if depth == 0 and stop(tok):
                break
            if angles:
                depth = max(depth + _angle_delta(self.tokens, self.pos), 0)
            self.pos += 1
        return self.since(start)

    def take_where(self, stop: Callable[[Token], bool]) -> Tokens:
        tok = self.peek()
        if tok is None or not tok.is_ident("where"):
            return ()
        start = self.pos
        self.advance()
        self.take_until(stop)
        return self.since(start)

    def take_qualifiers(self, allowed: frozenset[str]) -> Tokens:
        start = self.pos
        while True:
            tok = self.peek()
            if tok is None:
                break
            if tok.kind == "ident" and tok.text in allowed:
                self.advance()
                continue
            prev = self.peek(-1)
            if tok.kind == "literal" and self.pos > start and prev is not None and prev.is_ident("extern"):
                self.advance()
                continue
            break
        return self.since(start)


def _split_members(tokens: Sequence[Token], separator: str) -> list[Tokens]:
    chunks: list[Tokens] = []
    start = 0
    depth = 0
    in_value = False
    for index, tok in enumerate(tokens):
        if depth == 0 and tok.is_punct(separator):
            chunks.append(tuple(tokens[start : index + 1]))
            start = index + 1
            in_value = False
            continue
        if depth == 0 and _is_plain_eq(tokens, index):
            in_value = True
        if not in_value:
            depth = max(depth + _angle_delta(tokens, index), 0)
    if start < len(tokens):
        chunks.append(tuple(tokens[start:]))
    return chunks


def _split_trait_items(tokens: Sequence[Token]) -> list[Tokens]:
    chunks: list[Tokens] = []
    start = 0
    depth = 0
    in_value = False
    index = 0
    while index < len(tokens):
        tok = tokens[index]
        end = None
        if tok.is_punct(";"):
            end = index + 1
        elif depth == 0 and not in_value and tok.is_group("{"):
            end = index + 1
            if end < len(tokens) and tokens[end].is_punct(";"):
                end += 1
        if end is not None:
            chunks.append(tuple(tokens[start:end]))
            start = index = end
            depth = 0
            in_value = False
            continue
        if depth == 0 and _is_plain_eq(tokens, index):
            in_value = True
        if not in_value:
            depth = max(depth + _angle_delta(tokens, index), 0)
        index += 1
    if start < len(tokens):
        chunks.append(tuple(tokens[start:]))
    return chunks


def _visibility_end(tokens: Sequence[Token]) -> int:
    if tokens and tokens[0].is_ident("pub"):
        if len(tokens) > 1 and tokens[1].is_group("("):
            return 2
        return 1
    return 0


def _field_name(tokens: Sequence[Token]) -> str:
    index = _visibility_end(tokens)
    if index < len(tokens) and tokens[index].kind == "ident":
        return tokens[index].text
    return ""


def _trait_item_name(tokens: Sequence[Token]) -> str:
    for keyword in ("fn", "type", "const"):
        for index, tok in enumerate(tokens[:-1]):
            if tok.is_ident(keyword) and tokens[index + 1].kind == "ident":
                return tokens[index + 1].text
    return _field_name(tokens)


def _parse_fields(group: Token, config: Config, pointer: str) -> MemberList:
    named = group.is_group("{")
    members: list[Member] = []
    for index, chunk in enumerate(_split_members(group.children, ",")):
        member_pointer = pointer + json_pointer("fields", str(index))
        annotations, pos = scan_annotations(chunk, 0, config, member_pointer)
        rest = chunk[pos:]
        name = _field_name(rest) if named else str(index)
        point = AttachmentPoint(kind="field", name=name, pointer=member_pointer, annotations=annotations)
        members.append(Member(point=point, body=(rest,)))
    return MemberList(group=group, members=tuple(members))


def _parse_variants(group: Token, config: Config, pointer: str) -> MemberList:
    members: list[Member] = []
    for index, chunk in enumerate(_split_members(group.children, ",")):
        member_pointer = pointer + json_pointer("variants", str(index))
        annotations, pos = scan_annotations(chunk, 0, config, member_pointer)
        rest = chunk[pos:]
        name_index = _visibility_end(rest)
        name = ""
        head_end = name_index
        if name_index < len(rest) and rest[name_index].kind == "ident":
            name = rest[name_index].text
            head_end = name_index + 1
        body: list[Part] = [rest[:head_end]]
        tail = rest[head_end:]
        if tail and (tail[0].is_group("{") or tail[0].is_group("(")):
            body.append(_parse_fields(tail[0], config, member_pointer))
            tail = tail[1:]
        body.append(tail)
        point = AttachmentPoint(kind="variant", name=name, pointer=member_pointer, annotations=annotations)
        members.append(Member(point=point, body=tuple(body)))
    return MemberList(group=group, members=tuple(members))


def _parse_trait_items(group: Token, config: Config, pointer: str) -> MemberList:
    members: list[Member] = []
    for index, chunk in enumerate(_split_trait_items(group.children)):
        member_pointer = pointer + json_pointer("members", str(index))
        annotations, pos = scan_annotations(chunk, 0, config, member_pointer)
        rest = chunk[pos:]
        point = AttachmentPoint(
            kind="member",
            name=_trait_item_name(rest),
            pointer=member_pointer,
            annotations=annotations,
        )
        members.append(Member(point=point, body=(rest,)))
    return MemberList(group=group, members=tuple(members))


def _parse_const(cursor: _Cursor, annotations: AnnotationList, visibility: Tokens, config: Config) -> Declaration:
    keyword = cursor.take_ident("const")
    name = cursor.take_ident(expected="constant name")
    ty = cursor.take_until(lambda tok: tok.is_punct("=") or tok.is_punct(";"))
    value = cursor.take_until(lambda tok: tok.is_punct(";"), angles=False)
    terminator = cursor.take_punct(";")
    return ConstDecl(
        point=cursor.point("const", name.text, annotations),
        visibility=visibility,
        keyword=keyword,
        name=name,
        ty=ty,
        value=value,
        terminator=terminator,
    )


def _parse_static(cursor: _Cursor, annotations: AnnotationList, visibility: Tokens, config: Config) -> Declaration:
    keyword = cursor.take_ident("static")
    mutability = cursor.take_optional_ident("mut")
    name = cursor.take_ident(expected="static name")
    ty = cursor.take_until(lambda tok: tok.is_punct("=") or tok.is_punct(";"))
    value = cursor.take_until(lambda tok: tok.is_punct(";"), angles=False)
    terminator = cursor.take_punct(";")
    return StaticDecl(
        point=cursor.point("static", name.text, annotations),
        visibility=visibility,
        keyword=keyword,
        mutability=mutability,
        name=name,
        ty=ty,
        value=value,
        terminator=terminator,
    )


def _parse_function(cursor: _Cursor, annotations: AnnotationList, visibility: Tokens, config: Config) -> Declaration:
    qualifiers = cursor.take_qualifiers(FN_QUALIFIERS)
    keyword = cursor.take_ident("fn")
    name = cursor.take_ident(expected="function name")
    generics = cursor.take_generics()
    params = cursor.take_group("(")
    ret = cursor.take_until(lambda tok: tok.is_ident("where") or tok.is_group("{") or tok.is_punct(";"))
    where_clause = cursor.take_where(lambda tok: tok.is_group("{") or tok.is_punct(";"))
    tok = cursor.peek()
    if tok is None or not (tok.is_group("{") or tok.is_punct(";")):
        raise cursor.error("function body or `;`")
    body = cursor.advance()
    return FunctionDecl(
        point=cursor.point("fn", name.text, annotations),
        visibility=visibility,
        qualifiers=qualifiers,
        keyword=keyword,
        name=name,
        generics=generics,
        params=params,
        ret=ret,
        where_clause=where_clause,
        body=body,
    )


def _parse_enum(cursor: _Cursor, annotations: AnnotationList, visibility: Tokens, config: Config) -> Declaration:
    keyword = cursor.take_ident("enum")
    name = cursor.take_ident(expected="enum name")
    generics = cursor.take_generics()
    where_clause = cursor.take_where(lambda tok: tok.is_group("{"))
    group = cursor.take_group("{")
    return EnumDecl(
        point=cursor.point("enum", name.text, annotations),
        visibility=visibility,
        keyword=keyword,
        name=name,
        generics=generics,
        where_clause=where_clause,
        variants=_parse_variants(group, config, cursor.pointer),
    )


def _parse_struct(cursor: _Cursor, annotations: AnnotationList, visibility: Tokens, config: Config) -> Declaration:
    keyword = cursor.take_ident("struct")
    name = cursor.take_ident(expected="struct name")
    generics = cursor.take_generics()
    fields: Optional[MemberList] = None
    terminator: Optional[Token] = None
    tok = cursor.peek()
    if tok is not None and tok.is_group("("):
        fields = _parse_fields(cursor.advance(), config, cursor.pointer)
        where_clause = cursor.take_where(lambda tok: tok.is_punct(";"))
        terminator = cursor.take_punct(";")
    else:
        where_clause = cursor.take_where(lambda tok: tok.is_group("{") or tok.is_punct(";"))
        tok = cursor.peek()
        if tok is not None and tok.is_group("{"):
            fields = _parse_fields(cursor.advance(), config, cursor.pointer)
        else:
            terminator = cursor.take_punct(";")
    return StructDecl(
        point=cursor.point("struct", name.text, annotations),
        visibility=visibility,
        keyword=keyword,
        name=name,
        generics=generics,
        where_clause=where_clause,
        fields=fields,
        terminator=terminator,
    )


def _parse_trait(cursor: _Cursor, annotations: AnnotationList, visibility: Tokens, config: Config) -> Declaration:
    qualifiers = cursor.take_qualifiers(TRAIT_QUALIFIERS)
    keyword = cursor.take_ident("trait")
    name = cursor.take_ident(expected="trait name")
    generics = cursor.take_generics()
    tok = cursor.peek()
    if tok is not None and tok.is_punct("=") and not qualifiers:
        bounds = cursor.take_until(lambda tok: tok.is_ident("where") or tok.is_punct(";"))
        where_clause = cursor.take_where(lambda tok: tok.is_punct(";"))
        terminator = cursor.take_punct(";")
        return TraitAliasDecl(
            point=cursor.point("trait alias", name.text, annotations),
            visibility=visibility,
            keyword=keyword,
            name=name,
            generics=generics,
            bounds=bounds,
            where_clause=where_clause,
            terminator=terminator,
        )
    bounds = cursor.take_until(lambda tok: tok.is_ident("where") or tok.is_group("{"))
    where_clause = cursor.take_where(lambda tok: tok.is_group("{"))
    group = cursor.take_group("{")
    return TraitDecl(
        point=cursor.point("trait", name.text, annotations),
        visibility=visibility,
        qualifiers=qualifiers,
        keyword=keyword,
        name=name,
        generics=generics,
        bounds=bounds,
        where_clause=where_clause,
        items=_parse_trait_items(group, config, cursor.pointer),
    )


def _parse_type_alias(cursor: _Cursor, annotations: AnnotationList, visibility: Tokens, config: Config) -> Declaration:
    keyword = cursor.take_ident("type")
    name = cursor.take_ident(expected="type name")
    generics = cursor.take_generics()
    rest = cursor.take_until(lambda tok: tok.is_punct(";"), angles=False)
    terminator = cursor.take_punct(";")
    return TypeAliasDecl(
        point=cursor.point("type", name.text, annotations),
        visibility=visibility,
        keyword=keyword,
        name=name,
        generics=generics,
        rest=rest,
        terminator=terminator,
    )


def _parse_use(cursor: _Cursor, annotations: AnnotationList, visibility: Tokens, config: Config) -> Declaration:
    keyword = cursor.take_ident("use")
    tree = cursor.take_until(lambda tok: tok.is_punct(";"), angles=False)
    if not tree:
        raise cursor.error("import path")
    terminator = cursor.take_punct(";")
    return ImportDecl(
        point=cursor.point("use", "", annotations),
        visibility=visibility,
        keyword=keyword,
        tree=tree,
        terminator=terminator,
    )


def _parse_extern_crate(cursor: _Cursor, annotations: AnnotationList, visibility: Tokens, config: Config) -> Declaration:
    keyword = cursor.take_ident("extern")
    crate = cursor.take_ident("crate")
    name = cursor.take_ident(expected="crate name")
    start = cursor.pos
    if cursor.take_optional_ident("as"):
        cursor.take_ident(expected="crate alias")
    alias = cursor.since(start)
    terminator = cursor.take_punct(";")
    return ExternAliasDecl(
        point=cursor.point("extern crate", name.text, annotations),
        visibility=visibility,
        keyword=keyword,
        crate=crate,
        name=name,
        alias=alias,
        terminator=terminator,
    )


def _macro_bang_offset(cursor: _Cursor) -> Optional[int]:
    offset = 0
    tok = cursor.peek()
    if tok is not None and tok.is_punct(":") and tok.joint:
        offset = 2
    while True:
        tok = cursor.peek(offset)
        if tok is None or tok.kind != "ident":
            return None
        offset += 1
        tok = cursor.peek(offset)
        if tok is not None and tok.is_punct("!"):
            return offset
        nxt = cursor.peek(offset + 1)
        if tok is None or not (tok.is_punct(":") and tok.joint and nxt is not None and nxt.is_punct(":")):
            return None
        offset += 2


def _parse_macro(cursor: _Cursor, annotations: AnnotationList, visibility: Tokens, config: Config) -> Declaration:
    offset = _macro_bang_offset(cursor)
    if offset is None:
        raise cursor.error("macro path")
    start = cursor.pos
    cursor.pos += offset
    path = cursor.since(start)
    bang = cursor.take_punct("!")
    name = ()
    tok = cursor.peek()
    if tok is not None and tok.kind == "ident":
        name = (cursor.advance(),)
    tok = cursor.peek()
    if tok is None or not tok.is_group():
        raise cursor.error("macro arguments")
    body = cursor.advance()
    if body.is_group("{"):
        terminator = cursor.take_optional_punct(";")
    else:
        terminator = (cursor.take_punct(";"),)
    return MacroInvocationDecl(
        point=cursor.point("macro invocation", render(path, strip=True) + "!", annotations),
        visibility=visibility,
        path=path,
        bang=bang,
        name=name,
        body=body,
        terminator=terminator,
    )


_PARSERS = {
    "const": _parse_const,
    "enum": _parse_enum,
    "extern crate": _parse_extern_crate,
    "fn": _parse_function,
    "macro invocation": _parse_macro,
    "static": _parse_static,
    "struct": _parse_struct,
    "trait": _parse_trait,
    "type": _parse_type_alias,
    "use": _parse_use,
}


def _select_shape(cursor: _Cursor) -> Optional[str]:
    tok = cursor.peek()
    if tok is None:
        return None
    nxt = cursor.peek(1)
    if tok.is_ident("extern") and nxt is not None and nxt.is_ident("crate"):
        return "extern crate"
    if tok.is_ident("const") and nxt is not None and nxt.kind == "ident" and nxt.text not in FN_QUALIFIERS | {"fn"}:
        return "const"
    offset = 0
    while True:
        tok = cursor.peek(offset)
        if tok is None:
            return None
        if tok.kind == "ident" and tok.text in FN_QUALIFIERS | TRAIT_QUALIFIERS:
            offset += 1
        elif tok.kind == "literal" and offset > 0 and cursor.peek(offset - 1).is_ident("extern"):
            offset += 1
        else:
            break
    if offset:
        qualifiers = {cursor.peek(i).text for i in range(offset)}
        if tok.is_ident("fn") and not qualifiers & {"auto"}:
            return "fn"
        if tok.is_ident("trait") and qualifiers <= TRAIT_QUALIFIERS:
            return "trait"
        return None
    if tok.kind == "ident" and tok.text in _PARSERS:
        return tok.text
    if _macro_bang_offset(cursor) is not None:
        return "macro invocation"
    return None


def _item_end(tokens: Sequence[Token], index: int) -> int:
    while index < len(tokens):
        tok = tokens[index]
        index += 1
        if tok.is_punct(";") or tok.is_group("{"):
            break
    return index


def _unsupported_diagnostic(cursor: _Cursor) -> Diagnostic:
    tok = cursor.peek()
    return Diagnostic(
        code="W_DECLARATION_UNSUPPORTED",
        message="unsupported declaration; passed through unchanged",
        expected=", ".join(SUPPORTED_SHAPES),
        got=tok.text if tok is not None else "end of input",
        path=cursor.pointer,
        line=tok.line if tok is not None else 0,
        col=tok.col if tok is not None else 0,
        severity="warning",
    )


def parse_declaration(
    tokens: Sequence[Token],
    config: Config,
    pointer: str = json_pointer("item"),
    start: int = 0,
) -> tuple[Declaration, int]:
    """Parse one declaration starting at ``start``.

    Shapes outside the supported set, and recognised keywords whose tokens do
    not fit the shape, come back as ``UnsupportedDecl`` so the caller can pass
    them through unchanged.
    """
    annotations, pos = scan_annotations(tokens, start, config, pointer)
    cursor = _Cursor(tokens, pos, pointer)
    visibility = cursor.take_visibility()
    shape = _select_shape(cursor)
    if shape is None:
        end = _item_end(tokens, pos)
        return UnsupportedDecl(tokens=tuple(tokens[start:end]), diagnostic=_unsupported_diagnostic(cursor)), end
    try:
        decl = _PARSERS[shape](cursor, annotations, visibility, config)
    except RewriteError as exc:
        end = _item_end(tokens, pos)
        return UnsupportedDecl(tokens=tuple(tokens[start:end]), diagnostic=exc.diagnostic), end
    return decl, cursor.pos


def _parse_inner_attributes(tokens: Sequence[Token], config: Config, pointer: str) -> tuple[Optional[Declaration], int]:
    annotations, _ = scan_annotations(tokens, 0, config, pointer)
    inner = []
    end = 0
    for annotation in annotations:
        if not annotation.inner:
            break
        inner.append(annotation)
        end += len(annotation.tokens)
    if not inner:
        return None, 0
    point = AttachmentPoint(kind="inner attributes", name="", pointer=pointer, annotations=tuple(inner))
    return InnerAttributesDecl(point=point), end


def parse_items(tokens: Sequence[Token], config: Config) -> list[Declaration]:
    items: list[Declaration] = []
    head, pos = _parse_inner_attributes(tokens, config, json_pointer("items", "0"))
    if head is not None:
        items.append(head)
    while pos < len(tokens):
        decl, pos = parse_declaration(tokens, config, json_pointer("items", str(len(items))), pos)
        items.append(decl)
    return items
