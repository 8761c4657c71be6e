from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from .config import Config
from .errors import Diagnostic, RewriteError, json_pointer
from .report import quote
from .tokens import Token, doc_value, is_doc_inner, render


@dataclass(frozen=True)
class ConditionalBody:
    condition: tuple[Token, ...]
    separator: Token
    annotations: tuple[Annotation, ...]
    braced: bool = False

    @property
    def condition_text(self) -> str:
        return render(self.condition, strip=True)


@dataclass(frozen=True)
class Annotation:
    """One annotation at an attachment point or inside a directive.

    ``tokens`` are the original tokens (``#``, optional ``!``, the bracket
    group; a single doc comment; or the tokens of a bare meta). ``body`` is set
    for directives, ``error`` for annotations whose output is replaced by a
    diagnostic.
    """

    tokens: tuple[Token, ...]
    path: tuple[Token, ...] = ()
    args: tuple[Token, ...] = ()
    inner: bool = False
    bare: bool = False
    body: Optional[ConditionalBody] = None
    error: Optional[Diagnostic] = None

    @property
    def kind(self) -> str:
        if self.body is not None:
            return "directive"
        return "plain"

    @property
    def is_doc(self) -> bool:
        return self.tokens[0].kind == "doc"

    @property
    def name(self) -> str:
        if self.is_doc:
            return "doc"
        idents = [tok.text for tok in self.path if tok.kind == "ident"]
        return idents[-1] if idents else ""

    @property
    def path_text(self) -> str:
        return render(self.path, strip=True)

    @property
    def leading(self) -> str:
        return self.tokens[0].leading

    @property
    def meta_text(self) -> str:
        if self.is_doc:
            return f"doc = {quote(doc_value(self.tokens[0]))}"
        if self.bare:
            return render(self.tokens, strip=True)
        return render(self.tokens[-1].children, strip=True)


AnnotationList = tuple[Annotation, ...]


def _is_path_sep(tokens: Sequence[Token], index: int) -> bool:
    return (
        index + 1 < len(tokens)
        and tokens[index].is_punct(":")
        and tokens[index].joint
        and tokens[index + 1].is_punct(":")
    )


def split_path(tokens: Sequence[Token]) -> tuple[tuple[Token, ...], tuple[Token, ...]]:
    index = 0
    if _is_path_sep(tokens, 0):
        index = 2
    end = 0
    while index < len(tokens) and tokens[index].kind == "ident":
        index += 1
        end = index
        if _is_path_sep(tokens, index):
            index += 2
        else:
            break
    return tuple(tokens[:end]), tuple(tokens[end:])


def read_annotation(tokens: Sequence[Token], index: int) -> tuple[Optional[Annotation], int]:
    tok = tokens[index]
    if tok.kind == "doc":
        return Annotation(tokens=(tok,), inner=is_doc_inner(tok)), index + 1
    if not tok.is_punct("#"):
        return None, index
    cursor = index + 1
    inner = False
    if cursor < len(tokens) and tokens[cursor].is_punct("!"):
        inner = True
        cursor += 1
    if cursor >= len(tokens) or not tokens[cursor].is_group("["):
        return None, index
    path, args = split_path(tokens[cursor].children)
    annotation = Annotation(
        tokens=tuple(tokens[index : cursor + 1]),
        path=path,
        args=args,
        inner=inner,
    )
    return annotation, cursor + 1


def _diag(code: str, message: str, expected: str, got: str, path: str, tok: Token) -> RewriteError:
    return RewriteError(
        Diagnostic(
            code=code,
            message=message,
            expected=expected,
            got=got,
            path=path,
            line=tok.line,
            col=tok.col,
        )
    )


def _classify(annotation: Annotation, config: Config, pointer: str) -> Annotation:
    if annotation.is_doc or annotation.name != config.directive_name:
        return annotation
    args = annotation.args
    if len(args) != 1 or not args[0].is_group("("):
        raise _diag(
            "E_DIRECTIVE_ARGS_MALFORMED",
            f"expected attribute arguments in parentheses: `{config.directive_name}(...)`",
            f"{config.directive_name}(...)",
            render(annotation.tokens, strip=True),
            pointer,
            annotation.tokens[0],
        )
    body = parse_conditional_body(args[0], config, pointer)
    return Annotation(
        tokens=annotation.tokens,
        path=annotation.path,
        args=args,
        inner=annotation.inner,
        bare=annotation.bare,
        body=body,
    )


def scan_annotations(
    tokens: Sequence[Token], start: int, config: Config, pointer: str
) -> tuple[AnnotationList, int]:
    """Scan the annotation list at one attachment point.

    A malformed directive only replaces its own annotation with a diagnostic;
    scanning continues with its siblings.
    """
    annotations: list[Annotation] = []
    index = start
    while index < len(tokens):
        annotation, next_index = read_annotation(tokens, index)
        if annotation is None:
            break
        item_pointer = pointer + json_pointer("annotations", str(len(annotations)))
        try:
            annotation = _classify(annotation, config, item_pointer)
        except RewriteError as exc:
            annotation = Annotation(
                tokens=annotation.tokens,
                path=annotation.path,
                args=annotation.args,
                inner=annotation.inner,
                error=exc.diagnostic,
            )
        annotations.append(annotation)
        index = next_index
    return tuple(annotations), index


def parse_conditional_body(group: Token, config: Config, pointer: str) -> ConditionalBody:
    tokens = group.children
    separator_index = next((i for i, tok in enumerate(tokens) if tok.is_punct(",")), None)
    if separator_index is None:
        last = tokens[-1] if tokens else group
        raise _diag(
            "E_DIRECTIVE_SEPARATOR_MISSING",
            "expected `,` after the configuration predicate",
            ",",
            render(tokens, strip=True) or "empty arguments",
            pointer,
            last,
        )
    condition = tuple(tokens[:separator_index])
    if not condition:
        raise _diag(
            "E_DIRECTIVE_CONDITION_MISSING",
            "expected a configuration predicate before `,`",
            "configuration predicate",
            ",",
            pointer,
            tokens[separator_index],
        )

    rest = tokens[separator_index + 1 :]
    braced = (
        len(rest) in (1, 2)
        and rest[0].is_group("{")
        and (len(rest) == 1 or rest[1].is_punct(","))
    )
    items = rest[0].children if braced else rest
    return ConditionalBody(
        condition=condition,
        separator=tokens[separator_index],
        annotations=_scan_nested(items, config, pointer),
        braced=braced,
    )


def _ends_bare_meta(tok: Token) -> bool:
    # a meta never contains a top-level `#` or doc comment
    return tok.is_punct(",") or tok.is_punct("#") or tok.kind == "doc"


def _scan_nested(tokens: Sequence[Token], config: Config, pointer: str) -> AnnotationList:
    annotations: list[Annotation] = []
    index = 0
    while index < len(tokens):
        tok = tokens[index]
        if tok.is_punct(","):
            index += 1
            continue
        item_pointer = pointer + json_pointer("annotations", str(len(annotations)))
        annotation, next_index = read_annotation(tokens, index)
        if annotation is None:
            end = index + 1
            while end < len(tokens) and not _ends_bare_meta(tokens[end]):
                end += 1
            path, args = split_path(tokens[index:end])
            if not path:
                raise _diag(
                    "E_DIRECTIVE_ANNOTATION_EXPECTED",
                    "expected an attribute",
                    "#[meta], doc comment or meta",
                    render(tokens[index:end], strip=True),
                    item_pointer,
                    tok,
                )
            annotation = Annotation(tokens=tuple(tokens[index:end]), path=path, args=args, bare=True)
            next_index = end
        if annotation.inner:
            raise _diag(
                "E_DIRECTIVE_ANNOTATION_INNER",
                "expected an outer attribute, found an inner attribute",
                "#[meta]",
                render(annotation.tokens, strip=True),
                item_pointer,
                tok,
            )
        annotations.append(_classify(annotation, config, item_pointer))
        index = next_index
    return tuple(annotations)
