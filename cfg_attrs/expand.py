from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from .annotations import Annotation, parse_conditional_body
from .config import DEFAULT_CONFIG, Config
from .decl import Declaration, UnsupportedDecl, parse_declaration, parse_items
from .errors import Diagnostic, RewriteError, json_pointer
from .report import compile_error, has_errors
from .rewrite import rewrite_annotation, rewrite_declaration
from .tokens import Token, contains_ident, render, tokenize


@dataclass(frozen=True)
class Expansion:
    text: str
    diagnostics: tuple[Diagnostic, ...]

    @property
    def ok(self) -> bool:
        return not has_errors(self.diagnostics)


def _annotation_errors(annotations: Iterable[Annotation]) -> list[Diagnostic]:
    return [annotation.error for annotation in annotations if annotation.error is not None]


def _collect(decl: Declaration, warn: bool) -> list[Diagnostic]:
    if isinstance(decl, UnsupportedDecl):
        return [decl.diagnostic] if warn else []
    diagnostics: list[Diagnostic] = []
    for point in decl.attachment_points():
        diagnostics.extend(_annotation_errors(point.annotations))
    return diagnostics


def _emit(decl: Declaration, config: Config) -> str:
    if isinstance(decl, UnsupportedDecl):
        return render(decl.tokens)
    return decl.reconstruct(rewrite_declaration(decl, config))


def _trailing_tokens(decl: Declaration, tokens: Sequence[Token], end: int, pointer: str) -> UnsupportedDecl:
    tok = tokens[end]
    return UnsupportedDecl(
        tokens=tuple(tokens),
        diagnostic=Diagnostic(
            code="W_DECLARATION_TRAILING_TOKENS",
            message=f"unexpected tokens after the {decl.kind} declaration; passed through unchanged",
            expected="end of declaration",
            got=tok.text,
            path=pointer,
            line=tok.line,
            col=tok.col,
            severity="warning",
        ),
    )


def _invocation_directive(args: str, config: Config) -> str:
    """Render the invoking directive's own arguments in native form.

    A deferred directive comes back as a fresh invocation whose arguments are
    the condition and list it was re-emitted with.
    """
    arg_stream = tokenize(args)
    if not arg_stream.tokens:
        return ""
    pointer = json_pointer("args")
    group = Token(kind="group", text="(", children=arg_stream.tokens, close=")")
    try:
        body = parse_conditional_body(group, config, pointer)
    except RewriteError as exc:
        if exc.diagnostic.code not in ("E_DIRECTIVE_SEPARATOR_MISSING", "E_DIRECTIVE_CONDITION_MISSING"):
            raise
        first = arg_stream.tokens[0]
        raise RewriteError(
            Diagnostic(
                code="E_INVOCATION_ARGUMENT_UNEXPECTED",
                message=f"unexpected arguments: expected `predicate, attributes` after `{config.directive_name}`",
                expected="predicate, attributes",
                got=render(arg_stream.tokens, strip=True),
                path=pointer,
                line=first.line,
                col=first.col,
            )
        ) from exc
    invocation = Annotation(tokens=(Token(kind="punct", text="#"),), body=body)
    return rewrite_annotation(invocation, config) + "\n"


def expand(item: str, args: str = "", config: Optional[Config] = None) -> Expansion:
    """Expand one annotated declaration.

    ``args`` are the tokens written inside the invoking annotation's own
    parentheses. When present they are rendered as a native annotation in
    front of the expanded item. Fatal failures replace the whole output with a
    single ``compile_error!`` invocation.
    """
    config = config or DEFAULT_CONFIG
    pointer = json_pointer("item")
    try:
        head = _invocation_directive(args, config)
        stream = tokenize(item)
        decl, end = parse_declaration(stream.tokens, config, pointer)
        if end < len(stream.tokens) and not isinstance(decl, UnsupportedDecl):
            decl = _trailing_tokens(decl, stream.tokens, end, pointer)
        elif isinstance(decl, UnsupportedDecl):
            decl = UnsupportedDecl(tokens=stream.tokens, diagnostic=decl.diagnostic)
    except RewriteError as exc:
        return Expansion(text=compile_error(exc.diagnostic, config), diagnostics=(exc.diagnostic,))

    text = head + _emit(decl, config) + stream.trailing
    diagnostics = _collect(decl, config.warn_unsupported)
    return Expansion(text=text, diagnostics=tuple(diagnostics))


def transform_source(text: str, config: Optional[Config] = None) -> Expansion:
    """Rewrite every top-level item of a source file.

    Items outside the supported shapes are copied through; they are reported
    only when they mention the directive name, since nothing inside them was
    rewritten.
    """
    config = config or DEFAULT_CONFIG
    try:
        stream = tokenize(text)
    except RewriteError as exc:
        return Expansion(text=text, diagnostics=(exc.diagnostic,))

    out: list[str] = []
    diagnostics: list[Diagnostic] = []
    for decl in parse_items(stream.tokens, config):
        warn = config.warn_unsupported
        if isinstance(decl, UnsupportedDecl):
            warn = warn and contains_ident(decl.tokens, config.directive_name)
        diagnostics.extend(_collect(decl, warn))
        out.append(_emit(decl, config))
    out.append(stream.trailing)
    return Expansion(text="".join(out), diagnostics=tuple(diagnostics))
