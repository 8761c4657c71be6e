from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from .errors import Diagnostic, RewriteError

PUNCT_CHARS = frozenset("~!@#$%^&*-+=|\\;:,./<>?")
OPEN_DELIMS = {"(": ")", "[": "]", "{": "}"}
CLOSE_DELIMS = frozenset(")]}")


@dataclass(frozen=True)
class Token:
    """One token tree node.

    ``leading`` holds the whitespace and plain comments that precede the token
    in the source, so rendering a sequence of tokens reproduces the input.
    Groups keep their children plus the trivia in front of the closing
    delimiter.
    """

    kind: str
    text: str
    leading: str = ""
    line: int = 0
    col: int = 0
    joint: bool = False
    children: tuple[Token, ...] = ()
    close: str = ""
    close_leading: str = ""

    def is_ident(self, name: Optional[str] = None) -> bool:
        return self.kind == "ident" and (name is None or self.text == name)

    def is_punct(self, ch: str) -> bool:
        return self.kind == "punct" and self.text == ch

    def is_group(self, delim: Optional[str] = None) -> bool:
        return self.kind == "group" and (delim is None or self.text == delim)


@dataclass(frozen=True)
class TokenStream:
    tokens: tuple[Token, ...]
    trailing: str


def render(tokens: Iterable[Token], strip: bool = False) -> str:
    out: list[str] = []
    _render_into(tokens, out)
    text = "".join(out)
    if strip:
        return text.strip()
    return text


def _render_into(tokens: Iterable[Token], out: list[str]) -> None:
    for tok in tokens:
        out.append(tok.leading)
        out.append(tok.text)
        if tok.kind == "group":
            _render_into(tok.children, out)
            out.append(tok.close_leading)
            out.append(tok.close)


def contains_ident(tokens: Iterable[Token], name: str) -> bool:
    for tok in tokens:
        if tok.is_ident(name):
            return True
        if tok.kind == "group" and contains_ident(tok.children, name):
            return True
    return False


def is_doc_inner(tok: Token) -> bool:
    return tok.text.startswith(("//!", "/*!"))


def doc_value(tok: Token) -> str:
    if tok.text.startswith("/*"):
        return tok.text[3:-2]
    return tok.text[3:]


def _is_ident_start(ch: str) -> bool:
    return ch.isalpha() or ch == "_"


def _is_ident_continue(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


class _Lexer:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.line = 1
        self.col = 1

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def peek(self, offset: int = 0) -> str:
        index = self.pos + offset
        if index < len(self.text):
            return self.text[index]
        return ""

    def startswith(self, prefix: str, offset: int = 0) -> bool:
        return self.text.startswith(prefix, self.pos + offset)

    def advance(self, count: int) -> str:
        chunk = self.text[self.pos : self.pos + count]
        newlines = chunk.count("\n")
        if newlines:
            self.line += newlines
            self.col = len(chunk) - chunk.rfind("\n")
        else:
            self.col += len(chunk)
        self.pos += len(chunk)
        return chunk

    def error(self, code: str, message: str, expected: str, got: str, line: int, col: int) -> RewriteError:
        return RewriteError(
            Diagnostic(
                code=code,
                message=message,
                expected=expected,
                got=got,
                path="",
                line=line,
                col=col,
            )
        )

    def _line_end(self) -> int:
        end = self.text.find("\n", self.pos)
        if end == -1:
            return len(self.text)
        if end > self.pos and self.text[end - 1] == "\r":
            return end - 1
        return end

    def _block_comment_length(self) -> int:
        line, col = self.line, self.col
        depth = 0
        index = self.pos
        while index < len(self.text):
            if self.text.startswith("/*", index):
                depth += 1
                index += 2
                continue
            if self.text.startswith("*/", index):
                depth -= 1
                index += 2
                if depth == 0:
                    return index - self.pos
                continue
            index += 1
        raise self.error(
            "E_TOKEN_COMMENT_UNTERMINATED",
            "unterminated block comment",
            "*/",
            "end of input",
            line,
            col,
        )

    def _doc_line_here(self) -> bool:
        return (self.startswith("///") and not self.startswith("////")) or self.startswith("//!")

    def _doc_block_here(self) -> bool:
        if self.startswith("/*!"):
            return True
        return self.startswith("/**") and not self.startswith("/***") and not self.startswith("/**/")

    def _shebang_here(self) -> bool:
        # `#![` at the head of a file is an inner attribute, not an interpreter line.
        if self.pos != 0 or not self.startswith("#!"):
            return False
        rest = _Lexer(self.text[2:])
        rest.skip_trivia()
        return rest.peek() != "["

    def skip_trivia(self) -> str:
        start = self.pos
        if self._shebang_here():
            self.advance(self._line_end())
        while not self.at_end():
            ch = self.peek()
            if ch.isspace():
                self.advance(1)
            elif self.startswith("//") and not self._doc_line_here():
                self.advance(self._line_end() - self.pos)
            elif self.startswith("/*") and not self._doc_block_here():
                self.advance(self._block_comment_length())
            else:
                break
        return self.text[start : self.pos]

    def read_token(self, leading: str) -> Token:
        line, col = self.line, self.col
        ch = self.peek()

        if self.startswith("//"):
            text = self.advance(self._line_end() - self.pos)
            return Token(kind="doc", text=text, leading=leading, line=line, col=col)
        if self.startswith("/*"):
            text = self.advance(self._block_comment_length())
            return Token(kind="doc", text=text, leading=leading, line=line, col=col)

        if _is_ident_start(ch):
            length = self._literal_prefix_length()
            if length:
                return Token(kind="literal", text=self.advance(length), leading=leading, line=line, col=col)
            if self.startswith("r#") and _is_ident_start(self.peek(2)):
                length = 2
            else:
                length = 0
            while _is_ident_continue(self.peek(length)):
                length += 1
            return Token(kind="ident", text=self.advance(length), leading=leading, line=line, col=col)

        if ch.isdigit():
            return Token(kind="literal", text=self.advance(self._number_length()), leading=leading, line=line, col=col)

        if ch == "'":
            return self._read_quote(leading, line, col)

        if ch == '"':
            length = self._with_suffix(self._quoted_length(0, '"'))
            return Token(kind="literal", text=self.advance(length), leading=leading, line=line, col=col)

        if ch in PUNCT_CHARS:
            self.advance(1)
            joint = self.peek() in PUNCT_CHARS
            return Token(kind="punct", text=ch, leading=leading, line=line, col=col, joint=joint)

        raise self.error(
            "E_TOKEN_CHARACTER_INVALID",
            f"unexpected character {ch!r}",
            "token",
            ch,
            line,
            col,
        )

    def _literal_prefix_length(self) -> int:
        for prefix in ("br", "cr", "r"):
            if self.startswith(prefix):
                after = len(prefix)
                hashes = 0
                while self.peek(after + hashes) == "#":
                    hashes += 1
                if self.peek(after + hashes) == '"':
                    return self._with_suffix(self._raw_length(after + hashes, hashes))
        for prefix in ("b", "c"):
            if self.startswith(prefix + '"'):
                return self._with_suffix(self._quoted_length(1, '"'))
        if self.startswith("b'"):
            return self._with_suffix(self._quoted_length(1, "'"))
        return 0

    def _raw_length(self, quote_offset: int, hashes: int) -> int:
        terminator = '"' + "#" * hashes
        end = self.text.find(terminator, self.pos + quote_offset + 1)
        if end == -1:
            raise self.error(
                "E_TOKEN_LITERAL_UNTERMINATED",
                "unterminated raw string literal",
                terminator,
                "end of input",
                self.line,
                self.col,
            )
        return end + len(terminator) - self.pos

    def _quoted_length(self, quote_offset: int, quote: str) -> int:
        index = self.pos + quote_offset + 1
        while index < len(self.text):
            ch = self.text[index]
            if ch == "\\":
                index += 2
                continue
            if ch == quote:
                return index + 1 - self.pos
            index += 1
        raise self.error(
            "E_TOKEN_LITERAL_UNTERMINATED",
            "unterminated literal",
            quote,
            "end of input",
            self.line,
            self.col,
        )

    def _with_suffix(self, length: int) -> int:
        while _is_ident_continue(self.peek(length)):
            length += 1
        return length

    def _number_length(self) -> int:
        radix_prefixed = self.startswith("0x") or self.startswith("0b") or self.startswith("0o")
        length = 0
        seen_dot = False
        while True:
            ch = self.peek(length)
            if _is_ident_continue(ch):
                if ch in "eE" and not radix_prefixed and self.peek(length + 1) in ("+", "-"):
                    length += 2
                    continue
                length += 1
            elif ch == "." and not seen_dot and not radix_prefixed and self.peek(length + 1).isdigit():
                seen_dot = True
                length += 1
            else:
                return length

    def _read_quote(self, leading: str, line: int, col: int) -> Token:
        if self.peek(1) == "\\" or (self.peek(2) == "'" and self.peek(1) != ""):
            length = self._with_suffix(self._quoted_length(0, "'"))
            return Token(kind="literal", text=self.advance(length), leading=leading, line=line, col=col)
        if _is_ident_start(self.peek(1)):
            length = 1
            while _is_ident_continue(self.peek(length)):
                length += 1
            return Token(kind="lifetime", text=self.advance(length), leading=leading, line=line, col=col)
        raise self.error(
            "E_TOKEN_LITERAL_UNTERMINATED",
            "unterminated character literal",
            "'",
            self.peek(1) or "end of input",
            line,
            col,
        )


def tokenize(text: str) -> TokenStream:
    lexer = _Lexer(text)
    stack: list[tuple[str, str, int, int, list[Token]]] = []
    current: list[Token] = []
    leading = ""
    while True:
        leading = lexer.skip_trivia()
        if lexer.at_end():
            break
        line, col = lexer.line, lexer.col
        ch = lexer.peek()
        if ch in OPEN_DELIMS:
            lexer.advance(1)
            stack.append((ch, leading, line, col, current))
            current = []
            continue
        if ch in CLOSE_DELIMS:
            if not stack or OPEN_DELIMS[stack[-1][0]] != ch:
                expected = OPEN_DELIMS[stack[-1][0]] if stack else "end of input"
                raise lexer.error(
                    "E_TOKEN_DELIMITER_UNBALANCED",
                    f"unexpected closing delimiter `{ch}`",
                    expected,
                    ch,
                    line,
                    col,
                )
            lexer.advance(1)
            open_ch, open_leading, open_line, open_col, parent = stack.pop()
            parent.append(
                Token(
                    kind="group",
                    text=open_ch,
                    leading=open_leading,
                    line=open_line,
                    col=open_col,
                    children=tuple(current),
                    close=ch,
                    close_leading=leading,
                )
            )
            current = parent
            continue
        current.append(lexer.read_token(leading))

    if stack:
        open_ch, _, line, col, _ = stack[-1]
        raise lexer.error(
            "E_TOKEN_DELIMITER_UNCLOSED",
            f"unclosed delimiter `{open_ch}`",
            OPEN_DELIMS[open_ch],
            "end of input",
            line,
            col,
        )
    return TokenStream(tokens=tuple(current), trailing=leading)
