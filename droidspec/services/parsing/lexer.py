"""
Kotlin DSL tokenizer.

Covers the subset of Kotlin used by declarative build scripts: identifiers,
string and number literals, booleans, braces, calls, indexing, assignment,
null-safety operators and comments. Every token remembers its position so errors and warnings
can point at the offending line.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ...core.exceptions import GradleSyntaxError


class TokenKind(str, Enum):
    """Token categories."""

    IDENT = "ident"
    STRING = "string"
    NUMBER = "number"
    LBRACE = "{"
    RBRACE = "}"
    LPAREN = "("
    RPAREN = ")"
    LBRACKET = "["
    RBRACKET = "]"
    COMMA = ","
    DOT = "."
    COLON = ":"
    SEMICOLON = ";"
    ASSIGN = "="
    PLUS_ASSIGN = "+="
    ARROW = "->"
    ELVIS = "?:"
    SAFE_DOT = "?."
    QUESTION = "?"
    NOT_NULL = "!!"
    EOF = "eof"


_PUNCTUATION = {
    "{": TokenKind.LBRACE,
    "}": TokenKind.RBRACE,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "[": TokenKind.LBRACKET,
    "]": TokenKind.RBRACKET,
    ",": TokenKind.COMMA,
    ".": TokenKind.DOT,
    ":": TokenKind.COLON,
    ";": TokenKind.SEMICOLON,
    "=": TokenKind.ASSIGN,
}

# Character following "?"
_NULL_SAFETY = {
    ":": TokenKind.ELVIS,
    ".": TokenKind.SAFE_DOT,
}

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    '"': '"',
    "'": "'",
    "\\": "\\",
    "$": "$",
}


@dataclass(frozen=True)
class Token:
    """A lexical token with its source span."""

    kind: TokenKind
    value: str
    line: int
    column: int
    start: int
    end: int
    newline_before: bool = False
    has_template: bool = False


class Lexer:
    """Converts build script text into a token list."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.line = 1
        self.column = 1
        self._newline_pending = False

    def _error(self, message: str) -> GradleSyntaxError:
        return GradleSyntaxError(message=message, line=self.line, column=self.column)

    def _peek(self, offset: int = 0) -> str:
        index = self.pos + offset
        return self.text[index] if index < len(self.text) else ""

    def _advance(self, count: int = 1) -> str:
        chunk = self.text[self.pos:self.pos + count]
        for char in chunk:
            if char == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
        self.pos += count
        return chunk

    def _skip_trivia(self) -> None:
        """Skip whitespace and comments, noting line breaks."""
        while self.pos < len(self.text):
            char = self._peek()
            if char == "\n":
                self._newline_pending = True
                self._advance()
            elif char.isspace():
                self._advance()
            elif char == "/" and self._peek(1) == "/":
                while self.pos < len(self.text) and self._peek() != "\n":
                    self._advance()
            elif char == "/" and self._peek(1) == "*":
                end = self.text.find("*/", self.pos + 2)
                if end == -1:
                    raise self._error("Unterminated block comment")
                if "\n" in self.text[self.pos:end]:
                    self._newline_pending = True
                self._advance(end + 2 - self.pos)
            else:
                return

    def _make(self, kind: TokenKind, value: str, line: int, column: int, start: int, **extra: bool) -> Token:
        token = Token(
            kind=kind,
            value=value,
            line=line,
            column=column,
            start=start,
            end=self.pos,
            newline_before=self._newline_pending,
            **extra,
        )
        self._newline_pending = False
        return token

    def _read_string(self) -> tuple[str, bool]:
        """Read a quoted string, returning its value and whether it has templates."""
        if self.text.startswith('"""', self.pos):
            self._advance(3)
            end = self.text.find('"""', self.pos)
            if end == -1:
                raise self._error("Unterminated raw string")
            value = self._advance(end - self.pos)
            self._advance(3)
            return value, "$" in value

        self._advance()
        chars: list[str] = []
        has_template = False
        while True:
            char = self._peek()
            if char == "" or char == "\n":
                raise self._error("Unterminated string literal")
            if char == '"':
                self._advance()
                return "".join(chars), has_template
            if char == "\\":
                escaped = self._peek(1)
                if escaped == "u":
                    code = self.text[self.pos + 2:self.pos + 6]
                    try:
                        chars.append(chr(int(code, 16)))
                    except ValueError as e:
                        raise self._error(f"Invalid unicode escape: \\u{code}") from e
                    self._advance(6)
                    continue
                if escaped not in _ESCAPES:
                    raise self._error(f"Invalid escape sequence: \\{escaped}")
                chars.append(_ESCAPES[escaped])
                self._advance(2)
                continue
            if char == "$" and (self._peek(1) == "{" or self._peek(1).isalpha() or self._peek(1) == "_"):
                has_template = True
            chars.append(self._advance())

    def tokenize(self) -> list[Token]:
        """Tokenize the whole text.

        Returns:
            Token list terminated by an EOF token.

        Raises:
            GradleSyntaxError: On characters outside the supported subset.
        """
        tokens: list[Token] = []
        while True:
            self._skip_trivia()
            line, column, start = self.line, self.column, self.pos
            if self.pos >= len(self.text):
                tokens.append(self._make(TokenKind.EOF, "", line, column, start))
                return tokens

            char = self._peek()
            if char == '"':
                value, has_template = self._read_string()
                tokens.append(
                    self._make(TokenKind.STRING, value, line, column, start, has_template=has_template)
                )
            elif char.isdigit():
                while self._peek().isdigit() or self._peek() == "_":
                    self._advance()
                if self._peek() == "." and self._peek(1).isdigit():
                    self._advance()
                    while self._peek().isdigit():
                        self._advance()
                if self._peek() in ("L", "f", "F"):
                    self._advance()
                tokens.append(self._make(TokenKind.NUMBER, self.text[start:self.pos], line, column, start))
            elif char.isalpha() or char == "_":
                while self._peek().isalnum() or self._peek() == "_":
                    self._advance()
                tokens.append(self._make(TokenKind.IDENT, self.text[start:self.pos], line, column, start))
            elif char == "`":
                end = self.text.find("`", self.pos + 1)
                if end == -1 or "\n" in self.text[self.pos:end]:
                    raise self._error("Unterminated backtick identifier")
                self._advance(end + 1 - self.pos)
                tokens.append(self._make(TokenKind.IDENT, self.text[start + 1:end], line, column, start))
            elif char == "+" and self._peek(1) == "=":
                self._advance(2)
                tokens.append(self._make(TokenKind.PLUS_ASSIGN, "+=", line, column, start))
            elif char == "-" and self._peek(1) == ">":
                self._advance(2)
                tokens.append(self._make(TokenKind.ARROW, "->", line, column, start))
            elif char == "?":
                kind = _NULL_SAFETY.get(self._peek(1), TokenKind.QUESTION)
                self._advance(len(kind.value))
                tokens.append(self._make(kind, kind.value, line, column, start))
            elif char == "!" and self._peek(1) == "!":
                self._advance(2)
                tokens.append(self._make(TokenKind.NOT_NULL, "!!", line, column, start))
            elif char in _PUNCTUATION:
                if char == "=" and self._peek(1) == "=":
                    raise self._error("Comparison operators are not supported")
                self._advance()
                tokens.append(self._make(_PUNCTUATION[char], char, line, column, start))
            else:
                raise self._error(f"Unexpected character {char!r}")


def tokenize(text: str) -> list[Token]:
    """Tokenize build script text."""
    return Lexer(text).tokenize()
