"""
Syntax tree for Kotlin DSL build scripts.

A recursive-descent parser turns tokens into a generic tree of statements.
Configuration blocks such as ``android { ... }`` are calls with a trailing
lambda body, so the tree has no knowledge of the Android schema; mapping
onto the descriptor happens in the parsing service.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from ...core.exceptions import GradleSyntaxError
from .lexer import Token, TokenKind, tokenize

# Infix functions allowed between a plugin id and its modifiers
INFIX_FUNCTIONS = frozenset({"version", "apply"})


@dataclass
class Literal:
    """A string, number or boolean literal."""

    value: str | int | float | bool | None
    line: int
    source: str = ""
    has_template: bool = False


@dataclass
class Reference:
    """A dotted name such as ``JavaVersion.VERSION_17``."""

    parts: tuple[str, ...]
    line: int
    source: str = ""

    @property
    def dotted(self) -> str:
        return ".".join(self.parts)


@dataclass
class Argument:
    """A call argument, optionally named."""

    value: Expr
    name: str | None = None


@dataclass
class Call:
    """A function call, optionally on a receiver and with a trailing lambda."""

    name: str
    args: list[Argument]
    line: int
    receiver: Expr | None = None
    body: list[Statement] | None = None
    source: str = ""

    @property
    def qualified_name(self) -> str:
        """Get the dotted call name when the receiver is a plain reference."""
        if isinstance(self.receiver, Reference):
            return f"{self.receiver.dotted}.{self.name}"
        return self.name


@dataclass
class MemberAccess:
    """Property access on a non-reference expression, e.g. ``foo().bar`` or ``x?.bar``."""

    target: Expr
    name: str
    line: int
    source: str = ""
    safe: bool = False


@dataclass
class NotNull:
    """A not-null assertion, ``expr!!``."""

    target: Expr
    line: int
    source: str = ""


@dataclass
class Index:
    """Indexing such as ``signingConfigs["debug"]``."""

    target: Expr
    index: Expr
    line: int
    source: str = ""


@dataclass
class Infix:
    """An infix call or binary operator.

    Covers ``id("x") version "1.0"``, elvis (``a ?: b``) and casts
    (``a as String``, where ``right`` is the type reference).
    """

    left: Expr
    operator: str
    right: Expr
    line: int
    source: str = ""


Expr = Union[Literal, Reference, Call, MemberAccess, NotNull, Index, Infix]


@dataclass
class Assignment:
    """``target = value`` or ``target += value``."""

    target: Reference
    operator: str
    value: Expr
    line: int


@dataclass
class ExpressionStatement:
    """A bare expression, usually a call or configuration block."""

    expr: Expr
    line: int


@dataclass
class Declaration:
    """``import``, ``val`` or ``var`` statements."""

    keyword: str
    name: str
    line: int
    value: Expr | None = None


Statement = Union[Assignment, ExpressionStatement, Declaration]


@dataclass
class Script:
    """A parsed build script."""

    statements: list[Statement] = field(default_factory=list)
    text: str = ""


class SyntaxParser:
    """Recursive-descent parser over a token list."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = tokenize(text)
        self.pos = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def _peek(self, offset: int = 1) -> Token:
        index = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def _advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.kind != TokenKind.EOF:
            self.pos += 1
        return token

    def _check(self, kind: TokenKind) -> bool:
        return self.current.kind == kind

    def _expect(self, kind: TokenKind, what: str) -> Token:
        if not self._check(kind):
            raise self._error(f"Expected {what}, found {self._describe(self.current)}")
        return self._advance()

    def _error(self, message: str, token: Token | None = None) -> GradleSyntaxError:
        token = token or self.current
        return GradleSyntaxError(message=message, line=token.line, column=token.column)

    @staticmethod
    def _describe(token: Token) -> str:
        if token.kind == TokenKind.EOF:
            return "end of file"
        return f"'{token.value}'"

    def _source(self, start: Token) -> str:
        """Get the source text from ``start`` to the last consumed token."""
        last = self.tokens[self.pos - 1]
        return self.text[start.start:last.end]

    def parse(self) -> Script:
        """Parse the whole script.

        Raises:
            GradleSyntaxError: On malformed input.
        """
        statements = self._parse_statements(TokenKind.EOF)
        return Script(statements=statements, text=self.text)

    def _parse_statements(self, terminator: TokenKind) -> list[Statement]:
        statements: list[Statement] = []
        while not self._check(terminator):
            if self._check(TokenKind.EOF):
                raise self._error("Unexpected end of file, missing '}'")
            if self._check(TokenKind.SEMICOLON):
                self._advance()
                continue
            statements.append(self._parse_statement())
            if not (
                self._check(terminator)
                or self._check(TokenKind.SEMICOLON)
                or self.current.newline_before
            ):
                raise self._error(
                    f"Unexpected {self._describe(self.current)} after statement"
                )
        return statements

    def _parse_statement(self) -> Statement:
        token = self.current
        if token.kind == TokenKind.IDENT and token.value == "import":
            return self._parse_import()
        if token.kind == TokenKind.IDENT and token.value in ("val", "var"):
            return self._parse_variable()

        expr = self._parse_expression()
        if self._check(TokenKind.ASSIGN) or self._check(TokenKind.PLUS_ASSIGN):
            operator = self._advance().value
            if not isinstance(expr, Reference):
                raise self._error("Invalid assignment target", token)
            value = self._parse_expression()
            return Assignment(target=expr, operator=operator, value=value, line=token.line)
        return ExpressionStatement(expr=expr, line=token.line)

    def _parse_import(self) -> Declaration:
        keyword = self._advance()
        parts = [self._expect(TokenKind.IDENT, "import path").value]
        while self._check(TokenKind.DOT):
            self._advance()
            parts.append(self._expect(TokenKind.IDENT, "import path segment").value)
        return Declaration(keyword=keyword.value, name=".".join(parts), line=keyword.line)

    def _parse_variable(self) -> Declaration:
        keyword = self._advance()
        name = self._expect(TokenKind.IDENT, "variable name").value
        if self._check(TokenKind.COLON):
            self._advance()
            self._expect(TokenKind.IDENT, "type name")
            while self._check(TokenKind.DOT):
                self._advance()
                self._expect(TokenKind.IDENT, "type name segment")
        value = None
        if self._check(TokenKind.ASSIGN) or (
            self._check(TokenKind.IDENT) and self.current.value == "by"
        ):
            self._advance()
            value = self._parse_expression()
        return Declaration(keyword=keyword.value, name=name, value=value, line=keyword.line)

    def _parse_expression(self) -> Expr:
        start = self.current
        expr = self._parse_infix()
        while self._check(TokenKind.ELVIS):
            self._advance()
            right = self._parse_infix()
            expr = Infix(left=expr, operator="?:", right=right, line=start.line)
            expr.source = self._source(start)
        return expr

    def _parse_infix(self) -> Expr:
        start = self.current
        expr = self._parse_cast()
        while (
            self._check(TokenKind.IDENT)
            and self.current.value in INFIX_FUNCTIONS
            and not self.current.newline_before
        ):
            operator = self._advance().value
            right = self._parse_cast()
            expr = Infix(left=expr, operator=operator, right=right, line=start.line)
            expr.source = self._source(start)
        return expr

    def _parse_cast(self) -> Expr:
        start = self.current
        expr = self._parse_postfix()
        while self._check(TokenKind.IDENT) and self.current.value == "as" and not self.current.newline_before:
            self._advance()
            operator = "as"
            if self._check(TokenKind.QUESTION):
                self._advance()
                operator = "as?"
            type_start = self.current
            parts = [self._expect(TokenKind.IDENT, "type name").value]
            while self._check(TokenKind.DOT):
                self._advance()
                parts.append(self._expect(TokenKind.IDENT, "type name segment").value)
            if self._check(TokenKind.QUESTION) and not self.current.newline_before:
                self._advance()
            target = Reference(parts=tuple(parts), line=type_start.line, source=self._source(type_start))
            expr = Infix(left=expr, operator=operator, right=target, line=start.line)
            expr.source = self._source(start)
        return expr

    def _parse_primary(self) -> Expr:
        token = self.current
        if token.kind == TokenKind.STRING:
            self._advance()
            return Literal(
                value=token.value,
                line=token.line,
                source=self._source(token),
                has_template=token.has_template,
            )
        if token.kind == TokenKind.NUMBER:
            self._advance()
            raw = token.value.replace("_", "").rstrip("LfF")
            value: int | float = float(raw) if "." in raw or token.value[-1] in "fF" else int(raw)
            return Literal(value=value, line=token.line, source=self._source(token))
        if token.kind == TokenKind.IDENT:
            self._advance()
            if token.value in ("true", "false"):
                return Literal(value=token.value == "true", line=token.line, source=token.value)
            if token.value == "null":
                return Literal(value=None, line=token.line, source=token.value)
            return Reference(parts=(token.value,), line=token.line, source=token.value)
        if token.kind == TokenKind.LPAREN:
            self._advance()
            inner = self._parse_expression()
            self._expect(TokenKind.RPAREN, "')'")
            return inner
        raise self._error(f"Unexpected {self._describe(token)}")

    def _parse_postfix(self) -> Expr:
        start = self.current
        expr = self._parse_primary()
        while True:
            token = self.current
            if token.kind in (TokenKind.DOT, TokenKind.SAFE_DOT):
                self._advance()
                name = self._expect(TokenKind.IDENT, "member name").value
                if token.kind == TokenKind.DOT and isinstance(expr, Reference):
                    expr = Reference(parts=expr.parts + (name,), line=expr.line)
                else:
                    expr = MemberAccess(
                        target=expr, name=name, line=start.line, safe=token.kind == TokenKind.SAFE_DOT
                    )
            elif token.kind == TokenKind.NOT_NULL and not token.newline_before:
                self._advance()
                expr = NotNull(target=expr, line=start.line)
            elif token.kind == TokenKind.LPAREN and not token.newline_before:
                expr = self._finish_call(expr, start, self._parse_arguments())
            elif token.kind == TokenKind.LBRACE and isinstance(expr, (Reference, Call, MemberAccess)):
                if isinstance(expr, Call):
                    if expr.body is not None:
                        break
                    self._advance()
                    expr.body = self._parse_statements(TokenKind.RBRACE)
                    self._expect(TokenKind.RBRACE, "'}'")
                else:
                    expr = self._finish_call(expr, start, [])
                    continue
            elif token.kind == TokenKind.LBRACKET and not token.newline_before:
                self._advance()
                index = self._parse_expression()
                self._expect(TokenKind.RBRACKET, "']'")
                expr = Index(target=expr, index=index, line=start.line)
            else:
                break
            expr.source = self._source(start)
        return expr

    def _finish_call(self, callee: Expr, start: Token, args: list[Argument]) -> Call:
        if isinstance(callee, Reference):
            receiver: Expr | None = None
            if len(callee.parts) > 1:
                receiver = Reference(parts=callee.parts[:-1], line=callee.line)
                receiver.source = ".".join(receiver.parts)
            call = Call(name=callee.parts[-1], args=args, line=start.line, receiver=receiver)
        elif isinstance(callee, MemberAccess):
            call = Call(name=callee.name, args=args, line=start.line, receiver=callee.target)
        else:
            raise self._error("Expression is not callable", start)
        call.source = self._source(start)
        return call

    def _parse_arguments(self) -> list[Argument]:
        self._expect(TokenKind.LPAREN, "'('")
        args: list[Argument] = []
        while not self._check(TokenKind.RPAREN):
            name = None
            if self._check(TokenKind.IDENT) and self._peek().kind == TokenKind.ASSIGN:
                name = self._advance().value
                self._advance()
            args.append(Argument(value=self._parse_expression(), name=name))
            if not self._check(TokenKind.COMMA):
                break
            self._advance()
        self._expect(TokenKind.RPAREN, "')' or ','")
        return args


def parse_script(text: str) -> Script:
    """Parse build script text into a syntax tree."""
    return SyntaxParser(text).parse()
