from __future__ import annotations
from dataclasses import dataclass
from typing import List, NoReturn, Tuple, Union

from lexer import (
    COMMA,
    EOF,
    FALSE,
    IDENTIFIER,
    LPAREN,
    NULL,
    NUMBER,
    RPAREN,
    STRING,
    TRUE,
    ParseError,
    Token,
)


Literal = Union[str, int, float, bool, None]


@dataclass(frozen=True)
class SourceLocation:
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


@dataclass(frozen=True)
class Node:
    location: SourceLocation


@dataclass(frozen=True)
class Const(Node):
    value: Literal


@dataclass(frozen=True)
class Call(Node):
    name: str
    arguments: Tuple[Node, ...]


CONSTANT_TOKENS = {STRING, NUMBER, TRUE, FALSE, NULL}

# Human-readable names for tokens in error messages.
DESCRIPTIONS = {
    LPAREN: "'('",
    RPAREN: "')'",
    COMMA: "','",
    IDENTIFIER: "function name",
    EOF: "end of input",
}

# Calls may nest this deep; deeper input would exhaust the Python stack.
MAX_NESTING = 128


class Parser:
    def __init__(self, tokens: List[Token]) -> None:
        if not tokens or tokens[-1].kind != EOF:
            raise ParseError("Token sequence must end with EOF", 1, 1)
        self.tokens = tokens
        self.index = 0
        self.depth = 0

    def parse(self) -> Node:
        expression = self._parse_expression()
        self._consume(EOF)
        return expression

    def _parse_expression(self) -> Node:
        token = self._peek()
        if token.kind == LPAREN:
            return self._parse_call()
        if token.kind in CONSTANT_TOKENS:
            return self._parse_constant()
        self._error(token, "expression")

    def _parse_call(self) -> Call:
        lparen = self._consume(LPAREN)
        if self.depth >= MAX_NESTING:
            raise ParseError(
                f"Nesting too deep at {lparen.line}:{lparen.column}: limit is {MAX_NESTING} calls",
                lparen.line,
                lparen.column,
            )
        self.depth += 1
        name_token = self._consume(IDENTIFIER)
        arguments: List[Node] = []
        while self._match(COMMA):
            arguments.append(self._parse_expression())
        self._consume(RPAREN)
        self.depth -= 1
        return Call(
            location=self._location_from_token(name_token),
            name=name_token.text or "",
            arguments=tuple(arguments),
        )

    def _parse_constant(self) -> Const:
        token = self._advance()
        location = self._location_from_token(token)
        if token.kind == STRING:
            return Const(location=location, value=token.text)
        if token.kind == NUMBER:
            return Const(location=location, value=self._normalize_number(token))
        if token.kind == TRUE:
            return Const(location=location, value=True)
        if token.kind == FALSE:
            return Const(location=location, value=False)
        if token.kind == NULL:
            return Const(location=location, value=None)
        self._error(token, "constant")

    def _normalize_number(self, token: Token) -> Union[int, float]:
        raw = token.text or ""
        if "." in raw:
            return float(raw)
        return int(raw)

    def _consume(self, kind: str) -> Token:
        token = self._peek()
        if token.kind != kind:
            self._error(token, DESCRIPTIONS.get(kind, kind))
        return self._advance()

    def _match(self, kind: str) -> bool:
        if self._peek().kind == kind:
            self._advance()
            return True
        return False

    def _peek(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        # EOF is sticky so lookahead never runs off the end.
        if token.kind != EOF:
            self.index += 1
        return token

    def _location_from_token(self, token: Token) -> SourceLocation:
        return SourceLocation(line=token.line, column=token.column)

    def _error(self, token: Token, expected: str) -> NoReturn:
        actual = token.kind if token.text is None else f"{token.kind} '{token.text}'"
        raise ParseError(
            f"Parse error at {token.line}:{token.column}: expected {expected}, got {actual}",
            token.line,
            token.column,
        )


def parse(tokens: List[Token]) -> Node:
    return Parser(tokens).parse()
