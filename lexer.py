from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional


class SexpError(Exception):
    """Base class for interpreter errors."""


class SourceError(SexpError):
    """An error tied to a position in the program text."""

    def __init__(self, message: str, line: int, column: int) -> None:
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column


class LexError(SourceError):
    """Raised when the source text cannot be tokenized."""


class ParseError(SourceError):
    """Raised when parsing fails."""


LPAREN = "LPAREN"
RPAREN = "RPAREN"
COMMA = "COMMA"
IDENTIFIER = "IDENTIFIER"
STRING = "STRING"
NUMBER = "NUMBER"
TRUE = "TRUE"
FALSE = "FALSE"
NULL = "NULL"
EOF = "EOF"


@dataclass(frozen=True)
class Token:
    kind: str
    text: Optional[str]
    line: int
    column: int


KEYWORDS = {
    "true": TRUE,
    "false": FALSE,
    "null": NULL,
}

SYMBOLS = {
    "(": LPAREN,
    ")": RPAREN,
    ",": COMMA,
}

ESCAPES = {
    '"': '"',
    "\\": "\\",
    "n": "\n",
    "t": "\t",
    "r": "\r",
}

WHITESPACE = " \t\r\n"
DIGITS = "0123456789"
LETTERS = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"


class Lexer:
    def __init__(self, text: str) -> None:
        self.text = text
        self.index = 0
        self.line = 1
        self.column = 1

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        tokens_append = tokens.append
        _advance = self._advance
        symbols = SYMBOLS
        text = self.text
        n = len(text)

        while self.index < n:
            ch: str = text[self.index]
            if ch in WHITESPACE:
                _advance()
                continue
            if ch in symbols:
                tokens_append(Token(symbols[ch], ch, self.line, self.column))
                _advance()
                continue
            if ch == '"':
                tokens_append(self._consume_string())
                continue
            if ch in DIGITS:
                tokens_append(self._consume_number())
                continue
            if self._is_identifier_start(ch):
                tokens_append(self._consume_identifier())
                continue
            raise LexError(
                f"Unexpected character '{ch}' at {self.line}:{self.column}",
                self.line,
                self.column,
            )
        tokens_append(Token(EOF, None, self.line, self.column))
        return tokens

    def _consume_string(self) -> Token:
        line, col = self.line, self.column
        self._advance()  # consume opening quote
        chars: List[str] = []
        while not self._eof:
            ch = self._peek()
            if ch == '"':
                self._advance()
                return Token(STRING, "".join(chars), line, col)
            if ch == "\\":
                self._advance()
                if self._eof:
                    break
                escaped = self._peek()
                chars.append(ESCAPES.get(escaped, escaped))
                self._advance()
                continue
            chars.append(ch)
            self._advance()
        raise LexError(f"Unterminated string literal at {line}:{col}", line, col)

    def _consume_number(self) -> Token:
        line, col = self.line, self.column
        whole = self._consume_digits()
        if not self._eof and self._peek() == ".":
            self._advance()  # consume '.'
            frac = self._consume_digits()
            if frac == "":
                raise LexError(f"Invalid float literal at {line}:{col}", line, col)
            return Token(NUMBER, f"{whole}.{frac}", line, col)
        return Token(NUMBER, whole, line, col)

    def _consume_digits(self) -> str:
        text = self.text
        n = len(text)
        start = self.index
        while self.index < n and text[self.index] in DIGITS:
            self._advance()
        return text[start:self.index]

    def _consume_identifier(self) -> Token:
        line, col = self.line, self.column
        text = self.text
        n = len(text)
        start = self.index
        while self.index < n and self._is_identifier_part(text[self.index]):
            self._advance()
        value = text[start:self.index]
        kind = KEYWORDS.get(value.lower())
        if kind is not None:
            return Token(kind, value.lower(), line, col)
        return Token(IDENTIFIER, value, line, col)

    def _is_identifier_start(self, ch: str) -> bool:
        return ch in LETTERS or ch == "_"

    def _is_identifier_part(self, ch: str) -> bool:
        return ch in LETTERS or ch in DIGITS or ch == "_"

    @property
    def _eof(self) -> bool:
        return self.index >= len(self.text)

    def _peek(self) -> str:
        return self.text[self.index]

    def _advance(self) -> None:
        if self.text[self.index] == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.index += 1


def tokenize(source: str) -> List[Token]:
    return Lexer(source).tokenize()
