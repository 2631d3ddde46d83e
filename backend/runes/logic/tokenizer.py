"""
Tokenizer for GRL rule text.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List

from ..errors import GrlSyntaxError


class TokenType(str, Enum):
    IDENTIFIER = "identifier"
    KEYWORD = "keyword"
    NUMBER = "number"
    STRING = "string"
    OPERATOR = "operator"
    ERROR = "error"
    EOF = "eof"


KEYWORDS = frozenset({"rule", "when", "then", "salience", "true", "false", "null"})

# Longest match first
OPERATORS = (
    "&&", "||", "==", "!=", "<=", ">=",
    "<", ">", "+", "-", "*", "/", "=", "!",
    ".", "[", "]", "(", ")", "{", "}", ";",
)


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str
    offset: int
    line: int
    column: int

    def is_keyword(self, word: str) -> bool:
        return self.type is TokenType.KEYWORD and self.value == word

    def is_operator(self, symbol: str) -> bool:
        return self.type is TokenType.OPERATOR and self.value == symbol

    def describe(self) -> str:
        if self.type is TokenType.EOF:
            return "end of input"
        if self.type is TokenType.STRING:
            return f'string "{self.value}"'
        return f"'{self.value}'"


class Tokenizer:
    """
    Splits GRL source into tokens.

    Skips whitespace, ``// line`` comments and ``/* block */`` comments.
    String literals are double-quoted; ``\\"`` is the only escape.

    With ``recover=True`` a lexical error becomes an ERROR token (its value
    is the message) and scanning resumes one character past the error.
    """

    def __init__(self, text: str, recover: bool = False):
        self.text = text
        self.recover = recover
        self.pos = 0
        self.line = 1
        self.column = 1

    def tokenize(self) -> List[Token]:
        tokens = []
        while True:
            try:
                self._skip_ignored()
                if self.pos >= len(self.text):
                    tokens.append(Token(TokenType.EOF, "", self.pos, self.line, self.column))
                    return tokens
                tokens.append(self._next_token())
            except GrlSyntaxError as e:
                if not self.recover:
                    raise
                tokens.append(Token(TokenType.ERROR, e.message, e.offset, e.line, e.column))
                self.pos, self.line, self.column = e.offset, e.line, e.column
                self._advance()

    def _error(self, message: str) -> GrlSyntaxError:
        return GrlSyntaxError(message, self.line, self.column, self.pos)

    def _advance(self, count: int = 1) -> None:
        for _ in range(count):
            if self.text[self.pos] == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
            self.pos += 1

    def _skip_ignored(self) -> None:
        text = self.text
        while self.pos < len(text):
            char = text[self.pos]
            if char.isspace():
                self._advance()
            elif text.startswith("//", self.pos):
                while self.pos < len(text) and text[self.pos] != "\n":
                    self._advance()
            elif text.startswith("/*", self.pos):
                start = self._error("Unterminated block comment")
                end = text.find("*/", self.pos + 2)
                if end < 0:
                    raise start
                self._advance(end + 2 - self.pos)
            else:
                return

    def _next_token(self) -> Token:
        text = self.text
        char = text[self.pos]
        start, line, column = self.pos, self.line, self.column

        if char.isalpha() or char == "_":
            while self.pos < len(text) and (text[self.pos].isalnum() or text[self.pos] == "_"):
                self._advance()
            word = text[start:self.pos]
            token_type = TokenType.KEYWORD if word in KEYWORDS else TokenType.IDENTIFIER
            return Token(token_type, word, start, line, column)

        if char.isdecimal():
            while self.pos < len(text) and text[self.pos].isdecimal():
                self._advance()
            if (
                self.pos + 1 < len(text)
                and text[self.pos] == "."
                and text[self.pos + 1].isdecimal()
            ):
                self._advance()
                while self.pos < len(text) and text[self.pos].isdecimal():
                    self._advance()
            return Token(TokenType.NUMBER, text[start:self.pos], start, line, column)

        if char == '"':
            return self._string(start, line, column)

        for op in OPERATORS:
            if text.startswith(op, self.pos):
                self._advance(len(op))
                return Token(TokenType.OPERATOR, op, start, line, column)

        raise self._error(f"Unexpected character '{char}'")

    def _string(self, start: int, line: int, column: int) -> Token:
        text = self.text
        self._advance()
        chars = []
        while self.pos < len(text):
            char = text[self.pos]
            if char == "\\" and text.startswith('\\"', self.pos):
                chars.append('"')
                self._advance(2)
                continue
            if char == '"':
                self._advance()
                return Token(TokenType.STRING, "".join(chars), start, line, column)
            chars.append(char)
            self._advance()
        raise GrlSyntaxError("Unterminated string literal", line, column, start)


def tokenize(text: str, recover: bool = False) -> List[Token]:
    """Tokenize GRL text, ending with an EOF token."""
    return Tokenizer(text, recover).tokenize()
