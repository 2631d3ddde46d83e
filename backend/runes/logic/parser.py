"""
GRL Parser.

Parses rule definitions written in GRL into Rule objects:

    rule SpeedUp "Accelerate when below target" salience 10 {
        when
            car.speed < car.target && !car.braking
        then
            car.speed = car.speed + 5;
    }
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..errors import GrlSyntaxError
from ..rule import Rule
from ..ast import (
    PRECEDENCE,
    ArrayIndex,
    Assignment,
    BinaryOp,
    BinaryOperator,
    BoolLiteral,
    Expression,
    FieldAccess,
    NullLiteral,
    NumberLiteral,
    StringLiteral,
    UnaryOp,
    UnaryOperator,
    Variable,
    is_path,
)
from .tokenizer import Token, TokenType, tokenize

logger = logging.getLogger(__name__)

BINARY_TOKENS = {op.value: op for op in BinaryOperator}


@dataclass
class ParseResult:
    """Outcome of lenient multi-rule parsing."""
    rules: List[Rule] = field(default_factory=list)
    errors: List[GrlSyntaxError] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


class _TokenStream:
    """Cursor over a token list."""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.index = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def advance(self) -> Token:
        token = self.tokens[self.index]
        if token.type is not TokenType.EOF:
            self.index += 1
        return token

    def error(self, message: str, token: Optional[Token] = None) -> GrlSyntaxError:
        token = token or self.current
        return GrlSyntaxError(message, token.line, token.column, token.offset)

    def expect_operator(self, symbol: str, context: str) -> Token:
        if not self.current.is_operator(symbol):
            raise self.error(f"Expected '{symbol}' {context}, found {self.current.describe()}")
        return self.advance()

    def expect_keyword(self, word: str, context: str) -> Token:
        if not self.current.is_keyword(word):
            raise self.error(f"Expected '{word}' {context}, found {self.current.describe()}")
        return self.advance()

    def expect_identifier(self, context: str) -> Token:
        if self.current.type is not TokenType.IDENTIFIER:
            raise self.error(f"Expected identifier {context}, found {self.current.describe()}")
        return self.advance()


class GrlParser:
    """
    Recursive-descent parser for GRL.

    Binary operators are parsed by precedence climbing; see ``PRECEDENCE``
    in the ast module for binding powers.
    """

    def parse_rule(self, text: str) -> Rule:
        """
        Parse a single rule definition.

        Raises:
            GrlSyntaxError: If the text is not exactly one well-formed rule.
        """
        stream = _TokenStream(tokenize(text))
        rule = self._parse_rule(stream)
        if stream.current.type is not TokenType.EOF:
            raise stream.error(f"Unexpected {stream.current.describe()} after rule '{rule.name}'")
        return rule

    def parse_rules(self, text: str) -> List[Rule]:
        """
        Parse a document containing any number of rules.

        Raises:
            GrlSyntaxError: On the first malformed rule.
        """
        result = self.parse_document(text)
        if result.errors:
            raise result.errors[0]
        return result.rules

    def parse_document(self, text: str) -> ParseResult:
        """
        Parse a multi-rule document, collecting errors per rule block.

        A malformed block is reported and skipped; the remaining blocks are
        still parsed. Lexical errors only fail the block they occur in.
        """
        result = ParseResult()
        tokens = tokenize(text, recover=True)

        for block in self._split_blocks(tokens):
            stream = _TokenStream(block)
            try:
                _raise_lexical_error(block)
                rule = self._parse_rule(stream)
                if stream.current.type is not TokenType.EOF:
                    raise stream.error(
                        f"Unexpected {stream.current.describe()} after rule '{rule.name}'"
                    )
            except GrlSyntaxError as e:
                logger.debug("Skipping malformed rule block: %s", e)
                result.errors.append(e)
                continue
            result.rules.append(rule)

        return result

    def parse_expression(self, text: str) -> Expression:
        """Parse a standalone condition expression."""
        stream = _TokenStream(tokenize(text))
        if stream.current.type is TokenType.EOF:
            raise stream.error("Empty expression")
        expr = self._parse_expression(stream)
        if stream.current.is_operator("="):
            raise stream.error("Assignment is only allowed in a then clause")
        if stream.current.type is not TokenType.EOF:
            raise stream.error(f"Unexpected {stream.current.describe()}")
        return expr

    def validate(self, text: str) -> Tuple[bool, Optional[str]]:
        """
        Validate rule text without keeping the result.

        Returns:
            Tuple of (is_valid, error_message).
        """
        result = self.parse_document(text)
        if result.errors:
            return False, str(result.errors[0])
        if not result.rules:
            return False, "No rules found"
        return True, None

    def _split_blocks(self, tokens: List[Token]) -> List[List[Token]]:
        """Split a token list into one list per top-level rule block."""
        blocks = []
        current: List[Token] = []
        depth = 0

        for token in tokens:
            if token.type is TokenType.EOF:
                break
            if token.is_keyword("rule") and current:
                depth = 0
                blocks.append(current)
                current = []
            current.append(token)
            if token.is_operator("{"):
                depth += 1
            elif token.is_operator("}"):
                depth -= 1
                if depth == 0:
                    blocks.append(current)
                    current = []
        if current:
            blocks.append(current)

        eof = tokens[-1]
        return [block + [eof] for block in blocks]

    def _parse_rule(self, stream: _TokenStream) -> Rule:
        stream.expect_keyword("rule", "at start of rule")
        name = stream.expect_identifier("for rule name").value

        description = None
        if stream.current.type is TokenType.STRING:
            description = stream.advance().value

        salience = 0
        if stream.current.is_keyword("salience"):
            stream.advance()
            salience = self._parse_salience(stream)

        stream.expect_operator("{", f"to open rule '{name}'")
        stream.expect_keyword("when", f"in rule '{name}'")
        condition = self._parse_expression(stream)
        if stream.current.is_operator("="):
            raise stream.error("Assignment is only allowed in a then clause")
        stream.expect_keyword("then", f"after condition of rule '{name}'")

        actions = []
        while not stream.current.is_operator("}"):
            if stream.current.type is TokenType.EOF:
                raise stream.error(f"Expected '}}' to close rule '{name}'")
            actions.append(self._parse_action(stream))
        if not actions:
            raise stream.error(f"Rule '{name}' needs at least one action")
        stream.advance()

        return Rule(
            name=name,
            salience=salience,
            condition=condition,
            actions=tuple(actions),
            description=description,
        )

    def _parse_salience(self, stream: _TokenStream) -> int:
        sign = 1
        if stream.current.is_operator("-"):
            stream.advance()
            sign = -1
        token = stream.current
        if token.type is not TokenType.NUMBER or "." in token.value:
            raise stream.error(f"Expected integer salience, found {token.describe()}")
        stream.advance()
        return sign * int(token.value)

    def _parse_action(self, stream: _TokenStream) -> Expression:
        start = stream.current
        expr = self._parse_expression(stream)
        if stream.current.is_operator("="):
            if not is_path(expr):
                raise stream.error("Invalid assignment target", start)
            stream.advance()
            expr = Assignment(expr, self._parse_expression(stream))
        stream.expect_operator(";", "after action")
        return expr

    def _parse_expression(self, stream: _TokenStream, min_precedence: int = 1) -> Expression:
        left = self._parse_unary(stream)
        while True:
            token = stream.current
            if token.type is not TokenType.OPERATOR or token.value not in BINARY_TOKENS:
                return left
            op = BINARY_TOKENS[token.value]
            precedence = PRECEDENCE[op]
            if precedence < min_precedence:
                return left
            stream.advance()
            right = self._parse_expression(stream, precedence + 1)
            left = BinaryOp(op, left, right)

    def _parse_unary(self, stream: _TokenStream) -> Expression:
        token = stream.current
        if token.is_operator("!"):
            stream.advance()
            return UnaryOp(UnaryOperator.NOT, self._parse_unary(stream))
        if token.is_operator("-"):
            stream.advance()
            operand = self._parse_unary(stream)
            if isinstance(operand, NumberLiteral):
                return NumberLiteral(-operand.value)
            return UnaryOp(UnaryOperator.NEGATE, operand)
        return self._parse_postfix(stream)

    def _parse_postfix(self, stream: _TokenStream) -> Expression:
        expr = self._parse_primary(stream)
        while True:
            if stream.current.is_operator("."):
                stream.advance()
                field_name = stream.expect_identifier("after '.'").value
                expr = FieldAccess(expr, field_name)
            elif stream.current.is_operator("["):
                stream.advance()
                index = self._parse_expression(stream)
                stream.expect_operator("]", "to close index")
                expr = ArrayIndex(expr, index)
            else:
                return expr

    def _parse_primary(self, stream: _TokenStream) -> Expression:
        token = stream.current

        if token.type is TokenType.NUMBER:
            stream.advance()
            return NumberLiteral(float(token.value))
        if token.type is TokenType.STRING:
            stream.advance()
            return StringLiteral(token.value)
        if token.is_keyword("true") or token.is_keyword("false"):
            stream.advance()
            return BoolLiteral(token.value == "true")
        if token.is_keyword("null"):
            stream.advance()
            return NullLiteral()
        if token.type is TokenType.IDENTIFIER:
            stream.advance()
            return Variable(token.value)
        if token.is_operator("("):
            stream.advance()
            expr = self._parse_expression(stream)
            stream.expect_operator(")", "to close parenthesis")
            return expr

        raise stream.error(f"Expected expression, found {token.describe()}")


def _raise_lexical_error(block: List[Token]) -> None:
    for token in block:
        if token.type is TokenType.ERROR:
            raise GrlSyntaxError(token.value, token.line, token.column, token.offset)
