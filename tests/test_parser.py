"""
Tests for the GRL tokenizer and parser.
"""

import pytest

from backend.runes.ast import (
    ArrayIndex,
    Assignment,
    BinaryOp,
    BinaryOperator,
    BoolLiteral,
    FieldAccess,
    NullLiteral,
    NumberLiteral,
    StringLiteral,
    UnaryOp,
    UnaryOperator,
    Variable,
    format_expression,
)
from backend.runes.errors import GrlSyntaxError
from backend.runes.logic.parser import GrlParser
from backend.runes.logic.tokenizer import TokenType, tokenize


@pytest.fixture
def parser():
    return GrlParser()


class TestTokenizer:
    """Tests for tokenize()."""

    def test_basic_tokens(self):
        """Test identifiers, keywords, numbers and operators."""
        tokens = tokenize("rule R salience 10 { when x >= 5.5 }")
        types = [t.type for t in tokens]
        assert types[0] is TokenType.KEYWORD
        assert tokens[1].value == "R" and tokens[1].type is TokenType.IDENTIFIER
        assert tokens[3].value == "10" and tokens[3].type is TokenType.NUMBER
        assert any(t.value == ">=" for t in tokens)
        assert any(t.value == "5.5" for t in tokens)
        assert types[-1] is TokenType.EOF

    def test_recover_emits_error_token(self):
        """Test that recovery records the error and keeps scanning."""
        tokens = tokenize("a @ b", recover=True)
        assert [t.type for t in tokens] == [
            TokenType.IDENTIFIER, TokenType.ERROR, TokenType.IDENTIFIER, TokenType.EOF,
        ]
        assert tokens[1].value == "Unexpected character '@'"
        assert tokens[1].column == 3
        with pytest.raises(GrlSyntaxError):
            tokenize("a @ b")

    def test_comments_are_skipped(self):
        """Test line and block comments."""
        tokens = tokenize("a // line comment\n /* block\n comment */ b")
        assert [t.value for t in tokens[:-1]] == ["a", "b"]
        assert tokens[1].line == 3

    def test_string_escape(self):
        """Test the escaped double quote."""
        tokens = tokenize(r'"say \"hi\""')
        assert tokens[0].type is TokenType.STRING
        assert tokens[0].value == 'say "hi"'

    def test_unterminated_string(self):
        """Test error position for an unterminated string."""
        with pytest.raises(GrlSyntaxError) as exc_info:
            tokenize('x == "oops')
        assert exc_info.value.line == 1
        assert exc_info.value.column == 6

    def test_unterminated_comment(self):
        """Test unterminated block comment."""
        with pytest.raises(GrlSyntaxError):
            tokenize("a /* never closed")

    def test_unexpected_character(self):
        """Test an unknown character."""
        with pytest.raises(GrlSyntaxError) as exc_info:
            tokenize("a @ b")
        assert "'@'" in str(exc_info.value)


class TestParseRule:
    """Tests for GrlParser.parse_rule()."""

    def test_simple_rule(self, parser):
        """Test the canonical example rule."""
        rule = parser.parse_rule("rule R salience 10 { when x > 5 then y = 10; }")
        assert rule.name == "R"
        assert rule.salience == 10
        assert rule.description is None
        assert rule.condition == BinaryOp(
            BinaryOperator.GREATER_THAN, Variable("x"), NumberLiteral(5.0)
        )
        assert rule.actions == (Assignment(Variable("y"), NumberLiteral(10.0)),)

    def test_description_and_default_salience(self, parser):
        """Test optional description with salience omitted."""
        rule = parser.parse_rule('''
            rule ArithmeticRule "Test arithmetic operations" {
                when
                    x > 5
                then
                    y = x + 10;
            }
        ''')
        assert rule.description == "Test arithmetic operations"
        assert rule.salience == 0
        assert rule.actions[0] == Assignment(
            Variable("y"),
            BinaryOp(BinaryOperator.ADD, Variable("x"), NumberLiteral(10.0)),
        )

    def test_field_assignment_and_multiple_actions(self, parser):
        """Test field access in condition and field assignment in actions."""
        rule = parser.parse_rule('''
            rule AgeRule "Check customer age" salience 10 {
                when
                    customer.age >= 18
                then
                    customer.eligible = true;
                    message = "Customer is eligible for premium service";
            }
        ''')
        assert rule.condition == BinaryOp(
            BinaryOperator.GREATER_EQUAL,
            FieldAccess(Variable("customer"), "age"),
            NumberLiteral(18.0),
        )
        assert rule.actions == (
            Assignment(FieldAccess(Variable("customer"), "eligible"), BoolLiteral(True)),
            Assignment(Variable("message"), StringLiteral("Customer is eligible for premium service")),
        )

    def test_negative_salience(self, parser):
        """Test a negative salience value."""
        rule = parser.parse_rule("rule Low salience -5 { when true then x = 1; }")
        assert rule.salience == -5

    def test_fractional_salience_rejected(self, parser):
        """Test that salience must be an integer."""
        with pytest.raises(GrlSyntaxError) as exc_info:
            parser.parse_rule("rule R salience 1.5 { when true then x = 1; }")
        assert "integer salience" in str(exc_info.value)

    def test_missing_actions(self, parser):
        """Test that a then clause needs at least one action."""
        with pytest.raises(GrlSyntaxError):
            parser.parse_rule("rule R { when true then }")

    def test_missing_semicolon(self, parser):
        """Test that actions end with a semicolon."""
        with pytest.raises(GrlSyntaxError) as exc_info:
            parser.parse_rule("rule R { when true then x = 1 }")
        assert "';'" in str(exc_info.value)

    def test_assignment_in_condition(self, parser):
        """Test that assignment is rejected in a when clause."""
        with pytest.raises(GrlSyntaxError) as exc_info:
            parser.parse_rule("rule R { when x = 1 then y = 2; }")
        assert "then clause" in str(exc_info.value)

    def test_invalid_assignment_target(self, parser):
        """Test that only paths can be assigned."""
        with pytest.raises(GrlSyntaxError) as exc_info:
            parser.parse_rule("rule R { when true then x + 1 = 2; }")
        assert "assignment target" in str(exc_info.value)

    def test_keyword_as_rule_name(self, parser):
        """Test that keywords cannot name rules."""
        with pytest.raises(GrlSyntaxError):
            parser.parse_rule("rule when { when true then x = 1; }")

    def test_trailing_input(self, parser):
        """Test that parse_rule accepts exactly one rule."""
        with pytest.raises(GrlSyntaxError):
            parser.parse_rule(
                "rule A { when true then x = 1; } rule B { when true then y = 1; }"
            )

    def test_error_has_position(self, parser):
        """Test that errors carry line and column."""
        with pytest.raises(GrlSyntaxError) as exc_info:
            parser.parse_rule("rule R {\n  when x >\n then y = 1; }")
        assert exc_info.value.line == 3
        assert "line 3" in str(exc_info.value)


class TestExpressions:
    """Tests for operator precedence and postfix parsing."""

    def test_precedence(self, parser):
        """Test that * binds tighter than + and && tighter than ||."""
        expr = parser.parse_expression("a || b && c + d * 2 > 3")
        assert expr.op is BinaryOperator.OR
        right = expr.right
        assert right.op is BinaryOperator.AND
        comparison = right.right
        assert comparison.op is BinaryOperator.GREATER_THAN
        assert comparison.left == BinaryOp(
            BinaryOperator.ADD,
            Variable("c"),
            BinaryOp(BinaryOperator.MULTIPLY, Variable("d"), NumberLiteral(2.0)),
        )

    def test_left_associative(self, parser):
        """Test that subtraction associates to the left."""
        expr = parser.parse_expression("10 - 4 - 3")
        assert expr == BinaryOp(
            BinaryOperator.SUBTRACT,
            BinaryOp(BinaryOperator.SUBTRACT, NumberLiteral(10.0), NumberLiteral(4.0)),
            NumberLiteral(3.0),
        )

    def test_parentheses(self, parser):
        """Test grouping overrides precedence."""
        expr = parser.parse_expression("(a + b) * c")
        assert expr.op is BinaryOperator.MULTIPLY
        assert expr.left.op is BinaryOperator.ADD

    def test_unary_operators(self, parser):
        """Test ! and unary minus."""
        assert parser.parse_expression("!done") == UnaryOp(UnaryOperator.NOT, Variable("done"))
        assert parser.parse_expression("-x") == UnaryOp(UnaryOperator.NEGATE, Variable("x"))
        assert parser.parse_expression("-3") == NumberLiteral(-3.0)

    def test_postfix_chain(self, parser):
        """Test field and index access chains."""
        expr = parser.parse_expression("order.items[i + 1].price")
        assert expr == FieldAccess(
            ArrayIndex(
                FieldAccess(Variable("order"), "items"),
                BinaryOp(BinaryOperator.ADD, Variable("i"), NumberLiteral(1.0)),
            ),
            "price",
        )

    def test_null_literal(self, parser):
        """Test the null keyword."""
        expr = parser.parse_expression("x != null")
        assert expr.right == NullLiteral()

    def test_empty_expression(self, parser):
        """Test that empty input is an error."""
        with pytest.raises(GrlSyntaxError):
            parser.parse_expression("   ")

    def test_format_round_trip(self, parser):
        """Test that formatted expressions parse back to the same tree."""
        source = "(a + b) * -c > 2 && !(flag || items[0].ok) && name == \"x \\\"y\\\"\""
        expr = parser.parse_expression(source)
        assert parser.parse_expression(format_expression(expr)) == expr


class TestParseDocument:
    """Tests for multi-rule parsing."""

    DOCUMENT = '''
        rule First salience 1 { when a > 1 then b = 2; }

        // broken: missing then
        rule Broken { when a > 1 b = 2; }

        rule Third { when true then c = "done"; }
    '''

    def test_lenient_parse_keeps_good_rules(self, parser):
        """Test that one malformed rule does not affect the others."""
        result = parser.parse_document(self.DOCUMENT)
        assert [r.name for r in result.rules] == ["First", "Third"]
        assert len(result.errors) == 1
        assert result.errors[0].line == 5
        assert result.valid is False

    def test_missing_brace_does_not_swallow_next_rule(self, parser):
        """Test recovery when a block is never closed."""
        result = parser.parse_document(
            "rule A { when true then x = 1;\nrule B { when true then y = 1; }"
        )
        assert [r.name for r in result.rules] == ["B"]
        assert len(result.errors) == 1

    def test_stray_character_fails_only_its_block(self, parser):
        """Test that a lexical error does not discard other rules."""
        result = parser.parse_document(
            "rule A { when true then a = 1; }\nrule B { when x @ 1 then b = 1; }"
        )
        assert [r.name for r in result.rules] == ["A"]
        assert len(result.errors) == 1
        assert "Unexpected character '@'" in str(result.errors[0])
        assert result.errors[0].line == 2

    def test_unterminated_string_fails_only_its_block(self, parser):
        """Test recovery after an unclosed string literal."""
        result = parser.parse_document(
            'rule A { when true then a = 1; }\n'
            'rule B { when s == "abc then b = 1; }\n'
            'rule C { when true then c = 1; }'
        )
        assert [r.name for r in result.rules] == ["A", "C"]
        assert len(result.errors) == 1
        assert result.errors[0].message == "Unterminated string literal"

    def test_strict_parse_raises(self, parser):
        """Test that parse_rules raises on the first error."""
        with pytest.raises(GrlSyntaxError):
            parser.parse_rules(self.DOCUMENT)

    def test_parse_rules(self, parser):
        """Test parsing several valid rules."""
        rules = parser.parse_rules(
            "rule A { when true then x = 1; } rule B salience 3 { when x == 1 then y = 2; }"
        )
        assert [r.name for r in rules] == ["A", "B"]
        assert rules[1].salience == 3

    def test_validate(self, parser):
        """Test validate() return values."""
        assert parser.validate("rule A { when true then x = 1; }") == (True, None)
        valid, message = parser.validate("rule A { when then x = 1; }")
        assert valid is False
        assert "Expected expression" in message
        assert parser.validate("") == (False, "No rules found")
