"""
Parser Test Suite
=================

Tests for the ruscom recursive descent parser: top-level items, types,
statements, operator precedence and syntax errors.

Test Organization
-----------------
- TestItems: functions, parameters and globals
- TestTypes: type syntax
- TestStatements: statement forms
- TestExpressions: precedence and associativity
- TestParseErrors: malformed input
- TestASTPrinter: debug output
"""

import pytest
from ruscom.parser import parse_source
from ruscom.errors import ParseError, UnexpectedTokenError, MissingTokenError
from ruscom.types import (
    Pointer,
    Reference,
    Array,
    Slice,
    Str,
    TYPE_I32,
    TYPE_I64,
    TYPE_U8,
    TYPE_U64,
    TYPE_BOOL,
)
from ruscom.ast import (
    ASTPrinter,
    FunctionDef,
    Declaration,
    Block,
    If,
    While,
    Return,
    ExpressionStatement,
    BinaryOp,
    UnaryOp,
    Index,
    Assignment,
    FunctionCall,
    VariableRef,
    IntegerLiteral,
    BoolLiteral,
    StringLiteral,
    BinaryOperator,
    UnaryOperator,
)


# =============================================================================
# Helper Functions
# =============================================================================

def parse_body(body: str) -> list:
    """Parse statements inside a function and return them."""
    program = parse_source(f"fn main() {{ {body} }}")
    return program.functions[0].body.statements


def parse_expr(text: str):
    """Parse a single expression statement and return the expression."""
    stmt = parse_body(f"{text};")[0]
    assert isinstance(stmt, ExpressionStatement)
    return stmt.expression


# =============================================================================
# Top-Level Items
# =============================================================================

class TestItems:
    """Tests for functions and globals."""

    def test_empty_program(self):
        program = parse_source("")
        assert program.items == []

    def test_function(self):
        program = parse_source("fn main() -> i32 { return 0; }")
        func = program.functions[0]
        assert isinstance(func, FunctionDef)
        assert func.name == "main"
        assert func.params == []
        assert func.return_type == TYPE_I32
        assert func.explicit_return_type

    def test_omitted_return_type_is_i64(self):
        func = parse_source("fn f() { }").functions[0]
        assert func.return_type == TYPE_I64
        assert not func.explicit_return_type

    def test_parameters(self):
        func = parse_source("fn add(a: i32, b: u8, c: &[i32],) -> i32 { return a; }").functions[0]
        assert [p.name for p in func.params] == ["a", "b", "c"]
        assert [p.param_type for p in func.params] == [TYPE_I32, TYPE_U8, Slice(TYPE_I32)]

    def test_static_global(self):
        decl = parse_source("static COUNT: u64 = 10;").globals[0]
        assert isinstance(decl, Declaration)
        assert decl.is_global
        assert decl.name == "COUNT"
        assert decl.declared_type == TYPE_U64
        assert isinstance(decl.initializer, IntegerLiteral)

    def test_let_at_top_level_is_global(self):
        decl = parse_source("let flag: bool;").globals[0]
        assert decl.is_global
        assert decl.initializer is None

    def test_items_keep_source_order(self):
        program = parse_source("static A: i32; fn f() {} static B: i32; fn g() {}")
        names = [item.name for item in program.items]
        assert names == ["A", "f", "B", "g"]
        assert [f.name for f in program.functions] == ["f", "g"]
        assert [g.name for g in program.globals] == ["A", "B"]

    def test_global_requires_type(self):
        with pytest.raises(ParseError):
            parse_source("static X = 1;")


# =============================================================================
# Types
# =============================================================================

class TestTypes:
    """Tests for type syntax."""

    def declared(self, type_text: str):
        return parse_body(f"let x: {type_text};")[0].declared_type

    def test_integer_and_bool(self):
        assert self.declared("i32") == TYPE_I32
        assert self.declared("bool") == TYPE_BOOL

    def test_size_aliases(self):
        assert self.declared("usize") == TYPE_U64
        assert self.declared("isize") == TYPE_I64

    def test_pointer(self):
        assert self.declared("*i32") == Pointer(TYPE_I32)

    def test_reference(self):
        assert self.declared("&i32") == Reference(TYPE_I32)

    def test_double_reference(self):
        """'&&' in type position is two references."""
        assert self.declared("&&i32") == Reference(Reference(TYPE_I32))

    def test_array(self):
        assert self.declared("[u8; 16]") == Array(TYPE_U8, 16)

    def test_nested_array(self):
        assert self.declared("[[i32; 2]; 3]") == Array(Array(TYPE_I32, 2), 3)

    def test_slice_reference(self):
        assert self.declared("&[i32]") == Slice(TYPE_I32)

    def test_array_reference(self):
        assert self.declared("&[i32; 4]") == Reference(Array(TYPE_I32, 4))

    def test_str_reference(self):
        assert self.declared("&str") == Str()

    def test_pointer_to_pointer(self):
        assert self.declared("**u8") == Pointer(Pointer(TYPE_U8))

    def test_bare_str_rejected(self):
        with pytest.raises(ParseError) as exc_info:
            parse_body("let s: str;")
        assert "&str" in str(exc_info.value)

    def test_bare_slice_rejected(self):
        with pytest.raises(ParseError):
            parse_body("let s: [i32];")


# =============================================================================
# Statements
# =============================================================================

class TestStatements:
    """Tests for statement parsing."""

    def test_let_forms(self):
        stmts = parse_body("let a: i32 = 1; let b = 2; let c: u8;")
        assert [s.name for s in stmts] == ["a", "b", "c"]
        assert stmts[0].declared_type == TYPE_I32 and stmts[0].initializer is not None
        assert stmts[1].declared_type is None and stmts[1].initializer is not None
        assert stmts[2].initializer is None
        assert not any(s.is_global for s in stmts)

    def test_if_else(self):
        stmt = parse_body("if x { y = 1; } else { y = 2; }")[0]
        assert isinstance(stmt, If)
        assert isinstance(stmt.condition, VariableRef)
        assert len(stmt.then_block.statements) == 1
        assert len(stmt.else_block.statements) == 1

    def test_if_without_else(self):
        stmt = parse_body("if x { }")[0]
        assert stmt.else_block is None

    def test_else_if_chain(self):
        """'else if' nests an If in a one-statement else block."""
        stmt = parse_body("if a { } else if b { } else { }")[0]
        assert isinstance(stmt.else_block, Block)
        nested = stmt.else_block.statements[0]
        assert isinstance(nested, If)
        assert nested.else_block is not None

    def test_while(self):
        stmt = parse_body("while i < 10 { i = i + 1; }")[0]
        assert isinstance(stmt, While)
        assert isinstance(stmt.condition, BinaryOp)
        assert len(stmt.body.statements) == 1

    def test_return_with_and_without_value(self):
        stmts = parse_body("return; return 5;")
        assert isinstance(stmts[0], Return) and stmts[0].value is None
        assert isinstance(stmts[1].value, IntegerLiteral)

    def test_nested_block(self):
        stmt = parse_body("{ let x = 1; }")[0]
        assert isinstance(stmt, Block)
        assert isinstance(stmt.statements[0], Declaration)

    def test_static_inside_function_rejected(self):
        with pytest.raises(UnexpectedTokenError):
            parse_body("static X: i32;")


# =============================================================================
# Expressions
# =============================================================================

class TestExpressions:
    """Tests for expression parsing and precedence."""

    def test_literals(self):
        assert isinstance(parse_expr("42"), IntegerLiteral)
        assert parse_expr("true").value is True
        assert parse_expr("false").value is False
        assert isinstance(parse_expr("true"), BoolLiteral)
        assert parse_expr('"hi"').value == "hi"
        assert isinstance(parse_expr('"hi"'), StringLiteral)

    def test_literal_suffix_kept(self):
        literal = parse_expr("7u8")
        assert literal.value == 7
        assert literal.suffix == "u8"

    def test_multiplication_binds_tighter(self):
        """1 + 2 * 3 parses as 1 + (2 * 3)."""
        expr = parse_expr("1 + 2 * 3")
        assert expr.op == BinaryOperator.ADD
        assert expr.rhs.op == BinaryOperator.MULTIPLY

    def test_left_associative(self):
        """10 - 3 - 2 parses as (10 - 3) - 2."""
        expr = parse_expr("10 - 3 - 2")
        assert expr.op == BinaryOperator.SUBTRACT
        assert isinstance(expr.lhs, BinaryOp)
        assert expr.rhs.value == 2

    def test_comparison_below_arithmetic(self):
        expr = parse_expr("a + 1 < b * 2")
        assert expr.op == BinaryOperator.LESS
        assert expr.lhs.op == BinaryOperator.ADD
        assert expr.rhs.op == BinaryOperator.MULTIPLY

    def test_and_binds_tighter_than_or(self):
        expr = parse_expr("a || b && c")
        assert expr.op == BinaryOperator.LOGICAL_OR
        assert expr.rhs.op == BinaryOperator.LOGICAL_AND

    def test_logical_below_comparison(self):
        expr = parse_expr("a < b && c == d")
        assert expr.op == BinaryOperator.LOGICAL_AND
        assert expr.lhs.op == BinaryOperator.LESS
        assert expr.rhs.op == BinaryOperator.EQUAL

    def test_parentheses(self):
        expr = parse_expr("(1 + 2) * 3")
        assert expr.op == BinaryOperator.MULTIPLY
        assert expr.lhs.op == BinaryOperator.ADD

    def test_mixed_precedence_chain(self):
        """a * b + c * d - e / f parses as ((a*b) + (c*d)) - (e/f)."""
        expr = parse_expr("a * b + c * d - e / f")
        assert expr.op == BinaryOperator.SUBTRACT
        assert expr.rhs.op == BinaryOperator.DIVIDE
        assert expr.lhs.op == BinaryOperator.ADD
        assert expr.lhs.lhs.op == BinaryOperator.MULTIPLY
        assert expr.lhs.rhs.op == BinaryOperator.MULTIPLY

    def test_comparisons_share_one_level(self):
        """a < b == c parses as (a < b) == c."""
        expr = parse_expr("a < b == c")
        assert expr.op == BinaryOperator.EQUAL
        assert expr.lhs.op == BinaryOperator.LESS

    def test_long_operator_chain(self):
        expr = parse_expr(" + ".join(["1"] * 1000))
        depth = 0
        while isinstance(expr, BinaryOp):
            assert expr.rhs.value == 1
            expr = expr.lhs
            depth += 1
        assert depth == 999

    def test_deep_parentheses(self):
        expr = parse_expr("(" * 90 + "x" + ")" * 90)
        assert isinstance(expr, VariableRef)

    def test_modulo(self):
        assert parse_expr("a % b").op == BinaryOperator.MODULO

    def test_assignment_right_associative(self):
        expr = parse_expr("a = b = 3")
        assert isinstance(expr, Assignment)
        assert isinstance(expr.value, Assignment)
        assert expr.value.value.value == 3

    def test_unary_operators(self):
        assert parse_expr("-x").op == UnaryOperator.NEGATE
        assert parse_expr("!x").op == UnaryOperator.LOGICAL_NOT
        assert parse_expr("&x").op == UnaryOperator.ADDRESS_OF
        assert parse_expr("*p").op == UnaryOperator.DEREFERENCE

    def test_unary_binds_tighter_than_binary(self):
        """-a * b parses as (-a) * b."""
        expr = parse_expr("-a * b")
        assert expr.op == BinaryOperator.MULTIPLY
        assert isinstance(expr.lhs, UnaryOp)

    def test_deref_assignment(self):
        expr = parse_expr("*p = 5")
        assert isinstance(expr, Assignment)
        assert expr.target.op == UnaryOperator.DEREFERENCE

    def test_double_ampersand_expression(self):
        """'&&x' in expression position is '&(&x)'."""
        expr = parse_expr("&&x")
        assert expr.op == UnaryOperator.ADDRESS_OF
        assert expr.operand.op == UnaryOperator.ADDRESS_OF

    def test_call(self):
        expr = parse_expr("add(1, x, f(2))")
        assert isinstance(expr, FunctionCall)
        assert expr.name == "add"
        assert len(expr.args) == 3
        assert isinstance(expr.args[2], FunctionCall)

    def test_call_without_arguments(self):
        assert parse_expr("f()").args == []

    def test_index(self):
        expr = parse_expr("a[i + 1]")
        assert isinstance(expr, Index)
        assert expr.base.name == "a"
        assert expr.index.op == BinaryOperator.ADD

    def test_chained_index(self):
        expr = parse_expr("m[1][2]")
        assert isinstance(expr.base, Index)

    def test_address_of_index(self):
        """Postfix binds tighter than unary: &a[0] is &(a[0])."""
        expr = parse_expr("&a[0]")
        assert expr.op == UnaryOperator.ADDRESS_OF
        assert isinstance(expr.operand, Index)


# =============================================================================
# Error Tests
# =============================================================================

class TestParseErrors:
    """Tests for syntax error reporting."""

    def test_missing_semicolon(self):
        with pytest.raises(MissingTokenError) as exc_info:
            parse_source("fn main() { let x = 1 }")
        assert "expected ';'" in str(exc_info.value)

    def test_missing_closing_brace(self):
        with pytest.raises(MissingTokenError) as exc_info:
            parse_source("fn main() { return 1;")
        assert "end of input" in str(exc_info.value)

    def test_unexpected_top_level_token(self):
        with pytest.raises(UnexpectedTokenError):
            parse_source("return 1;")

    def test_missing_expression(self):
        with pytest.raises(ParseError):
            parse_source("fn main() { let x = ; }")

    def test_call_on_non_name(self):
        with pytest.raises(ParseError) as exc_info:
            parse_source("fn main() { (f)(1)(2); }")
        assert "only named functions can be called" in str(exc_info.value)

    def test_error_location(self):
        with pytest.raises(ParseError) as exc_info:
            parse_source("fn main() {\n    let x = 1\n}", "prog.rs")
        assert str(exc_info.value).startswith("prog.rs:3:1:")

    def test_error_includes_source_line(self):
        with pytest.raises(ParseError) as exc_info:
            parse_source("fn main() { let = 5; }")
        assert "fn main() { let = 5; }" in str(exc_info.value)

    @pytest.mark.parametrize(
        "body",
        [
            "(" * 150 + "x" + ")" * 150 + ";",
            "{" * 150 + "}" * 150,
            "-" * 150 + "x;",
            "let p: " + "*" * 150 + "i32;",
        ],
    )
    def test_nesting_too_deep(self, body):
        with pytest.raises(ParseError) as exc_info:
            parse_source(f"fn main() {{ {body} }}")
        assert "nesting deeper than 100 levels" in str(exc_info.value)

    def test_long_else_if_chain_within_limit(self):
        branches = " else ".join(f"if x == {n} {{ x = {n}; }}" for n in range(60))
        stmts = parse_body(f"{branches}")
        assert isinstance(stmts[0], If)


# =============================================================================
# AST Printer Tests
# =============================================================================

class TestASTPrinter:
    """Tests for the AST debug printer."""

    def test_print_function(self):
        program = parse_source("fn main() -> i32 { let x: i32 = 1 + 2; return x; }")
        output = ASTPrinter().print(program)
        lines = output.splitlines()
        assert lines[0] == "Program"
        assert "FunctionDef main() -> i32" in output
        assert "Declaration let x: i32" in output
        assert "BinaryOp +" in output
        assert "VariableRef x" in output

    def test_print_long_chain(self):
        program = parse_source("fn main() { " + " + ".join(["1"] * 500) + "; }")
        lines = ASTPrinter().print(program).splitlines()
        assert sum(line.strip() == "BinaryOp +" for line in lines) == 499
        assert sum(line.strip() == "IntegerLiteral 1" for line in lines) == 500
        # Children follow their parent in source order
        assert lines[-1].strip() == "IntegerLiteral 1"
        assert lines[-1].startswith("  " * 5)
