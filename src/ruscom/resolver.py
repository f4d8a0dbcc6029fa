"""
ruscom Type Resolver
====================

This module binds every name in the AST to its declaration, computes
the type of every expression, and assigns storage to every variable.
The decorated tree is what the code generator consumes.

Passes
------
1. Register every function signature and global variable in the global
   scope, so functions may be used before they are defined.
2. Check global initializers (constant literals only).
3. Resolve each function body in a fresh frame, with a scope chain
   rooted at the global scope.

Typing Rules
------------
- Types never convert implicitly. Binary operators need identical
  operand types; calls, assignments, initializers and returns need the
  exact declared type.
- Unsuffixed integer literals take the integer type their context
  expects (declared type, assignment target, parameter, return type, or
  the other operand); with no context they are i64.
- A reference '&T' is accepted where '*T' is expected, and '&[T; N]'
  where '&[T]' is expected. These are recorded as coercions.
- Conditions of 'if' and 'while' may be bool or any integer.
- A function without '-> TYPE' returns i64 and accepts any integer or
  bool return value, widened to 64 bits.

Storage Layout
--------------
Parameters take the first frame slots, then each 'let' takes the next
slot in declaration order. A slot of type T starts at the first offset
(below the frame base) that is a multiple of align(T). The frame size
is rounded up to 16 bytes.

    rbp+16+8k   stack-passed argument words (k >= 0)
    rbp+8       return address
    rbp         saved rbp
    rbp-off     parameter and local slots
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from ruscom.errors import (
    SourceLocation,
    TypeCheckError,
    TypeMismatchError,
    UndeclaredIdentifierError,
    ArgumentCountError,
    InvalidLValueError,
)
from ruscom.types import (
    Type,
    Integer,
    Bool,
    Pointer,
    Reference,
    Array,
    Slice,
    Str,
    TYPE_BOOL,
    TYPE_STR,
    TYPE_NAMES,
    TYPE_DEFAULT_INT,
    STACK_ALIGNMENT,
    align_up,
    pointee,
    element_type,
)
from ruscom.symbols import Scope, Symbol, StorageClass, FunctionSignature
from ruscom.ast import (
    Program,
    FunctionDef,
    Declaration,
    Block,
    If,
    While,
    Return,
    ExpressionStatement,
    Statement,
    Expression,
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
    Coercion,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Frame Layout
# =============================================================================

@dataclass
class FrameLayout:
    """
    Stack frame of one function.

    Attributes:
        used: Bytes allocated so far (the deepest slot offset)
        slots: Symbols in allocation order (parameters first)
    """
    used: int = 0
    slots: list[Symbol] = field(default_factory=list)

    def allocate(self, t: Type) -> int:
        """Reserve a slot for a value of type t and return its offset."""
        self.used = align_up(self.used + t.size, max(t.align, 1))
        return self.used

    @property
    def size(self) -> int:
        """Frame size reserved by the prologue (16-byte aligned)."""
        return align_up(self.used, STACK_ALIGNMENT)


def global_label(name: str) -> str:
    """Assembly label for the storage of global variable name."""
    return f".Lglobal_{name}"


def function_label(name: str) -> str:
    """
    Assembly label for the entry point of function name.

    Only 'main' keeps its own name. Every other function is prefixed, so
    a function called 'rcx' or 'exit' is never read as a register operand
    or bound to a C library symbol.
    """
    if name == "main":
        return name
    return f"_rs_{name}"


def constant_value(expr: Expression) -> int:
    """
    Value of a constant initializer (literal, negated literal, or bool).

    Raises:
        ValueError: If expr is not a constant
    """
    if isinstance(expr, IntegerLiteral):
        return expr.value
    if isinstance(expr, BoolLiteral):
        return int(expr.value)
    if (
        isinstance(expr, UnaryOp)
        and expr.op == UnaryOperator.NEGATE
        and isinstance(expr.operand, IntegerLiteral)
    ):
        return -expr.operand.value
    raise ValueError(f"not a constant expression: {expr!r}")


def is_lvalue(expr: Expression) -> bool:
    """True if expr denotes a storage place (variable, element, or deref)."""
    if isinstance(expr, (VariableRef, Index)):
        return True
    return isinstance(expr, UnaryOp) and expr.op == UnaryOperator.DEREFERENCE


# =============================================================================
# Type Resolver
# =============================================================================

class TypeResolver:
    """
    Binds names, checks types, and lays out storage for a Program.

    A resolver instance handles one compilation unit; all counters and
    scopes it builds are discarded with it.

    Usage:
        resolver = TypeResolver("main.rs", source.splitlines())
        program = resolver.resolve(parse_source(source, "main.rs"))

    Attributes:
        filename: Source filename for error reporting
    """

    def __init__(self, filename: str = "<input>", source_lines: Optional[list[str]] = None):
        self.filename = filename
        self.source_lines = source_lines or []

        self._globals = Scope()
        self._scope = self._globals
        self._function: Optional[FunctionDef] = None
        self._frame: Optional[FrameLayout] = None

    def resolve(self, program: Program) -> Program:
        """
        Type-check and decorate program in place.

        Returns:
            The same Program, with types, symbols and frames attached

        Raises:
            TypeCheckError: On the first type or binding error
        """
        for item in program.items:
            if isinstance(item, FunctionDef):
                self._declare_function(item)
            else:
                self._declare_global(item)

        for decl in program.globals:
            self._resolve_global_initializer(decl)

        for func in program.functions:
            self._resolve_function(func)

        logger.debug(
            f"Resolved {len(program.functions)} functions and "
            f"{len(program.globals)} globals in {self.filename}"
        )
        return program

    # =========================================================================
    # Error Helpers
    # =========================================================================

    def _source_line(self, location: Optional[SourceLocation]) -> Optional[str]:
        if location and 0 < location.line <= len(self.source_lines):
            return self.source_lines[location.line - 1]
        return None

    def _error(self, message: str, location: SourceLocation, hint: Optional[str] = None) -> TypeCheckError:
        return TypeCheckError(message, location, hint=hint, source_line=self._source_line(location))

    def _mismatch(self, message: str, expected: Type, actual: Type, location: SourceLocation) -> TypeMismatchError:
        return TypeMismatchError(
            message,
            expected_type=str(expected),
            actual_type=str(actual),
            location=location,
            source_line=self._source_line(location),
        )

    # =========================================================================
    # Pass 1: Global Declarations
    # =========================================================================

    def _declare_function(self, func: FunctionDef) -> None:
        for param in func.params:
            if isinstance(param.param_type, Array):
                raise self._error(
                    f"parameter '{param.name}' has array type '{param.param_type}'",
                    param.location,
                    hint=f"pass a reference instead: '&{param.param_type}'",
                )
        if isinstance(func.return_type, Array):
            raise self._error(
                f"function '{func.name}' cannot return array type '{func.return_type}'",
                func.location,
            )

        signature = FunctionSignature(
            name=func.name,
            param_types=[param.param_type for param in func.params],
            return_type=func.return_type,
            label=function_label(func.name),
            location=func.location,
        )
        self._globals.declare(signature, self._source_line(func.location))
        func.label = signature.label

    def _declare_global(self, decl: Declaration) -> None:
        symbol = Symbol(
            name=decl.name,
            type=decl.declared_type,
            storage=StorageClass.GLOBAL,
            label=global_label(decl.name),
            location=decl.location,
        )
        self._globals.declare(symbol, self._source_line(decl.location))
        decl.symbol = symbol

    # =========================================================================
    # Pass 2: Global Initializers
    # =========================================================================

    def _resolve_global_initializer(self, decl: Declaration) -> None:
        if decl.initializer is None:
            return

        try:
            constant_value(decl.initializer)
        except ValueError:
            raise self._error(
                f"initializer of global '{decl.name}' is not a constant",
                decl.initializer.location,
                hint="globals can only be initialized with integer or bool literals",
            ) from None

        self._resolve_expression(decl.initializer, decl.declared_type)
        self._coerce(decl.initializer, decl.declared_type, f"initializer of '{decl.name}'")

    # =========================================================================
    # Pass 3: Function Bodies
    # =========================================================================

    def _resolve_function(self, func: FunctionDef) -> None:
        self._function = func
        self._frame = FrameLayout()
        self._scope = self._globals.child()

        for param in func.params:
            symbol = Symbol(
                name=param.name,
                type=param.param_type,
                storage=StorageClass.PARAMETER,
                offset=self._frame.allocate(param.param_type),
                location=param.location,
            )
            self._scope.declare(symbol, self._source_line(param.location))
            self._frame.slots.append(symbol)
            param.symbol = symbol

        self._resolve_block(func.body)

        func.frame = self._frame
        logger.debug(f"Function '{func.name}': frame of {self._frame.size} bytes")

        self._scope = self._globals
        self._function = None
        self._frame = None

    # =========================================================================
    # Statements
    # =========================================================================

    def _resolve_block(self, block: Block) -> None:
        outer = self._scope
        self._scope = outer.child()
        try:
            for stmt in block.statements:
                self._resolve_statement(stmt)
        finally:
            self._scope = outer

    def _resolve_statement(self, stmt: Statement) -> None:
        if isinstance(stmt, Declaration):
            self._resolve_local(stmt)
        elif isinstance(stmt, ExpressionStatement):
            self._resolve_expression(stmt.expression, None)
        elif isinstance(stmt, Block):
            self._resolve_block(stmt)
        elif isinstance(stmt, If):
            self._resolve_condition(stmt.condition, "if")
            self._resolve_block(stmt.then_block)
            if stmt.else_block is not None:
                self._resolve_block(stmt.else_block)
        elif isinstance(stmt, While):
            self._resolve_condition(stmt.condition, "while")
            self._resolve_block(stmt.body)
        elif isinstance(stmt, Return):
            self._resolve_return(stmt)
        else:
            raise self._error(f"unsupported statement {stmt!r}", stmt.location)

    def _resolve_local(self, decl: Declaration) -> None:
        """
        Resolve a 'let' binding.

        The initializer is resolved before the new name is bound, so
        'let x = x + 1;' reads an outer 'x'.
        """
        if decl.declared_type is None and decl.initializer is None:
            raise self._error(
                f"type annotation needed for '{decl.name}'",
                decl.location,
                hint=f"write 'let {decl.name}: TYPE;' or give it an initial value",
            )

        var_type = decl.declared_type
        if decl.initializer is not None:
            actual = self._resolve_expression(decl.initializer, var_type)
            if var_type is None:
                var_type = actual
            else:
                self._coerce(decl.initializer, var_type, f"initializer of '{decl.name}'")

        symbol = Symbol(
            name=decl.name,
            type=var_type,
            storage=StorageClass.LOCAL,
            offset=self._frame.allocate(var_type),
            location=decl.location,
        )
        self._scope.declare(symbol, self._source_line(decl.location))
        self._frame.slots.append(symbol)
        decl.symbol = symbol

    def _resolve_condition(self, condition: Expression, keyword: str) -> None:
        t = self._resolve_expression(condition, None)
        if not isinstance(t, Bool) and not t.is_integer:
            raise self._mismatch(
                f"'{keyword}' condition must be bool or an integer",
                TYPE_BOOL,
                t,
                condition.location,
            )

    def _resolve_return(self, stmt: Return) -> None:
        func = self._function
        if stmt.value is None:
            return

        if not func.explicit_return_type:
            t = self._resolve_expression(stmt.value, func.return_type)
            if not isinstance(t, Bool) and not t.is_integer:
                raise self._mismatch(
                    f"'{func.name}' has no return type and can only return integers or bools",
                    func.return_type,
                    t,
                    stmt.value.location,
                )
            return

        self._resolve_expression(stmt.value, func.return_type)
        self._coerce(stmt.value, func.return_type, f"return value of '{func.name}'")

    # =========================================================================
    # Coercions
    # =========================================================================

    def _coerce(self, expr: Expression, expected: Type, context: str) -> None:
        """
        Check expr's type against expected, recording a reference coercion.

        Raises:
            TypeMismatchError: If the types differ and no coercion applies
        """
        actual = expr.resolved_type
        if actual == expected:
            return

        if isinstance(actual, Reference):
            if isinstance(expected, Pointer) and expected.to == actual.to:
                expr.coercion = Coercion.REF_TO_POINTER
                return
            if (
                isinstance(expected, Slice)
                and isinstance(actual.to, Array)
                and actual.to.element == expected.element
            ):
                expr.coercion = Coercion.ARRAY_REF_TO_SLICE
                return

        raise self._mismatch(f"mismatched types in {context}", expected, actual, expr.location)

    # =========================================================================
    # Expressions
    # =========================================================================

    def _resolve_expression(self, expr: Expression, expected: Optional[Type]) -> Type:
        """
        Resolve expr and return its type.

        Args:
            expr: Expression to resolve
            expected: Type the context wants, used to pin unsuffixed
                literals; None when the context imposes nothing

        Returns:
            The resolved type, also stored in expr.resolved_type
        """
        if isinstance(expr, IntegerLiteral):
            t = self._resolve_integer(expr, expected)
        elif isinstance(expr, BoolLiteral):
            t = TYPE_BOOL
        elif isinstance(expr, StringLiteral):
            t = TYPE_STR
        elif isinstance(expr, VariableRef):
            t = self._resolve_variable(expr)
        elif isinstance(expr, BinaryOp):
            t = self._resolve_binary(expr, expected)
        elif isinstance(expr, UnaryOp):
            t = self._resolve_unary(expr, expected)
        elif isinstance(expr, Index):
            t = self._resolve_index(expr)
        elif isinstance(expr, Assignment):
            t = self._resolve_assignment(expr)
        elif isinstance(expr, FunctionCall):
            t = self._resolve_call(expr)
        else:
            raise self._error(f"unsupported expression {expr!r}", expr.location)

        expr.resolved_type = t
        return t

    def _literal_type(self, literal: IntegerLiteral, expected: Optional[Type]) -> Integer:
        if literal.suffix:
            return TYPE_NAMES[literal.suffix]
        if isinstance(expected, Integer):
            return expected
        return TYPE_DEFAULT_INT

    def _resolve_integer(self, literal: IntegerLiteral, expected: Optional[Type]) -> Type:
        t = self._literal_type(literal, expected)
        if not t.contains(literal.value):
            raise self._error(
                f"integer literal {literal.value} out of range for '{t}'",
                literal.location,
                hint=f"'{t}' holds values from {t.min_value} to {t.max_value}",
            )
        return t

    def _resolve_variable(self, expr: VariableRef) -> Type:
        entry = self._scope.lookup(expr.name)
        if entry is None:
            raise UndeclaredIdentifierError(
                expr.name,
                location=expr.location,
                source_line=self._source_line(expr.location),
                similar_identifiers=self._scope.similar_names(expr.name),
            )
        if isinstance(entry, FunctionSignature):
            raise self._error(
                f"'{expr.name}' is a function, not a variable",
                expr.location,
                hint=f"call it: '{expr.name}(...)'",
            )
        expr.symbol = entry
        return entry.type

    # -------------------------------------------------------------------------
    # Operators
    # -------------------------------------------------------------------------

    def _is_flexible(self, expr: Expression) -> bool:
        """True if expr's type comes only from unsuffixed literals."""
        pending = [expr]
        while pending:
            node = pending.pop()
            if isinstance(node, IntegerLiteral):
                if node.suffix is not None:
                    return False
            elif isinstance(node, UnaryOp) and node.op == UnaryOperator.NEGATE:
                pending.append(node.operand)
            elif isinstance(node, BinaryOp) and node.op.is_arithmetic:
                pending.extend((node.lhs, node.rhs))
            else:
                return False
        return True

    def _resolve_binary(self, expr: BinaryOp, expected: Optional[Type]) -> Type:
        """
        Resolve expr together with the binary operators on its left side.

        Left-associative chains such as 1 + 2 + ... + n nest to the left,
        so the left spine is walked with a list rather than by recursion.
        Operands are typed so that a literal side takes the other's type:
        when only the left side is made of unsuffixed literals, the right
        side is resolved first and its type pins the left side.
        """
        spine = [expr]
        while isinstance(spine[-1].lhs, BinaryOp):
            spine.append(spine[-1].lhs)

        # Flexibility of each spine node's left operand, computed bottom-up
        left_flexible = [False] * len(spine)
        flexible = self._is_flexible(spine[-1].lhs)
        for i in reversed(range(len(spine))):
            left_flexible[i] = flexible
            node = spine[i]
            flexible = flexible and node.op.is_arithmetic and self._is_flexible(node.rhs)

        # Going down: pick what each left operand is expected to be
        right_types: list[Optional[Type]] = [None] * len(spine)
        hint = expected
        for i, node in enumerate(spine):
            if node.op.is_logical:
                hint = TYPE_BOOL
                continue
            if not node.op.is_arithmetic:
                hint = None
            if left_flexible[i] and not self._is_flexible(node.rhs):
                right_types[i] = self._resolve_expression(node.rhs, None)
                hint = right_types[i]

        # Coming back up: each node's type is the next node's left operand
        t = self._resolve_expression(spine[-1].lhs, hint)
        for i in reversed(range(len(spine))):
            node = spine[i]
            t = self._check_binary(node, t, right_types[i])
            node.resolved_type = t
        return t

    def _check_binary(self, expr: BinaryOp, lt: Type, rt: Optional[Type]) -> Type:
        """
        Check one operator whose left operand has type lt.

        The right operand is resolved here unless it was resolved ahead of
        the left one, in which case rt holds its type.
        """
        op = expr.op.value

        if expr.op.is_logical:
            if not isinstance(lt, Bool):
                raise self._mismatch(f"operands of '{op}' must be bool", TYPE_BOOL, lt, expr.lhs.location)
            rt = self._resolve_expression(expr.rhs, TYPE_BOOL)
            if not isinstance(rt, Bool):
                raise self._mismatch(f"operands of '{op}' must be bool", TYPE_BOOL, rt, expr.rhs.location)
            return TYPE_BOOL

        if rt is None:
            rt = self._resolve_expression(expr.rhs, lt)

        if lt != rt:
            raise self._mismatch(f"mismatched types in '{op}'", lt, rt, expr.rhs.location)

        if expr.op.is_arithmetic:
            if not lt.is_integer:
                raise self._error(f"operator '{op}' cannot be applied to type '{lt}'", expr.location)
            return lt

        if expr.op in (BinaryOperator.EQUAL, BinaryOperator.NOT_EQUAL):
            if not (lt.is_integer or isinstance(lt, (Bool, Pointer, Reference))):
                raise self._error(f"cannot compare values of type '{lt}' with '{op}'", expr.location)
        elif not lt.is_integer:
            raise self._error(f"cannot order values of type '{lt}' with '{op}'", expr.location)

        return TYPE_BOOL

    def _resolve_unary(self, expr: UnaryOp, expected: Optional[Type]) -> Type:
        if expr.op == UnaryOperator.NEGATE:
            return self._resolve_negate(expr, expected)

        if expr.op == UnaryOperator.LOGICAL_NOT:
            t = self._resolve_expression(expr.operand, TYPE_BOOL)
            if not isinstance(t, Bool):
                raise self._mismatch("operand of '!' must be bool", TYPE_BOOL, t, expr.operand.location)
            return TYPE_BOOL

        if expr.op == UnaryOperator.ADDRESS_OF:
            if not is_lvalue(expr.operand):
                raise InvalidLValueError(
                    "take the address of",
                    location=expr.operand.location,
                    source_line=self._source_line(expr.operand.location),
                )
            return Reference(self._resolve_expression(expr.operand, pointee(expected) if expected else None))

        t = self._resolve_expression(expr.operand, None)
        target = pointee(t)
        if target is None:
            raise self._error(
                f"type '{t}' cannot be dereferenced",
                expr.location,
                hint="only pointers and references can be dereferenced",
            )
        return target

    def _resolve_negate(self, expr: UnaryOp, expected: Optional[Type]) -> Type:
        operand = expr.operand

        # A negated literal is range-checked as one value, so -128i8 is valid
        if isinstance(operand, IntegerLiteral):
            t = self._literal_type(operand, expected)
            if t.signed and not t.contains(-operand.value):
                raise self._error(
                    f"integer literal -{operand.value} out of range for '{t}'",
                    expr.location,
                    hint=f"'{t}' holds values from {t.min_value} to {t.max_value}",
                )
            operand.resolved_type = t
        else:
            t = self._resolve_expression(operand, expected)

        if not (isinstance(t, Integer) and t.signed):
            raise self._error(
                f"cannot negate a value of type '{t}'",
                expr.location,
                hint="'-' needs a signed integer type",
            )
        return t

    # -------------------------------------------------------------------------
    # Places, Assignment and Calls
    # -------------------------------------------------------------------------

    def _resolve_index(self, expr: Index) -> Type:
        base_type = self._resolve_expression(expr.base, None)
        result = element_type(base_type)
        if result is None:
            raise self._error(
                f"cannot index into a value of type '{base_type}'",
                expr.base.location,
                hint="only arrays, slices and strings can be indexed",
            )

        index_type = self._resolve_expression(expr.index, None)
        if not index_type.is_integer:
            raise self._error(
                f"index must be an integer, got '{index_type}'",
                expr.index.location,
            )
        return result

    def _resolve_assignment(self, expr: Assignment) -> Type:
        if not is_lvalue(expr.target):
            raise InvalidLValueError(
                location=expr.target.location,
                source_line=self._source_line(expr.target.location),
            )

        target_type = self._resolve_expression(expr.target, None)
        if isinstance(expr.target, Index) and isinstance(expr.target.base.resolved_type, Str):
            raise self._error(
                "cannot assign to an element of a string",
                expr.target.location,
                hint="string data is read-only",
            )

        self._resolve_expression(expr.value, target_type)
        self._coerce(expr.value, target_type, "assignment")
        return target_type

    def _resolve_call(self, expr: FunctionCall) -> Type:
        entry = self._scope.lookup(expr.name)
        if entry is None:
            raise UndeclaredIdentifierError(
                expr.name,
                location=expr.location,
                source_line=self._source_line(expr.location),
                similar_identifiers=self._scope.similar_names(expr.name),
                kind="function",
            )
        if not isinstance(entry, FunctionSignature):
            raise self._error(
                f"'{expr.name}' is a variable of type '{entry.type}', not a function",
                expr.location,
            )

        if len(expr.args) != len(entry.param_types):
            raise ArgumentCountError(
                expr.name,
                len(entry.param_types),
                len(expr.args),
                location=expr.location,
                source_line=self._source_line(expr.location),
            )

        for position, (arg, param_type) in enumerate(zip(expr.args, entry.param_types), start=1):
            self._resolve_expression(arg, param_type)
            self._coerce(arg, param_type, f"argument {position} of '{expr.name}'")

        expr.signature = entry
        return entry.return_type


# =============================================================================
# Convenience Functions
# =============================================================================

def resolve_program(
    program: Program,
    filename: str = "<input>",
    source_lines: Optional[list[str]] = None,
) -> Program:
    """Resolve program with a fresh TypeResolver and return it."""
    return TypeResolver(filename, source_lines).resolve(program)
