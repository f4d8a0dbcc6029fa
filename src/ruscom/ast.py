"""
ruscom Abstract Syntax Tree (AST) Definitions
=============================================

This module defines the AST node types produced by the parser,
decorated by the type resolver, and consumed by the code generator.

Node Hierarchy
--------------
ASTNode (base)
├── Program - root node holding functions and globals in source order
├── Items
│   ├── FunctionDef - function definition
│   └── Parameter - function parameter
├── Statements
│   ├── Declaration - let/static binding
│   ├── Block - { ... }
│   ├── If - if/else (else-if chains nest)
│   ├── While - while loop
│   ├── Return - return statement
│   └── ExpressionStatement - expression followed by ';'
└── Expressions
    ├── IntegerLiteral - integer constant, optionally suffixed
    ├── BoolLiteral - true/false
    ├── StringLiteral - string constant
    ├── VariableRef - variable reference
    ├── BinaryOp - binary operators
    ├── UnaryOp - -, !, &, *
    ├── Index - base[index]
    ├── Assignment - target = value
    └── FunctionCall - name(args)

Design Notes
------------
- All nodes are dataclasses; each child is owned by exactly one parent
- Each node stores its source location for error reporting
- Fields marked "set by the resolver" are None until type resolution
  and are excluded from equality comparison
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, TYPE_CHECKING

from ruscom.errors import SourceLocation
from ruscom.types import Type

if TYPE_CHECKING:
    from ruscom.symbols import Symbol, FunctionSignature
    from ruscom.resolver import FrameLayout


# =============================================================================
# AST Node Base Classes
# =============================================================================

@dataclass
class ASTNode:
    """
    Base class for all AST nodes.

    Attributes:
        location: Source location where this node appears
    """
    location: SourceLocation

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}@{self.location.line}:{self.location.column}"


class Coercion(Enum):
    """
    Implicit reference conversion applied to an expression's value.

    The resolver records these where a reference is used in a position
    that expects a pointer or a slice; the code generator applies
    them after evaluating the expression.
    """
    REF_TO_POINTER = "&T -> *T"
    ARRAY_REF_TO_SLICE = "&[T; N] -> &[T]"


@dataclass
class Expression(ASTNode):
    """
    Base class for all expression nodes.

    Attributes:
        resolved_type: The type of the value (set by the resolver)
        coercion: Conversion applied to the value (set by the resolver);
            resolved_type is the type before the conversion
    """
    resolved_type: Optional[Type] = field(default=None, compare=False)
    coercion: Optional[Coercion] = field(default=None, compare=False)


@dataclass
class Statement(ASTNode):
    pass


# =============================================================================
# Expression Nodes
# =============================================================================

class BinaryOperator(Enum):
    """Binary operators, valued by their source spelling."""
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"
    MODULO = "%"
    EQUAL = "=="
    NOT_EQUAL = "!="
    LESS = "<"
    LESS_EQ = "<="
    GREATER = ">"
    GREATER_EQ = ">="
    LOGICAL_AND = "&&"
    LOGICAL_OR = "||"

    @property
    def is_arithmetic(self) -> bool:
        return self in ARITHMETIC_OPERATORS

    @property
    def is_comparison(self) -> bool:
        return self in COMPARISON_OPERATORS

    @property
    def is_logical(self) -> bool:
        return self in (BinaryOperator.LOGICAL_AND, BinaryOperator.LOGICAL_OR)


ARITHMETIC_OPERATORS = frozenset({
    BinaryOperator.ADD,
    BinaryOperator.SUBTRACT,
    BinaryOperator.MULTIPLY,
    BinaryOperator.DIVIDE,
    BinaryOperator.MODULO,
})

COMPARISON_OPERATORS = frozenset({
    BinaryOperator.EQUAL,
    BinaryOperator.NOT_EQUAL,
    BinaryOperator.LESS,
    BinaryOperator.LESS_EQ,
    BinaryOperator.GREATER,
    BinaryOperator.GREATER_EQ,
})


class UnaryOperator(Enum):
    NEGATE = "-"
    LOGICAL_NOT = "!"
    ADDRESS_OF = "&"
    DEREFERENCE = "*"


@dataclass
class IntegerLiteral(Expression):
    """
    Integer constant.

    Attributes:
        value: Non-negative literal value as written
        suffix: Explicit type suffix ("u8" in 255u8), or None
    """
    value: int = 0
    suffix: Optional[str] = None


@dataclass
class BoolLiteral(Expression):
    value: bool = False


@dataclass
class StringLiteral(Expression):
    """String constant; value holds the decoded text."""
    value: str = ""


@dataclass
class VariableRef(Expression):
    """
    Reference to a variable.

    Attributes:
        name: Variable name
        symbol: The bound Symbol (set by the resolver)
    """
    name: str = ""
    symbol: Optional["Symbol"] = field(default=None, compare=False, repr=False)


@dataclass
class BinaryOp(Expression):
    op: BinaryOperator = BinaryOperator.ADD
    lhs: Expression = None
    rhs: Expression = None


@dataclass
class UnaryOp(Expression):
    op: UnaryOperator = UnaryOperator.NEGATE
    operand: Expression = None


@dataclass
class Index(Expression):
    """
    Element access base[index].

    Attributes:
        base: Array, slice or string being indexed
        index: Integer index expression
    """
    base: Expression = None
    index: Expression = None


@dataclass
class Assignment(Expression):
    """
    Assignment target = value; the expression's value is the stored value.

    Attributes:
        target: The place being assigned (must be an lvalue)
        value: The new value
    """
    target: Expression = None
    value: Expression = None


@dataclass
class FunctionCall(Expression):
    """
    Call of a named function.

    Attributes:
        name: Callee name
        args: Argument expressions, evaluated left to right
        signature: The callee's signature (set by the resolver)
    """
    name: str = ""
    args: list[Expression] = field(default_factory=list)
    signature: Optional["FunctionSignature"] = field(default=None, compare=False, repr=False)


# =============================================================================
# Statement Nodes
# =============================================================================

@dataclass
class Declaration(Statement):
    """
    Variable binding, local (let) or global (static).

    Represents declarations like:
        let x: i32 = 10;
        let y = x;
        static COUNT: u64;

    Attributes:
        name: Variable name
        declared_type: Explicit type annotation, or None
        initializer: Optional initial value
        is_global: True for top-level bindings
        symbol: The Symbol created for this binding (set by the resolver)
    """
    name: str = ""
    declared_type: Optional[Type] = None
    initializer: Optional[Expression] = None
    is_global: bool = False
    symbol: Optional["Symbol"] = field(default=None, compare=False, repr=False)


@dataclass
class Block(Statement):
    statements: list[Statement] = field(default_factory=list)


@dataclass
class If(Statement):
    """
    if/else statement.

    An 'else if' is represented as an else_block holding a single If.

    Attributes:
        condition: Controlling expression (bool or integer)
        then_block: Block run when the condition holds
        else_block: Optional block run otherwise
    """
    condition: Expression = None
    then_block: Block = None
    else_block: Optional[Block] = None


@dataclass
class While(Statement):
    condition: Expression = None
    body: Block = None


@dataclass
class Return(Statement):
    value: Optional[Expression] = None


@dataclass
class ExpressionStatement(Statement):
    expression: Expression = None


# =============================================================================
# Top-Level Items
# =============================================================================

@dataclass
class Parameter(ASTNode):
    """
    Function parameter.

    Attributes:
        name: Parameter name
        param_type: Declared type
        symbol: The Symbol created for this parameter (set by the resolver)
    """
    name: str = ""
    param_type: Type = None
    symbol: Optional["Symbol"] = field(default=None, compare=False, repr=False)


@dataclass
class FunctionDef(ASTNode):
    """
    Function definition.

    Attributes:
        name: Function name
        params: Parameter declarations in order
        return_type: Declared return type (i64 when omitted)
        body: The function body
        explicit_return_type: False when '-> TYPE' was omitted; such a
            function returns i64 and widens any integer or bool it returns
        frame: Stack frame layout (set by the resolver)
        label: Assembly label of the entry point (set by the resolver)
    """
    name: str = ""
    params: list[Parameter] = field(default_factory=list)
    return_type: Type = None
    body: Block = None
    explicit_return_type: bool = True
    frame: Optional["FrameLayout"] = field(default=None, compare=False, repr=False)
    label: Optional[str] = field(default=None, compare=False, repr=False)


@dataclass
class Program(ASTNode):
    """
    Root node of the AST representing a complete compilation unit.

    Attributes:
        items: Functions and global declarations in source order
    """
    items: list[ASTNode] = field(default_factory=list)

    @property
    def functions(self) -> list[FunctionDef]:
        return [item for item in self.items if isinstance(item, FunctionDef)]

    @property
    def globals(self) -> list[Declaration]:
        return [item for item in self.items if isinstance(item, Declaration)]


# =============================================================================
# AST Printer (for debugging)
# =============================================================================

class ASTPrinter:
    """
    Renders an AST as an indented tree, one node per line.

    Used by the CLI's --ast option. Resolved types are shown after a
    colon once the tree has been through the resolver.
    """

    def __init__(self, indent: str = "  "):
        self._indent = indent
        self._lines: list[str] = []

    def print(self, node: ASTNode) -> str:
        self._lines = []

        # Depth-first with an explicit stack; long operator chains are deep
        pending = [(node, 0)]
        while pending:
            current, depth = pending.pop()
            label = self._describe(current)
            if isinstance(current, Expression) and current.resolved_type is not None:
                label += f" : {current.resolved_type}"
            self._line(depth, label)

            for child in reversed(self._children(current)):
                pending.append((child, depth + 1))

        return "\n".join(self._lines)

    def _line(self, depth: int, text: str) -> None:
        self._lines.append(f"{self._indent * depth}{text}")

    def _describe(self, node: ASTNode) -> str:
        name = node.__class__.__name__
        if isinstance(node, FunctionDef):
            params = ", ".join(f"{p.name}: {p.param_type}" for p in node.params)
            return f"{name} {node.name}({params}) -> {node.return_type}"
        if isinstance(node, Declaration):
            scope = "static" if node.is_global else "let"
            annotation = f": {node.declared_type}" if node.declared_type else ""
            return f"{name} {scope} {node.name}{annotation}"
        if isinstance(node, IntegerLiteral):
            return f"{name} {node.value}{node.suffix or ''}"
        if isinstance(node, (BoolLiteral, StringLiteral)):
            return f"{name} {node.value!r}"
        if isinstance(node, (VariableRef, FunctionCall)):
            return f"{name} {node.name}"
        if isinstance(node, (BinaryOp, UnaryOp)):
            return f"{name} {node.op.value}"
        return name

    def _children(self, node: ASTNode) -> list[ASTNode]:
        if isinstance(node, Program):
            return list(node.items)
        if isinstance(node, FunctionDef):
            return [node.body]
        if isinstance(node, Declaration):
            return [node.initializer] if node.initializer else []
        if isinstance(node, Block):
            return list(node.statements)
        if isinstance(node, If):
            children = [node.condition, node.then_block]
            if node.else_block:
                children.append(node.else_block)
            return children
        if isinstance(node, While):
            return [node.condition, node.body]
        if isinstance(node, Return):
            return [node.value] if node.value else []
        if isinstance(node, ExpressionStatement):
            return [node.expression]
        if isinstance(node, BinaryOp):
            return [node.lhs, node.rhs]
        if isinstance(node, UnaryOp):
            return [node.operand]
        if isinstance(node, Index):
            return [node.base, node.index]
        if isinstance(node, Assignment):
            return [node.target, node.value]
        if isinstance(node, FunctionCall):
            return list(node.args)
        return []
