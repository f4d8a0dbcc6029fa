"""
x86-64 Code Generator for ruscom
================================

This module generates x86-64 assembly from the type-resolved AST. The
output is GNU assembler source in Intel syntax, which gcc assembles and
links into an executable.

Code Generation Strategy
------------------------
The code generator uses a simple accumulator/stack evaluation model:

1. Every expression leaves its value in rax, sign- or zero-extended to
   64 bits according to its type. Two-word values (slices and strings)
   keep the data pointer in rax and the length in rdx.
2. For binary operations, the left operand is pushed, the right operand
   is evaluated into rax, then moved to rdi and the left popped back.
3. Variables live in memory: locals and parameters in the stack frame
   below rbp, globals in labelled data. Nothing lives in a register
   across statements or calls.
4. The value of an array-typed expression is the address of the array,
   so indexing and whole-array copies share one code path.

Register Usage
--------------
| Register            | Usage                                         |
|---------------------|-----------------------------------------------|
| rax                 | Accumulator, return value                     |
| rdx                 | Second word of slices/strings, div remainder  |
| rdi                 | Right operand, store address                  |
| rsi, rcx            | Block copy source and count                   |
| rdi rsi rdx rcx r8 r9 | First six argument words (System V)         |
| rbp                 | Frame pointer                                 |

Stack Frame Layout
------------------
    +------------------+
    | Stack arguments  |  rbp+16, rbp+24, ... (argument words 7+)
    +------------------+
    | Return address   |  rbp+8
    +------------------+
    | Saved rbp        |  <- rbp
    +------------------+
    | Parameters       |  rbp-OFF (spilled from registers on entry)
    | Locals           |
    +------------------+  <- rsp after prologue (16-byte aligned)
    | Temp values      |  (pushed during expression evaluation)
    +------------------+

Calls
-----
Arguments are evaluated left to right into a block reserved below the
temporaries, one word per slot. The first six words are then loaded
into the argument registers and their slots released, leaving the
remaining words on top of the stack in the order the callee expects.
One padding word is added when needed so that rsp is 16-byte aligned
at the call; the generator tracks the push depth to know when.

Usage
-----
>>> from ruscom.parser import parse_source
>>> from ruscom.resolver import resolve_program
>>> from ruscom.codegen import CodeGenerator
>>> program = resolve_program(parse_source('fn main() -> i32 { return 42; }'))
>>> asm = CodeGenerator().generate(program)
>>> asm.splitlines()[0]
'.intel_syntax noprefix'
"""

import logging
from typing import Optional

from ruscom.errors import CodegenError
from ruscom.types import (
    Type,
    Integer,
    Array,
    TYPE_I64,
    WORD_SIZE,
    word_count,
)
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
    IntegerLiteral,
    BoolLiteral,
    StringLiteral,
    VariableRef,
    BinaryOp,
    UnaryOp,
    Index,
    Assignment,
    FunctionCall,
    BinaryOperator,
    UnaryOperator,
    Coercion,
)
from ruscom.resolver import constant_value


logger = logging.getLogger(__name__)


# =============================================================================
# Register and Operand Tables
# =============================================================================

# System V AMD64 integer argument registers, by size in bytes
ARGUMENT_REGISTERS = [
    {8: "rdi", 4: "edi", 2: "di", 1: "dil"},
    {8: "rsi", 4: "esi", 2: "si", 1: "sil"},
    {8: "rdx", 4: "edx", 2: "dx", 1: "dl"},
    {8: "rcx", 4: "ecx", 2: "cx", 1: "cl"},
    {8: "r8", 4: "r8d", 2: "r8w", 1: "r8b"},
    {8: "r9", 4: "r9d", 2: "r9w", 1: "r9b"},
]

ACCUMULATOR = {8: "rax", 4: "eax", 2: "ax", 1: "al"}

OPERAND_SIZE = {8: "QWORD", 4: "DWORD", 2: "WORD", 1: "BYTE"}

# Data directive for each scalar size
DATA_DIRECTIVE = {8: ".quad", 4: ".long", 2: ".short", 1: ".byte"}

SIGNED_CONDITIONS = {
    BinaryOperator.EQUAL: "e",
    BinaryOperator.NOT_EQUAL: "ne",
    BinaryOperator.LESS: "l",
    BinaryOperator.LESS_EQ: "le",
    BinaryOperator.GREATER: "g",
    BinaryOperator.GREATER_EQ: "ge",
}

UNSIGNED_CONDITIONS = {
    BinaryOperator.EQUAL: "e",
    BinaryOperator.NOT_EQUAL: "ne",
    BinaryOperator.LESS: "b",
    BinaryOperator.LESS_EQ: "be",
    BinaryOperator.GREATER: "a",
    BinaryOperator.GREATER_EQ: "ae",
}


def escape_ascii(data: bytes) -> str:
    """
    Escape bytes for a GNU assembler .ascii directive.

    Printable ASCII is kept as is; quotes, backslashes and every other
    byte become three-digit octal escapes.
    """
    parts = []
    for byte in data:
        if 0x20 <= byte < 0x7F and byte not in (0x22, 0x5C):
            parts.append(chr(byte))
        else:
            parts.append(f"\\{byte:03o}")
    return "".join(parts)


def is_signed(t: Type) -> bool:
    return isinstance(t, Integer) and t.signed


# =============================================================================
# Code Generator
# =============================================================================

class CodeGenerator:
    """
    Generates x86-64 assembly for a type-resolved Program.

    Each call to generate() starts from a clean state, so generating the
    same program twice gives identical text.
    """

    def __init__(self, output_comments: bool = True):
        """
        Initialize the code generator.

        Args:
            output_comments: Emit '#' comments describing functions and
                statements in the generated assembly.
        """
        self._output_comments = output_comments

        # Assembly output lines
        self._output: list[str] = []

        # Label generation
        self._label_counter: int = 0

        # String literal pool: encoded bytes -> label
        self._strings: dict[bytes, str] = {}

        # Current function context
        self._current_function: Optional[FunctionDef] = None
        self._return_label: str = ""

        # 8-byte words pushed below the frame since the prologue
        self._depth: int = 0

    def generate(self, program: Program) -> str:
        """
        Generate assembly code from the resolved AST.

        Args:
            program: The root AST node, already through the resolver

        Returns:
            Complete assembly source, ending in a newline

        Raises:
            CodegenError: If the tree violates a resolver invariant
        """
        self._output = []
        self._label_counter = 0
        self._strings = {}
        self._depth = 0

        self._emit(".intel_syntax noprefix")
        self._emit("")
        self._emit(".text")

        for func in program.functions:
            self._generate_function(func)

        self._emit_globals(program.globals)
        self._emit_strings()

        self._emit("")
        self._emit('.section .note.GNU-stack,"",@progbits')

        logger.debug(
            f"Generated {len(self._output)} lines of assembly "
            f"({len(program.functions)} functions, {len(self._strings)} strings)"
        )
        return "\n".join(self._output) + "\n"

    # =========================================================================
    # Assembly Output Methods
    # =========================================================================

    def _emit(self, line: str = "") -> None:
        """Emit a line of assembly."""
        self._output.append(line)

    def _emit_comment(self, comment: str) -> None:
        if self._output_comments:
            self._emit(f"        # {comment}")

    def _emit_label(self, label: str) -> None:
        """Emit a label definition."""
        self._emit(f"{label}:")

    def _emit_instruction(self, mnemonic: str, operand: str = "") -> None:
        """Emit an instruction with optional operands."""
        if operand:
            self._emit(f"        {mnemonic:<8}{operand}")
        else:
            self._emit(f"        {mnemonic}")

    def _new_label(self, prefix: str) -> str:
        """Generate a unique local label."""
        self._label_counter += 1
        return f".L{prefix}{self._label_counter}"

    def _push(self, register: str = "rax") -> None:
        self._emit_instruction("push", register)
        self._depth += 1

    def _pop(self, register: str) -> None:
        self._emit_instruction("pop", register)
        self._depth -= 1

    # =========================================================================
    # Data Sections
    # =========================================================================

    def _emit_globals(self, globals_: list[Declaration]) -> None:
        """Emit initialized globals to .data and the rest to .bss."""
        initialized = [decl for decl in globals_ if decl.initializer is not None]
        zeroed = [decl for decl in globals_ if decl.initializer is None]

        if initialized:
            self._emit("")
            self._emit(".data")
            for decl in initialized:
                symbol = self._symbol_of(decl)
                t = symbol.type
                value = constant_value(decl.initializer)
                if isinstance(t, Integer):
                    value = t.wrap(value)
                self._emit_instruction(".balign", str(t.align))
                self._emit_label(symbol.label)
                self._emit_instruction(DATA_DIRECTIVE[t.size], str(value))

        if zeroed:
            self._emit("")
            self._emit(".bss")
            for decl in zeroed:
                symbol = self._symbol_of(decl)
                self._emit_instruction(".balign", str(max(symbol.type.align, 1)))
                self._emit_label(symbol.label)
                self._emit_instruction(".zero", str(max(symbol.type.size, 1)))

    def _emit_strings(self) -> None:
        """Emit the string literal pool."""
        if not self._strings:
            return

        self._emit("")
        self._emit(".section .rodata")
        for data, label in self._strings.items():
            self._emit_label(label)
            self._emit_instruction(".ascii", f'"{escape_ascii(data)}"')

    def _intern_string(self, value: str) -> tuple[str, int]:
        """Return the pool label and byte length of a string literal."""
        data = value.encode("utf-8")
        label = self._strings.get(data)
        if label is None:
            label = f".LS{len(self._strings)}"
            self._strings[data] = label
        return label, len(data)

    # =========================================================================
    # Loads, Stores and Normalization
    # =========================================================================

    def _emit_load(self, t: Type, base: str) -> None:
        """
        Load a value of type t from [base] into the accumulator.

        Arrays load their address instead of their contents. Two-word
        values load the second word first, since base may be rax.
        """
        if isinstance(t, Array):
            self._emit_instruction("lea", f"rax, [{base}]")
            return
        if t.is_wide:
            self._emit_instruction("mov", f"rdx, QWORD PTR [{base}+8]")
            self._emit_instruction("mov", f"rax, QWORD PTR [{base}]")
            return

        size = t.size
        if size == 8:
            self._emit_instruction("mov", f"rax, QWORD PTR [{base}]")
        elif size == 4:
            if is_signed(t):
                self._emit_instruction("movsxd", f"rax, DWORD PTR [{base}]")
            else:
                self._emit_instruction("mov", f"eax, DWORD PTR [{base}]")
        elif is_signed(t):
            self._emit_instruction("movsx", f"rax, {OPERAND_SIZE[size]} PTR [{base}]")
        else:
            self._emit_instruction("movzx", f"eax, {OPERAND_SIZE[size]} PTR [{base}]")

    def _emit_store(self, t: Type, base: str) -> None:
        """
        Store the accumulator as a value of type t to [base].

        Array values are addresses; storing one copies the array's bytes
        and leaves the destination address in rax.
        """
        if isinstance(t, Array):
            self._emit_instruction("mov", "rsi, rax")
            if base != "rdi":
                self._emit_instruction("lea", f"rdi, [{base}]")
            self._emit_instruction("mov", "rax, rdi")
            self._emit_instruction("mov", f"rcx, {t.size}")
            self._emit_instruction("rep movsb")
            return
        if t.is_wide:
            self._emit_instruction("mov", f"QWORD PTR [{base}], rax")
            self._emit_instruction("mov", f"QWORD PTR [{base}+8], rdx")
            return

        size = t.size
        self._emit_instruction("mov", f"{OPERAND_SIZE[size]} PTR [{base}], {ACCUMULATOR[size]}")

    def _emit_zero(self, t: Type, base: str) -> None:
        """Zero-fill the storage of a value of type t at [base]."""
        if isinstance(t, Array) or t.is_wide:
            self._emit_instruction("lea", f"rdi, [{base}]")
            self._emit_instruction("mov", f"rcx, {t.size}")
            self._emit_instruction("xor", "eax, eax")
            self._emit_instruction("rep stosb")
        else:
            self._emit_instruction("mov", f"{OPERAND_SIZE[t.size]} PTR [{base}], 0")

    def _emit_normalize(self, t: Type) -> None:
        """Re-extend rax to 64 bits after arithmetic on a narrow type."""
        if not isinstance(t, Integer) or t.bits == 64:
            return
        if t.bits == 32:
            if t.signed:
                self._emit_instruction("movsxd", "rax, eax")
            else:
                self._emit_instruction("mov", "eax, eax")
            return

        small = ACCUMULATOR[t.size]
        if t.signed:
            self._emit_instruction("movsx", f"rax, {small}")
        else:
            self._emit_instruction("movzx", f"eax, {small}")

    # =========================================================================
    # Functions
    # =========================================================================

    def _generate_function(self, func: FunctionDef) -> None:
        """Generate code for a function definition."""
        if func.frame is None or func.label is None:
            raise CodegenError(f"function '{func.name}' has not been resolved", func.location)

        self._current_function = func
        self._return_label = self._new_label("return")
        self._depth = 0

        self._emit("")
        self._emit_comment(f"fn {func.name} -> {func.return_type}")
        if func.label == "main":
            self._emit_instruction(".globl", func.label)
        self._emit_label(func.label)

        # Prologue
        self._emit_instruction("push", "rbp")
        self._emit_instruction("mov", "rbp, rsp")
        if func.frame.size > 0:
            self._emit_instruction("sub", f"rsp, {func.frame.size}")

        self._spill_parameters(func)
        self._generate_block(func.body)

        # Falling off the end returns zero
        self._emit_instruction("mov", "rax, 0")
        if func.return_type.is_wide:
            self._emit_instruction("mov", "rdx, 0")

        # Epilogue
        self._emit_label(self._return_label)
        self._emit_instruction("mov", "rsp, rbp")
        self._emit_instruction("pop", "rbp")
        self._emit_instruction("ret")

        if self._depth != 0:
            raise CodegenError(
                f"unbalanced evaluation stack in '{func.name}' ({self._depth} words left)",
                func.location,
            )
        self._current_function = None

    def _spill_parameters(self, func: FunctionDef) -> None:
        """Copy incoming argument words to the parameters' frame slots."""
        word = 0
        for param in func.params:
            symbol = param.symbol
            if symbol is None:
                raise CodegenError(f"parameter '{param.name}' is unresolved", param.location)

            t = symbol.type
            if t.is_wide:
                self._spill_word(word, 8, symbol.address)
                self._spill_word(word + 1, 8, f"{symbol.address}+8")
            else:
                self._spill_word(word, t.size, symbol.address)
            word += word_count(t)

    def _spill_word(self, word: int, size: int, base: str) -> None:
        if word < len(ARGUMENT_REGISTERS):
            source = ARGUMENT_REGISTERS[word][size]
        else:
            # Words past the sixth sit above the return address
            stack_offset = 2 * WORD_SIZE + (word - len(ARGUMENT_REGISTERS)) * WORD_SIZE
            self._emit_instruction("mov", f"rax, QWORD PTR [rbp+{stack_offset}]")
            source = ACCUMULATOR[size]
        self._emit_instruction("mov", f"{OPERAND_SIZE[size]} PTR [{base}], {source}")

    # =========================================================================
    # Statement Code Generation
    # =========================================================================

    def _generate_block(self, block: Block) -> None:
        """Generate code for a block statement."""
        for stmt in block.statements:
            self._generate_statement(stmt)

    def _generate_statement(self, stmt: Statement) -> None:
        """Generate code for any statement."""
        if isinstance(stmt, Declaration):
            self._generate_declaration(stmt)
        elif isinstance(stmt, ExpressionStatement):
            self._generate_expression(stmt.expression)
        elif isinstance(stmt, Block):
            self._generate_block(stmt)
        elif isinstance(stmt, If):
            self._generate_if(stmt)
        elif isinstance(stmt, While):
            self._generate_while(stmt)
        elif isinstance(stmt, Return):
            self._generate_return(stmt)
        else:
            raise CodegenError(f"unknown statement kind {stmt!r}", stmt.location)

    def _generate_declaration(self, decl: Declaration) -> None:
        symbol = self._symbol_of(decl)
        self._emit_comment(f"let {decl.name}: {symbol.type} @ {symbol.address}")

        if decl.initializer is None:
            self._emit_zero(symbol.type, symbol.address)
        else:
            self._generate_expression(decl.initializer)
            self._emit_store(symbol.type, symbol.address)

    def _generate_if(self, stmt: If) -> None:
        """Generate code for if statement."""
        else_label = self._new_label("else")
        end_label = self._new_label("end")

        self._emit_comment("if condition")
        self._generate_expression(stmt.condition)
        self._emit_instruction("cmp", "rax, 0")
        self._emit_instruction("je", else_label)

        self._generate_block(stmt.then_block)

        if stmt.else_block is not None:
            self._emit_instruction("jmp", end_label)
            self._emit_label(else_label)
            self._generate_block(stmt.else_block)
            self._emit_label(end_label)
        else:
            self._emit_label(else_label)

    def _generate_while(self, stmt: While) -> None:
        """Generate code for while statement."""
        begin_label = self._new_label("begin")
        end_label = self._new_label("end")

        self._emit_label(begin_label)
        self._emit_comment("while condition")
        self._generate_expression(stmt.condition)
        self._emit_instruction("cmp", "rax, 0")
        self._emit_instruction("je", end_label)

        self._generate_block(stmt.body)
        self._emit_instruction("jmp", begin_label)
        self._emit_label(end_label)

    def _generate_return(self, stmt: Return) -> None:
        """Generate code for return statement."""
        if stmt.value is not None:
            self._emit_comment("return value")
            self._generate_expression(stmt.value)
        else:
            self._emit_instruction("mov", "rax, 0")
            if self._current_function.return_type.is_wide:
                self._emit_instruction("mov", "rdx, 0")

        # Jump to function epilogue
        self._emit_instruction("jmp", self._return_label)

    # =========================================================================
    # Expression Code Generation
    # =========================================================================

    def _generate_expression(self, expr: Expression) -> None:
        """
        Generate code for an expression.

        The result is left in rax (rax:rdx for slices and strings), with
        any coercion the resolver recorded already applied.
        """
        if expr.resolved_type is None:
            raise CodegenError(f"expression {expr!r} has no resolved type", expr.location)

        if isinstance(expr, IntegerLiteral):
            self._emit_instruction("mov", f"rax, {TYPE_I64.wrap(expr.value)}")
        elif isinstance(expr, BoolLiteral):
            self._emit_instruction("mov", f"rax, {int(expr.value)}")
        elif isinstance(expr, StringLiteral):
            self._generate_string(expr)
        elif isinstance(expr, VariableRef):
            symbol = self._symbol_of(expr)
            self._emit_load(symbol.type, symbol.address)
        elif isinstance(expr, BinaryOp):
            self._generate_binary(expr)
        elif isinstance(expr, UnaryOp):
            self._generate_unary(expr)
        elif isinstance(expr, Index):
            self._generate_element_address(expr)
            self._emit_load(expr.resolved_type, "rax")
        elif isinstance(expr, Assignment):
            self._generate_assignment(expr)
        elif isinstance(expr, FunctionCall):
            self._generate_call(expr)
        else:
            raise CodegenError(f"unknown expression kind {expr!r}", expr.location)

        if expr.coercion == Coercion.ARRAY_REF_TO_SLICE:
            # rax already holds the array address; add the element count
            self._emit_instruction("mov", f"edx, {expr.resolved_type.to.length}")

    def _generate_string(self, expr: StringLiteral) -> None:
        """Generate code for a string literal: pointer in rax, length in rdx."""
        label, length = self._intern_string(expr.value)
        self._emit_instruction("lea", f"rax, [rip+{label}]")
        self._emit_instruction("mov", f"rdx, {length}")

    def _generate_binary(self, expr: BinaryOp) -> None:
        """
        Generate code for a binary expression and the chain of binary
        operators on its left side.

        The left spine is walked with a list, so 1 + 2 + ... + n does not
        nest a Python call per operator. Each step starts with the left
        operand's value in rax.
        """
        spine = [expr]
        while isinstance(spine[-1].lhs, BinaryOp) and spine[-1].lhs.coercion is None:
            node = spine[-1].lhs
            if node.resolved_type is None:
                raise CodegenError(f"expression {node!r} has no resolved type", node.location)
            spine.append(node)

        # Short-circuit labels are numbered outermost first
        end_labels = [self._new_label("end") if node.op.is_logical else None for node in spine]

        self._generate_expression(spine[-1].lhs)
        for node, end_label in zip(reversed(spine), reversed(end_labels)):
            if end_label is not None:
                self._generate_logical(node, end_label)
            else:
                self._generate_operator(node)

    def _generate_operator(self, expr: BinaryOp) -> None:
        """Apply an arithmetic or comparison operator to rax and expr.rhs."""
        op = expr.op

        self._push()
        self._generate_expression(expr.rhs)
        self._emit_instruction("mov", "rdi, rax")
        self._pop("rax")

        if op.is_comparison:
            conditions = SIGNED_CONDITIONS if is_signed(expr.lhs.resolved_type) else UNSIGNED_CONDITIONS
            self._emit_instruction("cmp", "rax, rdi")
            self._emit_instruction(f"set{conditions[op]}", "al")
            self._emit_instruction("movzx", "eax, al")
            return

        t = expr.resolved_type
        if op == BinaryOperator.ADD:
            self._emit_instruction("add", "rax, rdi")
        elif op == BinaryOperator.SUBTRACT:
            self._emit_instruction("sub", "rax, rdi")
        elif op == BinaryOperator.MULTIPLY:
            self._emit_instruction("imul", "rax, rdi")
        elif op in (BinaryOperator.DIVIDE, BinaryOperator.MODULO):
            if is_signed(t):
                self._emit_instruction("cqo")
                self._emit_instruction("idiv", "rdi")
            else:
                self._emit_instruction("xor", "edx, edx")
                self._emit_instruction("div", "rdi")
            if op == BinaryOperator.MODULO:
                self._emit_instruction("mov", "rax, rdx")
        else:
            raise CodegenError(f"unknown binary operator '{op.value}'", expr.location)

        self._emit_normalize(t)

    def _generate_logical(self, expr: BinaryOp, end_label: str) -> None:
        """
        Generate short-circuit '&&' or '||' with the left operand in rax.

        Both operands are 0 or 1, so the result is whichever operand was
        evaluated last.
        """
        skip = "je" if expr.op == BinaryOperator.LOGICAL_AND else "jne"

        self._emit_instruction("cmp", "rax, 0")
        self._emit_instruction(skip, end_label)
        self._generate_expression(expr.rhs)
        self._emit_label(end_label)

    def _generate_unary(self, expr: UnaryOp) -> None:
        """Generate code for unary expression."""
        op = expr.op
        operand = expr.operand

        if op == UnaryOperator.NEGATE:
            if isinstance(operand, IntegerLiteral):
                self._emit_instruction("mov", f"rax, {-operand.value}")
                return
            self._generate_expression(operand)
            self._emit_instruction("neg", "rax")
            self._emit_normalize(expr.resolved_type)
        elif op == UnaryOperator.LOGICAL_NOT:
            self._generate_expression(operand)
            self._emit_instruction("xor", "rax, 1")
        elif op == UnaryOperator.ADDRESS_OF:
            self._generate_address(operand)
        elif op == UnaryOperator.DEREFERENCE:
            self._generate_expression(operand)
            self._emit_load(expr.resolved_type, "rax")
        else:
            raise CodegenError(f"unknown unary operator '{op.value}'", expr.location)

    # -------------------------------------------------------------------------
    # Addresses and Assignment
    # -------------------------------------------------------------------------

    def _generate_address(self, expr: Expression) -> None:
        """Compute the address of an lvalue into rax."""
        if isinstance(expr, VariableRef):
            symbol = self._symbol_of(expr)
            self._emit_instruction("lea", f"rax, [{symbol.address}]")
        elif isinstance(expr, Index):
            self._generate_element_address(expr)
        elif isinstance(expr, UnaryOp) and expr.op == UnaryOperator.DEREFERENCE:
            # The address of *p is the value of p
            self._generate_expression(expr.operand)
        else:
            raise CodegenError(f"cannot take the address of {expr!r}", expr.location)

    def _generate_element_address(self, expr: Index) -> None:
        """
        Compute base + index * element_size into rax.

        Arrays evaluate to their own address; slices and strings evaluate
        to (data pointer, length) and only the pointer is used.
        """
        element_size = expr.resolved_type.size

        self._generate_expression(expr.base)
        self._push()
        self._generate_expression(expr.index)
        if element_size != 1:
            self._emit_instruction("imul", f"rax, rax, {element_size}")
        self._pop("rdi")
        self._emit_instruction("add", "rax, rdi")

    def _generate_assignment(self, expr: Assignment) -> None:
        """Generate code for assignment; the stored value stays in rax."""
        t = expr.resolved_type
        target = expr.target

        if isinstance(target, VariableRef):
            symbol = self._symbol_of(target)
            self._generate_expression(expr.value)
            self._emit_store(t, symbol.address)
            return

        self._generate_address(target)
        self._push()
        self._generate_expression(expr.value)
        self._pop("rdi")
        self._emit_store(t, "rdi")

    # -------------------------------------------------------------------------
    # Calls
    # -------------------------------------------------------------------------

    def _generate_call(self, expr: FunctionCall) -> None:
        """
        Generate code for a function call.

        Arguments are stored into a reserved block at [rsp], then the
        register words are loaded and released so the stack words are
        left in place for the callee.
        """
        signature = expr.signature
        if signature is None:
            raise CodegenError(f"call to '{expr.name}' is unresolved", expr.location)

        words = sum(word_count(t) for t in signature.param_types)
        register_words = min(words, len(ARGUMENT_REGISTERS))
        stack_words = words - register_words
        padding = (self._depth + stack_words) % 2

        reserved = words + padding
        if reserved:
            self._emit_instruction("sub", f"rsp, {reserved * WORD_SIZE}")
            self._depth += reserved

        slot = 0
        for arg, param_type in zip(expr.args, signature.param_types):
            self._generate_expression(arg)
            self._emit_instruction("mov", f"QWORD PTR [rsp+{slot * WORD_SIZE}], rax")
            if param_type.is_wide:
                self._emit_instruction("mov", f"QWORD PTR [rsp+{(slot + 1) * WORD_SIZE}], rdx")
            slot += word_count(param_type)

        for word in range(register_words):
            register = ARGUMENT_REGISTERS[word][8]
            self._emit_instruction("mov", f"{register}, QWORD PTR [rsp+{word * WORD_SIZE}]")
        if register_words:
            self._emit_instruction("add", f"rsp, {register_words * WORD_SIZE}")
            self._depth -= register_words

        self._emit_instruction("call", signature.label)

        if stack_words + padding:
            self._emit_instruction("add", f"rsp, {(stack_words + padding) * WORD_SIZE}")
            self._depth -= stack_words + padding

    # =========================================================================
    # Helpers
    # =========================================================================

    def _symbol_of(self, node):
        """Return the Symbol the resolver bound to node."""
        if node.symbol is None:
            raise CodegenError(f"'{node.name}' is not bound to a symbol", node.location)
        return node.symbol
