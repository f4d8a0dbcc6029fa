"""
ruscom Type System
==================

This module implements the types of the ruscom language and their
storage layout on x86-64.

Supported Types
---------------
- i8, i16, i32, i64: signed two's-complement integers
- u8, u16, u32, u64: unsigned integers
- isize, usize: aliases for i64 and u64
- bool: one byte holding 0 or 1
- *T: raw pointer to T
- &T: reference to T
- [T; N]: fixed-length array of N elements
- [T]: slice (data pointer + element count), only usable behind '&'
  or as a coerced reference to an array
- str: string slice (data pointer + byte length)

Type Representation
-------------------
Each variant is a frozen dataclass, so two types are equal exactly when
they are the same variant with equal payloads:

    Pointer(Integer(32, True)) == Pointer(Integer(32, True))   # True
    Array(TYPE_U8, 4) == Array(TYPE_U8, 5)                     # False

Size Information (x86-64)
-------------------------
| Type          | Size (bytes)     | Alignment |
|---------------|------------------|-----------|
| iN / uN       | N / 8            | N / 8     |
| bool          | 1                | 1         |
| *T, &T        | 8                | 8         |
| [T; N]        | size(T) * N      | align(T)  |
| [T], str      | 16 (ptr, length) | 8         |
"""

from dataclasses import dataclass
from typing import Optional


# =============================================================================
# Type Variants
# =============================================================================

@dataclass(frozen=True)
class Type:
    """
    Base class for all ruscom types.

    Subclasses provide `size` and `align`, the storage layout used by
    the resolver for frame offsets and by the code generator for loads
    and stores.
    """

    @property
    def size(self) -> int:
        raise NotImplementedError

    @property
    def align(self) -> int:
        return self.size

    @property
    def is_integer(self) -> bool:
        return False

    @property
    def is_wide(self) -> bool:
        """Return True for two-word values (slices and strings)."""
        return False


@dataclass(frozen=True)
class Integer(Type):
    """
    Fixed-width integer type.

    Attributes:
        bits: Width in bits (8, 16, 32 or 64)
        signed: True for two's-complement signed types
    """
    bits: int
    signed: bool

    def __post_init__(self):
        if self.bits not in (8, 16, 32, 64):
            raise ValueError(f"unsupported integer width: {self.bits}")

    @property
    def size(self) -> int:
        return self.bits // 8

    @property
    def is_integer(self) -> bool:
        return True

    @property
    def min_value(self) -> int:
        return -(1 << (self.bits - 1)) if self.signed else 0

    @property
    def max_value(self) -> int:
        if self.signed:
            return (1 << (self.bits - 1)) - 1
        return (1 << self.bits) - 1

    def contains(self, value: int) -> bool:
        """Return True if value is representable in this type."""
        return self.min_value <= value <= self.max_value

    def wrap(self, value: int) -> int:
        """Reduce value to this type with two's-complement wraparound."""
        value &= (1 << self.bits) - 1
        if self.signed and value > self.max_value:
            value -= 1 << self.bits
        return value

    def __str__(self) -> str:
        return f"{'i' if self.signed else 'u'}{self.bits}"


@dataclass(frozen=True)
class Bool(Type):
    """Boolean type, stored as one byte holding 0 or 1."""

    @property
    def size(self) -> int:
        return 1

    def __str__(self) -> str:
        return "bool"


@dataclass(frozen=True)
class Pointer(Type):
    """Raw pointer to a value of type `to`."""
    to: Type

    @property
    def size(self) -> int:
        return 8

    def __str__(self) -> str:
        return f"*{self.to}"


@dataclass(frozen=True)
class Reference(Type):
    """Reference to a value of type `to`."""
    to: Type

    @property
    def size(self) -> int:
        return 8

    def __str__(self) -> str:
        return f"&{self.to}"


@dataclass(frozen=True)
class Array(Type):
    """
    Fixed-length array stored inline.

    Attributes:
        element: Element type
        length: Number of elements
    """
    element: Type
    length: int

    @property
    def size(self) -> int:
        return self.element.size * self.length

    @property
    def align(self) -> int:
        return self.element.align

    def __str__(self) -> str:
        return f"[{self.element}; {self.length}]"


@dataclass(frozen=True)
class Slice(Type):
    """View of a run of elements: data pointer followed by element count."""
    element: Type

    @property
    def size(self) -> int:
        return 16

    @property
    def align(self) -> int:
        return 8

    @property
    def is_wide(self) -> bool:
        return True

    def __str__(self) -> str:
        return f"[{self.element}]"


@dataclass(frozen=True)
class Str(Type):
    """String slice: pointer to UTF-8 bytes followed by the byte length."""

    @property
    def size(self) -> int:
        return 16

    @property
    def align(self) -> int:
        return 8

    @property
    def is_wide(self) -> bool:
        return True

    def __str__(self) -> str:
        return "str"


# =============================================================================
# Predefined Types
# =============================================================================

TYPE_I8 = Integer(8, True)
TYPE_I16 = Integer(16, True)
TYPE_I32 = Integer(32, True)
TYPE_I64 = Integer(64, True)
TYPE_U8 = Integer(8, False)
TYPE_U16 = Integer(16, False)
TYPE_U32 = Integer(32, False)
TYPE_U64 = Integer(64, False)
TYPE_BOOL = Bool()
TYPE_STR = Str()

# Type of an integer literal with no suffix and no context to pin it
TYPE_DEFAULT_INT = TYPE_I64

# Machine word size and the stack alignment required at call sites
WORD_SIZE = 8
STACK_ALIGNMENT = 16

TYPE_NAMES: dict[str, Type] = {
    "i8": TYPE_I8,
    "i16": TYPE_I16,
    "i32": TYPE_I32,
    "i64": TYPE_I64,
    "isize": TYPE_I64,
    "u8": TYPE_U8,
    "u16": TYPE_U16,
    "u32": TYPE_U32,
    "u64": TYPE_U64,
    "usize": TYPE_U64,
    "bool": TYPE_BOOL,
    "str": TYPE_STR,
}

# Names that may follow an integer literal as a type suffix
INTEGER_SUFFIXES = frozenset(
    name for name, t in TYPE_NAMES.items() if isinstance(t, Integer)
)


# =============================================================================
# Utility Functions
# =============================================================================

def lookup_type_name(name: str) -> Optional[Type]:
    """Return the type spelled by a type name, or None if unknown."""
    return TYPE_NAMES.get(name)


def align_up(value: int, alignment: int) -> int:
    """Round value up to the next multiple of alignment."""
    return (value + alignment - 1) // alignment * alignment


def pointee(t: Type) -> Optional[Type]:
    """Return the target type of a pointer or reference, else None."""
    if isinstance(t, (Pointer, Reference)):
        return t.to
    return None


def element_type(t: Type) -> Optional[Type]:
    """
    Return the type produced by indexing a value of type t.

    Arrays and slices yield their element type, strings yield bytes.
    Any other type cannot be indexed and gives None.
    """
    if isinstance(t, (Array, Slice)):
        return t.element
    if isinstance(t, Str):
        return TYPE_U8
    return None


def word_count(t: Type) -> int:
    """Number of machine words a value of type t occupies when passed."""
    return 2 if t.is_wide else 1
