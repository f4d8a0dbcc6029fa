"""
ruscom Symbol Table
===================

Nested scopes mapping names to declared entities.

Each Scope holds its own bindings and a reference to its parent. Lookup
walks outward from the innermost scope, so an inner declaration shadows
an outer one of the same name. The root scope holds every function
signature and global variable; it is filled in before any function body
is resolved so that functions can call each other regardless of order.

Scopes exist only while the resolver walks the block that created them.
Symbols outlive them because the AST keeps references to the symbols it
was bound to, and the code generator reads storage from there.

Usage
-----
>>> from ruscom.symbols import Scope, Symbol, StorageClass
>>> from ruscom.types import TYPE_I32
>>> globals_ = Scope()
>>> body = globals_.child()
>>> _ = body.declare(Symbol("x", TYPE_I32, StorageClass.LOCAL, offset=4))
>>> body.lookup("x").offset
4
"""

import difflib
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional, Union

from ruscom.errors import SourceLocation, DuplicateDeclarationError
from ruscom.types import Type


class StorageClass(Enum):
    """Where a variable lives at run time."""
    GLOBAL = auto()      # Labelled data in .data/.bss
    LOCAL = auto()       # Slot in the current stack frame
    PARAMETER = auto()   # Frame slot filled from the calling convention


@dataclass
class Symbol:
    """
    A declared variable.

    Attributes:
        name: Variable name
        type: Declared (or propagated) type
        storage: Storage class
        offset: Distance in bytes below the frame base (locals/parameters)
        label: Assembly label of the storage (globals)
        location: Where the variable was declared
    """
    name: str
    type: Type
    storage: StorageClass
    offset: int = 0
    label: Optional[str] = None
    location: Optional[SourceLocation] = field(default=None, compare=False)

    @property
    def is_global(self) -> bool:
        return self.storage == StorageClass.GLOBAL

    @property
    def address(self) -> str:
        """
        Base expression of a memory operand for this symbol's storage.

        'rip+LABEL' for globals, 'rbp-OFFSET' for frame slots; callers
        wrap it in brackets (and may append '+8' for a second word).
        """
        if self.is_global:
            return f"rip+{self.label}"
        return f"rbp-{self.offset}"


@dataclass
class FunctionSignature:
    """
    A declared function, as seen by callers.

    Attributes:
        name: Function name
        param_types: Parameter types in order
        return_type: Return type
        label: Assembly label of the entry point
        location: Where the function was defined
    """
    name: str
    param_types: list[Type]
    return_type: Type
    label: str
    location: Optional[SourceLocation] = field(default=None, compare=False)


Entry = Union[Symbol, FunctionSignature]


class Scope:
    """
    One level of lexical scope.

    Attributes:
        parent: Enclosing scope, or None for the global scope
    """

    def __init__(self, parent: Optional["Scope"] = None):
        self.parent = parent
        self._entries: dict[str, Entry] = {}

    def child(self) -> "Scope":
        """Create a scope nested inside this one."""
        return Scope(self)

    def declare(self, entry: Entry, source_line: Optional[str] = None) -> Entry:
        """
        Bind entry's name in this scope.

        Raises:
            DuplicateDeclarationError: If the name is already bound in this
                same scope (outer bindings are shadowed, not an error)
        """
        existing = self.lookup_local(entry.name)
        if existing is not None:
            raise DuplicateDeclarationError(
                entry.name,
                location=entry.location,
                original_location=existing.location,
                source_line=source_line,
            )
        self._entries[entry.name] = entry
        return entry

    def lookup_local(self, name: str) -> Optional[Entry]:
        """Find name in this scope only, ignoring enclosing scopes."""
        return self._entries.get(name)

    def lookup(self, name: str) -> Optional[Entry]:
        """Find name in this scope or the nearest enclosing one."""
        scope = self
        while scope is not None:
            entry = scope._entries.get(name)
            if entry is not None:
                return entry
            scope = scope.parent
        return None

    def names(self) -> set[str]:
        """All names visible from this scope."""
        visible: set[str] = set()
        scope = self
        while scope is not None:
            visible.update(scope._entries)
            scope = scope.parent
        return visible

    def similar_names(self, name: str, limit: int = 3) -> list[str]:
        """Visible names that look like a misspelling of name."""
        return difflib.get_close_matches(name, sorted(self.names()), n=limit)
