"""chocowat.environment

Name -> storage mapping shared by the semantic analyzer and the code generator.

Two storage classes exist:

- local: parameters and declarations of a function, kept in the activation
  record (VM locals)
- global: top-level declarations, kept in linear memory at
  `slot * WORD_SIZE`

Slots come from one monotonically increasing counter per compile and are
never reused. A function body gets a scoped copy of the enclosing tables
(`Environment.nested`) with an empty local set; nothing is mutated through a
module-level singleton.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from chocowat.ast_nodes import INTRINSICS, Type
from chocowat.errors import DuplicateDeclaration, UnboundName
from chocowat.values import WORD_SIZE

PAGE_SIZE = 64 * 1024


class StorageClass(Enum):
    LOCAL = "local"
    GLOBAL = "global"


@dataclass(frozen=True)
class Binding:
    name: str
    type: Type
    storage: StorageClass
    slot: Optional[int] = None  # globals only

    @property
    def is_local(self) -> bool:
        return self.storage is StorageClass.LOCAL

    @property
    def address(self) -> int:
        if self.slot is None:
            raise ValueError(f"'{self.name}' is not stored in linear memory")
        return self.slot * WORD_SIZE


@dataclass(frozen=True)
class Signature:
    name: str
    params: Tuple[Type, ...]
    ret: Type


class SlotAllocator:
    """Hands out global slots 0, 1, 2, ..."""

    def __init__(self) -> None:
        self._next = 0

    def allocate(self) -> int:
        slot = self._next
        self._next += 1
        return slot

    @property
    def used(self) -> int:
        return self._next


class Environment:
    """Scoped view of the names visible at one point of the program."""

    def __init__(
        self,
        allocator: SlotAllocator,
        globals_: Dict[str, Binding],
        signatures: Dict[str, Signature],
        function: Optional[str] = None,
    ):
        self._allocator = allocator
        self._globals = globals_
        self._signatures = signatures
        self._locals: Dict[str, Binding] = {}
        self.function = function

    @classmethod
    def fresh(cls) -> "Environment":
        return cls(SlotAllocator(), {}, {})

    def nested(self, function: str) -> "Environment":
        # The global slot counter is shared; the name tables are copies.
        return Environment(
            self._allocator,
            dict(self._globals),
            dict(self._signatures),
            function=function,
        )

    @property
    def is_global_scope(self) -> bool:
        return self.function is None

    # -----------------
    # Variables
    # -----------------

    def declare(self, name: str, ty: Type) -> Binding:
        if self.is_global_scope:
            if name in self._globals:
                raise DuplicateDeclaration(f"Duplicate declaration of identifier in the same scope: {name}")
            if name in self._signatures:
                raise DuplicateDeclaration(f"'{name}' is already defined as a function")
            binding = Binding(name, ty, StorageClass.GLOBAL, self._allocator.allocate())
            self._globals[name] = binding
        else:
            if name in self._locals:
                raise DuplicateDeclaration(
                    f"Duplicate declaration of identifier in the same scope: {name} (in '{self.function}')"
                )
            binding = Binding(name, ty, StorageClass.LOCAL)
            self._locals[name] = binding
        return binding

    def lookup(self, name: str) -> Binding:
        if name in self._locals:
            return self._locals[name]
        if name in self._globals:
            return self._globals[name]
        raise UnboundName(f"Could not find name '{name}'")

    def is_bound(self, name: str) -> bool:
        return name in self._locals or name in self._globals

    def global_bindings(self) -> List[Binding]:
        return sorted(self._globals.values(), key=lambda b: b.slot)

    def local_bindings(self) -> List[Binding]:
        return list(self._locals.values())

    def memory_pages(self) -> int:
        """Linear memory pages needed to hold every global slot."""
        size = self._allocator.used * WORD_SIZE
        return max(1, -(-size // PAGE_SIZE))

    # -----------------
    # Functions
    # -----------------

    def define_function(self, sig: Signature) -> None:
        if sig.name in INTRINSICS:
            raise DuplicateDeclaration(f"Cannot redefine built-in function '{sig.name}'")
        if sig.name in self._signatures:
            raise DuplicateDeclaration(f"Duplicate definition of function '{sig.name}'")
        if sig.name in self._globals:
            raise DuplicateDeclaration(f"'{sig.name}' is already declared as a variable")
        self._signatures[sig.name] = sig

    def signature(self, name: str) -> Signature:
        sig = self._signatures.get(name)
        if sig is None:
            raise UnboundName(f"Not a function: {name}")
        return sig

    def signatures(self) -> Dict[str, Signature]:
        return dict(self._signatures)
