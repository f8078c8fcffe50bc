"""
wcet_memstate/mem_state.py
══════════════════════════

Data model of the abstract instruction-memory state.

    ┌──────────────────────────────────────────────────────────────┐
    │  AbstractMemoryState                                         │
    │    ├── must_set : [MemoryEntry]   under-approximation        │
    │    ├── may_set  : [MemoryEntry]   over-approximation         │
    │    └── capacity : int             slots or bytes             │
    │                                                              │
    │  MemoryEntry = (address, recency)                            │
    └──────────────────────────────────────────────────────────────┘

``recency`` depends on the replacement policy:

    direct mapped   slot index ``(address >> line_size_bits) % num_lines``
    LRU cache       age in slots, 0 = most recently used
    LRU DISP        age in bytes from the top; an entry of size s occupies
                    the byte range [recency, recency + s)

Both sets are kept sorted by ``(recency, address)`` and never hold the same
address twice.  Every address of ``must_set`` is also in ``may_set``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import FrozenSet, Iterator, List


class AnalysisKind(enum.Enum):
    """Which of the two abstract sets an operation works on."""
    MUST = "must"
    MAY = "may"


@dataclass(frozen=True, repr=False)
class MemoryEntry:
    """One abstract memory entry: a block or function address and its age."""
    address: int
    recency: int

    def sort_key(self) -> tuple:
        return (self.recency, self.address)

    def aged(self, recency: int) -> "MemoryEntry":
        """Return a copy of this entry with a new recency."""
        return MemoryEntry(self.address, recency)

    def __repr__(self) -> str:
        return f"MemoryEntry(0x{self.address:08x}, {self.recency})"


@dataclass
class AbstractMemoryState:
    """
    MUST and MAY set of one program point.

    States are value objects owned by the CFG node they belong to.  Policies
    never mutate a state handed to them; they return a fresh one.
    """
    must_set: List[MemoryEntry] = field(default_factory=list)
    may_set: List[MemoryEntry] = field(default_factory=list)
    capacity: int = 0

    def copy(self) -> "AbstractMemoryState":
        """Copy with independent list objects (entries are immutable)."""
        return AbstractMemoryState(
            must_set=list(self.must_set),
            may_set=list(self.may_set),
            capacity=self.capacity,
        )

    def entries(self, kind: AnalysisKind) -> List[MemoryEntry]:
        return self.must_set if kind is AnalysisKind.MUST else self.may_set

    def must_addresses(self) -> FrozenSet[int]:
        return frozenset(e.address for e in self.must_set)

    def may_addresses(self) -> FrozenSet[int]:
        return frozenset(e.address for e in self.may_set)

    def must_ages(self) -> dict:
        """``{address: recency}`` of the MUST set."""
        return {e.address: e.recency for e in self.must_set}

    def may_ages(self) -> dict:
        """``{address: recency}`` of the MAY set."""
        return {e.address: e.recency for e in self.may_set}

    def is_blank(self) -> bool:
        return not self.must_set and not self.may_set

    def entry_count(self) -> int:
        return len(self.must_set) + len(self.may_set)

    def __iter__(self) -> Iterator[MemoryEntry]:
        yield from self.must_set
        yield from self.may_set

    def __repr__(self) -> str:
        must = ", ".join(f"0x{e.address:x}:{e.recency}" for e in self.must_set)
        may = ", ".join(f"0x{e.address:x}:{e.recency}" for e in self.may_set)
        return f"AbstractMemoryState(must=[{must}], may=[{may}], capacity={self.capacity})"


__all__ = ["AnalysisKind", "MemoryEntry", "AbstractMemoryState"]
