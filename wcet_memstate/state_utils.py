"""
wcet_memstate/state_utils.py
════════════════════════════

Address-set algebra and presentation helpers shared by every replacement
policy.  All functions are pure; none of them touches the usage recorder.
"""

from __future__ import annotations

from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence

from wcet_memstate.errors import InvariantViolation, MemStateErrorCodes
from wcet_memstate.mem_state import AbstractMemoryState, MemoryEntry


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1 — SET ALGEBRA
# ═══════════════════════════════════════════════════════════════════════════

def contains(mem_set: Iterable[MemoryEntry], address: int) -> bool:
    """Is *address* held by any entry of *mem_set*?"""
    return any(entry.address == address for entry in mem_set)


def find(mem_set: Iterable[MemoryEntry], address: int) -> Optional[MemoryEntry]:
    """Return the entry for *address*, or ``None``."""
    for entry in mem_set:
        if entry.address == address:
            return entry
    return None


def union_of_addresses(
    set_a: Iterable[MemoryEntry],
    set_b: Iterable[MemoryEntry],
) -> List[int]:
    """
    Every address appearing in *set_a* or *set_b*, each exactly once.

    Addresses of *set_a* come first in their original order, followed by
    the addresses only *set_b* holds.  The order is therefore stable for
    a given pair of inputs.
    """
    seen: Dict[int, None] = {}
    for entry in set_a:
        seen.setdefault(entry.address, None)
    for entry in set_b:
        seen.setdefault(entry.address, None)
    return list(seen)


def addresses_of(mem_set: Iterable[MemoryEntry]) -> FrozenSet[int]:
    return frozenset(entry.address for entry in mem_set)


def sort_by_recency(mem_set: Iterable[MemoryEntry]) -> List[MemoryEntry]:
    """Stable ascending sort by recency, ties broken by address."""
    return sorted(mem_set, key=MemoryEntry.sort_key)


def blank_state(capacity: int) -> AbstractMemoryState:
    """A state with empty MUST and MAY sets (program entry or flush)."""
    return AbstractMemoryState(must_set=[], may_set=[], capacity=capacity)


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2 — INVARIANT HELPERS
# ═══════════════════════════════════════════════════════════════════════════

def address_age_map(mem_set: Iterable[MemoryEntry]) -> Dict[int, int]:
    """
    Map each address of *mem_set* to its recency.

    Raises :class:`InvariantViolation` if an address occurs twice, which
    would mean a policy produced a malformed set.
    """
    ages: Dict[int, int] = {}
    for entry in mem_set:
        if entry.address in ages:
            raise InvariantViolation(
                f"address 0x{entry.address:08x} present twice in one memory set",
                code=MemStateErrorCodes.DUPLICATE_ADDRESS,
            )
        ages[entry.address] = entry.recency
    return ages


def check_unique(mem_set: Iterable[MemoryEntry]) -> None:
    """Raise :class:`InvariantViolation` on duplicate addresses."""
    address_age_map(mem_set)


def intersect_keep_oldest(
    set_a: Iterable[MemoryEntry],
    set_b: Iterable[MemoryEntry],
) -> List[MemoryEntry]:
    """
    Addresses held by both sets, each with the larger of its two recencies.

    This is the MUST join of the age-based policies: a guaranteed hit must
    hold whichever path was taken, so the pessimistic age survives.
    """
    ages_b = address_age_map(set_b)
    joined = [
        entry.aged(max(entry.recency, ages_b[entry.address]))
        for entry in set_a
        if entry.address in ages_b
    ]
    return sort_by_recency(joined)


def union_keep_youngest(
    set_a: Iterable[MemoryEntry],
    set_b: Iterable[MemoryEntry],
) -> List[MemoryEntry]:
    """Addresses held by either set, each with its smaller recency (MAY join)."""
    ages = address_age_map(set_a)
    for address, age in address_age_map(set_b).items():
        ages[address] = min(age, ages.get(address, age))
    return sort_by_recency(MemoryEntry(address, age) for address, age in ages.items())


# ═══════════════════════════════════════════════════════════════════════════
#  PART 3 — PRESENTATION
# ═══════════════════════════════════════════════════════════════════════════

def format_mem_set(
    mem_set: Sequence[MemoryEntry],
    size_of: Optional[Callable[[int], int]] = None,
) -> str:
    """
    Render a memory set for log output.

    Fixed-size entries print as ``(0x00001000 3)``.  With *size_of* the
    occupied byte range is shown as well: ``(0x00001000 4-12/8)``.
    """
    parts = []
    for entry in mem_set:
        if size_of is None:
            parts.append(f"(0x{entry.address:08x} {entry.recency})")
        else:
            size = size_of(entry.address)
            parts.append(
                f"(0x{entry.address:08x} {entry.recency}-{entry.recency + size}/{size})"
            )
    return "".join(parts)


def format_addresses(addresses: Iterable[int]) -> str:
    return "".join(f"(0x{addr:08x})" for addr in addresses)


__all__ = [
    "contains",
    "find",
    "union_of_addresses",
    "addresses_of",
    "sort_by_recency",
    "blank_state",
    "address_age_map",
    "check_unique",
    "intersect_keep_oldest",
    "union_keep_youngest",
    "format_mem_set",
    "format_addresses",
]
