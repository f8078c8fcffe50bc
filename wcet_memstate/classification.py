"""
wcet_memstate/classification.py
═══════════════════════════════

Hit/miss classification of memory accesses against an abstract state.

    address in MUST set          → ALWAYS_HIT
    address not in MAY set       → ALWAYS_MISS
    otherwise                    → NOT_CLASSIFIED

Within a basic block every access is classified against the state left by
the accesses before it, then applied to that state.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from wcet_memstate.errors import ConfigurationError, MemStateErrorCodes
from wcet_memstate.mem_state import AbstractMemoryState
from wcet_memstate.memory_params import is_power_of_two
from wcet_memstate.replacement_policy import ReplacementPolicy
from wcet_memstate.state_utils import contains

logger = logging.getLogger(__name__)


class AccessClassification(enum.Enum):
    ALWAYS_HIT = "always hit"
    ALWAYS_MISS = "always miss"
    NOT_CLASSIFIED = "not classified"


def classify(state: AbstractMemoryState, address: int) -> AccessClassification:
    if contains(state.must_set, address):
        return AccessClassification.ALWAYS_HIT
    if not contains(state.may_set, address):
        return AccessClassification.ALWAYS_MISS
    return AccessClassification.NOT_CLASSIFIED


def cache_line_addresses(start: int, size: int, line_size: int) -> List[int]:
    """
    Line-aligned addresses of every cache line touched by ``[start, start+size)``.

    >>> [hex(a) for a in cache_line_addresses(0x1004, 0x20, 16)]
    ['0x1000', '0x1010', '0x1020']
    """
    if not is_power_of_two(line_size):
        raise ConfigurationError(
            f"cache line size must be a power of two, got {line_size}",
            code=MemStateErrorCodes.INVALID_LINE_SIZE,
        )
    end = start + size
    address = start & ~(line_size - 1)
    lines = []
    while address < end:
        lines.append(address)
        address += line_size
    return lines


@dataclass(frozen=True)
class ClassifiedAccess:
    address: int
    classification: AccessClassification


@dataclass
class ClassificationSummary:
    """Per-access results of one access sequence and the state it leaves."""
    accesses: List[ClassifiedAccess] = field(default_factory=list)
    final_state: Optional[AbstractMemoryState] = None

    def _count(self, kind: AccessClassification) -> int:
        return sum(1 for access in self.accesses if access.classification is kind)

    @property
    def hits(self) -> int:
        return self._count(AccessClassification.ALWAYS_HIT)

    @property
    def misses(self) -> int:
        return self._count(AccessClassification.ALWAYS_MISS)

    @property
    def not_classified(self) -> int:
        return self._count(AccessClassification.NOT_CLASSIFIED)

    def __len__(self) -> int:
        return len(self.accesses)


def classify_accesses(
    policy: ReplacementPolicy,
    state: AbstractMemoryState,
    addresses: Iterable[int],
) -> ClassificationSummary:
    """Classify *addresses* in order, updating *state* after each access."""
    summary = ClassificationSummary()
    for address in addresses:
        result = classify(state, address)
        logger.debug("0x%08x: %s", address, result.value)
        summary.accesses.append(ClassifiedAccess(address, result))
        state = policy.update(state, address)
    summary.final_state = state
    return summary


__all__ = [
    "AccessClassification",
    "ClassifiedAccess",
    "ClassificationSummary",
    "cache_line_addresses",
    "classify",
    "classify_accesses",
]
