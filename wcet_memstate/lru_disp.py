"""
wcet_memstate/lru_disp.py
═════════════════════════

Abstract model of a dynamic instruction scratchpad (DISP) under LRU
replacement.

The scratchpad holds whole functions.  Ages are byte offsets from the top
of an imaginary LRU stack: a function of size ``s`` with age ``a`` occupies
the byte range ``[a, a + s)``, and it is evicted as soon as that range
leaves ``[0, capacity)``.  Sizes are never stored in the state; they are
looked up in a :class:`FunctionSizeProvider` every time they are needed.

    ┌──────── capacity ────────────────────────────────┐
    │ G [0,4) │ F [4,12)        │ free                  │
    └──────────────────────────────────────────────────┘
               hit on F (size 8)
    ┌──────────────────────────────────────────────────┐
    │ F [0,8)         │ G [8,12)│ free                  │
    └──────────────────────────────────────────────────┘

After a join two functions may overlap in the abstract domain (each path
filled the scratchpad differently).  A hit folds such overlaps into one safe
age per entry instead of tracking several layouts:

    overlapping g   MUST  max(g_age, f_size + max(f_age - g_size, 0))
                    MAY   min(f_age, g_age) + f_size
    g_age < f_age         g_age + f_size
    otherwise             g_age

where *g overlaps* means ``[g_age, g_age + g_size)`` intersects the range
``[f_age, f_age + f_size)`` that the hit function occupied before the
access.  An entry pushed past the capacity is evicted from MAY; in MUST that
can not happen for a sound state and is reported as an
:class:`InvariantViolation`.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from wcet_memstate.errors import (
    InvariantViolation,
    MemStateErrorCodes,
    OutsizedFunctionError,
)
from wcet_memstate.function_table import FunctionSizeProvider, round_up
from wcet_memstate.mem_state import AbstractMemoryState, AnalysisKind, MemoryEntry
from wcet_memstate.memory_params import DispParams
from wcet_memstate.replacement_policy import ReplacementPolicy
from wcet_memstate.state_utils import (
    find,
    format_mem_set,
    intersect_keep_oldest,
    sort_by_recency,
    union_keep_youngest,
)
from wcet_memstate.usage_stats import UsageRecorder

logger = logging.getLogger(__name__)


def intervals_overlap(f_age: int, f_size: int, g_age: int, g_size: int) -> bool:
    """Does ``[g_age, g_age + g_size)`` intersect ``[f_age, f_age + f_size)``?"""
    return f_age < g_age + g_size and g_age < f_age + f_size


def intersectional_age(
    kind: AnalysisKind,
    f_age: int,
    f_size: int,
    g_age: int,
    g_size: int,
) -> int:
    """New age of an entry *g* overlapping the re-inserted function *f*."""
    if kind is AnalysisKind.MUST:
        return max(g_age, f_size + max(f_age - g_size, 0))
    return min(f_age, g_age) + f_size


class LRUVariableSizePolicy(ReplacementPolicy):
    """
    LRU scratchpad of whole, variable-size functions.

    Parameters
    ----------
    params:
        Scratchpad geometry; ``params.capacity_bytes`` is the byte budget.
    function_sizes:
        Size lookup by function entry address, already rounded up to the
        scratchpad block size.
    recorder:
        Optional usage sink.
    """

    name = "LRU_DISP"

    def __init__(
        self,
        params: DispParams,
        function_sizes: FunctionSizeProvider,
        recorder: Optional[UsageRecorder] = None,
    ) -> None:
        super().__init__(params.capacity_bytes, recorder)
        self.params = params
        self.function_sizes = function_sizes

    def size_of(self, address: int) -> int:
        """Scratchpad footprint of a function, in whole blocks."""
        return round_up(self.function_sizes.size_of(address), self.params.block_size_bytes)

    def format_mem_set(self, mem_set) -> str:
        return format_mem_set(mem_set, self.size_of)

    def used_size(self, mem_set: List[MemoryEntry]) -> int:
        """Sum of the sizes of the functions in *mem_set*."""
        return sum(self.size_of(entry.address) for entry in mem_set)

    # ---- update -----------------------------------------------------------

    def update(self, state: AbstractMemoryState, address: int) -> AbstractMemoryState:
        logger.debug("Updating memory sets for function address: 0x%08x", address)
        size = self.size_of(address)

        if size > self.capacity:
            if self.params.ignore_outsized_functions:
                logger.warning(
                    "function: 0x%08x has size of %d bytes, but memory has size of "
                    "%d bytes - ignoring it.", address, size, self.capacity,
                )
                new_state = state.copy()
                self._record(new_state)
                return new_state
            logger.error(
                "function: 0x%08x has size of %d bytes, but memory has size of %d bytes!!",
                address, size, self.capacity,
            )
            raise OutsizedFunctionError(address, size, self.capacity)

        new_state = AbstractMemoryState(
            must_set=self._access(state.must_set, address, size, AnalysisKind.MUST),
            may_set=self._access(state.may_set, address, size, AnalysisKind.MAY),
            capacity=state.capacity or self.capacity,
        )
        self._record(new_state)
        return new_state

    def _access(
        self,
        mem_set: List[MemoryEntry],
        address: int,
        size: int,
        kind: AnalysisKind,
    ) -> List[MemoryEntry]:
        hit = find(mem_set, address)
        if hit is None:
            logger.debug("adding 0x%08x to %s set", address, kind.value)
            kept = self._shift_on_miss(mem_set, size)
        else:
            logger.debug("disp hit, moving 0x%08x in %s set to front.", address, kind.value)
            kept = self._move_to_front(mem_set, hit, size, kind)
        kept.append(MemoryEntry(address, 0))
        result = sort_by_recency(kept)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Abstract %s functions are: %s", kind.name, self.format_mem_set(result))
            logger.debug("used size is: %d memory size is: %d bytes",
                         self.used_size(result), self.capacity)
        return result

    def _shift_on_miss(self, mem_set: List[MemoryEntry], size: int) -> List[MemoryEntry]:
        kept = []
        for entry in mem_set:
            age = entry.recency + size
            entry_size = self.size_of(entry.address)
            if age + entry_size > self.capacity:
                logger.debug("Evicting: 0x%08x with age: %d and size: %d",
                             entry.address, age, entry_size)
                continue
            kept.append(entry.aged(age))
        return kept

    def _move_to_front(
        self,
        mem_set: List[MemoryEntry],
        hit: MemoryEntry,
        f_size: int,
        kind: AnalysisKind,
    ) -> List[MemoryEntry]:
        f_age = hit.recency
        kept = []
        for entry in mem_set:
            if entry.address == hit.address:
                continue
            g_age = entry.recency
            g_size = self.size_of(entry.address)
            if intervals_overlap(f_age, f_size, g_age, g_size):
                age = intersectional_age(kind, f_age, f_size, g_age, g_size)
            elif g_age < f_age:
                age = g_age + f_size
            else:
                age = g_age

            if age + g_size > self.capacity:
                if kind is AnalysisKind.MUST:
                    raise InvariantViolation(
                        f"MUST entry 0x{entry.address:08x} pushed to age {age} "
                        f"(size {g_size}) beyond capacity {self.capacity} by a hit "
                        f"on 0x{hit.address:08x}",
                        code=MemStateErrorCodes.MUST_OVERFLOW,
                    )
                logger.debug("Evicting: 0x%08x with age: %d and size: %d",
                             entry.address, age, g_size)
                continue
            kept.append(entry.aged(age))
        return kept

    # ---- join -------------------------------------------------------------

    def _join_pair(
        self,
        a: AbstractMemoryState,
        b: AbstractMemoryState,
    ) -> AbstractMemoryState:
        self._log_join_inputs(logger, a, b)
        joined = AbstractMemoryState(
            must_set=intersect_keep_oldest(a.must_set, b.must_set),
            may_set=union_keep_youngest(a.may_set, b.may_set),
            capacity=a.capacity or self.capacity,
        )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Abstract MUST functions are: %s", self.format_mem_set(joined.must_set))
            logger.debug("Abstract MAY functions are: %s", self.format_mem_set(joined.may_set))
        return joined


__all__ = ["LRUVariableSizePolicy", "intervals_overlap", "intersectional_age"]
