"""
wcet_memstate/direct_mapped.py
══════════════════════════════

Abstract model of a direct-mapped instruction cache.

The slot of a block is a pure function of its address::

    slot = (address >> line_size_bits) % num_lines

so an entry's ``recency`` field holds its slot, not an age.  On a single
path the MUST and MAY set evolve identically; they only diverge at joins,
where MUST keeps the addresses present on every path and MAY those present
on at least one.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from wcet_memstate.errors import ConfigurationError, MemStateErrorCodes
from wcet_memstate.mem_state import AbstractMemoryState, MemoryEntry
from wcet_memstate.memory_params import CacheParams
from wcet_memstate.replacement_policy import ReplacementPolicy
from wcet_memstate.state_utils import (
    addresses_of,
    format_addresses,
    sort_by_recency,
    union_of_addresses,
)
from wcet_memstate.usage_stats import UsageRecorder

logger = logging.getLogger(__name__)


class DirectMappedPolicy(ReplacementPolicy):
    """Direct-mapped cache with ``params.num_lines`` slots."""

    name = "DIRECT_MAPPED"

    def __init__(self, params: CacheParams, recorder: Optional[UsageRecorder] = None) -> None:
        if not params.num_lines:
            raise ConfigurationError(
                "direct-mapped cache needs at least one line",
                code=MemStateErrorCodes.ZERO_SIZED_MEMORY,
            )
        super().__init__(params.num_lines, recorder)
        self.params = params

    def slot_of(self, address: int) -> int:
        return (address >> self.params.line_size_bits) % self.params.num_lines

    # ---- update -----------------------------------------------------------

    def update(self, state: AbstractMemoryState, address: int) -> AbstractMemoryState:
        slot = self.slot_of(address)
        new_state = AbstractMemoryState(
            must_set=self._place(state.must_set, address, slot),
            may_set=self._place(state.may_set, address, slot),
            capacity=state.capacity or self.capacity,
        )
        self._record(new_state)
        return new_state

    def _place(self, mem_set: List[MemoryEntry], address: int, slot: int) -> List[MemoryEntry]:
        """Evict whatever occupies *slot* and load *address* there."""
        kept = []
        evicted = []
        for entry in mem_set:
            if entry.recency == slot:
                evicted.append(entry.address)
            else:
                kept.append(entry)
        kept.append(MemoryEntry(address, slot))
        if evicted and logger.isEnabledFor(logging.DEBUG):
            # re-accessing the resident block is not an eviction
            others = [a for a in evicted if a != address]
            if others:
                logger.debug("slot %d: evicting %s for 0x%08x",
                             slot, format_addresses(others), address)
        return sort_by_recency(kept)

    # ---- join -------------------------------------------------------------

    def _join_pair(
        self,
        a: AbstractMemoryState,
        b: AbstractMemoryState,
    ) -> AbstractMemoryState:
        self._log_join_inputs(logger, a, b)

        # must: intersection; the slot is recomputed from the address
        in_b = addresses_of(b.must_set)
        must_set = [
            MemoryEntry(entry.address, self.slot_of(entry.address))
            for entry in a.must_set
            if entry.address in in_b
        ]

        # may: union
        may_set = [
            MemoryEntry(address, self.slot_of(address))
            for address in union_of_addresses(a.may_set, b.may_set)
        ]

        joined = AbstractMemoryState(
            must_set=sort_by_recency(must_set),
            may_set=sort_by_recency(may_set),
            capacity=a.capacity or self.capacity,
        )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Abstract MUST cache lines are: %s", self.format_mem_set(joined.must_set))
            logger.debug("Abstract MAY cache lines are: %s", self.format_mem_set(joined.may_set))
        return joined


__all__ = ["DirectMappedPolicy"]
