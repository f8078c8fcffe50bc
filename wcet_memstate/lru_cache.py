"""
wcet_memstate/lru_cache.py
══════════════════════════

Abstract model of a fully associative instruction cache with true LRU
replacement.

Ages are counted in cache lines, 0 being the most recently used line and
``capacity - 1`` the next victim.

Update
------
Miss (address not in the set)::

    every entry ages by one, entries reaching ``capacity`` are evicted,
    the address is inserted with age 0.

Hit (address in the set with age ``old``)::

    MUST   entries with age <  old age by one
    MAY    entries with age <= old age by one

The boundary differs on purpose.  In the MUST set ``old`` is an upper bound
of the real age, in the MAY set a lower bound; the strict and the inclusive
comparison keep the two sets an under- and an over-approximation of every
concrete cache.  Hit and miss are decided per set, so an access can hit in
MAY and miss in MUST.

Join
----
MUST keeps the addresses present on both sides with the larger age,
MAY keeps every address with the smaller age.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from wcet_memstate.errors import ConfigurationError, MemStateErrorCodes
from wcet_memstate.mem_state import AbstractMemoryState, AnalysisKind, MemoryEntry
from wcet_memstate.memory_params import CacheParams
from wcet_memstate.replacement_policy import ReplacementPolicy
from wcet_memstate.state_utils import (
    find,
    intersect_keep_oldest,
    sort_by_recency,
    union_keep_youngest,
)
from wcet_memstate.usage_stats import UsageRecorder

logger = logging.getLogger(__name__)


class LRUCachePolicy(ReplacementPolicy):
    """Fully associative LRU cache with ``params.num_lines`` lines."""

    name = "LRU"

    def __init__(self, params: CacheParams, recorder: Optional[UsageRecorder] = None) -> None:
        if not params.num_lines:
            raise ConfigurationError(
                "LRU cache needs at least one line",
                code=MemStateErrorCodes.ZERO_SIZED_MEMORY,
            )
        super().__init__(params.num_lines, recorder)
        self.params = params

    # ---- update -----------------------------------------------------------

    def update(self, state: AbstractMemoryState, address: int) -> AbstractMemoryState:
        new_state = AbstractMemoryState(
            must_set=self._access(state.must_set, address, AnalysisKind.MUST),
            may_set=self._access(state.may_set, address, AnalysisKind.MAY),
            capacity=state.capacity or self.capacity,
        )
        self._record(new_state)
        return new_state

    def _access(
        self,
        mem_set: List[MemoryEntry],
        address: int,
        kind: AnalysisKind,
    ) -> List[MemoryEntry]:
        hit = find(mem_set, address)
        if hit is None:
            aged = self._age_on_miss(mem_set, kind)
        else:
            aged = self._age_on_hit(mem_set, hit, kind)
        aged.append(MemoryEntry(address, 0))
        result = sort_by_recency(aged)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Abstract %s cache lines are: %s",
                         kind.name, self.format_mem_set(result))
        return result

    def _age_on_miss(self, mem_set: List[MemoryEntry], kind: AnalysisKind) -> List[MemoryEntry]:
        kept = []
        for entry in mem_set:
            age = entry.recency + 1
            if age >= self.capacity:
                logger.debug("%s: evicting 0x%08x (age %d)", kind.name, entry.address, entry.recency)
                continue
            kept.append(entry.aged(age))
        return kept

    def _age_on_hit(
        self,
        mem_set: List[MemoryEntry],
        hit: MemoryEntry,
        kind: AnalysisKind,
    ) -> List[MemoryEntry]:
        old = hit.recency
        kept = []
        for entry in mem_set:
            if entry.address == hit.address:
                continue
            if entry.recency < old or (kind is AnalysisKind.MAY and entry.recency == old):
                age = entry.recency + 1
            else:
                age = entry.recency
            if age >= self.capacity:
                # only reachable in MAY, where ages are lower bounds
                logger.debug("%s: evicting 0x%08x (age %d)", kind.name, entry.address, entry.recency)
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
            logger.debug("Abstract MUST cache lines are: %s", self.format_mem_set(joined.must_set))
            logger.debug("Abstract MAY cache lines are: %s", self.format_mem_set(joined.may_set))
        return joined


__all__ = ["LRUCachePolicy"]
