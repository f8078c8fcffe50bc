"""
wcet_memstate/replacement_policy.py
═══════════════════════════════════

Common interface of the abstract replacement policies.

    ┌─────────────────────────────────────────────────────────────┐
    │  ReplacementPolicy  (ABC)                                   │
    │    ├── DirectMappedPolicy      fixed slots, positional      │
    │    ├── LRUCachePolicy          fixed slots, recency         │
    │    └── LRUVariableSizePolicy   whole functions, byte ages   │
    └─────────────────────────────────────────────────────────────┘

A policy is a pair of transfer functions over :class:`AbstractMemoryState`:

``update(state, address)``
    effect of one access on a single path.
``join(states)``
    combination of the states of several control-flow predecessors.

Both return a new state and leave their inputs untouched.  ``join`` of more
than two states is a left fold over the pairwise join; subclasses implement
only :meth:`ReplacementPolicy._join_pair`.
"""

from __future__ import annotations

import abc
import logging
from typing import Iterable, Optional, Sequence

from wcet_memstate.errors import InvariantViolation, MemStateErrorCodes
from wcet_memstate.mem_state import AbstractMemoryState, MemoryEntry
from wcet_memstate.state_utils import blank_state, contains, format_mem_set
from wcet_memstate.usage_stats import (
    REPRESENTATIONS_PER_STATE,
    NullUsageRecorder,
    UsageRecorder,
    footprint,
)

logger = logging.getLogger(__name__)


class ReplacementPolicy(abc.ABC):
    """
    Abstract replacement policy.

    Parameters
    ----------
    capacity:
        Slots (fixed-size policies) or bytes (variable-size policy).
    recorder:
        Optional usage sink notified once per produced state.
    """

    #: Human-readable policy name used in log output.
    name: str = "abstract"

    def __init__(self, capacity: int, recorder: Optional[UsageRecorder] = None) -> None:
        self.capacity = capacity
        self.recorder: UsageRecorder = recorder if recorder is not None else NullUsageRecorder()

    # ---- transfer functions ---------------------------------------------

    @abc.abstractmethod
    def update(self, state: AbstractMemoryState, address: int) -> AbstractMemoryState:
        """Return the state after accessing *address* in *state*."""

    def update_many(
        self,
        state: AbstractMemoryState,
        addresses: Iterable[int],
    ) -> AbstractMemoryState:
        """Left fold of :meth:`update` over *addresses*."""
        for address in addresses:
            state = self.update(state, address)
        return state

    def join(self, states: Sequence[AbstractMemoryState]) -> AbstractMemoryState:
        """
        Join the states of two or more control-flow predecessors.

        The fold runs left to right: ``join([a, b, c]) == join2(join2(a, b), c)``.
        The usage recorder is notified once for the final state.
        """
        if len(states) < 2:
            raise InvariantViolation(
                f"join needs at least two states, got {len(states)}",
                code=MemStateErrorCodes.JOIN_ARITY,
            )
        if len(states) > 2:
            logger.debug("%d mem sets, folding them pairwise from the left", len(states))
        result = states[0]
        for other in states[1:]:
            result = self._join_pair(result, other)
        self._record(result)
        return result

    @abc.abstractmethod
    def _join_pair(
        self,
        a: AbstractMemoryState,
        b: AbstractMemoryState,
    ) -> AbstractMemoryState:
        """Join exactly two states."""

    # ---- helpers shared by all policies -----------------------------------

    def blank_state(self) -> AbstractMemoryState:
        state = blank_state(self.capacity)
        self.recorder.record(REPRESENTATIONS_PER_STATE, footprint(state)[0], 0)
        return state

    @staticmethod
    def contains(mem_set: Iterable[MemoryEntry], address: int) -> bool:
        return contains(mem_set, address)

    def format_mem_set(self, mem_set: Sequence[MemoryEntry]) -> str:
        return format_mem_set(mem_set)

    def _record(self, state: AbstractMemoryState) -> None:
        allocated, maintained = footprint(state)
        self.recorder.record(REPRESENTATIONS_PER_STATE, allocated, maintained)

    def _log_join_inputs(
        self,
        log: logging.Logger,
        a: AbstractMemoryState,
        b: AbstractMemoryState,
    ) -> None:
        if not log.isEnabledFor(logging.DEBUG):
            return
        log.debug("Joining must sets: A %s B %s",
                  self.format_mem_set(a.must_set), self.format_mem_set(b.must_set))
        log.debug("Joining may sets: A %s B %s",
                  self.format_mem_set(a.may_set), self.format_mem_set(b.may_set))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(capacity={self.capacity})"


__all__ = ["ReplacementPolicy"]
