"""
wcet_memstate/usage_stats.py
════════════════════════════

Measuring the complexity of the memory-state analysis.

Every policy reports each freshly produced abstract state to a
:class:`UsageRecorder`.  The core only ever *calls* the recorder; it never
reads the counters back.  Reports are produced by the surrounding tool.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from wcet_memstate.mem_state import AbstractMemoryState

# Footprint model of one abstract state: two list headers plus the capacity
# field, and two 32-bit words per entry.
STATE_HEADER_BYTES = 56
ENTRY_BYTES = 8

# One MUST and one MAY representation per abstract state.
REPRESENTATIONS_PER_STATE = 2


@runtime_checkable
class UsageRecorder(Protocol):
    """Sink for memory-usage notifications."""

    def record(
        self,
        state_count: int,
        allocated_bytes: int,
        maintained_entries: int,
    ) -> None:
        ...


class NullUsageRecorder:
    """Recorder that drops every notification."""

    def record(self, state_count: int, allocated_bytes: int, maintained_entries: int) -> None:
        return None


@dataclass
class MemoryUsageStats:
    """
    Accumulating recorder.

    Attributes
    ----------
    memory_state_count:
        Number of distinct abstract states registered.
    representation_state_count:
        Number of MUST/MAY representations those states consist of.
    used_size:
        Estimated bytes needed by all registered states.
    used_mem_references:
        Number of block or function addresses stored by all states.
    """
    memory_state_count: int = 0
    representation_state_count: int = 0
    used_size: int = 0
    used_mem_references: int = 0

    def record(self, state_count: int, allocated_bytes: int, maintained_entries: int) -> None:
        self.memory_state_count += 1
        self.representation_state_count += state_count
        self.used_size += allocated_bytes
        self.used_mem_references += maintained_entries

    def reset(self) -> None:
        self.memory_state_count = 0
        self.representation_state_count = 0
        self.used_size = 0
        self.used_mem_references = 0

    def as_dict(self) -> dict:
        return {
            "memory_state_count": self.memory_state_count,
            "representation_state_count": self.representation_state_count,
            "used_size": self.used_size,
            "used_mem_references": self.used_mem_references,
        }


def footprint(state: AbstractMemoryState) -> tuple:
    """``(allocated_bytes, maintained_entries)`` of *state*."""
    entries = state.entry_count()
    return STATE_HEADER_BYTES + entries * ENTRY_BYTES, entries


__all__ = [
    "STATE_HEADER_BYTES",
    "ENTRY_BYTES",
    "REPRESENTATIONS_PER_STATE",
    "UsageRecorder",
    "NullUsageRecorder",
    "MemoryUsageStats",
    "footprint",
]
