# tests/conftest.py
"""
Shared fixtures and helpers for the wcet_memstate test-suite.

Block addresses used throughout the cache tests::

    A = 0x100   B = 0x110   C = 0x120   D = 0x130   E = 0x140

Function table used by the scratchpad tests (block size 4)::

    F    0x1000   8 bytes
    G    0x2000   4 bytes
    H    0x3000   6 bytes  (8 in the scratchpad)
    K    0x5000  12 bytes
    BIG  0x4000  20 bytes
"""

import random

import pytest

from wcet_memstate.function_table import FunctionTable
from wcet_memstate.lru_cache import LRUCachePolicy
from wcet_memstate.direct_mapped import DirectMappedPolicy
from wcet_memstate.lru_disp import LRUVariableSizePolicy
from wcet_memstate.mem_state import AbstractMemoryState, MemoryEntry
from wcet_memstate.memory_params import CacheParams, DispParams
from wcet_memstate.usage_stats import MemoryUsageStats


A, B, C, D, E = 0x100, 0x110, 0x120, 0x130, 0x140

F, G, H, BIG, K = 0x1000, 0x2000, 0x3000, 0x4000, 0x5000


# ── Helpers ──────────────────────────────────────────────────────

def make_state(must, may=None, capacity=4):
    """Build a state from ``{address: recency}`` dicts (may defaults to must)."""
    if may is None:
        may = must
    return AbstractMemoryState(
        must_set=sorted((MemoryEntry(a, r) for a, r in must.items()),
                        key=MemoryEntry.sort_key),
        may_set=sorted((MemoryEntry(a, r) for a, r in may.items()),
                       key=MemoryEntry.sort_key),
        capacity=capacity,
    )


def random_sequences(addresses, count=25, length=30, seed=1234):
    """Deterministic pseudo-random access sequences over *addresses*."""
    rng = random.Random(seed)
    return [
        [rng.choice(addresses) for _ in range(rng.randint(1, length))]
        for _ in range(count)
    ]


def build_function_table():
    table = FunctionTable(block_size=4)
    table.register(F, 8, "F")
    table.register(G, 4, "G")
    table.register(H, 6, "H")
    table.register(BIG, 20, "BIG")
    table.register(K, 12, "K")
    return table


# ── Fixtures ─────────────────────────────────────────────────────

@pytest.fixture
def cache_params():
    """64-byte cache, 16-byte lines: four lines."""
    return CacheParams.from_size(64, 16)


@pytest.fixture
def usage():
    return MemoryUsageStats()


@pytest.fixture
def lru(cache_params, usage):
    return LRUCachePolicy(cache_params, recorder=usage)


@pytest.fixture
def direct_mapped(cache_params, usage):
    return DirectMappedPolicy(cache_params, recorder=usage)


@pytest.fixture
def function_table():
    return build_function_table()


@pytest.fixture
def disp_params():
    return DispParams(capacity_bytes=16, block_size_bytes=4)


@pytest.fixture
def disp(disp_params, function_table, usage):
    return LRUVariableSizePolicy(disp_params, function_table, recorder=usage)
