# tests/test_properties.py
"""
Property checks over seeded pseudo-random access sequences.

For every policy:

* soundness: each MUST address is also a MAY address, at every step;
* join soundness: MUST of a join lies in both MUST inputs, MAY of a join is
  exactly the union of the MAY inputs;
* idempotence: joining a state with itself keeps its address sets;
* capacity: the MUST set never holds more than fits into the memory.

The scratchpad is also checked with mixed function sizes against a concrete
byte-LRU walk of every path merged into a state.
"""

import pytest

from wcet_memstate.direct_mapped import DirectMappedPolicy
from wcet_memstate.function_table import FunctionTable
from wcet_memstate.lru_cache import LRUCachePolicy
from wcet_memstate.lru_disp import LRUVariableSizePolicy
from wcet_memstate.memory_params import CacheParams, DispParams
from tests.conftest import random_sequences


CACHE_LINES = [0x000, 0x010, 0x020, 0x030, 0x040, 0x050, 0x060, 0x070, 0x0a0]

# equally sized functions: the scratchpad then behaves like a four-slot LRU
UNIFORM_FUNCTIONS = [0x1000, 0x1100, 0x1200, 0x1300, 0x1400, 0x1500]


def _uniform_table():
    table = FunctionTable(block_size=4)
    for address in UNIFORM_FUNCTIONS:
        table.register(address, 8)
    return table


def _policies():
    params = CacheParams.from_size(64, 16)
    return [
        ("lru", LRUCachePolicy(params), CACHE_LINES),
        ("direct_mapped", DirectMappedPolicy(params), CACHE_LINES),
        ("disp", LRUVariableSizePolicy(DispParams(32, 4), _uniform_table()),
         UNIFORM_FUNCTIONS),
    ]


POLICIES = _policies()
POLICY_IDS = [name for name, _, _ in POLICIES]


def _must_fits(policy, state):
    if isinstance(policy, LRUVariableSizePolicy):
        return policy.used_size(state.must_set) <= policy.capacity
    return len(state.must_set) <= policy.capacity


def _walk(policy, sequence):
    """All states visited by *sequence* from a blank state."""
    state = policy.blank_state()
    states = [state]
    for address in sequence:
        state = policy.update(state, address)
        states.append(state)
    return states


@pytest.mark.parametrize("name,policy,addresses", POLICIES, ids=POLICY_IDS)
class TestSinglePath:

    def test_must_addresses_are_may_addresses(self, name, policy, addresses):
        for sequence in random_sequences(addresses, seed=11):
            for state in _walk(policy, sequence):
                assert state.must_addresses() <= state.may_addresses()

    def test_capacity_bound(self, name, policy, addresses):
        for sequence in random_sequences(addresses, seed=12):
            for state in _walk(policy, sequence):
                assert _must_fits(policy, state)

    def test_sets_sorted_and_unique(self, name, policy, addresses):
        for sequence in random_sequences(addresses, seed=13):
            state = policy.update_many(policy.blank_state(), sequence)
            for mem_set in (state.must_set, state.may_set):
                keys = [e.sort_key() for e in mem_set]
                assert keys == sorted(keys)
                assert len({e.address for e in mem_set}) == len(mem_set)

    def test_update_many_is_fold_of_update(self, name, policy, addresses):
        for sequence in random_sequences(addresses, count=5, seed=14):
            assert policy.update_many(policy.blank_state(), sequence) == \
                _walk(policy, sequence)[-1]


@pytest.mark.parametrize("name,policy,addresses", POLICIES, ids=POLICY_IDS)
class TestJoinProperties:

    def _pairs(self, policy, addresses, seed):
        sequences = random_sequences(addresses, count=20, seed=seed)
        states = [policy.update_many(policy.blank_state(), s) for s in sequences]
        return list(zip(states[::2], states[1::2]))

    def test_join_soundness(self, name, policy, addresses):
        for a, b in self._pairs(policy, addresses, seed=21):
            joined = policy.join([a, b])
            assert joined.must_addresses() <= a.must_addresses() & b.must_addresses()
            assert joined.may_addresses() == a.may_addresses() | b.may_addresses()
            assert joined.must_addresses() <= joined.may_addresses()

    def test_join_idempotent(self, name, policy, addresses):
        for a, _ in self._pairs(policy, addresses, seed=22):
            joined = policy.join([a, a])
            assert joined.must_addresses() == a.must_addresses()
            assert joined.may_addresses() == a.may_addresses()
            assert joined.must_ages() == a.must_ages()
            assert joined.may_ages() == a.may_ages()

    def test_join_commutes_on_address_sets(self, name, policy, addresses):
        for a, b in self._pairs(policy, addresses, seed=23):
            ab = policy.join([a, b])
            ba = policy.join([b, a])
            assert ab.must_ages() == ba.must_ages()
            assert ab.may_ages() == ba.may_ages()

    def test_join_respects_capacity(self, name, policy, addresses):
        for a, b in self._pairs(policy, addresses, seed=24):
            assert _must_fits(policy, policy.join([a, b]))


class TestAfterJoins:
    """Fixed-size caches stay sound when paths are merged and continued."""

    @pytest.mark.parametrize("name,policy,addresses", POLICIES[:2], ids=POLICY_IDS[:2])
    def test_continue_after_join(self, name, policy, addresses):
        sequences = random_sequences(addresses, count=30, length=12, seed=31)
        for first, second, tail in zip(sequences[0::3], sequences[1::3], sequences[2::3]):
            joined = policy.join([
                policy.update_many(policy.blank_state(), first),
                policy.update_many(policy.blank_state(), second),
            ])
            for state in _walk_from(policy, joined, tail):
                assert state.must_addresses() <= state.may_addresses()
                assert len(state.must_set) <= policy.capacity
                assert all(e.recency < policy.capacity for e in state.may_set)


def _walk_from(policy, state, sequence):
    states = [state]
    for address in sequence:
        state = policy.update(state, address)
        states.append(state)
    return states


# ── Scratchpad with mixed function sizes ─────────────────────────

MIXED_FUNCTIONS = {0x1000: 4, 0x2000: 8, 0x3000: 12, 0x4000: 4, 0x5000: 8}


def _mixed_table():
    table = FunctionTable(block_size=4)
    for address, size in MIXED_FUNCTIONS.items():
        table.register(address, size)
    return table


def _concrete_disp(capacity, sequence):
    """Byte ages of one concrete LRU scratchpad after each access."""
    order, snapshots = [], [{}]
    for address in sequence:
        if address in order:
            order.remove(address)
        order.insert(0, address)
        ages, age = {}, 0
        for function in order:
            if age + MIXED_FUNCTIONS[function] > capacity:
                break
            ages[function] = age
            age += MIXED_FUNCTIONS[function]
        order = list(ages)
        snapshots.append(ages)
    return snapshots


def _assert_bounds(state, concrete):
    must, may = state.must_ages(), state.may_ages()
    assert set(must) <= set(may)
    for address, age in must.items():
        assert address in concrete
        assert concrete[address] <= age
    for address, age in concrete.items():
        assert address in may
        assert may[address] <= age


@pytest.mark.parametrize("capacity", [16, 24])
class TestScratchpadAfterJoins:
    """MUST and MAY ages bound every concrete path merged into a state."""

    def test_single_path_matches_concrete(self, capacity):
        policy = LRUVariableSizePolicy(DispParams(capacity, 4), _mixed_table())
        for sequence in random_sequences(list(MIXED_FUNCTIONS), seed=40):
            concrete = _concrete_disp(capacity, sequence)
            for state, ages in zip(_walk(policy, sequence), concrete):
                assert state.must_ages() == ages
                assert state.may_ages() == ages

    def test_continue_after_join(self, capacity):
        policy = LRUVariableSizePolicy(DispParams(capacity, 4), _mixed_table())
        sequences = random_sequences(list(MIXED_FUNCTIONS), count=90, length=12, seed=41)
        for first, second, tail in zip(sequences[0::3], sequences[1::3], sequences[2::3]):
            joined = policy.join([
                policy.update_many(policy.blank_state(), first),
                policy.update_many(policy.blank_state(), second),
            ])
            paths = [_concrete_disp(capacity, first + tail),
                     _concrete_disp(capacity, second + tail)]
            for step, state in enumerate(_walk_from(policy, joined, tail)):
                for path, prefix in zip(paths, (first, second)):
                    _assert_bounds(state, path[len(prefix) + step])
                assert policy.used_size(state.must_set) <= policy.capacity

    def test_three_way_join_then_continue(self, capacity):
        policy = LRUVariableSizePolicy(DispParams(capacity, 4), _mixed_table())
        sequences = random_sequences(list(MIXED_FUNCTIONS), count=80, length=10, seed=42)
        for group in zip(*(sequences[i::4] for i in range(4))):
            heads, tail = group[:3], group[3]
            joined = policy.join([
                policy.update_many(policy.blank_state(), head) for head in heads
            ])
            final = policy.update_many(joined, tail)
            for head in heads:
                _assert_bounds(final, _concrete_disp(capacity, head + tail)[-1])
