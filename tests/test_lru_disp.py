# tests/test_lru_disp.py
"""
Tests for the LRU dynamic instruction scratchpad model.

Unless noted otherwise the scratchpad holds 16 bytes in blocks of 4; the
function sizes are listed in ``tests/conftest.py``.
"""

import logging

import pytest

from wcet_memstate.errors import (
    InvariantViolation,
    MemStateErrorCodes,
    OutsizedFunctionError,
    UnknownFunctionError,
)
from wcet_memstate.function_table import FunctionTable
from wcet_memstate.lru_disp import (
    LRUVariableSizePolicy,
    intersectional_age,
    intervals_overlap,
)
from wcet_memstate.mem_state import AnalysisKind
from wcet_memstate.memory_params import DispParams
from tests.conftest import BIG, F, G, H, K, make_state


@pytest.fixture
def wide_disp(function_table):
    """32-byte scratchpad."""
    return LRUVariableSizePolicy(DispParams(32, 4), function_table)


class TestOverlapScenario:

    def test_insert_f(self, disp):
        state = disp.update(disp.blank_state(), F)
        assert state.must_ages() == {F: 0}

    def test_insert_g_shifts_f(self, disp):
        state = disp.update_many(disp.blank_state(), [F, G])
        assert state.must_ages() == {F: 4, G: 0}
        assert state.may_ages() == {F: 4, G: 0}

    def test_hit_on_f_keeps_g(self, disp):
        state = disp.update_many(disp.blank_state(), [F, G, F])
        assert state.must_ages() == {F: 0, G: 8}
        assert state.may_ages() == {F: 0, G: 8}
        assert state.must_ages()[G] + disp.size_of(G) <= disp.capacity


class TestMiss:

    def test_shift_by_size_of_new_function(self, wide_disp):
        state = wide_disp.update_many(wide_disp.blank_state(), [G, H, F])
        assert state.must_ages() == {F: 0, H: 8, G: 16}

    def test_eviction_when_range_leaves_capacity(self, disp):
        # F: [12, 20) after H is loaded, 20 > 16
        state = disp.update_many(disp.blank_state(), [F, G, H])
        assert state.must_ages() == {H: 0, G: 8}
        assert state.may_ages() == {H: 0, G: 8}

    def test_function_filling_memory_exactly(self, disp):
        state = disp.update_many(disp.blank_state(), [G, K])
        assert state.must_ages() == {K: 0, G: 12}


class TestHit:

    def test_younger_entries_shift_older_untouched(self, wide_disp):
        state = make_state({F: 0, G: 8, H: 12}, capacity=32)
        after = wide_disp.update(state, G)
        assert after.must_ages() == {G: 0, F: 4, H: 12}
        assert after.may_ages() == {G: 0, F: 4, H: 12}

    def test_hit_on_oldest_shifts_everything_younger(self, wide_disp):
        state = wide_disp.update_many(wide_disp.blank_state(), [H, G, F])
        assert state.must_ages() == {F: 0, G: 8, H: 12}

        after = wide_disp.update(state, H)
        assert after.must_ages() == {H: 0, F: 8, G: 16}
        assert after.may_ages() == {H: 0, F: 8, G: 16}

    def test_overlap_after_join_folds_ages(self, wide_disp):
        # concretely: {H:0, F:8, G:16} on one path, {H:0, G:8, F:12} on the other
        joined = wide_disp.join([
            wide_disp.update_many(wide_disp.blank_state(), [H, G, F]),
            wide_disp.update_many(wide_disp.blank_state(), [F, G, H]),
        ])
        assert joined.must_ages() == {F: 12, G: 8, H: 12}
        assert joined.may_ages() == {F: 0, G: 8, H: 0}

        after = wide_disp.update(joined, H)
        assert after.must_ages() == {H: 0, F: 12, G: 16}
        assert after.may_ages() == {H: 0, F: 8, G: 8}

    def test_hit_in_reordered_join_keeps_must_entries(self, disp):
        # K then G on one path, G then K on the other: MUST {K:4, G:12}
        joined = disp.join([
            disp.update_many(disp.blank_state(), [K, G]),
            disp.update_many(disp.blank_state(), [G, K]),
        ])
        assert joined.must_ages() == {K: 4, G: 12}

        after = disp.update(joined, G)
        assert after.must_ages() == {G: 0, K: 4}
        assert after.may_ages() == {G: 0, K: 4}

    def test_may_overflow_evicts(self, disp):
        state = make_state({}, {G: 0, H: 4, F: 8}, capacity=16)
        after = disp.update(state, F)
        assert after.may_ages() == {F: 0, G: 8}
        assert after.must_ages() == {F: 0}

    def test_must_overflow_is_invariant_violation(self, disp):
        state = make_state({K: 0, F: 2}, capacity=16)
        with pytest.raises(InvariantViolation) as info:
            disp.update(state, F)
        assert info.value.code == MemStateErrorCodes.MUST_OVERFLOW


class TestOverlapHelpers:

    def test_intervals_overlap(self):
        assert intervals_overlap(4, 8, 8, 4)
        assert intervals_overlap(12, 4, 4, 12)
        assert intervals_overlap(0, 8, 0, 8)
        assert not intervals_overlap(4, 8, 0, 4)
        assert not intervals_overlap(4, 8, 12, 4)

    def test_intersectional_age(self):
        assert intersectional_age(AnalysisKind.MUST, 12, 4, 4, 12) == 4
        assert intersectional_age(AnalysisKind.MAY, 12, 4, 4, 12) == 8
        assert intersectional_age(AnalysisKind.MUST, 12, 8, 12, 8) == 12
        assert intersectional_age(AnalysisKind.MAY, 12, 8, 12, 8) == 20
        assert intersectional_age(AnalysisKind.MUST, 2, 8, 0, 12) == 8


class TestJoin:

    def test_age_selection(self, disp):
        a = disp.update_many(disp.blank_state(), [F, G])
        b = disp.update(disp.blank_state(), F)
        joined = disp.join([a, b])
        assert joined.must_ages() == {F: 4}
        assert joined.may_ages() == {F: 0, G: 0}

    def test_sizes_are_not_stored(self, disp):
        a = disp.update_many(disp.blank_state(), [F, G])
        joined = disp.join([a, a])
        assert joined.must_ages() == a.must_ages()
        assert disp.used_size(joined.must_set) == 12


class TestOutsizedFunctions:

    def test_ignored_when_configured(self, function_table, caplog):
        policy = LRUVariableSizePolicy(
            DispParams(16, 4, ignore_outsized_functions=True), function_table
        )
        state = policy.update(policy.blank_state(), F)
        with caplog.at_level(logging.WARNING, logger="wcet_memstate"):
            after = policy.update(state, BIG)
        assert after == state
        assert after is not state
        assert BIG not in after.may_addresses()
        assert "ignoring it" in caplog.text

    def test_fatal_otherwise(self, disp):
        with pytest.raises(OutsizedFunctionError) as info:
            disp.update(disp.blank_state(), BIG)
        assert info.value.size == 20
        assert info.value.capacity == 16
        assert info.value.code == "MEMS-3000"


class TestUnknownFunction:

    def test_unknown_address_is_fatal(self, disp):
        with pytest.raises(UnknownFunctionError) as info:
            disp.update(disp.blank_state(), 0xdead)
        assert "0x0000dead" in str(info.value)

    def test_sizes_are_rounded_to_blocks(self, disp):
        assert disp.size_of(H) == 8
        assert disp.size_of(G) == 4

    def test_scratchpad_block_size_applies_to_any_table(self):
        table = FunctionTable()
        table.register(0x10, 6)
        table.register(0x20, 6)
        table.register(0x30, 4)
        policy = LRUVariableSizePolicy(DispParams(16, 8), table)
        assert [policy.size_of(a) for a in (0x10, 0x20, 0x30)] == [8, 8, 8]

        state = policy.update_many(policy.blank_state(), [0x10, 0x20, 0x30])
        assert state.must_ages() == {0x30: 0, 0x20: 8}
        assert policy.used_size(state.must_set) <= policy.capacity


class TestFormatting:

    def test_mem_set_shows_byte_ranges(self, disp):
        state = disp.update_many(disp.blank_state(), [F, G])
        assert disp.format_mem_set(state.must_set) == (
            "(0x00002000 0-4/4)(0x00001000 4-12/8)"
        )
