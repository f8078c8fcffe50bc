"""
wcet_memstate — Abstract Instruction-Memory States for WCET Analysis
====================================================================

MUST/MAY abstract interpretation of on-chip instruction memories, used by
a worst-case execution time estimator to classify instruction fetches as
guaranteed hits, guaranteed misses, or unknown.

Policies
--------
DirectMappedPolicy
    Direct-mapped instruction cache; the slot follows from the address.
LRUCachePolicy
    Fully associative instruction cache with LRU replacement.
LRUVariableSizePolicy
    Dynamic instruction scratchpad holding whole functions, LRU replacement
    with byte-granular ages.

Quick start
-----------
>>> from wcet_memstate import CacheParams, LRUCachePolicy
>>> policy = LRUCachePolicy(CacheParams.from_size(64, 16))
>>> state = policy.update_many(policy.blank_state(), [0x00, 0x10, 0x20])
>>> sorted(state.must_ages().items())
[(0, 2), (16, 1), (32, 0)]

Package layout
--------------
::

    wcet_memstate/
    ├── __init__.py            ← this file
    ├── errors.py              error codes and exceptions
    ├── mem_state.py           MemoryEntry, AbstractMemoryState
    ├── state_utils.py         set algebra shared by the policies
    ├── memory_params.py       CacheParams, DispParams
    ├── usage_stats.py         usage recorders
    ├── function_table.py      function sizes for the scratchpad
    ├── replacement_policy.py  ReplacementPolicy base class
    ├── direct_mapped.py
    ├── lru_cache.py
    ├── lru_disp.py
    ├── config.py              properties files, logging set-up
    ├── policy_factory.py      configuration → policy
    ├── classification.py      hit/miss classification
    └── dfa.py                 worklist driver over a state graph
"""

from __future__ import annotations

import logging
from typing import List

from wcet_memstate.classification import (
    AccessClassification,
    ClassificationSummary,
    ClassifiedAccess,
    cache_line_addresses,
    classify,
    classify_accesses,
)
from wcet_memstate.config import MemoryConfiguration, configure_logging, load_config
from wcet_memstate.dfa import EdgeKind, MemoryStateAnalyzer, MemoryStateGraph
from wcet_memstate.direct_mapped import DirectMappedPolicy
from wcet_memstate.errors import (
    ConfigParseError,
    ConfigurationError,
    InvariantViolation,
    MemStateError,
    MemStateErrorCodes,
    OutsizedFunctionError,
    UnknownFunctionError,
    UnknownNodeError,
)
from wcet_memstate.function_table import (
    FunctionSizeProvider,
    FunctionTable,
    load_function_table,
)
from wcet_memstate.lru_cache import LRUCachePolicy
from wcet_memstate.lru_disp import LRUVariableSizePolicy
from wcet_memstate.mem_state import AbstractMemoryState, AnalysisKind, MemoryEntry
from wcet_memstate.memory_params import (
    CacheParams,
    DispParams,
    MemoryType,
    ReplacementPolicyKind,
)
from wcet_memstate.policy_factory import make_policy
from wcet_memstate.replacement_policy import ReplacementPolicy
from wcet_memstate.state_utils import (
    blank_state,
    contains,
    sort_by_recency,
    union_of_addresses,
)
from wcet_memstate.usage_stats import MemoryUsageStats, NullUsageRecorder, UsageRecorder

# ---------------------------------------------------------------------------
# Package metadata
# ---------------------------------------------------------------------------

__version__ = "0.1.0"
__author__ = "wcet-memstate contributors"
__license__ = "MIT"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__: List[str] = [
    # data model
    "AbstractMemoryState",
    "AnalysisKind",
    "MemoryEntry",
    "blank_state",
    "contains",
    "sort_by_recency",
    "union_of_addresses",
    # parameters and configuration
    "CacheParams",
    "DispParams",
    "MemoryType",
    "ReplacementPolicyKind",
    "MemoryConfiguration",
    "load_config",
    "configure_logging",
    # policies
    "ReplacementPolicy",
    "DirectMappedPolicy",
    "LRUCachePolicy",
    "LRUVariableSizePolicy",
    "make_policy",
    # function sizes
    "FunctionSizeProvider",
    "FunctionTable",
    "load_function_table",
    # usage statistics
    "UsageRecorder",
    "NullUsageRecorder",
    "MemoryUsageStats",
    # classification and data flow
    "AccessClassification",
    "ClassifiedAccess",
    "ClassificationSummary",
    "cache_line_addresses",
    "classify",
    "classify_accesses",
    "EdgeKind",
    "MemoryStateGraph",
    "MemoryStateAnalyzer",
    # errors
    "MemStateError",
    "MemStateErrorCodes",
    "ConfigurationError",
    "ConfigParseError",
    "UnknownFunctionError",
    "UnknownNodeError",
    "OutsizedFunctionError",
    "InvariantViolation",
]
