"""
wcet_memstate/policy_factory.py
═══════════════════════════════

Selects the replacement policy for a memory configuration.

    ┌──────────┬──────────────────┬──────────────────────────┐
    │ memory   │ policy           │ implementation           │
    ├──────────┼──────────────────┼──────────────────────────┤
    │ ICACHE   │ LRU              │ LRUCachePolicy           │
    │ ICACHE   │ DIRECT_MAPPED    │ DirectMappedPolicy       │
    │ DISP     │ LRU              │ LRUVariableSizePolicy    │
    │ any      │ FIFO, STACK, ... │ ConfigurationError       │
    └──────────┴──────────────────┴──────────────────────────┘
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from wcet_memstate.config import MemoryConfiguration
from wcet_memstate.direct_mapped import DirectMappedPolicy
from wcet_memstate.errors import ConfigurationError, MemStateErrorCodes
from wcet_memstate.function_table import FunctionSizeProvider
from wcet_memstate.lru_cache import LRUCachePolicy
from wcet_memstate.lru_disp import LRUVariableSizePolicy
from wcet_memstate.memory_params import (
    CacheParams,
    DispParams,
    MemoryType,
    ReplacementPolicyKind,
)
from wcet_memstate.replacement_policy import ReplacementPolicy
from wcet_memstate.usage_stats import UsageRecorder

logger = logging.getLogger(__name__)

PolicySource = Union[MemoryConfiguration, CacheParams, DispParams]


def _unsupported(policy: ReplacementPolicyKind, memory: str) -> ConfigurationError:
    return ConfigurationError(
        f"replacement policy {policy.value} is not supported for {memory}",
        code=MemStateErrorCodes.UNSUPPORTED_POLICY,
    )


def make_policy(
    source: PolicySource,
    function_sizes: Optional[FunctionSizeProvider] = None,
    recorder: Optional[UsageRecorder] = None,
) -> ReplacementPolicy:
    """
    Instantiate the abstract policy for *source*.

    *source* is either a full :class:`MemoryConfiguration` or already
    validated memory parameters.  Scratchpads need *function_sizes*.
    """
    if isinstance(source, MemoryConfiguration):
        params: Union[CacheParams, DispParams] = (
            source.cache_params() if source.memory_type is MemoryType.ICACHE
            else source.disp_params()
        )
    else:
        params = source

    if isinstance(params, CacheParams):
        if params.policy is ReplacementPolicyKind.LRU:
            policy: ReplacementPolicy = LRUCachePolicy(params, recorder)
        elif params.policy is ReplacementPolicyKind.DIRECT_MAPPED:
            policy = DirectMappedPolicy(params, recorder)
        else:
            raise _unsupported(params.policy, "instruction caches")
    elif isinstance(params, DispParams):
        if params.policy is not ReplacementPolicyKind.LRU:
            raise _unsupported(params.policy, "scratchpads")
        if function_sizes is None:
            raise ConfigurationError(
                "a scratchpad policy needs the sizes of the program's functions",
                code=MemStateErrorCodes.MISSING_FUNCTION_SIZES,
                hint="pass a FunctionTable as function_sizes",
            )
        policy = LRUVariableSizePolicy(params, function_sizes, recorder)
    else:
        raise TypeError(f"cannot build a replacement policy from {type(source).__name__}")

    logger.info("using %r", policy)
    return policy


__all__ = ["make_policy"]
