"""
wcet_memstate/memory_params.py
══════════════════════════════

Parameters of the modelled on-chip instruction memory.

``CacheParams`` describes an instruction cache (direct mapped or fully
associative LRU), ``DispParams`` a dynamic instruction scratchpad.  Both are
validated on construction; an invalid memory is a configuration error and
is never discovered later during ``update`` or ``join``.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from wcet_memstate.errors import ConfigurationError, MemStateErrorCodes

logger = logging.getLogger(__name__)


class MemoryType(enum.Enum):
    """Kind of on-chip instruction memory."""
    ICACHE = "ICACHE"
    DISP = "DISP"

    @classmethod
    def parse(cls, text: str) -> "MemoryType":
        try:
            return cls(text.strip().upper())
        except ValueError:
            raise ConfigurationError(
                f"unsupported memory type {text!r}",
                code=MemStateErrorCodes.UNSUPPORTED_MEMORY_TYPE,
                hint="use ICACHE or DISP",
            ) from None


class ReplacementPolicyKind(enum.Enum):
    """
    Replacement policies known to the configuration layer.

    Only ``LRU`` and ``DIRECT_MAPPED`` have abstract models here; the others
    are recognised so that selecting them yields a clear error.
    """
    LRU = "LRU"
    DIRECT_MAPPED = "DIRECT_MAPPED"
    FIFO = "FIFO"
    STACK = "STACK"

    @classmethod
    def parse(cls, text: str) -> "ReplacementPolicyKind":
        try:
            return cls(text.strip().upper())
        except ValueError:
            raise ConfigurationError(
                f"unknown replacement policy {text!r}",
                code=MemStateErrorCodes.UNSUPPORTED_POLICY,
                hint="use LRU or DIRECT_MAPPED",
            ) from None


def is_power_of_two(number: int) -> bool:
    return number > 0 and (number & (number - 1)) == 0


def log2(number: int) -> int:
    """Exact base-2 logarithm of a power of two."""
    return number.bit_length() - 1


# ═══════════════════════════════════════════════════════════════════════════
#  CACHE
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CacheParams:
    """
    Instruction cache geometry.

    ``line_size_bits`` and ``num_lines`` are derived when omitted; when given
    they must agree with ``capacity_bytes`` and ``line_size_bytes``.
    """
    capacity_bytes: int
    line_size_bytes: int
    line_size_bits: Optional[int] = None
    num_lines: Optional[int] = None
    policy: ReplacementPolicyKind = ReplacementPolicyKind.LRU

    def __post_init__(self) -> None:
        if self.capacity_bytes <= 0:
            raise ConfigurationError(
                f"cache size must be positive, got {self.capacity_bytes}",
                code=MemStateErrorCodes.ZERO_SIZED_MEMORY,
            )
        if not is_power_of_two(self.line_size_bytes):
            raise ConfigurationError(
                f"cache line size must be a power of two, got {self.line_size_bytes}",
                code=MemStateErrorCodes.INVALID_LINE_SIZE,
            )
        if self.capacity_bytes % self.line_size_bytes != 0:
            raise ConfigurationError(
                f"cache size {self.capacity_bytes} is not a multiple of the "
                f"line size {self.line_size_bytes}",
                code=MemStateErrorCodes.MISALIGNED_CAPACITY,
            )
        bits = log2(self.line_size_bytes)
        lines = self.capacity_bytes // self.line_size_bytes
        if self.line_size_bits is None:
            object.__setattr__(self, "line_size_bits", bits)
        elif self.line_size_bits != bits:
            raise ConfigurationError(
                f"line_size_bits {self.line_size_bits} does not match line size "
                f"{self.line_size_bytes}",
                code=MemStateErrorCodes.INVALID_LINE_SIZE,
            )
        if self.num_lines is None:
            object.__setattr__(self, "num_lines", lines)
        elif self.num_lines != lines:
            raise ConfigurationError(
                f"num_lines {self.num_lines} does not match "
                f"{self.capacity_bytes}/{self.line_size_bytes}",
                code=MemStateErrorCodes.MISALIGNED_CAPACITY,
            )
        logger.debug(
            "cache: %d bytes, %d lines of %d bytes, policy %s",
            self.capacity_bytes, self.num_lines, self.line_size_bytes,
            self.policy.value,
        )

    @classmethod
    def from_size(
        cls,
        capacity_bytes: int,
        line_size_bytes: int,
        policy: ReplacementPolicyKind = ReplacementPolicyKind.LRU,
    ) -> "CacheParams":
        return cls(capacity_bytes=capacity_bytes, line_size_bytes=line_size_bytes,
                   policy=policy)

    def block_address(self, address: int) -> int:
        """Line number of *address* (the address without its offset bits)."""
        return address >> self.line_size_bits

    def line_address(self, address: int) -> int:
        """Line-aligned address containing *address*."""
        return address & ~(self.line_size_bytes - 1)


# ═══════════════════════════════════════════════════════════════════════════
#  DYNAMIC INSTRUCTION SCRATCHPAD
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DispParams:
    """
    Dynamic instruction scratchpad geometry.

    Functions are loaded whole, in units of ``block_size_bytes``.  With
    ``ignore_outsized_functions`` a function larger than the scratchpad is
    never loaded (always fetched off-chip); otherwise activating it is fatal.
    """
    capacity_bytes: int
    block_size_bytes: int
    ignore_outsized_functions: bool = False
    policy: ReplacementPolicyKind = ReplacementPolicyKind.LRU

    def __post_init__(self) -> None:
        if self.capacity_bytes <= 0:
            raise ConfigurationError(
                f"scratchpad size must be positive, got {self.capacity_bytes}",
                code=MemStateErrorCodes.ZERO_SIZED_MEMORY,
            )
        if self.block_size_bytes <= 0:
            raise ConfigurationError(
                f"scratchpad block size must be positive, got {self.block_size_bytes}",
                code=MemStateErrorCodes.INVALID_BLOCK_SIZE,
            )
        if self.capacity_bytes % self.block_size_bytes != 0:
            raise ConfigurationError(
                f"scratchpad size {self.capacity_bytes} is not a multiple of the "
                f"block size {self.block_size_bytes}",
                code=MemStateErrorCodes.MISALIGNED_CAPACITY,
            )
        logger.debug(
            "disp: %d bytes in %d blocks of %d bytes, ignore_outsized_functions=%s",
            self.capacity_bytes, self.block_count, self.block_size_bytes,
            self.ignore_outsized_functions,
        )

    @property
    def block_count(self) -> int:
        return self.capacity_bytes // self.block_size_bytes


__all__ = [
    "MemoryType",
    "ReplacementPolicyKind",
    "CacheParams",
    "DispParams",
    "is_power_of_two",
    "log2",
]
