# wcet_memstate/errors.py
"""
Error Types for the Abstract Memory-State Analysis

Every failure of the memory-state analysis is fatal for the WCET run that
triggered it: an unsound or missing bound is worse than no bound, so nothing
inside this package catches these exceptions.  They exist so the surrounding
tool can report *why* the analysis stopped.

Architecture Overview:
─────────────────────
┌─────────────────────────────────────────────────────────────────────────────┐
│                          Error Hierarchy                                    │
├─────────────────────────────────────────────────────────────────────────────┤
│  MemStateError (base)                                                       │
│  ├── ConfigurationError     - zero-sized memory, bad policy selection       │
│  │   └── ConfigParseError   - malformed configuration / function table      │
│  ├── UnknownFunctionError   - size requested for an unregistered address    │
│  ├── UnknownNodeError       - node id missing from the state graph          │
│  ├── OutsizedFunctionError  - function larger than the scratchpad           │
│  └── InvariantViolation     - policy implementation bugs                    │
└─────────────────────────────────────────────────────────────────────────────┘

Error Codes:
────────────
Each error carries a code of the form MEMS-XXXX:
  - 1000-1999: Configuration errors
  - 2000-2999: Unknown-entity errors
  - 3000-3999: Outsized-entity errors
  - 9000-9998: Invariant violations (should never happen)
  - 9999:      Generic internal error (bare MemStateError)
"""

from __future__ import annotations

from enum import Enum, auto, unique
from typing import Optional


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR CLASSIFICATION
# ═══════════════════════════════════════════════════════════════════════════════

@unique
class ErrorCategory(Enum):
    """Coarse error categories, one per exception family."""

    CONFIGURATION = auto()
    PARSE = auto()
    UNKNOWN_ENTITY = auto()
    OUTSIZED_ENTITY = auto()
    INVARIANT = auto()
    INTERNAL = auto()


class ErrorCode:
    """
    Structured error code ``PREFIX-NNNN``.

    Codes compare equal to their string form so tests and callers can write
    ``err.code == "MEMS-2001"``.
    """

    __slots__ = ("prefix", "number", "category")

    def __init__(self, prefix: str, number: int, category: ErrorCategory) -> None:
        self.prefix = prefix
        self.number = number
        self.category = category

    @property
    def code(self) -> str:
        return f"{self.prefix}-{self.number:04d}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ErrorCode({self.code!r}, {self.category.name})"

    def __hash__(self) -> int:
        return hash((self.prefix, self.number))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorCode):
            return self.prefix == other.prefix and self.number == other.number
        if isinstance(other, str):
            return self.code == other
        return False


class MemStateErrorCodes:
    """Predefined error codes."""

    # ── Configuration (1000-1999) ─────────────────────────────────────────
    ZERO_SIZED_MEMORY = ErrorCode("MEMS", 1000, ErrorCategory.CONFIGURATION)
    INVALID_LINE_SIZE = ErrorCode("MEMS", 1001, ErrorCategory.CONFIGURATION)
    INVALID_BLOCK_SIZE = ErrorCode("MEMS", 1002, ErrorCategory.CONFIGURATION)
    MISALIGNED_CAPACITY = ErrorCode("MEMS", 1003, ErrorCategory.CONFIGURATION)
    UNSUPPORTED_POLICY = ErrorCode("MEMS", 1010, ErrorCategory.CONFIGURATION)
    UNSUPPORTED_MEMORY_TYPE = ErrorCode("MEMS", 1011, ErrorCategory.CONFIGURATION)
    MISSING_OPTION = ErrorCode("MEMS", 1020, ErrorCategory.CONFIGURATION)
    INVALID_OPTION_VALUE = ErrorCode("MEMS", 1021, ErrorCategory.CONFIGURATION)
    MISSING_FUNCTION_SIZES = ErrorCode("MEMS", 1030, ErrorCategory.CONFIGURATION)
    SYNTAX = ErrorCode("MEMS", 1100, ErrorCategory.PARSE)

    # ── Unknown entities (2000-2999) ──────────────────────────────────────
    UNKNOWN_FUNCTION = ErrorCode("MEMS", 2000, ErrorCategory.UNKNOWN_ENTITY)
    UNKNOWN_NODE = ErrorCode("MEMS", 2001, ErrorCategory.UNKNOWN_ENTITY)

    # ── Outsized entities (3000-3999) ─────────────────────────────────────
    OUTSIZED_FUNCTION = ErrorCode("MEMS", 3000, ErrorCategory.OUTSIZED_ENTITY)

    # ── Invariants (9000-9999) ────────────────────────────────────────────
    DUPLICATE_ADDRESS = ErrorCode("MEMS", 9000, ErrorCategory.INVARIANT)
    MUST_OVERFLOW = ErrorCode("MEMS", 9001, ErrorCategory.INVARIANT)
    JOIN_ARITY = ErrorCode("MEMS", 9002, ErrorCategory.INVARIANT)
    MISSING_ENTRY = ErrorCode("MEMS", 9003, ErrorCategory.INVARIANT)
    INTERNAL_ERROR = ErrorCode("MEMS", 9999, ErrorCategory.INTERNAL)


# ═══════════════════════════════════════════════════════════════════════════════
# EXCEPTIONS
# ═══════════════════════════════════════════════════════════════════════════════

class MemStateError(Exception):
    """
    Base exception for all memory-state analysis errors.

    Carries a structured :class:`ErrorCode` and an optional hint for the
    user of the surrounding tool.
    """

    default_code: ErrorCode = MemStateErrorCodes.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        hint: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.hint = hint

    def __str__(self) -> str:
        text = f"[{self.code}] {self.message}"
        if self.hint:
            text += f" (hint: {self.hint})"
        return text


class ConfigurationError(MemStateError):
    """Invalid memory or policy configuration, detected at construction."""

    default_code = MemStateErrorCodes.ZERO_SIZED_MEMORY


class ConfigParseError(ConfigurationError):
    """Malformed configuration file or function table text."""

    default_code = MemStateErrorCodes.SYNTAX

    def __init__(
        self,
        message: str,
        line: Optional[int] = None,
        column: Optional[int] = None,
        source: str = "<string>",
        **kwargs,
    ) -> None:
        self.line = line
        self.column = column
        self.source = source
        if line is not None:
            message = f"{source}:{line}:{column or 0}: {message}"
        super().__init__(message, **kwargs)


class UnknownFunctionError(MemStateError):
    """No function is registered at the requested address."""

    default_code = MemStateErrorCodes.UNKNOWN_FUNCTION

    def __init__(self, address: int, **kwargs) -> None:
        self.address = address
        super().__init__(
            f"No function found for address 0x{address:08x}",
            hint="the CFG references a function missing from the function table",
            **kwargs,
        )


class UnknownNodeError(MemStateError):
    """A control-flow node id is not part of the analysed graph."""

    default_code = MemStateErrorCodes.UNKNOWN_NODE

    def __init__(self, node: object, **kwargs) -> None:
        self.node = node
        super().__init__(f"unknown node {node!r}", **kwargs)


class OutsizedFunctionError(MemStateError):
    """A function does not fit into the scratchpad at all."""

    default_code = MemStateErrorCodes.OUTSIZED_FUNCTION

    def __init__(self, address: int, size: int, capacity: int, **kwargs) -> None:
        self.address = address
        self.size = size
        self.capacity = capacity
        super().__init__(
            f"function 0x{address:08x} has size of {size} bytes, "
            f"but memory has size of {capacity} bytes",
            hint="set memory_disp_ignore_outsized_functions to fetch it off-chip",
            **kwargs,
        )


class InvariantViolation(MemStateError):
    """A replacement policy broke one of its own invariants."""

    default_code = MemStateErrorCodes.MUST_OVERFLOW


__all__ = [
    "ErrorCategory",
    "ErrorCode",
    "MemStateErrorCodes",
    "MemStateError",
    "ConfigurationError",
    "ConfigParseError",
    "UnknownFunctionError",
    "UnknownNodeError",
    "OutsizedFunctionError",
    "InvariantViolation",
]
