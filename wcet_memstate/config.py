"""
wcet_memstate/config.py
═══════════════════════

Memory configuration and logging set-up for tools embedding the analysis.

Configuration files use the ``key = value`` properties format of the WCET
tool chain.  Keys may carry a namespace prefix, which is ignored::

    # instruction memory
    isptap.memory_type                            = DISP
    isptap.memory_replacement_policy              = LRU
    isptap.memory_size                            = 1024
    isptap.disp_block_size                        = 4
    isptap.memory_disp_ignore_outsized_functions  = 1

    ┌──────────────┐  parse_properties  ┌────────────┐  from_mapping  ┌─────────────────────┐
    │ properties   │ ─────────────────▶ │ {key: str} │ ─────────────▶ │ MemoryConfiguration │
    └──────────────┘   (parsimonious)   └────────────┘                └──────────┬──────────┘
                                                                 cache_params() │ disp_params()
                                                                                ▼
                                                                  CacheParams / DispParams
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Union

from parsimonious.exceptions import ParseError, VisitationError
from parsimonious.grammar import Grammar
from parsimonious.nodes import Node, NodeVisitor

from wcet_memstate.errors import ConfigParseError, ConfigurationError, MemStateErrorCodes
from wcet_memstate.memory_params import (
    CacheParams,
    DispParams,
    MemoryType,
    ReplacementPolicyKind,
)

logger = logging.getLogger(__name__)

DEFAULT_CACHE_LINE_SIZE = 16
DEFAULT_DISP_BLOCK_SIZE = 4

KEY_MEMORY_TYPE = "memory_type"
KEY_REPLACEMENT_POLICY = "memory_replacement_policy"
KEY_MEMORY_SIZE = "memory_size"
KEY_CACHE_LINE_SIZE = "cache_line_size"
KEY_DISP_BLOCK_SIZE = "disp_block_size"
KEY_IGNORE_OUTSIZED = "memory_disp_ignore_outsized_functions"

KNOWN_KEYS = frozenset({
    KEY_MEMORY_TYPE,
    KEY_REPLACEMENT_POLICY,
    KEY_MEMORY_SIZE,
    KEY_CACHE_LINE_SIZE,
    KEY_DISP_BLOCK_SIZE,
    KEY_IGNORE_OUTSIZED,
})

_STDERR_HANDLER = "wcet_memstate.stderr"

_TRUE_WORDS = frozenset({"1", "true", "yes", "on"})
_FALSE_WORDS = frozenset({"0", "false", "no", "off"})


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1 — PROPERTIES GRAMMAR
# ═══════════════════════════════════════════════════════════════════════════

PROPERTIES_GRAMMAR = Grammar(r"""
    properties  = line*
    line        = hspace entry? hspace comment? newline
    entry       = key hspace "=" hspace value

    key         = ~r"[A-Za-z_][A-Za-z0-9_.\-]*"
    value       = ~r"[^#\r\n]*"

    comment     = ~r"[#!][^\n]*"
    hspace      = ~r"[ \t]*"
    newline     = ~r"\r?\n"
""")


class _PropertiesVisitor(NodeVisitor):
    """Collects ``(key, value, offset)`` triples."""

    def generic_visit(self, node: Node, visited_children: list):
        return visited_children or node

    def visit_properties(self, node, visited_children):
        return [entry for entry in visited_children if entry is not None]

    def visit_line(self, node, visited_children):
        _, entry, _, _, _ = visited_children
        if isinstance(entry, list):
            key, value = entry[0]
            return key, value, node.start
        return None

    def visit_entry(self, node, visited_children):
        key, _, _, _, value = visited_children
        return key, value

    def visit_key(self, node, _):
        return node.text

    def visit_value(self, node, _):
        return node.text.strip()


def strip_namespace(key: str) -> str:
    """``isptap.memory_size`` → ``memory_size``."""
    return key.rsplit(".", 1)[-1]


def parse_properties(text: str, source: str = "<string>") -> Dict[str, str]:
    """
    Parse properties text into an ordered ``{key: value}`` mapping.

    Namespace prefixes are stripped from the keys.  A key given twice keeps
    its last value.
    """
    if text and not text.endswith("\n"):
        text += "\n"
    try:
        tree = PROPERTIES_GRAMMAR.parse(text)
        entries = _PropertiesVisitor().visit(tree)
    except ParseError as exc:
        raise ConfigParseError(
            "expected 'key = value'",
            line=exc.line(), column=exc.column(), source=source,
        ) from exc
    except VisitationError as exc:
        raise ConfigParseError(f"cannot read properties: {exc}", source=source) from exc

    result: Dict[str, str] = {}
    for raw_key, value, offset in entries:
        key = strip_namespace(raw_key)
        if key in result:
            logger.warning("%s:%d: %s given twice, using %r",
                           source, text.count("\n", 0, offset) + 1, key, value)
        result[key] = value
    return result


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2 — VALUE CONVERSION
# ═══════════════════════════════════════════════════════════════════════════

def _require(options: Mapping[str, str], key: str) -> str:
    value = options.get(key, "")
    if not value:
        raise ConfigurationError(
            f"missing configuration option {key!r}",
            code=MemStateErrorCodes.MISSING_OPTION,
        )
    return value


def parse_int(key: str, text: str) -> int:
    """Decimal or ``0x`` prefixed integer."""
    try:
        return int(text, 0)
    except ValueError:
        raise ConfigurationError(
            f"option {key!r} expects an integer, got {text!r}",
            code=MemStateErrorCodes.INVALID_OPTION_VALUE,
        ) from None


def parse_bool(key: str, text: str) -> bool:
    word = text.strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    raise ConfigurationError(
        f"option {key!r} expects a boolean, got {text!r}",
        code=MemStateErrorCodes.INVALID_OPTION_VALUE,
        hint="use 0/1 or true/false",
    )


# ═══════════════════════════════════════════════════════════════════════════
#  PART 3 — MEMORY CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class MemoryConfiguration:
    """
    Instruction-memory settings of one analysis run.

    Attributes
    ----------
    memory_type:
        Instruction cache or dynamic instruction scratchpad.
    memory_size:
        Capacity in bytes.
    replacement_policy:
        Replacement policy of the memory.
    cache_line_size:
        Line size in bytes (caches only).
    disp_block_size:
        Allocation granularity in bytes (scratchpads only).
    ignore_outsized_functions:
        Never load functions larger than the scratchpad instead of failing.
    extra:
        Options not understood by this package, passed through untouched.
    """
    memory_type: MemoryType
    memory_size: int
    replacement_policy: ReplacementPolicyKind = ReplacementPolicyKind.LRU
    cache_line_size: int = DEFAULT_CACHE_LINE_SIZE
    disp_block_size: int = DEFAULT_DISP_BLOCK_SIZE
    ignore_outsized_functions: bool = False
    extra: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, options: Mapping[str, str]) -> "MemoryConfiguration":
        """Build a configuration from namespace-free string options."""
        extra = {k: v for k, v in options.items() if k not in KNOWN_KEYS}
        for key in extra:
            logger.debug("ignoring unknown option %r", key)

        policy_text = options.get(KEY_REPLACEMENT_POLICY, "")
        config = cls(
            memory_type=MemoryType.parse(_require(options, KEY_MEMORY_TYPE)),
            memory_size=parse_int(KEY_MEMORY_SIZE, _require(options, KEY_MEMORY_SIZE)),
            replacement_policy=(
                ReplacementPolicyKind.parse(policy_text)
                if policy_text else ReplacementPolicyKind.LRU
            ),
            extra=extra,
        )
        if options.get(KEY_CACHE_LINE_SIZE):
            config.cache_line_size = parse_int(KEY_CACHE_LINE_SIZE, options[KEY_CACHE_LINE_SIZE])
        if options.get(KEY_DISP_BLOCK_SIZE):
            config.disp_block_size = parse_int(KEY_DISP_BLOCK_SIZE, options[KEY_DISP_BLOCK_SIZE])
        if options.get(KEY_IGNORE_OUTSIZED):
            config.ignore_outsized_functions = parse_bool(
                KEY_IGNORE_OUTSIZED, options[KEY_IGNORE_OUTSIZED]
            )
        logger.info("memory: %s %s, %d bytes",
                    config.memory_type.value, config.replacement_policy.value,
                    config.memory_size)
        return config

    @classmethod
    def from_text(cls, text: str, source: str = "<string>") -> "MemoryConfiguration":
        return cls.from_mapping(parse_properties(text, source))

    def cache_params(self) -> CacheParams:
        if self.memory_type is not MemoryType.ICACHE:
            raise ConfigurationError(
                f"cache parameters requested for a {self.memory_type.value} configuration",
                code=MemStateErrorCodes.UNSUPPORTED_MEMORY_TYPE,
            )
        return CacheParams.from_size(
            self.memory_size, self.cache_line_size, self.replacement_policy
        )

    def disp_params(self) -> DispParams:
        if self.memory_type is not MemoryType.DISP:
            raise ConfigurationError(
                f"scratchpad parameters requested for a {self.memory_type.value} configuration",
                code=MemStateErrorCodes.UNSUPPORTED_MEMORY_TYPE,
            )
        return DispParams(
            capacity_bytes=self.memory_size,
            block_size_bytes=self.disp_block_size,
            ignore_outsized_functions=self.ignore_outsized_functions,
            policy=self.replacement_policy,
        )


def load_config(path: Union[str, Path]) -> MemoryConfiguration:
    """Read a :class:`MemoryConfiguration` from a properties file."""
    path = Path(path)
    return MemoryConfiguration.from_text(path.read_text(encoding="utf-8"), source=str(path))


# ═══════════════════════════════════════════════════════════════════════════
#  PART 4 — LOGGING
# ═══════════════════════════════════════════════════════════════════════════

def configure_logging(verbosity: int) -> None:
    """Set up the ``wcet_memstate`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    root = logging.getLogger("wcet_memstate")
    root.setLevel(level)
    # repeated calls only change the level
    if any(h.get_name() == _STDERR_HANDLER for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_STDERR_HANDLER)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root.addHandler(handler)


__all__ = [
    "PROPERTIES_GRAMMAR",
    "MemoryConfiguration",
    "configure_logging",
    "load_config",
    "parse_bool",
    "parse_int",
    "parse_properties",
    "strip_namespace",
]
