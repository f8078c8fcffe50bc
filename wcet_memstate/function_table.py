"""
wcet_memstate/function_table.py
═══════════════════════════════

Function sizes for the dynamic instruction scratchpad.

The DISP policy only needs one question answered: *how many bytes does the
function starting at this address occupy in the scratchpad?*  That question
is the :class:`FunctionSizeProvider` protocol.  :class:`FunctionTable` is the
concrete provider; it can be filled programmatically or loaded from the
function-table files exported by the CFG extraction stage.

Function-table formats
----------------------
Current format, one function per line (tab or space separated)::

    0x00001000	main	120
    0x00001078	helper	36
    0x0000109c	END_TAG	0

Old format, start addresses only; a function extends to the next entry::

    00001000 <main>:
    00001078 <helper>:
    0000109c <END_TAG>:

``#`` starts a comment.  ``END_TAG`` closes the table and is not a function.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Protocol, Tuple, Union, runtime_checkable

from parsimonious.exceptions import ParseError, VisitationError
from parsimonious.grammar import Grammar
from parsimonious.nodes import Node, NodeVisitor

from wcet_memstate.errors import (
    ConfigParseError,
    ConfigurationError,
    MemStateErrorCodes,
    UnknownFunctionError,
)

logger = logging.getLogger(__name__)

END_TAG = "END_TAG"


@runtime_checkable
class FunctionSizeProvider(Protocol):
    """Supplies the scratchpad footprint of a function by its entry address."""

    def size_of(self, address: int) -> int:
        """Size in bytes, rounded up to the scratchpad block size."""
        ...


def round_up(size: int, block_size: int) -> int:
    """Round *size* up to the next multiple of *block_size*."""
    return ((size + block_size - 1) // block_size) * block_size


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1 — FUNCTION TABLE
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class FunctionInfo:
    address: int
    size: int
    name: Optional[str] = None


class FunctionTable:
    """
    Address → size mapping of the analysed program's functions.

    ``size_of`` fails with :class:`UnknownFunctionError` for unregistered
    addresses: that means the CFG and the function table disagree, and the
    analysis must stop rather than guess.
    """

    def __init__(self, block_size: int = 1) -> None:
        if block_size <= 0:
            raise ConfigurationError(
                f"block size must be positive, got {block_size}",
                code=MemStateErrorCodes.INVALID_BLOCK_SIZE,
            )
        self.block_size = block_size
        self._functions: Dict[int, FunctionInfo] = {}

    def register(self, address: int, size: int, name: Optional[str] = None) -> None:
        if size <= 0:
            raise ConfigurationError(
                f"function 0x{address:08x} must have a positive size, got {size}",
                code=MemStateErrorCodes.INVALID_OPTION_VALUE,
            )
        if address in self._functions:
            logger.warning("function 0x%08x registered twice, keeping the new size %d",
                           address, size)
        self._functions[address] = FunctionInfo(address, size, name)

    def raw_size(self, address: int) -> int:
        """Size in bytes as registered (not rounded)."""
        info = self._functions.get(address)
        if info is None:
            logger.error("No function found for address 0x%08x ... stopping.", address)
            raise UnknownFunctionError(address)
        return info.size

    def size_of(self, address: int) -> int:
        return round_up(self.raw_size(address), self.block_size)

    def name_of(self, address: int) -> Optional[str]:
        info = self._functions.get(address)
        if info is None:
            raise UnknownFunctionError(address)
        return info.name

    def __contains__(self, address: object) -> bool:
        return address in self._functions

    def __len__(self) -> int:
        return len(self._functions)

    def __iter__(self) -> Iterator[FunctionInfo]:
        for address in sorted(self._functions):
            yield self._functions[address]

    def __repr__(self) -> str:
        return f"FunctionTable({len(self)} functions, block_size={self.block_size})"

    @classmethod
    def from_text(
        cls,
        text: str,
        block_size: int = 1,
        source: str = "<string>",
    ) -> "FunctionTable":
        """Build a table from function-table text (either format)."""
        table = cls(block_size)
        for address, size, name in parse_function_table(text, source):
            table.register(address, size, name)
        logger.debug("loaded %d functions from %s", len(table), source)
        return table


def load_function_table(path: Union[str, Path], block_size: int = 1) -> FunctionTable:
    path = Path(path)
    return FunctionTable.from_text(
        path.read_text(encoding="utf-8"), block_size, source=str(path)
    )


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2 — GRAMMAR (Parsimonious PEG)
# ═══════════════════════════════════════════════════════════════════════════

FUNCTION_TABLE_GRAMMAR = Grammar(r"""
    table       = line*
    line        = hspace statement? hspace comment? newline
    statement   = new_entry / old_entry

    new_entry   = hex_number sep name sep decimal
    old_entry   = bare_hex hspace "<" old_name ">" ":"

    hex_number  = ~r"0[xX][0-9a-fA-F]+"
    bare_hex    = ~r"(0[xX])?[0-9a-fA-F]+"
    decimal     = ~r"[0-9]+"
    name        = ~r"[^\s<>#]+"
    old_name    = ~r"[^<>\n]+"

    comment     = ~r"#[^\n]*"
    sep         = ~r"[ \t]+"
    hspace      = ~r"[ \t]*"
    newline     = ~r"\r?\n"
""")


class _FunctionTableVisitor(NodeVisitor):
    """Turns the parse tree into ``("new"|"old", address, name, size)`` tuples."""

    def generic_visit(self, node: Node, visited_children: list):
        return visited_children or node

    def visit_table(self, node, visited_children):
        return [entry for entry in visited_children if entry is not None]

    def visit_line(self, node, visited_children):
        _, statement, _, _, _ = visited_children
        if isinstance(statement, list):
            entry = statement[0]
            return entry + (node.start,)
        return None

    def visit_statement(self, node, visited_children):
        return visited_children[0]

    def visit_new_entry(self, node, visited_children):
        address, _, name, _, size = visited_children
        return ("new", address, name, size)

    def visit_old_entry(self, node, visited_children):
        address, _, _, name, _, _ = visited_children
        return ("old", address, name, None)

    def visit_hex_number(self, node, _):
        return int(node.text, 16)

    def visit_bare_hex(self, node, _):
        return int(node.text, 16)

    def visit_decimal(self, node, _):
        return int(node.text)

    def visit_name(self, node, _):
        return node.text

    def visit_old_name(self, node, _):
        return node.text.strip()


def _line_of(text: str, offset: int) -> int:
    return text.count("\n", 0, offset) + 1


def parse_function_table(text: str, source: str = "<string>") -> List[Tuple[int, int, Optional[str]]]:
    """
    Parse function-table text into ``(address, size, name)`` triples.

    Raises :class:`ConfigParseError` on malformed input or when both formats
    are mixed in one table.
    """
    if text and not text.endswith("\n"):
        text += "\n"
    try:
        tree = FUNCTION_TABLE_GRAMMAR.parse(text)
        raw = _FunctionTableVisitor().visit(tree)
    except ParseError as exc:
        raise ConfigParseError(
            "malformed function table entry",
            line=exc.line(), column=exc.column(), source=source,
        ) from exc
    except VisitationError as exc:
        raise ConfigParseError(f"cannot read function table: {exc}", source=source) from exc

    formats = {kind for kind, _, _, _, _ in raw}
    if len(formats) > 1:
        raise ConfigParseError(
            "function table mixes the old and the current format", source=source
        )

    functions: List[Tuple[int, int, Optional[str]]] = []
    if formats == {"new"}:
        for _, address, name, size, offset in raw:
            if name == END_TAG:
                break
            if size == 0:
                raise ConfigParseError(
                    f"function {name!r} has size 0",
                    line=_line_of(text, offset), source=source,
                )
            functions.append((address, size, name))
    elif formats == {"old"}:
        # sizes are the distance to the following start address
        for current, following in zip(raw, raw[1:]):
            _, address, name, _, offset = current
            if name == END_TAG:
                break
            size = following[1] - address
            if size <= 0:
                raise ConfigParseError(
                    f"function {name!r} is not followed by a higher address",
                    line=_line_of(text, offset), source=source,
                )
            functions.append((address, size, name))
        if raw and raw[-1][2] != END_TAG:
            logger.warning("%s: last function %r has no END_TAG, its size is unknown",
                           source, raw[-1][2])
    return functions


__all__ = [
    "END_TAG",
    "FunctionSizeProvider",
    "FunctionInfo",
    "FunctionTable",
    "FUNCTION_TABLE_GRAMMAR",
    "load_function_table",
    "parse_function_table",
    "round_up",
]
