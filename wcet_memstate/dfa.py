"""
wcet_memstate/dfa.py
════════════════════

Forward data-flow driver computing the abstract memory state in front of
every node of a memory-state graph.

    ┌───────┐ forward ┌──────┐ forward ┌──────┐
    │ entry │ ──────▶ │  n1  │ ──────▶ │  n3  │   in(n3) = join(out(n1), out(n2))
    └───────┘         └──────┘         └──────┘
        │             ┌──────┐ forward    ▲
        └───────────▶ │  n2  │ ───────────┘
                      └──────┘

* the entry node starts from a blank state;
* a node is processed once the out-states of all its forward predecessors
  are known;
* a single predecessor hands its out-state on, several are joined;
* the out-state of a node is its in-state updated by the node's accesses.

Back edges are ignored: loop effects are expected to be made explicit by
the graph construction (peeling the first iteration), so the graph seen
here is acyclic along forward edges.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterable, List, Optional, Tuple

from wcet_memstate.classification import ClassificationSummary, classify_accesses
from wcet_memstate.errors import InvariantViolation, MemStateErrorCodes, UnknownNodeError
from wcet_memstate.mem_state import AbstractMemoryState
from wcet_memstate.replacement_policy import ReplacementPolicy

logger = logging.getLogger(__name__)

NodeId = Hashable


class EdgeKind(enum.Enum):
    FORWARD = "forward"
    BACK = "back"


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1 — GRAPH
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class StateNode:
    """A graph node and the ordered memory accesses it performs."""
    node_id: NodeId
    accesses: List[int] = field(default_factory=list)


class MemoryStateGraph:
    """Directed graph of access sequences with forward and back edges."""

    def __init__(self) -> None:
        self._nodes: Dict[NodeId, StateNode] = {}
        self._out: Dict[NodeId, List[Tuple[NodeId, EdgeKind]]] = {}
        self._in: Dict[NodeId, List[Tuple[NodeId, EdgeKind]]] = {}

    def add_node(self, node_id: NodeId, accesses: Iterable[int] = ()) -> StateNode:
        if node_id in self._nodes:
            logger.warning("node %r added twice, replacing its accesses", node_id)
        node = StateNode(node_id, list(accesses))
        self._nodes[node_id] = node
        self._out.setdefault(node_id, [])
        self._in.setdefault(node_id, [])
        return node

    def add_edge(self, source: NodeId, target: NodeId, kind: EdgeKind = EdgeKind.FORWARD) -> None:
        self.check_node(source)
        self.check_node(target)
        self._out[source].append((target, kind))
        self._in[target].append((source, kind))

    def check_node(self, node_id: NodeId) -> None:
        if node_id not in self._nodes:
            raise UnknownNodeError(node_id)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def nodes(self) -> List[NodeId]:
        return list(self._nodes)

    def accesses(self, node_id: NodeId) -> List[int]:
        self.check_node(node_id)
        return self._nodes[node_id].accesses

    def successors(self, node_id: NodeId, kind: Optional[EdgeKind] = None) -> List[NodeId]:
        self.check_node(node_id)
        return [t for t, k in self._out[node_id] if kind is None or k is kind]

    def predecessors(self, node_id: NodeId, kind: Optional[EdgeKind] = None) -> List[NodeId]:
        self.check_node(node_id)
        return [s for s, k in self._in[node_id] if kind is None or k is kind]


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2 — ANALYSIS
# ═══════════════════════════════════════════════════════════════════════════

class MemoryStateAnalyzer:
    """
    Worklist computation of in-states over a :class:`MemoryStateGraph`.

    Nodes not reachable from *entry* along forward edges keep no state and
    are left out of every result.
    """

    def __init__(self, policy: ReplacementPolicy, graph: MemoryStateGraph, entry: NodeId) -> None:
        if entry not in graph:
            raise InvariantViolation(
                f"entry node {entry!r} is not part of the graph",
                code=MemStateErrorCodes.MISSING_ENTRY,
            )
        self.policy = policy
        self.graph = graph
        self.entry = entry
        self._in_states: Dict[NodeId, AbstractMemoryState] = {}
        self._out_states: Dict[NodeId, AbstractMemoryState] = {}
        self._done = False

    def run(self) -> Dict[NodeId, AbstractMemoryState]:
        """Compute and return the in-state of every reachable node."""
        if self._done:
            return dict(self._in_states)

        worklist = [self.entry]
        while worklist:
            node = worklist.pop()
            if node in self._in_states:
                continue
            state = self._initial_state(node)
            if state is None:
                # revisited once its last forward predecessor is done
                continue

            self._in_states[node] = state
            accesses = self.graph.accesses(node)
            # each node owns its states, also when it has no accesses
            self._out_states[node] = (
                self.policy.update_many(state, accesses) if accesses else state.copy()
            )
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("Initial memory state of node %r", node)
                logger.debug("Must set: %s", self.policy.format_mem_set(state.must_set))
                logger.debug("May set: %s", self.policy.format_mem_set(state.may_set))

            worklist.extend(self.graph.successors(node, EdgeKind.FORWARD))

        skipped = len(self.graph) - len(self._in_states)
        if skipped:
            logger.info("%d node(s) unreachable from %r, left without state", skipped, self.entry)
        self._done = True
        return dict(self._in_states)

    def _initial_state(self, node: NodeId) -> Optional[AbstractMemoryState]:
        if node == self.entry:
            return self.policy.blank_state()
        preds = self.graph.predecessors(node, EdgeKind.FORWARD)
        if any(pred not in self._out_states for pred in preds):
            return None
        if len(preds) == 1:
            return self._out_states[preds[0]].copy()
        return self.policy.join([self._out_states[pred] for pred in preds])

    def in_state(self, node: NodeId) -> Optional[AbstractMemoryState]:
        self.graph.check_node(node)
        self.run()
        return self._in_states.get(node)

    def out_state(self, node: NodeId) -> Optional[AbstractMemoryState]:
        self.graph.check_node(node)
        self.run()
        return self._out_states.get(node)

    def classify_all(self) -> Dict[NodeId, ClassificationSummary]:
        """Hit/miss classification of every access of every reachable node."""
        self.run()
        return {
            node: classify_accesses(self.policy, state, self.graph.accesses(node))
            for node, state in self._in_states.items()
        }


__all__ = [
    "EdgeKind",
    "StateNode",
    "MemoryStateGraph",
    "MemoryStateAnalyzer",
]
