"""Shader graph: two stage collections plus link maintenance.

The graph is the arena that owns every node. Links are plain ids stored
in pin slots; every mutating operation here leaves them bidirectional.
"""

from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from shadergraph import log
from shadergraph.nodegraph.node import GraphError, ShaderNode
from shadergraph.nodegraph.nodes import create_node
from shadergraph.nodegraph.types import KIND_INFO, NodeKind, ShaderStage

DEFAULT_TERMINAL_POSITION = (50.0, 50.0)

# (from_id, from_pin, to_id, to_pin)
Link = Tuple[int, int, int, int]


class StageGraph:
    """Nodes of a single stage, keyed by id, in insertion order."""

    def __init__(self, stage: ShaderStage) -> None:
        self.stage = stage
        self._nodes: Dict[int, ShaderNode] = {}

    def __iter__(self) -> Iterator[ShaderNode]:
        return iter(list(self._nodes.values()))

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: int) -> bool:
        return node_id in self._nodes

    def get(self, node_id: int) -> Optional[ShaderNode]:
        return self._nodes.get(node_id)

    def nodes(self) -> List[ShaderNode]:
        return list(self._nodes.values())

    def terminals(self) -> List[ShaderNode]:
        """Sink nodes whose reachable subgraph gets emitted."""
        return [node for node in self._nodes.values() if node.is_terminal]

    def _insert(self, node: ShaderNode) -> None:
        self._nodes[node.id] = node

    def _erase(self, node: ShaderNode) -> None:
        del self._nodes[node.id]


class ShaderGraph:
    """
    Vertex and fragment graphs of one editor session.

    Node ids are unique across both stages and come from a counter that
    only grows within a session (``clear`` starts a new one).
    """

    def __init__(self, seed_defaults: bool = True) -> None:
        self.vertex = StageGraph(ShaderStage.VERTEX)
        self.fragment = StageGraph(ShaderStage.FRAGMENT)
        self._last_node_id = 0
        if seed_defaults:
            self.seed_defaults()

    def stage_graph(self, stage: ShaderStage) -> StageGraph:
        return self.vertex if ShaderStage(stage) == ShaderStage.VERTEX else self.fragment

    @property
    def last_node_id(self) -> int:
        return self._last_node_id

    def seed_defaults(self) -> None:
        """Add the terminal node each fresh stage starts with."""
        self.create_node(NodeKind.FRAGMENT_OUTPUT, ShaderStage.FRAGMENT, DEFAULT_TERMINAL_POSITION)
        self.create_node(NodeKind.POSITION_OUTPUT, ShaderStage.VERTEX, DEFAULT_TERMINAL_POSITION)

    def clear(self) -> None:
        """Destroy every node of both stages and restart id numbering."""
        for stage_graph in (self.vertex, self.fragment):
            for node in stage_graph:
                node.inputs = [None] * node.input_count
                node.outputs = [None] * node.output_count
                node.graph = None
            stage_graph._nodes.clear()
        self._last_node_id = 0

    # --- Nodes ---

    def nodes(self) -> List[ShaderNode]:
        """Every node, vertex stage first."""
        return self.vertex.nodes() + self.fragment.nodes()

    def __len__(self) -> int:
        return len(self.vertex) + len(self.fragment)

    def find_by_id(self, node_id: int) -> Optional[ShaderNode]:
        """Node with the given id in either stage, or None."""
        node = self.vertex.get(node_id)
        if node is None:
            node = self.fragment.get(node_id)
        return node

    def require(self, node_id: int) -> ShaderNode:
        node = self.find_by_id(node_id)
        if node is None:
            raise GraphError(f"No node with id {node_id}")
        return node

    def add_node(
        self,
        node: ShaderNode,
        stage: ShaderStage,
        position: Sequence[float] = (0.0, 0.0),
        node_id: int | None = None,
    ) -> ShaderNode:
        """
        Insert a detached node into a stage.

        node_id keeps a known id (load, undo of remove); otherwise the next
        fresh id is assigned. Explicit ids move the counter past them.
        """
        stage = ShaderStage(stage)
        if node.graph is not None:
            raise GraphError(f"{node!r} already belongs to a graph")
        if not KIND_INFO[node.kind].legal_in(stage):
            raise GraphError(f"{node.title} nodes are not allowed in the {stage.name.lower()} stage")
        if node_id is None:
            node_id = self._last_node_id + 1
        elif node_id <= 0:
            raise GraphError(f"Invalid node id {node_id}")
        if self.find_by_id(node_id) is not None:
            raise GraphError(f"Node id {node_id} is already in use")

        node.id = node_id
        node.stage = stage
        node.position = position
        node.graph = self
        self._last_node_id = max(self._last_node_id, node_id)
        self.stage_graph(stage)._insert(node)
        return node

    def create_node(
        self,
        kind: NodeKind,
        stage: ShaderStage,
        position: Sequence[float] = (0.0, 0.0),
        node_id: int | None = None,
    ) -> ShaderNode:
        return self.add_node(create_node(kind), stage, position, node_id)

    def remove_node(self, node: ShaderNode) -> None:
        """Unlink every pin of the node, then drop it from its stage."""
        if node.graph is not self or node.stage is None or node.id not in self.stage_graph(node.stage):
            raise GraphError(f"{node!r} is not part of this graph")
        for i in range(node.input_count):
            self.disconnect(node, i, True)
        for i in range(node.output_count):
            self.disconnect(node, i, False)
        self.stage_graph(node.stage)._erase(node)
        node.graph = None

    # --- Links ---

    def connect(self, from_node: ShaderNode, from_pin: int, to_node: ShaderNode, to_pin: int) -> None:
        """
        Link output from_pin of from_node to input to_pin of to_node.

        Whatever occupied either endpoint is unlinked first: the last
        connect wins.
        """
        from_node.check_pin(from_pin, is_input=False)
        to_node.check_pin(to_pin, is_input=True)
        for node in (from_node, to_node):
            if node.graph is not self:
                raise GraphError(f"{node!r} is not part of this graph")
        if from_node.stage != to_node.stage:
            raise GraphError(f"Cannot link {from_node!r} to {to_node!r}: different stages")
        if self.would_create_cycle(from_node, to_node):
            raise GraphError(f"Linking {from_node!r} to {to_node!r} would create a cycle")

        self.disconnect(from_node, from_pin, is_input=False)
        self.disconnect(to_node, to_pin, is_input=True)
        from_node.outputs[from_pin] = to_node.id
        to_node.inputs[to_pin] = from_node.id

    def disconnect(self, node: ShaderNode, pin: int, is_input: bool) -> None:
        """Unlink one pin on both sides. An empty pin is left as is."""
        neighbor_id = node.linked_id(pin, is_input)
        if neighbor_id is None:
            return

        neighbor = self.find_by_id(neighbor_id)
        if neighbor is not None:
            reciprocal = neighbor.pin_linked_to(node.id, not is_input)
            if reciprocal < 0:
                raise GraphError(f"Link between {node!r} and {neighbor!r} is one-sided")
            if is_input:
                neighbor.outputs[reciprocal] = None
            else:
                neighbor.inputs[reciprocal] = None
        else:
            log.warn(f"[graph] {node!r} referenced missing node {neighbor_id}")

        if is_input:
            node.inputs[pin] = None
        else:
            node.outputs[pin] = None

    def would_create_cycle(self, from_node: ShaderNode, to_node: ShaderNode) -> bool:
        """True if from_node is downstream of to_node (or is to_node)."""
        pending = [to_node]
        seen = set()
        while pending:
            node = pending.pop()
            if node.id == from_node.id:
                return True
            if node.id in seen:
                continue
            seen.add(node.id)
            for neighbor_id in node.outputs:
                if neighbor_id is not None:
                    neighbor = self.find_by_id(neighbor_id)
                    if neighbor is not None:
                        pending.append(neighbor)
        return False

    def links(self) -> List[Link]:
        """Every link as (from_id, from_pin, to_id, to_pin), sorted."""
        result = []
        for node in self.nodes():
            for pin, neighbor_id in enumerate(node.outputs):
                if neighbor_id is None:
                    continue
                neighbor = self.require(neighbor_id)
                result.append((node.id, pin, neighbor_id, neighbor.pin_linked_to(node.id, is_input=True)))
        return sorted(result)

    def check_integrity(self) -> None:
        """Raise GraphError if any link is one-sided or crosses stages."""
        for node in self.nodes():
            for is_input, slots in ((True, node.inputs), (False, node.outputs)):
                for neighbor_id in slots:
                    if neighbor_id is None:
                        continue
                    neighbor = self.find_by_id(neighbor_id)
                    if neighbor is None:
                        raise GraphError(f"{node!r} references missing node {neighbor_id}")
                    if neighbor.stage != node.stage:
                        raise GraphError(f"{node!r} is linked across stages to {neighbor!r}")
                    if neighbor.pin_linked_to(node.id, not is_input) < 0:
                        raise GraphError(f"Link between {node!r} and {neighbor!r} is one-sided")
