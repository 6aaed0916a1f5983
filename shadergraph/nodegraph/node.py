"""ShaderNode - data representation of a node in the shader graph.

A node owns no other nodes. Its pin slots hold the integer ids of the
neighbors they are linked to; the pin index on the neighbor's side is
found by scanning the neighbor's opposite slot list for this node's id.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

import numpy as np

from shadergraph.nodegraph.types import KIND_INFO, NodeKind, ShaderStage, ValueType

if TYPE_CHECKING:
    from shadergraph.nodegraph.compiler import GenerationContext
    from shadergraph.nodegraph.graph import ShaderGraph
    from shadergraph.nodegraph.serialization import BlobReader, BlobWriter


class GraphError(Exception):
    """Broken graph invariant: bad pin index, cross-stage link, unknown node..."""
    pass


def format_float(value: float) -> str:
    """Shader float literal, always with a decimal point (``2.0``, ``0.25``)."""
    return np.format_float_positional(np.float32(value), trim="0")


class ShaderNode:
    """
    Base class of every node kind.

    Each node has:
    - id: process-unique integer, stable across save/load and undo/redo
    - stage: vertex or fragment, fixed once the node joins a graph
    - position: 2D canvas position (float32)
    - inputs / outputs: fixed-size slot lists with neighbor ids or None

    Subclasses fix ``kind`` and override the type/codegen/persistence hooks.
    """

    kind: NodeKind

    def __init__(self) -> None:
        info = KIND_INFO[self.kind]
        self.id: int = -1
        self.stage: ShaderStage | None = None
        self.graph: "ShaderGraph | None" = None
        self._position = np.zeros(2, dtype=np.float32)
        self.inputs: List[Optional[int]] = [None] * info.input_count
        self.outputs: List[Optional[int]] = [None] * info.output_count

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id} stage={self.stage.name if self.stage is not None else None}>"

    # --- Metadata for the GUI collaborator ---

    @property
    def title(self) -> str:
        return KIND_INFO[self.kind].title

    @property
    def input_count(self) -> int:
        return len(self.inputs)

    @property
    def output_count(self) -> int:
        return len(self.outputs)

    @property
    def is_terminal(self) -> bool:
        return KIND_INFO[self.kind].terminal

    @property
    def position(self) -> np.ndarray:
        return self._position

    @position.setter
    def position(self, value) -> None:
        pos = np.asarray(value, dtype=np.float32).reshape(-1)
        if pos.shape != (2,):
            raise ValueError(f"Node position must have two components, got {value!r}")
        self._position = pos.copy()

    def payload(self) -> Dict[str, Any]:
        """Kind-specific values, for inspection and the GUI collaborator."""
        return {}

    # --- Links ---

    def check_pin(self, index: int, is_input: bool) -> None:
        slots = self.inputs if is_input else self.outputs
        if not 0 <= index < len(slots):
            direction = "input" if is_input else "output"
            raise GraphError(
                f"{self.title} node {self.id} has no {direction} pin {index} "
                f"({len(slots)} {direction}s)"
            )

    def linked_id(self, index: int, is_input: bool) -> Optional[int]:
        """Id of the neighbor on a pin, or None."""
        self.check_pin(index, is_input)
        return self.inputs[index] if is_input else self.outputs[index]

    def linked_node(self, index: int, is_input: bool) -> Optional["ShaderNode"]:
        node_id = self.linked_id(index, is_input)
        if node_id is None or self.graph is None:
            return None
        return self.graph.find_by_id(node_id)

    def input_node(self, index: int) -> Optional["ShaderNode"]:
        return self.linked_node(index, True)

    def output_node(self, index: int) -> Optional["ShaderNode"]:
        return self.linked_node(index, False)

    def pin_linked_to(self, node_id: int, is_input: bool) -> int:
        """Index of the first slot referencing node_id, -1 if none."""
        slots = self.inputs if is_input else self.outputs
        for i, linked in enumerate(slots):
            if linked == node_id:
                return i
        return -1

    def is_connected(self) -> bool:
        return any(i is not None for i in self.inputs) or any(o is not None for o in self.outputs)

    def input_type(self, index: int) -> ValueType:
        """Type flowing into an input pin, NONE when unconnected."""
        source = self.input_node(index)
        if source is None:
            return ValueType.NONE
        pin = source.pin_linked_to(self.id, is_input=False)
        if pin < 0:
            raise GraphError(f"Link {source.id} -> {self.id} is one-sided")
        return source.output_type(pin)

    # --- Kind hooks ---

    def output_type(self, index: int) -> ValueType:
        return ValueType.NONE

    def generate_before_main(self, ctx: "GenerationContext") -> None:
        """File-scope declarations (uniforms). Nothing by default."""
        pass

    def generate(self, ctx: "GenerationContext") -> None:
        """Statements of the main() body. Nothing by default."""
        pass

    def print_reference(self, ctx: "GenerationContext") -> str:
        """Token other nodes use to read this node's value."""
        return f"v{self.id}"

    def save_payload(self, writer: "BlobWriter") -> None:
        pass

    def load_payload(self, reader: "BlobReader") -> None:
        pass
