"""
ShaderEditor: UI-independent session controller of the shader graph editor.

Owns the graph, the program descriptor and the undo stack of one editing
session and exposes the operations the GUI layer calls in response to
user gestures. Every graph mutation goes through an undo command.

Usage::

    editor = ShaderEditor()
    mul = editor.request_create(NodeKind.MULTIPLY, ShaderStage.FRAGMENT, (200, 80))

    editor.begin_link(mul, 0, is_input=False)
    editor.complete_link(output_id, 0, is_input=True)

    editor.save("material.sed")
    editor.generate_all()
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Hashable, List, Optional, Sequence, Tuple

import numpy as np

from shadergraph import log
from shadergraph.editor.graph_commands import (
    ConnectCommand,
    CreateNodeCommand,
    EditDescriptorCommand,
    MoveNodeCommand,
    RemoveNodeCommand,
    SetNodePayloadCommand,
)
from shadergraph.editor.undo_stack import UndoCommand, UndoStack
from shadergraph.nodegraph import compiler
from shadergraph.nodegraph.graph import ShaderGraph
from shadergraph.nodegraph.node import ShaderNode
from shadergraph.nodegraph.program import ShaderProgramDescriptor
from shadergraph.nodegraph.serialization import GraphFormatError, load_graph_file, save_graph_file
from shadergraph.nodegraph.types import NodeKind, ShaderStage, VertexInput, available_kinds

if TYPE_CHECKING:
    from shadergraph.editor.settings import EditorSettings


@dataclass(frozen=True)
class PendingLink:
    """Link being dragged from a pin, waiting for the opposite pin."""
    node_id: int
    pin: int
    is_input: bool


class ShaderEditor:
    """Shader graph editing session."""

    def __init__(self, settings: "EditorSettings | None" = None) -> None:
        self._settings = settings
        undo_depth = settings.get_undo_depth() if settings is not None else 0
        self.strict_load = settings.get_strict_load() if settings is not None else False

        self.graph = ShaderGraph()
        self.descriptor = ShaderProgramDescriptor()
        self.undo_stack = UndoStack(max_depth=undo_depth)
        self.path: Path | None = None
        self.current_stage = ShaderStage.VERTEX
        self._pending_link: PendingLink | None = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_node(self, node_id: int) -> Optional[ShaderNode]:
        return self.graph.find_by_id(node_id)

    def nodes(self, stage: ShaderStage | None = None) -> List[ShaderNode]:
        """Nodes of a stage (the current one by default), in stored order."""
        return self.graph.stage_graph(self.current_stage if stage is None else stage).nodes()

    def available_kinds(self, stage: ShaderStage | None = None) -> List[Tuple[NodeKind, str]]:
        return available_kinds(self.current_stage if stage is None else stage)

    @property
    def pending_link(self) -> PendingLink | None:
        return self._pending_link

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def execute(self, command: UndoCommand) -> None:
        log.debug(f"[shader_editor] execute: {command.text}")
        self.undo_stack.push(command)

    @property
    def can_undo(self) -> bool:
        return self.undo_stack.can_undo

    @property
    def can_redo(self) -> bool:
        return self.undo_stack.can_redo

    def undo(self) -> None:
        if self.undo_stack.can_undo:
            log.debug("[shader_editor] undo")
        self._pending_link = None
        self.undo_stack.undo()

    def redo(self) -> None:
        if self.undo_stack.can_redo:
            log.debug("[shader_editor] redo")
        self._pending_link = None
        self.undo_stack.redo()

    def history(self) -> Tuple[List[str], int]:
        """Command texts and the history cursor."""
        return [text for text, _ in self.undo_stack.entries()], self.undo_stack.index

    # ------------------------------------------------------------------
    # Gestures
    # ------------------------------------------------------------------

    def begin_link(self, node_id: int, pin: int, is_input: bool) -> None:
        """Start dragging a link from a pin."""
        self.graph.require(node_id).check_pin(pin, is_input)
        self._pending_link = PendingLink(node_id, pin, is_input)

    def cancel_link(self) -> None:
        self._pending_link = None

    def complete_link(self, node_id: int, pin: int, is_input: bool) -> bool:
        """
        Finish the dragged link on a pin of the opposite direction.

        Returns True if a connect command was executed. Releasing on a pin
        of the same direction, a different stage, or one that would close
        a loop does nothing.
        """
        pending = self._pending_link
        self._pending_link = None
        if pending is None or pending.is_input == is_input:
            return False

        if is_input:
            from_id, from_pin, to_id, to_pin = pending.node_id, pending.pin, node_id, pin
        else:
            from_id, from_pin, to_id, to_pin = node_id, pin, pending.node_id, pending.pin

        from_node = self.graph.require(from_id)
        to_node = self.graph.require(to_id)
        from_node.check_pin(from_pin, is_input=False)
        to_node.check_pin(to_pin, is_input=True)
        if from_node.stage != to_node.stage:
            log.warn(f"[shader_editor] cannot link {from_node!r} to {to_node!r}: different stages")
            return False
        if self.graph.would_create_cycle(from_node, to_node):
            log.warn(f"[shader_editor] linking {from_node!r} to {to_node!r} would create a cycle")
            return False

        self.execute(ConnectCommand(self.graph, from_id, from_pin, to_id, to_pin))
        return True

    def request_move(self, node_id: int, position: Sequence[float]) -> bool:
        """Move a node; no command is recorded if it did not actually move."""
        node = self.graph.require(node_id)
        if np.array_equal(node.position, np.asarray(position, dtype=np.float32)):
            return False
        self.execute(MoveNodeCommand(self.graph, node_id, position))
        return True

    def request_create(
        self,
        kind: NodeKind,
        stage: ShaderStage | None = None,
        position: Sequence[float] = (0.0, 0.0),
    ) -> int:
        """Create a node and return its id."""
        command = CreateNodeCommand(
            self.graph,
            kind,
            self.current_stage if stage is None else stage,
            position,
        )
        self.execute(command)
        return command.node_id

    def request_remove(self, node_id: int) -> None:
        if self._pending_link is not None and self._pending_link.node_id == node_id:
            self._pending_link = None
        self.execute(RemoveNodeCommand(self.graph, node_id))

    def request_set_payload(self, node_id: int, **values: Any) -> bool:
        """
        Change node parameters, e.g. ``request_set_payload(const_id, value=2.0)``.

        Returns False (and records nothing) when the values are already set.
        Invalid values raise before anything changes.
        """
        command = SetNodePayloadCommand(self.graph, node_id, values)
        if not command.changes_payload:
            return False
        self.execute(command)
        return True

    # ------------------------------------------------------------------
    # Program descriptor
    # ------------------------------------------------------------------

    def _edit_descriptor(
        self,
        edit: Callable[[ShaderProgramDescriptor], None],
        key: Hashable,
        text: str,
    ) -> bool:
        new_state = self.descriptor.copy()
        edit(new_state)
        if new_state == self.descriptor:
            return False
        self.execute(EditDescriptorCommand(self.descriptor, new_state, key, text))
        return True

    def set_texture_name(self, slot: int, name: str) -> bool:
        return self._edit_descriptor(
            lambda d: d.set_texture_name(slot, name),
            ("texture", slot),
            f"Rename texture {slot}",
        )

    def set_vertex_output_name(self, slot: int, name: str) -> bool:
        return self._edit_descriptor(
            lambda d: d.set_vertex_output_name(slot, name),
            ("vertex_output", slot),
            f"Rename vertex output {slot}",
        )

    def set_vertex_input_active(self, vertex_input: VertexInput, active: bool) -> bool:
        return self._edit_descriptor(
            lambda d: d.set_vertex_input_active(vertex_input, active),
            None,
            f"{'Enable' if active else 'Disable'} vertex input {VertexInput(vertex_input).name.lower()}",
        )

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def new_graph(self) -> None:
        """Drop every node and the whole history, start from the default graph."""
        self.graph.clear()
        self.graph.seed_defaults()
        self.descriptor.reset()
        self.undo_stack.clear()
        self._pending_link = None
        self.path = None
        log.info("[shader_editor] new graph")

    def load(self, path: str | Path) -> bool:
        """
        Replace the session with a saved graph.

        On failure the current graph, descriptor and history stay as they are.
        """
        path = Path(path)
        try:
            graph, descriptor = load_graph_file(path, strict=self.strict_load)
        except (OSError, GraphFormatError) as e:
            log.error(e, f"Failed to load shader graph {path}")
            return False

        self.graph = graph
        self.descriptor = descriptor
        self.undo_stack.clear()
        self._pending_link = None
        self._remember_path(path)
        log.info(f"[shader_editor] loaded {path} ({len(graph)} nodes)")
        return True

    def save(self, path: str | Path | None = None) -> bool:
        """Save to path, or to the current document path."""
        target = Path(path) if path is not None else self.path
        if target is None:
            log.error("Could not save shader graph: no path")
            return False
        try:
            save_graph_file(target, self.graph, self.descriptor)
        except OSError as e:
            log.error(e, f"Could not save shader graph {target}")
            return False

        self._remember_path(target)
        log.info(f"[shader_editor] saved {target}")
        return True

    def generate_source(self, stage: ShaderStage) -> str:
        return compiler.generate_stage_source(self.graph, self.descriptor, stage)

    def generate_all(self, path: str | Path | None = None) -> bool:
        """Write vertex source, fragment source and program descriptor next to path."""
        base = Path(path) if path is not None else self.path
        if base is None:
            log.error("Could not generate shaders: no path")
            return False
        try:
            written = compiler.generate_all(self.graph, self.descriptor, base)
        except OSError as e:
            log.error(e, f"Could not generate shaders for {base}")
            return False

        log.info(f"[shader_editor] generated {', '.join(str(p) for p in written)}")
        return True

    def _remember_path(self, path: Path) -> None:
        self.path = path
        if self._settings is not None:
            self._settings.set_last_graph_path(path)
