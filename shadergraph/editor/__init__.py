"""Shader graph editing session: undo history, graph commands, settings."""

from shadergraph.editor.undo_stack import UndoCommand, UndoStack
from shadergraph.editor.graph_commands import (
    ConnectCommand,
    CreateNodeCommand,
    EditDescriptorCommand,
    MoveNodeCommand,
    RemoveNodeCommand,
    SetNodePayloadCommand,
)
from shadergraph.editor.shader_editor import PendingLink, ShaderEditor

__all__ = [
    "UndoCommand",
    "UndoStack",
    "ConnectCommand",
    "CreateNodeCommand",
    "EditDescriptorCommand",
    "MoveNodeCommand",
    "RemoveNodeCommand",
    "SetNodePayloadCommand",
    "PendingLink",
    "ShaderEditor",
]
