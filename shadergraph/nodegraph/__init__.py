"""Shader node graph: nodes, two-stage graph, code generation, persistence."""

from shadergraph.nodegraph.types import NodeKind, ShaderStage, ValueType, VertexInput, BuiltinUniform
from shadergraph.nodegraph.node import ShaderNode, GraphError
from shadergraph.nodegraph.nodes import create_node
from shadergraph.nodegraph.program import ShaderProgramDescriptor
from shadergraph.nodegraph.graph import ShaderGraph, StageGraph
from shadergraph.nodegraph.serialization import (
    GraphFormatError,
    save_graph,
    load_graph,
    save_node_snapshot,
    restore_node_snapshot,
)
from shadergraph.nodegraph.compiler import generate_stage_source, generate_program_descriptor, generate_all

__all__ = [
    "NodeKind",
    "ShaderStage",
    "ValueType",
    "VertexInput",
    "BuiltinUniform",
    "ShaderNode",
    "GraphError",
    "create_node",
    "ShaderProgramDescriptor",
    "ShaderGraph",
    "StageGraph",
    "GraphFormatError",
    "save_graph",
    "load_graph",
    "save_node_snapshot",
    "restore_node_snapshot",
    "generate_stage_source",
    "generate_program_descriptor",
    "generate_all",
]
