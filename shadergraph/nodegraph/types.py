"""Value types, node kinds and the fixed lookup tables of the shader graph.

Pure data: nothing here holds state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, List, Tuple


class ValueType(IntEnum):
    """Shader value type of a pin."""
    NONE = -1
    FLOAT = 0
    VEC2 = 1
    VEC3 = 2
    VEC4 = 3
    MATRIX3 = 4
    MATRIX4 = 5

    @property
    def token(self) -> str:
        """Shading-language type token (``vec4`` etc.)."""
        return value_type_token(self)

    @property
    def is_matrix(self) -> bool:
        return self in (ValueType.MATRIX3, ValueType.MATRIX4)


_VALUE_TYPE_TOKENS: Dict[ValueType, str] = {
    ValueType.FLOAT: "float",
    ValueType.VEC2: "vec2",
    ValueType.VEC3: "vec3",
    ValueType.VEC4: "vec4",
    ValueType.MATRIX3: "mat3",
    ValueType.MATRIX4: "mat4",
}


def value_type_token(value_type: ValueType) -> str:
    """Map a value type to its shading-language token.

    NONE has no token; asking for it is a logic error.
    """
    try:
        return _VALUE_TYPE_TOKENS[value_type]
    except KeyError:
        raise ValueError(f"Value type {value_type!r} has no shader type token") from None


def zero_literal(value_type: ValueType) -> str:
    """Zero value of the given type. NONE falls back to vec4."""
    if value_type == ValueType.FLOAT:
        return "0.0"
    if value_type == ValueType.VEC2:
        return "vec2(0.0, 0.0)"
    if value_type == ValueType.VEC3:
        return "vec3(0.0, 0.0, 0.0)"
    if value_type == ValueType.MATRIX3:
        return "mat3(0.0)"
    if value_type == ValueType.MATRIX4:
        return "mat4(0.0)"
    return "vec4(0.0, 0.0, 0.0, 0.0)"


class ShaderStage(IntEnum):
    """One of the two programs the graph compiles to."""
    VERTEX = 0
    FRAGMENT = 1


class NodeKind(IntEnum):
    """Closed set of node variants. Values are persisted, never renumber."""
    VERTEX_INPUT = 0
    VERTEX_OUTPUT = 1
    POSITION_OUTPUT = 2
    FRAGMENT_INPUT = 3
    FRAGMENT_OUTPUT = 4
    FLOAT_CONST = 5
    COLOR_CONST = 6
    SAMPLE = 7
    MIX = 8
    UNIFORM = 9
    VEC4_MERGE = 10
    MULTIPLY = 11
    BUILTIN_UNIFORM = 12


@dataclass(frozen=True)
class KindInfo:
    """Static description of a node kind."""
    title: str
    input_count: int
    output_count: int
    vertex: bool
    fragment: bool
    terminal: bool = False

    def legal_in(self, stage: ShaderStage) -> bool:
        return self.vertex if stage == ShaderStage.VERTEX else self.fragment


KIND_INFO: Dict[NodeKind, KindInfo] = {
    NodeKind.MIX: KindInfo("Mix", 3, 1, vertex=True, fragment=True),
    NodeKind.SAMPLE: KindInfo("Sample", 1, 1, vertex=True, fragment=True),
    NodeKind.VERTEX_INPUT: KindInfo("Input", 0, 1, vertex=True, fragment=False),
    NodeKind.VERTEX_OUTPUT: KindInfo("Output", 1, 0, vertex=True, fragment=False, terminal=True),
    NodeKind.POSITION_OUTPUT: KindInfo("Position output", 1, 0, vertex=True, fragment=False, terminal=True),
    NodeKind.FRAGMENT_INPUT: KindInfo("Input", 0, 1, vertex=False, fragment=True),
    NodeKind.FRAGMENT_OUTPUT: KindInfo("Output", 1, 0, vertex=False, fragment=True, terminal=True),
    NodeKind.COLOR_CONST: KindInfo("Color constant", 0, 1, vertex=True, fragment=True),
    NodeKind.FLOAT_CONST: KindInfo("Float Const", 0, 1, vertex=True, fragment=True),
    NodeKind.UNIFORM: KindInfo("Uniform", 0, 1, vertex=True, fragment=True),
    NodeKind.VEC4_MERGE: KindInfo("Vec4 merge", 5, 1, vertex=True, fragment=True),
    NodeKind.MULTIPLY: KindInfo("Multiply", 2, 1, vertex=True, fragment=True),
    NodeKind.BUILTIN_UNIFORM: KindInfo("Builtin uniforms", 0, 1, vertex=True, fragment=True),
}

# Kinds the "Add" menu offers; position-output is only ever seeded.
_MENU_ORDER: List[NodeKind] = [
    NodeKind.MIX,
    NodeKind.SAMPLE,
    NodeKind.VERTEX_INPUT,
    NodeKind.VERTEX_OUTPUT,
    NodeKind.FRAGMENT_INPUT,
    NodeKind.FRAGMENT_OUTPUT,
    NodeKind.COLOR_CONST,
    NodeKind.FLOAT_CONST,
    NodeKind.UNIFORM,
    NodeKind.VEC4_MERGE,
    NodeKind.MULTIPLY,
    NodeKind.BUILTIN_UNIFORM,
]


def available_kinds(stage: ShaderStage) -> List[Tuple[NodeKind, str]]:
    """Kinds (with titles) that may be created in the given stage."""
    return [(kind, KIND_INFO[kind].title) for kind in _MENU_ORDER if KIND_INFO[kind].legal_in(stage)]


class VertexInput(IntEnum):
    """Standard vertex attributes, in persisted order."""
    POSITION = 0
    NORMAL = 1
    COLOR = 2
    TANGENT = 3
    TEXCOORD0 = 4
    INSTANCE_DATA0 = 5
    INSTANCE_DATA1 = 6
    INSTANCE_DATA2 = 7
    INSTANCE_DATA3 = 8


@dataclass(frozen=True)
class VertexInputInfo:
    gui_name: str
    system_name: str
    value_type: ValueType


VERTEX_INPUTS: Dict[VertexInput, VertexInputInfo] = {
    VertexInput.POSITION: VertexInputInfo("Position", "a_position", ValueType.VEC4),
    VertexInput.NORMAL: VertexInputInfo("Normal", "a_normal", ValueType.VEC3),
    VertexInput.COLOR: VertexInputInfo("Color", "a_color", ValueType.VEC4),
    VertexInput.TANGENT: VertexInputInfo("Tangent", "a_tangent", ValueType.VEC3),
    VertexInput.TEXCOORD0: VertexInputInfo("Texture coord 0", "a_texcoord0", ValueType.VEC4),
    VertexInput.INSTANCE_DATA0: VertexInputInfo("Instance data 0", "i_data0", ValueType.VEC4),
    VertexInput.INSTANCE_DATA1: VertexInputInfo("Instance data 1", "i_data1", ValueType.VEC4),
    VertexInput.INSTANCE_DATA2: VertexInputInfo("Instance data 2", "i_data2", ValueType.VEC4),
    VertexInput.INSTANCE_DATA3: VertexInputInfo("Instance data 3", "i_data3", ValueType.VEC4),
}


class BuiltinUniform(IntEnum):
    MODEL_MTX = 0
    VIEWPROJECTION_MTX = 1


@dataclass(frozen=True)
class BuiltinUniformInfo:
    gui_name: str
    system_name: str
    value_type: ValueType


BUILTIN_UNIFORMS: Dict[BuiltinUniform, BuiltinUniformInfo] = {
    BuiltinUniform.MODEL_MTX: BuiltinUniformInfo("Model", "u_model[0]", ValueType.MATRIX4),
    BuiltinUniform.VIEWPROJECTION_MTX: BuiltinUniformInfo("View & Projection", "u_viewProj", ValueType.MATRIX4),
}
