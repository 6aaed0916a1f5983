"""Node kinds and the node factory.

One class per NodeKind. ``create_node`` is the only way the rest of the
package instantiates nodes; the registry below must cover every kind.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Type

import numpy as np

from shadergraph.nodegraph.node import GraphError, ShaderNode, format_float
from shadergraph.nodegraph.program import MAX_TEXTURES_COUNT, MAX_VERTEX_OUTPUTS_COUNT
from shadergraph.nodegraph.types import (
    BUILTIN_UNIFORMS,
    VERTEX_INPUTS,
    BuiltinUniform,
    NodeKind,
    ValueType,
    VertexInput,
    zero_literal,
)

if TYPE_CHECKING:
    from shadergraph.nodegraph.compiler import GenerationContext
    from shadergraph.nodegraph.serialization import BlobReader, BlobWriter


MISSING_COLOR = "vec4(1.0, 0.0, 1.0, 1.0)"
MISSING_VARYING = "vec4(1.0, 0.0, 1.0, 0.0)"


def _declared_token(value_type: ValueType) -> str:
    """Type token for a temporary; untyped values are declared as vec4."""
    if value_type == ValueType.NONE:
        return ValueType.VEC4.token
    return value_type.token


def _check_slot(value: int, limit: int, what: str) -> int:
    value = int(value)
    if not 0 <= value < limit:
        raise ValueError(f"{what} {value} out of range 0..{limit - 1}")
    return value


# ============== Stage inputs / outputs ==============

class VertexInputNode(ShaderNode):
    """Reads one of the standard vertex attributes."""
    kind = NodeKind.VERTEX_INPUT

    def __init__(self) -> None:
        super().__init__()
        self.vertex_input = VertexInput.POSITION

    def payload(self) -> Dict[str, Any]:
        return {"vertex_input": self.vertex_input}

    def output_type(self, index: int) -> ValueType:
        return VERTEX_INPUTS[self.vertex_input].value_type

    def print_reference(self, ctx: "GenerationContext") -> str:
        return VERTEX_INPUTS[self.vertex_input].system_name

    def save_payload(self, writer: "BlobWriter") -> None:
        writer.write_int32(int(self.vertex_input))

    def load_payload(self, reader: "BlobReader") -> None:
        self.vertex_input = VertexInput(reader.read_int32())


class VertexOutputNode(ShaderNode):
    """Writes a varying declared in the program descriptor."""
    kind = NodeKind.VERTEX_OUTPUT

    def __init__(self) -> None:
        super().__init__()
        self.output_slot = 0

    def payload(self) -> Dict[str, Any]:
        return {"output_slot": self.output_slot}

    def generate(self, ctx: "GenerationContext") -> None:
        name = ctx.descriptor.vertex_output_name(self.output_slot)
        if not name:
            # Unnamed slot: nothing declared to write to.
            return
        value = ctx.reference(self, 0)
        ctx.statement(f"{name} = {value if value is not None else MISSING_VARYING}")

    def save_payload(self, writer: "BlobWriter") -> None:
        writer.write_int32(self.output_slot)

    def load_payload(self, reader: "BlobReader") -> None:
        self.output_slot = _check_slot(reader.read_int32(), MAX_VERTEX_OUTPUTS_COUNT, "Vertex output slot")


class PositionOutputNode(ShaderNode):
    kind = NodeKind.POSITION_OUTPUT

    def generate(self, ctx: "GenerationContext") -> None:
        value = ctx.reference(self, 0)
        ctx.statement(f"gl_Position = {value if value is not None else MISSING_COLOR}")


class FragmentInputNode(ShaderNode):
    """Reads a varying written by the vertex stage."""
    kind = NodeKind.FRAGMENT_INPUT

    def __init__(self) -> None:
        super().__init__()
        self.attribute = 0

    def payload(self) -> Dict[str, Any]:
        return {"attribute": self.attribute}

    def output_type(self, index: int) -> ValueType:
        return ValueType.VEC4

    def print_reference(self, ctx: "GenerationContext") -> str:
        name = ctx.descriptor.vertex_output_name(self.attribute)
        return name if name else zero_literal(ValueType.VEC4)

    def save_payload(self, writer: "BlobWriter") -> None:
        writer.write_int32(self.attribute)

    def load_payload(self, reader: "BlobReader") -> None:
        self.attribute = _check_slot(reader.read_int32(), MAX_VERTEX_OUTPUTS_COUNT, "Vertex output slot")


class FragmentOutputNode(ShaderNode):
    kind = NodeKind.FRAGMENT_OUTPUT

    def generate(self, ctx: "GenerationContext") -> None:
        value = ctx.reference(self, 0)
        ctx.statement(f"gl_FragColor = {value if value is not None else MISSING_COLOR}")


# ============== Constants and uniforms ==============

class FloatConstNode(ShaderNode):
    """Scalar literal; contributes a reference, never a statement."""
    kind = NodeKind.FLOAT_CONST

    def __init__(self) -> None:
        super().__init__()
        self._value = 0.0

    @property
    def value(self) -> float:
        return self._value

    @value.setter
    def value(self, value: float) -> None:
        # Stored with the precision it is persisted with.
        self._value = float(np.float32(value))

    def payload(self) -> Dict[str, Any]:
        return {"value": self.value}

    def output_type(self, index: int) -> ValueType:
        return ValueType.FLOAT

    def print_reference(self, ctx: "GenerationContext") -> str:
        return format_float(self.value)

    def save_payload(self, writer: "BlobWriter") -> None:
        writer.write_float32(self.value)

    def load_payload(self, reader: "BlobReader") -> None:
        self.value = reader.read_float32()


class ColorConstNode(ShaderNode):
    kind = NodeKind.COLOR_CONST

    def __init__(self) -> None:
        super().__init__()
        self._color = np.zeros(4, dtype=np.float32)

    @property
    def color(self) -> np.ndarray:
        return self._color

    @color.setter
    def color(self, value) -> None:
        color = np.asarray(value, dtype=np.float32).reshape(-1)
        if color.shape != (4,):
            raise ValueError(f"Color must have four components, got {value!r}")
        self._color = color.copy()

    def payload(self) -> Dict[str, Any]:
        return {"color": self.color.tolist()}

    def output_type(self, index: int) -> ValueType:
        return ValueType.VEC4

    def generate(self, ctx: "GenerationContext") -> None:
        components = ", ".join(format_float(c) for c in self.color)
        ctx.statement(f"const vec4 v{self.id} = vec4({components})")

    def save_payload(self, writer: "BlobWriter") -> None:
        writer.write_floats(self.color)

    def load_payload(self, reader: "BlobReader") -> None:
        self.color = reader.read_floats(4)


class UniformNode(ShaderNode):
    """User uniform, declared at file scope."""
    kind = NodeKind.UNIFORM

    def __init__(self) -> None:
        super().__init__()
        self.name = ""
        self._value_type = ValueType.VEC4

    @property
    def value_type(self) -> ValueType:
        return self._value_type

    @value_type.setter
    def value_type(self, value_type: ValueType) -> None:
        value_type = ValueType(value_type)
        if value_type == ValueType.NONE:
            raise ValueError("Uniform must have a concrete value type")
        self._value_type = value_type

    def payload(self) -> Dict[str, Any]:
        return {"name": self.name, "value_type": self.value_type}

    def output_type(self, index: int) -> ValueType:
        return self.value_type

    def generate_before_main(self, ctx: "GenerationContext") -> None:
        if self.name:
            ctx.declare(f"uniform {self.value_type.token} {self.name};")

    def print_reference(self, ctx: "GenerationContext") -> str:
        return self.name if self.name else zero_literal(self.value_type)

    def save_payload(self, writer: "BlobWriter") -> None:
        writer.write_string(self.name)
        writer.write_int32(int(self.value_type))

    def load_payload(self, reader: "BlobReader") -> None:
        self.name = reader.read_string()
        self.value_type = ValueType(reader.read_int32())


class BuiltinUniformNode(ShaderNode):
    """Engine uniform; the common header already declares it."""
    kind = NodeKind.BUILTIN_UNIFORM

    def __init__(self) -> None:
        super().__init__()
        self.uniform = BuiltinUniform.MODEL_MTX

    def payload(self) -> Dict[str, Any]:
        return {"uniform": self.uniform}

    def output_type(self, index: int) -> ValueType:
        return BUILTIN_UNIFORMS[self.uniform].value_type

    def print_reference(self, ctx: "GenerationContext") -> str:
        return BUILTIN_UNIFORMS[self.uniform].system_name

    def save_payload(self, writer: "BlobWriter") -> None:
        writer.write_int32(int(self.uniform))

    def load_payload(self, reader: "BlobReader") -> None:
        self.uniform = BuiltinUniform(reader.read_int32())


# ============== Operations ==============

class SampleNode(ShaderNode):
    """texture2D() of a texture slot at the uv input."""
    kind = NodeKind.SAMPLE

    def __init__(self) -> None:
        super().__init__()
        self.texture = 0

    def payload(self) -> Dict[str, Any]:
        return {"texture": self.texture}

    def output_type(self, index: int) -> ValueType:
        return ValueType.VEC4

    def generate_before_main(self, ctx: "GenerationContext") -> None:
        # Named slots are declared from the descriptor header.
        if not ctx.descriptor.textures[self.texture]:
            ctx.declare(f"SAMPLER2D({ctx.descriptor.texture_name(self.texture)}, {self.texture});")

    def generate(self, ctx: "GenerationContext") -> None:
        uv = ctx.reference(self, 0)
        if uv is None:
            ctx.statement(f"vec4 v{self.id} = {MISSING_VARYING}")
            return
        ctx.statement(f"vec4 v{self.id} = texture2D({ctx.descriptor.texture_name(self.texture)}, {uv})")

    def save_payload(self, writer: "BlobWriter") -> None:
        writer.write_int32(self.texture)

    def load_payload(self, reader: "BlobReader") -> None:
        self.texture = _check_slot(reader.read_int32(), MAX_TEXTURES_COUNT, "Texture slot")


class MixNode(ShaderNode):
    """mix(a, b, weight); typed after b."""
    kind = NodeKind.MIX

    def output_type(self, index: int) -> ValueType:
        return self.input_type(1)

    def generate(self, ctx: "GenerationContext") -> None:
        args = [ctx.reference(self, pin) for pin in range(3)]
        output_type = self.output_type(0)
        token = _declared_token(output_type)
        if any(arg is None for arg in args):
            ctx.statement(f"{token} v{self.id} = {zero_literal(output_type)}")
            return
        ctx.statement(f"{token} v{self.id} = mix({', '.join(args)})")


class Vec4MergeNode(ShaderNode):
    """Builds a vec4 from xyz, x, y, z, w inputs; later pins override earlier ones."""
    kind = NodeKind.VEC4_MERGE

    SWIZZLES = ("xyz", "x", "y", "z", "w")

    def output_type(self, index: int) -> ValueType:
        return ValueType.VEC4

    def generate(self, ctx: "GenerationContext") -> None:
        ctx.statement(f"vec4 v{self.id} = {zero_literal(ValueType.VEC4)}")
        for pin, swizzle in enumerate(self.SWIZZLES):
            value = ctx.reference(self, pin)
            if value is not None:
                ctx.statement(f"v{self.id}.{swizzle} = {value}")


class MultiplyNode(ShaderNode):
    """a * b, or mul(a, b) when a is a matrix; typed after b."""
    kind = NodeKind.MULTIPLY

    def output_type(self, index: int) -> ValueType:
        return self.input_type(1)

    def generate(self, ctx: "GenerationContext") -> None:
        a = ctx.reference(self, 0)
        b = ctx.reference(self, 1)
        output_type = self.output_type(0)
        token = _declared_token(output_type)
        if a is None or b is None:
            ctx.statement(f"{token} v{self.id} = {zero_literal(output_type)}")
            return
        if self.input_type(0).is_matrix:
            ctx.statement(f"{token} v{self.id} = mul({a}, {b})")
        else:
            ctx.statement(f"{token} v{self.id} = {a} * {b}")


# ============== Factory ==============

NODE_CLASSES: Dict[NodeKind, Type[ShaderNode]] = {
    cls.kind: cls
    for cls in (
        VertexInputNode,
        VertexOutputNode,
        PositionOutputNode,
        FragmentInputNode,
        FragmentOutputNode,
        FloatConstNode,
        ColorConstNode,
        SampleNode,
        MixNode,
        UniformNode,
        Vec4MergeNode,
        MultiplyNode,
        BuiltinUniformNode,
    )
}

_missing_kinds = set(NodeKind) - set(NODE_CLASSES)
if _missing_kinds:
    raise RuntimeError(f"Node kinds without implementation: {sorted(k.name for k in _missing_kinds)}")


def create_node(kind: NodeKind) -> ShaderNode:
    """Factory function to create a detached node of the given kind."""
    try:
        cls = NODE_CLASSES[NodeKind(kind)]
    except ValueError:
        raise GraphError(f"Unknown node kind {kind!r}") from None
    return cls()
