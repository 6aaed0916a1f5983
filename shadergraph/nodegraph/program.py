"""Shader program descriptor shared by both stages.

Holds the texture slot names, the vertex output (varying) names and the
set of standard vertex inputs the vertex stage declares.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from shadergraph.nodegraph.types import VertexInput, VERTEX_INPUTS

MAX_TEXTURES_COUNT = 16
MAX_VERTEX_OUTPUTS_COUNT = 10
MAX_NAME_LENGTH = 49


def _check_name(name: str) -> str:
    if len(name.encode("utf-8")) > MAX_NAME_LENGTH:
        raise ValueError(f"Name '{name}' is longer than {MAX_NAME_LENGTH} bytes")
    return name


@dataclass
class ShaderProgramDescriptor:
    """Per-editor program description read by code generation."""
    textures: List[str] = field(default_factory=lambda: [""] * MAX_TEXTURES_COUNT)
    vertex_outputs: List[str] = field(default_factory=lambda: [""] * MAX_VERTEX_OUTPUTS_COUNT)
    vertex_inputs: List[bool] = field(default_factory=lambda: [False] * len(VertexInput))

    def reset(self) -> None:
        """Clear every slot back to the fresh-graph state."""
        self.textures = [""] * MAX_TEXTURES_COUNT
        self.vertex_outputs = [""] * MAX_VERTEX_OUTPUTS_COUNT
        self.vertex_inputs = [False] * len(VertexInput)

    def assign(self, other: "ShaderProgramDescriptor") -> None:
        """Take over every slot of other, keeping this object's identity."""
        self.textures = list(other.textures)
        self.vertex_outputs = list(other.vertex_outputs)
        self.vertex_inputs = list(other.vertex_inputs)

    def copy(self) -> "ShaderProgramDescriptor":
        return ShaderProgramDescriptor(
            textures=list(self.textures),
            vertex_outputs=list(self.vertex_outputs),
            vertex_inputs=list(self.vertex_inputs),
        )

    # --- Texture slots ---

    def texture_name(self, slot: int) -> str:
        """Sampler name for a slot; unnamed slots get ``u_texture<slot>``."""
        name = self.textures[slot]
        return name if name else f"u_texture{slot}"

    def set_texture_name(self, slot: int, name: str) -> None:
        if not 0 <= slot < MAX_TEXTURES_COUNT:
            raise IndexError(f"Texture slot {slot} out of range")
        self.textures[slot] = _check_name(name)

    def active_textures(self) -> List[tuple[int, str]]:
        """(slot, name) pairs of every named texture slot, in slot order."""
        return [(i, name) for i, name in enumerate(self.textures) if name]

    # --- Vertex outputs ---

    def vertex_output_name(self, slot: int) -> str:
        return self.vertex_outputs[slot]

    def set_vertex_output_name(self, slot: int, name: str) -> None:
        if not 0 <= slot < MAX_VERTEX_OUTPUTS_COUNT:
            raise IndexError(f"Vertex output slot {slot} out of range")
        self.vertex_outputs[slot] = _check_name(name)

    def active_vertex_outputs(self) -> List[str]:
        return [name for name in self.vertex_outputs if name]

    # --- Vertex inputs ---

    def is_vertex_input_active(self, vertex_input: VertexInput) -> bool:
        return self.vertex_inputs[int(vertex_input)]

    def set_vertex_input_active(self, vertex_input: VertexInput, active: bool) -> None:
        self.vertex_inputs[int(VertexInput(vertex_input))] = bool(active)

    def active_vertex_inputs(self) -> List[str]:
        """System names of the declared vertex attributes, in table order."""
        return [
            VERTEX_INPUTS[vertex_input].system_name
            for vertex_input in VertexInput
            if self.vertex_inputs[int(vertex_input)]
        ]
