"""Graph compiler - turns the shader graph into shader source text.

Responsibilities:
- Emit the stage header from the program descriptor
- Collect file-scope declarations from every node of the stage
- Walk backward from the stage's terminal nodes, emitting each reachable
  node's statements once, inputs before consumers
- Emit the program descriptor table
- Write the three generated files next to a base path
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Set, Tuple

from shadergraph import log
from shadergraph.nodegraph.serialization import write_atomic
from shadergraph.nodegraph.types import ShaderStage

if TYPE_CHECKING:
    from shadergraph.nodegraph.graph import ShaderGraph
    from shadergraph.nodegraph.node import ShaderNode
    from shadergraph.nodegraph.program import ShaderProgramDescriptor


COMMON_INCLUDE = '#include "common.sh"\n'


class GenerationContext:
    """
    State of one generation pass over one stage.

    Nodes write through it: ``declare`` for file-scope lines,
    ``statement`` for main() body lines, and ``reference`` to get the
    token of a connected input (generating that input first).
    Each node is generated at most once per pass.
    """

    def __init__(self, graph: "ShaderGraph", descriptor: "ShaderProgramDescriptor") -> None:
        self.graph = graph
        self.descriptor = descriptor
        self._declarations: List[str] = []
        self._body: List[str] = []
        self._generated: Set[int] = set()

    def declare(self, line: str) -> None:
        """File-scope line; repeated identical declarations are emitted once."""
        line += "\n"
        if line not in self._declarations:
            self._declarations.append(line)

    def statement(self, text: str) -> None:
        self._body.append(f"\t{text};\n")

    def generate(self, node: "ShaderNode") -> None:
        """Emit node's statements unless this pass already did."""
        if node.id in self._generated:
            return
        self._generated.add(node.id)
        node.generate(self)

    def reference(self, node: "ShaderNode", pin: int) -> Optional[str]:
        """Token of the value on node's input pin, None when unconnected."""
        source = node.input_node(pin)
        if source is None:
            return None
        self.generate(source)
        return source.print_reference(self)

    @property
    def generated_ids(self) -> Set[int]:
        return set(self._generated)

    @property
    def declarations(self) -> str:
        return "".join(self._declarations)

    @property
    def body(self) -> str:
        return "".join(self._body)


def _join_names(names: List[str]) -> str:
    return ", ".join(names)


def vertex_header(descriptor: "ShaderProgramDescriptor") -> str:
    return (
        f"$input {_join_names(descriptor.active_vertex_inputs())}\n"
        f"$output {_join_names(descriptor.active_vertex_outputs())}\n"
    )


def fragment_header(descriptor: "ShaderProgramDescriptor") -> str:
    return f"$input {_join_names(descriptor.active_vertex_outputs())}\n"


def generate_stage_source(
    graph: "ShaderGraph",
    descriptor: "ShaderProgramDescriptor",
    stage: ShaderStage,
) -> str:
    """Complete shader source of one stage."""
    stage = ShaderStage(stage)
    stage_graph = graph.stage_graph(stage)
    ctx = GenerationContext(graph, descriptor)

    for node in stage_graph:
        node.generate_before_main(ctx)

    for node in stage_graph.terminals():
        ctx.generate(node)

    parts = [vertex_header(descriptor) if stage == ShaderStage.VERTEX else fragment_header(descriptor)]
    parts.append(COMMON_INCLUDE)
    for slot, name in descriptor.active_textures():
        parts.append(f"SAMPLER2D({name}, {slot});\n")
    parts.append(ctx.declarations)
    parts.append("void main() {\n")
    parts.append(ctx.body)
    parts.append("}\n")
    return "".join(parts)


def generate_program_descriptor(descriptor: "ShaderProgramDescriptor") -> str:
    """Pass/combination/texture-slot table consumed by the shader compiler."""
    slots = ", ".join(
        f'{{ name = "{name}", uniform = "{name}" }}'
        for _, name in descriptor.active_textures()
    )
    return (
        'passes = {"MAIN"}\n'
        'vs_combinations = {""}\n'
        'fs_combinations = {""}\n'
        "texture_slots = {\n"
        f"{slots}"
        "}\n"
    )


def output_paths(base_path: str | Path) -> Tuple[Path, Path, Path]:
    """Vertex source, fragment source and descriptor paths for a base path.

    ``dir/name.ext`` -> ``dir/name_vs.sc``, ``dir/name_fs.sc``, ``dir/name.shd``
    """
    base = Path(base_path)
    return (
        base.parent / f"{base.stem}_vs.sc",
        base.parent / f"{base.stem}_fs.sc",
        base.parent / f"{base.stem}.shd",
    )


def generate_all(
    graph: "ShaderGraph",
    descriptor: "ShaderProgramDescriptor",
    base_path: str | Path,
) -> Tuple[Path, Path, Path]:
    """
    Write both stage sources and the program descriptor.

    Texts are generated before anything is written. OSError propagates.
    """
    vs_path, fs_path, shd_path = output_paths(base_path)
    outputs = [
        (vs_path, generate_stage_source(graph, descriptor, ShaderStage.VERTEX)),
        (fs_path, generate_stage_source(graph, descriptor, ShaderStage.FRAGMENT)),
        (shd_path, generate_program_descriptor(descriptor)),
    ]
    for path, text in outputs:
        write_atomic(path, text.encode("utf-8"))
        log.debug(f"[compiler] wrote {path}")
    return vs_path, fs_path, shd_path
