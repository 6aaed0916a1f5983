"""Binary persistence of the shader graph.

File layout (little-endian)::

    magic "SGED", uint32 version
    texture slot names[16]          uint32 length + UTF-8
    vertex output names[10]         same
    vertex input flags[9]           one byte each
    int32 vertex node count
    vertex node bodies              id, kind, x, y, payload
    vertex connection tables        per input/output pin: neighbor id, neighbor pin
    fragment count, bodies, connection tables

Bodies come before connection tables so links can name any node of the
stage; they are resolved by id once every body is loaded.

The same body + connection-table encoding, prefixed by the stage, is the
snapshot a remove command keeps to restore a single node.
"""

from __future__ import annotations

import os
import struct
import tempfile
from pathlib import Path
from typing import List, Sequence, Tuple

import numpy as np

from shadergraph import log
from shadergraph.nodegraph.graph import ShaderGraph
from shadergraph.nodegraph.node import GraphError, ShaderNode
from shadergraph.nodegraph.nodes import create_node
from shadergraph.nodegraph.program import (
    MAX_TEXTURES_COUNT,
    MAX_VERTEX_OUTPUTS_COUNT,
    ShaderProgramDescriptor,
)
from shadergraph.nodegraph.types import NodeKind, ShaderStage, VertexInput

MAGIC = b"SGED"
FORMAT_VERSION = 1
NO_LINK = -1


class GraphFormatError(GraphError):
    """Persisted graph data is truncated or malformed."""
    pass


# ============== Blobs ==============

class BlobWriter:
    """Append-only little-endian byte buffer."""

    def __init__(self) -> None:
        self._data = bytearray()

    def getvalue(self) -> bytes:
        return bytes(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def write_bytes(self, data: bytes) -> None:
        self._data += data

    def write_int32(self, value: int) -> None:
        self._data += struct.pack("<i", int(value))

    def write_uint32(self, value: int) -> None:
        self._data += struct.pack("<I", int(value))

    def write_float32(self, value: float) -> None:
        self._data += struct.pack("<f", float(value))

    def write_floats(self, values: Sequence[float]) -> None:
        self._data += np.asarray(values, dtype="<f4").tobytes()

    def write_bool(self, value: bool) -> None:
        self._data += struct.pack("<?", bool(value))

    def write_string(self, value: str) -> None:
        encoded = value.encode("utf-8")
        self.write_uint32(len(encoded))
        self._data += encoded


class BlobReader:
    """Sequential reader over a byte buffer; short reads raise GraphFormatError."""

    def __init__(self, data: bytes) -> None:
        self._data = memoryview(data)
        self._offset = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def read_bytes(self, size: int) -> bytes:
        if size < 0 or self._offset + size > len(self._data):
            raise GraphFormatError(
                f"Unexpected end of data: need {size} bytes at offset {self._offset}, "
                f"have {self.remaining}"
            )
        chunk = self._data[self._offset:self._offset + size].tobytes()
        self._offset += size
        return chunk

    def _unpack(self, fmt: str):
        return struct.unpack(fmt, self.read_bytes(struct.calcsize(fmt)))[0]

    def read_int32(self) -> int:
        return self._unpack("<i")

    def read_uint32(self) -> int:
        return self._unpack("<I")

    def read_float32(self) -> float:
        return self._unpack("<f")

    def read_floats(self, count: int) -> np.ndarray:
        return np.frombuffer(self.read_bytes(4 * count), dtype="<f4").astype(np.float32)

    def read_bool(self) -> bool:
        return self._unpack("<?")

    def read_string(self) -> str:
        size = self.read_uint32()
        try:
            return self.read_bytes(size).decode("utf-8")
        except UnicodeDecodeError as e:
            raise GraphFormatError(f"Invalid string data: {e}") from e


# ============== Nodes ==============

def write_node(writer: BlobWriter, node: ShaderNode) -> None:
    """Identity, kind, position and payload. Links are written separately."""
    writer.write_int32(node.id)
    writer.write_int32(int(node.kind))
    writer.write_floats(node.position)
    node.save_payload(writer)


def write_node_connections(writer: BlobWriter, node: ShaderNode) -> None:
    """Per pin: neighbor id and the neighbor's pin pointing back, or -1, -1."""
    for is_input, slots in ((True, node.inputs), (False, node.outputs)):
        writer.write_int32(len(slots))
        for neighbor_id in slots:
            neighbor = node.graph.find_by_id(neighbor_id) if neighbor_id is not None and node.graph else None
            if neighbor is None:
                writer.write_int32(NO_LINK)
                writer.write_int32(NO_LINK)
            else:
                writer.write_int32(neighbor.id)
                writer.write_int32(neighbor.pin_linked_to(node.id, not is_input))


def read_node(reader: BlobReader, graph: ShaderGraph, stage: ShaderStage) -> ShaderNode:
    node_id = reader.read_int32()
    kind_value = reader.read_int32()
    position = reader.read_floats(2)
    try:
        node = create_node(NodeKind(kind_value))
    except ValueError:
        raise GraphFormatError(f"Unknown node kind {kind_value} for node {node_id}") from None
    try:
        node.load_payload(reader)
    except ValueError as e:
        raise GraphFormatError(f"Invalid payload for node {node_id}: {e}") from e
    try:
        graph.add_node(node, stage, position, node_id=node_id)
    except GraphFormatError:
        raise
    except GraphError as e:
        raise GraphFormatError(str(e)) from e
    return node


def _link_failed(message: str, strict: bool) -> None:
    if strict:
        raise GraphFormatError(message)
    log.warn(f"[serialization] {message}; link dropped")


def read_node_connections(
    reader: BlobReader,
    graph: ShaderGraph,
    node: ShaderNode,
    strict: bool = False,
) -> None:
    """
    Restore the links recorded for node.

    A neighbor id that cannot be found leaves the slot empty (with a
    warning) unless strict is set.
    """
    for is_input, count in ((True, node.input_count), (False, node.output_count)):
        stored = reader.read_int32()
        if stored != count:
            raise GraphFormatError(
                f"{node.title} node {node.id} has {count} "
                f"{'inputs' if is_input else 'outputs'}, data has {stored}"
            )
        records: List[Tuple[int, int]] = [(reader.read_int32(), reader.read_int32()) for _ in range(count)]
        for pin, (neighbor_id, neighbor_pin) in enumerate(records):
            if neighbor_id < 0:
                continue
            neighbor = graph.find_by_id(neighbor_id)
            if neighbor is None:
                _link_failed(f"Node {node.id} pin {pin} links to missing node {neighbor_id}", strict)
                continue
            try:
                if is_input:
                    graph.connect(neighbor, neighbor_pin, node, pin)
                else:
                    graph.connect(node, pin, neighbor, neighbor_pin)
            except GraphError as e:
                _link_failed(f"Node {node.id} pin {pin}: {e}", strict)


def save_node_snapshot(node: ShaderNode) -> bytes:
    """Stage, body and links of one node, enough to recreate it after removal."""
    writer = BlobWriter()
    writer.write_int32(int(node.stage))
    write_node(writer, node)
    write_node_connections(writer, node)
    return writer.getvalue()


def restore_node_snapshot(graph: ShaderGraph, data: bytes, strict: bool = False) -> ShaderNode:
    """Recreate a node from save_node_snapshot data, with its id and links."""
    reader = BlobReader(data)
    try:
        stage = ShaderStage(reader.read_int32())
    except ValueError as e:
        raise GraphFormatError(f"Invalid stage in node snapshot: {e}") from e
    node = read_node(reader, graph, stage)
    read_node_connections(reader, graph, node, strict)
    return node


# ============== Whole graph ==============

def _write_stage(writer: BlobWriter, graph: ShaderGraph, stage: ShaderStage) -> None:
    nodes = graph.stage_graph(stage).nodes()
    writer.write_int32(len(nodes))
    for node in nodes:
        write_node(writer, node)
    for node in nodes:
        write_node_connections(writer, node)


def _read_stage(reader: BlobReader, graph: ShaderGraph, stage: ShaderStage, strict: bool) -> None:
    count = reader.read_int32()
    if count < 0:
        raise GraphFormatError(f"Negative node count {count}")
    nodes = [read_node(reader, graph, stage) for _ in range(count)]
    for node in nodes:
        read_node_connections(reader, graph, node, strict)


def save_graph(graph: ShaderGraph, descriptor: ShaderProgramDescriptor) -> bytes:
    """Encode descriptor and both stages."""
    writer = BlobWriter()
    writer.write_bytes(MAGIC)
    writer.write_uint32(FORMAT_VERSION)

    for name in descriptor.textures:
        writer.write_string(name)
    for name in descriptor.vertex_outputs:
        writer.write_string(name)
    for active in descriptor.vertex_inputs:
        writer.write_bool(active)

    _write_stage(writer, graph, ShaderStage.VERTEX)
    _write_stage(writer, graph, ShaderStage.FRAGMENT)
    return writer.getvalue()


def load_graph(data: bytes, strict: bool = False) -> Tuple[ShaderGraph, ShaderProgramDescriptor]:
    """
    Decode data produced by save_graph into a new graph and descriptor.

    Raises GraphFormatError on malformed data; nothing existing is touched.
    """
    reader = BlobReader(data)
    magic = reader.read_bytes(len(MAGIC))
    if magic != MAGIC:
        raise GraphFormatError(f"Not a shader graph file (magic {magic!r})")
    version = reader.read_uint32()
    if version != FORMAT_VERSION:
        raise GraphFormatError(f"Unsupported shader graph format version {version}")

    descriptor = ShaderProgramDescriptor()
    try:
        for slot in range(MAX_TEXTURES_COUNT):
            descriptor.set_texture_name(slot, reader.read_string())
        for slot in range(MAX_VERTEX_OUTPUTS_COUNT):
            descriptor.set_vertex_output_name(slot, reader.read_string())
    except ValueError as e:
        raise GraphFormatError(str(e)) from e
    for vertex_input in VertexInput:
        descriptor.set_vertex_input_active(vertex_input, reader.read_bool())

    graph = ShaderGraph(seed_defaults=False)
    _read_stage(reader, graph, ShaderStage.VERTEX, strict)
    _read_stage(reader, graph, ShaderStage.FRAGMENT, strict)

    if reader.remaining:
        message = f"{reader.remaining} trailing bytes after graph data"
        if strict:
            raise GraphFormatError(message)
        log.warn(f"[serialization] {message}")
    return graph, descriptor


# ============== Files ==============

def write_atomic(path: str | Path, data: bytes) -> None:
    """Write through a temporary file in the target directory, then replace."""
    dir_path = os.path.dirname(os.fspath(path)) or "."
    f = tempfile.NamedTemporaryFile(mode="wb", suffix=".tmp", dir=dir_path, delete=False)
    temp_path = f.name
    try:
        with f:
            f.write(data)
        os.replace(temp_path, path)
    except BaseException:
        # Temporary file never outlives a failed write.
        os.unlink(temp_path)
        raise


def save_graph_file(path: str | Path, graph: ShaderGraph, descriptor: ShaderProgramDescriptor) -> None:
    write_atomic(path, save_graph(graph, descriptor))


def load_graph_file(path: str | Path, strict: bool = False) -> Tuple[ShaderGraph, ShaderProgramDescriptor]:
    with open(path, "rb") as f:
        data = f.read()
    return load_graph(data, strict)
