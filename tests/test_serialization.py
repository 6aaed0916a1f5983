"""
Тесты бинарного формата графа и снимков отдельных узлов.
"""

import struct

import numpy as np
import pytest

from shadergraph.nodegraph.graph import ShaderGraph
from shadergraph.nodegraph.program import ShaderProgramDescriptor
from shadergraph.nodegraph.serialization import (
    FORMAT_VERSION,
    MAGIC,
    BlobReader,
    BlobWriter,
    GraphFormatError,
    load_graph,
    load_graph_file,
    restore_node_snapshot,
    save_graph,
    save_graph_file,
    save_node_snapshot,
    write_atomic,
)
from shadergraph.nodegraph.types import BuiltinUniform, NodeKind, ShaderStage, ValueType, VertexInput


def build_material():
    """Текстурированный материал с униформой оттенка."""
    graph = ShaderGraph()
    descriptor = ShaderProgramDescriptor()
    descriptor.set_texture_name(0, "s_albedo")
    descriptor.set_vertex_output_name(0, "v_texcoord0")
    descriptor.set_vertex_input_active(VertexInput.POSITION, True)
    descriptor.set_vertex_input_active(VertexInput.TEXCOORD0, True)

    position = graph.create_node(NodeKind.VERTEX_INPUT, ShaderStage.VERTEX, (10.0, 20.0))
    texcoord = graph.create_node(NodeKind.VERTEX_INPUT, ShaderStage.VERTEX, (10.0, 80.0))
    texcoord.vertex_input = VertexInput.TEXCOORD0
    vout = graph.create_node(NodeKind.VERTEX_OUTPUT, ShaderStage.VERTEX, (200.0, 80.0))
    graph.connect(position, 0, graph.require(2), 0)
    graph.connect(texcoord, 0, vout, 0)

    fin = graph.create_node(NodeKind.FRAGMENT_INPUT, ShaderStage.FRAGMENT, (0.0, 0.0))
    sample = graph.create_node(NodeKind.SAMPLE, ShaderStage.FRAGMENT, (120.0, 0.0))
    uniform = graph.create_node(NodeKind.UNIFORM, ShaderStage.FRAGMENT, (120.0, 90.5))
    uniform.name = "u_tint"
    mul = graph.create_node(NodeKind.MULTIPLY, ShaderStage.FRAGMENT, (240.0, 40.0))
    graph.connect(fin, 0, sample, 0)
    graph.connect(sample, 0, mul, 0)
    graph.connect(uniform, 0, mul, 1)
    graph.connect(mul, 0, graph.require(1), 0)
    return graph, descriptor, uniform


def graph_state(graph):
    return (
        sorted(
            (node.id, node.kind, node.stage, tuple(node.position.tolist()), repr(node.payload()))
            for node in graph.nodes()
        ),
        graph.links(),
    )


def test_blob_primitives():
    writer = BlobWriter()
    writer.write_int32(-7)
    writer.write_uint32(7)
    writer.write_float32(0.5)
    writer.write_floats([1.0, 2.0])
    writer.write_bool(True)
    writer.write_string("шейдер")

    reader = BlobReader(writer.getvalue())
    assert reader.read_int32() == -7
    assert reader.read_uint32() == 7
    assert reader.read_float32() == 0.5
    np.testing.assert_array_equal(reader.read_floats(2), [1.0, 2.0])
    assert reader.read_bool() is True
    assert reader.read_string() == "шейдер"
    assert reader.remaining == 0

    with pytest.raises(GraphFormatError):
        reader.read_int32()


def test_round_trip_preserves_graph_and_descriptor():
    graph = ShaderGraph()
    descriptor = ShaderProgramDescriptor()
    descriptor.set_texture_name(0, "s_albedo")
    descriptor.set_texture_name(5, "s_mask")
    descriptor.set_vertex_output_name(0, "v_texcoord0")
    descriptor.set_vertex_input_active(VertexInput.POSITION, True)

    # Вершинная стадия: position output + 2 узла, 2 связи
    view_proj = graph.create_node(NodeKind.BUILTIN_UNIFORM, ShaderStage.VERTEX, (0.0, 0.0))
    view_proj.uniform = BuiltinUniform.VIEWPROJECTION_MTX
    mul = graph.create_node(NodeKind.MULTIPLY, ShaderStage.VERTEX, (100.0, 0.0))
    graph.connect(view_proj, 0, mul, 0)
    graph.connect(mul, 0, graph.require(2), 0)

    # Фрагментная стадия: output + 3 узла, 3 связи
    const = graph.create_node(NodeKind.FLOAT_CONST, ShaderStage.FRAGMENT, (0.0, 10.0))
    const.value = 0.75
    color = graph.create_node(NodeKind.COLOR_CONST, ShaderStage.FRAGMENT, (0.0, 60.0))
    color.color = [0.25, 0.5, 1.0, 1.0]
    fmul = graph.create_node(NodeKind.MULTIPLY, ShaderStage.FRAGMENT, (80.0, 30.5))
    graph.connect(const, 0, fmul, 0)
    graph.connect(color, 0, fmul, 1)
    graph.connect(fmul, 0, graph.require(1), 0)

    assert (len(graph.vertex), len(graph.fragment), len(graph.links())) == (3, 4, 5)

    data = save_graph(graph, descriptor)
    assert data[:4] == MAGIC
    assert struct.unpack("<I", data[4:8])[0] == FORMAT_VERSION

    loaded, loaded_descriptor = load_graph(data)

    assert graph_state(loaded) == graph_state(graph)
    assert loaded_descriptor == descriptor
    assert loaded.last_node_id == graph.last_node_id
    loaded.check_integrity()

    # Новые id не пересекаются с загруженными
    fresh = loaded.create_node(NodeKind.MIX, ShaderStage.FRAGMENT)
    assert fresh.id == graph.last_node_id + 1


def test_round_trip_preserves_payloads():
    graph, descriptor, uniform = build_material()
    loaded, _ = load_graph(save_graph(graph, descriptor))

    restored = loaded.require(uniform.id)
    assert restored.name == "u_tint"
    assert restored.value_type == ValueType.VEC4
    assert graph_state(loaded) == graph_state(graph)


def test_empty_graph_round_trip():
    graph = ShaderGraph(seed_defaults=False)
    loaded, descriptor = load_graph(save_graph(graph, ShaderProgramDescriptor()))
    assert len(loaded) == 0
    assert descriptor == ShaderProgramDescriptor()


def test_truncated_data_raises_format_error():
    graph, descriptor, _ = build_material()
    data = save_graph(graph, descriptor)

    for size in (0, 3, 8, len(data) // 2, len(data) - 1):
        with pytest.raises(GraphFormatError):
            load_graph(data[:size])


def test_bad_magic_and_version():
    graph, descriptor, _ = build_material()
    data = save_graph(graph, descriptor)

    with pytest.raises(GraphFormatError):
        load_graph(b"XXXX" + data[4:])
    with pytest.raises(GraphFormatError):
        load_graph(data[:4] + struct.pack("<I", FORMAT_VERSION + 1) + data[8:])


def test_trailing_bytes_are_tolerated_unless_strict():
    graph, descriptor, _ = build_material()
    data = save_graph(graph, descriptor) + b"\x00\x00"

    loaded, _ = load_graph(data)
    assert graph_state(loaded) == graph_state(graph)

    with pytest.raises(GraphFormatError):
        load_graph(data, strict=True)


def dangling_snapshot():
    """Снимок узла со ссылкой на узел, которого уже нет в графе."""
    graph = ShaderGraph()
    color = graph.create_node(NodeKind.COLOR_CONST, ShaderStage.FRAGMENT)
    graph.connect(color, 0, graph.require(1), 0)
    data = save_node_snapshot(color)
    graph.remove_node(color)
    graph.remove_node(graph.require(1))
    return graph, data, color.id


def test_missing_neighbor_is_dropped_when_lenient():
    graph, data, color_id = dangling_snapshot()

    node = restore_node_snapshot(graph, data)

    assert node.id == color_id
    assert node.outputs == [None]
    graph.check_integrity()


def test_missing_neighbor_fails_when_strict():
    graph, data, _ = dangling_snapshot()
    with pytest.raises(GraphFormatError):
        restore_node_snapshot(graph, data, strict=True)


def test_snapshot_restores_id_payload_and_links():
    graph = ShaderGraph()
    const = graph.create_node(NodeKind.FLOAT_CONST, ShaderStage.FRAGMENT, (5.0, 6.0))
    const.value = 3.5
    mul = graph.create_node(NodeKind.MULTIPLY, ShaderStage.FRAGMENT)
    graph.connect(const, 0, mul, 1)
    before = graph_state(graph)

    data = save_node_snapshot(const)
    graph.remove_node(const)
    assert mul.inputs == [None, None]

    restored = restore_node_snapshot(graph, data)
    assert restored is not const
    assert restored.value == 3.5
    assert graph_state(graph) == before


def test_invalid_kind_in_stage_is_a_format_error():
    graph = ShaderGraph(seed_defaults=False)
    graph.create_node(NodeKind.FRAGMENT_OUTPUT, ShaderStage.FRAGMENT)
    data = save_graph(graph, ShaderProgramDescriptor())

    # Заголовок: magic, версия, 26 пустых строк, 9 флагов
    header = 4 + 4 + 26 * 4 + 9
    assert struct.unpack_from("<ii", data, header) == (0, 1)

    # Тот же узел, но записанный в вершинную стадию
    moved = data[:header] + struct.pack("<i", 1) + data[header + 8:] + struct.pack("<i", 0)
    with pytest.raises(GraphFormatError):
        load_graph(moved)


def test_file_round_trip(tmp_path):
    graph, descriptor, _ = build_material()
    path = tmp_path / "material.sed"

    save_graph_file(path, graph, descriptor)
    loaded, loaded_descriptor = load_graph_file(path)

    assert graph_state(loaded) == graph_state(graph)
    assert loaded_descriptor == descriptor
    assert [p.name for p in tmp_path.iterdir()] == ["material.sed"]


def test_missing_file_raises_os_error(tmp_path):
    with pytest.raises(OSError):
        load_graph_file(tmp_path / "nope.sed")


def test_failed_atomic_write_leaves_no_temporary_file(tmp_path):
    target = tmp_path / "material.sed"
    target.write_bytes(b"previous")

    # Ошибка при записи данных
    with pytest.raises(TypeError):
        write_atomic(target, "not bytes")
    # Ошибка при замене: на месте файла каталог
    (tmp_path / "folder.sed").mkdir()
    with pytest.raises(OSError):
        write_atomic(tmp_path / "folder.sed", b"data")

    assert sorted(p.name for p in tmp_path.iterdir()) == ["folder.sed", "material.sed"]
    assert target.read_bytes() == b"previous"
