from __future__ import annotations

from typing import Any, Dict, Hashable, Optional, Sequence, Tuple

import numpy as np

from shadergraph.editor.undo_stack import UndoCommand
from shadergraph.nodegraph.graph import ShaderGraph
from shadergraph.nodegraph.node import GraphError, ShaderNode
from shadergraph.nodegraph.nodes import create_node
from shadergraph.nodegraph.program import ShaderProgramDescriptor
from shadergraph.nodegraph.serialization import (
    BlobReader,
    BlobWriter,
    restore_node_snapshot,
    save_node_snapshot,
)
from shadergraph.nodegraph.types import KIND_INFO, NodeKind, ShaderStage


def _clone_position(position: Sequence[float]) -> np.ndarray:
    """
    Независимая копия позиции узла.

    Массив копируется, чтобы последующие изменения позиции
    не портили снимок для undo/redo.
    """
    return np.array(position, dtype=np.float32).reshape(2)


def _link_of(node: ShaderNode, pin: int, is_input: bool) -> Optional[Tuple[int, int]]:
    """
    (id соседа, индекс его ответного пина) для занятого пина, иначе None.
    """
    neighbor = node.linked_node(pin, is_input)
    if neighbor is None:
        return None
    return neighbor.id, neighbor.pin_linked_to(node.id, not is_input)


class MoveNodeCommand(UndoCommand):
    """
    Перемещение узла по холсту.

    Старая позиция снимается в момент создания команды.
    Серия перемещений одного узла склеивается в одну запись истории.
    """

    def __init__(
        self,
        graph: ShaderGraph,
        node_id: int,
        new_position: Sequence[float],
        text: str = "Move node",
    ) -> None:
        super().__init__(text)
        self._graph = graph
        self._node_id = node_id
        self._old_position = _clone_position(graph.require(node_id).position)
        self._new_position = _clone_position(new_position)

    @property
    def node_id(self) -> int:
        return self._node_id

    def do(self) -> None:
        self._graph.require(self._node_id).position = self._new_position

    def undo(self) -> None:
        self._graph.require(self._node_id).position = self._old_position

    def merge_with(self, other: UndoCommand) -> bool:
        """
        Склеивает перетаскивание одного и того же узла.

        Старая позиция остаётся позицией до первого перемещения,
        новая - после последнего.
        """
        if not isinstance(other, MoveNodeCommand):
            return False
        if other._graph is not self._graph or other._node_id != self._node_id:
            return False

        self._new_position = _clone_position(other._new_position)
        return True


class ConnectCommand(UndoCommand):
    """
    Соединение выхода from_pin узла from_id со входом to_pin узла to_id.

    При создании команды запоминается, что занимало оба конца:
    connect() вытесняет эти связи, undo() их восстанавливает.
    """

    def __init__(
        self,
        graph: ShaderGraph,
        from_id: int,
        from_pin: int,
        to_id: int,
        to_pin: int,
        text: str = "Connect",
    ) -> None:
        super().__init__(text)
        self._graph = graph
        self._from_id = from_id
        self._from_pin = from_pin
        self._to_id = to_id
        self._to_pin = to_pin

        from_node = graph.require(from_id)
        to_node = graph.require(to_id)
        # Кто был подключён к выходу from_pin (вход соседа)
        self._before_to = _link_of(from_node, from_pin, is_input=False)
        # Кто был подключён ко входу to_pin (выход соседа)
        self._before_from = _link_of(to_node, to_pin, is_input=True)

    def do(self) -> None:
        self._graph.connect(
            self._graph.require(self._from_id),
            self._from_pin,
            self._graph.require(self._to_id),
            self._to_pin,
        )

    def undo(self) -> None:
        from_node = self._graph.require(self._from_id)
        to_node = self._graph.require(self._to_id)
        self._graph.disconnect(to_node, self._to_pin, is_input=True)

        if self._before_to is not None:
            neighbor_id, neighbor_pin = self._before_to
            self._graph.connect(from_node, self._from_pin, self._graph.require(neighbor_id), neighbor_pin)

        if self._before_from is not None:
            neighbor_id, neighbor_pin = self._before_from
            self._graph.connect(self._graph.require(neighbor_id), neighbor_pin, to_node, self._to_pin)


class CreateNodeCommand(UndoCommand):
    """
    Создание узла заданного вида в стадии stage.

    Id выдаётся при первом do() (или берётся из node_id) и затем
    сохраняется, чтобы redo вернул узел с тем же id: на него могут
    ссылаться следующие команды истории.
    """

    def __init__(
        self,
        graph: ShaderGraph,
        kind: NodeKind,
        stage: ShaderStage,
        position: Sequence[float],
        node_id: int | None = None,
        text: str = "",
    ) -> None:
        super().__init__(text or f"Create {KIND_INFO[NodeKind(kind)].title}")
        self._graph = graph
        self._kind = NodeKind(kind)
        self._stage = ShaderStage(stage)
        self._position = _clone_position(position)
        self._node_id = node_id
        # Снимок узла на момент undo: redo возвращает и правки его параметров.
        self._snapshot: bytes | None = None

    @property
    def node_id(self) -> int | None:
        return self._node_id

    def do(self) -> None:
        if self._snapshot is not None:
            node = restore_node_snapshot(self._graph, self._snapshot)
        else:
            node = self._graph.create_node(self._kind, self._stage, self._position, node_id=self._node_id)
        self._node_id = node.id

    def undo(self) -> None:
        node = self._graph.require(self._node_id)
        self._snapshot = save_node_snapshot(node)
        self._graph.remove_node(node)


class RemoveNodeCommand(UndoCommand):
    """
    Удаление узла.

    do() сохраняет узел целиком (параметры, позицию и все связи с
    индексами ответных пинов) в собственный буфер и удаляет его;
    undo() восстанавливает узел с тем же id и все связи по id соседей.
    """

    def __init__(self, graph: ShaderGraph, node_id: int, text: str = "") -> None:
        node = graph.require(node_id)
        super().__init__(text or f"Remove {node.title}")
        self._graph = graph
        self._node_id = node_id
        self._stage = node.stage
        self._snapshot: bytes | None = None

    @property
    def node_id(self) -> int:
        return self._node_id

    @property
    def stage(self) -> ShaderStage:
        return self._stage

    def do(self) -> None:
        node = self._graph.require(self._node_id)
        self._snapshot = save_node_snapshot(node)
        self._graph.remove_node(node)

    def undo(self) -> None:
        restore_node_snapshot(self._graph, self._snapshot)


def _payload_blob(node: ShaderNode) -> bytes:
    writer = BlobWriter()
    node.save_payload(writer)
    return writer.getvalue()


def _load_payload_blob(node: ShaderNode, data: bytes) -> None:
    node.load_payload(BlobReader(data))


class SetNodePayloadCommand(UndoCommand):
    """
    Изменение параметров узла (значение константы, имя униформы, слот текстуры...).

    values - словарь {имя параметра: новое значение}, имена как в node.payload().
    Старые и новые параметры хранятся в том же виде, в каком узел
    их сохраняет в файл, поэтому неверное значение отвергается
    ещё при создании команды. Подряд идущие правки одного узла
    склеиваются в одну запись истории.
    """

    def __init__(
        self,
        graph: ShaderGraph,
        node_id: int,
        values: Dict[str, Any],
        text: str = "",
    ) -> None:
        node = graph.require(node_id)
        super().__init__(text or f"Edit {node.title}")
        self._graph = graph
        self._node_id = node_id
        self._old_payload = _payload_blob(node)

        # Правим копию, а не сам узел: до do() граф не меняется.
        draft = create_node(node.kind)
        _load_payload_blob(draft, self._old_payload)
        known = draft.payload()
        for name, value in values.items():
            if name not in known:
                raise GraphError(f"{node.title} node has no parameter '{name}'")
            setattr(draft, name, value)
        self._new_payload = _payload_blob(draft)
        # Значения вне допустимых диапазонов падают здесь с ValueError.
        _load_payload_blob(create_node(node.kind), self._new_payload)

    @property
    def node_id(self) -> int:
        return self._node_id

    @property
    def changes_payload(self) -> bool:
        return self._new_payload != self._old_payload

    def do(self) -> None:
        _load_payload_blob(self._graph.require(self._node_id), self._new_payload)

    def undo(self) -> None:
        _load_payload_blob(self._graph.require(self._node_id), self._old_payload)

    def merge_with(self, other: UndoCommand) -> bool:
        if not isinstance(other, SetNodePayloadCommand):
            return False
        if other._graph is not self._graph or other._node_id != self._node_id:
            return False

        self._new_payload = other._new_payload
        return True


class EditDescriptorCommand(UndoCommand):
    """
    Изменение описания программы: имена слотов текстур и выходов
    вершинного шейдера, набор активных вершинных атрибутов.

    Хранит описание целиком до и после правки. key определяет, какие
    правки склеиваются: подряд идущее переименование одного и того же
    слота (набор имени по буквам) - одна запись истории.
    """

    def __init__(
        self,
        descriptor: ShaderProgramDescriptor,
        new_state: ShaderProgramDescriptor,
        key: Hashable = None,
        text: str = "Edit program",
    ) -> None:
        super().__init__(text)
        self._descriptor = descriptor
        self._old_state = descriptor.copy()
        self._new_state = new_state.copy()
        self._key = key

    def do(self) -> None:
        self._descriptor.assign(self._new_state)

    def undo(self) -> None:
        self._descriptor.assign(self._old_state)

    def merge_with(self, other: UndoCommand) -> bool:
        if not isinstance(other, EditDescriptorCommand):
            return False
        if other._descriptor is not self._descriptor or self._key is None or other._key != self._key:
            return False

        self._new_state = other._new_state.copy()
        return True
