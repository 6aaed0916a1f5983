from __future__ import annotations

from typing import List, Tuple


class UndoCommand:
    """
    Базовый класс команды для undo/redo.

    Предполагается, что:
    - do() приводит состояние в "новое" значение;
    - undo() возвращает состояние к "старому" значению;
    - merge_with() пытается слить другую команду в себя и вернуть True,
      если слияние удалось.
    """

    def __init__(self, text: str = "") -> None:
        self.text = text

    def do(self) -> None:
        raise NotImplementedError

    def undo(self) -> None:
        raise NotImplementedError

    def merge_with(self, other: "UndoCommand") -> bool:
        """
        Пытается поглотить соседнюю команду `other`,
        которая идёт сразу после текущей по времени.

        По умолчанию команды не сливаются.
        """
        return False


class UndoStack:
    """
    Линейная история undo/redo без привязки к GUI.

    Хранит одну последовательность команд и курсор `index`:
    индекс последней применённой команды (-1 - до первой).
    Команды правее курсора - отменённые, их можно вернуть через redo.

    max_depth > 0 ограничивает глубину истории:
    - при переполнении отбрасывается самая старая выполненная команда;
    - состояние при этом остаётся таким, какое сейчас есть,
      но вернуться "ещё дальше назад" уже нельзя.
    max_depth == 0 - история без ограничения.
    """

    def __init__(self, max_depth: int = 0) -> None:
        if max_depth < 0:
            raise ValueError("max_depth must be non-negative")
        self._commands: List[UndoCommand] = []
        self._index = -1
        self._max_depth = max_depth

    @property
    def can_undo(self) -> bool:
        return self._index >= 0

    @property
    def can_redo(self) -> bool:
        return self._index + 1 < len(self._commands)

    @property
    def index(self) -> int:
        """Курсор истории: индекс последней применённой команды."""
        return self._index

    @property
    def max_depth(self) -> int:
        return self._max_depth

    def clear(self) -> None:
        """
        Полностью очищает историю undo/redo.
        Состояние объекта, над которым выполнялись команды,
        не трогается - ответственность вызывающего.
        """
        self._commands.clear()
        self._index = -1

    def push(self, cmd: UndoCommand, merge: bool = True) -> None:
        """
        Добавляет новую команду в историю и выполняет её.

        Ветка redo (всё, что правее курсора) отбрасывается только
        после успешного выполнения: если do() бросает исключение,
        история остаётся прежней.

        merge == True:
            пытаемся слить команду с командой под курсором:
            - если self._commands[index].merge_with(cmd) вернула True,
              то старая команда повторно выполняется через do() уже
              с обновлённым внутренним состоянием, а cmd в историю
              не попадает;
            - иначе команда добавляется как обычно.

        merge == False:
            команда всегда добавляется отдельной записью.
        """
        if merge and self._index >= 0:
            last = self._commands[self._index]
            if last.merge_with(cmd):
                # Команда "поглощена": применяем обновлённую старую.
                last.do()
                del self._commands[self._index + 1:]
                return

        # Исключение из do() не оставляет команду в истории.
        cmd.do()
        del self._commands[self._index + 1:]
        self._commands.append(cmd)
        self._index = len(self._commands) - 1

        # Ограничение глубины истории
        if self._max_depth > 0 and len(self._commands) > self._max_depth:
            # Отбрасываем самую старую команду.
            # Её уже нельзя будет отменить, но состояние остаётся текущим.
            self._commands.pop(0)
            self._index -= 1

    def undo(self) -> None:
        """
        Откатывает команду под курсором, если такая есть.
        """
        if self._index < 0:
            return
        self._commands[self._index].undo()
        self._index -= 1

    def redo(self) -> None:
        """
        Повторно выполняет первую отменённую команду, если такая есть.
        """
        if self._index + 1 >= len(self._commands):
            return
        self._commands[self._index + 1].do()
        self._index += 1

    def entries(self) -> List[Tuple[str, bool]]:
        """
        Описание истории для просмотра: (text, применена ли команда).
        """
        return [(cmd.text, i <= self._index) for i, cmd in enumerate(self._commands)]

    def __len__(self) -> int:
        """
        Количество команд в истории (включая отменённые).
        """
        return len(self._commands)
