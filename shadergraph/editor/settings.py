"""
Настройки редактора шейдеров.

Централизованное хранение и загрузка настроек между сессиями.
Использует QSettings для кроссплатформенного хранения.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from PyQt6.QtCore import QSettings


class EditorSettings:
    """
    Менеджер настроек редактора шейдеров.

    По умолчанию настройки хранятся в нативном хранилище платформы:
    - Windows: реестр HKEY_CURRENT_USER\\Software\\ShaderGraph\\ShaderEditor
    - Linux: ~/.config/ShaderGraph/ShaderEditor.conf
    - macOS: ~/Library/Preferences/com.shadergraph.ShaderEditor.plist

    Если передан path - используется INI-файл по этому пути.
    """

    _instance: "EditorSettings | None" = None

    # Ключи настроек
    KEY_LAST_GRAPH_PATH = "ShaderEditor/lastGraphPath"
    KEY_UNDO_DEPTH = "ShaderEditor/undoDepth"
    KEY_STRICT_LOAD = "ShaderEditor/strictLoad"

    def __init__(self, path: str | Path | None = None):
        if path is None:
            self._settings = QSettings("ShaderGraph", "ShaderEditor")
        else:
            self._settings = QSettings(str(path), QSettings.Format.IniFormat)

    @classmethod
    def instance(cls) -> "EditorSettings":
        """Получить singleton экземпляр."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def get(self, key: str, default: Any = None) -> Any:
        """Получить значение настройки."""
        return self._settings.value(key, default)

    def set(self, key: str, value: Any) -> None:
        """Установить значение настройки."""
        self._settings.setValue(key, value)

    def sync(self) -> None:
        """Принудительно сохранить настройки на диск."""
        self._settings.sync()

    # --- Удобные методы для частых настроек ---

    def get_last_graph_path(self) -> Path | None:
        """Путь последнего сохранённого/загруженного графа, если файл ещё существует."""
        path_str = self.get(self.KEY_LAST_GRAPH_PATH)
        if path_str:
            path = Path(path_str)
            if path.exists():
                return path
        return None

    def set_last_graph_path(self, path: Path | str) -> None:
        self.set(self.KEY_LAST_GRAPH_PATH, str(path))

    def get_undo_depth(self) -> int:
        """Глубина истории undo (0 - без ограничения)."""
        try:
            depth = int(self.get(self.KEY_UNDO_DEPTH, 0))
        except (TypeError, ValueError):
            return 0
        return max(depth, 0)

    def set_undo_depth(self, depth: int) -> None:
        if depth < 0:
            raise ValueError("Undo depth must be non-negative")
        self.set(self.KEY_UNDO_DEPTH, int(depth))

    def get_strict_load(self) -> bool:
        """
        Строгая загрузка: ссылка на отсутствующий узел - ошибка файла,
        а не пропущенная связь.
        """
        value = self.get(self.KEY_STRICT_LOAD, False)
        # INI-хранилище возвращает строки
        if isinstance(value, str):
            return value.lower() in ("true", "1", "yes")
        return bool(value)

    def set_strict_load(self, strict: bool) -> None:
        self.set(self.KEY_STRICT_LOAD, bool(strict))
