"""
shadergraph - visual node-graph shader editor core.

Основные модули:
- nodegraph - узлы, граф двух стадий, генерация кода, сериализация
- editor - undo/redo команды, контроллер сессии редактора, настройки
"""

__version__ = '0.1.0'
