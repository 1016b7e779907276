"""Преобразование позиционных параметров функции в один деструктурированный объект."""

__version__ = "0.4.0"
