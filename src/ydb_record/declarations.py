"""
Разбор объявлений атрибутов модели

Значение в объявлении модели может быть:
- типом (str, int, datetime, ...) -> обычный атрибут
- строкой с именем модели ("User") -> отношение belongs-to
- списком из одного имени модели (["Post"]) -> отношение has-many
"""

from dataclasses import dataclass
from typing import Any, Union

from .exceptions import SchemaValidationError


@dataclass(frozen=True)
class Scalar:
    """Обычный атрибут заданного типа"""
    type: type


@dataclass(frozen=True)
class BelongsTo:
    """Ссылка на другую модель"""
    model: str


@dataclass(frozen=True)
class HasMany:
    """Коллекция записей другой модели"""
    model: str


AttributeDecl = Union[Scalar, BelongsTo, HasMany]


def parse_declaration(key: str, value: Any) -> AttributeDecl:
    """
    Определение вида объявления по форме значения

    Args:
        key: Имя атрибута (для сообщения об ошибке)
        value: Значение из объявления модели

    Returns:
        Scalar, BelongsTo или HasMany

    Raises:
        SchemaValidationError: Если значение не подходит ни под одну форму
    """
    if isinstance(value, (Scalar, BelongsTo, HasMany)):
        return value

    if isinstance(value, type):
        return Scalar(value)

    if isinstance(value, str):
        if not value:
            raise SchemaValidationError(f"Пустое имя модели в атрибуте '{key}'")
        return BelongsTo(value)

    if isinstance(value, (list, tuple)):
        if len(value) == 1 and isinstance(value[0], str) and value[0]:
            return HasMany(value[0])
        raise SchemaValidationError(
            f"Атрибут '{key}': has-many объявляется списком из одного имени модели, получено {value!r}"
        )

    raise SchemaValidationError(f"Неподдерживаемое объявление атрибута '{key}': {value!r}")


def foreign_key_for(model_name: str) -> str:
    """Имя внешнего ключа, ссылающегося на модель: User -> userId"""
    return f"{model_name.lower()}Id"


def table_name_for(model_name: str) -> str:
    """Имя таблицы модели: User -> users"""
    return f"{model_name.lower()}s"
