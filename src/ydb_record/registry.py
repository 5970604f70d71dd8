"""
Реестр схем для поиска владельца модели
"""

from threading import RLock
from typing import TYPE_CHECKING, Iterator, List, Optional, Union

from .exceptions import SchemaNotFound

if TYPE_CHECKING:
    from .schema import ModelMetadata, Schema


def model_name_of(model: Union[str, type]) -> str:
    """Имя модели по классу или строке"""
    return model if isinstance(model, str) else model.__name__


class SchemaRegistry:
    """Реестр живых экземпляров Schema в порядке создания"""

    def __init__(self):
        self.instances: List["Schema"] = []
        # Мутации реестра и метаданных моделей идут под этой блокировкой
        self.lock = RLock()

    def add(self, schema: "Schema") -> None:
        """
        Регистрация схемы в реестре

        Args:
            schema: Экземпляр схемы
        """
        with self.lock:
            if schema not in self.instances:
                self.instances.append(schema)

    def remove(self, schema: "Schema") -> None:
        """Удаление схемы из реестра (если она там есть)"""
        with self.lock:
            if schema in self.instances:
                self.instances.remove(schema)

    def clear(self) -> None:
        """Очистка реестра (используется в тестах для изоляции)"""
        with self.lock:
            self.instances.clear()

    def find_for(self, model: Union[str, type]) -> "Schema":
        """
        Поиск схемы, владеющей моделью

        Args:
            model: Класс модели или её имя

        Returns:
            Первая по порядку создания схема, владеющая моделью

        Raises:
            SchemaNotFound: Если ни одна схема не владеет моделью
        """
        # Линейный проход: схем и моделей немного, объявляются на старте
        for schema in self.instances:
            if schema.owns(model):
                return schema

        raise SchemaNotFound(model_name_of(model))

    def find_metadata(self, model: Union[str, type]) -> Optional["ModelMetadata"]:
        """
        Получение метаданных модели из любой схемы реестра

        Returns:
            ModelMetadata или None если модель не объявлена
        """
        for schema in self.instances:
            params = schema.get_params(model)
            if params is not None:
                return params
        return None

    def __iter__(self) -> Iterator["Schema"]:
        return iter(list(self.instances))

    def __len__(self) -> int:
        return len(self.instances)


# Глобальный реестр по умолчанию
default_registry = SchemaRegistry()
