"""
Схема: реестр моделей и разрешение отношений между ними
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Type, TypeVar, Union

from .connections import Connection, open_connection
from .declarations import BelongsTo, HasMany, Scalar, foreign_key_for, parse_declaration, table_name_for
from .exceptions import SchemaNotFound, SchemaValidationError
from .registry import SchemaRegistry, default_registry, model_name_of
from .relationships import Relationship

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Тип идентификатора и синтезированных внешних ключей
ID_TYPE = str


@dataclass(frozen=True)
class Attribute:
    """Описание атрибута модели"""
    type: type


@dataclass
class ModelMetadata:
    """Разрешённые метаданные модели"""

    name: str
    table: str
    attributes: Dict[str, Attribute] = field(default_factory=dict)
    relationships: Dict[str, Relationship] = field(default_factory=dict)

    def foreign_keys(self) -> List[str]:
        """Внешние ключи belongs-to отношений модели"""
        return [rel.foreign_key for rel in self.relationships.values() if rel.is_belongs_to]


class Schema:
    """Набор моделей, работающих через одно соединение"""

    # Живые схемы реестра по умолчанию (тот же список, что и default_registry.instances)
    instances: List["Schema"] = default_registry.instances

    def __init__(self, connection: Any, registry: Optional[SchemaRegistry] = None):
        """
        Инициализация схемы

        Args:
            connection: Конфигурация соединения, передаётся адаптеру хранилища как есть
            registry: Реестр схем (по умолчанию default_registry)
        """
        self.connection = connection
        self.models: List[ModelMetadata] = []
        self.registry = registry if registry is not None else default_registry
        self._classes: Dict[str, type] = {}
        self._executor: Optional[Connection] = None

        self.registry.add(self)

    def create(self, name: Union[str, type], attributes: Mapping[str, Any]) -> ModelMetadata:
        """
        Объявление модели в схеме

        Args:
            name: Имя модели или её класс
            attributes: Объявления атрибутов: тип, имя модели или [имя модели]

        Returns:
            Метаданные созданной модели

        Raises:
            SchemaValidationError: Модель уже объявлена или объявление некорректно
        """
        model_name = model_name_of(name)
        # Разбираем всё заранее, чтобы ошибка не оставила полусозданную модель
        declarations = [(key, parse_declaration(key, value)) for key, value in attributes.items()]

        with self.registry.lock:
            if self.owns(model_name):
                raise SchemaValidationError(f"Модель {model_name} уже объявлена в схеме")

            metadata = ModelMetadata(name=model_name, table=table_name_for(model_name))
            metadata.attributes["id"] = Attribute(ID_TYPE)

            for key, decl in declarations:
                if isinstance(decl, Scalar):
                    metadata.attributes[key] = Attribute(decl.type)

                elif isinstance(decl, BelongsTo):
                    foreign_key = foreign_key_for(decl.model)
                    metadata.attributes[foreign_key] = Attribute(ID_TYPE)
                    metadata.relationships[key] = Relationship.belongs_to(decl.model, foreign_key)

                elif isinstance(decl, HasMany):
                    foreign_key = foreign_key_for(model_name)
                    metadata.relationships[key] = Relationship.has_many(decl.model, foreign_key)
                    self._attach_foreign_key(decl.model, foreign_key, owner=model_name)

            self.models.append(metadata)

        if not isinstance(name, str):
            self.bind(name)

        logger.debug(
            "Модель %s зарегистрирована: таблица %s, атрибуты %s, отношения %s",
            model_name, metadata.table, list(metadata.attributes), list(metadata.relationships),
        )
        return metadata

    def _attach_foreign_key(self, target: str, foreign_key: str, owner: str) -> None:
        """Добавление внешнего ключа has-many в уже объявленную модель"""
        target_params = self.get_params(target) or self.registry.find_metadata(target)

        if target_params is None:
            # Порядок объявления важен: модель ещё не объявлена, пару не создаём
            logger.warning(
                "Модель %s ссылается на ещё не объявленную модель %s; "
                "внешний ключ %s не будет добавлен", owner, target, foreign_key,
            )
            return

        target_params.attributes.setdefault(foreign_key, Attribute(ID_TYPE))

    def owns(self, model: Union[str, type]) -> bool:
        """Проверка, объявлена ли модель в этой схеме"""
        model_name = model_name_of(model)
        return any(params.name == model_name for params in self.models)

    def get_params(self, model: Union[str, type]) -> Optional[ModelMetadata]:
        """
        Получение метаданных модели

        Args:
            model: Класс модели или её имя

        Returns:
            ModelMetadata или None если модель не объявлена в схеме
        """
        model_name = model_name_of(model)
        for params in self.models:
            if params.name == model_name:
                return params
        return None

    def table_name(self, model: Union[str, type]) -> str:
        """Имя таблицы модели"""
        params = self.get_params(model)
        if params is None:
            raise SchemaNotFound(model_name_of(model))
        return params.table

    @classmethod
    def find_for(cls, model: Union[str, type], registry: Optional[SchemaRegistry] = None) -> "Schema":
        """
        Поиск схемы, владеющей моделью

        Raises:
            SchemaNotFound: Если ни одна схема не владеет моделью
        """
        return (registry if registry is not None else default_registry).find_for(model)

    def bind(self, model_cls: Type[T]) -> Type[T]:
        """Привязка класса записи к имени модели (для перехода по отношениям)"""
        self._classes[model_cls.__name__] = model_cls
        return model_cls

    def model_class(self, name: str) -> Optional[type]:
        """Класс записи, привязанный к имени модели в любой схеме реестра"""
        if name in self._classes:
            return self._classes[name]
        for schema in self.registry:
            if name in schema._classes:
                return schema._classes[name]
        return None

    def define(self, attributes: Mapping[str, Any]) -> Callable[[Type[T]], Type[T]]:
        """
        Декоратор для объявления модели по классу записи

        Args:
            attributes: Объявления атрибутов

        Returns:
            Декоратор, возвращающий тот же класс
        """
        def decorator(model_cls: Type[T]) -> Type[T]:
            self.create(model_cls, attributes)
            return model_cls

        return decorator

    @property
    def executor(self) -> Connection:
        """Адаптер хранилища для connection (открывается при первом обращении)"""
        if self._executor is None:
            self._executor = open_connection(self.connection)
        return self._executor

    async def close(self) -> None:
        """Закрытие адаптера хранилища"""
        if self._executor is not None:
            executor, self._executor = self._executor, None
            await executor.close()

    def __repr__(self) -> str:
        return f"<Schema models={[params.name for params in self.models]}>"
