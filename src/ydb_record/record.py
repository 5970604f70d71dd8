"""
Базовый класс записи в стиле ActiveRecord
"""

from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar, Union

from .exceptions import RelationshipError
from .query import Query
from .schema import Schema

R = TypeVar('R', bound='Record')


class classproperty:
    """Свойство, вычисляемое на классе"""

    def __init__(self, getter):
        self._getter = getter

    def __get__(self, instance, owner):
        return self._getter(owner)


class Record:
    """
    Запись таблицы: набор атрибутов с идентификатором

    Класс записи объявляется в схеме и привязывается к ней:

        @schema.define({"username": str})
        class User(Record):
            pass

    Запросы находят схему по имени класса, а переход по отношениям
    использует только привязанные классы (define, create(cls, ...) или bind).

        users = await User.where(username="alice").order_by("id").all()
    """

    @classmethod
    def query(cls: Type[R]) -> Query[R]:
        """Новый Query builder для класса записи"""
        return Query(cls)

    @classmethod
    def where(cls: Type[R], conditions: Optional[Mapping[str, Any]] = None, *expressions, **kwargs) -> Query[R]:
        return Query(cls).where(conditions, *expressions, **kwargs)

    @classmethod
    def order_by(cls: Type[R], field: str, direction: str = "asc") -> Query[R]:
        return Query(cls).order_by(field, direction)

    @classmethod
    def group_by(cls: Type[R], field: str) -> Query[R]:
        return Query(cls).group_by(field)

    @classmethod
    def limit(cls: Type[R], size: int) -> Query[R]:
        return Query(cls).limit(size)

    @classmethod
    def offset(cls: Type[R], position: int) -> Query[R]:
        return Query(cls).offset(position)

    @classmethod
    async def find(cls: Type[R], id: Any) -> Optional[R]:
        """Поиск записи по идентификатору"""
        return await Query(cls).where(id=id).first()

    @classmethod
    async def all(cls: Type[R]) -> List[R]:
        return await Query(cls).all()

    @classmethod
    async def first(cls: Type[R]) -> Optional[R]:
        return await Query(cls).first()

    @classmethod
    async def last(cls: Type[R]) -> Optional[R]:
        return await Query(cls).last()

    @classmethod
    async def count(cls) -> int:
        return await Query(cls).count()

    @classproperty
    def schema(cls) -> Schema:
        return Schema.find_for(cls)

    @classproperty
    def table_name(cls) -> str:
        return cls.schema.table_name(cls)

    def __init__(self, attrs: Optional[Mapping[str, Any]] = None, **kwargs):
        """
        Создание записи из пар ключ-значение

        Args:
            attrs: Словарь атрибутов (например, строка из хранилища)
            **kwargs: Дополнительные атрибуты
        """
        self.__dict__.update(attrs or {})
        self.__dict__.update(kwargs)

    def is_saved(self) -> bool:
        """Запись сохранена, если у неё есть непустой id"""
        return bool(getattr(self, "id", None))

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)

    async def fetch_related(self, name: str) -> Union[Optional["Record"], List["Record"]]:
        """
        Загрузка связанных записей по отношению из схемы

        Args:
            name: Имя отношения (например, "author" или "posts")

        Returns:
            Запись для belongs-to (или None), список записей для has-many

        Raises:
            RelationshipError: Отношение не объявлено или класс модели не найден
        """
        schema = type(self).schema
        params = schema.get_params(type(self))
        relationship = params.relationships.get(name) if params else None
        if relationship is None:
            raise RelationshipError(f"У модели {type(self).__name__} нет отношения '{name}'")

        target = schema.model_class(relationship.model)
        if target is None:
            raise RelationshipError(
                f"Для модели '{relationship.model}' не найден класс записи"
            )

        if relationship.is_belongs_to:
            value = getattr(self, relationship.foreign_key, None)
            if value is None:
                return None
            return await Query(target).where({relationship.primary_key: value}).first()

        return await Query(target).where({relationship.foreign_key: getattr(self, relationship.primary_key, None)}).all()

    def __eq__(self, other: Any) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.__dict__ == other.__dict__

    __hash__ = None

    def __repr__(self) -> str:
        attrs = ", ".join(f"{key}={value!r}" for key, value in self.__dict__.items())
        return f"{type(self).__name__}({attrs})"
