"""
Query builder для ydb-record
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Generic, List, Mapping, Optional, Tuple, Type, TypeVar, cast

from .exceptions import MultipleResultsFound, NoResultFound, QueryError, SchemaNotFound
from .schema import Schema
from .utils.sql_builder import Condition

logger = logging.getLogger(__name__)

T = TypeVar('T')

DIRECTIONS = ("asc", "desc")


@dataclass(frozen=True)
class QuerySpec:
    """Неизменяемый снимок запроса, передаваемый адаптеру хранилища"""

    table: str
    columns: Tuple[str, ...] = ()
    conditions: Tuple[Condition, ...] = ()
    order: Optional[Tuple[str, str]] = None
    group: Optional[str] = None
    limit: Optional[int] = None
    offset: Optional[int] = None


class Query(Generic[T]):
    """Построитель запросов с цепочным интерфейсом"""

    def __init__(self, model: Type[T], schema: Optional[Schema] = None):
        """
        Инициализация Query builder

        Args:
            model: Класс записи
            schema: Схема модели (по умолчанию ищется через Schema.find_for)
        """
        self._model = model
        self._schema = schema

        # Параметры запроса
        self._where_conditions: List[Condition] = []
        self._order_by: Optional[Tuple[str, str]] = None
        self._group_by: Optional[str] = None
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None

    @property
    def model(self) -> Type[T]:
        return self._model

    @property
    def conditions(self) -> List[Condition]:
        return list(self._where_conditions)

    @property
    def schema(self) -> Schema:
        """Схема, владеющая моделью (разрешается при первом обращении)"""
        if self._schema is None:
            self._schema = Schema.find_for(self._model)
        return self._schema

    def where(self, conditions: Optional[Mapping[str, Any]] = None, *expressions: Condition, **kwargs) -> 'Query[T]':
        """
        Добавление условий фильтрации (объединяются через AND)

        Args:
            conditions: Словарь поле -> значение (точное совпадение)
            *expressions: Готовые объекты Condition (gt, in_, like, ...)
            **kwargs: Пары поле=значение

        Returns:
            self для цепочных вызовов
        """
        if isinstance(conditions, Condition):
            expressions = (conditions,) + expressions
        elif conditions is not None:
            if not isinstance(conditions, Mapping):
                raise QueryError(f"Неподдерживаемый тип условия: {type(conditions)}")
            kwargs = {**conditions, **kwargs}

        for field, value in kwargs.items():
            self._where_conditions.append(Condition(field, "=", value))

        for cond in expressions:
            if not isinstance(cond, Condition):
                raise QueryError(f"Неподдерживаемый тип условия: {type(cond)}")
            self._where_conditions.append(cond)

        return self

    def order_by(self, field: str, direction: str = "asc") -> 'Query[T]':
        """
        Указание сортировки (последний вызов побеждает)

        Args:
            field: Поле для сортировки
            direction: asc или desc

        Returns:
            self для цепочных вызовов
        """
        direction = direction.lower()
        if direction not in DIRECTIONS:
            raise QueryError(f"Неизвестное направление сортировки: {direction}")

        self._order_by = (field, direction)
        return self

    def group_by(self, field: str) -> 'Query[T]':
        """Группировка по полю"""
        self._group_by = field
        return self

    def limit(self, limit: int) -> 'Query[T]':
        """
        Ограничение количества результатов

        Args:
            limit: Максимальное количество строк

        Returns:
            self для цепочных вызовов
        """
        self._limit = _non_negative("limit", limit)
        return self

    def offset(self, offset: int) -> 'Query[T]':
        """
        Смещение результатов (для пагинации)

        Args:
            offset: Количество пропускаемых строк

        Returns:
            self для цепочных вызовов
        """
        self._offset = _non_negative("offset", offset)
        return self

    def spec(self, **overrides: Any) -> QuerySpec:
        """
        Снимок текущего состояния запроса

        Args:
            **overrides: Поля QuerySpec, заменяемые в снимке

        Returns:
            QuerySpec для адаптера хранилища
        """
        params = self.schema.get_params(self._model)
        if params is None:
            # Схема, переданная явно, может не владеть моделью
            raise SchemaNotFound(self._model.__name__)

        spec = QuerySpec(
            table=params.table,
            columns=tuple(params.attributes),
            conditions=tuple(self._where_conditions),
            order=self._order_by,
            group=self._group_by,
            limit=self._limit,
            offset=self._offset,
        )
        return replace(spec, **overrides) if overrides else spec

    async def all(self) -> List[T]:
        """
        Выполнение запроса и возврат всех результатов

        Returns:
            Список записей (пустой, если ничего не найдено)
        """
        return await self._fetch(self.spec())

    async def first(self) -> Optional[T]:
        """
        Возврат первого результата или None

        Returns:
            Первая запись или None
        """
        results = await self._fetch(self.spec(limit=self._single_limit()))
        return results[0] if results else None

    async def last(self) -> Optional[T]:
        """
        Возврат последнего результата при текущей сортировке или None

        Без явной сортировки последним считается запись с наибольшим id.
        При заданных limit/offset возвращается последняя запись окна,
        которое вернул бы all()
        """
        if self._limit is None and self._offset is None:
            if self._order_by is None:
                order = ("id", "desc")
            else:
                field, direction = self._order_by
                order = (field, "asc" if direction == "desc" else "desc")

            results = await self._fetch(self.spec(order=order, limit=1))
            return results[0] if results else None

        start = self._offset or 0
        end = await self.count()
        if self._limit is not None:
            end = min(end, start + self._limit)
        if end <= start:
            return None

        results = await self._fetch(self.spec(offset=end - 1, limit=1))
        return results[0] if results else None

    async def one(self) -> T:
        """
        Возврат одного результата с проверкой уникальности

        Raises:
            NoResultFound: Если нет результатов
            MultipleResultsFound: Если больше одного результата
        """
        result = await self.one_or_none()

        if result is None:
            raise NoResultFound(f"Запрос не вернул результатов для модели {self._model.__name__}")

        return result

    async def one_or_none(self) -> Optional[T]:
        """
        Возврат одного результата или None

        Raises:
            MultipleResultsFound: Если больше одного результата
        """
        # Двух строк достаточно, чтобы понять, что результат не единственный
        limit = 2 if self._limit is None else min(self._limit, 2)
        results = await self._fetch(self.spec(limit=limit))

        if len(results) > 1:
            raise MultipleResultsFound(
                f"Запрос вернул несколько результатов, ожидался один для модели {self._model.__name__}"
            )

        return results[0] if results else None

    async def count(self) -> int:
        """
        Подсчет количества строк, соответствующих условиям

        Returns:
            Количество строк (сортировка и пагинация не учитываются)
        """
        spec = self.spec(order=None, limit=None, offset=None)
        logger.debug("COUNT %s", spec)
        return await self.schema.executor.count(spec)

    def _single_limit(self) -> int:
        # limit(0) должен оставаться пустым и для first
        return 1 if self._limit is None else min(self._limit, 1)

    async def _fetch(self, spec: QuerySpec) -> List[T]:
        logger.debug("SELECT %s", spec)
        rows = await self.schema.executor.fetch(spec)
        return [cast(T, self._model(row)) for row in rows]

    def __repr__(self) -> str:
        return f"<Query {self._model.__name__} where={self._where_conditions!r}>"


def _non_negative(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise QueryError(f"{name} должен быть целым числом, получено {value!r}")
    if value < 0:
        raise QueryError(f"{name} не может быть отрицательным: {value}")
    return value
