"""
Утилиты для построения условий и YQL запросов
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, NamedTuple, Tuple

import ydb

from ..exceptions import QueryError

if TYPE_CHECKING:
    from ..query import QuerySpec

OPERATORS = ("=", "!=", ">", ">=", "<", "<=", "in", "like", "between")


@dataclass(frozen=True)
class Condition:
    """Структурированное условие для фильтрации"""
    field: str
    operator: str = "="
    value: Any = None

    def __str__(self) -> str:
        """Строковое представление условия"""
        if self.operator == "in":
            values = ", ".join(repr(v) for v in self.value)
            return f"{self.field} IN ({values})"
        elif self.operator == "like":
            return f"{self.field} LIKE {repr(self.value)}"
        elif self.operator == "between":
            return f"{self.field} BETWEEN {repr(self.value[0])} AND {repr(self.value[1])}"
        else:
            return f"{self.field} {self.operator} {repr(self.value)}"

    def matches(self, row: Mapping[str, Any]) -> bool:
        """
        Проверка условия на строке в памяти

        Args:
            row: Строка таблицы (поле -> значение)

        Returns:
            True если строка удовлетворяет условию
        """
        actual = row.get(self.field)

        if self.operator == "=":
            return actual == self.value
        if self.operator == "!=":
            return actual != self.value
        if self.operator == "in":
            return actual in self.value

        # Сравнения с NULL ложны, как и в SQL
        if actual is None or self.value is None:
            return False

        if self.operator == ">":
            return actual > self.value
        if self.operator == ">=":
            return actual >= self.value
        if self.operator == "<":
            return actual < self.value
        if self.operator == "<=":
            return actual <= self.value
        if self.operator == "between":
            lower, upper = self.value
            if lower is None or upper is None:
                return False
            return lower <= actual <= upper
        if self.operator == "like":
            return _like_to_regex(self.value).fullmatch(str(actual)) is not None

        raise QueryError(f"Неподдерживаемый оператор: {self.operator}")


def _like_to_regex(pattern: str) -> "re.Pattern[str]":
    """Перевод LIKE шаблона (% и _) в регулярное выражение"""
    parts = []
    for char in pattern:
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.DOTALL)


def build_where_conditions(conditions: List[Condition]) -> str:
    """
    Построение WHERE clause из списка условий

    Args:
        conditions: Список объектов Condition

    Returns:
        SQL WHERE clause
    """
    if not conditions:
        return ""

    where_parts = []
    for cond in conditions:
        where_parts.append(str(cond))

    return " AND ".join(where_parts)


# Удобные фабричные функции для создания условий
def eq(field: str, value: Any) -> Condition:
    """Создание условия равенства"""
    return Condition(field, "=", value)


def ne(field: str, value: Any) -> Condition:
    """Создание условия неравенства"""
    return Condition(field, "!=", value)


def gt(field: str, value: Any) -> Condition:
    """Создание условия 'больше'"""
    return Condition(field, ">", value)


def ge(field: str, value: Any) -> Condition:
    """Создание условия 'больше или равно'"""
    return Condition(field, ">=", value)


def lt(field: str, value: Any) -> Condition:
    """Создание условия 'меньше'"""
    return Condition(field, "<", value)


def le(field: str, value: Any) -> Condition:
    """Создание условия 'меньше или равно'"""
    return Condition(field, "<=", value)


def in_(field: str, values: List[Any]) -> Condition:
    """Создание условия IN"""
    return Condition(field, "in", tuple(values))


def like(field: str, pattern: str) -> Condition:
    """Создание условия LIKE"""
    return Condition(field, "like", pattern)


def between(field: str, lower: Any, upper: Any) -> Condition:
    """Создание условия BETWEEN"""
    return Condition(field, "between", (lower, upper))


class CompiledQuery(NamedTuple):
    """Скомпилированный YQL запрос с типизированными параметрами"""
    yql: str
    params: Dict[str, Any]
    types: Dict[str, Any]

    def data_query(self) -> ydb.DataQuery:
        """Запрос в форме ydb SDK: текст и типы параметров"""
        return ydb.DataQuery(self.yql, self.types)


# Соответствие python-типов примитивным типам YDB
_YDB_TYPES = (
    (bool, ydb.PrimitiveType.Bool),
    (int, ydb.PrimitiveType.Int64),
    (float, ydb.PrimitiveType.Double),
    (str, ydb.PrimitiveType.Utf8),
    (bytes, ydb.PrimitiveType.String),
    (datetime, ydb.PrimitiveType.Timestamp),
    (date, ydb.PrimitiveType.Date),
    (timedelta, ydb.PrimitiveType.Interval),
)


def yql_type(value: Any) -> Any:
    """
    Тип YDB для значения параметра

    Raises:
        QueryError: Если для значения нет типа YDB
    """
    if isinstance(value, (list, tuple)):
        if not value:
            raise QueryError("Пустой список нельзя передать параметром")
        return ydb.ListType(yql_type(value[0]))

    for py_type, ydb_type in _YDB_TYPES:
        if isinstance(value, py_type):
            return ydb_type

    raise QueryError(f"Нет типа YDB для значения {value!r}")


def quote(name: str) -> str:
    """Экранирование идентификатора"""
    return "`" + name.replace("`", "``") + "`"


class _Params:
    """Накопитель параметров запроса $p0, $p1, ..."""

    def __init__(self):
        self.values: Dict[str, Any] = {}
        self.types: Dict[str, Any] = {}

    def add(self, value: Any) -> str:
        name = f"$p{len(self.values)}"
        self.types[name] = yql_type(value)
        self.values[name] = value
        return name

    def declarations(self) -> List[str]:
        return [f"DECLARE {name} AS {ydb_type};" for name, ydb_type in self.types.items()]


# Условие, которому не удовлетворяет ни одна строка
_NOTHING = "FALSE"


def _where_clause(conditions: Tuple[Condition, ...], params: _Params) -> str:
    parts = []
    for cond in conditions:
        column = quote(cond.field)
        if cond.operator == "=" and cond.value is None:
            parts.append(f"{column} IS NULL")
        elif cond.operator == "!=" and cond.value is None:
            parts.append(f"{column} IS NOT NULL")
        elif cond.operator not in OPERATORS:
            raise QueryError(f"Неподдерживаемый оператор: {cond.operator}")
        elif cond.operator == "in":
            values = list(cond.value)
            parts.append(f"{column} IN {params.add(values)}" if values else _NOTHING)
        elif cond.operator == "between":
            lower, upper = cond.value
            if lower is None or upper is None:
                parts.append(_NOTHING)
            else:
                parts.append(f"{column} BETWEEN {params.add(lower)} AND {params.add(upper)}")
        elif cond.value is None:
            # Сравнение с NULL не выполняется ни для одной строки
            parts.append(_NOTHING)
        elif cond.operator == "like":
            parts.append(f"{column} LIKE {params.add(cond.value)}")
        else:
            parts.append(f"{column} {cond.operator} {params.add(cond.value)}")

    return " AND ".join(parts)


def _render(body: List[str], params: _Params) -> CompiledQuery:
    return CompiledQuery("\n".join(params.declarations() + body), params.values, params.types)


def compile_select(spec: "QuerySpec") -> CompiledQuery:
    """
    Построение SELECT запроса по снимку Query

    Args:
        spec: Снимок запроса

    Returns:
        CompiledQuery (YQL запрос, параметры, типы параметров)
    """
    params = _Params()

    if spec.group is not None and spec.columns:
        # Для негруппируемых колонок берём любое значение из группы
        columns = ", ".join(
            quote(col) if col == spec.group else f"SOME({quote(col)}) AS {quote(col)}"
            for col in spec.columns
        )
    elif spec.columns:
        columns = ", ".join(quote(col) for col in spec.columns)
    else:
        columns = "*"

    body = [f"SELECT {columns}", f"FROM {quote(spec.table)}"]

    where = _where_clause(spec.conditions, params)
    if where:
        body.append(f"WHERE {where}")
    if spec.group is not None:
        body.append(f"GROUP BY {quote(spec.group)}")
    if spec.order is not None:
        field, direction = spec.order
        body.append(f"ORDER BY {quote(field)} {direction.upper()}")
    if spec.limit is not None:
        body.append(f"LIMIT {int(spec.limit)}")
    if spec.offset is not None:
        body.append(f"OFFSET {int(spec.offset)}")

    body[-1] += ";"
    return _render(body, params)


def compile_count(spec: "QuerySpec") -> CompiledQuery:
    """
    Построение COUNT запроса (порядок и пагинация не учитываются)

    Returns:
        CompiledQuery (YQL запрос, параметры, типы параметров)
    """
    params = _Params()
    where = _where_clause(spec.conditions, params)
    where_sql = f" WHERE {where}" if where else ""

    if spec.group is not None:
        inner = f"SELECT {quote(spec.group)} FROM {quote(spec.table)}{where_sql} GROUP BY {quote(spec.group)}"
        body = [f"SELECT COUNT(*) AS count FROM ({inner});"]
    else:
        body = [f"SELECT COUNT(*) AS count FROM {quote(spec.table)}{where_sql};"]

    return _render(body, params)
