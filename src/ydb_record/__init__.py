"""
YDB-Record: ActiveRecord-слой для YDB

Основные компоненты:
- Schema: Реестр моделей и разрешение отношений
- Query: Ленивый построитель запросов
- Record: Базовый класс записи
- connections: Адаптеры хранилища (в памяти и YDB)
"""

from .schema import Schema, ModelMetadata, Attribute, ID_TYPE
from .registry import SchemaRegistry, default_registry
from .relationships import Relationship, RelationshipKind
from .declarations import Scalar, BelongsTo, HasMany, parse_declaration
from .query import Query, QuerySpec
from .record import Record
from .connections import Connection, MemoryConnection, YDBConnection, open_connection
from .config import ConnectionConfig
from .utils.sql_builder import Condition, eq, ne, gt, ge, lt, le, in_, like, between
from .exceptions import (
    YDBRecordError,
    SchemaNotFound,
    SchemaValidationError,
    QueryError,
    NoResultFound,
    MultipleResultsFound,
    RelationshipError,
    StoreConnectionError,
)

__version__ = "0.1.0"
__all__ = [
    "Schema",
    "ModelMetadata",
    "Attribute",
    "ID_TYPE",
    "SchemaRegistry",
    "default_registry",
    "Relationship",
    "RelationshipKind",
    "Scalar",
    "BelongsTo",
    "HasMany",
    "parse_declaration",
    "Query",
    "QuerySpec",
    "Record",
    "Connection",
    "MemoryConnection",
    "YDBConnection",
    "open_connection",
    "ConnectionConfig",
    "Condition",
    "eq",
    "ne",
    "gt",
    "ge",
    "lt",
    "le",
    "in_",
    "like",
    "between",
    "YDBRecordError",
    "SchemaNotFound",
    "SchemaValidationError",
    "QueryError",
    "NoResultFound",
    "MultipleResultsFound",
    "RelationshipError",
    "StoreConnectionError",
]
