"""
Адаптеры хранилища: выполнение снимков Query
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from threading import Lock
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional

import ydb
import ydb.aio

from .config import DEFAULT_POOL_SIZE, DEFAULT_TIMEOUT, ConnectionConfig
from .exceptions import QueryError, StoreConnectionError
from .utils.sql_builder import CompiledQuery, compile_count, compile_select

if TYPE_CHECKING:
    from .query import QuerySpec

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


class Connection(ABC):
    """Интерфейс адаптера хранилища"""

    @abstractmethod
    async def fetch(self, spec: "QuerySpec") -> List[Row]:
        """Выполнение запроса и возврат строк (поле -> значение)"""

    @abstractmethod
    async def count(self, spec: "QuerySpec") -> int:
        """Количество строк, подходящих под условия"""

    async def close(self) -> None:
        """Освобождение ресурсов"""


class MemoryConnection(Connection):
    """Хранилище в памяти процесса (для тестов и прототипов)"""

    def __init__(self, tables: Optional[Mapping[str, Iterable[Mapping[str, Any]]]] = None):
        self._tables: Dict[str, List[Row]] = {
            name: [dict(row) for row in rows] for name, rows in (tables or {}).items()
        }
        self._closed = False

    def insert(self, table: str, row: Mapping[str, Any]) -> None:
        """Добавление строки в таблицу"""
        self._ensure_open()
        self._tables.setdefault(table, []).append(dict(row))

    def rows(self, table: str) -> List[Row]:
        """Копии всех строк таблицы"""
        return [dict(row) for row in self._tables.get(table, [])]

    async def fetch(self, spec: "QuerySpec") -> List[Row]:
        self._ensure_open()
        rows = self._select(spec)

        if spec.order is not None:
            field, direction = spec.order
            # NULL идёт первым при сортировке по возрастанию
            rows.sort(
                key=lambda row: (row.get(field) is not None, row.get(field)),
                reverse=direction == "desc",
            )

        start = spec.offset or 0
        stop = start + spec.limit if spec.limit is not None else None
        rows = rows[start:stop]

        if spec.columns:
            rows = [{col: row.get(col) for col in spec.columns} for row in rows]
        return rows

    async def count(self, spec: "QuerySpec") -> int:
        self._ensure_open()
        return len(self._select(spec))

    async def close(self) -> None:
        self._closed = True

    def _select(self, spec: "QuerySpec") -> List[Row]:
        rows = [
            dict(row) for row in self._tables.get(spec.table, [])
            if all(cond.matches(row) for cond in spec.conditions)
        ]

        if spec.group is not None:
            # Первая строка каждой группы
            groups: Dict[Any, Row] = {}
            for row in rows:
                groups.setdefault(row.get(spec.group), row)
            rows = list(groups.values())

        return rows

    def _ensure_open(self) -> None:
        if self._closed:
            raise StoreConnectionError("Хранилище в памяти уже закрыто")


class YDBConnection(Connection):
    """Адаптер YDB поверх ydb SDK"""

    def __init__(
        self,
        endpoint: str,
        database: str,
        driver: Optional[ydb.aio.Driver] = None,
        timeout: float = DEFAULT_TIMEOUT,
        pool_size: int = DEFAULT_POOL_SIZE,
    ):
        """
        Инициализация адаптера

        Args:
            endpoint: Адрес YDB (grpc://host:2136)
            database: Имя базы данных
            driver: Уже созданный драйвер (иначе создаётся при первом запросе)
            timeout: Таймаут ожидания готовности драйвера в секундах
            pool_size: Максимальное число сессий в пуле
        """
        self._endpoint = endpoint
        self._database = database
        self._driver = driver
        self._owns_driver = driver is None
        self._timeout = timeout
        self._pool_size = pool_size
        self._pool: Optional[ydb.aio.SessionPool] = None
        self._connect_lock: Optional[asyncio.Lock] = None
        self._prepared_cache: Dict[str, ydb.DataQuery] = {}

    async def connect(self) -> ydb.aio.SessionPool:
        """
        Подключение драйвера и создание пула сессий YDB

        Параллельные вызовы ждут одного подключения.

        Returns:
            Пул сессий

        Raises:
            StoreConnectionError: Если драйвер не готов
        """
        # Замок создаётся внутри работающего цикла событий
        if self._connect_lock is None:
            self._connect_lock = asyncio.Lock()

        async with self._connect_lock:
            if self._pool is not None:
                return self._pool

            try:
                if self._driver is None:
                    self._driver = ydb.aio.Driver(endpoint=self._endpoint, database=self._database)
                await self._driver.wait(timeout=self._timeout, fail_fast=True)
                self._pool = ydb.aio.SessionPool(self._driver, size=self._pool_size)
            except Exception as e:
                raise StoreConnectionError(
                    f"Не удалось подключиться к {self._endpoint}{self._database}: {e}"
                ) from e

        logger.info("Подключение к YDB %s%s установлено", self._endpoint, self._database)
        return self._pool

    async def close(self) -> None:
        """Остановка пула сессий и драйвера"""
        pool, self._pool = self._pool, None
        self._prepared_cache.clear()

        try:
            if pool is not None:
                await pool.stop()
        except ydb.Error as e:
            logger.warning("Ошибка при остановке пула сессий YDB: %s", e)
        finally:
            if self._owns_driver and self._driver is not None:
                await self._driver.stop()
                self._driver = None

        logger.debug("Соединение с YDB %s закрыто", self._endpoint)

    async def fetch(self, spec: "QuerySpec") -> List[Row]:
        result_sets = await self._execute(compile_select(spec))
        return [dict(row) for row in result_sets[0].rows]

    async def count(self, spec: "QuerySpec") -> int:
        result_sets = await self._execute(compile_count(spec))
        rows = result_sets[0].rows
        return int(rows[0]["count"]) if rows else 0

    async def _execute(self, compiled: CompiledQuery) -> List[Any]:
        pool = self._pool or await self.connect()

        logger.debug("YQL: %s; параметры: %s", compiled.yql, compiled.params)

        query = self._prepared_cache.get(compiled.yql)
        if query is None:
            query = self._prepared_cache[compiled.yql] = compiled.data_query()

        async def callee(session):
            tx = session.transaction(ydb.OnlineReadOnly())
            return await tx.execute(query, compiled.params, commit_tx=True)

        try:
            # Пул выдаёт каждой задаче свою сессию и повторяет запрос
            # на новой сессии после BadSession / Unavailable
            return await pool.retry_operation(callee)
        except _CONNECTION_ERRORS as e:
            raise StoreConnectionError(f"YDB недоступна: {e}") from e
        except ydb.Error as e:
            raise QueryError(f"Ошибка выполнения запроса: {e}") from e


# Ошибки, после которых повтор не помог: хранилище недоступно
_CONNECTION_ERRORS = (
    ydb.issues.ConnectionError,
    ydb.issues.Unavailable,
    ydb.issues.BadSession,
    ydb.issues.SessionExpired,
    ydb.issues.SessionPoolEmpty,
)


# Именованные хранилища в памяти: memory://name
_memory_connections: Dict[str, MemoryConnection] = {}
_memory_lock = Lock()


def _named_memory_connection(name: str) -> MemoryConnection:
    with _memory_lock:
        connection = _memory_connections.get(name)
        if connection is None or connection._closed:
            connection = _memory_connections[name] = MemoryConnection()
        return connection


def open_connection(config: Any) -> Connection:
    """
    Получение адаптера хранилища по конфигурации схемы

    Args:
        config: Connection, ConnectionConfig, строка URL или словарь {"url": ...}

    Returns:
        Адаптер хранилища

    Raises:
        StoreConnectionError: Если конфигурация не распознана
    """
    if isinstance(config, Connection):
        return config

    if isinstance(config, str):
        config = ConnectionConfig.from_url(config)
    elif isinstance(config, Mapping) and "url" in config:
        config = ConnectionConfig(
            url=config["url"],
            database=config.get("database"),
            timeout=config.get("timeout", DEFAULT_TIMEOUT),
        )

    if not isinstance(config, ConnectionConfig):
        raise StoreConnectionError(f"Неизвестная конфигурация соединения: {config!r}")

    if config.scheme == "memory":
        return _named_memory_connection(config.url[len("memory://"):])

    if config.scheme in ("grpc", "grpcs"):
        return YDBConnection(config.endpoint, config.resolved_database, timeout=config.timeout)

    raise StoreConnectionError(f"Неподдерживаемая схема URL: {config.url}")
