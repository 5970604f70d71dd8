"""
Конфигурация соединения с хранилищем

Переменные окружения:
    YDB_RECORD_URL: Адрес хранилища (grpc://host:2136/local, memory://name)
    YDB_RECORD_DATABASE: База данных YDB (по умолчанию берётся из пути URL)
    YDB_RECORD_TIMEOUT: Таймаут подключения в секундах
"""

import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

DEFAULT_TIMEOUT = 5.0
DEFAULT_POOL_SIZE = 10


@dataclass(frozen=True)
class ConnectionConfig:
    """Параметры соединения с хранилищем"""

    url: str
    database: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT

    @property
    def scheme(self) -> str:
        return urlsplit(self.url).scheme.lower()

    @property
    def endpoint(self) -> str:
        """Адрес без пути: grpc://host:2136"""
        parts = urlsplit(self.url)
        return f"{parts.scheme}://{parts.netloc}"

    @property
    def resolved_database(self) -> str:
        """База данных: явная или путь из URL"""
        if self.database:
            return self.database
        return urlsplit(self.url).path or "/local"

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "ConnectionConfig":
        return cls(url=url, **kwargs)

    @classmethod
    def from_env(cls) -> "ConnectionConfig":
        """
        Создание конфигурации из переменных окружения

        Raises:
            ValueError: Если YDB_RECORD_URL не задан или таймаут не число
        """
        url = os.environ.get("YDB_RECORD_URL")
        if not url:
            raise ValueError("Переменная окружения YDB_RECORD_URL не задана")

        timeout = os.environ.get("YDB_RECORD_TIMEOUT")
        return cls(
            url=url,
            database=os.environ.get("YDB_RECORD_DATABASE") or None,
            timeout=float(timeout) if timeout else DEFAULT_TIMEOUT,
        )
