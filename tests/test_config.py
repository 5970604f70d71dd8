"""
Тесты ConnectionConfig
"""

import pytest

from ydb_record import ConnectionConfig
from ydb_record.config import DEFAULT_TIMEOUT


def test_from_url_parts():
    config = ConnectionConfig.from_url("grpc://localhost:2136/local")

    assert config.scheme == "grpc"
    assert config.endpoint == "grpc://localhost:2136"
    assert config.resolved_database == "/local"
    assert config.timeout == DEFAULT_TIMEOUT


def test_explicit_database_wins():
    config = ConnectionConfig("grpcs://ydb.example:2135/ru/db", database="/other")
    assert config.resolved_database == "/other"


def test_from_env(monkeypatch):
    monkeypatch.setenv("YDB_RECORD_URL", "grpc://localhost:2136/local")
    monkeypatch.setenv("YDB_RECORD_DATABASE", "/local/test")
    monkeypatch.setenv("YDB_RECORD_TIMEOUT", "1.5")

    config = ConnectionConfig.from_env()

    assert config == ConnectionConfig("grpc://localhost:2136/local", "/local/test", 1.5)


def test_from_env_defaults(monkeypatch):
    monkeypatch.setenv("YDB_RECORD_URL", "memory://app")
    monkeypatch.delenv("YDB_RECORD_DATABASE", raising=False)
    monkeypatch.delenv("YDB_RECORD_TIMEOUT", raising=False)

    config = ConnectionConfig.from_env()

    assert config.database is None
    assert config.timeout == DEFAULT_TIMEOUT


def test_from_env_requires_url(monkeypatch):
    monkeypatch.delenv("YDB_RECORD_URL", raising=False)

    with pytest.raises(ValueError):
        ConnectionConfig.from_env()
