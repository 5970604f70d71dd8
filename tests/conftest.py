"""
Общие фикстуры тестов ydb-record
"""

import pytest

from ydb_record import MemoryConnection, Schema, default_registry


@pytest.fixture(autouse=True)
def clean_registry():
    """Изоляция тестов: реестр схем очищается до и после каждого теста"""
    default_registry.clear()
    yield
    default_registry.clear()


@pytest.fixture
def connection():
    return MemoryConnection()


@pytest.fixture
def schema(connection):
    return Schema(connection)
