"""
Кастомные исключения для ydb-record
"""

class YDBRecordError(Exception):
    """Базовое исключение для всех ошибок ydb-record"""
    pass

class SchemaNotFound(YDBRecordError):
    """Ни одна схема не владеет запрошенной моделью"""

    def __init__(self, model_name: str):
        self.model_name = model_name
        super().__init__(f"Can't find a schema that owns {model_name}!")

class SchemaValidationError(YDBRecordError):
    """Некорректное объявление модели или атрибута"""
    pass

class QueryError(YDBRecordError):
    """Ошибка построения запроса"""
    pass

class NoResultFound(QueryError):
    """Исключение, когда запрос не вернул результатов"""
    pass

class MultipleResultsFound(QueryError):
    """Исключение, когда запрос вернул несколько результатов, а ожидался один"""
    pass

class RelationshipError(YDBRecordError):
    """Ошибка в отношениях между моделями"""
    pass

class StoreConnectionError(YDBRecordError, ConnectionError):
    """Хранилище недоступно (не подключено, уже закрыто и т.д.)"""
    pass
