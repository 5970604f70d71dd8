"""
Описание отношений между моделями (relationships)
"""

from dataclasses import dataclass
from enum import Enum


class RelationshipKind(str, Enum):
    """Вид отношения"""

    BELONGS_TO = "belongs-to"
    HAS_MANY = "has-many"


@dataclass(frozen=True)
class Relationship:
    """
    Информация об одном отношении модели

    Attributes:
        kind: Вид отношения (belongs-to / has-many)
        model: Имя связанной модели (разрешается лениво)
        primary_key: Первичный ключ на стороне связанной модели
        foreign_key: Внешний ключ, хранящий ссылку
    """

    kind: RelationshipKind
    model: str
    primary_key: str = "id"
    foreign_key: str = ""

    def __post_init__(self):
        # "belongs-to" и RelationshipKind.BELONGS_TO должны сравниваться одинаково
        if not isinstance(self.kind, RelationshipKind):
            object.__setattr__(self, "kind", RelationshipKind(self.kind))

    @property
    def is_belongs_to(self) -> bool:
        return self.kind is RelationshipKind.BELONGS_TO

    @property
    def is_has_many(self) -> bool:
        return self.kind is RelationshipKind.HAS_MANY

    @classmethod
    def belongs_to(cls, model: str, foreign_key: str, primary_key: str = "id") -> "Relationship":
        """Создание отношения многие-к-одному"""
        return cls(RelationshipKind.BELONGS_TO, model, primary_key, foreign_key)

    @classmethod
    def has_many(cls, model: str, foreign_key: str, primary_key: str = "id") -> "Relationship":
        """Создание отношения один-ко-многим"""
        return cls(RelationshipKind.HAS_MANY, model, primary_key, foreign_key)
