"""
campusgrid/models/common.py — Базовые типы моделей CampusGrid.

REST-контракт платформы использует camelCase (``groupName``,
``contactEmail``), поэтому базовая модель генерирует алиасы и
принимает оба варианта имён.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CampusGridBase(BaseModel):
    """Базовая Pydantic-модель для схем CampusGrid."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_wire(self) -> dict:
        """Сериализация в JSON-совместимый dict с camelCase-ключами."""
        return self.model_dump(by_alias=True, mode="json")
