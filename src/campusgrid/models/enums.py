"""
campusgrid/models/enums.py — Перечисления домена онбординга.

Содержит enum'ы групп и справочники формы:
    • GroupStatus — статус жизненного цикла группы
    • OrganizationType — юридическая форма организации
    • Board — аффилированные образовательные советы
    • PlanType — тарифный план
    • PaymentMode — способ оплаты
"""

from enum import Enum


class GroupStatus(str, Enum):
    """Статус жизненного цикла группы."""
    PENDING = "Pending"
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    SUSPENDED = "Suspended"


class OrganizationType(str, Enum):
    """Юридическая форма организации."""
    TRUST = "Trust"
    SOCIETY = "Society"
    PRIVATE_LIMITED = "Private Limited"
    GOVERNMENT = "Government"
    UNIVERSITY = "University"
    NGO = "NGO"


class Board(str, Enum):
    """Образовательный совет (board), к которому аффилирована группа."""
    CBSE = "CBSE"
    ICSE = "ICSE"
    STATE_BOARD = "State Board"
    IGCSE = "IGCSE"
    IB = "IB"


class PlanType(str, Enum):
    FREE = "Free"
    STANDARD = "Standard"
    ENTERPRISE = "Enterprise"


class PaymentMode(str, Enum):
    ONLINE = "Online"
    INVOICE = "Invoice"
    UPI = "UPI"
    NEFT = "NEFT"


def values(enum_cls: type[Enum]) -> list[str]:
    """Список строковых значений enum'а в порядке объявления."""
    return [member.value for member in enum_cls]
