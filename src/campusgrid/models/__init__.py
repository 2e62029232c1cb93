"""
campusgrid.models — Модели данных домена онбординга.

Реэкспорт основных классов для удобства:
    from campusgrid.models import GroupDraft, Group, GroupStatus
"""

from campusgrid.models.enums import (  # noqa: F401
    Board,
    GroupStatus,
    OrganizationType,
    PaymentMode,
    PlanType,
)
from campusgrid.models.group import (  # noqa: F401
    AdminCredential,
    Group,
    GroupDraft,
    OnboardingOutcome,
    OnboardingReceipt,
)
from campusgrid.models.operator import Operator, OperatorRole  # noqa: F401
