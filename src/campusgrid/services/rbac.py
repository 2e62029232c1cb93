"""
campusgrid/services/rbac.py — RBAC операторов консоли.

Содержит иерархию ролей и permissions действий над группами.
Используется StatusMachine на клиенте и sandbox-сервером на сервере.
"""

from __future__ import annotations

import logging

from campusgrid.models.operator import OperatorRole

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Иерархия ролей
# ═══════════════════════════════════════════════════════════════════════════════

ROLE_HIERARCHY: dict[str, int] = {
    OperatorRole.VIEWER: 0,
    OperatorRole.OPERATOR: 1,
    OperatorRole.SUPERADMIN: 2,
}


# ═══════════════════════════════════════════════════════════════════════════════
# Permissions
# ═══════════════════════════════════════════════════════════════════════════════

GROUP_PERMISSIONS: dict[str, OperatorRole] = {
    "group.read": OperatorRole.VIEWER,
    "group.create": OperatorRole.OPERATOR,
    "group.activate": OperatorRole.OPERATOR,
    "group.suspend": OperatorRole.SUPERADMIN,
    "group.deactivate": OperatorRole.SUPERADMIN,
    "group.reinstate": OperatorRole.SUPERADMIN,
    "group.reopen": OperatorRole.SUPERADMIN,
}


# ═══════════════════════════════════════════════════════════════════════════════
# Вспомогательные функции
# ═══════════════════════════════════════════════════════════════════════════════

def parse_role(role: OperatorRole | str | None) -> OperatorRole | None:
    """Роль консоли по имени; None, если роль не распознана."""
    if role is None or isinstance(role, OperatorRole):
        return role
    try:
        return OperatorRole(str(role).strip().lower())
    except ValueError:
        return None


def has_role(role: OperatorRole | str | None, required_role: OperatorRole | str) -> bool:
    """Проверяет, имеет ли роль достаточный уровень. Неизвестная роль — viewer."""
    user_level = ROLE_HIERARCHY.get(parse_role(role) or OperatorRole.VIEWER, 0)
    required_level = ROLE_HIERARCHY.get(required_role, 0)
    return user_level >= required_level


def has_permission(role: OperatorRole | str | None, permission: str) -> bool:
    """Проверяет, разрешено ли роли указанное действие."""
    required_role = GROUP_PERMISSIONS.get(permission)
    if required_role is None:
        logger.warning("Unknown permission requested: %s", permission)
        return False
    return has_role(role, required_role)


def required_role_for(permission: str) -> OperatorRole | None:
    return GROUP_PERMISSIONS.get(permission)
