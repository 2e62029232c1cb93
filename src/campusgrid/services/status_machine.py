"""
campusgrid/services/status_machine.py — Жизненный цикл статуса группы.

Состояния: Pending, Active, Inactive, Suspended. Группа всегда создаётся
в Pending; терминальных состояний и переходов по таймауту нет.

Правила (проверяются до отправки запроса):
    • Pending → Active                  — "activate", роль operator
    • X → Suspended                     — "suspend", роль superadmin
    • X → Inactive                      — "deactivate", роль superadmin
    • Suspended / Inactive → Active     — "reinstate", роль superadmin
    • X → Pending                       — "reopen", роль superadmin
    • X → X                             — no-op, запрос не нужен

Pending — только начальное состояние при создании; обратный переход
в Pending не запрещён, это административное решение.
"""

from __future__ import annotations

import logging

from campusgrid.exceptions import PermissionDeniedError, StatusTransitionError
from campusgrid.models.enums import GroupStatus
from campusgrid.models.operator import OperatorRole
from campusgrid.services import rbac

logger = logging.getLogger(__name__)

INITIAL_STATUS = GroupStatus.PENDING


def _action(current: GroupStatus, requested: GroupStatus) -> str:
    if requested is GroupStatus.ACTIVE:
        return "activate" if current is GroupStatus.PENDING else "reinstate"
    if requested is GroupStatus.SUSPENDED:
        return "suspend"
    if requested is GroupStatus.PENDING:
        return "reopen"
    return "deactivate"


class StatusMachine:
    """Проверка допустимости перехода и прав оператора на него."""

    initial = INITIAL_STATUS

    @staticmethod
    def parse(value: GroupStatus | str, current: GroupStatus | str | None = None) -> GroupStatus:
        """Строка → GroupStatus; неизвестное значение → StatusTransitionError."""
        if isinstance(value, GroupStatus):
            return value
        try:
            return GroupStatus(value)
        except ValueError:
            # Допускаем регистр, отличный от канонического ("active")
            for status in GroupStatus:
                if status.value.lower() == str(value).strip().lower():
                    return status
        raise StatusTransitionError(
            str(current.value if isinstance(current, GroupStatus) else current),
            str(value),
            "unknown status",
        )

    def action_for(self, current: GroupStatus | str, requested: GroupStatus | str) -> str | None:
        """
        Имя действия для перехода, None для no-op.

        Raises:
            StatusTransitionError: переход запрещён.
        """
        current = self.parse(current)
        requested = self.parse(requested, current)
        if current is requested:
            return None
        return _action(current, requested)

    def check(
        self,
        current: GroupStatus | str,
        requested: GroupStatus | str,
        role: OperatorRole | str | None = None,
    ) -> str | None:
        """
        Полная проверка перехода: допустимость + права роли.

        ``role=None`` или нераспознанная роль — проверку прав выполнит сервер.

        Returns:
            Имя действия или None, если статус уже совпадает.
        """
        action = self.action_for(current, requested)
        if action is None or rbac.parse_role(role) is None:
            return action
        permission = f"group.{action}"
        if not rbac.has_permission(role, permission):
            needed = rbac.required_role_for(permission)
            logger.warning("Status change denied: role=%s action=%s", role, action)
            raise PermissionDeniedError(
                f"Role '{needed.value if needed else '?'}' is required to {action} a group"
            )
        return action

    def can_transition(
        self,
        current: GroupStatus | str,
        requested: GroupStatus | str,
        role: OperatorRole | str | None = None,
    ) -> bool:
        try:
            self.check(current, requested, role)
        except (StatusTransitionError, PermissionDeniedError):
            return False
        return True

    def available_actions(
        self, current: GroupStatus | str, role: OperatorRole | str | None = None,
    ) -> dict[str, GroupStatus]:
        """Действия, доступные из текущего статуса: ``{action: target}``."""
        current = self.parse(current)
        actions: dict[str, GroupStatus] = {}
        for target in GroupStatus:
            if target is current:
                continue
            if self.can_transition(current, target, role):
                actions[_action(current, target)] = target
        return actions


__all__ = ["StatusMachine", "INITIAL_STATUS"]
