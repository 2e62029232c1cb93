"""
campusgrid/services/group_registry.py — Реестр групп (read-реплика).

Клиентское представление удалённой коллекции групп:
    • ``refresh()``          — GET /api/groups → локальная реплика
    • ``list(...)``          — фильтр реплики по статусу и тексту
    • ``get_by_id(id)``      — GET /api/groups/{id}
    • ``set_status(id, s)``  — StatusMachine → PATCH /api/groups/{id}

Мутации не перечитывают список сами: вызывающий код решает, нужен ли
``refresh()``.

Порядок ответов: каждый list/status-запрос получает возрастающий номер;
ответ применяется к реплике, только если его номер больше последнего
применённого, и только в той же сессии, в которой запрос был отправлен.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from pydantic import ValidationError as SchemaError

from campusgrid.adapters.platform_client import PlatformClient
from campusgrid.exceptions import ApplicationError
from campusgrid.models.enums import GroupStatus
from campusgrid.models.group import Group
from campusgrid.services.status_machine import StatusMachine

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class RegistryStats:
    """Счётчики для дашборда."""

    total: int = 0
    active: int = 0
    pending: int = 0
    inactive: int = 0


class GroupRegistry:
    """Реплика групп, которой владеет одно представление списка."""

    def __init__(self, client: PlatformClient, machine: StatusMachine | None = None) -> None:
        self.client = client
        self.machine = machine or StatusMachine()
        self._groups: list[Group] = []
        self._loaded = False
        self._issued_seq = 0
        self._applied_seq = 0
        client.session.on_teardown(self.discard)

    def __repr__(self) -> str:
        return f"<GroupRegistry groups={len(self._groups)} applied_seq={self._applied_seq}>"

    @property
    def loaded(self) -> bool:
        return self._loaded

    # ═══════════════════════════════════════════════════════════════════════
    # Последовательность ответов
    # ═══════════════════════════════════════════════════════════════════════

    def _issue(self) -> tuple[int, int]:
        """Номер нового запроса и поколение сессии на момент отправки."""
        self._issued_seq += 1
        return self._issued_seq, self.client.session.generation

    def _may_apply(self, seq: int, generation: int) -> bool:
        if not self.client.session.is_current(generation):
            logger.info("Dropping response #%d from a closed operator session", seq)
            return False
        if seq <= self._applied_seq:
            logger.info("Dropping stale response #%d (already applied #%d)", seq, self._applied_seq)
            return False
        self._applied_seq = seq
        return True

    # ═══════════════════════════════════════════════════════════════════════
    # Чтение
    # ═══════════════════════════════════════════════════════════════════════

    async def refresh(self) -> list[Group]:
        """Перечитывает список групп; устаревший ответ не затирает реплику."""
        seq, generation = self._issue()
        rows = await self.client.list_groups()
        groups = [_to_group(row) for row in rows]
        if self._may_apply(seq, generation):
            self._groups = groups
            self._loaded = True
            logger.debug("Registry refreshed: %d group(s)", len(groups))
        return list(self._groups)

    def list(self, status: GroupStatus | str | None = None, search_text: str | None = None) -> list[Group]:
        """
        Фильтр реплики.

        ``search_text`` — подстрока без учёта регистра в имени, контактном
        email или поддомене (OR); затем AND со статусом. ``status`` "All"
        или None — без фильтра по статусу.
        """
        wanted = None
        if status is not None and str(getattr(status, "value", status)) != "All":
            wanted = StatusMachine.parse(status)
        needle = (search_text or "").strip()
        return [
            g for g in self._groups
            if (wanted is None or g.status is wanted) and (not needle or g.matches_text(needle))
        ]

    async def get_by_id(self, group_id: str) -> Group:
        """GET /api/groups/{id}; NotFoundError, если группы нет."""
        return _to_group(await self.client.get_group(group_id))

    def cached(self, group_id: str) -> Group | None:
        for group in self._groups:
            if group.id == group_id:
                return group
        return None

    def stats(self) -> RegistryStats:
        """Всего / Active / Pending / Inactive (+ Suspended)."""
        counts = {status: 0 for status in GroupStatus}
        for group in self._groups:
            counts[group.status] += 1
        return RegistryStats(
            total=len(self._groups),
            active=counts[GroupStatus.ACTIVE],
            pending=counts[GroupStatus.PENDING],
            inactive=counts[GroupStatus.INACTIVE] + counts[GroupStatus.SUSPENDED],
        )

    def recent(self, limit: int = 5) -> list[Group]:
        """Последние созданные группы."""
        ordered = sorted(self._groups, key=lambda g: _aware(g.created_at), reverse=True)
        return ordered[:limit]

    # ═══════════════════════════════════════════════════════════════════════
    # Мутации
    # ═══════════════════════════════════════════════════════════════════════

    async def set_status(self, group_id: str, new_status: GroupStatus | str) -> Group:
        """
        Меняет статус группы.

        1. Берёт текущий статус из реплики (или с сервера, если реплики нет).
        2. StatusMachine: запрещённый переход → StatusTransitionError без запроса.
        3. Тот же статус → no-op, возвращается неизменённая группа.
        4. PATCH; при успехе заменяет запись в реплике, при ошибке реплика
           остаётся как была, а ошибка поднимается.
        """
        current = self.cached(group_id)
        if current is None:
            current = await self.get_by_id(group_id)

        operator = self.client.session.operator
        action = self.machine.check(current.status, new_status, operator.role if operator else None)
        if action is None:
            logger.info("Group %s is already %s", group_id, current.status.value)
            return current

        target = StatusMachine.parse(new_status)
        seq, generation = self._issue()
        logger.info("Group %s: %s (%s → %s)", group_id, action, current.status.value, target.value)
        data = await self.client.update_group(group_id, {"status": target.value})

        updated = _to_group(data) if isinstance(data, dict) and data else current.model_copy(update={"status": target})
        if updated.id is None:
            updated = updated.model_copy(update={"id": group_id})

        if self._may_apply(seq, generation):
            self._replace(updated)
        return updated

    async def activate(self, group_id: str) -> Group:
        return await self.set_status(group_id, GroupStatus.ACTIVE)

    def _replace(self, group: Group) -> None:
        for i, existing in enumerate(self._groups):
            if existing.id == group.id:
                self._groups[i] = group
                return
        self._groups.append(group)

    def discard(self) -> None:
        """Выбрасывает реплику (уход со страницы списка)."""
        self._groups = []
        self._loaded = False


def _to_group(row) -> Group:
    try:
        return Group.model_validate(row)
    except SchemaError as exc:
        logger.warning("Malformed group in API response: %s", exc.errors(include_input=False))
        raise ApplicationError("Malformed group data in API response") from exc


def _aware(moment: datetime | None) -> datetime:
    if moment is None:
        return _EPOCH
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


__all__ = ["GroupRegistry", "RegistryStats"]
