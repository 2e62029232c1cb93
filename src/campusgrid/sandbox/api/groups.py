"""
campusgrid/sandbox/api/groups.py — Эндпоинты школьных групп (sandbox).

Эмулирует REST-контракт платформы:
    GET   /api/groups        — список групп
    POST  /api/groups        — онбординг (создание в статусе Pending)
    GET   /api/groups/{id}   — одна группа
    PATCH /api/groups/{id}   — смена статуса ``{status}``

Права проверяются через rbac, переходы — через ту же StatusMachine,
что и на клиенте.
"""

import logging

from fastapi import APIRouter, Body, Depends, Header, Request, status

from campusgrid.exceptions import PermissionDeniedError
from campusgrid.models.operator import Operator, OperatorRole
from campusgrid.sandbox.security import get_current_operator
from campusgrid.services import rbac
from campusgrid.services.status_machine import StatusMachine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/groups", tags=["groups"])

_machine = StatusMachine()


def _require(operator: Operator, permission: str) -> None:
    if not rbac.has_permission(operator.role, permission):
        raise PermissionDeniedError(f"Operator role '{operator.role_name}' may not perform {permission}")


@router.get("", summary="Список групп")
async def list_groups(request: Request, operator: Operator = Depends(get_current_operator)):
    _require(operator, "group.read")
    return {"success": True, "data": request.app.state.store.list_groups()}


@router.post("", status_code=status.HTTP_201_CREATED, summary="Онбординг новой группы")
async def create_group(
    request: Request,
    payload: dict = Body(...),
    idempotency_key: str | None = Header(None),
    operator: Operator = Depends(get_current_operator),
):
    """Создаёт группу; пароль администратора возвращается только в этом ответе."""
    _require(operator, "group.create")
    receipt = request.app.state.store.create_group(
        payload, idempotency_key=idempotency_key, operator=operator.email,
    )
    return {"success": True, "data": receipt}


@router.get("/{group_id}", summary="Данные группы")
async def get_group(group_id: str, request: Request, operator: Operator = Depends(get_current_operator)):
    _require(operator, "group.read")
    return {"success": True, "data": request.app.state.store.get_group(group_id)}


@router.patch("/{group_id}", summary="Смена статуса группы")
async def update_group(
    group_id: str,
    request: Request,
    new_status: str = Body(..., embed=True, alias="status"),
    operator: Operator = Depends(get_current_operator),
):
    store = request.app.state.store
    group = store.get_group(group_id)
    # Сервер сам решает за нераспознанную роль: права как у viewer
    action = _machine.check(group["status"], new_status, operator.role or OperatorRole.VIEWER)
    if action is None:
        return {"success": True, "data": group}
    logger.info("Operator %s: %s group %s", operator.email, action, group_id)
    return {"success": True, "data": store.set_status(group_id, StatusMachine.parse(new_status))}
