"""
campusgrid/sandbox/api/auth.py — Эндпоинты аутентификации оператора (sandbox).

    POST /api/auth/login   — email + пароль → JWT
    GET  /api/auth/me      — текущий оператор
    POST /api/auth/logout  — отзыв токена
"""

from fastapi import APIRouter, Body, Depends, Request

from campusgrid.exceptions import AuthError
from campusgrid.models.operator import Operator
from campusgrid.sandbox.security import create_access_token, get_current_operator

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", summary="Вход оператора по email + пароль → JWT-токен")
async def login(request: Request, email: str = Body(...), password: str = Body(...)):
    """Аутентификация: email + пароль → ``{token, admin}``."""
    store = request.app.state.store
    operator = store.authenticate(email, password)
    if operator is None:
        raise AuthError("Invalid email or password")
    token = create_access_token(operator, store.settings)
    return {"success": True, "data": {"token": token, "admin": operator.to_wire()}}


@router.get("/me", summary="Текущий оператор")
async def me(operator: Operator = Depends(get_current_operator)):
    return {"success": True, "data": operator.to_wire()}


@router.post("/logout", summary="Выход: отзыв текущего токена")
async def logout(request: Request, operator: Operator = Depends(get_current_operator)):
    request.app.state.store.revoke(request.state.token_claims.get("jti"))
    return {"success": True, "message": "Logged out"}
