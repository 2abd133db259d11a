from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from fastapi import HTTPException, Request

from deskforms.config import Settings

USER_ID_HEADER = "X-User-Id"
USER_ROLE_HEADER = "X-User-Role"


@dataclass(frozen=True)
class Identity:
    user_id: int
    role: str


class AuthProvider(Protocol):
    def current_identity(self, request: Request) -> Identity: ...


class NoAuthProvider:
    """Single local operator; used when the service runs behind no gateway."""

    def current_identity(self, request: Request) -> Identity:
        return Identity(user_id=1, role="admin")


class HeaderAuthProvider:
    """Trusts the identity headers set by an upstream proxy."""

    def current_identity(self, request: Request) -> Identity:
        raw_id = request.headers.get(USER_ID_HEADER, "").strip()
        if not raw_id:
            raise HTTPException(status_code=401, detail="Autenticação necessária")
        try:
            user_id = int(raw_id)
        except ValueError as exc:
            raise HTTPException(status_code=401, detail="Identificação de usuário inválida") from exc
        role = request.headers.get(USER_ROLE_HEADER, "").strip() or "user"
        return Identity(user_id=user_id, role=role)


def get_auth_provider(settings: Settings) -> AuthProvider:
    if settings.auth_mode == "header":
        return HeaderAuthProvider()
    if settings.auth_mode != "none":
        raise ValueError(f"unknown auth mode: {settings.auth_mode}")
    return NoAuthProvider()


def operator_guard(request: Request) -> Identity:
    identity = request.app.state.auth_provider.current_identity(request)
    request.state.identity = identity
    return identity
