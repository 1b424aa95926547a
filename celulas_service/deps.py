"""Dependências compartilhadas pelos routers: configuração e usuário autenticado."""

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from celulas_service import errors
from celulas_service.config import Settings
from celulas_service.db import get_db
from celulas_service.models import User
from celulas_service.roles import Action, CellScope, UserStatus, authorize
from celulas_service.utils import decode_token

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    """
    Valida o Bearer token e carrega o usuário do banco.
    O papel usado na autorização é o atual do banco, não o do token.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise errors.AuthError("Token de acesso ausente ou inválido")

    payload = decode_token(credentials.credentials, settings)
    if payload is None:
        raise errors.AuthError("Token inválido ou expirado")

    user_id = payload.get("userId") or payload.get("sub")
    if not user_id:
        raise errors.AuthError("Token inválido ou expirado")

    user = db.query(User).filter(User.id == user_id).first()
    if not user or user.status != UserStatus.ACTIVE:
        logger.warning(f"Token válido para usuário inexistente ou inativo: {user_id}")
        raise errors.AuthError("Token inválido ou expirado")

    return user


def require(user: User, action: Action, scope: Optional[CellScope] = None) -> None:
    """Levanta ForbiddenError quando `authorize` nega a ação."""
    decision = authorize(user.role, user.id, action, scope)
    if not decision.allowed:
        logger.warning(f"Acesso negado: usuário {user.id} ({user.role.value}) em {action.value}: {decision.reason}")
        raise errors.ForbiddenError(decision.reason)
