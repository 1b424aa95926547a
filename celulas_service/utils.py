"""Funções utilitárias de autenticação: hash de senha (bcrypt) e tokens JWT."""

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from celulas_service.config import Settings

logger = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def _pwd_context(rounds: int) -> CryptContext:
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verifica uma senha em texto puro contra o hash armazenado."""
    # O custo vem embutido no próprio hash; qualquer contexto serve para verificar
    return _pwd_context(12).verify(plain_password, hashed_password)


def get_password_hash(password: str, rounds: int = 12) -> str:
    """Gera o hash bcrypt de uma senha."""
    return _pwd_context(rounds).hash(password)


# --- Utilidades para Tokens JWT ---
def create_access_token(data: Dict, settings: Settings) -> str:
    """
    Gera um token JWT com os dados informados e a data de expiração.

    Args:
        data: payload a incluir no token (ex.: {'sub': user_id, 'userId': ..., 'role': ...}).
        settings: configuração com chave, algoritmo e validade.

    Returns:
        O JWT codificado.
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> Optional[Dict]:
    """
    Decodifica e valida um token JWT.

    Returns:
        O payload se a assinatura for válida e o token não tiver expirado,
        caso contrário None.
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.warning(f"Falha ao decodificar token: {e}")
        return None

    if "exp" not in payload:
        logger.warning("Token sem data de expiração rejeitado.")
        return None
    return payload


def token_for_user(user, settings: Settings) -> str:
    payload = {
        "sub": user.id,
        "userId": user.id,
        "role": user.role.value,
    }
    return create_access_token(payload, settings)
