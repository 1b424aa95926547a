"""Registro e login de usuários."""

import logging

from fastapi import APIRouter, Depends, status
from prometheus_client import Counter
from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from celulas_service import errors, schemas
from celulas_service.config import Settings
from celulas_service.db import get_db
from celulas_service.deps import get_settings
from celulas_service.models import User
from celulas_service.queries import public_user
from celulas_service.roles import Role, UserStatus
from celulas_service.utils import get_password_hash, token_for_user, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

REGISTRATION_COUNT = Counter("celulas_users_registered_total", "Usuários registrados")
LOGIN_FAILED_COUNT = Counter("celulas_login_failures_total", "Tentativas de login recusadas")

_EMAIL_ADAPTER = TypeAdapter(EmailStr)
MIN_PASSWORD_LENGTH = 6

# Mesma resposta para email inexistente, senha errada e usuário inativo
INVALID_CREDENTIALS = "Credenciais inválidas"


def is_valid_email(email: str) -> bool:
    """Valida o formato com o EmailStr do pydantic; o handler responde com a própria mensagem 400."""
    try:
        _EMAIL_ADAPTER.validate_python(email)
    except PydanticValidationError:
        return False
    return True


@router.post("/register", response_model=schemas.AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: schemas.RegisterRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Registra um novo usuário com papel MEMBRO.
    Retorna o token de acesso e os dados públicos do usuário.
    """
    name = (payload.name or "").strip()
    email = (payload.email or "").strip().lower()
    password = payload.password or ""

    if not name or not email or not password:
        raise errors.ValidationError("Nome, email e senha são obrigatórios")
    if not is_valid_email(email):
        raise errors.ValidationError("Email inválido")
    if payload.confirm_password is not None and payload.confirm_password != password:
        raise errors.ValidationError("As senhas não coincidem")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise errors.ValidationError(f"Senha deve ter pelo menos {MIN_PASSWORD_LENGTH} caracteres")

    logger.info(f"Tentativa de registro para o email: {email}")
    if db.query(User.id).filter(User.email == email).first():
        logger.warning(f"Registro recusado: email {email} já existe.")
        raise errors.ConflictError("Email já está em uso")

    new_user = User(
        name=name,
        email=email,
        password_hash=get_password_hash(password, settings.bcrypt_rounds),
        role=Role.MEMBRO,
        status=UserStatus.ACTIVE,
    )

    try:
        db.add(new_user)
        db.commit()
    except IntegrityError:
        # Registro concorrente com o mesmo email
        db.rollback()
        logger.warning(f"Registro recusado por restrição única: {email}")
        raise errors.ConflictError("Email já está em uso")
    db.refresh(new_user)

    REGISTRATION_COUNT.inc()
    logger.info(f"Usuário criado com ID: {new_user.id} para o email: {email}")

    return schemas.AuthResponse(
        message="Usuário criado com sucesso",
        token=token_for_user(new_user, settings),
        user=public_user(new_user),
    )


@router.post("/login", response_model=schemas.AuthResponse)
def login(
    payload: schemas.LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Autentica por email e senha e devolve um JWT com {userId, role}.
    """
    email = (payload.email or "").strip().lower()
    password = payload.password or ""
    if not email or not password:
        raise errors.ValidationError("Email e senha são obrigatórios")

    logger.info(f"Tentativa de login para: {email}")
    user = db.query(User).filter(User.email == email).first()

    if not user or not verify_password(password, user.password_hash) or user.status != UserStatus.ACTIVE:
        LOGIN_FAILED_COUNT.inc()
        logger.warning(f"Login recusado para: {email}")
        raise errors.AuthError(INVALID_CREDENTIALS)

    logger.info(f"Login bem-sucedido para user_id: {user.id}")
    return schemas.AuthResponse(
        message="Login realizado com sucesso",
        token=token_for_user(user, settings),
        user=public_user(user),
    )
