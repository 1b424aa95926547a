"""Administração de usuários."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from celulas_service import errors, schemas
from celulas_service.db import get_db
from celulas_service.deps import get_current_user, require
from celulas_service.models import Cell, CellLeader, User
from celulas_service.roles import Action, Role, UserStatus
from celulas_service.routers.auth import is_valid_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


def _summary(user: User) -> schemas.UserSummary:
    return schemas.UserSummary(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        status=user.status,
        cell_id=user.cell_id,
        cell_name=user.cell.name if user.cell else None,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _load_user(db: Session, user_id: str) -> User:
    user = db.query(User).options(joinedload(User.cell)).filter(User.id == user_id).first()
    if not user:
        raise errors.NotFoundError("Usuário não encontrado")
    return user


def _check_role_change(db: Session, user: User, new_role: Role) -> None:
    """Recusa rebaixamentos que deixariam o usuário supervisionando ou liderando sem o papel exigido."""
    if not new_role.at_least(Role.SUPERVISOR):
        if db.query(Cell.id).filter(Cell.supervisor_id == user.id).first():
            logger.warning(f"Rebaixamento de {user.id} para {new_role.value} recusado: ainda supervisiona células.")
            raise errors.ValidationError("Usuário ainda supervisiona células; remova a supervisão antes de alterar o papel")
    if new_role is Role.MEMBRO:
        if db.query(CellLeader.user_id).filter(CellLeader.user_id == user.id).first():
            logger.warning(f"Rebaixamento de {user.id} para MEMBRO recusado: ainda lidera células.")
            raise errors.ValidationError("Usuário ainda lidera células; remova a liderança antes de rebaixá-lo a MEMBRO")


@router.get("", response_model=List[schemas.UserSummary])
def list_users(
    role: Optional[Role] = None,
    user_status: Optional[UserStatus] = Query(None, alias="status"),
    without_cell: bool = False,
    search: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Lista usuários com filtros opcionais. `without_cell=true` devolve apenas
    quem ainda não pertence a nenhuma célula (candidatos a membro).
    """
    require(current_user, Action.LIST_USERS)

    query = db.query(User).options(joinedload(User.cell))
    if role is not None:
        query = query.filter(User.role == role)
    if user_status is not None:
        query = query.filter(User.status == user_status)
    if without_cell:
        query = query.filter(User.cell_id.is_(None))
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(User.name.ilike(pattern) | User.email.ilike(pattern))

    return [_summary(u) for u in query.order_by(User.name.asc()).all()]


@router.get("/{user_id}", response_model=schemas.UserSummary)
def get_user(user_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    require(current_user, Action.LIST_USERS)
    return _summary(_load_user(db, user_id))


@router.put("/{user_id}", response_model=schemas.UserSummary)
def update_user(
    user_id: str,
    user_in: schemas.UserAdminUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Atualiza nome, email, papel ou status. A célula do usuário não é alterada
    aqui: a membresia muda apenas pelas rotas de membros da célula.
    """
    require(current_user, Action.MANAGE_USERS)
    user = _load_user(db, user_id)

    if user.id == current_user.id and (
        (user_in.role is not None and user_in.role != user.role)
        or (user_in.status is not None and user_in.status != user.status)
    ):
        raise errors.ValidationError("Não é possível alterar o próprio papel ou status")

    if user_in.name is not None:
        name = user_in.name.strip()
        if not name:
            raise errors.ValidationError("Nome é obrigatório")
        user.name = name

    if user_in.email is not None:
        email = user_in.email.strip().lower()
        if not is_valid_email(email):
            raise errors.ValidationError("Email inválido")
        taken = db.query(User.id).filter(User.email == email, User.id != user.id).first()
        if taken:
            raise errors.ConflictError("Email já está em uso")
        user.email = email

    if user_in.role is not None and user_in.role != user.role:
        _check_role_change(db, user, user_in.role)
        user.role = user_in.role
    if user_in.status is not None:
        user.status = user_in.status

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise errors.ConflictError("Email já está em uso")
    db.refresh(user)

    logger.info(f"Usuário {user.id} atualizado por {current_user.id}.")
    return _summary(user)


@router.delete("/{user_id}", response_model=schemas.MessageResponse)
def deactivate_user(user_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Desativa o usuário. Usuários nunca são apagados."""
    require(current_user, Action.MANAGE_USERS)
    user = _load_user(db, user_id)

    if user.id == current_user.id:
        raise errors.ValidationError("Não é possível desativar o próprio usuário")

    user.status = UserStatus.INACTIVE
    db.commit()
    logger.info(f"Usuário {user.id} desativado por {current_user.id}.")
    return schemas.MessageResponse(message="Usuário desativado com sucesso")
