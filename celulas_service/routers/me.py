"""Perfil do usuário autenticado."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from celulas_service import schemas
from celulas_service.db import get_db
from celulas_service.deps import get_current_user
from celulas_service.models import Cell, CellLeader, User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/me", tags=["Profile"])


def _profile(db: Session, user: User) -> schemas.Profile:
    led = db.query(CellLeader.cell_id).filter(CellLeader.user_id == user.id).all()
    supervised = db.query(Cell.id).filter(Cell.supervisor_id == user.id).all()
    is_secretary = db.query(Cell.id).filter(Cell.secretary_id == user.id).first() is not None

    profile = schemas.Profile.model_validate(user)
    profile.cell_name = user.cell.name if user.cell else None
    profile.is_cell_secretary = is_secretary
    profile.led_cell_ids = sorted(row[0] for row in led)
    profile.supervised_cell_ids = sorted(row[0] for row in supervised)
    return profile


@router.get("", response_model=schemas.Profile)
def get_me(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Perfil completo, com as células que o usuário lidera ou supervisiona."""
    return _profile(db, current_user)


@router.put("", response_model=schemas.ProfileResponse)
def update_me(
    profile_in: schemas.ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Atualiza os campos de perfil enviados. Papel, status, email e célula
    não podem ser alterados por aqui.
    """
    changes = profile_in.model_dump(exclude_unset=True)
    if "name" in changes:
        if changes["name"] is None or not changes["name"].strip():
            changes.pop("name")
        else:
            changes["name"] = changes["name"].strip()

    for field, value in changes.items():
        setattr(current_user, field, value)

    db.commit()
    db.refresh(current_user)
    logger.info(f"Perfil do usuário {current_user.id} atualizado: {sorted(changes)}")
    return schemas.ProfileResponse(message="Perfil atualizado com sucesso", user=_profile(db, current_user))
