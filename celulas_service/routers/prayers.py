"""Registro diário de oração e estatísticas."""

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query, Response, status
from prometheus_client import Counter
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from celulas_service import errors, schemas
from celulas_service.config import Settings
from celulas_service.db import get_db
from celulas_service.deps import get_current_user, get_settings, require
from celulas_service.models import PrayerLog, User
from celulas_service.queries import cell_scope, find_cell, prayer_history, prayer_stats, public_user, today
from celulas_service.roles import Action

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/prayers", tags=["Prayers"])

PRAYER_LOGGED_COUNT = Counter("celulas_prayers_logged_total", "Orações diárias registradas")

MAX_HISTORY_DAYS = 366


def _has_prayed(db: Session, user_id: str, on: date) -> bool:
    found = db.query(PrayerLog.id).filter(
        PrayerLog.user_id == user_id, PrayerLog.prayer_date == on
    ).first()
    return found is not None


def _log_daily(db: Session, user: User, settings: Settings, response: Response) -> schemas.PrayerLogResponse:
    log_date = today(settings)
    user_id = user.id

    if _has_prayed(db, user_id, log_date):
        response.status_code = status.HTTP_200_OK
        return schemas.PrayerLogResponse(
            message="Oração de hoje já registrada", already_logged=True, log_date=log_date
        )

    try:
        db.add(PrayerLog(user_id=user_id, prayer_date=log_date))
        db.commit()
    except IntegrityError:
        # Outra requisição registrou o mesmo dia entre a consulta e o insert
        db.rollback()
        logger.info(f"Registro de oração concorrente para {user_id} em {log_date}.")
        response.status_code = status.HTTP_200_OK
        return schemas.PrayerLogResponse(
            message="Oração de hoje já registrada", already_logged=True, log_date=log_date
        )

    PRAYER_LOGGED_COUNT.inc()
    logger.info(f"Oração registrada para {user_id} em {log_date}.")
    response.status_code = status.HTTP_201_CREATED
    return schemas.PrayerLogResponse(
        message="Oração registrada com sucesso", already_logged=False, log_date=log_date
    )


@router.post("/log-daily", response_model=schemas.PrayerLogResponse, status_code=status.HTTP_201_CREATED)
def log_daily_prayer(
    response: Response,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Registra a oração de hoje. Idempotente por dia: a segunda chamada
    responde 200 com already_logged=true e não grava nada.
    """
    return _log_daily(db, current_user, settings, response)


@router.post("", response_model=schemas.PrayerLogResponse, status_code=status.HTTP_201_CREATED)
def log_prayer_legacy(
    response: Response,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Rota antiga, mantida para clientes que ainda usam POST /prayers."""
    return _log_daily(db, current_user, settings, response)


@router.get("/status-today", response_model=schemas.PrayerStatus)
def status_today(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return schemas.PrayerStatus(has_prayed=_has_prayed(db, current_user.id, today(settings)))


@router.get("/stats", response_model=schemas.PrayerStats)
def my_prayer_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return prayer_stats(db, current_user.id, today(settings))


@router.get("/my-stats", response_model=schemas.PrayerHistory)
def my_prayer_history(
    days: int = Query(30, ge=1, le=MAX_HISTORY_DAYS),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return prayer_history(db, current_user.id, today(settings), days)


@router.get("/stats/{user_id}", response_model=schemas.MemberPrayerStats)
def member_prayer_stats(
    user_id: str,
    days: int = Query(30, ge=1, le=MAX_HISTORY_DAYS),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Estatísticas de outro usuário, para quem lidera ou supervisiona a célula dele."""
    target = db.query(User).filter(User.id == user_id).first()
    if not target:
        raise errors.NotFoundError("Usuário não encontrado")

    if target.id != current_user.id:
        cell = find_cell(db, target.cell_id) if target.cell_id else None
        require(current_user, Action.VIEW_PRAYER_STATS, cell_scope(db, cell) if cell else None)

    return schemas.MemberPrayerStats(
        user=public_user(target),
        stats=prayer_history(db, target.id, today(settings), days),
    )
