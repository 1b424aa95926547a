"""Painel inicial: células visíveis, totais e estatísticas de oração."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from celulas_service import schemas
from celulas_service.config import Settings
from celulas_service.db import get_db
from celulas_service.deps import get_current_user, get_settings
from celulas_service.models import User
from celulas_service.queries import cell_views, prayer_stats, public_user, today, visible_cells

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("", response_model=schemas.Dashboard)
def get_dashboard(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    cells = cell_views(db, visible_cells(db, current_user))
    return schemas.Dashboard(
        user=public_user(current_user),
        cells=cells,
        total_cells=len(cells),
        total_members=sum(c.member_count for c in cells),
        prayers=prayer_stats(db, current_user.id, today(settings)),
    )
