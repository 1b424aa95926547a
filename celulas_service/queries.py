"""Consultas de leitura compartilhadas: visões de célula, escopo de posse e estatísticas de oração."""

from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session, joinedload, selectinload

from celulas_service import schemas
from celulas_service.config import Settings
from celulas_service.models import Cell, CellLeader, PrayerLog, User
from celulas_service.roles import GLOBAL_SCOPE, CellScope, Role, UserStatus


def today(settings: Settings) -> date:
    """Data de hoje no fuso horário configurado."""
    tz = timezone.utc if settings.app_timezone.upper() == "UTC" else ZoneInfo(settings.app_timezone)
    return datetime.now(tz).date()


def public_user(user: User) -> schemas.PublicUser:
    return schemas.PublicUser(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        status=user.status,
        cell_id=user.cell_id,
        cell_name=user.cell.name if user.cell else None,
    )


# --- Células ---

def cell_scope(db: Session, cell: Cell) -> CellScope:
    leader_ids = db.query(CellLeader.user_id).filter(CellLeader.cell_id == cell.id).all()
    member_ids = db.query(User.id).filter(User.cell_id == cell.id).all()
    return CellScope(
        cell_id=cell.id,
        supervisor_id=cell.supervisor_id,
        leader_ids=frozenset(row[0] for row in leader_ids),
        member_ids=frozenset(row[0] for row in member_ids),
    )


def member_counts(db: Session, cell_ids: Iterable[str]) -> Dict[str, int]:
    """Conta apenas membros ACTIVE de cada célula."""
    cell_ids = list(cell_ids)
    if not cell_ids:
        return {}
    rows = db.query(User.cell_id, func.count(User.id)).filter(
        User.cell_id.in_(cell_ids),
        User.status == UserStatus.ACTIVE,
    ).group_by(User.cell_id).all()
    return {cell_id: count for cell_id, count in rows}


def cell_views(db: Session, cells: List[Cell]) -> List[schemas.CellView]:
    counts = member_counts(db, (c.id for c in cells))
    return [
        schemas.CellView(
            id=cell.id,
            name=cell.name,
            description=cell.description,
            supervisor_id=cell.supervisor_id,
            supervisor_name=cell.supervisor.name if cell.supervisor else None,
            secretary_id=cell.secretary_id,
            secretary_name=cell.secretary.name if cell.secretary else None,
            member_count=counts.get(cell.id, 0),
            leaders=[schemas.LeaderInfo.model_validate(leader) for leader in cell.leaders],
            created_at=cell.created_at,
            updated_at=cell.updated_at,
        )
        for cell in cells
    ]


def cell_view(db: Session, cell: Cell) -> schemas.CellView:
    return cell_views(db, [cell])[0]


def visible_cells(db: Session, user: User) -> List[Cell]:
    """Células que o usuário enxerga no dashboard, conforme o papel."""
    query = db.query(Cell).options(
        joinedload(Cell.supervisor),
        joinedload(Cell.secretary),
        selectinload(Cell.leaders),
    )

    if user.role.at_least(GLOBAL_SCOPE):
        pass
    elif user.role is Role.SUPERVISOR:
        led = select(CellLeader.cell_id).where(CellLeader.user_id == user.id)
        query = query.filter((Cell.supervisor_id == user.id) | Cell.id.in_(led))
    elif user.role is Role.LIDER:
        led = select(CellLeader.cell_id).where(CellLeader.user_id == user.id)
        query = query.filter(Cell.id.in_(led))
    else:
        if not user.cell_id:
            return []
        query = query.filter(Cell.id == user.cell_id)

    return query.order_by(Cell.name.asc()).all()


# --- Orações ---

def prayer_stats(db: Session, user_id: str, on: date) -> schemas.PrayerStats:
    """
    Contagens de oração do usuário relativas ao dia `on`.

    week: últimos 7 dias corridos incluindo hoje; month: desde o dia 1 do mês.
    """
    week_start = on - timedelta(days=6)
    month_start = on.replace(day=1)

    total, week, month, today_count, last_date, first_date = db.query(
        func.count(PrayerLog.id),
        func.sum(case((PrayerLog.prayer_date >= week_start, 1), else_=0)),
        func.sum(case((PrayerLog.prayer_date >= month_start, 1), else_=0)),
        func.sum(case((PrayerLog.prayer_date == on, 1), else_=0)),
        func.max(PrayerLog.prayer_date),
        func.min(PrayerLog.prayer_date),
    ).filter(
        PrayerLog.user_id == user_id,
        PrayerLog.prayer_date <= on,
    ).one()

    return schemas.PrayerStats(
        prayed_today=bool(today_count),
        week=int(week or 0),
        month=int(month or 0),
        total=int(total or 0),
        last_prayer_date=last_date,
        first_prayer_date=first_date,
    )


def prayer_history(db: Session, user_id: str, on: date, days: int) -> schemas.PrayerHistory:
    since = on - timedelta(days=days - 1)
    dates = [
        row[0]
        for row in db.query(PrayerLog.prayer_date).filter(
            PrayerLog.user_id == user_id,
            PrayerLog.prayer_date >= since,
            PrayerLog.prayer_date <= on,
        ).order_by(PrayerLog.prayer_date.desc()).all()
    ]
    stats = prayer_stats(db, user_id, on)
    return schemas.PrayerHistory(**stats.model_dump(), days=days, recent=len(dates), history=dates)


def recent_prayer_counts(db: Session, user_ids: Iterable[str], on: date, days: int = 30) -> Dict[str, tuple]:
    """{user_id: (quantidade nos últimos `days` dias, última data)} para a lista de membros."""
    user_ids = list(user_ids)
    if not user_ids:
        return {}
    since = on - timedelta(days=days - 1)
    rows = db.query(
        PrayerLog.user_id, func.count(PrayerLog.id), func.max(PrayerLog.prayer_date)
    ).filter(
        PrayerLog.user_id.in_(user_ids),
        PrayerLog.prayer_date >= since,
    ).group_by(PrayerLog.user_id).all()
    return {user_id: (count, last) for user_id, count, last in rows}


def find_cell(db: Session, cell_id: str) -> Optional[Cell]:
    return db.query(Cell).filter(Cell.id == cell_id).first()
