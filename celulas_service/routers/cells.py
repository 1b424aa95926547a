"""Células: CRUD, membros, líderes, supervisor e secretário."""

import logging
from typing import List

from fastapi import APIRouter, Depends, status
from prometheus_client import Counter
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from celulas_service import errors, schemas
from celulas_service.config import Settings
from celulas_service.db import get_db
from celulas_service.deps import get_current_user, get_settings, require
from celulas_service.models import Cell, CellLeader, User
from celulas_service.queries import (
    cell_scope, cell_view, cell_views, find_cell, recent_prayer_counts, today, visible_cells
)
from celulas_service.roles import GLOBAL_SCOPE, Action, Role, UserStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cells", tags=["Cells"])

CELL_CREATED_COUNT = Counter("celulas_cells_created_total", "Células criadas")
MEMBER_ADDED_COUNT = Counter("celulas_members_added_total", "Membros adicionados a células")


# --- Auxiliares ---

def _load_cell(db: Session, cell_id: str) -> Cell:
    cell = find_cell(db, cell_id)
    if not cell:
        logger.warning(f"Célula não encontrada: {cell_id}")
        raise errors.NotFoundError("Célula não encontrada")
    return cell


def _load_user(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise errors.NotFoundError("Usuário não encontrado")
    return user


def _check_name_available(db: Session, name: str, exclude_id: str = None) -> None:
    query = db.query(Cell.id).filter(Cell.name == name)
    if exclude_id:
        query = query.filter(Cell.id != exclude_id)
    if query.first():
        raise errors.ConflictError("Já existe uma célula com este nome")


def _demote_if_no_leadership(db: Session, user: User) -> None:
    """Um LIDER que não lidera mais nenhuma célula volta a ser MEMBRO."""
    if user.role is not Role.LIDER:
        return
    db.flush()
    if db.query(CellLeader).filter(CellLeader.user_id == user.id).count() == 0:
        user.role = Role.MEMBRO
        logger.info(f"Usuário {user.id} rebaixado para MEMBRO (sem lideranças).")


def _members(db: Session, cell: Cell, settings: Settings, exclude_id: str = None) -> List[schemas.CellMember]:
    query = db.query(User).filter(User.cell_id == cell.id, User.status == UserStatus.ACTIVE)
    if exclude_id:
        query = query.filter(User.id != exclude_id)
    users = query.order_by(User.name.asc()).all()

    leader_ids = {row[0] for row in db.query(CellLeader.user_id).filter(CellLeader.cell_id == cell.id).all()}
    prayers = recent_prayer_counts(db, (u.id for u in users), today(settings))

    members = [
        schemas.CellMember(
            id=u.id,
            name=u.name,
            email=u.email,
            phone=u.phone,
            whatsapp=u.whatsapp,
            role=u.role,
            is_leader=u.id in leader_ids,
            is_secretary=u.id == cell.secretary_id,
            prayer_count=prayers.get(u.id, (0, None))[0],
            last_prayer=prayers.get(u.id, (0, None))[1],
        )
        for u in users
    ]
    # Líderes primeiro, depois ordem alfabética
    members.sort(key=lambda m: not m.is_leader)
    return members


def _commit(db: Session, conflict_message: str) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(f"Erro de integridade: {conflict_message}")
        raise errors.ConflictError(conflict_message)


# --- Listagens ---

@router.get("", response_model=List[schemas.CellView])
def list_cells(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Lista as células visíveis para o usuário:
    COORDENADOR ou acima vê todas, SUPERVISOR as que supervisiona,
    LIDER as que lidera e MEMBRO apenas a própria.
    """
    require(current_user, Action.LIST_CELLS)
    return cell_views(db, visible_cells(db, current_user))


@router.get("/list", response_model=List[schemas.CellOption])
def list_cell_options(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Lista resumida (id, nome) para seletores."""
    require(current_user, Action.LIST_CELLS)
    return [schemas.CellOption.model_validate(c) for c in visible_cells(db, current_user)]


@router.get("/my-cell/members", response_model=List[schemas.CellMember])
def my_cell_members(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Membros da célula do próprio usuário (sem incluir ele mesmo)."""
    if not current_user.cell_id:
        return []
    cell = _load_cell(db, current_user.cell_id)
    return _members(db, cell, settings, exclude_id=current_user.id)


# --- CRUD ---

@router.post("", response_model=schemas.CellResponse, status_code=status.HTTP_201_CREATED)
def create_cell(
    cell_in: schemas.CellCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Cria uma célula com seus líderes numa única transação.
    Um SUPERVISOR que não informa supervisor passa a supervisionar a célula.
    """
    require(current_user, Action.CREATE_CELL)

    name = (cell_in.name or "").strip()
    if not name:
        raise errors.ValidationError("Nome da célula é obrigatório")
    _check_name_available(db, name)

    supervisor_id = cell_in.supervisor_id
    if supervisor_id is None and current_user.role is Role.SUPERVISOR:
        supervisor_id = current_user.id
    if supervisor_id:
        if not current_user.role.at_least(GLOBAL_SCOPE) and supervisor_id != current_user.id:
            raise errors.ForbiddenError("Supervisor só pode atribuir a si mesmo")
        supervisor = _load_user(db, supervisor_id)
        if not supervisor.role.at_least(Role.SUPERVISOR) or supervisor.status != UserStatus.ACTIVE:
            raise errors.ValidationError("Usuário não tem permissão para ser supervisor")

    leaders = []
    for leader_id in dict.fromkeys(cell_in.leader_ids):
        leader = db.query(User).filter(User.id == leader_id).first()
        if not leader or leader.status != UserStatus.ACTIVE:
            raise errors.ValidationError(f"Líder não encontrado: {leader_id}")
        leaders.append(leader)

    if cell_in.secretary_id:
        # Uma célula nova ainda não tem membros, então ninguém pode ser secretário dela
        raise errors.ValidationError("Secretário deve ser membro da célula")

    logger.info(f"Usuário {current_user.id} criando célula: {name}")
    new_cell = Cell(name=name, description=cell_in.description, supervisor_id=supervisor_id)
    db.add(new_cell)
    db.flush()

    for leader in leaders:
        db.add(CellLeader(cell_id=new_cell.id, user_id=leader.id))
        if leader.role is Role.MEMBRO:
            leader.role = Role.LIDER

    _commit(db, "Já existe uma célula com este nome")
    db.refresh(new_cell)

    CELL_CREATED_COUNT.inc()
    logger.info(f"Célula {new_cell.id} criada com {len(leaders)} líder(es).")
    return schemas.CellResponse(message="Célula criada com sucesso", cell=cell_view(db, new_cell))


@router.get("/{cell_id}", response_model=schemas.CellView)
def get_cell(cell_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    cell = _load_cell(db, cell_id)
    require(current_user, Action.VIEW_CELL, cell_scope(db, cell))
    return cell_view(db, cell)


@router.put("/{cell_id}", response_model=schemas.CellResponse)
def update_cell(
    cell_id: str,
    cell_in: schemas.CellUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    cell = _load_cell(db, cell_id)
    require(current_user, Action.UPDATE_CELL, cell_scope(db, cell))

    if cell_in.name is None and cell_in.description is None:
        raise errors.ValidationError("Nenhum campo para atualizar")

    if cell_in.name is not None:
        name = cell_in.name.strip()
        if not name:
            raise errors.ValidationError("Nome da célula é obrigatório")
        _check_name_available(db, name, exclude_id=cell.id)
        cell.name = name
    if cell_in.description is not None:
        cell.description = cell_in.description

    _commit(db, "Já existe uma célula com este nome")
    db.refresh(cell)
    logger.info(f"Célula {cell.id} atualizada por {current_user.id}.")
    return schemas.CellResponse(message="Célula atualizada com sucesso", cell=cell_view(db, cell))


@router.delete("/{cell_id}", response_model=schemas.MessageResponse)
def delete_cell(cell_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Exclui uma célula sem membros. Com membros vinculados a exclusão é recusada,
    para não deixar users.cell_id apontando para uma célula inexistente.
    """
    require(current_user, Action.DELETE_CELL)
    cell = _load_cell(db, cell_id)

    member_count = db.query(User).filter(User.cell_id == cell.id).count()
    if member_count > 0:
        logger.warning(f"Exclusão da célula {cell.id} recusada: {member_count} membro(s) vinculado(s).")
        raise errors.ValidationError(
            f"Não é possível excluir a célula. Há {member_count} membro(s) vinculado(s) a ela."
        )

    db.query(CellLeader).filter(CellLeader.cell_id == cell.id).delete(synchronize_session=False)
    db.delete(cell)
    db.commit()
    logger.info(f"Célula {cell_id} excluída por {current_user.id}.")
    return schemas.MessageResponse(message="Célula excluída com sucesso")


# --- Membros ---

@router.get("/{cell_id}/members", response_model=List[schemas.CellMember])
def get_cell_members(
    cell_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Membros ativos da célula com contagem de orações dos últimos 30 dias."""
    cell = _load_cell(db, cell_id)
    require(current_user, Action.VIEW_MEMBERS, cell_scope(db, cell))
    return _members(db, cell, settings)


@router.post("/{cell_id}/members", response_model=schemas.CellResponse)
def add_member(
    cell_id: str,
    member_in: schemas.UserRef,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Adiciona um usuário à célula. Quem já pertence a outra célula precisa ser
    removido de lá antes; a membresia anterior nunca é sobrescrita.
    """
    cell = _load_cell(db, cell_id)
    require(current_user, Action.ADD_MEMBER, cell_scope(db, cell))

    if not member_in.user_id:
        raise errors.ValidationError("ID do usuário é obrigatório")
    user = _load_user(db, member_in.user_id)

    if user.status != UserStatus.ACTIVE:
        raise errors.ValidationError("Usuário inativo")
    if user.cell_id:
        logger.warning(f"Usuário {user.id} já pertence à célula {user.cell_id}; inclusão em {cell.id} recusada.")
        raise errors.ValidationError("Usuário já pertence a uma célula")

    user.cell_id = cell.id
    db.commit()
    db.refresh(cell)

    MEMBER_ADDED_COUNT.inc()
    logger.info(f"Usuário {user.id} adicionado à célula {cell.id} por {current_user.id}.")
    return schemas.CellResponse(message="Membro adicionado com sucesso", cell=cell_view(db, cell))


@router.delete("/{cell_id}/members/{user_id}", response_model=schemas.MessageResponse)
def remove_member(
    cell_id: str,
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    cell = _load_cell(db, cell_id)
    scope = cell_scope(db, cell)
    require(current_user, Action.REMOVE_MEMBER, scope)

    user = _load_user(db, user_id)
    if user.cell_id != cell.id:
        raise errors.ValidationError("Usuário não pertence a esta célula")

    if user.id == current_user.id and scope.leader_ids == {user.id}:
        raise errors.ValidationError("Não é possível remover o único líder da célula")

    db.query(CellLeader).filter(
        CellLeader.cell_id == cell.id, CellLeader.user_id == user.id
    ).delete(synchronize_session=False)
    if cell.secretary_id == user.id:
        cell.secretary_id = None
    user.cell_id = None
    _demote_if_no_leadership(db, user)

    db.commit()
    logger.info(f"Usuário {user.id} removido da célula {cell.id} por {current_user.id}.")
    return schemas.MessageResponse(message="Membro removido da célula com sucesso")


# --- Liderança, supervisão e secretaria ---

@router.post("/{cell_id}/leaders", response_model=schemas.CellResponse)
def assign_leader(
    cell_id: str,
    leader_in: schemas.UserRef,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Designa um líder. Um MEMBRO designado é promovido a LIDER."""
    cell = _load_cell(db, cell_id)
    require(current_user, Action.ASSIGN_LEADER, cell_scope(db, cell))

    if not leader_in.user_id:
        raise errors.ValidationError("ID do usuário é obrigatório")
    user = _load_user(db, leader_in.user_id)
    if user.status != UserStatus.ACTIVE:
        raise errors.ValidationError("Usuário inativo")

    existing = db.query(CellLeader).filter(
        CellLeader.cell_id == cell.id, CellLeader.user_id == user.id
    ).first()
    if existing:
        raise errors.ConflictError("Usuário já é líder desta célula")

    db.add(CellLeader(cell_id=cell.id, user_id=user.id))
    if user.role is Role.MEMBRO:
        user.role = Role.LIDER

    _commit(db, "Usuário já é líder desta célula")
    db.refresh(cell)
    logger.info(f"Usuário {user.id} designado líder da célula {cell.id}.")
    return schemas.CellResponse(message="Líder designado com sucesso", cell=cell_view(db, cell))


@router.delete("/{cell_id}/leaders/{user_id}", response_model=schemas.MessageResponse)
def remove_leader(
    cell_id: str,
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    cell = _load_cell(db, cell_id)
    require(current_user, Action.REMOVE_LEADER, cell_scope(db, cell))

    link = db.query(CellLeader).filter(
        CellLeader.cell_id == cell.id, CellLeader.user_id == user_id
    ).first()
    if not link:
        raise errors.NotFoundError("Usuário não é líder desta célula")

    db.delete(link)
    user = _load_user(db, user_id)
    _demote_if_no_leadership(db, user)

    db.commit()
    logger.info(f"Usuário {user_id} removido da liderança da célula {cell.id}.")
    return schemas.MessageResponse(message="Líder removido com sucesso")


@router.put("/{cell_id}/supervisor", response_model=schemas.CellResponse)
def assign_supervisor(
    cell_id: str,
    supervisor_in: schemas.SupervisorAssign,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Define (ou remove, com null) o supervisor da célula."""
    require(current_user, Action.ASSIGN_SUPERVISOR)
    cell = _load_cell(db, cell_id)

    if supervisor_in.supervisor_id is None:
        cell.supervisor_id = None
        message = "Supervisor removido com sucesso"
    else:
        user = _load_user(db, supervisor_in.supervisor_id)
        if not user.role.at_least(Role.SUPERVISOR) or user.status != UserStatus.ACTIVE:
            raise errors.ValidationError("Usuário não tem permissão para ser supervisor")
        cell.supervisor_id = user.id
        message = "Supervisor designado com sucesso"

    db.commit()
    db.refresh(cell)
    logger.info(f"Supervisor da célula {cell.id} alterado para {cell.supervisor_id}.")
    return schemas.CellResponse(message=message, cell=cell_view(db, cell))


@router.put("/{cell_id}/secretary", response_model=schemas.CellResponse)
def assign_secretary(
    cell_id: str,
    secretary_in: schemas.SecretaryAssign,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Define (ou remove, com null) o secretário. Ele precisa ser membro atual da célula."""
    cell = _load_cell(db, cell_id)
    require(current_user, Action.ASSIGN_SECRETARY, cell_scope(db, cell))

    if secretary_in.secretary_id is None:
        cell.secretary_id = None
        message = "Secretário removido com sucesso"
    else:
        user = _load_user(db, secretary_in.secretary_id)
        if user.cell_id != cell.id or user.status != UserStatus.ACTIVE:
            logger.warning(f"Secretário recusado: usuário {user.id} não é membro da célula {cell.id}.")
            raise errors.ValidationError("Secretário deve ser membro da célula")
        cell.secretary_id = user.id
        message = "Secretário designado com sucesso"

    db.commit()
    db.refresh(cell)
    logger.info(f"Secretário da célula {cell.id} alterado para {cell.secretary_id}.")
    return schemas.CellResponse(message=message, cell=cell_view(db, cell))
