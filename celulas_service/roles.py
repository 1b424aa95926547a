"""
Papéis, tabela de capacidades e a verificação de autorização.

A autorização tem duas partes: o papel mínimo global da ação e, quando a ação
exige, a posse do recurso (ser supervisor, líder ou membro da célula alvo).
"""

import enum
from dataclasses import dataclass
from typing import FrozenSet, NamedTuple, Optional


class Role(str, enum.Enum):
    """Papéis do sistema, declarados em ordem crescente de autoridade."""
    MEMBRO = "MEMBRO"
    LIDER = "LIDER"
    SUPERVISOR = "SUPERVISOR"
    COORDENADOR = "COORDENADOR"
    PASTOR = "PASTOR"
    ADMIN = "ADMIN"

    @property
    def rank(self) -> int:
        return _ORDER.index(self)

    def at_least(self, other: "Role") -> bool:
        return self.rank >= other.rank


_ORDER = list(Role)

# A partir deste papel não há verificação de posse: vê e gerencia todas as células.
GLOBAL_SCOPE = Role.COORDENADOR


class UserStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class Action(str, enum.Enum):
    LIST_CELLS = "list_cells"
    VIEW_CELL = "view_cell"
    VIEW_MEMBERS = "view_members"
    CREATE_CELL = "create_cell"
    UPDATE_CELL = "update_cell"
    DELETE_CELL = "delete_cell"
    ADD_MEMBER = "add_member"
    REMOVE_MEMBER = "remove_member"
    ASSIGN_LEADER = "assign_leader"
    REMOVE_LEADER = "remove_leader"
    ASSIGN_SUPERVISOR = "assign_supervisor"
    ASSIGN_SECRETARY = "assign_secretary"
    VIEW_PRAYER_STATS = "view_prayer_stats"
    LIST_USERS = "list_users"
    MANAGE_USERS = "manage_users"


class Rule(NamedTuple):
    minimum: Role
    ownership: bool


POLICY = {
    Action.LIST_CELLS: Rule(Role.MEMBRO, False),
    Action.VIEW_CELL: Rule(Role.MEMBRO, True),
    Action.VIEW_MEMBERS: Rule(Role.LIDER, True),
    Action.CREATE_CELL: Rule(Role.SUPERVISOR, False),
    Action.UPDATE_CELL: Rule(Role.SUPERVISOR, True),
    Action.DELETE_CELL: Rule(Role.COORDENADOR, False),
    Action.ADD_MEMBER: Rule(Role.LIDER, True),
    Action.REMOVE_MEMBER: Rule(Role.LIDER, True),
    Action.ASSIGN_LEADER: Rule(Role.SUPERVISOR, True),
    Action.REMOVE_LEADER: Rule(Role.SUPERVISOR, True),
    Action.ASSIGN_SUPERVISOR: Rule(Role.COORDENADOR, False),
    Action.ASSIGN_SECRETARY: Rule(Role.LIDER, True),
    Action.VIEW_PRAYER_STATS: Rule(Role.LIDER, True),
    Action.LIST_USERS: Rule(Role.LIDER, False),
    Action.MANAGE_USERS: Rule(Role.ADMIN, False),
}


@dataclass(frozen=True)
class CellScope:
    """Relações de uma célula necessárias para a verificação de posse."""
    cell_id: str
    supervisor_id: Optional[str] = None
    leader_ids: FrozenSet[str] = frozenset()
    member_ids: FrozenSet[str] = frozenset()


class Decision(NamedTuple):
    allowed: bool
    reason: Optional[str] = None


ALLOWED = Decision(True)


def authorize(caller_role: Role, caller_id: str, action: Action, resource: Optional[CellScope] = None) -> Decision:
    """
    Decide se `caller` pode executar `action` sobre `resource`.

    Função pura: não consulta o banco. Quem chama monta o CellScope.
    """
    rule = POLICY[action]

    if not caller_role.at_least(rule.minimum):
        return Decision(False, "Permissão insuficiente")

    if not rule.ownership or caller_role.at_least(GLOBAL_SCOPE):
        return ALLOWED

    if resource is None:
        return Decision(False, "Sem permissão para acessar esta célula")

    if caller_role.at_least(Role.SUPERVISOR) and resource.supervisor_id == caller_id:
        return ALLOWED
    if caller_id in resource.leader_ids:
        return ALLOWED
    # Ser apenas membro só basta para ações abertas a MEMBRO
    if rule.minimum is Role.MEMBRO and caller_id in resource.member_ids:
        return ALLOWED

    return Decision(False, "Sem permissão para acessar esta célula")
