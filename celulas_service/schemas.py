"""Modelos Pydantic (schemas) para validação de entrada e saída da API."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from celulas_service.roles import Role, UserStatus


# --- Schemas de Autenticação ---

class RegisterRequest(BaseModel):
    """Campos opcionais: a obrigatoriedade é validada no handler com mensagens próprias."""
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = Field(default=None, alias="confirmPassword")

    model_config = ConfigDict(populate_by_name=True)


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class PublicUser(BaseModel):
    """Dados públicos do usuário (nunca inclui o hash da senha)."""
    id: str
    name: str
    email: str
    role: Role
    status: UserStatus
    cell_id: Optional[str] = None
    cell_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    message: str
    token: str
    token_type: str = "bearer"
    user: PublicUser


# --- Schemas de Perfil (/me) ---

class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    full_name: Optional[str] = None
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    gender: Optional[str] = None
    birth_date: Optional[date] = None
    address: Optional[str] = None
    neighborhood: Optional[str] = None
    zip_code: Optional[str] = None
    marital_status: Optional[str] = None
    profession: Optional[str] = None
    conversion_date: Optional[date] = None
    oikos1: Optional[str] = None
    oikos2: Optional[str] = None


class Profile(PublicUser):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    gender: Optional[str] = None
    birth_date: Optional[date] = None
    address: Optional[str] = None
    neighborhood: Optional[str] = None
    zip_code: Optional[str] = None
    marital_status: Optional[str] = None
    profession: Optional[str] = None
    conversion_date: Optional[date] = None
    oikos1: Optional[str] = None
    oikos2: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    is_cell_secretary: bool = False
    led_cell_ids: List[str] = []
    supervised_cell_ids: List[str] = []


class ProfileResponse(BaseModel):
    message: str
    user: Profile


# --- Schemas de Usuários (administração) ---

class UserSummary(PublicUser):
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserAdminUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[str] = None
    role: Optional[Role] = None
    status: Optional[UserStatus] = None


# --- Schemas de Células ---

class LeaderInfo(BaseModel):
    id: str
    name: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class CellView(BaseModel):
    """Visão desnormalizada de uma célula, usada em listas e detalhes."""
    id: str
    name: str
    description: Optional[str] = None
    supervisor_id: Optional[str] = None
    supervisor_name: Optional[str] = None
    secretary_id: Optional[str] = None
    secretary_name: Optional[str] = None
    member_count: int = 0
    leaders: List[LeaderInfo] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CellOption(BaseModel):
    id: str
    name: str

    model_config = ConfigDict(from_attributes=True)


class CellCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    leader_ids: List[str] = []
    secretary_id: Optional[str] = None
    supervisor_id: Optional[str] = None


class CellUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class UserRef(BaseModel):
    user_id: Optional[str] = None


class SupervisorAssign(BaseModel):
    supervisor_id: Optional[str] = None


class SecretaryAssign(BaseModel):
    secretary_id: Optional[str] = None


class CellMember(BaseModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    role: Role
    is_leader: bool = False
    is_secretary: bool = False
    prayer_count: int = 0
    last_prayer: Optional[date] = None


class MessageResponse(BaseModel):
    message: str


class CellResponse(BaseModel):
    message: str
    cell: CellView


# --- Schemas de Oração ---

class PrayerLogResponse(BaseModel):
    message: str
    already_logged: bool
    log_date: date


class PrayerStatus(BaseModel):
    has_prayed: bool


class PrayerStats(BaseModel):
    prayed_today: bool
    week: int
    month: int
    total: int
    last_prayer_date: Optional[date] = None
    first_prayer_date: Optional[date] = None


class PrayerHistory(PrayerStats):
    days: int
    recent: int
    history: List[date] = []


class MemberPrayerStats(BaseModel):
    user: PublicUser
    stats: PrayerHistory


# --- Dashboard ---

class Dashboard(BaseModel):
    user: PublicUser
    cells: List[CellView] = []
    total_cells: int = 0
    total_members: int = 0
    prayers: PrayerStats
