"""Define as tabelas 'users', 'cells', 'cell_leaders' e 'daily_prayer_log' usando SQLAlchemy ORM."""

import uuid

from sqlalchemy import (
    Column, String, Text, Date, DateTime, ForeignKey, UniqueConstraint, func, Enum as SQLEnum
)
from sqlalchemy.orm import relationship

from celulas_service.db import Base
from celulas_service.roles import Role, UserStatus


def new_id() -> str:
    return str(uuid.uuid4())


class CellLeader(Base):
    """Tabela de junção célula <-> líder (muitos-para-muitos)."""
    __tablename__ = "cell_leaders"

    cell_id = Column(String(36), ForeignKey("cells.id"), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id"), primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class User(Base):
    """
    Modelo SQLAlchemy que representa a tabela 'users'.
    Guarda credenciais, papel, status e a célula (no máximo uma) do usuário.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    # Email usado no login; sempre salvo em minúsculas
    email = Column(String(255), unique=True, index=True, nullable=False)
    # Hash bcrypt. A senha em texto puro nunca é armazenada.
    password_hash = Column(String(255), nullable=False)

    role = Column(SQLEnum(Role, name="user_role"), nullable=False, default=Role.MEMBRO, index=True)
    status = Column(SQLEnum(UserStatus, name="user_status"), nullable=False, default=UserStatus.ACTIVE, index=True)

    # Membresia: nulo ou uma célula existente
    cell_id = Column(String(36), ForeignKey("cells.id"), nullable=True, index=True)

    # Perfil completo (preenchido em PUT /me)
    full_name = Column(String(255))
    phone = Column(String(30))
    whatsapp = Column(String(30))
    gender = Column(String(20))
    birth_date = Column(Date)
    address = Column(String(255))
    neighborhood = Column(String(120))
    zip_code = Column(String(20))
    marital_status = Column(String(30))
    profession = Column(String(120))
    conversion_date = Column(Date)
    oikos1 = Column(String(255))
    oikos2 = Column(String(255))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    cell = relationship("Cell", foreign_keys=[cell_id], back_populates="members")


class Cell(Base):
    """
    Modelo SQLAlchemy que representa a tabela 'cells'.
    Uma célula tem zero ou mais líderes, um supervisor opcional e um secretário
    opcional que precisa ser membro dela.
    """
    __tablename__ = "cells"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False, unique=True, index=True)
    description = Column(Text)

    supervisor_id = Column(String(36), ForeignKey("users.id", use_alter=True, name="fk_cells_supervisor"), nullable=True, index=True)
    secretary_id = Column(String(36), ForeignKey("users.id", use_alter=True, name="fk_cells_secretary"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    members = relationship("User", foreign_keys=[User.cell_id], back_populates="cell")
    leaders = relationship("User", secondary="cell_leaders", order_by="User.name", viewonly=True)
    supervisor = relationship("User", foreign_keys=[supervisor_id])
    secretary = relationship("User", foreign_keys=[secretary_id])


class PrayerLog(Base):
    """Um registro por usuário e por dia de oração."""
    __tablename__ = "daily_prayer_log"
    __table_args__ = (
        UniqueConstraint("user_id", "prayer_date", name="uq_daily_prayer_user_date"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    prayer_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
