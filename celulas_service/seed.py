"""
Criação do administrador inicial e de usuários de demonstração.

Uso:
    python -m celulas_service.seed          # garante o admin
    python -m celulas_service.seed --demo   # admin + usuários de exemplo
"""

import argparse
import logging

from sqlalchemy.orm import Session

from celulas_service.config import Settings, load_settings
from celulas_service.db import Database
from celulas_service.models import User
from celulas_service.roles import Role, UserStatus
from celulas_service.utils import get_password_hash

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "senha123"
DEMO_USERS = [
    ("Pastor Demo", "pastor@igreja.com", Role.PASTOR),
    ("Coordenador Demo", "coordenador@igreja.com", Role.COORDENADOR),
    ("Supervisor Demo", "supervisor@igreja.com", Role.SUPERVISOR),
    ("Líder Demo", "lider@igreja.com", Role.LIDER),
    ("Membro Demo", "membro@igreja.com", Role.MEMBRO),
]


def ensure_admin(db: Session, settings: Settings) -> User:
    """
    Garante que exista um ADMIN ativo. Se já houver usuário com ADMIN_EMAIL,
    ele é promovido e reativado; senão, um novo admin é criado.
    Não faz nada se já existir algum ADMIN ativo.
    """
    existing_admin = db.query(User).filter(
        User.role == Role.ADMIN, User.status == UserStatus.ACTIVE
    ).first()
    if existing_admin:
        return existing_admin

    email = settings.admin_email.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if user:
        user.role = Role.ADMIN
        user.status = UserStatus.ACTIVE
        logger.info(f"Usuário {email} promovido a ADMIN.")
    else:
        user = User(
            name=settings.admin_name,
            email=email,
            password_hash=get_password_hash(settings.admin_password, settings.bcrypt_rounds),
            role=Role.ADMIN,
            status=UserStatus.ACTIVE,
        )
        db.add(user)
        logger.info(f"Administrador inicial criado: {email}")

    db.commit()
    db.refresh(user)
    return user


def seed_demo_users(db: Session, settings: Settings) -> int:
    """Cria os usuários de demonstração que ainda não existem. Retorna quantos foram criados."""
    created = 0
    for name, email, role in DEMO_USERS:
        if db.query(User.id).filter(User.email == email).first():
            continue
        db.add(User(
            name=name,
            email=email,
            password_hash=get_password_hash(DEMO_PASSWORD, settings.bcrypt_rounds),
            role=role,
            status=UserStatus.ACTIVE,
        ))
        created += 1
    db.commit()
    logger.info(f"{created} usuário(s) de demonstração criado(s).")
    return created


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Cria o admin inicial e, opcionalmente, usuários de demonstração.")
    parser.add_argument("--demo", action="store_true", help="também cria usuários de demonstração")
    args = parser.parse_args(argv)

    settings = load_settings()
    logging.basicConfig(level=settings.log_level, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    database = Database(settings.database_url)
    database.create_tables()
    db = database.session()
    try:
        ensure_admin(db, settings)
        if args.demo:
            seed_demo_users(db, settings)
    finally:
        db.close()
        database.dispose()


if __name__ == "__main__":
    main()
