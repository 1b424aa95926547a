# tests/conftest.py
import uuid

import pytest
from fastapi.testclient import TestClient

from celulas_service.config import Settings
from celulas_service.main import create_app
from celulas_service.models import User
from celulas_service.roles import Role, UserStatus
from celulas_service.utils import get_password_hash, token_for_user

TEST_PASSWORD = "senha123"
ADMIN_EMAIL = "admin@teste.com"
ADMIN_PASSWORD = "admin123"


@pytest.fixture
def settings(tmp_path):
    """Configuração isolada: um arquivo SQLite novo por teste e bcrypt barato."""
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'celulas_test.db'}",
        jwt_secret_key="chave-de-teste",
        bcrypt_rounds=4,
        admin_email=ADMIN_EMAIL,
        admin_password=ADMIN_PASSWORD,
        admin_name="Admin Teste",
    )


@pytest.fixture
def client(settings):
    """Cliente HTTP com o lifespan executado (tabelas criadas e admin inicial)."""
    app = create_app(settings)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(client):
    """Sessão direta no mesmo banco da aplicação, para preparar e conferir dados."""
    session = client.app.state.db.session()
    yield session
    session.close()


@pytest.fixture
def make_user(db, settings):
    """
    Fábrica de usuários gravados direto no banco.
    Todos usam a senha TEST_PASSWORD.
    """
    def _make(name=None, role=Role.MEMBRO, status=UserStatus.ACTIVE, cell_id=None, email=None):
        suffix = uuid.uuid4().hex[:8]
        user = User(
            name=name or f"Usuário {suffix}",
            email=email or f"user_{suffix}@teste.com",
            password_hash=get_password_hash(TEST_PASSWORD, settings.bcrypt_rounds),
            role=role,
            status=status,
            cell_id=cell_id,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def headers_for(settings):
    """Cabeçalhos de autorização com um token válido para o usuário informado."""
    def _headers(user):
        return {"Authorization": f"Bearer {token_for_user(user, settings)}"}
    return _headers


@pytest.fixture
def admin(db):
    return db.query(User).filter(User.email == ADMIN_EMAIL).one()


@pytest.fixture
def admin_headers(admin, headers_for):
    return headers_for(admin)


@pytest.fixture
def create_cell(client, admin_headers):
    """Cria uma célula pela API (como admin) e devolve a visão da célula."""
    def _create(name=None, leader_ids=(), **extra):
        payload = {"name": name or f"Célula {uuid.uuid4().hex[:6]}", "leader_ids": list(leader_ids), **extra}
        r = client.post("/cells", json=payload, headers=admin_headers)
        assert r.status_code == 201, f"Esperado 201 mas veio {r.status_code}: {r.text}"
        return r.json()["cell"]
    return _create


@pytest.fixture
def add_member(client, admin_headers):
    def _add(cell_id, user_id):
        r = client.post(f"/cells/{cell_id}/members", json={"user_id": user_id}, headers=admin_headers)
        assert r.status_code == 200, f"Esperado 200 mas veio {r.status_code}: {r.text}"
        return r.json()["cell"]
    return _add
