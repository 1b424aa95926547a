# tests/test_auth.py
"""Registro, login e validação de token."""

from jose import jwt

from celulas_service.models import User
from celulas_service.roles import UserStatus

from .conftest import TEST_PASSWORD


def _register(client, **overrides):
    payload = {"name": "Ana", "email": "ana@x.com", "password": "secret1"}
    payload.update(overrides)
    return client.post("/auth/register", json=payload)


def test_register_creates_member(client, db, settings):
    r = _register(client)
    assert r.status_code == 201, f"Esperado 201 mas veio {r.status_code}: {r.text}"

    data = r.json()
    assert data["user"]["email"] == "ana@x.com"
    assert data["user"]["role"] == "MEMBRO"
    assert data["user"]["status"] == "ACTIVE"
    assert data["user"]["cell_id"] is None
    assert "password_hash" not in data["user"]

    claims = jwt.decode(data["token"], settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    assert claims["userId"] == data["user"]["id"]
    assert claims["role"] == "MEMBRO"
    assert "exp" in claims

    stored = db.query(User).filter(User.email == "ana@x.com").one()
    assert stored.password_hash != "secret1"
    assert stored.password_hash.startswith("$2")


def test_register_short_password_creates_nothing(client, db):
    r = _register(client, password="12345")
    assert r.status_code == 400
    assert "error" in r.json()
    assert db.query(User).filter(User.email == "ana@x.com").count() == 0


def test_register_duplicate_email(client, db):
    assert _register(client).status_code == 201

    r = _register(client, email="ANA@x.com", name="Outra Ana")
    assert r.status_code == 409, f"Esperado 409 mas veio {r.status_code}"
    assert r.json()["error"] == "Email já está em uso"
    assert db.query(User).filter(User.email == "ana@x.com").count() == 1


def test_register_validation_errors(client):
    assert _register(client, name="").status_code == 400
    assert _register(client, email="sem-arroba").status_code == 400
    assert _register(client, confirmPassword="diferente").status_code == 400
    assert client.post("/auth/register", json={}).status_code == 400


def test_register_accepts_matching_confirmation(client):
    r = _register(client, confirmPassword="secret1")
    assert r.status_code == 201


def test_register_wrong_type_is_400(client):
    r = _register(client, name=123)
    assert r.status_code == 400
    assert r.json()["error"].startswith("Dados inválidos")


def test_login_success(client, make_user):
    user = make_user(email="joao@teste.com")
    r = client.post("/auth/login", json={"email": "Joao@teste.com", "password": TEST_PASSWORD})
    assert r.status_code == 200, r.text
    assert r.json()["user"]["id"] == user.id
    assert r.json()["token"]


def test_login_failures_are_indistinguishable(client, make_user):
    make_user(email="maria@teste.com")

    wrong_password = client.post("/auth/login", json={"email": "maria@teste.com", "password": "errada"})
    unknown_email = client.post("/auth/login", json={"email": "ninguem@teste.com", "password": "errada"})

    assert wrong_password.status_code == 401
    assert unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()


def test_login_missing_fields(client):
    r = client.post("/auth/login", json={"email": "a@b.com"})
    assert r.status_code == 400


def test_inactive_user_cannot_login_and_token_stops_working(client, db, make_user, headers_for):
    user = make_user(email="inativo@teste.com")
    headers = headers_for(user)
    assert client.get("/me", headers=headers).status_code == 200

    user.status = UserStatus.INACTIVE
    db.commit()

    r = client.post("/auth/login", json={"email": "inativo@teste.com", "password": TEST_PASSWORD})
    assert r.status_code == 401
    assert client.get("/me", headers=headers).status_code == 401


def test_protected_route_requires_valid_token(client, make_user, settings):
    assert client.get("/me").status_code == 401
    assert client.get("/me", headers={"Authorization": "Bearer nao-e-um-jwt"}).status_code == 401

    user = make_user()
    forged = jwt.encode({"userId": user.id, "role": "ADMIN", "exp": 9999999999}, "outra-chave", algorithm="HS256")
    r = client.get("/me", headers={"Authorization": f"Bearer {forged}"})
    assert r.status_code == 401
    assert r.headers.get("www-authenticate") == "Bearer"


def test_expired_token_is_rejected(client, make_user, settings):
    user = make_user()
    expired = jwt.encode({"userId": user.id, "exp": 1}, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    assert client.get("/me", headers={"Authorization": f"Bearer {expired}"}).status_code == 401


def test_role_comes_from_database_not_token(client, make_user, settings):
    member = make_user()
    # Token com claim de ADMIN, mas o usuário no banco é MEMBRO
    token = jwt.encode(
        {"userId": member.id, "role": "ADMIN", "exp": 9999999999},
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )
    r = client.get("/users", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 403


def test_register_rejects_malformed_emails(client, db):
    for email in ("ana@@x.com", "ana@", "@x.com", "ana x@x.com"):
        r = _register(client, email=email)
        assert r.status_code == 400, f"{email} deveria ser recusado"
        assert r.json()["error"] == "Email inválido"
    assert db.query(User).count() == 1  # só o admin inicial
