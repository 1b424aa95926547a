# tests/test_me.py
"""Perfil, dashboard, monitoramento e admin inicial."""

from celulas_service.models import User
from celulas_service.roles import Role, UserStatus
from celulas_service.seed import ensure_admin

from .conftest import ADMIN_EMAIL, ADMIN_PASSWORD


def test_get_me_includes_cell_and_leadership(client, make_user, headers_for, admin_headers, create_cell, add_member):
    user = make_user(name="Clara")
    led = create_cell(name="Liderada", leader_ids=[user.id])
    home = create_cell(name="Casa")
    add_member(home["id"], user.id)
    client.put(f"/cells/{home['id']}/secretary", json={"secretary_id": user.id}, headers=admin_headers)

    r = client.get("/me", headers=headers_for(user))
    assert r.status_code == 200
    me = r.json()
    assert me["name"] == "Clara"
    assert me["role"] == "LIDER"
    assert me["cell_id"] == home["id"]
    assert me["cell_name"] == "Casa"
    assert me["led_cell_ids"] == [led["id"]]
    assert me["supervised_cell_ids"] == []
    assert me["is_cell_secretary"] is True
    assert "password_hash" not in me


def test_update_me(client, make_user, headers_for):
    user = make_user()
    payload = {
        "name": "  Nome Novo ",
        "phone": "11 99999-0000",
        "birth_date": "1990-05-17",
        "oikos1": "Vizinho",
        "role": "ADMIN",
    }
    r = client.put("/me", json=payload, headers=headers_for(user))
    assert r.status_code == 200, r.text
    updated = r.json()["user"]
    assert updated["name"] == "Nome Novo"
    assert updated["phone"] == "11 99999-0000"
    assert updated["birth_date"] == "1990-05-17"
    assert updated["oikos1"] == "Vizinho"
    # Papel não muda pelo perfil
    assert updated["role"] == "MEMBRO"


def test_update_me_rejects_bad_date(client, make_user, headers_for):
    r = client.put("/me", json={"birth_date": "ontem"}, headers=headers_for(make_user()))
    assert r.status_code == 400


def test_dashboard(client, make_user, headers_for, create_cell, add_member):
    cell = create_cell(name="Vida")
    member = make_user()
    add_member(cell["id"], member.id)
    add_member(cell["id"], make_user().id)
    headers = headers_for(member)
    client.post("/prayers/log-daily", headers=headers)

    r = client.get("/dashboard", headers=headers)
    assert r.status_code == 200
    data = r.json()
    assert data["user"]["id"] == member.id
    assert data["user"]["cell_name"] == "Vida"
    assert [c["name"] for c in data["cells"]] == ["Vida"]
    assert data["total_cells"] == 1
    assert data["total_members"] == 2
    assert data["prayers"]["prayed_today"] is True
    assert data["prayers"]["total"] == 1


def test_health_and_metrics(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.json()["database"] == "ok"

    r = client.get("/metrics")
    assert r.status_code == 200
    assert "celulas_requests_total" in r.text


def test_unknown_route_uses_error_body(client):
    r = client.get("/nao-existe")
    assert r.status_code == 404
    assert "error" in r.json()


def test_admin_is_created_at_startup(client, db):
    admin = db.query(User).filter(User.email == ADMIN_EMAIL).one()
    assert admin.role == Role.ADMIN
    assert admin.status == UserStatus.ACTIVE

    r = client.post("/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert r.status_code == 200
    assert r.json()["user"]["role"] == "ADMIN"


def test_ensure_admin_promotes_existing_user(client, db, settings, make_user):
    admin = db.query(User).filter(User.email == ADMIN_EMAIL).one()
    admin.role = Role.MEMBRO
    admin.status = UserStatus.INACTIVE
    db.commit()

    promoted = ensure_admin(db, settings)
    assert promoted.id == admin.id
    assert promoted.role == Role.ADMIN
    assert promoted.status == UserStatus.ACTIVE
    assert db.query(User).filter(User.role == Role.ADMIN).count() == 1


def test_ensure_admin_keeps_existing_admin(client, db, settings):
    before = db.query(User).count()
    ensure_admin(db, settings)
    assert db.query(User).count() == before
