# tests/test_prayers.py
"""Registro diário de oração e estatísticas."""

from datetime import datetime, timedelta, timezone

import pytest

from celulas_service.models import PrayerLog
from celulas_service.roles import Role
from celulas_service.routers import prayers


def _today():
    return datetime.now(timezone.utc).date()


def test_log_daily_is_idempotent_per_day(client, db, make_user, headers_for):
    user = make_user()
    headers = headers_for(user)

    first = client.post("/prayers/log-daily", headers=headers)
    assert first.status_code == 201, first.text
    assert first.json()["already_logged"] is False
    assert first.json()["log_date"] == _today().isoformat()

    second = client.post("/prayers/log-daily", headers=headers)
    assert second.status_code == 200
    assert second.json()["already_logged"] is True

    # Rota antiga também respeita o registro do dia
    legacy = client.post("/prayers", headers=headers)
    assert legacy.status_code == 200
    assert legacy.json()["already_logged"] is True

    assert db.query(PrayerLog).filter(PrayerLog.user_id == user.id).count() == 1


def test_legacy_route_logs_prayer(client, make_user, headers_for):
    user = make_user()
    r = client.post("/prayers", headers=headers_for(user))
    assert r.status_code == 201
    assert r.json()["already_logged"] is False


def test_status_today(client, make_user, headers_for):
    headers = headers_for(make_user())
    assert client.get("/prayers/status-today", headers=headers).json() == {"has_prayed": False}
    client.post("/prayers/log-daily", headers=headers)
    assert client.get("/prayers/status-today", headers=headers).json() == {"has_prayed": True}


def test_log_requires_authentication(client):
    assert client.post("/prayers/log-daily").status_code == 401


def test_stats_counts_week_month_and_total(client, db, make_user, headers_for):
    user = make_user()
    today = _today()
    days_back = [0, 1, 6, 7, 20, 40, 400]
    for n in days_back:
        db.add(PrayerLog(user_id=user.id, prayer_date=today - timedelta(days=n)))
    db.commit()

    dates = [today - timedelta(days=n) for n in days_back]
    month_start = today.replace(day=1)

    r = client.get("/prayers/stats", headers=headers_for(user))
    assert r.status_code == 200
    stats = r.json()
    assert stats["prayed_today"] is True
    assert stats["week"] == 3
    assert stats["month"] == sum(1 for d in dates if d >= month_start)
    assert stats["total"] == len(days_back)
    assert stats["last_prayer_date"] == today.isoformat()
    assert stats["first_prayer_date"] == (today - timedelta(days=400)).isoformat()


def test_stats_for_user_without_prayers(client, make_user, headers_for):
    stats = client.get("/prayers/stats", headers=headers_for(make_user())).json()
    assert stats["prayed_today"] is False
    assert stats["week"] == stats["month"] == stats["total"] == 0
    assert stats["last_prayer_date"] is None


def test_my_stats_history(client, db, make_user, headers_for):
    user = make_user()
    today = _today()
    for n in (0, 2, 4, 10):
        db.add(PrayerLog(user_id=user.id, prayer_date=today - timedelta(days=n)))
    db.commit()

    r = client.get("/prayers/my-stats", params={"days": 5}, headers=headers_for(user))
    assert r.status_code == 200
    data = r.json()
    assert data["days"] == 5
    assert data["recent"] == 3
    assert data["history"] == [(today - timedelta(days=n)).isoformat() for n in (0, 2, 4)]
    assert data["total"] == 4

    default = client.get("/prayers/my-stats", headers=headers_for(user)).json()
    assert default["days"] == 30
    assert default["recent"] == 4


@pytest.mark.parametrize("days", [0, 367, -1])
def test_my_stats_rejects_out_of_range_days(client, make_user, headers_for, days):
    r = client.get("/prayers/my-stats", params={"days": days}, headers=headers_for(make_user()))
    assert r.status_code == 400


def test_member_stats_visible_to_cell_leader_only(client, make_user, headers_for, create_cell, add_member):
    leader = make_user()
    cell = create_cell(leader_ids=[leader.id])
    member = make_user(name="Beto")
    add_member(cell["id"], member.id)
    client.post("/prayers/log-daily", headers=headers_for(member))

    r = client.get(f"/prayers/stats/{member.id}", headers=headers_for(leader))
    assert r.status_code == 200
    assert r.json()["user"]["name"] == "Beto"
    assert r.json()["stats"]["total"] == 1

    other_leader = make_user(role=Role.LIDER)
    create_cell(leader_ids=[other_leader.id])
    assert client.get(f"/prayers/stats/{member.id}", headers=headers_for(other_leader)).status_code == 403

    mate = make_user()
    add_member(cell["id"], mate.id)
    assert client.get(f"/prayers/stats/{member.id}", headers=headers_for(mate)).status_code == 403


def test_member_stats_for_user_without_cell(client, make_user, admin_headers, headers_for):
    loner = make_user()
    leader = make_user(role=Role.LIDER)

    assert client.get(f"/prayers/stats/{loner.id}", headers=headers_for(leader)).status_code == 403
    assert client.get(f"/prayers/stats/{loner.id}", headers=admin_headers).status_code == 200
    assert client.get(f"/prayers/stats/{loner.id}", headers=headers_for(loner)).status_code == 200
    assert client.get("/prayers/stats/nao-existe", headers=admin_headers).status_code == 404


def test_concurrent_duplicate_is_reported_as_already_logged(client, db, make_user, headers_for, monkeypatch):
    # Sem a consulta prévia, o segundo insert esbarra na restrição única do dia
    monkeypatch.setattr(prayers, "_has_prayed", lambda db, user_id, on: False)
    user = make_user()
    headers = headers_for(user)

    first = client.post("/prayers/log-daily", headers=headers)
    assert first.status_code == 201

    second = client.post("/prayers/log-daily", headers=headers)
    assert second.status_code == 200, second.text
    assert second.json()["already_logged"] is True
    assert db.query(PrayerLog).filter(PrayerLog.user_id == user.id).count() == 1
