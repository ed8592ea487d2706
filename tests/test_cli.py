from hrcore_api.extensions import db
from hrcore_api.models.tenant import Tenant
from hrcore_api.models.user import User


def test_seed_demo_is_idempotent(app):
    runner = app.test_cli_runner()
    r = runner.invoke(args=["seed-demo"])
    assert r.exit_code == 0, r.output
    assert "Seeded demo tenant" in r.output
    assert {u.role for u in User.query.all()} == {"admin", "director", "manager", "business_partner"}

    r = runner.invoke(args=["seed-demo"])
    assert "already exists" in r.output
    assert Tenant.query.count() == 1


def test_tenant_status_and_delete(app, make):
    t = make.tenant(status="trial")
    runner = app.test_cli_runner()

    r = runner.invoke(args=["tenant-status", str(t.id), "blocked"])
    assert r.exit_code == 0, r.output
    db.session.expire_all()
    assert db.session.get(Tenant, t.id).status == "blocked"

    r = runner.invoke(args=["tenant-delete", str(t.id)])
    assert r.exit_code == 0
    db.session.expire_all()
    assert db.session.get(Tenant, t.id).deleted_at is not None
    assert not db.session.get(Tenant, t.id).is_usable()

    assert runner.invoke(args=["tenant-status", "999", "active"]).exit_code != 0
