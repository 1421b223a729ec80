import pytest

from equatorial.models import StoreSetting, User


pytestmark = pytest.mark.smoke


def test_system_init_creates_settings_and_admin(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["system", "init", "--admin-email", "Boss@Equatorial.local"])

    assert result.exit_code == 0, result.output
    assert "DONE" in result.output
    admin = db_session.query(User).filter_by(email="boss@equatorial.local").one()
    assert admin.role == "admin"
    assert db_session.query(StoreSetting).filter_by(key="tax_rate").first() is not None


def test_system_init_is_idempotent(app, db_session):
    runner = app.test_cli_runner()
    runner.invoke(args=["system", "init"])

    result = runner.invoke(args=["system", "init"])

    assert result.exit_code == 0, result.output
    assert "already exists" in result.output
    assert db_session.query(User).count() == 1


def test_users_create_rejects_weak_password(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        "users", "create",
        "--email", "weak@equatorial.local",
        "--name", "Weak",
        "--password", "short",
    ], input="short\n")

    assert "FAIL" in result.output
    assert db_session.query(User).count() == 0


def test_users_list_shows_created_user(app, db_session):
    runner = app.test_cli_runner()
    runner.invoke(args=[
        "users", "create",
        "--email", "barista@equatorial.local",
        "--name", "Barista",
        "--password", "Password123",
        "--role", "staff",
    ], input="Password123\n")

    result = runner.invoke(args=["users", "list"])

    assert "barista@equatorial.local" in result.output
    assert "staff" in result.output
