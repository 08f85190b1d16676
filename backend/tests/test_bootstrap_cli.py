# Overview: Pytest coverage for first-run provisioning and the maintenance CLI.

from datetime import timedelta

from wellpos.models import AuditRecord, Company, Employee, LoginSession
from wellpos.services import bootstrap_service, session_service
from wellpos.time_utils import utcnow


BOOTSTRAP_ENV = {
    "INITIAL_COMPANY_NAME": "Seed Wellness",
    "INITIAL_COMPANY_CONTACT_PERSON": "Seed Owner",
    "INITIAL_COMPANY_EMAIL": "Office@Seed.example",
    "INITIAL_COMPANY_PHONE": "+49 30 000",
    "INITIAL_COMPANY_ADDRESS": "Seed Street 1, Berlin",
    "SUPER_ADMIN_EMAIL": "Root@Seed.example",
    "SUPER_ADMIN_PASSWORD": "B00tstrap!",
    "SUPER_ADMIN_PIN": "2468",
}


class TestBootstrap:
    """bootstrap_service.run"""

    def test_first_run_creates_company_and_super_admin(self, db_session):
        result = bootstrap_service.run(BOOTSTRAP_ENV)
        assert result == {"company_created": True, "super_admin_created": True}

        company = db_session.query(Company).one()
        assert company.email == "office@seed.example"

        admin = db_session.query(Employee).filter_by(role="super-admin").one()
        assert admin.email == "root@seed.example"
        assert admin.branch_id is None
        assert admin.personal_pin == "2468"

        records = db_session.query(AuditRecord).filter_by(ip_address="bootstrap").all()
        assert {r.entity_type for r in records} == {"Company", "Employee"}

    def test_second_run_is_noop(self, db_session):
        bootstrap_service.run(BOOTSTRAP_ENV)
        assert bootstrap_service.run(BOOTSTRAP_ENV) == {"company_created": False, "super_admin_created": False}
        assert db_session.query(Company).count() == 1
        assert db_session.query(Employee).count() == 1

    def test_invalid_pin_falls_back(self, db_session):
        env = dict(BOOTSTRAP_ENV, SUPER_ADMIN_PIN="12")
        bootstrap_service.run(env)
        assert db_session.query(Employee).one().personal_pin == "0000"

    def test_incomplete_company_env_skipped(self, db_session):
        env = {k: v for k, v in BOOTSTRAP_ENV.items() if k != "INITIAL_COMPANY_PHONE"}
        assert bootstrap_service.run(env) == {"company_created": False, "super_admin_created": True}

    def test_disabled_company_bootstrap(self, db_session):
        env = dict(BOOTSTRAP_ENV, INITIAL_COMPANY_ENABLED="false")
        assert bootstrap_service.ensure_initial_company(env) is None

    def test_missing_credentials_skip_super_admin(self, db_session):
        env = {k: v for k, v in BOOTSTRAP_ENV.items() if k != "SUPER_ADMIN_PASSWORD"}
        assert bootstrap_service.ensure_super_admin(env) is None

    def test_existing_super_admin_not_duplicated(self, db_session, super_admin):
        assert bootstrap_service.ensure_super_admin(BOOTSTRAP_ENV) is None

    def test_unknown_branch_is_ignored(self, db_session):
        env = dict(BOOTSTRAP_ENV, SUPER_ADMIN_BRANCH_ID="9999")
        assert bootstrap_service.ensure_super_admin(env).branch_id is None


class TestCli:
    """flask system / flask sessions"""

    def test_sessions_cleanup(self, app, db_session, admin):
        lapsed = session_service.add_session("employee", admin.id, 3600, branch_id=admin.branch_id)
        lapsed.expires_at = utcnow() - timedelta(days=3)
        db_session.commit()

        result = app.test_cli_runner().invoke(args=["sessions", "cleanup", "--retention-days", "30"])
        assert result.exit_code == 0
        assert "Expired 1 sessions" in result.output
        assert db_session.query(LoginSession).filter_by(is_active=True).count() == 0

    def test_default_retention(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["sessions", "cleanup"])
        assert result.exit_code == 0
        assert f"older than {session_service.DEFAULT_RETENTION_DAYS} days" in result.output

    def test_bootstrap_command(self, app, db_session, monkeypatch):
        for key, value in BOOTSTRAP_ENV.items():
            monkeypatch.setenv(key, value)

        result = app.test_cli_runner().invoke(args=["system", "bootstrap"])
        assert result.exit_code == 0
        assert "Company created: yes; super-admin created: yes" in result.output
