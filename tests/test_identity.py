"""
User Directory, Password Policy and Startup Seeding Tests

Usage:
    pytest tests/test_identity.py -v
"""

from unittest.mock import patch

import pytest

from config.settings import AuthSettings
from core.errors import ValidationError
from helpers import TEST_PASSWORD, make_settings
from portal.auth.passwords import hash_password, validate_password_strength, verify_password
from portal.auth.schema import initialize
from portal.auth.types import PortalRole


class TestPasswords:

    def test_hash_and_verify(self):
        hashed = hash_password(TEST_PASSWORD)
        assert hashed != TEST_PASSWORD
        assert verify_password(TEST_PASSWORD, hashed)
        assert not verify_password("Wr0ng!Password", hashed)

    @pytest.mark.parametrize("password,message", [
        ("Sh0rt!", "at least 10 characters"),
        ("lowercase1!x", "uppercase"),
        ("UPPERCASE1!X", "lowercase"),
        ("NoDigits!Here", "digit"),
        ("NoSpecial123", "special"),
    ])
    def test_policy_rejections(self, password, message):
        ok, error = validate_password_strength(password, AuthSettings())
        assert not ok
        assert message in error

    def test_policy_accepts_strong_password(self):
        assert validate_password_strength(TEST_PASSWORD, AuthSettings()) == (True, "")

    def test_policy_is_configurable(self):
        relaxed = AuthSettings(password_require_special=False, password_min_length=4)
        assert validate_password_strength("Abc1", relaxed)[0]


class TestUserDirectory:

    def test_authenticate(self, user_directory, users):
        principal = user_directory.authenticate("nadia_sup", TEST_PASSWORD)
        assert principal.id == users["nadia"]
        assert principal.role is PortalRole.DISTRICT_SUPERVISOR
        assert principal.districts == frozenset({"NADIA"})

    def test_wrong_password_and_unknown_user(self, user_directory, users):
        assert user_directory.authenticate("nadia_sup", "Wr0ng!Password") is None
        assert user_directory.authenticate("ghost", TEST_PASSWORD) is None

    def test_inactive_user(self, user_directory, users):
        user_directory.set_active(users["office"], False)
        assert user_directory.authenticate("office", TEST_PASSWORD) is None
        assert user_directory.get_principal(users["office"]).is_active is False

    def test_duplicate_username(self, user_directory, users):
        with pytest.raises(ValidationError, match="already exists"):
            user_directory.create_user("office", TEST_PASSWORD, PortalRole.OFFICE)

    def test_unknown_role_rejected(self, user_directory):
        with pytest.raises(ValueError):
            user_directory.create_user("someone", TEST_PASSWORD, "CAPTAIN")

    def test_set_districts_replaces(self, user_directory, users):
        user_directory.set_districts(users["nadia"], ["HOOGHLY", "NADIA", "NADIA"])
        codes = [d["code"] for d in user_directory.get_districts(users["nadia"])]
        assert codes == ["HOOGHLY", "NADIA"]

    def test_missing_principal(self, user_directory):
        assert user_directory.get_principal(424242) is None


class TestAdminSeed:

    def test_admin_created_from_setting(self, db, user_directory):
        settings = make_settings(auth={"admin_password": "Adm1n!Password"})
        initialize(db, settings)
        principal = user_directory.authenticate("admin", "Adm1n!Password")
        assert principal.role is PortalRole.ADMIN

    def test_weak_admin_password_is_refused(self, db, user_directory):
        initialize(db, make_settings(auth={"admin_password": "admin"}))
        assert not user_directory.user_exists("admin")

    def test_no_setting_no_admin(self, db, user_directory):
        initialize(db, make_settings())
        assert not user_directory.user_exists("admin")

    def test_existing_admin_untouched(self, db, user_directory, users):
        initialize(db, make_settings(auth={"admin_password": "Adm1n!Password"}))
        assert user_directory.authenticate("admin", TEST_PASSWORD) is not None


class TestSweeper:

    def test_disabled_under_testing(self, app):
        from portal.maintenance import start_sweeper

        assert start_sweeper(app) is None
        assert "maintenance_scheduler" not in app.extensions

    def test_schedules_interval_job(self, app):
        from portal.maintenance import SWEEP_JOB_ID, run_sweeps, start_sweeper

        app.config["TESTING"] = False
        with patch("portal.maintenance.BackgroundScheduler") as scheduler_cls:
            scheduler = start_sweeper(app)

        assert scheduler is scheduler_cls.return_value
        scheduler.start.assert_called_once()
        args, kwargs = scheduler.add_job.call_args
        assert args[0] is run_sweeps
        assert kwargs["id"] == SWEEP_JOB_ID
        assert kwargs["args"] == (
            app.extensions["session_registry"], app.extensions["revocation_store"],
        )
        assert app.extensions["maintenance_scheduler"] is scheduler
