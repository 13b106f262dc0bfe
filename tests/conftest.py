"""Shared pytest fixtures for Namhatta portal tests."""
import os
import shutil
import sys

import pytest

from helpers import TEST_PASSWORD, login, make_settings

# Add project root to path
_PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _PROJECT_ROOT)

# ---------------------------------------------------------------------------
# Deterministic test environment - set BEFORE any portal module imports.
# Settings refuse to load without a signing secret.
# ---------------------------------------------------------------------------
os.environ.setdefault('JWT_SECRET', 'test-jwt-secret-for-pytest-32chars!')
os.environ.setdefault('APP_ENV', 'testing')
os.environ.setdefault('LOG_FORMAT', 'text')


# =============================================================================
# Settings
# =============================================================================

@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """get_settings() is lru_cached; clear it around every test."""
    from config.settings import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings():
    return make_settings()


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def _template_db(tmp_path_factory):
    """Run Alembic migrations once per session to create a template DB.

    Other fixtures copy this template instead of re-running migrations.
    """
    from core.db import DatabaseManager
    from portal.auth.schema import run_migrations

    template_path = tmp_path_factory.mktemp("template") / "template.db"
    dm = DatabaseManager(db_path=template_path)
    run_migrations(dm)
    dm.close_all()
    return template_path


@pytest.fixture
def db(tmp_path, _template_db):
    """Per-test database copied from the migrated template."""
    from core.db import DatabaseManager

    db_path = tmp_path / "test_namhatta.db"
    shutil.copy2(_template_db, db_path)
    dm = DatabaseManager(db_path=db_path)
    yield dm
    dm.close_all()


# =============================================================================
# Services
# =============================================================================

@pytest.fixture
def token_service(settings):
    from portal.auth.tokens import TokenService
    return TokenService(settings.auth)


@pytest.fixture
def sessions(db, settings):
    from portal.sessions import SessionRegistry
    return SessionRegistry(db, lifetime_minutes=settings.auth.session_lifetime_minutes)


@pytest.fixture
def revocations(db, token_service):
    from portal.auth.revocation import RevocationStore
    return RevocationStore(db, token_service)


@pytest.fixture
def user_directory(db):
    from portal.auth.identity import UserDirectory
    return UserDirectory(db)


@pytest.fixture
def member_store(db):
    from core.hierarchy import MemberStore
    return MemberStore(db)


@pytest.fixture
def hierarchy_service(member_store):
    from core.hierarchy import HierarchyService
    return HierarchyService(member_store)


# =============================================================================
# Users and devotees
# =============================================================================

@pytest.fixture
def users(user_directory):
    """One account per portal role; supervisors hold a single district each."""
    from portal.auth.types import PortalRole

    return {
        "admin": user_directory.create_user("admin", TEST_PASSWORD, PortalRole.ADMIN),
        "office": user_directory.create_user("office", TEST_PASSWORD, PortalRole.OFFICE),
        "nadia": user_directory.create_user(
            "nadia_sup", TEST_PASSWORD, PortalRole.DISTRICT_SUPERVISOR, districts=["NADIA"]
        ),
        "kolkata": user_directory.create_user(
            "kolkata_sup", TEST_PASSWORD, PortalRole.DISTRICT_SUPERVISOR, districts=["KOLKATA"]
        ),
    }


@pytest.fixture
def chain(member_store):
    """A full NADIA leadership chain plus a KOLKATA devotee.

    mala <- maha <- chakra <- upa (arrows point at the supervisor)
    """
    from core.hierarchy import HierarchyRole as R

    mala = member_store.create_member("Mala Das", "NADIA", R.MALA_SENAPOTI)
    maha = member_store.create_member("Maha Das", "NADIA", R.MAHA_CHAKRA_SENAPOTI, reporting_to=mala)
    chakra = member_store.create_member("Chakra Das", "NADIA", R.CHAKRA_SENAPOTI, reporting_to=maha)
    upa = member_store.create_member("Upa Das", "NADIA", R.UPA_CHAKRA_SENAPOTI, reporting_to=chakra)
    plain = member_store.create_member("Plain Das", "NADIA")
    kolkata = member_store.create_member("Kolkata Das", "KOLKATA", R.MALA_SENAPOTI)
    return {
        "mala": mala,
        "maha": maha,
        "chakra": chakra,
        "upa": upa,
        "plain": plain,
        "kolkata": kolkata,
    }


# =============================================================================
# Flask app
# =============================================================================

@pytest.fixture
def app(settings, db):
    from portal.app import create_app
    return create_app({"TESTING": True}, settings=settings, db=db)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login_as(app, users):
    """Factory: a fresh test client logged in as one of the `users` accounts."""
    usernames = {"admin": "admin", "office": "office", "nadia": "nadia_sup", "kolkata": "kolkata_sup"}

    def _login(key):
        client = app.test_client()
        response = login(client, usernames[key])
        assert response.status_code == 200, response.get_json()
        return client

    return _login
