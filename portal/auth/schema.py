"""
Database schema initialization.

IMPORTANT: initialize() should ONLY be called by:
- portal/app.py create_app() at startup
- Test fixtures

Never call schema initialization from feature code (routes, decorators, etc.).
Tables are owned by the Alembic migrations under alembic/versions.
"""
import logging
from pathlib import Path

from alembic import command
from alembic.config import Config

from config.settings import AppSettings
from core.db import DatabaseManager

from .identity import UserDirectory
from .passwords import validate_password_strength
from .types import PortalRole

logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
ADMIN_USERNAME = "admin"


def alembic_config(db: DatabaseManager) -> Config:
    """Alembic config pointed at `db`, leaving the app's logging alone."""
    cfg = Config(str(_PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(_PROJECT_ROOT / "alembic"))
    cfg.set_main_option("sqlalchemy.url", db.url)
    cfg.attributes["configure_logger"] = False
    return cfg


def run_migrations(db: DatabaseManager) -> None:
    """Upgrade the database to the latest revision."""
    command.upgrade(alembic_config(db), "head")


def _seed_admin(db: DatabaseManager, settings: AppSettings) -> None:
    """Create the admin account when ADMIN_PASSWORD is set and none exists."""
    password = settings.auth.admin_password.get_secret_value()
    if not password:
        return

    users = UserDirectory(db)
    if users.user_exists(ADMIN_USERNAME):
        return

    ok, message = validate_password_strength(password, settings.auth)
    if not ok:
        logger.error(f"ADMIN_PASSWORD rejected, admin account not created: {message}")
        return

    users.create_user(ADMIN_USERNAME, password, PortalRole.ADMIN)
    logger.info("Default admin user created")


def initialize(db: DatabaseManager, settings: AppSettings) -> None:
    """Migrate the schema and seed the admin account.

    Store errors propagate: the portal does not start on a broken database.
    """
    run_migrations(db)
    _seed_admin(db, settings)
    logger.info(f"Portal database initialized: {db.db_path}")
