"""Helpers shared by test modules (fixtures live in conftest.py)."""
import os

TEST_PASSWORD = "Str0ng!Passw0rd"


def make_settings(**overrides):
    """AppSettings for tests. Nested auth overrides go in auth={...}."""
    from config.settings import AppSettings, AuthSettings

    auth_overrides = dict(overrides.pop("auth", {}))
    auth_overrides.setdefault("jwt_secret", os.environ['JWT_SECRET'])
    overrides.setdefault("app_env", "testing")
    overrides.setdefault("log_format", "text")
    return AppSettings(auth=AuthSettings(**auth_overrides), **overrides)


def login(client, username, password=TEST_PASSWORD):
    """POST /api/auth/login; the test client keeps the cookie."""
    return client.post("/api/auth/login", json={"username": username, "password": password})


def auth_cookie(client, app):
    """Current value of the auth cookie held by `client`, or None."""
    cookie = client.get_cookie(app.config["AUTH_COOKIE_NAME"])
    return cookie.value if cookie else None
