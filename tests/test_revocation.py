"""Tests for token revocation (portal/auth/revocation.py) and maintenance sweeps."""

from datetime import datetime, timedelta, timezone

from portal.maintenance import run_sweeps

CLAIMS = {
    "sub": "office",
    "user_id": 2,
    "role": "OFFICE",
    "districts": [],
    "session_token": "cd" * 32,
}


class TestRevocationStore:

    def test_revoke_then_is_revoked(self, revocations, token_service):
        token = token_service.issue(CLAIMS)
        assert not revocations.is_revoked(token)
        assert revocations.revoke(token) is True
        assert revocations.is_revoked(token)

    def test_revoke_is_idempotent(self, revocations, token_service):
        token = token_service.issue(CLAIMS)
        assert revocations.revoke(token)
        assert revocations.revoke(token)
        assert revocations.is_revoked(token)

    def test_invalid_token_is_a_no_op(self, revocations, db):
        assert revocations.revoke("not-a-token") is False
        assert revocations.revoke(None) is False
        with db.connect() as conn:
            assert conn.execute("SELECT COUNT(*) FROM jwt_blacklist").fetchone()[0] == 0

    def test_raw_token_is_not_stored(self, revocations, token_service, db):
        token = token_service.issue(CLAIMS)
        revocations.revoke(token)
        with db.connect() as conn:
            stored = conn.execute("SELECT token_hash FROM jwt_blacklist").fetchone()["token_hash"]
        assert stored == token_service.fingerprint(token)
        assert stored != token

    def test_revocation_survives_until_expiry(self, revocations, token_service):
        token = token_service.issue(CLAIMS)
        revocations.revoke(token)

        assert revocations.sweep_expired() == 0
        assert revocations.is_revoked(token)

        later = datetime.now(timezone.utc) + timedelta(minutes=61)
        assert revocations.sweep_expired(now=later) == 1
        assert not revocations.is_revoked(token)


class TestRunSweeps:

    def test_sweeps_both_tables(self, sessions, revocations, token_service, users):
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        sessions.create_session(users["office"], now=past)
        revocations.revoke(token_service.issue(CLAIMS))

        later = datetime.now(timezone.utc) + timedelta(hours=2)
        assert run_sweeps(sessions, revocations, now=later) == {"sessions": 1, "revoked_tokens": 1}
        assert run_sweeps(sessions, revocations, now=later) == {"sessions": 0, "revoked_tokens": 0}
