"""Tests for TokenService (portal/auth/tokens.py)."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from config.settings import AuthSettings
from core.errors import ConfigurationError
from portal.auth.tokens import TokenService

CLAIMS = {
    "sub": "nadia_sup",
    "user_id": 3,
    "role": "DISTRICT_SUPERVISOR",
    "districts": ["NADIA"],
    "session_token": "ab" * 32,
}


class TestConstruction:

    def test_empty_secret_refused(self):
        with pytest.raises(ConfigurationError):
            TokenService(AuthSettings(jwt_secret=""))


class TestIssueVerify:

    def test_round_trip_claims(self, token_service):
        payload = token_service.verify(token_service.issue(CLAIMS))
        assert payload.sub == "nadia_sup"
        assert payload.user_id == 3
        assert payload.role == "DISTRICT_SUPERVISOR"
        assert payload.districts == ("NADIA",)
        assert payload.session_token == "ab" * 32
        assert payload.exp - payload.iat == timedelta(minutes=60)

    def test_each_token_has_unique_jti(self, token_service):
        first = token_service.verify(token_service.issue(CLAIMS))
        second = token_service.verify(token_service.issue(CLAIMS))
        assert first.jti != second.jti

    def test_expired_token_is_rejected(self, token_service):
        issued = datetime.now(timezone.utc) - timedelta(minutes=61)
        assert token_service.verify(token_service.issue(CLAIMS, now=issued)) is None

    def test_wrong_signature_is_rejected(self, token_service):
        other = TokenService(AuthSettings(jwt_secret="a-completely-different-secret!!"))
        assert token_service.verify(other.issue(CLAIMS)) is None

    @pytest.mark.parametrize("token", [None, "", "not-a-jwt", "a.b.c"])
    def test_garbage_never_raises(self, token_service, token):
        assert token_service.verify(token) is None

    def test_missing_claim_is_rejected(self, token_service, settings):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "x", "user_id": 1, "role": "ADMIN", "jti": "j", "iat": now,
             "exp": now + timedelta(minutes=5)},
            settings.auth.jwt_secret.get_secret_value(),
            algorithm="HS256",
        )
        assert token_service.verify(token) is None

    def test_none_algorithm_is_rejected(self, token_service):
        now = datetime.now(timezone.utc)
        token = jwt.encode(dict(CLAIMS, jti="j", iat=now, exp=now + timedelta(minutes=5)),
                           None, algorithm="none")
        assert token_service.verify(token) is None


class TestHelpers:

    def test_fingerprint_is_sha256_hex(self, token_service):
        fp = token_service.fingerprint("some-token")
        assert len(fp) == 64
        assert fp == token_service.fingerprint("some-token")
        assert fp != token_service.fingerprint("other-token")

    def test_session_secret_is_256_bits(self):
        secret = TokenService.new_session_secret()
        assert len(secret) == 64
        int(secret, 16)
        assert secret != TokenService.new_session_secret()
