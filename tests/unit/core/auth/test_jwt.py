"""Tests for session token issuing and verification."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import jwt as pyjwt
import pytest
from identity_helpers import TEST_SECRET

from knolib_identity.core.auth.jwt import SessionTokens, TokenError
from knolib_identity.core.auth.types import Role, TokenPayload


class TestIssue:
    """Test token creation."""

    def test_creates_three_part_jwt(self, tokens: SessionTokens) -> None:
        """Should create a compact JWT string."""
        token = tokens.issue(uuid4(), Role.AUTHOR)

        assert len(token.split(".")) == 3

    def test_token_contains_claims(self, tokens: SessionTokens) -> None:
        """Should round-trip sub and role."""
        user_id = uuid4()

        payload = tokens.verify(tokens.issue(user_id, Role.EDITOR))

        assert isinstance(payload, TokenPayload)
        assert payload.sub == str(user_id)
        assert payload.role == Role.EDITOR

    def test_expiry_is_iat_plus_ttl(self, tokens: SessionTokens) -> None:
        """Should set exp to iat plus 24 hours."""
        now = datetime.now(timezone.utc)

        payload = tokens.verify(tokens.issue(uuid4(), Role.AUTHOR, now=now))

        assert payload.exp - payload.iat == 24 * 3600

    def test_expires_at(self, tokens: SessionTokens) -> None:
        """Should report the expiry of a token issued now."""
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)

        assert tokens.expires_at(now) == now + timedelta(hours=24)


class TestVerify:
    """Test token verification."""

    def test_invalid_token_raises(self, tokens: SessionTokens) -> None:
        """Should raise TokenError for garbage."""
        with pytest.raises(TokenError, match="Invalid token"):
            tokens.verify("invalid.token.here")

    def test_expired_token_raises(self, tokens: SessionTokens) -> None:
        """Should reject a token past its expiry."""
        issued = datetime.now(timezone.utc) - timedelta(hours=25)
        token = tokens.issue(uuid4(), Role.AUTHOR, now=issued)

        with pytest.raises(TokenError, match="expired"):
            tokens.verify(token)

    def test_wrong_secret_raises(self, tokens: SessionTokens) -> None:
        """Should reject a token signed with another key."""
        other = SessionTokens(secret_key="another-secret")  # pragma: allowlist secret
        token = other.issue(uuid4(), Role.ADMIN)

        with pytest.raises(TokenError):
            tokens.verify(token)

    def test_tampered_payload_raises(self, tokens: SessionTokens) -> None:
        """Should reject a token whose payload was altered."""
        header, _, signature = tokens.issue(uuid4(), Role.AUTHOR).split(".")
        forged_payload = pyjwt.encode(
            {"sub": str(uuid4()), "role": "ADMIN", "exp": 9999999999, "iat": 0},
            "x",
        ).split(".")[1]

        with pytest.raises(TokenError):
            tokens.verify(f"{header}.{forged_payload}.{signature}")

    def test_missing_claim_raises(self, tokens: SessionTokens) -> None:
        """Should require the role claim."""
        token = pyjwt.encode(
            {"sub": str(uuid4()), "exp": 9999999999, "iat": 0}, TEST_SECRET, algorithm="HS256"
        )

        with pytest.raises(TokenError):
            tokens.verify(token)

    def test_unknown_role_raises(self, tokens: SessionTokens) -> None:
        """Should reject a role outside the hierarchy."""
        token = pyjwt.encode(
            {"sub": str(uuid4()), "role": "OWNER", "exp": 9999999999, "iat": 0},
            TEST_SECRET,
            algorithm="HS256",
        )

        with pytest.raises(TokenError, match="malformed claims"):
            tokens.verify(token)
