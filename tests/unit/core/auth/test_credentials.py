"""Tests for email/password authentication."""

from unittest.mock import patch

import pytest
from identity_helpers import STRONG_PASSWORD

from knolib_identity.adapters.auth.memory import InMemoryIdentityRepository
from knolib_identity.core.auth.credentials import CredentialAuthenticator
from knolib_identity.core.auth.password import hash_password
from knolib_identity.core.exceptions import AccountDisabled, InvalidCredentials


@pytest.fixture
def authenticator(repo: InMemoryIdentityRepository) -> CredentialAuthenticator:
    """Create an authenticator over the in-memory repository."""
    return CredentialAuthenticator(repo)


class TestAuthenticate:
    """Test CredentialAuthenticator.authenticate."""

    async def test_valid_credentials(
        self, repo: InMemoryIdentityRepository, authenticator: CredentialAuthenticator
    ) -> None:
        """Should return the user for a matching pair."""
        created = await repo.create_user("a@x.com", password_hash=hash_password(STRONG_PASSWORD))

        user = await authenticator.authenticate("a@x.com", STRONG_PASSWORD)

        assert user.id == created.id

    async def test_email_is_case_insensitive(
        self, repo: InMemoryIdentityRepository, authenticator: CredentialAuthenticator
    ) -> None:
        """Should match regardless of email case."""
        created = await repo.create_user("a@x.com", password_hash=hash_password(STRONG_PASSWORD))

        user = await authenticator.authenticate("  A@X.com ", STRONG_PASSWORD)

        assert user.id == created.id

    async def test_wrong_password(
        self, repo: InMemoryIdentityRepository, authenticator: CredentialAuthenticator
    ) -> None:
        """Should raise InvalidCredentials."""
        await repo.create_user("a@x.com", password_hash=hash_password(STRONG_PASSWORD))

        with pytest.raises(InvalidCredentials):
            await authenticator.authenticate("a@x.com", "Wrong123!@")

    async def test_unknown_email_matches_wrong_password(
        self, authenticator: CredentialAuthenticator
    ) -> None:
        """Should raise the same error for an unknown email."""
        with pytest.raises(InvalidCredentials) as exc_info:
            await authenticator.authenticate("nobody@x.com", STRONG_PASSWORD)

        assert exc_info.value.message == InvalidCredentials().message

    async def test_unknown_email_still_runs_bcrypt(
        self, authenticator: CredentialAuthenticator
    ) -> None:
        """Should spend a bcrypt comparison on unknown emails."""
        with patch("knolib_identity.core.auth.password.bcrypt.checkpw") as checkpw:
            checkpw.return_value = False
            with pytest.raises(InvalidCredentials):
                await authenticator.authenticate("nobody@x.com", STRONG_PASSWORD)

        checkpw.assert_called_once()

    async def test_oauth_only_account(
        self, repo: InMemoryIdentityRepository, authenticator: CredentialAuthenticator
    ) -> None:
        """Should reject password login for accounts without a password."""
        await repo.create_user("a@x.com")

        with pytest.raises(InvalidCredentials):
            await authenticator.authenticate("a@x.com", STRONG_PASSWORD)

    async def test_inactive_account(
        self, repo: InMemoryIdentityRepository, authenticator: CredentialAuthenticator
    ) -> None:
        """Should raise AccountDisabled when the password matches a deactivated account."""
        await repo.create_user(
            "a@x.com", password_hash=hash_password(STRONG_PASSWORD), is_active=False
        )

        with pytest.raises(AccountDisabled):
            await authenticator.authenticate("a@x.com", STRONG_PASSWORD)

    async def test_inactive_account_wrong_password(
        self, repo: InMemoryIdentityRepository, authenticator: CredentialAuthenticator
    ) -> None:
        """Should report the disabled state whatever password is given."""
        await repo.create_user(
            "a@x.com", password_hash=hash_password(STRONG_PASSWORD), is_active=False
        )

        with pytest.raises(AccountDisabled):
            await authenticator.authenticate("a@x.com", "Wrong123!@")
