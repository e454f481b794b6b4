"""Tests for identity exceptions."""

import pytest

from knolib_identity.core.exceptions import (
    AccountDisabled,
    DuplicateLink,
    Forbidden,
    IdentityConflict,
    IdentityError,
    InvalidCredentials,
    LastSignInMethod,
    ProviderUnavailable,
    RateLimited,
    Unauthorized,
    UniqueViolation,
    WeakPassword,
)


class TestIdentityError:
    """Test the error envelope."""

    @pytest.mark.parametrize(
        "error_cls, status",
        [
            (InvalidCredentials, 401),
            (Unauthorized, 401),
            (AccountDisabled, 403),
            (Forbidden, 403),
            (IdentityConflict, 409),
            (DuplicateLink, 409),
            (RateLimited, 429),
            (ProviderUnavailable, 502),
            (LastSignInMethod, 400),
        ],
    )
    def test_status_codes(self, error_cls: type[IdentityError], status: int) -> None:
        """Should carry the HTTP status it renders with."""
        assert error_cls.status_code == status
        assert issubclass(error_cls, IdentityError)

    def test_default_message(self) -> None:
        """Should fall back to the class message."""
        error = InvalidCredentials()

        assert error.to_dict() == {
            "error": "InvalidCredentials",
            "message": "Invalid email or password",
        }
        assert str(error) == "Invalid email or password"

    def test_custom_message(self) -> None:
        """Should use the given message."""
        assert Forbidden("nope").to_dict()["message"] == "nope"

    def test_weak_password_violations(self) -> None:
        """Should include every violation."""
        error = WeakPassword(["too short", "no digit"])

        assert error.to_dict()["violations"] == ["too short", "no digit"]
        assert error.to_dict()["error"] == "WeakPassword"

    def test_unique_violation_is_not_rendered(self) -> None:
        """Should stay outside the IdentityError hierarchy."""
        error = UniqueViolation("uq_users_email")

        assert error.constraint == "uq_users_email"
        assert not isinstance(error, IdentityError)
