"""Tests for the SQLAlchemy identity models."""

from knolib_identity.models import BaseModel, LinkedIdentity, OAuthProvider, User


class TestModels:
    """Test table definitions."""

    def test_tables_registered(self) -> None:
        """Should register all identity tables on the shared metadata."""
        assert {"users", "linked_identities", "oauth_providers"} <= set(
            BaseModel.metadata.tables
        )

    def test_common_columns(self) -> None:
        """Should give every table an id and created_at."""
        for model in (User, LinkedIdentity, OAuthProvider):
            columns = model.__table__.c
            assert "id" in columns
            assert "created_at" in columns

    def test_user_email_index(self) -> None:
        """Should index lower(email) uniquely."""
        (index,) = [ix for ix in User.__table__.indexes if ix.name == "uq_users_email"]

        assert index.unique is True

    def test_identity_foreign_key_cascades(self) -> None:
        """Should delete identities with their user."""
        (fk,) = LinkedIdentity.__table__.c.user_id.foreign_keys

        assert fk.column.table.name == "users"
        assert fk.ondelete == "CASCADE"

    def test_user_defaults(self) -> None:
        """Should default new accounts to active AUTHORs."""
        columns = User.__table__.c

        assert columns.role.default.arg == "AUTHOR"
        assert columns.is_active.default.arg is True
        assert columns.email.nullable is True
        assert columns.password_hash.nullable is True
