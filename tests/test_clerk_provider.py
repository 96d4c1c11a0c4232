"""Unit tests for ClerkIdentityProvider over a mocked Clerk SDK client."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from app.core.exceptions import UpstreamError
from app.modules.auth.service import ClerkIdentityProvider


def _clerk_user(emails=(), primary=None, first_name=None, public_metadata=None):
    return SimpleNamespace(
        email_addresses=[SimpleNamespace(id=eid, email_address=addr) for eid, addr in emails],
        primary_email_address_id=primary,
        first_name=first_name,
        public_metadata=public_metadata,
    )


@pytest.fixture
def clerk() -> MagicMock:
    return MagicMock()


@pytest.fixture
def provider(clerk: MagicMock) -> ClerkIdentityProvider:
    return ClerkIdentityProvider(clerk)


class TestFetchPrincipal:
    def test_reads_primary_email_name_and_role(self, provider, clerk):
        clerk.users.get.return_value = _clerk_user(
            emails=[("e1", "old@example.com"), ("e2", "main@example.com")],
            primary="e2",
            first_name="Ravi",
            public_metadata={"role": "driver"},
        )

        principal = provider.fetch_principal("user_1")

        clerk.users.get.assert_called_once_with(user_id="user_1")
        assert principal.id == "user_1"
        assert principal.email == "main@example.com"
        assert principal.first_name == "Ravi"
        assert principal.role == "driver"

    def test_falls_back_to_first_email(self, provider, clerk):
        clerk.users.get.return_value = _clerk_user(emails=[("e1", "only@example.com")], primary="gone")

        assert provider.fetch_principal("user_1").email == "only@example.com"

    def test_bare_user_has_no_email_or_role(self, provider, clerk):
        clerk.users.get.return_value = _clerk_user()

        principal = provider.fetch_principal("user_1")

        assert principal.email is None
        assert principal.role is None
        assert principal.metadata == {}

    def test_sdk_error_becomes_upstream_error(self, provider, clerk):
        clerk.users.get.side_effect = RuntimeError("404 user not found")

        with pytest.raises(UpstreamError) as exc_info:
            provider.fetch_principal("user_1")

        assert "404 user not found" in exc_info.value.message


class TestUpdateMetadata:
    def test_patches_public_metadata(self, provider, clerk):
        provider.update_metadata("user_1", {"role": "driver"})

        clerk.users.update_metadata.assert_called_once_with(
            user_id="user_1", public_metadata={"role": "driver"}
        )

    def test_sdk_error_becomes_upstream_error(self, provider, clerk):
        clerk.users.update_metadata.side_effect = RuntimeError("rate limited")

        with pytest.raises(UpstreamError):
            provider.update_metadata("user_1", {"role": "driver"})
