"""Tests for the Credential Manager."""

import pytest

from expense_tracker.security import (
    MAX_PASSWORD_BYTES,
    CredentialError,
    CredentialManager,
)


@pytest.fixture
def manager():
    return CredentialManager(rounds=4)


class TestHashing:
    """Tests for hash()."""

    def test_digest_differs_from_plaintext(self, manager):
        assert manager.hash("Secret123!") != "Secret123!"

    def test_fresh_salt_every_call(self, manager):
        """Two digests of the same password differ."""
        assert manager.hash("Secret123!") != manager.hash("Secret123!")

    def test_uses_configured_rounds(self, manager):
        digest = manager.hash("Secret123!")
        assert digest.startswith("$2b$04$")
        assert manager.rounds == 4

    def test_rejects_overlong_password(self, manager):
        with pytest.raises(ValueError):
            manager.hash("A1" + "x" * MAX_PASSWORD_BYTES)


class TestVerification:
    """Tests for verify()."""

    def test_round_trip(self, manager):
        digest = manager.hash("Secret123!")
        assert manager.verify("Secret123!", digest) is True

    def test_wrong_password(self, manager):
        digest = manager.hash("Secret123!")
        assert manager.verify("Secret124!", digest) is False

    def test_case_sensitive(self, manager):
        digest = manager.hash("Secret123!")
        assert manager.verify("secret123!", digest) is False

    @pytest.mark.parametrize("plaintext", ["", None])
    def test_empty_or_missing_plaintext_is_false(self, manager, plaintext):
        """Never raises for an absent password, even with a junk digest."""
        assert manager.verify(plaintext, manager.hash("Secret123!")) is False
        assert manager.verify(plaintext, "not-a-digest") is False

    def test_overlong_plaintext_is_false(self, manager):
        digest = manager.hash("Secret123!")
        assert manager.verify("x" * (MAX_PASSWORD_BYTES + 1), digest) is False

    def test_malformed_digest_is_internal_failure(self, manager):
        """A corrupt stored digest is not the same as a wrong password."""
        with pytest.raises(CredentialError) as exc_info:
            manager.verify("Secret123!", "not-a-digest")
        assert exc_info.value.code == "credential_failure"
