"""Unit tests for CredentialAllocations."""

import pytest

from src.allocation.credentials import Credential, CredentialAllocation, CredentialAllocations


@pytest.fixture
def credentials() -> CredentialAllocations:
    """Two stored credentials, none allocated."""
    return CredentialAllocations(
        [
            Credential("cred-1", title="Exchange", website="https://exchange.example"),
            Credential("cred-2", title="Email"),
        ]
    )


class TestCredentialAllocations:
    """Test cases for credential assignment."""

    def test_allocate(self, credentials: CredentialAllocations) -> None:
        """Test allocating a credential to a beneficiary."""
        assert credentials.allocate("cred-1", "alice")

        assert credentials.allocations() == [CredentialAllocation("cred-1", "alice")]
        assert credentials.allocated_count() == 1
        assert credentials.credential_count() == 2

    def test_allocate_duplicate(self, credentials: CredentialAllocations) -> None:
        """Test the same pair is stored once."""
        credentials.allocate("cred-1", "alice")

        assert not credentials.allocate("cred-1", "alice")
        assert credentials.allocated_count() == 1

    def test_one_credential_many_beneficiaries(self, credentials: CredentialAllocations) -> None:
        """Test a credential may be shared."""
        credentials.allocate("cred-1", "alice")
        credentials.allocate("cred-1", "bob")

        assert credentials.remove_credential("cred-1") == 2
        assert credentials.allocated_count() == 0

    def test_remove_beneficiary(self, credentials: CredentialAllocations) -> None:
        """Test removing a beneficiary's assignments."""
        credentials.allocate("cred-1", "alice")
        credentials.allocate("cred-2", "alice")
        credentials.allocate("cred-2", "bob")

        assert credentials.remove_beneficiary("alice") == 2
        assert credentials.allocations() == [CredentialAllocation("cred-2", "bob")]

    def test_for_beneficiary(self, credentials: CredentialAllocations) -> None:
        """Test credentials handed to one beneficiary."""
        credentials.allocate("cred-2", "alice")
        credentials.allocate("unknown", "alice")

        assert [c.title for c in credentials.for_beneficiary("alice")] == ["Email"]
        assert credentials.for_beneficiary("bob") == []

    def test_set_credentials_drops_vanished(self, credentials: CredentialAllocations) -> None:
        """Test assignments of deleted credentials are dropped."""
        credentials.allocate("cred-1", "alice")
        credentials.allocate("cred-2", "alice")

        credentials.set_credentials([Credential("cred-2", title="Email")])

        assert credentials.allocations() == [CredentialAllocation("cred-2", "alice")]
        assert [c.id for c in credentials.credentials] == ["cred-2"]

    def test_empty(self) -> None:
        """Test an empty credential store."""
        credentials = CredentialAllocations()

        assert credentials.credential_count() == 0
        assert credentials.allocated_count() == 0
