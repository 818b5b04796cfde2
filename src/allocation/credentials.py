"""Credential allocations: which beneficiary receives which stored login.

A credential is not divisible, so there are no percentages here, only
``(credential_id, beneficiary_id)`` pairs. One credential may be handed to
several beneficiaries.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from src.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Credential:
    """A stored credential the testator can bequeath.

    Secrets are owned by the credential vault; only identity and a label
    reach the allocation engine.
    """

    id: str
    title: str = ""
    website: str = ""


@dataclass(frozen=True)
class CredentialAllocation:
    credential_id: str
    beneficiary_id: str


class CredentialAllocations:
    """Ordered set of credential-to-beneficiary assignments."""

    def __init__(self, credentials: Optional[Iterable[Credential]] = None):
        self._credentials: List[Credential] = list(credentials or [])
        self._allocations: List[CredentialAllocation] = []

    @property
    def credentials(self) -> List[Credential]:
        return list(self._credentials)

    def set_credentials(self, credentials: Iterable[Credential]) -> None:
        """Replace the known credentials, dropping allocations of vanished ones."""
        self._credentials = list(credentials)
        known = {c.id for c in self._credentials}
        self._allocations = [a for a in self._allocations if a.credential_id in known]

    def allocations(self) -> List[CredentialAllocation]:
        return list(self._allocations)

    def allocate(self, credential_id: str, beneficiary_id: str) -> bool:
        """Give a credential to a beneficiary.

        Returns:
            False if that exact pair already exists
        """
        allocation = CredentialAllocation(credential_id, beneficiary_id)
        if allocation in self._allocations:
            return False
        self._allocations.append(allocation)
        logger.debug("Credential %s allocated to %s", credential_id, beneficiary_id)
        return True

    def remove_credential(self, credential_id: str) -> int:
        """Withdraw a credential from every beneficiary."""
        return self._remove(lambda a: a.credential_id == credential_id)

    def remove_beneficiary(self, beneficiary_id: str) -> int:
        return self._remove(lambda a: a.beneficiary_id == beneficiary_id)

    def for_beneficiary(self, beneficiary_id: str) -> List[Credential]:
        """Credentials allocated to ``beneficiary_id`` that are still known."""
        by_id = {c.id: c for c in self._credentials}
        return [
            by_id[a.credential_id]
            for a in self._allocations
            if a.beneficiary_id == beneficiary_id and a.credential_id in by_id
        ]

    def allocated_count(self) -> int:
        return len(self._allocations)

    def credential_count(self) -> int:
        return len(self._credentials)

    def _remove(self, predicate) -> int:
        before = len(self._allocations)
        self._allocations = [a for a in self._allocations if not predicate(a)]
        return before - len(self._allocations)
