"""Governance-layer exceptions. Typed, no HTTP."""

from typing import Sequence


class GovernanceError(Exception):
    """Base for all governance-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class TamperProtectionViolationError(GovernanceError):
    """
    Raised on any attempt to update or delete an existing audit entry, whoever the caller.
    Security incident, distinct from ordinary policy denial.
    """

    def __init__(self, message: str, entry_id: str | None = None) -> None:
        super().__init__(message)
        self.entry_id = entry_id


class IntegrityCheckFailureError(GovernanceError):
    """Raised when a stored entry's checksum no longer matches its content (prior tampering or corruption)."""

    def __init__(self, message: str, entry_ids: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.entry_ids = tuple(entry_ids)
