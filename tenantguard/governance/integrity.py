"""Audit entry checksums. SHA-256 over the canonical JSON of the immutable fields."""

import hashlib
import hmac
import json
from dataclasses import replace
from typing import Iterable, List

from tenantguard.governance.audit_models import AuditEntry
from tenantguard.governance.exceptions import IntegrityCheckFailureError


def canonical_json(payload: dict) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def compute_checksum(entry: AuditEntry) -> str:
    digest = hashlib.sha256(canonical_json(entry.checksum_payload()).encode("utf-8"))
    return digest.hexdigest()


def seal(entry: AuditEntry) -> AuditEntry:
    """Return a copy of entry carrying its checksum."""
    return replace(entry, checksum=compute_checksum(entry))


def verify_entry(entry: AuditEntry) -> bool:
    if not entry.checksum:
        return False
    return hmac.compare_digest(entry.checksum, compute_checksum(entry))


def find_tampered(entries: Iterable[AuditEntry]) -> List[str]:
    """Entry ids whose stored checksum no longer matches their content."""
    return [entry.entry_id for entry in entries if not verify_entry(entry)]


def assert_intact(entries: Iterable[AuditEntry]) -> None:
    """Raises IntegrityCheckFailureError listing every entry that fails verification."""
    tampered = find_tampered(entries)
    if tampered:
        raise IntegrityCheckFailureError(
            f"Audit integrity check failed for {len(tampered)} entr"
            f"{'y' if len(tampered) == 1 else 'ies'}",
            entry_ids=tampered,
        )
