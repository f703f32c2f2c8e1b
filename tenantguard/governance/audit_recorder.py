"""Audit recorder: field-level diff, sensitivity, checksum, append. No FastAPI."""

import json
import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

from tenantguard.domain.models.principal import Principal
from tenantguard.domain.models.resource import Operation
from tenantguard.governance.audit_models import AuditEntry, AuditOutcome
from tenantguard.governance.audit_repository import AuditRepository
from tenantguard.governance.classification import SensitivityClassifier
from tenantguard.governance.integrity import seal

logger = logging.getLogger(__name__)

DEFAULT_VOLATILE_FIELDS = ("updated_at", "created_at")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _encode(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_jsonable(state: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """Detached JSON-compatible copy, so an entry never shares mutable state with the caller."""
    if state is None:
        return None
    return json.loads(json.dumps(dict(state), default=_encode))


def diff_states(
    before: Mapping[str, Any],
    after: Mapping[str, Any],
    volatile_fields: Iterable[str] = DEFAULT_VOLATILE_FIELDS,
) -> Tuple[Dict[str, Any], Dict[str, Any], Tuple[str, ...]]:
    """
    Changed fields between two states: present on both sides with different values,
    added, or removed. Volatile bookkeeping fields never count as a change.
    Returns (old values, new values, sorted changed field names); removed fields map
    to None on the new side and added fields to None on the old side.
    """
    volatile = frozenset(volatile_fields)
    old_values: Dict[str, Any] = {}
    new_values: Dict[str, Any] = {}
    for key in sorted(set(before) | set(after)):
        if key in volatile:
            continue
        in_before, in_after = key in before, key in after
        if in_before and in_after and before[key] == after[key]:
            continue
        old_values[key] = before.get(key) if in_before else None
        new_values[key] = after.get(key) if in_after else None
    return old_values, new_values, tuple(old_values.keys())


class AuditRecorder:
    """
    Builds and appends immutable audit entries via repository.
    Create keeps the full after-state, update only the changed fields, delete the
    full pre-deletion snapshot. An update with no effective change writes nothing.
    """

    def __init__(
        self,
        repository: AuditRepository,
        classifier: Optional[SensitivityClassifier] = None,
        volatile_fields: Iterable[str] = DEFAULT_VOLATILE_FIELDS,
        clock: Clock = utc_now,
    ) -> None:
        self._repository = repository
        self._classifier = classifier or SensitivityClassifier()
        self._volatile = tuple(volatile_fields)
        self._clock = clock
        self.entries_appended = 0

    def build_entry(
        self,
        operation: Operation,
        principal: Principal,
        resource_type: str,
        resource_id: Optional[str],
        tenant_id: Optional[str],
        before: Optional[Mapping[str, Any]],
        after: Optional[Mapping[str, Any]],
        *,
        outcome: AuditOutcome = AuditOutcome.ALLOWED,
        denial_reason: Optional[str] = None,
        correlation_id: Optional[str] = None,
        purpose: Optional[str] = None,
    ) -> Optional[AuditEntry]:
        """Pure: returns the sealed entry, or None when an update changed nothing."""
        before_json = to_jsonable(before)
        after_json = to_jsonable(after)
        changed: Tuple[str, ...] = ()

        if outcome == AuditOutcome.DENIED or operation == Operation.READ:
            before_json, after_json = None, None
        elif operation == Operation.CREATE:
            before_json = None
            changed = tuple(sorted((after_json or {}).keys()))
        elif operation == Operation.UPDATE:
            before_json, after_json, changed = diff_states(
                before_json or {}, after_json or {}, self._volatile
            )
            if not changed:
                return None
        elif operation == Operation.DELETE:
            after_json = None
            changed = tuple(sorted((before_json or {}).keys()))

        entry = AuditEntry(
            entry_id=str(uuid.uuid4()),
            resource_type=resource_type,
            resource_id=resource_id,
            operation=operation,
            outcome=outcome,
            actor_id=principal.principal_id,
            actor_role=principal.role,
            actor_tenant_id=principal.tenant_id,
            tenant_id=tenant_id,
            sensitivity=self._classifier.classify(resource_type),
            created_at=self._clock().astimezone(timezone.utc),
            before=before_json,
            after=after_json,
            changed_fields=changed,
            denial_reason=denial_reason,
            correlation_id=correlation_id,
            purpose=purpose,
        )
        return seal(entry)

    async def record(
        self,
        operation: Operation,
        principal: Principal,
        resource_type: str,
        resource_id: Optional[str],
        tenant_id: Optional[str],
        before: Optional[Mapping[str, Any]],
        after: Optional[Mapping[str, Any]],
        *,
        correlation_id: Optional[str] = None,
        purpose: Optional[str] = None,
    ) -> Optional[AuditEntry]:
        """Write the entry for a permitted operation. Returns None for a suppressed no-op update."""
        entry = self.build_entry(
            operation,
            principal,
            resource_type,
            resource_id,
            tenant_id,
            before,
            after,
            correlation_id=correlation_id,
            purpose=purpose,
        )
        if entry is None:
            logger.debug(
                "audit_noop_suppressed",
                extra={"resource_type": resource_type, "resource_id": resource_id},
            )
            return None
        await self._repository.append(entry)
        self.entries_appended += 1
        logger.info(
            "audit_entry_recorded",
            extra={
                "entry_id": entry.entry_id,
                "operation": entry.operation.value,
                "resource_type": resource_type,
                "resource_id": resource_id,
                "changed_fields": list(entry.changed_fields),
            },
        )
        return entry

    async def record_denial(
        self,
        principal: Principal,
        operation: Operation,
        resource_type: str,
        resource_id: Optional[str],
        tenant_id: Optional[str],
        reason: str,
        *,
        correlation_id: Optional[str] = None,
        purpose: Optional[str] = None,
    ) -> AuditEntry:
        """Denials are audited too; anomaly detection depends on them."""
        entry = self.build_entry(
            operation,
            principal,
            resource_type,
            resource_id,
            tenant_id,
            None,
            None,
            outcome=AuditOutcome.DENIED,
            denial_reason=reason,
            correlation_id=correlation_id,
            purpose=purpose,
        )
        await self._repository.append(entry)
        self.entries_appended += 1
        logger.info(
            "audit_denial_recorded",
            extra={
                "entry_id": entry.entry_id,
                "operation": operation.value,
                "resource_type": resource_type,
                "resource_id": resource_id,
                "reason": reason,
            },
        )
        return entry
