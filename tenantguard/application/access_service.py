"""Access control service: transaction boundary. Orchestrates policy, tenant guard, mutation, audit, detection."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Iterable, List, Mapping, NoReturn, Optional, Tuple

from tenantguard.application.exceptions import ResourceNotFoundError, UnknownResourceTypeError
from tenantguard.application.unit_of_work import UnitOfWork, UnitOfWorkFactory
from tenantguard.core.context import correlation_id_ctx
from tenantguard.domain.exceptions import DomainValidationError
from tenantguard.domain.models.principal import Principal
from tenantguard.domain.models.resource import (
    ID_FIELD,
    OWNER_FIELD,
    Operation,
    ResourceState,
    is_soft_deleted,
)
from tenantguard.domain.validators.resource_validator import (
    validate_proposed_state,
    validate_resource_ref,
)
from tenantguard.governance.anomaly_detector import AnomalyDetector
from tenantguard.governance.anomaly_models import AnomalySignal
from tenantguard.governance.audit_models import AuditEntry
from tenantguard.governance.audit_recorder import (
    DEFAULT_VOLATILE_FIELDS,
    AuditRecorder,
    Clock,
    utc_now,
)
from tenantguard.governance.classification import SensitivityClassifier
from tenantguard.governance.exceptions import (
    IntegrityCheckFailureError,
    TamperProtectionViolationError,
)
from tenantguard.governance.integrity import assert_intact
from tenantguard.security.exceptions import AccessDeniedError, TenantMismatchError
from tenantguard.security.policy import Decision, DenialReason, PolicyEvaluator
from tenantguard.security.tenant_guard import TenantBindingGuard

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class AccessControlService:
    """
    Application-layer orchestration only. No HTTP, no FastAPI.
    Transaction strategy: the resource mutation and its audit entry commit together
    or not at all. Denials are audited and committed before the error is raised.
    Anomaly detection runs after commit; its failures never reach the caller.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        evaluator: PolicyEvaluator,
        guard: TenantBindingGuard,
        classifier: Optional[SensitivityClassifier] = None,
        volatile_fields: Iterable[str] = DEFAULT_VOLATILE_FIELDS,
        detector: Optional[AnomalyDetector] = None,
        metrics=None,
        clock: Clock = utc_now,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._evaluator = evaluator
        self._guard = guard
        self._classifier = classifier or SensitivityClassifier()
        self._volatile = tuple(volatile_fields)
        self._detector = detector
        self._metrics = metrics
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)

    def _recorder(self, uow: UnitOfWork) -> AuditRecorder:
        return AuditRecorder(uow.audit, self._classifier, self._volatile, self._clock)

    def _count(self, name: str, category: str) -> None:
        if self._metrics is not None:
            self._metrics.increment(name, category=category)

    def check_access(
        self,
        principal: Principal,
        operation: Operation,
        resource_type: str,
        resource_tenant: Optional[str],
        *,
        resource_owner: Optional[str] = None,
        is_deleted: bool = False,
    ) -> Decision:
        """Pure decision. Records nothing, counts nothing; safe to call speculatively."""
        return self._evaluator.evaluate(
            principal,
            operation,
            resource_type,
            resource_tenant,
            resource_owner=resource_owner,
            is_deleted=is_deleted,
        )

    def _decide(
        self,
        principal: Principal,
        operation: Operation,
        resource_type: str,
        resource_tenant: Optional[str],
        *,
        resource_owner: Optional[str] = None,
        is_deleted: bool = False,
    ) -> Decision:
        """Decision taken on the way to an audited operation; counted per outcome."""
        decision = self.check_access(
            principal,
            operation,
            resource_type,
            resource_tenant,
            resource_owner=resource_owner,
            is_deleted=is_deleted,
        )
        self._count("access_decisions", "allowed" if decision.allowed else "denied")
        return decision

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[Tuple[UnitOfWork, AuditRecorder]]:
        """
        Unit of work plus its recorder. Anomaly detection runs once the unit of work
        has closed, so a slow scan never holds storage. It runs only when an audit
        entry was appended, including a denial committed just before raising.
        """
        recorder: Optional[AuditRecorder] = None
        try:
            async with self._uow_factory() as uow:
                recorder = self._recorder(uow)
                yield uow, recorder
        finally:
            if recorder is not None and recorder.entries_appended:
                await self._run_detection()

    async def apply_mutation(
        self,
        principal: Principal,
        operation: Operation,
        resource_type: str,
        resource_id: Optional[str],
        proposed_state: Optional[Mapping[str, Any]],
        *,
        correlation_id: Optional[str] = None,
        purpose: Optional[str] = None,
    ) -> ResourceState:
        """
        Single entry point for state changes: policy check, tenant-binding guard,
        mutation and audit entry inside one unit of work. Returns the stored state
        (the final soft-deleted state for DELETE).
        """
        if not operation.is_mutation:
            raise DomainValidationError("apply_mutation does not accept reads; use read_resource")
        validate_resource_ref(resource_type, resource_id)
        if operation != Operation.CREATE and resource_id is None:
            raise DomainValidationError(f"resource_id is required for {operation.value}")
        if operation != Operation.DELETE:
            validate_proposed_state(proposed_state)
        proposed = dict(proposed_state or {})
        correlation_id = correlation_id or correlation_id_ctx.get()

        async with self._transaction() as (uow, recorder):
            self._require_known(uow, resource_type)
            if operation == Operation.CREATE:
                result, entry = await self._create(
                    uow, recorder, principal, resource_type, proposed, correlation_id, purpose
                )
            else:
                result, entry = await self._change(
                    uow,
                    recorder,
                    principal,
                    operation,
                    resource_type,
                    resource_id,
                    proposed,
                    correlation_id,
                    purpose,
                )
            await uow.commit()

        self._count("mutations_applied", operation.value)
        self._logger.info(
            "mutation_applied",
            extra={
                "operation": operation.value,
                "resource_type": resource_type,
                "resource_id": result.get(ID_FIELD),
                "correlation_id": correlation_id,
                "audited": entry is not None,
            },
        )
        return result

    async def _create(
        self,
        uow: UnitOfWork,
        recorder: AuditRecorder,
        principal: Principal,
        resource_type: str,
        proposed: dict,
        correlation_id: Optional[str],
        purpose: Optional[str],
    ):
        field = self._guard.tenant_field
        supplied = proposed.get(field)
        decision = self._decide(principal, Operation.CREATE, resource_type, supplied)
        if not decision.allowed:
            await self._deny(
                uow,
                recorder,
                principal,
                Operation.CREATE,
                resource_type,
                None,
                supplied or principal.tenant_id,
                decision,
                correlation_id,
                purpose,
            )
        try:
            bound = self._guard.bind_on_create(principal, proposed)
        except TenantMismatchError as e:
            await self._reject_mismatch(
                uow, recorder, principal, Operation.CREATE, resource_type, None,
                supplied or principal.tenant_id, e, correlation_id, purpose,
            )
        stored = await uow.resources.insert(
            resource_type, bound, owner_id=principal.principal_id, now=self._clock()
        )
        entry = await recorder.record(
            Operation.CREATE,
            principal,
            resource_type,
            stored[ID_FIELD],
            stored.get(field),
            None,
            stored,
            correlation_id=correlation_id,
            purpose=purpose,
        )
        return stored, entry

    async def _change(
        self,
        uow: UnitOfWork,
        recorder: AuditRecorder,
        principal: Principal,
        operation: Operation,
        resource_type: str,
        resource_id: str,
        proposed: dict,
        correlation_id: Optional[str],
        purpose: Optional[str],
    ):
        field = self._guard.tenant_field
        stored = await uow.resources.get(resource_type, resource_id, include_deleted=True)
        if stored is None:
            raise ResourceNotFoundError(f"{resource_type} '{resource_id}' not found")
        stored_tenant = stored.get(field)
        decision = self._decide(
            principal,
            operation,
            resource_type,
            stored_tenant,
            resource_owner=stored.get(OWNER_FIELD),
            is_deleted=is_soft_deleted(stored),
        )
        if not decision.allowed:
            await self._deny(
                uow, recorder, principal, operation, resource_type, resource_id,
                stored_tenant, decision, correlation_id, purpose,
            )
        if is_soft_deleted(stored):
            # Administrators pass policy, but a soft-deleted resource cannot change further.
            raise ResourceNotFoundError(f"{resource_type} '{resource_id}' is deleted")

        now = self._clock()
        if operation == Operation.DELETE:
            result = await uow.resources.soft_delete(resource_type, resource_id, now=now)
            entry = await recorder.record(
                Operation.DELETE,
                principal,
                resource_type,
                resource_id,
                stored_tenant,
                stored,
                None,
                correlation_id=correlation_id,
                purpose=purpose,
            )
            return result, entry

        try:
            reassignment = self._guard.check_update(principal, stored_tenant, proposed)
        except TenantMismatchError as e:
            await self._reject_mismatch(
                uow, recorder, principal, operation, resource_type, resource_id,
                stored_tenant, e, correlation_id, purpose,
            )
        if reassignment is not None:
            self._logger.warning(
                "tenant_reassignment",
                extra={
                    "resource_type": resource_type,
                    "resource_id": resource_id,
                    "old_tenant_id": reassignment.old_tenant_id,
                    "new_tenant_id": reassignment.new_tenant_id,
                },
            )
        result = await uow.resources.update(resource_type, resource_id, proposed, now=now)
        entry = await recorder.record(
            Operation.UPDATE,
            principal,
            resource_type,
            resource_id,
            result.get(field),
            stored,
            result,
            correlation_id=correlation_id,
            purpose=purpose,
        )
        return result, entry

    async def read_resource(
        self,
        principal: Principal,
        resource_type: str,
        resource_id: str,
        *,
        correlation_id: Optional[str] = None,
        purpose: Optional[str] = None,
    ) -> ResourceState:
        """Policy-checked, audited read."""
        validate_resource_ref(resource_type, resource_id)
        correlation_id = correlation_id or correlation_id_ctx.get()
        async with self._transaction() as (uow, recorder):
            self._require_known(uow, resource_type)
            stored = await uow.resources.get(resource_type, resource_id, include_deleted=True)
            if stored is None:
                raise ResourceNotFoundError(f"{resource_type} '{resource_id}' not found")
            tenant_id = stored.get(self._guard.tenant_field)
            decision = self._decide(
                principal,
                Operation.READ,
                resource_type,
                tenant_id,
                resource_owner=stored.get(OWNER_FIELD),
                is_deleted=is_soft_deleted(stored),
            )
            if not decision.allowed:
                await self._deny(
                    uow, recorder, principal, Operation.READ, resource_type, resource_id,
                    tenant_id, decision, correlation_id, purpose,
                )
            await recorder.record(
                Operation.READ,
                principal,
                resource_type,
                resource_id,
                tenant_id,
                None,
                None,
                correlation_id=correlation_id,
                purpose=purpose,
            )
            await uow.commit()
        return stored

    async def get_audit_trail(
        self,
        principal: Principal,
        resource_type: str,
        resource_id: str,
    ) -> List[AuditEntry]:
        """
        Entries for one resource, oldest first. Same policy as reading the resource;
        administrators may also read trails of soft-deleted or missing resources.
        Raises IntegrityCheckFailureError if any entry fails checksum verification.
        """
        validate_resource_ref(resource_type, resource_id)
        async with self._transaction() as (uow, recorder):
            if not principal.is_admin:
                self._require_known(uow, resource_type)
                stored = await uow.resources.get(resource_type, resource_id, include_deleted=True)
                if stored is None:
                    raise ResourceNotFoundError(f"{resource_type} '{resource_id}' not found")
                tenant_id = stored.get(self._guard.tenant_field)
                decision = self._decide(
                    principal,
                    Operation.READ,
                    resource_type,
                    tenant_id,
                    resource_owner=stored.get(OWNER_FIELD),
                    is_deleted=is_soft_deleted(stored),
                )
                if not decision.allowed:
                    await self._deny(
                        uow, recorder, principal, Operation.READ, resource_type,
                        resource_id, tenant_id, decision, correlation_id_ctx.get(), "audit_trail",
                    )
            entries = await uow.audit.list_for_resource(resource_type, resource_id)

        try:
            assert_intact(entries)
        except IntegrityCheckFailureError as e:
            self._count("integrity_failures", resource_type)
            self._logger.critical(
                "audit_integrity_failure",
                extra={
                    "security_incident": True,
                    "resource_type": resource_type,
                    "resource_id": resource_id,
                    "entry_ids": list(e.entry_ids),
                },
            )
            raise
        return entries

    async def list_anomalies(
        self,
        principal: Principal,
        since: Optional[datetime] = None,
    ) -> List[AnomalySignal]:
        """Administrators see every signal; regular principals only their tenant's."""
        if self._detector is None:
            return []
        signals = await self._detector.list_signals(since or _EPOCH)
        if principal.is_admin:
            return signals
        if principal.tenant_id is None:
            return []
        return [s for s in signals if s.tenant_id == principal.tenant_id]

    async def modify_audit_entry(
        self,
        principal: Principal,
        entry_id: str,
        changes: Mapping[str, Any],
    ) -> NoReturn:
        """Audit entries are immutable: always raises TamperProtectionViolationError."""
        try:
            async with self._uow_factory() as uow:
                await uow.audit.update(entry_id, changes)
        except TamperProtectionViolationError:
            await self._report_tamper(principal, entry_id, "update")
            raise
        raise TamperProtectionViolationError("audit entries are immutable", entry_id=entry_id)

    async def delete_audit_entry(self, principal: Principal, entry_id: str) -> NoReturn:
        """Audit entries are never deleted: always raises TamperProtectionViolationError."""
        try:
            async with self._uow_factory() as uow:
                await uow.audit.delete(entry_id)
        except TamperProtectionViolationError:
            await self._report_tamper(principal, entry_id, "delete")
            raise
        raise TamperProtectionViolationError("audit entries are immutable", entry_id=entry_id)

    def _require_known(self, uow: UnitOfWork, resource_type: str) -> None:
        if not uow.resources.knows(resource_type):
            raise UnknownResourceTypeError(f"unknown resource type '{resource_type}'")

    async def _deny(
        self,
        uow: UnitOfWork,
        recorder: AuditRecorder,
        principal: Principal,
        operation: Operation,
        resource_type: str,
        resource_id: Optional[str],
        tenant_id: Optional[str],
        decision: Decision,
        correlation_id: Optional[str],
        purpose: Optional[str],
    ) -> NoReturn:
        """Record and commit the denial, then raise the matching error."""
        await recorder.record_denial(
            principal,
            operation,
            resource_type,
            resource_id,
            tenant_id,
            decision.reason,
            correlation_id=correlation_id,
            purpose=purpose,
        )
        await uow.commit()
        self._logger.info(
            "access_denied",
            extra={
                "operation": operation.value,
                "resource_type": resource_type,
                "resource_id": resource_id,
                "rule": decision.rule,
                "reason": decision.reason,
                "correlation_id": correlation_id,
            },
        )
        if decision.denial == DenialReason.NOT_FOUND:
            raise ResourceNotFoundError(f"{resource_type} '{resource_id}' not found")
        if decision.denial == DenialReason.TENANT_MISMATCH_ON_CREATE:
            raise TenantMismatchError(decision.reason, reason=decision.reason)
        raise AccessDeniedError(decision.reason, decision=decision)

    async def _reject_mismatch(
        self,
        uow: UnitOfWork,
        recorder: AuditRecorder,
        principal: Principal,
        operation: Operation,
        resource_type: str,
        resource_id: Optional[str],
        tenant_id: Optional[str],
        error: TenantMismatchError,
        correlation_id: Optional[str],
        purpose: Optional[str],
    ) -> NoReturn:
        await recorder.record_denial(
            principal,
            operation,
            resource_type,
            resource_id,
            tenant_id,
            error.reason,
            correlation_id=correlation_id,
            purpose=purpose,
        )
        await uow.commit()
        self._logger.info(
            "tenant_mismatch",
            extra={
                "operation": operation.value,
                "resource_type": resource_type,
                "resource_id": resource_id,
                "reason": error.reason,
                "correlation_id": correlation_id,
            },
        )
        raise error

    async def _report_tamper(self, principal: Principal, entry_id: str, action: str) -> None:
        self._count("tamper_attempts", action)
        self._logger.critical(
            "audit_tamper_attempt",
            extra={
                "security_incident": True,
                "entry_id": entry_id,
                "action": action,
                "actor_id": principal.principal_id,
                "actor_role": principal.role.value,
            },
        )
        if self._detector is None:
            return
        try:
            await self._detector.report_tamper(principal, entry_id, action)
        except Exception as e:
            self._logger.error(
                "tamper_signal_failed",
                extra={"entry_id": entry_id, "error": str(e)},
            )

    async def _run_detection(self) -> None:
        if self._detector is None:
            return
        try:
            await self._detector.scan()
        except Exception as e:
            # Do not re-raise: detection failure does not fail the committed operation.
            self._logger.error("anomaly_detection_failed", extra={"error": str(e)})
