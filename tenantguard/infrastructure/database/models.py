# tenantguard/infrastructure/database/models.py

from typing import Dict, Type

from sqlalchemy import (
    DDL,
    JSON,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    event,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from tenantguard.governance.exceptions import TamperProtectionViolationError
from tenantguard.infrastructure.database.session import Base

JsonDocument = JSON().with_variant(JSONB(), "postgresql")

# Prefix of the message raised by the database triggers below
AUDIT_IMMUTABLE_MESSAGE = "audit entries are immutable"


class TenantRow(Base):
    __tablename__ = "tenants"

    tenant_id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)


class PrincipalBindingRow(Base):
    """Principal -> role and tenant binding, consulted by identity resolution."""

    __tablename__ = "principal_bindings"

    principal_id = Column(String, primary_key=True)
    role = Column(String, nullable=False, default="regular")
    tenant_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ResourceRow(Base):
    """Tenant-owned resource. User attributes live in one JSON document."""

    __abstract__ = True

    id = Column(String(36), primary_key=True)

    tenant_id = Column(String, nullable=False, index=True)
    owner_id = Column(String, nullable=True)
    attributes = Column(JsonDocument, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)


class OrganizationRow(ResourceRow):
    __tablename__ = "organizations"


class StakeholderContactRow(ResourceRow):
    __tablename__ = "stakeholder_contacts"


class StakeholderNoteRow(ResourceRow):
    __tablename__ = "stakeholder_notes"


class ClientOrgHistoryRow(ResourceRow):
    __tablename__ = "client_org_history"


RESOURCE_MODELS: Dict[str, Type[ResourceRow]] = {
    model.__tablename__: model
    for model in (OrganizationRow, StakeholderContactRow, StakeholderNoteRow, ClientOrgHistoryRow)
}


class AuditEntryRow(Base):
    """Append-only. Never updated or deleted; see the flush guard and trigger below."""

    __tablename__ = "audit_entries"

    sequence = Column(Integer, primary_key=True, autoincrement=True)
    entry_id = Column(String(36), nullable=False, unique=True)

    resource_type = Column(String, nullable=False)
    resource_id = Column(String, nullable=True)
    operation = Column(String, nullable=False)
    outcome = Column(String, nullable=False)
    denial_reason = Column(String, nullable=True)

    actor_id = Column(String, nullable=False)
    actor_role = Column(String, nullable=False)
    actor_tenant_id = Column(String, nullable=True)
    tenant_id = Column(String, nullable=True, index=True)
    is_cross_tenant = Column(Boolean, nullable=False, default=False)

    sensitivity = Column(String, nullable=False)
    before = Column(JsonDocument, nullable=True)
    after = Column(JsonDocument, nullable=True)
    changed_fields = Column(JSON, nullable=False, default=list)

    correlation_id = Column(String, nullable=True)
    purpose = Column(String, nullable=True)
    checksum = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_audit_entries_resource", "resource_type", "resource_id", "created_at"),
        Index("ix_audit_entries_actor", "actor_id", "created_at"),
    )


_AUDIT_IMMUTABLE_FUNCTION = DDL(
    f"""
    CREATE OR REPLACE FUNCTION audit_entries_immutable() RETURNS trigger AS $$
    BEGIN
        RAISE EXCEPTION USING MESSAGE = '{AUDIT_IMMUTABLE_MESSAGE}: ' || TG_OP || ' rejected';
    END;
    $$ LANGUAGE plpgsql
    """
)

_AUDIT_IMMUTABLE_TRIGGER = DDL(
    "CREATE TRIGGER audit_entries_no_update_delete "
    "BEFORE UPDATE OR DELETE ON audit_entries "
    "FOR EACH ROW EXECUTE FUNCTION audit_entries_immutable()"
)

event.listen(
    AuditEntryRow.__table__,
    "after_create",
    _AUDIT_IMMUTABLE_FUNCTION.execute_if(dialect="postgresql"),
)
event.listen(
    AuditEntryRow.__table__,
    "after_create",
    _AUDIT_IMMUTABLE_TRIGGER.execute_if(dialect="postgresql"),
)

# SQLite has no trigger functions; one trigger per statement type
for _op in ("UPDATE", "DELETE"):
    event.listen(
        AuditEntryRow.__table__,
        "after_create",
        DDL(
            f"CREATE TRIGGER audit_entries_no_{_op.lower()} "
            f"BEFORE {_op} ON audit_entries "
            f"BEGIN SELECT RAISE(ABORT, '{AUDIT_IMMUTABLE_MESSAGE}: {_op} rejected'); END"
        ).execute_if(dialect="sqlite"),
    )


@event.listens_for(Session, "before_flush")
def _reject_audit_entry_changes(session, flush_context, instances):
    """Applies to every session, including the service's own."""
    for obj in session.deleted:
        if isinstance(obj, AuditEntryRow):
            raise TamperProtectionViolationError(
                f"audit entry '{obj.entry_id}' is immutable; delete rejected",
                entry_id=obj.entry_id,
            )
    for obj in session.dirty:
        if isinstance(obj, AuditEntryRow) and session.is_modified(obj):
            raise TamperProtectionViolationError(
                f"audit entry '{obj.entry_id}' is immutable; update rejected",
                entry_id=obj.entry_id,
            )


@event.listens_for(Session, "do_orm_execute")
def _reject_audit_bulk_statements(orm_execute_state):
    """Bulk UPDATE/DELETE statements skip the flush; reject them before they reach the database."""
    if not (orm_execute_state.is_update or orm_execute_state.is_delete):
        return
    table = getattr(orm_execute_state.statement, "table", None)
    if getattr(table, "name", None) != AuditEntryRow.__tablename__:
        return
    action = "update" if orm_execute_state.is_update else "delete"
    raise TamperProtectionViolationError(f"audit entries are immutable; bulk {action} rejected")


@event.listens_for(Engine, "handle_error")
def _translate_audit_trigger_error(context):
    """Surface the immutability trigger as the same error the application raises."""
    if AUDIT_IMMUTABLE_MESSAGE in str(context.original_exception):
        raise TamperProtectionViolationError(
            "audit entries are immutable; rejected by database trigger"
        ) from context.original_exception
