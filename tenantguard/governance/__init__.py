"""Governance: tamper-evident audit log, anomaly detection, compliance views. No FastAPI."""

from tenantguard.governance.anomaly_detector import AnomalyDetector, DetectionThresholds
from tenantguard.governance.anomaly_models import AnomalyKind, AnomalySignal, Severity
from tenantguard.governance.audit_models import AuditEntry, AuditOutcome, Sensitivity
from tenantguard.governance.audit_recorder import AuditRecorder
from tenantguard.governance.classification import SensitivityClassifier
from tenantguard.governance.compliance_views import BulkAccessRow, ComplianceViews

__all__ = [
    "AnomalyDetector",
    "AnomalyKind",
    "AnomalySignal",
    "AuditEntry",
    "AuditOutcome",
    "AuditRecorder",
    "BulkAccessRow",
    "ComplianceViews",
    "DetectionThresholds",
    "SensitivityClassifier",
    "Severity",
]
