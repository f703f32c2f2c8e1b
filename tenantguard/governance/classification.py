"""Static resource type -> sensitivity mapping used for compliance filtering."""

from typing import Dict, Mapping, Optional

from tenantguard.governance.audit_models import Sensitivity

DEFAULT_SENSITIVITY: Dict[str, Sensitivity] = {
    "users": Sensitivity.PII,
    "stakeholder_contacts": Sensitivity.PII,
    "stakeholder_notes": Sensitivity.SENSITIVE,
    "user_admins": Sensitivity.SENSITIVE,
    "clients": Sensitivity.CONFIDENTIAL,
    "organizations": Sensitivity.CONFIDENTIAL,
    "client_org_history": Sensitivity.CONFIDENTIAL,
}


class SensitivityClassifier:
    """Unknown resource types are PUBLIC."""

    def __init__(self, overrides: Optional[Mapping[str, str | Sensitivity]] = None) -> None:
        self._mapping: Dict[str, Sensitivity] = dict(DEFAULT_SENSITIVITY)
        for resource_type, level in (overrides or {}).items():
            self._mapping[resource_type] = Sensitivity(level)

    def classify(self, resource_type: str) -> Sensitivity:
        return self._mapping.get(resource_type, Sensitivity.PUBLIC)
