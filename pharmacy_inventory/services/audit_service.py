import uuid
from typing import Any

from pharmacy_inventory.models.audit_log import AuditLog
from pharmacy_inventory.repositories.base import AuditRepository


def log_audit_event(
    audit: AuditRepository,
    *,
    actor: str,
    action: str,
    target_type: str,
    target_id: str | None = None,
    metadata_json: dict[str, Any] | None = None,
) -> AuditLog:
    event = AuditLog(
        id=str(uuid.uuid4()),
        actor=actor,
        action=action,
        target_type=target_type,
        target_id=target_id,
        metadata_json=metadata_json,
    )
    audit.add(event)
    return event
