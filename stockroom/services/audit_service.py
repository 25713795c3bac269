from __future__ import annotations

from sqlalchemy.orm import Session

from stockroom.models import AuditLog


def log_audit(
    db: Session,
    *,
    company_id: str,
    actor_uid: str | None,
    action: str,
    ip: str | None = None,
    metadata: dict | None = None,
) -> None:
    db.add(
        AuditLog(
            company_id=company_id,
            actor_uid=actor_uid,
            action=action,
            ip=ip,
            meta=metadata or {},
        )
    )
