"""
Audit trail helper shared by drug and movement services
"""
from typing import Optional
from uuid import UUID
from sqlalchemy.orm import Session

from app.models import AuditLog


def record_audit(
    db: Session,
    table_name: str,
    record_id,
    action: str,
    performed_by: Optional[UUID] = None,
    before_data: Optional[dict] = None,
    after_data: Optional[dict] = None,
) -> AuditLog:
    """Stage an audit row in the caller's transaction (no commit)"""
    audit = AuditLog(
        table_name=table_name,
        record_id=str(record_id),
        action=action,
        performed_by=performed_by,
        before_data=before_data,
        after_data=after_data,
    )
    db.add(audit)
    return audit
