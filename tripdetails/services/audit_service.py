from sqlalchemy.orm import Session

from tripdetails.models import AuditLog


def log_action(
    db: Session,
    user,
    action: str,
    entity_type: str = None,
    entity_id: int = None,
    details: str = None,
):
    """Record an audit log entry in the caller's transaction."""
    entry = AuditLog(
        user_id=user.user_id,
        username=user.username,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
    )
    db.add(entry)
    db.flush()
    return entry
