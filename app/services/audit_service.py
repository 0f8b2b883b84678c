import uuid, json
from sqlalchemy.orm import Session
from app.models.audit_log import AuditLog

def log_audit(db: Session, actor_user_id: str, action: str, entity_type: str, entity_id: str, details: dict | None = None):
    """Stage an audit row; it is committed together with the caller's transaction."""
    db.add(AuditLog(
        id=str(uuid.uuid4()),
        actor_user_id=str(actor_user_id)[:36],
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id)[:36],
        details_json=json.dumps(details or {}, ensure_ascii=False, default=str),
    ))
