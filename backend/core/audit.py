from .models import AuditLog


def audit(actor_type, actor_id, action, entity, entity_id=None, payload=None):
    AuditLog.objects.create(
        actor_type=actor_type,
        actor_id=actor_id,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id else None,
        payload=payload or {}
    )
