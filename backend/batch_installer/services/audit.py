from __future__ import annotations
from typing import Any, Dict, Optional
from flask import current_app
from flask_jwt_extended import get_jwt_identity, get_jwt
from batch_installer import get_db
from batch_installer.models.audit import AuditLog


def _current_actor():
    """Return (user_id, claims) for the request, or (None, {}) outside a JWT context."""
    try:
        ident = get_jwt_identity()
        claims = get_jwt() or {}
    except RuntimeError:
        return None, {}
    return (int(ident) if ident is not None else None), claims


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[str] = None, meta: Optional[Dict[str, Any]] = None):
    """Persist an audit log entry within the current DB session.

    Parameters:
      action: short action code e.g. REPOSITORY.REFRESH, PLUGIN.INSTALL
      entity: optional entity name (Repository, Plugin)
      entity_id: repository full name or plugin file
      meta: additional JSON-safe dictionary (will be shallow copied)
    """
    session = get_db()
    actor, claims = _current_actor()
    log = AuditLog(
        actor_user_id=actor or 0,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        perms_snapshot={'perms': claims.get('perms', [])},
        meta=dict(meta or {}),
    )
    session.add(log)
    current_app.logger.debug('audit %s %s=%s by %s', action, entity, entity_id, actor)
    # No commit here; caller's transaction boundary controls durability.
    return log
