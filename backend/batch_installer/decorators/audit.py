from __future__ import annotations
"""Audit logging decorator for state-changing route handlers.

Usage examples:

@audit_log('REPOSITORY.REFRESH', entity='Repository', entity_id_key='full_name',
           diff_keys=['state'], pre_fetch=lambda a, kw: _snapshot(kw))
def refresh_repository(owner, name): ...

@audit_log('PLUGIN.BATCH.INSTALL', entity='Plugin',
           meta_builder=lambda data, rv, args, kwargs: {'success_count': data.get('success_count')})
def batch_install(): ...

Parameters:
  action: required audit action code (e.g. PLUGIN.INSTALL)
  entity: optional entity label (Repository, Plugin)
  entity_id_key: key in the returned JSON object whose value becomes entity_id.
  entity_id_arg: name of the path parameter to use for entity_id (fallback if entity_id_key absent).
  meta_keys: list of keys to project from returned JSON into meta dict (shallow copy).
  meta_builder: callable returning a meta dict; receives (data, original_return_value, args, kwargs). Overrides meta_keys.
  diff_keys / pre_fetch: pre_fetch(args, kwargs) snapshots the entity before the handler runs;
    keys whose value changed are stored under meta['changes'] as {'before', 'after'}.

Only successful responses (status < 400) are audited. Failures inside the audit
path are logged and never change the handler's response.
"""

from functools import wraps
from typing import Any, Callable, Iterable, Optional, Dict

from flask import current_app

from batch_installer.services.audit import add_audit
from batch_installer import get_db


def _extract_payload(rv: Any):
    """Return (data, status) where data is the JSON-able dict for inspection."""
    if isinstance(rv, tuple) and rv:
        status = rv[1] if len(rv) > 1 and isinstance(rv[1], int) else 200
        return rv[0], status
    return rv, 200


def _diff(before: Dict[str, Any], after: Dict[str, Any], keys: Iterable[str]) -> Dict[str, Any]:
    changes = {}
    for k in keys:
        if k in before and k in after and before.get(k) != after.get(k):
            changes[k] = {'before': before.get(k), 'after': after.get(k)}
    return changes


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    meta_builder: Optional[Callable[[dict, Any, tuple, dict], dict]] = None,
    commit: bool = True,
    diff_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Dict[str, Any]]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before_snapshot = None
            if diff_keys and pre_fetch:
                before_snapshot = pre_fetch(args, kwargs)
            rv = fn(*args, **kwargs)
            data, status = _extract_payload(rv)
            if status >= 400:
                return rv
            try:
                if not isinstance(data, dict):
                    add_audit(action, entity, None, None)
                else:
                    entity_id = None
                    if entity_id_key and entity_id_key in data:
                        entity_id = data.get(entity_id_key)
                    elif entity_id_arg and entity_id_arg in kwargs:
                        entity_id = kwargs.get(entity_id_arg)
                    meta = None
                    if meta_builder:
                        meta = meta_builder(data, rv, args, kwargs)
                    elif meta_keys:
                        meta = {k: data.get(k) for k in meta_keys if k in data}
                    if diff_keys and isinstance(before_snapshot, dict):
                        changes = _diff(before_snapshot, data, diff_keys)
                        if changes:
                            meta = dict(meta or {}, changes=changes)
                    add_audit(action, entity, entity_id, meta)
                if commit:
                    get_db().commit()
            except Exception:
                # audit must not interfere with the main response
                current_app.logger.exception('Audit logging failed for %s', action)
                get_db().rollback()
            return rv
        return wrapper
    return outer
