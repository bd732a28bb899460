from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import select
from batch_installer import get_db
from batch_installer.decorators.auth import require_permissions
from batch_installer.decorators.audit import audit_log
from batch_installer.models.repository import Repository
from batch_installer.services.state_manager import StateManager
from batch_installer.utils.listing import make_cached_list_response, handle_conditional, apply_pagination
from batch_installer.utils.sorting import apply_multi_sort
from batch_installer.utils.validation import validate_state, validate_full_name, validate_string_list

repos_bp = Blueprint('repositories', __name__)

SORTABLE = {
    'full_name': Repository.full_name,
    'state': Repository.state,
    'updated_at': Repository.updated_at,
    'id': Repository.id,
}


def _full_name(kwargs) -> str:
    return f"{kwargs.get('owner')}/{kwargs.get('name')}"


def _prefetch_state(args, kwargs):
    repo = get_db().execute(select(Repository).where(Repository.full_name == _full_name(kwargs))).scalar_one_or_none()
    return {'state': repo.state} if repo else {}


def _files_payload(data) -> dict:
    files = data.get('files')
    if files is None:
        return {}
    if not isinstance(files, dict) or not all(isinstance(k, str) and isinstance(v, str) for k, v in files.items()):
        abort(400, description='files must map path -> content')
    return files


@repos_bp.route('', methods=['GET', 'HEAD'])
@require_permissions('PLUGINS.READ')
def list_repositories():
    session = get_db()
    q = session.query(Repository)
    state = request.args.get('state')
    if state:
        q = q.filter(Repository.state == validate_state(state).value)
    owner = request.args.get('owner')
    if owner:
        q = q.filter(Repository.owner == owner)
    q = apply_multi_sort(q, request.args.get('sort'), SORTABLE, Repository.id)
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    latest_ts = max((r.updated_at for r in rows if r.updated_at), default=None)
    resp, etag = make_cached_list_response([r.to_json() for r in rows], total, limit, offset, latest_ts)
    cond = handle_conditional(etag, latest_ts)
    if cond:
        return cond
    return resp


@repos_bp.post('')
@require_permissions('PLUGINS.SCAN')
@audit_log('REPOSITORY.REGISTER', entity='Repository', entity_id_key='full_name', meta_keys=['state'])
def register_repository():
    data = request.json or {}
    full_name = validate_full_name(data.get('repository'))
    files = _files_payload(data)
    session = get_db()
    manager = StateManager(session)
    if manager.find_repository(full_name):
        abort(400, description='repository exists')
    repo = manager.ensure_repository(full_name)
    detection = manager.scan_repository(full_name, files) if files else None
    session.commit()
    body = repo.to_json()
    if detection is not None:
        body['detection'] = detection.to_json()
    return body, 201


@repos_bp.get('/statistics')
@require_permissions('PLUGINS.READ')
def repository_statistics():
    return StateManager(get_db()).get_statistics()


@repos_bp.post('/refresh')
@require_permissions('PLUGINS.SCAN')
@audit_log('REPOSITORY.BATCH.REFRESH', entity='Repository', meta_builder=lambda data, rv, a, kw: {'count': len(data.get('results', []))})
def refresh_repositories():
    data = request.json or {}
    names = [validate_full_name(n) for n in validate_string_list(data.get('repositories'), 'repositories')]
    session = get_db()
    states = StateManager(session).batch_refresh_states(names)
    session.commit()
    return {'results': [{'repository': name, 'state': state.value} for name, state in states.items()]}


@repos_bp.delete('/cache')
@require_permissions('PLUGINS.SCAN')
@audit_log('REPOSITORY.CACHE.CLEAR', entity='Repository', meta_keys=['cleared'])
def clear_state_cache():
    session = get_db()
    cleared = StateManager(session).clear_cache()
    session.commit()
    return {'cleared': cleared}


@repos_bp.get('/<owner>/<name>')
@require_permissions('PLUGINS.READ')
def get_repository(owner: str, name: str):
    repo = StateManager(get_db()).require_repository(f'{owner}/{name}')
    return repo.to_json()


@repos_bp.post('/<owner>/<name>/scan')
@require_permissions('PLUGINS.SCAN')
@audit_log('REPOSITORY.SCAN', entity='Repository', entity_id_key='full_name', diff_keys=['state'], pre_fetch=_prefetch_state, meta_keys=['state'])
def scan_repository(owner: str, name: str):
    data = request.json or {}
    files = _files_payload(data)
    if not files:
        abort(400, description='files required')
    session = get_db()
    manager = StateManager(session)
    repo = manager.require_repository(f'{owner}/{name}')
    detection = manager.scan_repository(repo.full_name, files)
    session.commit()
    return dict(repo.to_json(), detection=detection.to_json())


@repos_bp.post('/<owner>/<name>/refresh')
@require_permissions('PLUGINS.SCAN')
@audit_log('REPOSITORY.REFRESH', entity='Repository', entity_id_key='full_name', diff_keys=['state'], pre_fetch=_prefetch_state, meta_keys=['state'])
def refresh_repository(owner: str, name: str):
    session = get_db()
    manager = StateManager(session)
    repo = manager.require_repository(f'{owner}/{name}')
    manager.refresh_state(repo.full_name)
    session.commit()
    return repo.to_json()


@repos_bp.put('/<owner>/<name>/state')
@require_permissions('PLUGINS.SCAN')
@audit_log('REPOSITORY.STATE.SET', entity='Repository', entity_id_key='full_name', diff_keys=['state'], pre_fetch=_prefetch_state, meta_keys=['state'])
def set_repository_state(owner: str, name: str):
    data = request.json or {}
    target = validate_state(data.get('state'))
    session = get_db()
    manager = StateManager(session)
    repo = manager.require_repository(f'{owner}/{name}')
    manager.set_state(repo.full_name, target)
    session.commit()
    return repo.to_json()
