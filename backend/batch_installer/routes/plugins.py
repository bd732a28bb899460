from __future__ import annotations
from flask import Blueprint, request, abort
from batch_installer import get_db
from batch_installer.decorators.auth import require_permissions
from batch_installer.decorators.audit import audit_log
from batch_installer.models.installed_plugin import InstalledPlugin
from batch_installer.services.installation import PluginInstallationService
from batch_installer.utils.listing import make_cached_list_response, handle_conditional, apply_pagination
from batch_installer.utils.validation import validate_full_name, validate_string_list

plugins_bp = Blueprint('plugins', __name__)


def _plugin_file(data) -> str:
    plugin_file = data.get('plugin_file')
    if not isinstance(plugin_file, str) or not plugin_file.strip():
        abort(400, description='plugin_file required')
    return plugin_file.strip()


def _batch_summary(results):
    success_count = sum(1 for r in results if r.get('success'))
    return {
        'message': f'Successfully processed {success_count} of {len(results)} plugins.',
        'results': results,
        'success_count': success_count,
        'total_count': len(results),
    }


@plugins_bp.route('/installed', methods=['GET', 'HEAD'])
@require_permissions('PLUGINS.READ')
def list_installed():
    q = get_db().query(InstalledPlugin).order_by(InstalledPlugin.plugin_file.asc(), InstalledPlugin.id.asc())
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    latest_ts = max((p.updated_at for p in rows if p.updated_at), default=None)
    data = [dict(p.to_json(), state='active' if p.active else 'inactive') for p in rows]
    resp, etag = make_cached_list_response(data, total, limit, offset, latest_ts)
    cond = handle_conditional(etag, latest_ts)
    if cond:
        return cond
    return resp


@plugins_bp.post('/install')
@require_permissions('PLUGINS.INSTALL')
@audit_log('PLUGIN.INSTALL', entity='Repository', entity_id_key='repository', meta_keys=['plugin_file', 'state', 'activated'])
def install_plugin():
    data = request.json or {}
    full_name = validate_full_name(data.get('repository'))
    activate = bool(data.get('activate', False))
    session = get_db()
    result = PluginInstallationService().install_and_activate(full_name, activate)
    session.commit()
    return dict(result, message=f'Plugin {full_name} installed successfully.'), 201


@plugins_bp.post('/activate')
@require_permissions('PLUGINS.ACTIVATE')
@audit_log('PLUGIN.ACTIVATE', entity='Plugin', entity_id_key='plugin_file', meta_keys=['repository', 'state'])
def activate_plugin():
    plugin_file = _plugin_file(request.json or {})
    session = get_db()
    result = PluginInstallationService().activate_plugin(plugin_file)
    session.commit()
    return result


@plugins_bp.post('/deactivate')
@require_permissions('PLUGINS.ACTIVATE')
@audit_log('PLUGIN.DEACTIVATE', entity='Plugin', entity_id_key='plugin_file', meta_keys=['repository', 'state'])
def deactivate_plugin():
    plugin_file = _plugin_file(request.json or {})
    session = get_db()
    result = PluginInstallationService().deactivate_plugin(plugin_file)
    session.commit()
    return result


@plugins_bp.post('/batch/install')
@require_permissions('PLUGINS.INSTALL')
@audit_log('PLUGIN.BATCH.INSTALL', entity='Plugin', meta_keys=['success_count', 'total_count'])
def batch_install():
    data = request.json or {}
    names = validate_string_list(data.get('repositories'), 'repositories', item_key='repository')
    names = [validate_full_name(n) for n in names]
    session = get_db()
    results = PluginInstallationService().batch_install(names, bool(data.get('activate', False)))
    session.commit()
    return _batch_summary(results)


@plugins_bp.post('/batch/activate')
@require_permissions('PLUGINS.ACTIVATE')
@audit_log('PLUGIN.BATCH.ACTIVATE', entity='Plugin', meta_keys=['success_count', 'total_count'])
def batch_activate():
    data = request.json or {}
    files = validate_string_list(data.get('plugin_files'), 'plugin_files', item_key='plugin_file')
    session = get_db()
    results = PluginInstallationService().batch_activate(files)
    session.commit()
    return _batch_summary(results)


@plugins_bp.post('/batch/deactivate')
@require_permissions('PLUGINS.ACTIVATE')
@audit_log('PLUGIN.BATCH.DEACTIVATE', entity='Plugin', meta_keys=['success_count', 'total_count'])
def batch_deactivate():
    data = request.json or {}
    files = validate_string_list(data.get('plugin_files'), 'plugin_files', item_key='plugin_file')
    session = get_db()
    results = PluginInstallationService().batch_deactivate(files)
    session.commit()
    return _batch_summary(results)
