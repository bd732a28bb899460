from tests.test_lifecycle_helpers import (
    installer_headers, register_plugin_repository, assert_transition, exercise_plugin_lifecycle,
)


def test_plugin_lifecycle_over_http(client, app_instance):
    headers = installer_headers(app_instance, 'plugins_life@example.com')
    plugin_file = exercise_plugin_lifecycle(client, 'plug/life-cycle', headers)
    repo = client.get('/repositories/plug/life-cycle', headers=headers).get_json()
    assert repo['state'] == 'installed_inactive'
    assert repo['is_installed'] is True
    installed = client.get('/plugins/installed?limit=500', headers=headers).get_json()['data']
    row = next(p for p in installed if p['plugin_file'] == plugin_file)
    assert row['state'] == 'inactive'
    assert row['repository_id'] == repo['id']


def test_install_with_activate_flag(client, app_instance):
    headers = installer_headers(app_instance, 'plugins_activate@example.com')
    register_plugin_repository(client, 'plug/instant', headers)
    resp = client.post('/plugins/install', json={'repository': 'plug/instant', 'activate': True}, headers=headers)
    assert resp.status_code == 201
    body = resp.get_json()
    assert body['activated'] is True and body['state'] == 'installed_active'
    assert body['message'] == 'Plugin plug/instant installed successfully.'


def test_install_not_plugin_is_rejected(client, app_instance):
    headers = installer_headers(app_instance, 'plugins_reject@example.com')
    register_plugin_repository(client, 'plug/just-code', headers, is_plugin=False)
    resp = client.post('/plugins/install', json={'repository': 'plug/just-code'}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error']['status'] == 400
    assert client.get('/repositories/plug/just-code', headers=headers).get_json()['state'] == 'not_plugin'


def test_activate_unknown_plugin_is_404(client, app_instance):
    headers = installer_headers(app_instance, 'plugins_404@example.com')
    assert_transition(client, '/plugins/activate', headers, 404, {'plugin_file': 'ghost/ghost.php'})
    assert_transition(client, '/plugins/deactivate', headers, 400, {})


def test_batch_install_reports_each_item(client, app_instance):
    headers = installer_headers(app_instance, 'plugins_batch@example.com')
    register_plugin_repository(client, 'plug/batch-good', headers)
    register_plugin_repository(client, 'plug/batch-plain', headers, is_plugin=False)
    resp = client.post('/plugins/batch/install', json={
        'repositories': [{'repository': 'plug/batch-good'}, 'plug/batch-plain', {'other': 'skipped'}],
        'activate': True,
    }, headers=headers)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['total_count'] == 2
    assert body['success_count'] == 1
    assert body['message'] == 'Successfully processed 1 of 2 plugins.'
    assert body['results'][0]['state'] == 'installed_active'
    assert body['results'][1]['success'] is False


def test_batch_toggle(client, app_instance):
    headers = installer_headers(app_instance, 'plugins_toggle@example.com')
    for name in ('toggle-a', 'toggle-b'):
        register_plugin_repository(client, f'plug/{name}', headers)
    client.post('/plugins/batch/install', json={'repositories': ['plug/toggle-a', 'plug/toggle-b']}, headers=headers)
    files = ['toggle-a/toggle-a.php', 'toggle-b/toggle-b.php']
    on = client.post('/plugins/batch/activate', json={'plugin_files': files}, headers=headers).get_json()
    assert on['success_count'] == 2
    again = client.post('/plugins/batch/activate', json={'plugin_files': files[:1]}, headers=headers).get_json()
    assert again['success_count'] == 0
    off = client.post('/plugins/batch/deactivate', json={'plugin_files': [{'plugin_file': f} for f in files]}, headers=headers).get_json()
    assert off['success_count'] == 2
    assert client.post('/plugins/batch/deactivate', json={'plugin_files': 'toggle-a'}, headers=headers).status_code == 400


def test_installed_listing_supports_conditional_get(client, app_instance):
    headers = installer_headers(app_instance, 'plugins_etag@example.com')
    first = client.get('/plugins/installed', headers=headers)
    assert first.status_code == 200
    etag = first.headers.get('ETag')
    second = client.get('/plugins/installed', headers={**headers, 'If-None-Match': etag})
    assert second.status_code == 304
