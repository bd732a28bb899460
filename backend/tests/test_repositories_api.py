from datetime import datetime, timezone
from sqlalchemy import select
from batch_installer import get_db
from batch_installer.models.repository import Repository
from tests.test_lifecycle_helpers import installer_headers, register_plugin_repository, assert_transition
from tests.test_utils_seed import plugin_main_file, create_repository


def test_register_with_files_detects_plugin(client, app_instance):
    headers = installer_headers(app_instance, 'repo_register@example.com')
    body = register_plugin_repository(client, 'api/hello-world', headers)
    assert body['is_plugin'] is True and body['is_installed'] is False
    assert body['main_file'] == 'hello-world.php'
    assert body['detection']['plugin_data']['Plugin Name'] == 'hello-world'
    dup = client.post('/repositories', json={'repository': 'api/hello-world'}, headers=headers)
    assert dup.status_code == 400
    assert dup.get_json()['error']['detail'] == 'repository exists'


def test_register_without_files_stays_unknown(client, app_instance):
    headers = installer_headers(app_instance, 'repo_register@example.com')
    resp = client.post('/repositories', json={'repository': 'api/later'}, headers=headers)
    assert resp.status_code == 201
    assert resp.get_json()['state'] == 'unknown'
    assert 'detection' not in resp.get_json()


def test_register_validates_payload(client, app_instance):
    headers = installer_headers(app_instance, 'repo_register@example.com')
    assert client.post('/repositories', json={}, headers=headers).status_code == 400
    assert client.post('/repositories', json={'repository': 'no-slash'}, headers=headers).status_code == 400
    bad_files = client.post('/repositories', json={'repository': 'api/bad', 'files': ['a.php']}, headers=headers)
    assert bad_files.status_code == 400


def test_get_repository_and_not_found(client, app_instance):
    headers = installer_headers(app_instance, 'repo_get@example.com')
    register_plugin_repository(client, 'api/fetch-me', headers, is_plugin=False)
    ok = client.get('/repositories/api/fetch-me', headers=headers)
    assert ok.status_code == 200
    assert ok.get_json()['state'] == 'not_plugin'
    missing = client.get('/repositories/api/nope', headers=headers)
    assert missing.status_code == 404
    assert missing.get_json()['error']['title'] == 'Not Found'


def test_scan_then_refresh(client, app_instance):
    headers = installer_headers(app_instance, 'repo_scan@example.com')
    client.post('/repositories', json={'repository': 'api/scan-later'}, headers=headers)
    no_files = client.post('/repositories/api/scan-later/scan', json={}, headers=headers)
    assert no_files.status_code == 400
    scanned = client.post('/repositories/api/scan-later/scan',
                          json={'files': {'plugin.php': plugin_main_file('Scan Later')}}, headers=headers)
    assert scanned.status_code == 200, scanned.get_json()
    assert scanned.get_json()['state'] == 'available'
    assert scanned.get_json()['detection']['plugin_file'] == 'plugin.php'
    assert_transition(client, '/repositories/api/scan-later/refresh', headers, 200, expected_body_value='available')


def test_manual_state_change_is_guarded(client, app_instance):
    headers = installer_headers(app_instance, 'repo_state@example.com')
    register_plugin_repository(client, 'api/manual', headers, is_plugin=False)
    bad = client.put('/repositories/api/manual/state', json={'state': 'installed_active'}, headers=headers)
    assert bad.status_code == 400
    assert 'Invalid transition' in bad.get_json()['error']['detail']
    assert client.get('/repositories/api/manual', headers=headers).get_json()['state'] == 'not_plugin'
    invalid_token = client.put('/repositories/api/manual/state', json={'state': 'installed'}, headers=headers)
    assert invalid_token.status_code == 400
    assert_transition(client, '/repositories/api/manual/state', headers, 200, {'state': 'checking'},
                      expected_body_value='checking', method='put')


def test_batch_refresh(client, app_instance):
    headers = installer_headers(app_instance, 'repo_batch@example.com')
    register_plugin_repository(client, 'api/batch-one', headers)
    resp = client.post('/repositories/refresh', json={'repositories': ['api/batch-one', 'api/batch-new']}, headers=headers)
    assert resp.status_code == 200
    states = {r['repository']: r['state'] for r in resp.get_json()['results']}
    assert states == {'api/batch-one': 'available', 'api/batch-new': 'not_plugin'}
    assert client.post('/repositories/refresh', json={'repositories': []}, headers=headers).status_code == 400


def test_statistics_endpoint(client, app_instance):
    headers = installer_headers(app_instance, 'repo_stats@example.com')
    create_repository('api/stats-error', state='error')
    body = client.get('/repositories/statistics', headers=headers).get_json()
    assert body['error'] >= 1
    assert body['total'] == sum(v for k, v in body.items() if k != 'total')


def test_list_filters_and_sorts(client, app_instance):
    headers = installer_headers(app_instance, 'repo_list@example.com')
    for name in ('zeta', 'alpha', 'mid'):
        register_plugin_repository(client, f'listowner/{name}', headers, is_plugin=(name != 'mid'))
    resp = client.get('/repositories?owner=listowner&sort=-full_name', headers=headers)
    assert resp.status_code == 200
    names = [r['full_name'] for r in resp.get_json()['data']]
    assert names == ['listowner/zeta', 'listowner/mid', 'listowner/alpha']
    available = client.get('/repositories?owner=listowner&state=available', headers=headers).get_json()
    assert {r['name'] for r in available['data']} == {'zeta', 'alpha'}
    assert available['pagination']['total'] == 2
    assert client.get('/repositories?state=bogus', headers=headers).status_code == 400
    assert client.get('/repositories?sort=stars', headers=headers).status_code == 400
    paged = client.get('/repositories?owner=listowner&sort=full_name&limit=1&offset=1', headers=headers).get_json()
    assert [r['name'] for r in paged['data']] == ['mid']
    assert paged['pagination'] == {'total': 3, 'limit': 1, 'offset': 1, 'returned': 1}


def test_list_etag_changes_after_transition(client, app_instance):
    headers = installer_headers(app_instance, 'repo_etag@example.com')
    register_plugin_repository(client, 'etagowner/cached', headers)
    url = '/repositories?owner=etagowner'
    first = client.get(url, headers=headers)
    etag = first.headers.get('ETag')
    assert etag
    second = client.get(url, headers={**headers, 'If-None-Match': etag})
    assert second.status_code == 304
    assert second.headers.get('ETag') == etag
    client.put('/repositories/etagowner/cached/state', json={'state': 'checking'}, headers=headers)
    third = client.get(url, headers={**headers, 'If-None-Match': etag})
    assert third.status_code == 200
    assert third.headers.get('ETag') != etag


def test_if_modified_since_sees_transition(client, app_instance):
    headers = installer_headers(app_instance, 'repo_ims@example.com')
    register_plugin_repository(client, 'imsowner/dated', headers)
    session = get_db()
    repo = session.execute(select(Repository).where(Repository.full_name == 'imsowner/dated')).scalar_one()
    repo.updated_at = datetime(2020, 1, 1, tzinfo=timezone.utc)
    session.commit()
    url = '/repositories?owner=imsowner'
    first = client.get(url, headers=headers)
    last_modified = first.headers.get('Last-Modified')
    assert last_modified
    unchanged = client.get(url, headers={**headers, 'If-Modified-Since': last_modified})
    assert unchanged.status_code == 304
    assert_transition(client, '/plugins/install', headers, 201, {'repository': 'imsowner/dated'},
                      expected_body_value='installed_inactive')
    changed = client.get(url, headers={**headers, 'If-Modified-Since': last_modified})
    assert changed.status_code == 200
    assert changed.get_json()['data'][0]['state'] == 'installed_inactive'
    assert changed.headers.get('Last-Modified') != last_modified


def test_clear_cache_resets_states(client, app_instance):
    headers = installer_headers(app_instance, 'repo_cache@example.com')
    register_plugin_repository(client, 'cacheowner/reset-me', headers)
    resp = client.delete('/repositories/cache', headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()['cleared'] >= 1
    assert client.get('/repositories/cacheowner/reset-me', headers=headers).get_json()['state'] == 'unknown'
    # reading through a refresh determines the state again
    assert_transition(client, '/repositories/cacheowner/reset-me/refresh', headers, 200, expected_body_value='available')
