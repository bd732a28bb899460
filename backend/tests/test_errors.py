def test_unknown_path_returns_error_json(client):
    resp = client.get('/non-existent-path')
    # Flask default 404 should be wrapped by error handler
    assert resp.status_code == 404
    body = resp.get_json()
    assert 'error' in body
    assert body['error']['status'] == 404
    assert 'detail' in body['error']


def test_healthz(client):
    assert client.get('/healthz').get_json() == {'status': 'ok'}


def test_internal_error_shape(client, app_instance, monkeypatch):
    from tests.test_lifecycle_helpers import installer_headers
    import batch_installer.routes.repositories as repos_mod
    headers = installer_headers(app_instance, 'err@example.com', ['PLUGINS.READ'])

    class BoomManager:
        def __init__(self, session):
            pass

        def get_statistics(self):
            raise RuntimeError('explode')

    monkeypatch.setattr(repos_mod, 'StateManager', BoomManager)
    resp = client.get('/repositories/statistics', headers=headers)
    assert resp.status_code == 500
    body = resp.get_json()
    assert body['error']['status'] == 500
    assert body['error']['title'] == 'Internal Server Error'
    assert body['error']['detail'] == 'Unexpected error'


def test_domain_errors_map_to_client_errors(client, app_instance):
    from tests.test_lifecycle_helpers import installer_headers
    headers = installer_headers(app_instance, 'err_domain@example.com')
    not_found = client.post('/repositories/err/missing/refresh', headers=headers)
    assert not_found.status_code == 404
    assert not_found.get_json()['error']['detail'] == 'Repository not found: err/missing'
    plugin_missing = client.post('/plugins/activate', json={'plugin_file': 'err/none.php'}, headers=headers)
    assert plugin_missing.status_code == 404
    assert plugin_missing.get_json()['error']['detail'] == 'Plugin not installed: err/none.php'
