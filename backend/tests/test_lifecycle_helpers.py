"""Reusable test helpers for the repository/plugin lifecycle.

Patterns unified:
 - Auth header creation using direct JWT claims (bypassing /login) or a seeded user + role.
 - Registration + transition sequencing with assertion helpers.
"""
from __future__ import annotations
from typing import Dict, List
from flask_jwt_extended import create_access_token
from tests.test_utils_seed import ensure_permissions, ensure_user, ensure_role, ensure_user_role_assignment, plugin_main_file
from batch_installer import get_db

ALL_PLUGIN_PERMS = ['PLUGINS.READ', 'PLUGINS.SCAN', 'PLUGINS.INSTALL', 'PLUGINS.ACTIVATE']

# ---------- Generic Auth Helpers ---------- #

def jwt_headers(user_id: int, perms: List[str]):
    token = create_access_token(identity=str(user_id), additional_claims={
        'perms': perms,
        'roles': [],
    })
    return {'Authorization': f'Bearer {token}'}


def seed_user_with_perms(email: str, perms: List[str], role_name: str = None):
    """Ensure permissions & user; optionally attach via a role if role_name provided."""
    session = get_db()
    ensure_permissions(perms)
    user = ensure_user(email)
    if role_name:
        role = ensure_role(role_name, perms)
        ensure_user_role_assignment(user, role)
    session.commit()
    return user


def installer_headers(app_instance, email: str, perms: List[str] = None):
    with app_instance.app_context():
        perms = perms or ALL_PLUGIN_PERMS
        user = seed_user_with_perms(email, perms)
        return jwt_headers(user.id, perms)

# ---------- Assertion Helpers ---------- #

def assert_transition(client, url: str, headers: Dict[str,str], expected_status: int, payload: dict = None,
                      expected_body_key: str = 'state', expected_body_value: str = None, method: str = 'post'):
    resp = getattr(client, method)(url, json=payload or {}, headers=headers)
    assert resp.status_code == expected_status, resp.get_json()
    if expected_status < 400 and expected_body_value is not None:
        body = resp.get_json()
        assert body[expected_body_key] == expected_body_value
    return resp


def register_plugin_repository(client, full_name: str, headers: Dict[str,str], is_plugin: bool = True):
    """Register a repository with one root file and assert the detected state."""
    slug = full_name.rsplit('/', 1)[-1]
    content = plugin_main_file(slug) if is_plugin else '<?php\n// helper library\n'
    resp = client.post('/repositories', json={'repository': full_name, 'files': {f'{slug}.php': content}}, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['state'] == ('available' if is_plugin else 'not_plugin')
    return body


def exercise_plugin_lifecycle(client, full_name: str, headers: Dict[str,str]):
    register_plugin_repository(client, full_name, headers)
    slug = full_name.rsplit('/', 1)[-1]
    plugin_file = f'{slug}/{slug}.php'
    assert_transition(client, '/plugins/install', headers, 201, {'repository': full_name}, expected_body_value='installed_inactive')
    assert_transition(client, '/plugins/activate', headers, 200, {'plugin_file': plugin_file}, expected_body_value='installed_active')
    assert_transition(client, '/plugins/deactivate', headers, 200, {'plugin_file': plugin_file}, expected_body_value='installed_inactive')
    return plugin_file

__all__ = [
    'ALL_PLUGIN_PERMS', 'jwt_headers', 'seed_user_with_perms', 'installer_headers', 'assert_transition',
    'register_plugin_repository', 'exercise_plugin_lifecycle',
]
