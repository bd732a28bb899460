from batch_installer.openapi_builder import ACTIONS
from batch_installer.constants.permissions import ROLE_PRESETS, ALL_PERMISSION_CODES


def test_action_permissions_exist_in_some_role():
    perms = {perm for _path, _method, _summary, perm, _status in ACTIONS}
    # Roles (exclude wildcard Owner)
    role_map = {r: set(p for p in codes if p != '*') for r, codes in ROLE_PRESETS.items() if r != 'Owner'}
    all_role_perms = set().union(*role_map.values()) if role_map else set()

    missing = sorted([p for p in perms if p not in all_role_perms])
    assert not missing, f"Action permissions not present in any concrete role: {missing}"


def test_action_permissions_are_known_codes():
    unknown = sorted({a[3] for a in ACTIONS} - set(ALL_PERMISSION_CODES))
    assert not unknown


def test_seed_script_is_idempotent(app_instance):
    from scripts.seed_authz import ensure_permissions, ensure_roles, ensure_initial_admin
    from batch_installer import get_db
    from batch_installer.models.authz import Role, User
    with app_instance.app_context():
        session = get_db()
        ensure_permissions(session)
        ensure_roles(session)
        ensure_initial_admin(session)
        session.commit()
        assert ensure_permissions(session) == 0
        assert ensure_roles(session) == 0
        session.commit()
        viewer = session.query(Role).filter_by(name='Viewer').one()
        assert viewer.permission_codes() == ['PLUGINS.READ']
        assert session.query(User).filter_by(email='admin@example.com').one().verify_password('ChangeMe123!')


def test_every_permission_code_guards_some_action():
    unused = sorted(set(ALL_PERMISSION_CODES) - {a[3] for a in ACTIONS})
    assert not unused, f"Permission codes no route checks: {unused}"
