#!/usr/bin/env python
"""Idempotent seed script for permissions, roles and the initial owner account.

Usage:
    python backend/scripts/seed_authz.py               # seed normally
    python backend/scripts/seed_authz.py --show-roles  # print role -> permission counts (after ensuring seed)
    python backend/scripts/seed_authz.py --dry-run     # run logic then rollback (no DB changes)

Environment:
    DATABASE_URL, SEED_ADMIN_EMAIL, SEED_ADMIN_PASSWORD
"""
from __future__ import annotations
import os, sys, argparse, pathlib
from sqlalchemy import select

# Allow running from repo root or backend/ directory
sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

from batch_installer import create_app, get_db  # noqa: E402
from batch_installer.models.authz import Base, Permission, Role, RolePermission, User, UserRole  # noqa: E402
import batch_installer.models.audit  # noqa: F401,E402
import batch_installer.models.repository  # noqa: F401,E402
import batch_installer.models.installed_plugin  # noqa: F401,E402
from batch_installer.constants.permissions import SERVICE_ACTIONS, ROLE_PRESETS, build_all_permission_codes  # noqa: E402


def ensure_permissions(session) -> int:
    existing = set(session.execute(select(Permission.code)).scalars().all())
    created = 0
    for svc, actions in SERVICE_ACTIONS.items():
        for act in actions:
            code = f"{svc}.{act}"
            if code not in existing:
                session.add(Permission.from_code(code, code.replace('.', ' - ')))
                created += 1
    session.flush()
    return created


def ensure_roles(session) -> int:
    roles = {r.name: r for r in session.execute(select(Role)).scalars().all()}
    created = 0
    for role_name in ROLE_PRESETS:
        if role_name not in roles:
            roles[role_name] = Role(name=role_name, is_system=True)
            session.add(roles[role_name])
            created += 1
    session.flush()

    perms = {p.code: p for p in session.execute(select(Permission)).scalars()}
    all_codes = set(build_all_permission_codes())
    for role_name, raw_codes in ROLE_PRESETS.items():
        role = roles[role_name]
        desired = all_codes if '*' in raw_codes else set(raw_codes)
        current = set(role.permission_codes())
        for code in sorted(desired - current):
            if code not in perms:
                print(f"[WARN] Missing permission referenced by role {role_name}: {code}")
                continue
            session.add(RolePermission(role=role, permission=perms[code]))
    return created


def ensure_initial_admin(session) -> None:
    owner_role = session.execute(select(Role).where(Role.name=='Owner')).scalar_one_or_none()
    if not owner_role:
        print('[WARN] Owner role missing; skipping admin user creation')
        return
    admin_email = os.getenv('SEED_ADMIN_EMAIL', 'admin@example.com')
    if session.execute(select(User).where(User.email==admin_email)).scalar_one_or_none():
        return
    user = User(name='Owner', email=admin_email, password_hash='')
    user.set_password(os.getenv('SEED_ADMIN_PASSWORD', 'ChangeMe123!'))
    session.add(user)
    session.flush()
    session.add(UserRole(user_id=user.id, role_id=owner_role.id))
    print(f"[INFO] Created initial admin user {admin_email} with temporary password.")


def print_role_summary(session) -> None:
    rows = []
    for role in session.execute(select(Role)).scalars().all():
        rows.append((role.name, role.permission_codes()))
    if not rows:
        print("[INFO] No roles present.")
        return
    name_w = max(len(r[0]) for r in rows)
    print(f"{'Role'.ljust(name_w)} | Count | Permissions")
    print('-' * (name_w + 40))
    for name, codes in rows:
        print(f"{name.ljust(name_w)} | {str(len(codes)).rjust(5)} | {', '.join(codes)}")


def parse_args():
    p = argparse.ArgumentParser(description="Seed RBAC permissions & roles")
    p.add_argument('--show-roles', action='store_true', help='Print role permission counts after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    return p.parse_args()


def main() -> int:
    args = parse_args()
    app = create_app()
    with app.app_context():
        session = get_db()
        # bootstrap fallback; real deployments run `alembic upgrade head`
        Base.metadata.create_all(session.get_bind(), checkfirst=True)
        created_p = ensure_permissions(session)
        created_r = ensure_roles(session)
        ensure_initial_admin(session)
        if args.show_roles:
            print_role_summary(session)
        if args.dry_run:
            session.rollback()
            print(f"[DRY-RUN] (rolled back) Permissions would create: {created_p}, Roles would create: {created_r}")
        else:
            session.commit()
            print(f"[DONE] Permissions created: {created_p}, Roles created: {created_r}")
    return 0


if __name__ == '__main__':  # pragma: no cover
    sys.exit(main())
