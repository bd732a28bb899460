from __future__ import annotations
from typing import Dict, List, Set
from flask_jwt_extended import get_jwt
from sqlalchemy import select
from batch_installer.models.authz import Permission, Role, RolePermission, UserRole
from batch_installer.constants.permissions import ROLE_PRESETS
from batch_installer import get_db

WILDCARD = '*'


def current_permissions() -> Set[str]:
    """Permission codes carried by the request's JWT."""
    return set(get_jwt().get('perms', []))


def compute_effective_permissions(user_id: int) -> Dict[str, List[str]]:
    """Union of role permissions; a wildcard preset (Owner) expands to every stored code."""
    session = get_db()
    role_names = set(session.execute(
        select(Role.name).join(UserRole, UserRole.role_id == Role.id).where(UserRole.user_id == user_id)
    ).scalars())
    if any(WILDCARD in ROLE_PRESETS.get(name, ()) for name in role_names):
        codes = session.execute(select(Permission.code)).scalars()
    else:
        codes = session.execute(
            select(Permission.code)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(UserRole, UserRole.role_id == RolePermission.role_id)
            .where(UserRole.user_id == user_id)
        ).scalars()
    return {
        'roles': sorted(role_names),
        'perms': sorted(set(codes)),
    }
