"""Permission codes (SERVICE.ACTION) and the seeded role presets.

Codes are stored in `permissions.code` and copied into JWT claims; never
rename one silently, add a new code and migrate roles instead.
"""
from __future__ import annotations
from typing import List, Dict

SERVICE_ACTIONS: Dict[str, List[str]] = {
    # READ: list/get repositories and installed plugins
    # SCAN: register, scan, refresh, manual state changes, cache reset
    'PLUGINS': ['READ', 'SCAN', 'INSTALL', 'ACTIVATE'],
}


def build_all_permission_codes() -> List[str]:
    return [f"{svc}.{act}" for svc, actions in SERVICE_ACTIONS.items() for act in actions]


ALL_PERMISSION_CODES = build_all_permission_codes()

# '*' expands to every permission present at login time
ROLE_PRESETS: Dict[str, List[str]] = {
    'Viewer': ['PLUGINS.READ'],
    'Installer': ['PLUGINS.READ', 'PLUGINS.SCAN', 'PLUGINS.INSTALL', 'PLUGINS.ACTIVATE'],
    'Owner': ['*'],
}
