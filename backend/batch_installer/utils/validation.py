from __future__ import annotations
"""Request validation helpers with consistent 400 error semantics."""
from typing import Any, List, Optional
from flask import abort

from batch_installer.constants.plugin_state import PluginState, ALL_STATE_VALUES, parse_plugin_state
from batch_installer.utils.fsm import InvalidState
from batch_installer.services.state_manager import split_full_name


def validate_state(raw: Any, field_name: str = 'state') -> PluginState:
    """Return the PluginState for a request token or abort with 400."""
    try:
        return parse_plugin_state(raw)
    except InvalidState:
        abort(400, description=f"{field_name} invalid; expected one of {', '.join(ALL_STATE_VALUES)}")


def validate_full_name(raw: Any, field_name: str = 'repository') -> str:
    if not isinstance(raw, str):
        abort(400, description=f'{field_name} required')
    try:
        owner, name = split_full_name(raw)
    except ValueError as e:
        abort(400, description=str(e))
    return f'{owner}/{name}'


def validate_string_list(raw: Any, field_name: str, item_key: Optional[str] = None) -> List[str]:
    """Accept ["a", "b"] or [{item_key: "a"}, ...]; entries missing item_key are skipped."""
    if not isinstance(raw, list) or not raw:
        abort(400, description=f'{field_name} must be a non-empty list')
    out: List[str] = []
    for entry in raw:
        if isinstance(entry, dict) and item_key:
            entry = entry.get(item_key)
        if isinstance(entry, str) and entry.strip():
            out.append(entry.strip())
    if not out:
        abort(400, description=f'No valid {field_name} provided')
    return out

__all__ = ['validate_state', 'validate_full_name', 'validate_string_list']
