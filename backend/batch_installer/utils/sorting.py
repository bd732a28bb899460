from __future__ import annotations
from typing import List, Tuple
from flask import abort


def parse_sort(sort_expr: str | None) -> List[Tuple[str, bool]]:
    """'-state,full_name' -> [('state', True), ('full_name', False)]; blank tokens ignored."""
    out = []
    for raw in (sort_expr or '').split(','):
        token = raw.strip()
        if token:
            out.append((token.lstrip('-'), token.startswith('-')))
    return out


def apply_multi_sort(query, sort_expr: str | None, allowed: dict, tie_breaker):
    """Order a SQLAlchemy query by the requested fields, then by tie_breaker ascending.

    allowed maps public field names to columns; unknown fields abort with 400.
    """
    clauses = []
    for key, desc in parse_sort(sort_expr):
        col = allowed.get(key)
        if col is None:
            abort(400, description=f'Invalid sort field {key}')
        clauses.append(col.desc() if desc else col.asc())
    clauses.append(tie_breaker.asc())
    return query.order_by(*clauses)
