from __future__ import annotations
"""Paginated list responses with ETag / Last-Modified conditional GET support."""
from typing import Iterable, Optional, Tuple
from flask import request, abort, make_response
from sqlalchemy.orm import Query
from batch_installer.config.pagination import normalize_pagination
import hashlib
from datetime import datetime, timezone, timedelta
from email.utils import parsedate_to_datetime, format_datetime

TIMESTAMP_TOLERANCE = timedelta(seconds=1)


def canonicalize_timestamp(dt: datetime) -> datetime:
    """Return UTC tz-aware timestamp truncated to whole seconds."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.replace(microsecond=0)


def _iso(dt: datetime) -> str:
    return dt.isoformat().replace('+00:00', 'Z')


def apply_pagination(q: Query) -> Tuple[Query, int, int, int]:
    try:
        limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    except ValueError as e:
        abort(400, description=str(e))
    total = q.count()
    return q.offset(offset).limit(limit), total, limit, offset


def compute_etag(ids: Iterable, total: int, limit: int, offset: int, states: Iterable[str] = (), latest_ts: Optional[str] = '') -> str:
    # states are part of the seed: a transition must invalidate cached lists
    seed = f"{list(ids)}|{list(states)}|{total}|{limit}|{offset}|{latest_ts or ''}"
    return hashlib.sha256(seed.encode()).hexdigest()[:32]


def _set_last_modified(resp, latest: Optional[datetime]):
    if latest:
        resp.headers['Last-Modified'] = format_datetime(latest, usegmt=True)
        resp.headers['X-Last-Modified-ISO'] = _iso(latest)


def make_cached_list_response(rows: list, total: int, limit: int, offset: int, latest_ts: Optional[datetime] = None):
    latest = canonicalize_timestamp(latest_ts) if isinstance(latest_ts, datetime) else None
    etag = compute_etag([r.get('id') for r in rows], total, limit, offset,
                        [r.get('state', '') for r in rows], _iso(latest) if latest else '')
    resp = make_response({
        'data': rows,
        'pagination': {'total': total, 'limit': limit, 'offset': offset, 'returned': len(rows)},
    })
    resp.headers['ETag'] = etag
    _set_last_modified(resp, latest)
    return resp, etag


def _parse_if_modified_since(header_val: str) -> Optional[datetime]:
    try:
        dt = datetime.fromisoformat(header_val.replace('Z', '+00:00'))
    except ValueError:
        try:
            dt = parsedate_to_datetime(header_val)
        except (TypeError, ValueError):
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def handle_conditional(etag_value: str, latest_ts: Optional[datetime]):
    """Return a 304 response when If-None-Match (preferred) or If-Modified-Since matches, else None."""
    latest = canonicalize_timestamp(latest_ts) if isinstance(latest_ts, datetime) else None
    inm = request.headers.get('If-None-Match')
    matched = bool(inm) and inm.strip('"') == etag_value
    if not matched and not inm:
        ims = request.headers.get('If-Modified-Since')
        ims_dt = _parse_if_modified_since(ims) if ims else None
        matched = bool(ims_dt and latest and latest <= canonicalize_timestamp(ims_dt) + TIMESTAMP_TOLERANCE)
    if not matched:
        return None
    resp = make_response('', 304)
    resp.headers['ETag'] = etag_value
    _set_last_modified(resp, latest)
    return resp
