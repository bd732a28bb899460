"""Limit/offset defaults for list endpoints (/repositories, /plugins/installed)."""
DEFAULT_LIMIT = 50
# an account rarely holds more than a few hundred plugin repositories
MAX_LIMIT = 500


def normalize_pagination(limit_raw, offset_raw):
    """Parse ?limit/?offset; limit is clamped to [1, MAX_LIMIT], offset to >= 0.

    Raises ValueError for non-integer input.
    """
    def _int(raw, default):
        if raw is None or str(raw).strip() == '':
            return default
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise ValueError('limit/offset must be int') from None
    limit = _int(limit_raw, DEFAULT_LIMIT)
    offset = _int(offset_raw, 0)
    return max(1, min(limit, MAX_LIMIT)), max(0, offset)
