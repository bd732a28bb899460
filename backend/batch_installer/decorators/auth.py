from functools import wraps
from flask import abort, current_app
from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity
from batch_installer.services.policy import current_permissions


def require_permissions(*codes: str):
    """Reject the request with 403 unless the JWT carries every permission code."""
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            granted = current_permissions()
            missing = [c for c in codes if c not in granted]
            if missing:
                current_app.logger.info('User %s denied %s: missing %s', get_jwt_identity(), fn.__name__, ','.join(missing))
                abort(403, description=f"Missing permission: {', '.join(missing)}")
            return fn(*args, **kwargs)
        return wrapper
    return outer
