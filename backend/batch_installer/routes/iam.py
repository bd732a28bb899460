from flask import Blueprint, request, abort, current_app
from flask_jwt_extended import create_access_token, jwt_required, get_jwt_identity
from batch_installer.models.authz import User
from sqlalchemy import select
from batch_installer import get_db
from batch_installer.services.policy import compute_effective_permissions

iam_bp = Blueprint('iam', __name__)


@iam_bp.post('/auth/login')
def login():
    data = request.json or {}
    email = data.get('email'); password = data.get('password')
    if not email or not password:
        abort(400, description='email & password required')
    session = get_db()
    user = session.execute(select(User).where(User.email==email)).scalar_one_or_none()
    if not user or not user.is_active or not user.verify_password(password):
        current_app.logger.info('Failed login for %s', email)
        abort(401, description='invalid credentials')
    eff = compute_effective_permissions(user.id)
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    token = create_access_token(identity=str(user.id), additional_claims={'roles': eff['roles'], 'perms': eff['perms']})
    return {'access_token': token}


@iam_bp.get('/auth/me')
@jwt_required()
def me():
    user_id = int(get_jwt_identity())
    session = get_db()
    user = session.execute(select(User).where(User.id==user_id)).scalar_one_or_none()
    if not user:
        abort(404)
    eff = compute_effective_permissions(user.id)
    return dict(user.to_json(), roles=eff['roles'], perms=eff['perms'])
