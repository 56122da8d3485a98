from __future__ import annotations
import logging
from flask import Blueprint, request
from flask_jwt_extended import create_access_token
from sqlalchemy import select
from aftersales import get_db
from aftersales.decorators.auth import require_roles, current_principal
from aftersales.errors import ValidationError, UnauthorizedError
from aftersales.models.org import User

auth_bp = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)


def token_claims(user: User) -> dict:
    return {
        'role': user.role,
        'department_id': user.department_id,
        'name': user.full_name,
    }


@auth_bp.post('/login')
def login():
    data = request.get_json(silent=True) or {}
    email = data.get('email'); password = data.get('password')
    if not email or not password:
        raise ValidationError('email & password required')
    session = get_db()
    user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not user or not user.is_active or not user.verify_password(password):
        logger.info('Failed login for %s', email)
        raise UnauthorizedError('invalid credentials')
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    token = create_access_token(identity=str(user.id), additional_claims=token_claims(user))
    return {'access_token': token, 'user': _user_json(user)}


@auth_bp.get('/me')
@require_roles()
def me():
    principal = current_principal()
    user = get_db().get(User, principal.id)
    if not user:
        raise UnauthorizedError('user not found')
    return _user_json(user)


def _user_json(user: User) -> dict:
    return {
        'id': user.id,
        'username': user.username,
        'email': user.email,
        'full_name': user.full_name,
        'role': user.role,
        'department_id': user.department_id,
    }
