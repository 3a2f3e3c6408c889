"""
Authentication Helpers

Flask-Login wiring for the API. There is no server-side session: every
request is authenticated from a signed token carried in an httpOnly
cookie, and failures come back as JSON 401s instead of redirects.
"""

from functools import wraps

from flask import current_app, g, jsonify
from flask_login import LoginManager, current_user, login_required
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from models import db, User
from .errors import ApiError

TOKEN_COOKIE = 'token'
_TOKEN_SALT = 'auth-token'

login_manager = LoginManager()
login_manager.session_protection = None


def _serializer():
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=_TOKEN_SALT)


def generate_token(user):
    """Sign the user's id, username and role."""
    return _serializer().dumps({'id': user.id, 'username': user.username, 'role': user.role})


def decode_token(token):
    """
    Verify a token and return its payload.

    Raises:
        ApiError: 401 'Token expired' or 'Invalid token'
    """
    try:
        return _serializer().loads(token, max_age=current_app.config['TOKEN_MAX_AGE'])
    except SignatureExpired:
        raise ApiError(401, 'Token expired')
    except BadSignature:
        raise ApiError(401, 'Invalid token')


def set_token_cookie(response, user):
    response.set_cookie(
        TOKEN_COOKIE,
        generate_token(user),
        max_age=current_app.config['TOKEN_MAX_AGE'],
        httponly=True,
        secure=current_app.config['SECURE_COOKIES'],
        samesite='Strict',
    )
    return response


def clear_token_cookie(response):
    response.delete_cookie(TOKEN_COOKIE)
    return response


@login_manager.request_loader
def load_user_from_request(request):
    """Resolve the token cookie to a User; the reason for a miss goes in g.auth_error."""
    token = request.cookies.get(TOKEN_COOKIE)
    if not token:
        return None
    try:
        payload = decode_token(token)
    except ApiError as e:
        g.auth_error = e.message
        return None
    user = db.session.get(User, payload.get('id'))
    if user is None:
        g.auth_error = 'Invalid token'
    return user


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'error': g.get('auth_error', 'Authentication required')}), 401


def admin_required(view):
    """Require an authenticated admin."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not current_user.is_admin:
            raise ApiError(403, 'Admin access required')
        return view(*args, **kwargs)
    return login_required(wrapped)
