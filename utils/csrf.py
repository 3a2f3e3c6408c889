"""
CSRF Protection

Double-submit tokens: the client fetches a signed token (also set as a
cookie) and echoes it in the X-CSRF-Token header on state-changing
requests. The header must match the cookie and carry a valid signature.
"""

import hmac
import secrets
from functools import wraps

from flask import current_app, request
from itsdangerous import BadSignature, URLSafeSerializer

from .errors import ApiError

CSRF_COOKIE = 'csrf_token'
CSRF_HEADER = 'X-CSRF-Token'


def _serializer():
    return URLSafeSerializer(current_app.config['CSRF_SECRET'], salt='csrf')


def generate_csrf_token():
    return _serializer().dumps(secrets.token_hex(16))


def set_csrf_cookie(response, token):
    response.set_cookie(
        CSRF_COOKIE,
        token,
        httponly=True,
        secure=current_app.config['SECURE_COOKIES'],
        samesite='None' if current_app.config['SECURE_COOKIES'] else 'Lax',
    )
    return response


def validate_csrf():
    body = request.get_json(silent=True)
    header = request.headers.get(CSRF_HEADER) or (body.get('_csrf') if isinstance(body, dict) else None)
    cookie = request.cookies.get(CSRF_COOKIE)
    if not header or not cookie or not hmac.compare_digest(header, cookie):
        raise ApiError(403, 'Invalid or missing CSRF token')
    try:
        _serializer().loads(header)
    except BadSignature:
        raise ApiError(403, 'Invalid or missing CSRF token')


def csrf_protect(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        validate_csrf()
        return view(*args, **kwargs)
    return wrapped
