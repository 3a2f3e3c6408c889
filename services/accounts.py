"""
Account Service

Login checks, self-service registration, profile and preference updates,
password changes, admin user management and the admin seeding used by
the seed-admins command.
"""

import logging
import re

from constants import MAX_LENGTHS, MIN_PASSWORD_LENGTH, VALID_ROLES, VALID_THEMES
from models import now, transaction, User, UserPreference
from utils.errors import ApiError

logger = logging.getLogger(__name__)

_USERNAME = re.compile(r'^[a-zA-Z0-9_]+$')
_EMAIL = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')


def serialize_user(user):
    return {
        'id': user.id,
        'username': user.username,
        'email': user.email,
        'role': user.role,
        'createdAt': user.created_at,
    }


def find_by_username(username):
    return User.query.filter_by(username=username).first()


def find_by_email(email):
    return User.query.filter_by(email=email).first()


def authenticate(username, password):
    """Return the User for valid credentials, else None."""
    if not username or not password:
        return None
    user = find_by_username(username)
    if user is None or not user.check_password(password):
        return None
    return user


def _check_username(username):
    if not isinstance(username, str) or not _USERNAME.match(username):
        raise ApiError(400, 'Username can only contain letters, numbers, and underscores')
    if not 3 <= len(username) <= MAX_LENGTHS['username']:
        raise ApiError(400, f"Username must be between 3 and {MAX_LENGTHS['username']} characters")


def _check_password_strength(password, label='Password'):
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ApiError(400, f'{label} must be at least {MIN_PASSWORD_LENGTH} characters')


def change_password(user, current_password, new_password):
    if not current_password or not new_password:
        raise ApiError(400, 'Current password and new password are required')
    _check_password_strength(new_password, 'New password')
    if not user.check_password(current_password):
        raise ApiError(401, 'Current password is incorrect')

    transaction(lambda session: user.set_password(new_password))
    logger.info('Password changed for user %s', user.username)


def create_user(username, password, email=None, role='viewer'):
    """
    Create an account.

    Raises:
        ApiError: 400 for invalid input, 409 when the username is taken
    """
    if not username or not password:
        raise ApiError(400, 'Username and password are required')
    _check_username(username)
    _check_password_strength(password)
    if email and (not isinstance(email, str) or not _EMAIL.match(email)):
        raise ApiError(400, 'Invalid email format')
    if role not in VALID_ROLES:
        raise ApiError(400, f"Role must be one of: {', '.join(sorted(VALID_ROLES))}")
    if find_by_username(username):
        raise ApiError(409, 'Username is already taken')

    def _create(session):
        user = User(username=username, email=email or None, role=role)
        user.set_password(password)
        session.add(user)
        session.flush()
        return user

    user = transaction(_create)
    logger.info('Created %s user %s', role, username)
    return user


def list_users():
    return User.query.order_by(User.created_at.desc(), User.id.desc()).all()


def delete_user(user, acting_user_id):
    if user.id == acting_user_id:
        raise ApiError(400, 'You cannot delete your own account')
    username = user.username
    transaction(lambda session: session.delete(user))
    logger.info('Deleted user %s', username)


def parse_seed_admins(value):
    """
    Parse 'username:password[:email]' entries separated by commas.

    Used for the SEED_ADMINS environment variable.
    """
    users = []
    for entry in (value or '').split(','):
        entry = entry.strip()
        if not entry:
            continue
        parts = entry.split(':', 2)
        if len(parts) < 2 or not parts[0] or not parts[1]:
            raise ValueError(f'Invalid admin entry (expected username:password[:email]): {parts[0]}')
        users.append({
            'username': parts[0],
            'password': parts[1],
            'email': parts[2] if len(parts) > 2 and parts[2] else None,
        })
    return users


def seed_admin_users(users):
    """
    Create admin accounts that do not exist yet.

    Returns:
        (created, skipped) lists of usernames
    """
    created, skipped = [], []
    for data in users:
        if find_by_username(data['username']):
            skipped.append(data['username'])
            continue
        create_user(data['username'], data['password'], email=data.get('email'), role='admin')
        created.append(data['username'])
    return created, skipped


# ============================================
# SELF-SERVICE
# ============================================

def serialize_preferences(user):
    return {'theme': user.theme}


def register(data):
    """
    Create a viewer account from the public sign-up form.

    Raises:
        ApiError: 400 for invalid input, 409 when the username or email is taken
    """
    username = data.get('username')
    email = data.get('email')
    password = data.get('password')
    if not username or not email or not password:
        raise ApiError(400, 'Username, email, and password are required')
    if not isinstance(email, str) or not _EMAIL.match(email):
        raise ApiError(400, 'Invalid email format')
    _check_password_strength(password)
    if password != data.get('confirmPassword'):
        raise ApiError(400, 'Passwords do not match')
    _check_username(username)
    if find_by_username(username):
        raise ApiError(409, 'Username is already taken')
    if find_by_email(email):
        raise ApiError(409, 'Email is already registered')

    return create_user(username, password, email=email, role='viewer')


def update_profile(user, data):
    """Change the account email; an absent or empty email leaves it as is."""
    email = data.get('email')
    if not email:
        return user
    if not isinstance(email, str) or not _EMAIL.match(email):
        raise ApiError(400, 'Invalid email format')
    existing = find_by_email(email)
    if existing is not None and existing.id != user.id:
        raise ApiError(409, 'Email is already in use')

    transaction(lambda session: setattr(user, 'email', email))
    logger.info('Updated profile for user %s', user.username)
    return user


def update_preferences(user, data):
    theme = data.get('theme')
    if not theme:
        return user
    if theme not in VALID_THEMES:
        raise ApiError(400, f"Invalid theme. Must be one of: {', '.join(VALID_THEMES)}")

    def _update(session):
        if user.preferences is None:
            user.preferences = UserPreference(theme=theme)
        else:
            user.preferences.theme = theme
            user.preferences.updated_at = now()

    transaction(_update)
    return user
