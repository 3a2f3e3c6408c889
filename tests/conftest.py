"""
Pytest fixtures for the recipe API.

The app runs with TestingConfig (in-memory SQLite) and a temporary
upload folder. Nothing here touches the network.
"""
import io
import os
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

os.environ['FLASK_ENV'] = 'testing'

from flask import g, request_started
from PIL import Image

from app import app as flask_app
from models import db, init_database
from services import accounts

ADMIN_USERNAME = 'admin'
ADMIN_PASSWORD = 'password123'
VIEWER_USERNAME = 'viewer'
VIEWER_PASSWORD = 'password456'


def _reset_request_user(sender, **extra):
    # Requests reuse the fixture's app context, so g outlives each request
    g.pop('_login_user', None)
    g.pop('auth_error', None)


@pytest.fixture
def app(tmp_path):
    """Application with fresh tables for every test."""
    flask_app.config['UPLOAD_FOLDER'] = str(tmp_path / 'uploads')
    os.makedirs(os.path.join(flask_app.config['UPLOAD_FOLDER'], 'images'), exist_ok=True)
    request_started.connect(_reset_request_user, flask_app)
    with flask_app.app_context():
        db.drop_all()
        init_database()
        yield flask_app
        db.session.remove()
        db.drop_all()
    request_started.disconnect(_reset_request_user, flask_app)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_user(app):
    return accounts.create_user(ADMIN_USERNAME, ADMIN_PASSWORD, email='admin@example.com', role='admin')


@pytest.fixture
def admin_client(client, admin_user):
    """Test client logged in as an admin."""
    response = client.post('/api/auth/login', json={'username': ADMIN_USERNAME, 'password': ADMIN_PASSWORD})
    assert response.status_code == 200
    return client


@pytest.fixture
def viewer_user(app):
    return accounts.create_user(VIEWER_USERNAME, VIEWER_PASSWORD, email='viewer@example.com')


@pytest.fixture
def viewer_client(client, viewer_user):
    """Test client logged in as a viewer."""
    response = client.post('/api/auth/login', json={'username': VIEWER_USERNAME, 'password': VIEWER_PASSWORD})
    assert response.status_code == 200
    return client


@pytest.fixture
def csrf_headers(client):
    """Fetch a CSRF token (sets the cookie) and return the matching header."""
    token = client.get('/api/csrf-token').get_json()['csrfToken']
    return {'X-CSRF-Token': token}


def make_image_bytes(fmt='PNG', size=(40, 30), color=(200, 40, 40)):
    buffer = io.BytesIO()
    Image.new('RGB', size, color).save(buffer, fmt)
    return buffer.getvalue()


@pytest.fixture
def image_bytes():
    return make_image_bytes()


@pytest.fixture
def sample_recipe():
    return {
        'title': 'Chocolate Chip Cookies',
        'source': "Grandma's Recipe Box",
        'instructions': 'Mix everything. Bake at 350F for 12 minutes.',
        'ingredients': [
            {'name': 'flour', 'quantity': '2', 'unit': 'cups'},
            {'name': 'sugar', 'quantity': '1', 'unit': 'cup'},
            {'name': 'chocolate chips', 'quantity': '1', 'unit': 'cup'},
        ],
        'tags': ['Dessert', 'dessert', 'DESSERT', 'cookies', 'Cookies'],
    }
