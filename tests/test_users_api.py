"""
API tests for self-service accounts: registration, profile, display
preferences and saved recipes.
"""
from services import accounts, recipes

from conftest import VIEWER_USERNAME


def make_recipe(title='Lemon Bars', tags=None):
    return recipes.create_recipe({'title': title}, ingredients=[{'name': 'lemon'}], tags=tags or [])


class TestRegister:
    payload = {
        'username': 'new_cook',
        'email': 'cook@example.com',
        'password': 'password123',
        'confirmPassword': 'password123',
    }

    def register(self, client, headers, **overrides):
        data = dict(self.payload)
        data.update(overrides)
        return client.post('/api/users/register', headers=headers, json=data)

    def test_register_logs_in_as_viewer(self, client, csrf_headers):
        response = self.register(client, csrf_headers)
        assert response.status_code == 201
        body = response.get_json()
        assert body['user']['username'] == 'new_cook'
        assert body['user']['role'] == 'viewer'
        assert response.headers['Set-Cookie'].startswith('token=')

        me = client.get('/api/auth/me').get_json()['user']
        assert me['email'] == 'cook@example.com'

    def test_requires_csrf(self, client):
        assert client.post('/api/users/register', json=self.payload).status_code == 403

    def test_missing_fields(self, client, csrf_headers):
        response = self.register(client, csrf_headers, email='')
        assert response.status_code == 400
        assert response.get_json() == {'error': 'Username, email, and password are required'}

    def test_passwords_must_match(self, client, csrf_headers):
        response = self.register(client, csrf_headers, confirmPassword='password124')
        assert response.status_code == 400
        assert response.get_json() == {'error': 'Passwords do not match'}

    def test_invalid_email(self, client, csrf_headers):
        response = self.register(client, csrf_headers, email='not-an-email')
        assert response.get_json() == {'error': 'Invalid email format'}

    def test_bad_username(self, client, csrf_headers):
        response = self.register(client, csrf_headers, username='no spaces!')
        assert response.status_code == 400
        assert response.get_json() == {'error': 'Username can only contain letters, numbers, and underscores'}

    def test_duplicate_username(self, client, csrf_headers, viewer_user):
        response = self.register(client, csrf_headers, username=VIEWER_USERNAME)
        assert response.status_code == 409
        assert response.get_json() == {'error': 'Username is already taken'}

    def test_duplicate_email(self, client, csrf_headers, viewer_user):
        response = self.register(client, csrf_headers, email='viewer@example.com')
        assert response.status_code == 409
        assert response.get_json() == {'error': 'Email is already registered'}

    def test_body_must_be_object(self, client, csrf_headers):
        response = client.post('/api/users/register', headers=csrf_headers, json=['new_cook'])
        assert response.status_code == 400


class TestProfile:
    def test_requires_login(self, client):
        assert client.get('/api/users/profile').status_code == 401

    def test_profile_defaults_to_light_theme(self, viewer_client):
        body = viewer_client.get('/api/users/profile').get_json()
        assert body['user']['username'] == VIEWER_USERNAME
        assert body['preferences'] == {'theme': 'light'}

    def test_update_email(self, viewer_client, csrf_headers):
        response = viewer_client.put('/api/users/profile', headers=csrf_headers, json={'email': 'me@example.org'})
        assert response.status_code == 200
        assert response.get_json()['user']['email'] == 'me@example.org'
        assert accounts.find_by_username(VIEWER_USERNAME).email == 'me@example.org'

    def test_email_in_use(self, viewer_client, csrf_headers, admin_user):
        response = viewer_client.put('/api/users/profile', headers=csrf_headers, json={'email': 'admin@example.com'})
        assert response.status_code == 409
        assert response.get_json() == {'error': 'Email is already in use'}

    def test_keeping_own_email(self, viewer_client, csrf_headers):
        response = viewer_client.put('/api/users/profile', headers=csrf_headers, json={'email': 'viewer@example.com'})
        assert response.status_code == 200

    def test_invalid_email(self, viewer_client, csrf_headers):
        response = viewer_client.put('/api/users/profile', headers=csrf_headers, json={'email': 'nope'})
        assert response.status_code == 400


class TestPreferences:
    def test_set_theme(self, viewer_client, csrf_headers):
        response = viewer_client.put('/api/users/preferences', headers=csrf_headers, json={'theme': 'dark'})
        assert response.status_code == 200
        assert response.get_json()['preferences'] == {'theme': 'dark'}

        viewer_client.put('/api/users/preferences', headers=csrf_headers, json={'theme': 'system'})
        assert viewer_client.get('/api/users/profile').get_json()['preferences'] == {'theme': 'system'}

    def test_invalid_theme(self, viewer_client, csrf_headers):
        response = viewer_client.put('/api/users/preferences', headers=csrf_headers, json={'theme': 'neon'})
        assert response.status_code == 400
        assert response.get_json() == {'error': 'Invalid theme. Must be one of: light, dark, system'}

    def test_preferences_go_with_the_user(self, viewer_client, csrf_headers, viewer_user):
        viewer_client.put('/api/users/preferences', headers=csrf_headers, json={'theme': 'dark'})
        accounts.delete_user(viewer_user, acting_user_id=None)
        assert accounts.find_by_username(VIEWER_USERNAME) is None


class TestSavedRecipes:
    def test_save_and_list(self, viewer_client, csrf_headers):
        first = make_recipe('Soup', tags=['dinner'])
        second = make_recipe('Cake')
        assert viewer_client.post(f'/api/users/saved-recipes/{first.id}', headers=csrf_headers).status_code == 201
        assert viewer_client.post(f'/api/users/saved-recipes/{second.id}', headers=csrf_headers).status_code == 201

        body = viewer_client.get('/api/users/saved-recipes').get_json()
        assert {r['title'] for r in body['recipes']} == {'Soup', 'Cake'}
        assert all('savedAt' in r for r in body['recipes'])
        assert body['pagination'] == {'total': 2, 'limit': 20, 'offset': 0, 'hasMore': False}

        ids = viewer_client.get('/api/users/saved-recipes/ids').get_json()['savedIds']
        assert sorted(ids) == sorted([first.id, second.id])

    def test_pagination(self, viewer_client, csrf_headers):
        for n in range(3):
            recipe = make_recipe(f'Recipe {n}')
            viewer_client.post(f'/api/users/saved-recipes/{recipe.id}', headers=csrf_headers)
        body = viewer_client.get('/api/users/saved-recipes?limit=2').get_json()
        assert len(body['recipes']) == 2
        assert body['pagination']['hasMore'] is True

    def test_check(self, viewer_client, csrf_headers):
        recipe = make_recipe()
        url = f'/api/users/saved-recipes/{recipe.id}'
        assert viewer_client.get(f'{url}/check').get_json()['isSaved'] is False
        viewer_client.post(url, headers=csrf_headers)
        assert viewer_client.get(f'{url}/check').get_json()['isSaved'] is True

    def test_save_twice(self, viewer_client, csrf_headers):
        recipe = make_recipe()
        viewer_client.post(f'/api/users/saved-recipes/{recipe.id}', headers=csrf_headers)
        response = viewer_client.post(f'/api/users/saved-recipes/{recipe.id}', headers=csrf_headers)
        assert response.status_code == 409
        assert response.get_json() == {'error': 'Recipe is already saved'}

    def test_save_missing_recipe(self, viewer_client, csrf_headers):
        response = viewer_client.post('/api/users/saved-recipes/999', headers=csrf_headers)
        assert response.status_code == 404
        assert response.get_json() == {'error': 'Recipe not found'}

    def test_unsave(self, viewer_client, csrf_headers):
        recipe = make_recipe()
        url = f'/api/users/saved-recipes/{recipe.id}'
        viewer_client.post(url, headers=csrf_headers)
        assert viewer_client.delete(url, headers=csrf_headers).status_code == 200

        response = viewer_client.delete(url, headers=csrf_headers)
        assert response.status_code == 404
        assert response.get_json() == {'error': 'Recipe was not saved'}

    def test_saves_are_per_user(self, viewer_client, csrf_headers, admin_user):
        recipe = make_recipe()
        viewer_client.post(f'/api/users/saved-recipes/{recipe.id}', headers=csrf_headers)
        assert admin_user.saved_recipes == []

    def test_deleting_recipe_removes_save(self, viewer_client, csrf_headers):
        recipe = make_recipe()
        viewer_client.post(f'/api/users/saved-recipes/{recipe.id}', headers=csrf_headers)
        recipes.delete_recipe(recipe)
        assert viewer_client.get('/api/users/saved-recipes/ids').get_json()['savedIds'] == []

    def test_requires_csrf(self, viewer_client):
        recipe = make_recipe()
        assert viewer_client.post(f'/api/users/saved-recipes/{recipe.id}').status_code == 403

    def test_requires_login(self, client):
        assert client.get('/api/users/saved-recipes').status_code == 401
