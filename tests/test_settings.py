"""
Tests for stored settings and the admin AI configuration endpoints.
"""
import pytest
import requests

from models import Setting, db
from services import ai, settings
from utils.errors import ApiError


class TestStoredSettings:
    def test_plain_value(self, app):
        settings.set_setting('ai_model', 'gpt-4o', user_id=None)
        assert settings.get_setting('ai_model') == 'gpt-4o'
        settings.set_setting('ai_model', 'gpt-4o-mini')
        assert settings.get_setting('ai_model') == 'gpt-4o-mini'

    def test_missing_value(self, app):
        assert settings.get_setting('nothing-here') is None

    def test_encrypted_value_is_not_stored_in_clear(self, app):
        settings.set_setting('ai_api_key_openai', 'sk-secret', encrypted=True)
        row = db.session.get(Setting, 'ai_api_key_openai')
        assert row.encrypted is True
        assert 'sk-secret' not in row.setting_value
        assert settings.get_setting('ai_api_key_openai') == 'sk-secret'

    def test_value_from_another_secret_is_unreadable(self, app, monkeypatch):
        settings.set_setting('ai_api_key_openai', 'sk-secret', encrypted=True)
        monkeypatch.setitem(app.config, 'CSRF_SECRET', 'a-different-secret')
        assert settings.get_setting('ai_api_key_openai') is None

    def test_delete(self, app):
        settings.set_setting('ai_provider', 'google')
        settings.delete_setting('ai_provider')
        settings.delete_setting('ai_provider')
        assert settings.get_setting('ai_provider') is None


class TestAIConfig:
    def test_defaults(self, app):
        config = settings.get_ai_config()
        assert config['provider'] == 'anthropic'
        assert config['model'] == 'claude-sonnet-4-5-20250929'
        assert config['hasApiKey'] is False
        assert config['keySource'] == 'none'
        assert [p['id'] for p in config['availableProviders']] == ['anthropic', 'openai', 'google']

    def test_environment_key(self, app, monkeypatch):
        monkeypatch.setitem(app.config, 'ANTHROPIC_API_KEY', 'env-key')
        config = settings.get_ai_config()
        assert config['keySource'] == 'environment'
        assert config['availableProviders'][0]['hasEnvKey'] is True

    def test_stored_key_wins(self, app, monkeypatch):
        monkeypatch.setitem(app.config, 'ANTHROPIC_API_KEY', 'env-key')
        settings.update_ai_config({'apiKey': 'db-key'}, user_id=None)
        assert settings.get_ai_config()['keySource'] == 'database'
        assert settings.active_api_key() == 'db-key'

    def test_switch_provider_and_model(self, app):
        config = settings.update_ai_config({'provider': 'openai', 'model': 'gpt-4o-mini'}, user_id=None)
        assert config['provider'] == 'openai'
        assert config['modelName'] == 'GPT-4o Mini (Fast)'

    def test_switching_provider_resets_foreign_model(self, app):
        settings.update_ai_config({'provider': 'openai', 'model': 'gpt-4-turbo'}, user_id=None)
        config = settings.update_ai_config({'provider': 'google'}, user_id=None)
        assert config['model'] == 'gemini-1.5-pro'

    def test_keys_are_per_provider(self, app):
        settings.update_ai_config({'provider': 'openai', 'apiKey': 'sk-openai'}, user_id=None)
        assert settings.active_api_key('openai') == 'sk-openai'
        assert settings.active_api_key('anthropic') is None

    def test_empty_key_removes_stored_key(self, app):
        settings.update_ai_config({'apiKey': 'db-key'}, user_id=None)
        settings.update_ai_config({'apiKey': ''}, user_id=None)
        assert settings.get_ai_config()['keySource'] == 'none'

    @pytest.mark.parametrize('data, message', [
        ({}, 'At least one setting must be provided'),
        ({'provider': 'mistral'}, 'Invalid provider'),
        ({'provider': ['openai']}, 'Invalid provider'),
        ({'model': 'gpt-4o'}, 'Invalid model for anthropic'),
        ({'apiKey': 12345}, 'API key must be a string'),
    ])
    def test_invalid_updates(self, app, data, message):
        with pytest.raises(ApiError) as excinfo:
            settings.update_ai_config(data, user_id=None)
        assert excinfo.value.status_code == 400
        assert message in excinfo.value.message

    def test_rejected_update_changes_nothing(self, app):
        with pytest.raises(ApiError):
            settings.update_ai_config({'provider': 'openai', 'model': 'gemini-1.5-pro'}, user_id=None)
        assert settings.current_provider() == 'anthropic'


class TestAISettingsApi:
    def test_requires_admin(self, viewer_client):
        assert viewer_client.get('/api/admin/settings/ai').status_code == 403

    def test_get(self, admin_client):
        body = admin_client.get('/api/admin/settings/ai').get_json()
        assert body['settings']['provider'] == 'anthropic'

    def test_update_records_admin(self, admin_client, csrf_headers, admin_user):
        response = admin_client.put('/api/admin/settings/ai', headers=csrf_headers, json={
            'provider': 'openai', 'apiKey': 'sk-test',
        })
        assert response.status_code == 200
        body = response.get_json()['settings']
        assert body['provider'] == 'openai'
        assert body['keySource'] == 'database'
        assert 'sk-test' not in response.get_data(as_text=True)
        assert db.session.get(Setting, 'ai_api_key_openai').updated_by == admin_user.id

    def test_update_requires_csrf(self, admin_client):
        assert admin_client.put('/api/admin/settings/ai', json={'provider': 'openai'}).status_code == 403

    def test_update_body_must_be_object(self, admin_client, csrf_headers):
        response = admin_client.put('/api/admin/settings/ai', headers=csrf_headers, json=['openai'])
        assert response.status_code == 400

    def test_clear_key(self, admin_client, csrf_headers):
        admin_client.put('/api/admin/settings/ai', headers=csrf_headers, json={'apiKey': 'db-key'})
        response = admin_client.delete('/api/admin/settings/ai/api-key', headers=csrf_headers)
        assert response.status_code == 200
        assert response.get_json()['settings']['keySource'] == 'none'

    def test_connection(self, app, admin_client, csrf_headers, monkeypatch):
        monkeypatch.setitem(app.config, 'ANTHROPIC_API_KEY', 'env-key')
        monkeypatch.setattr(ai, 'send_message', lambda message, system_prompt='': 'Connection successful')
        response = admin_client.post('/api/admin/settings/ai/test', headers=csrf_headers)
        assert response.status_code == 200
        body = response.get_json()
        assert body['response'] == 'Connection successful'
        assert body['provider'] == 'Anthropic (Claude)'

    def test_connection_without_key(self, admin_client, csrf_headers):
        response = admin_client.post('/api/admin/settings/ai/test', headers=csrf_headers)
        assert response.status_code == 400
        assert response.get_json() == {'error': 'AI connection failed: No API key configured'}

    def test_connection_failure(self, app, admin_client, csrf_headers, monkeypatch):
        monkeypatch.setitem(app.config, 'ANTHROPIC_API_KEY', 'env-key')

        def post(url, headers=None, json=None, timeout=None):
            raise requests.ConnectionError('refused')

        monkeypatch.setattr(requests, 'post', post)
        response = admin_client.post('/api/admin/settings/ai/test', headers=csrf_headers)
        assert response.status_code == 400
        assert response.get_json()['error'].startswith('AI connection failed: AI request failed')
