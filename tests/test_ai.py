"""
Tests for the AI client: per-provider request shape, reply decoding and
result defaults. requests.post is patched; no API calls are made.
"""
from types import SimpleNamespace

import pytest
import requests

from services import ai, settings


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload or {}

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        return self._payload


def reply(text):
    return FakeResponse(payload={'content': [{'type': 'text', 'text': text}]})


@pytest.fixture
def api(app, monkeypatch):
    """Enable AI and capture outgoing requests."""
    monkeypatch.setitem(app.config, 'ANTHROPIC_API_KEY', 'test-key')
    calls = []
    responses = []

    def post(url, headers=None, json=None, timeout=None):
        calls.append({'url': url, 'headers': headers, 'json': json, 'timeout': timeout})
        item = responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    monkeypatch.setattr(requests, 'post', post)
    return calls, responses


class TestParseJsonResponse:
    def test_plain_json(self):
        assert ai.parse_json_response('{"a": 1}', 'Test') == {'a': 1}

    def test_code_fence(self):
        assert ai.parse_json_response('```json\n{"a": 1}\n```', 'Test') == {'a': 1}
        assert ai.parse_json_response('  ```\n[1, 2]\n```  ', 'Test') == [1, 2]

    def test_invalid(self):
        with pytest.raises(ai.AIError, match='Test returned invalid JSON'):
            ai.parse_json_response('Sure! Here is your recipe.', 'Test')
        with pytest.raises(ai.AIError):
            ai.parse_json_response(None, 'Test')


class TestSendMessage:
    def test_unconfigured(self, app):
        with pytest.raises(ai.AIUnavailableError):
            ai.send_message('hello')

    def test_request_shape(self, app, api):
        calls, responses = api
        responses.append(reply('hi there'))
        assert ai.send_message('hello', 'be brief') == 'hi there'

        call = calls[0]
        assert call['url'] == 'https://api.anthropic.com/v1/messages'
        assert call['headers']['x-api-key'] == 'test-key'
        assert call['headers']['anthropic-version'] == '2023-06-01'
        assert call['json']['system'] == 'be brief'
        assert call['json']['messages'] == [{'role': 'user', 'content': 'hello'}]
        assert call['json']['model'] == 'claude-sonnet-4-5-20250929'
        assert call['timeout'] == ai.TIMEOUT

    def test_no_system_prompt(self, api):
        calls, responses = api
        responses.append(reply('ok'))
        ai.send_message('hello')
        assert 'system' not in calls[0]['json']

    def test_bad_key(self, api):
        _, responses = api
        responses.append(FakeResponse(401))
        with pytest.raises(ai.AIError, match='Invalid API key'):
            ai.send_message('hello')

    def test_server_error(self, api):
        _, responses = api
        responses.append(FakeResponse(529))
        with pytest.raises(ai.AIError, match='HTTP 529'):
            ai.send_message('hello')

    def test_transport_error(self, api):
        _, responses = api
        responses.append(requests.ConnectionError('reset'))
        with pytest.raises(ai.AIError, match='AI request failed'):
            ai.send_message('hello')

    def test_empty_reply(self, api):
        _, responses = api
        responses.append(FakeResponse(payload={'content': []}))
        with pytest.raises(ai.AIError, match='No response from AI'):
            ai.send_message('hello')

    def test_unknown_model_status(self, api):
        _, responses = api
        responses.append(FakeResponse(404))
        with pytest.raises(ai.AIError, match='Invalid model "claude-sonnet-4-5-20250929"'):
            ai.send_message('hello')

    def test_unconfigured_names_env_key(self, app):
        settings.set_setting('ai_provider', 'openai')
        with pytest.raises(ai.AIUnavailableError, match='OPENAI_API_KEY'):
            ai.send_message('hello')


class TestProviders:
    def test_stored_key_wins(self, app, api):
        calls, responses = api
        settings.set_setting('ai_api_key_anthropic', 'stored-key', encrypted=True)
        responses.append(reply('ok'))
        ai.send_message('hello')
        assert calls[0]['headers']['x-api-key'] == 'stored-key'

    def test_openai(self, app, api, monkeypatch):
        calls, responses = api
        monkeypatch.setitem(app.config, 'OPENAI_API_KEY', 'sk-test')
        settings.set_setting('ai_provider', 'openai')
        settings.set_setting('ai_model', 'gpt-4o-mini')
        responses.append(FakeResponse(payload={'choices': [{'message': {'content': 'hi'}}]}))

        assert ai.send_message('hello', 'be brief') == 'hi'
        call = calls[0]
        assert call['url'] == 'https://api.openai.com/v1/chat/completions'
        assert call['headers']['Authorization'] == 'Bearer sk-test'
        assert call['json']['model'] == 'gpt-4o-mini'
        assert call['json']['messages'] == [
            {'role': 'system', 'content': 'be brief'},
            {'role': 'user', 'content': 'hello'},
        ]

    def test_google(self, app, api, monkeypatch):
        calls, responses = api
        monkeypatch.setitem(app.config, 'GOOGLE_API_KEY', 'g-test')
        settings.set_setting('ai_provider', 'google')
        responses.append(FakeResponse(payload={
            'candidates': [{'content': {'parts': [{'text': 'hi '}, {'text': 'there'}]}}],
        }))

        assert ai.send_message('hello', 'be brief') == 'hi there'
        call = calls[0]
        assert call['url'].endswith('/models/gemini-1.5-pro:generateContent')
        assert call['headers']['x-goog-api-key'] == 'g-test'
        assert call['json']['contents'][0]['parts'][0]['text'] == 'be brief\n\n---\n\nhello'

    def test_model_from_other_provider_ignored(self, app, api):
        calls, responses = api
        settings.set_setting('ai_model', 'gpt-4o')
        responses.append(reply('ok'))
        ai.send_message('hello')
        assert calls[0]['json']['model'] == 'claude-sonnet-4-5-20250929'

    def test_check_connection(self, api):
        _, responses = api
        responses.append(reply('  Connection successful\n'))
        assert ai.check_connection() == {
            'provider': 'Anthropic (Claude)',
            'model': 'Claude Sonnet 4.5 (Recommended)',
            'response': 'Connection successful',
        }

    def test_check_connection_without_key(self, app):
        with pytest.raises(ai.AIUnavailableError, match='No API key configured'):
            ai.check_connection()


class TestRecipeParsing:
    def test_text_defaults(self, api):
        _, responses = api
        responses.append(reply('{"title": null, "ingredients": "flour", "tags": null}'))
        parsed = ai.parse_recipe_text('some recipe')
        assert parsed['title'] == 'Untitled Recipe'
        assert parsed['ingredients'] == []
        assert parsed['instructions'] == ''
        assert parsed['tags'] == []

    def test_web_page_fills_title_and_source(self, api):
        calls, responses = api
        responses.append(reply('```json\n{"title": "", "ingredients": [{"name": "rice"}]}\n```'))
        page = {'title': 'Best Fried Rice', 'content': 'Fry the rice.', 'hostname': 'rice.example'}
        parsed = ai.parse_recipe_from_web_page(page, 'https://rice.example/fried')
        assert parsed['title'] == 'Best Fried Rice'
        assert parsed['source'] == 'rice.example'
        assert parsed['category'] is None
        assert 'Source URL: https://rice.example/fried' in calls[0]['json']['messages'][0]['content']

    def test_web_page_without_recipe(self, api):
        _, responses = api
        responses.append(reply('{"error": "No recipe found on this page"}'))
        with pytest.raises(ai.AIError, match='No recipe found on this page'):
            ai.parse_recipe_from_web_page({'title': 'x', 'content': 'y', 'hostname': 'z'}, 'https://z/')

    def test_non_object_reply(self, api):
        _, responses = api
        responses.append(reply('["not", "a", "recipe"]'))
        with pytest.raises(ai.AIError):
            ai.parse_recipe_text('text')


class TestEstimateCalories:
    recipe = SimpleNamespace(
        id=1,
        title='Oatmeal',
        servings=2,
        ingredients=[
            SimpleNamespace(name='oats', quantity='1', unit='cup'),
            SimpleNamespace(name='salt', quantity=None, unit=None),
        ],
    )

    def test_estimate(self, api):
        calls, responses = api
        responses.append(reply('{"estimated_calories": "310", "calories_confidence": "HIGH", "reasoning": "Oats."}'))
        assert ai.estimate_calories(self.recipe) == {
            'estimated_calories': 310,
            'calories_confidence': 'high',
            'reasoning': 'Oats.',
        }
        message = calls[0]['json']['messages'][0]['content']
        assert '1 cup oats\nsalt' in message
        assert 'Servings: 2' in message

    def test_unknown_confidence_becomes_low(self, api):
        _, responses = api
        responses.append(reply('{"estimated_calories": 200, "calories_confidence": "certain"}'))
        assert ai.estimate_calories(self.recipe)['calories_confidence'] == 'low'

    def test_missing_number(self, api):
        _, responses = api
        responses.append(reply('{"calories_confidence": "low"}'))
        with pytest.raises(ai.AIError, match='no usable number'):
            ai.estimate_calories(self.recipe)
