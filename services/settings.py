"""
Settings Service

Runtime settings stored in the settings table, and the AI configuration
built on them: which provider and model to use and which API key is
active. A key stored here wins over the provider's environment variable.
Stored API keys are encrypted with a key derived from CSRF_SECRET.
"""

import base64
import hashlib
import logging
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken
from flask import current_app

from constants import (
    AI_PROVIDERS, DEFAULT_AI_PROVIDER, AI_PROVIDER_SETTING, AI_MODEL_SETTING, AI_API_KEY_SETTING
)
from models import db, now, transaction, Setting
from utils.errors import ApiError

logger = logging.getLogger(__name__)


@lru_cache(maxsize=4)
def _derive_key(secret):
    key = hashlib.scrypt(secret.encode('utf-8'), salt=b'settings-salt', n=2 ** 14, r=8, p=1, dklen=32)
    return base64.urlsafe_b64encode(key)


def _fernet():
    secret = current_app.config.get('CSRF_SECRET') or current_app.config.get('SECRET_KEY')
    if not secret:
        raise RuntimeError('No encryption key available. Set CSRF_SECRET or JWT_SECRET.')
    return Fernet(_derive_key(secret))


def encrypt(value):
    return _fernet().encrypt(value.encode('utf-8')).decode('ascii')


def decrypt(token):
    """Decrypt a stored value; None when it cannot be read with the current secret."""
    try:
        return _fernet().decrypt(token.encode('ascii')).decode('utf-8')
    except InvalidToken:
        logger.warning('Stored setting could not be decrypted; was the secret changed?')
        return None


# ============================================
# KEY-VALUE ACCESS
# ============================================

def get_setting(key):
    setting = db.session.get(Setting, key)
    if setting is None or setting.setting_value is None:
        return None
    if setting.encrypted:
        return decrypt(setting.setting_value)
    return setting.setting_value


def set_setting(key, value, encrypted=False, user_id=None):
    """Insert or replace a setting."""
    def _set(session):
        setting = session.get(Setting, key)
        if setting is None:
            setting = Setting(setting_key=key)
            session.add(setting)
        setting.setting_value = encrypt(value) if encrypted and value else value
        setting.encrypted = bool(encrypted)
        setting.updated_at = now()
        setting.updated_by = user_id

    transaction(_set)


def delete_setting(key):
    def _delete(session):
        setting = session.get(Setting, key)
        if setting is not None:
            session.delete(setting)

    transaction(_delete)


# ============================================
# AI CONFIGURATION
# ============================================

def _api_key_setting(provider):
    return AI_API_KEY_SETTING.format(provider=provider)


def current_provider():
    provider = get_setting(AI_PROVIDER_SETTING)
    return provider if provider in AI_PROVIDERS else DEFAULT_AI_PROVIDER


def current_model(provider=None):
    """Stored model when it belongs to the provider, else the provider's default."""
    provider = provider or current_provider()
    models = [m['id'] for m in AI_PROVIDERS[provider]['models']]
    model = get_setting(AI_MODEL_SETTING)
    return model if model in models else models[0]


def active_api_key(provider=None):
    """Stored key for the provider, else its environment variable, else None."""
    provider = provider or current_provider()
    stored = get_setting(_api_key_setting(provider))
    if stored:
        return stored
    return current_app.config.get(AI_PROVIDERS[provider]['env_key']) or None


def get_ai_config():
    """The active provider, model and key source plus every available option."""
    provider = current_provider()
    provider_config = AI_PROVIDERS[provider]
    model = current_model(provider)
    has_db_key = bool(get_setting(_api_key_setting(provider)))
    has_env_key = bool(current_app.config.get(provider_config['env_key']))
    model_name = next((m['name'] for m in provider_config['models'] if m['id'] == model), model)

    if has_db_key:
        key_source = 'database'
    elif has_env_key:
        key_source = 'environment'
    else:
        key_source = 'none'

    return {
        'provider': provider,
        'providerName': provider_config['name'],
        'model': model,
        'modelName': model_name,
        'hasApiKey': has_db_key or has_env_key,
        'keySource': key_source,
        'availableProviders': [
            {
                'id': provider_id,
                'name': config['name'],
                'models': config['models'],
                'hasEnvKey': bool(current_app.config.get(config['env_key'])),
            }
            for provider_id, config in AI_PROVIDERS.items()
        ],
    }


def update_ai_config(data, user_id):
    """
    Change provider, model and/or API key.

    An apiKey of '' or null removes the stored key for the target provider.

    Raises:
        ApiError: 400 for an empty update, unknown provider or a model the
            provider does not offer
    """
    if not isinstance(data, dict) or not any(field in data for field in ('provider', 'model', 'apiKey')):
        raise ApiError(400, 'At least one setting must be provided')

    provider = data.get('provider')
    model = data.get('model')
    if provider and (not isinstance(provider, str) or provider not in AI_PROVIDERS):
        raise ApiError(400, f"Invalid provider. Must be one of: {', '.join(AI_PROVIDERS)}")

    api_key = data.get('apiKey')
    if api_key and not isinstance(api_key, str):
        raise ApiError(400, 'API key must be a string')

    target = provider or current_provider()
    if model:
        models = [m['id'] for m in AI_PROVIDERS[target]['models']]
        if model not in models:
            raise ApiError(400, f"Invalid model for {target}. Available models: {', '.join(models)}")

    if provider:
        set_setting(AI_PROVIDER_SETTING, provider, user_id=user_id)
    if model:
        set_setting(AI_MODEL_SETTING, model, user_id=user_id)
    if 'apiKey' in data:
        if api_key:
            set_setting(_api_key_setting(target), api_key.strip(), encrypted=True, user_id=user_id)
        else:
            delete_setting(_api_key_setting(target))

    logger.info('AI settings updated by user %s (provider=%s)', user_id, target)
    return get_ai_config()


def clear_api_key():
    """Remove the stored key for the active provider; the environment key applies again."""
    delete_setting(_api_key_setting(current_provider()))
    return get_ai_config()
