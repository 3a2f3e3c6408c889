"""
AI Provider Constants

Providers an admin can switch between, the models offered for each and
the environment variable holding each provider's default API key. The
first model of a provider is its default.
"""

AI_PROVIDERS = {
    'anthropic': {
        'name': 'Anthropic (Claude)',
        'models': [
            {'id': 'claude-sonnet-4-5-20250929', 'name': 'Claude Sonnet 4.5 (Recommended)'},
            {'id': 'claude-opus-4-5-20251101', 'name': 'Claude Opus 4.5'},
            {'id': 'claude-3-5-haiku-20241022', 'name': 'Claude 3.5 Haiku (Fast)'},
        ],
        'env_key': 'ANTHROPIC_API_KEY',
    },
    'openai': {
        'name': 'OpenAI',
        'models': [
            {'id': 'gpt-4o', 'name': 'GPT-4o (Recommended)'},
            {'id': 'gpt-4o-mini', 'name': 'GPT-4o Mini (Fast)'},
            {'id': 'gpt-4-turbo', 'name': 'GPT-4 Turbo'},
        ],
        'env_key': 'OPENAI_API_KEY',
    },
    'google': {
        'name': 'Google (Gemini)',
        'models': [
            {'id': 'gemini-1.5-pro', 'name': 'Gemini 1.5 Pro (Recommended)'},
            {'id': 'gemini-1.5-flash', 'name': 'Gemini 1.5 Flash (Fast)'},
        ],
        'env_key': 'GOOGLE_API_KEY',
    },
}

DEFAULT_AI_PROVIDER = 'anthropic'

# Setting keys; API keys are stored per provider so switching never sends
# one provider's key to another
AI_PROVIDER_SETTING = 'ai_provider'
AI_MODEL_SETTING = 'ai_model'
AI_API_KEY_SETTING = 'ai_api_key_{provider}'
