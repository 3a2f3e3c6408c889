"""
Constants Package

Whitelists, limits, AI provider options and scraper tuning values shared
across the application.
"""

from .validation import (
    VALID_ROLES,
    VALID_CALORIE_CONFIDENCES,
    ADMIN_SORT_COLUMNS,
    MAX_LENGTHS,
    MAX_TAGS_PER_RECIPE,
    MIN_PASSWORD_LENGTH,
    ALLOWED_IMAGE_EXTENSIONS,
    ALLOWED_DOCUMENT_EXTENSIONS,
    VALID_THEMES,
    SUBMISSION_STATUSES,
    MAX_TAGS_PER_SUBMISSION,
)
from .scraper import (
    REQUEST_TIMEOUT,
    MAX_RESPONSE_SIZE,
    MAX_REDIRECTS,
    MAX_PAGE_CONTENT,
    MAX_SCRAPED_TAGS,
    USER_AGENT,
    BLOCKED_HOSTNAMES,
)
from .ai import (
    AI_PROVIDERS,
    DEFAULT_AI_PROVIDER,
    AI_PROVIDER_SETTING,
    AI_MODEL_SETTING,
    AI_API_KEY_SETTING,
)

__all__ = [
    'VALID_ROLES',
    'VALID_CALORIE_CONFIDENCES',
    'ADMIN_SORT_COLUMNS',
    'MAX_LENGTHS',
    'MAX_TAGS_PER_RECIPE',
    'MIN_PASSWORD_LENGTH',
    'ALLOWED_IMAGE_EXTENSIONS',
    'ALLOWED_DOCUMENT_EXTENSIONS',
    'VALID_THEMES',
    'SUBMISSION_STATUSES',
    'MAX_TAGS_PER_SUBMISSION',
    'REQUEST_TIMEOUT',
    'MAX_RESPONSE_SIZE',
    'MAX_REDIRECTS',
    'MAX_PAGE_CONTENT',
    'MAX_SCRAPED_TAGS',
    'USER_AGENT',
    'BLOCKED_HOSTNAMES',
    'AI_PROVIDERS',
    'DEFAULT_AI_PROVIDER',
    'AI_PROVIDER_SETTING',
    'AI_MODEL_SETTING',
    'AI_API_KEY_SETTING',
]
