"""
API Error Types

Exceptions raised by route handlers and services; app.py turns them into
JSON responses.
"""


class ApiError(Exception):
    """An error with an HTTP status and a message safe to show the client."""

    def __init__(self, status_code, message):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ValidationError(ApiError):
    """Request body failed validation; carries every message found."""

    def __init__(self, errors):
        super().__init__(400, 'Validation failed')
        self.errors = list(errors)
