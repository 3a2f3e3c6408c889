# Utility modules for Recipe App
from .errors import ApiError, ValidationError
from .url_validator import (
    safe_fetch, validate_url, FetchError, InvalidUrlError, SSRFError,
    FetchTimeoutError, HttpStatusError, NetworkError, ContentError
)
from .image_handler import save_image, remove_file, ImageValidationError
from .validators import clean_text, normalize_tags, validate_recipe_payload
