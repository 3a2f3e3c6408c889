"""
Validation Constants

Contains whitelist values for validating user input to prevent
injection attacks and ensure data integrity.
"""

# Valid user roles (whitelist for security)
VALID_ROLES = {'admin', 'viewer'}

# Valid confidence levels for AI calorie estimates
VALID_CALORIE_CONFIDENCES = {'low', 'medium', 'high'}

# Columns the admin recipe list may be sorted by (interpolated into ORDER BY)
ADMIN_SORT_COLUMNS = {'title', 'date_added', 'estimated_calories', 'times_cooked'}

# Maximum field lengths for security
MAX_LENGTHS = {
    'title': 255,
    'source': 255,
    'instructions': 50000,
    'image_path': 255,
    'ingredient_name': 255,
    'ingredient_quantity': 50,
    'ingredient_unit': 50,
    'tag': 100,
    'username': 100,
}

MAX_TAGS_PER_RECIPE = 50

MIN_PASSWORD_LENGTH = 8

# Allowed upload extensions
ALLOWED_IMAGE_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp'}
ALLOWED_DOCUMENT_EXTENSIONS = {'pdf', 'txt'}

# Display themes a user may pick
VALID_THEMES = ('light', 'dark', 'system')

# Review states of a user-submitted recipe
SUBMISSION_STATUSES = {'pending', 'approved', 'rejected'}

MAX_TAGS_PER_SUBMISSION = 10
