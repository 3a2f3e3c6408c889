"""
Input Validation Module

Validates and normalizes recipe payloads from the API before they reach
the database. Every problem is collected so the client sees all of them
at once rather than one per request.
"""

import re

from constants import MAX_LENGTHS, MAX_TAGS_PER_RECIPE
from .errors import ValidationError

_CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')

# JSON field -> model attribute for the scalar recipe fields
_TEXT_FIELDS = {
    'source': 'source',
    'instructions': 'instructions',
    'imagePath': 'image_path',
}


def clean_text(text, max_length=None):
    """
    Strip whitespace and control characters, optionally truncating.

    Newlines and tabs are kept so instructions keep their layout.
    """
    if text is None:
        return None
    if not isinstance(text, str):
        text = str(text)
    text = _CONTROL_CHARS.sub('', text).strip()
    if max_length is not None and len(text) > max_length:
        text = text[:max_length]
    return text


def normalize_tags(tags):
    """Trim, lowercase and de-duplicate tag names, keeping first-seen order."""
    seen = set()
    normalized = []
    for tag in tags or []:
        if not isinstance(tag, str):
            continue
        name = tag.strip().lower()
        if name and name not in seen:
            seen.add(name)
            normalized.append(name)
    return normalized


def _optional_string(value):
    """None/'' -> None; numbers -> str; strings trimmed."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise TypeError
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        raise TypeError
    value = value.strip()
    return value or None


def validate_ingredients(ingredients, errors):
    """Validate an ingredient list; returns trimmed {name, quantity, unit} dicts."""
    if not isinstance(ingredients, list):
        errors.append('Ingredients must be an array')
        return []

    cleaned = []
    for index, ingredient in enumerate(ingredients):
        if not isinstance(ingredient, dict):
            errors.append(f'Ingredient at index {index} must be an object')
            continue

        name = ingredient.get('name')
        if not isinstance(name, str) or not name.strip():
            errors.append(f"Ingredient at index {index} must have a non-empty 'name' string")
            continue
        name = name.strip()
        if len(name) > MAX_LENGTHS['ingredient_name']:
            errors.append(f"Ingredient at index {index} 'name' must be {MAX_LENGTHS['ingredient_name']} characters or fewer")
            continue

        entry = {'name': name}
        for field in ('quantity', 'unit'):
            try:
                entry[field] = _optional_string(ingredient.get(field))
            except TypeError:
                errors.append(f"Ingredient at index {index} '{field}' must be a string")
                continue
            limit = MAX_LENGTHS[f'ingredient_{field}']
            if entry[field] and len(entry[field]) > limit:
                errors.append(f"Ingredient at index {index} '{field}' must be {limit} characters or fewer")
        cleaned.append(entry)
    return cleaned


def validate_tags(tags, errors):
    """Validate a tag list; returns normalized names."""
    if not isinstance(tags, list):
        errors.append('Tags must be an array')
        return []

    for index, tag in enumerate(tags):
        if not isinstance(tag, str):
            errors.append(f'Tag at index {index} must be a string')
        elif len(tag.strip()) > MAX_LENGTHS['tag']:
            errors.append(f"Tag at index {index} must be {MAX_LENGTHS['tag']} characters or fewer")

    normalized = normalize_tags(tags)
    if len(normalized) > MAX_TAGS_PER_RECIPE:
        errors.append(f'A recipe can have at most {MAX_TAGS_PER_RECIPE} tags')
    return normalized


def validate_recipe_payload(data, partial=False):
    """
    Validate a recipe create/update body.

    Args:
        data: Decoded JSON body
        partial: True for updates, where absent fields are left untouched

    Returns:
        dict of cleaned values keyed by model attribute; for partial
        payloads only the supplied fields are present

    Raises:
        ValidationError: With every problem found
    """
    if not isinstance(data, dict):
        raise ValidationError(['Request body must be a JSON object'])

    errors = []
    cleaned = {}

    if 'title' in data or not partial:
        title = data.get('title')
        if not isinstance(title, str) or not title.strip():
            errors.append('Title is required and must be a non-empty string')
        elif len(title.strip()) > MAX_LENGTHS['title']:
            errors.append(f"Title must be {MAX_LENGTHS['title']} characters or fewer")
        else:
            cleaned['title'] = title.strip()

    for field, attr in _TEXT_FIELDS.items():
        if field not in data:
            if not partial:
                cleaned[attr] = None
            continue
        value = data[field]
        if value is not None and not isinstance(value, str):
            errors.append(f'{field[0].upper()}{field[1:]} must be a string')
            continue
        value = clean_text(value, MAX_LENGTHS[attr]) if value is not None else None
        cleaned[attr] = value or None

    if 'servings' in data:
        servings = data['servings']
        if servings is None:
            cleaned['servings'] = None
        elif isinstance(servings, bool) or not isinstance(servings, int) or servings < 1:
            errors.append('Servings must be a positive integer')
        else:
            cleaned['servings'] = servings

    if 'ingredients' in data:
        cleaned['ingredients'] = validate_ingredients(data['ingredients'], errors)
    elif not partial:
        cleaned['ingredients'] = []

    if 'tags' in data:
        cleaned['tags'] = validate_tags(data['tags'], errors)
    elif not partial:
        cleaned['tags'] = []

    if errors:
        raise ValidationError(errors)
    return cleaned
