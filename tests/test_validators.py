"""
Tests for recipe payload validation.
These are pure functions with no database dependencies.
"""
import pytest

from utils.errors import ValidationError
from utils.validators import clean_text, normalize_tags, validate_recipe_payload


def errors_for(data, partial=False):
    with pytest.raises(ValidationError) as excinfo:
        validate_recipe_payload(data, partial=partial)
    return excinfo.value.errors


class TestCleanText:
    def test_strips_control_characters(self):
        assert clean_text('  Soup\x00\x07 time \x7f ') == 'Soup time'

    def test_keeps_newlines_and_tabs(self):
        assert clean_text('1. Chop\n\t2. Fry') == '1. Chop\n\t2. Fry'

    def test_truncates(self):
        assert clean_text('abcdef', 3) == 'abc'

    def test_none_and_numbers(self):
        assert clean_text(None) is None
        assert clean_text(12) == '12'


class TestNormalizeTags:
    def test_lowercases_and_dedupes_in_order(self):
        assert normalize_tags(['Dessert', 'dessert', 'DESSERT', ' Cookies ', 'cookies']) == ['dessert', 'cookies']

    def test_drops_blank_and_non_strings(self):
        assert normalize_tags(['', '   ', None, 5, 'ok']) == ['ok']

    def test_none(self):
        assert normalize_tags(None) == []


class TestValidateRecipePayload:
    def test_full_payload(self):
        cleaned = validate_recipe_payload({
            'title': '  Tomato Soup ',
            'source': " Nana's card ",
            'instructions': 'Simmer.\x00',
            'imagePath': '',
            'servings': 4,
            'ingredients': [{'name': ' tomatoes ', 'quantity': 6, 'unit': ' whole '}],
            'tags': ['Soup', 'soup', 'Vegetarian'],
        })
        assert cleaned == {
            'title': 'Tomato Soup',
            'source': "Nana's card",
            'instructions': 'Simmer.',
            'image_path': None,
            'servings': 4,
            'ingredients': [{'name': 'tomatoes', 'quantity': '6', 'unit': 'whole'}],
            'tags': ['soup', 'vegetarian'],
        }

    def test_defaults_on_create(self):
        cleaned = validate_recipe_payload({'title': 'Toast'})
        assert cleaned == {
            'title': 'Toast', 'source': None, 'instructions': None, 'image_path': None,
            'ingredients': [], 'tags': [],
        }

    def test_partial_only_returns_given_fields(self):
        assert validate_recipe_payload({'tags': ['A']}, partial=True) == {'tags': ['a']}
        assert validate_recipe_payload({}, partial=True) == {}

    def test_title_required(self):
        assert errors_for({}) == ['Title is required and must be a non-empty string']
        assert errors_for({'title': '   '}) == ['Title is required and must be a non-empty string']
        assert errors_for({'title': None}, partial=True) == ['Title is required and must be a non-empty string']

    def test_title_too_long(self):
        assert errors_for({'title': 'x' * 256}) == ['Title must be 255 characters or fewer']

    def test_body_must_be_object(self):
        assert errors_for(['not', 'a', 'dict']) == ['Request body must be a JSON object']
        assert errors_for(None) == ['Request body must be a JSON object']

    def test_ingredient_errors(self):
        errors = errors_for({
            'title': 'Stew',
            'ingredients': ['carrot', {'name': ''}, {'name': 'beef', 'quantity': ['2']}, {'name': 'x' * 256}],
        })
        assert errors == [
            'Ingredient at index 0 must be an object',
            "Ingredient at index 1 must have a non-empty 'name' string",
            "Ingredient at index 2 'quantity' must be a string",
            "Ingredient at index 3 'name' must be 255 characters or fewer",
        ]

    def test_ingredients_must_be_list(self):
        assert errors_for({'title': 'Stew', 'ingredients': 'beef'}) == ['Ingredients must be an array']

    def test_tag_errors(self):
        assert errors_for({'title': 'Stew', 'tags': 'dinner'}) == ['Tags must be an array']
        assert errors_for({'title': 'Stew', 'tags': ['ok', 3]}) == ['Tag at index 1 must be a string']

    def test_too_many_tags(self):
        errors = errors_for({'title': 'Stew', 'tags': [f't{n}' for n in range(51)]})
        assert errors == ['A recipe can have at most 50 tags']

    def test_servings(self):
        assert errors_for({'title': 'Stew', 'servings': 0}) == ['Servings must be a positive integer']
        assert errors_for({'title': 'Stew', 'servings': True}) == ['Servings must be a positive integer']
        assert validate_recipe_payload({'servings': None}, partial=True) == {'servings': None}

    def test_non_string_text_field(self):
        assert errors_for({'title': 'Stew', 'source': 12}) == ['Source must be a string']

    def test_collects_every_error(self):
        errors = errors_for({'title': '', 'ingredients': [{}], 'tags': [None]})
        assert len(errors) == 3
