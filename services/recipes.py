"""
Recipe Service

Create, read, search, update and delete recipes together with their
ingredients and tags, plus the admin list and dashboard numbers.
Functions return model instances; the serialize_* helpers turn them into
the camelCase dicts the API sends.
"""

import logging
import time

from sqlalchemy import func
from sqlalchemy.orm import selectinload, joinedload

from constants import ADMIN_SORT_COLUMNS, VALID_CALORIE_CONFIDENCES
from models import db, now, prepare, transaction, Recipe, Ingredient, Tag, RecipeTag
from utils.errors import ValidationError
from utils.image_handler import remove_file
from utils.validators import normalize_tags

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
MAX_LIMIT = 100

_SCALAR_FIELDS = ('title', 'source', 'instructions', 'image_path', 'servings')


# ============================================
# SERIALIZATION
# ============================================

def serialize_image(image):
    return {
        'id': image.id,
        'url': image.url,
        'originalName': image.original_name,
        'isHero': bool(image.is_hero),
        'position': image.position,
    }


def serialize_recipe_summary(recipe):
    """List/search shape: no ingredients or instructions."""
    hero = recipe.hero_image
    return {
        'id': recipe.id,
        'title': recipe.title,
        'source': recipe.source,
        'dateAdded': recipe.date_added,
        'imagePath': recipe.image_path,
        'tags': recipe.tag_names,
        'heroImage': hero.url if hero else None,
    }


def serialize_recipe(recipe):
    """Full recipe with ingredients, tags and images."""
    data = serialize_recipe_summary(recipe)
    data.update({
        'instructions': recipe.instructions,
        'servings': recipe.servings,
        'estimatedCalories': recipe.estimated_calories,
        'caloriesConfidence': recipe.calories_confidence,
        'timesCooked': recipe.times_cooked,
        'createdAt': recipe.created_at,
        'updatedAt': recipe.updated_at,
        'ingredients': [
            {'name': i.name, 'quantity': i.quantity, 'unit': i.unit, 'position': i.position}
            for i in recipe.ingredients
        ],
        'images': [serialize_image(image) for image in recipe.images],
    })
    return data


# ============================================
# WRITE HELPERS
# ============================================

def _set_ingredients(session, recipe, ingredients):
    recipe.ingredients = []
    session.flush()
    for position, ing in enumerate(ingredients):
        recipe.ingredients.append(Ingredient(
            name=ing['name'].strip(),
            quantity=(ing.get('quantity') or '').strip() or None,
            unit=(ing.get('unit') or '').strip() or None,
            position=position,
        ))


def _get_or_create_tag(session, name):
    tag = Tag.query.filter_by(name=name).first()
    if tag is None:
        tag = Tag(name=name)
        session.add(tag)
        session.flush()
    return tag


def _set_tags(session, recipe, tags):
    # Old links must be gone before re-inserting the same (recipe, tag) pair
    recipe.tag_links = []
    session.flush()
    for position, name in enumerate(normalize_tags(tags)):
        recipe.tag_links.append(RecipeTag(tag=_get_or_create_tag(session, name), position=position))


def cleanup_orphaned_tags():
    """Delete tags no recipe uses any more. Returns how many went."""
    result = prepare('DELETE FROM tags WHERE id NOT IN (SELECT DISTINCT tag_id FROM recipe_tags)').run()
    db.session.commit()
    return result.changes


# ============================================
# CRUD
# ============================================

def get_recipe(recipe_id):
    return db.session.get(Recipe, recipe_id)


def insert_recipe(session, fields, ingredients=None, tags=None, date_added=None):
    """Add a recipe with its ingredients and tags inside an open transaction."""
    recipe = Recipe(**{key: fields.get(key) for key in _SCALAR_FIELDS})
    if date_added is not None:
        recipe.date_added = date_added
    session.add(recipe)
    session.flush()
    _set_ingredients(session, recipe, ingredients or [])
    _set_tags(session, recipe, tags or [])
    return recipe


def create_recipe(fields, ingredients=None, tags=None, date_added=None):
    """
    Insert a recipe with its ingredients and tags in one transaction.

    Args:
        fields: dict of scalar columns (title, source, instructions, image_path, servings)
        ingredients: list of {name, quantity, unit} dicts, stored in list order
        tags: tag names; normalized before storage
    """
    recipe_id = transaction(
        lambda session: insert_recipe(session, fields, ingredients, tags, date_added).id
    )
    logger.info('Created recipe %s', recipe_id)
    return get_recipe(recipe_id)


def update_recipe(recipe, changes):
    """
    Apply a partial update.

    Scalar fields absent from changes keep their value; ingredients/tags,
    when present, replace the whole collection.
    """
    def _update(session):
        for key in _SCALAR_FIELDS:
            if key in changes:
                setattr(recipe, key, changes[key])
        if 'ingredients' in changes:
            _set_ingredients(session, recipe, changes['ingredients'])
        if 'tags' in changes:
            _set_tags(session, recipe, changes['tags'])
        recipe.updated_at = now()

    transaction(_update)
    cleanup_orphaned_tags()
    return get_recipe(recipe.id)


def delete_recipe(recipe):
    """Delete a recipe and any tags left unused, then its image files."""
    recipe_id = recipe.id
    file_paths = [image.file_path for image in recipe.images]
    transaction(lambda session: session.delete(recipe))
    cleanup_orphaned_tags()

    for path in file_paths:
        try:
            remove_file(path)
        except OSError as e:
            logger.warning('Could not remove image file %s: %s', path, e)
    logger.info('Deleted recipe %s', recipe_id)


# ============================================
# LISTING & SEARCH
# ============================================

def _summary_query():
    return Recipe.query.options(
        selectinload(Recipe.tag_links).joinedload(RecipeTag.tag),
        selectinload(Recipe.images),
    )


def _newest_first(query):
    return query.order_by(Recipe.date_added.desc(), Recipe.id.desc())


def clamp_pagination(limit, offset, default=DEFAULT_LIMIT):
    """Coerce limit into 1..100 (falling back to default) and offset to >= 0."""
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        limit = default
    if limit < 1:
        limit = default
    try:
        offset = int(offset)
    except (TypeError, ValueError):
        offset = 0
    return min(limit, MAX_LIMIT), max(offset, 0)


def pagination(total, limit, offset, count):
    """Pagination block for a page of count items."""
    return {'total': total, 'limit': limit, 'offset': offset, 'hasMore': offset + count < total}


def list_recipes(limit=DEFAULT_LIMIT, offset=0):
    limit, offset = clamp_pagination(limit, offset)
    return _newest_first(_summary_query()).offset(offset).limit(limit).all()


def count_recipes():
    return prepare('SELECT COUNT(*) AS count FROM recipes').get()['count']


def _split_terms(value):
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(',')
    terms = []
    for term in value:
        term = term.strip().lower()
        if term and term not in terms:
            terms.append(term)
    return terms


def _title_matches(title):
    return func.lower(Recipe.title).contains(title.strip().lower(), autoescape=True)


def _ingredient_contains(term):
    return Recipe.ingredients.any(func.lower(func.trim(Ingredient.name)).contains(term, autoescape=True))


def _ingredient_equals(term):
    return Recipe.ingredients.any(func.lower(func.trim(Ingredient.name)) == term)


def _has_any_tag(tags):
    return Recipe.tag_links.any(RecipeTag.tag.has(func.lower(func.trim(Tag.name)).in_(tags)))


def search_by_title(title):
    return _newest_first(_summary_query().filter(_title_matches(title))).all()


def search_by_ingredient(ingredient):
    """Recipes with an ingredient whose name contains the term."""
    term = ingredient.strip().lower()
    return _newest_first(_summary_query().filter(_ingredient_contains(term))).all()


def search_by_ingredients(ingredients):
    """Recipes containing every named ingredient (exact, case-insensitive)."""
    terms = _split_terms(ingredients)
    if not terms:
        return []
    query = _summary_query().filter(*[_ingredient_equals(term) for term in terms])
    return _newest_first(query).all()


def filter_by_tags(tags):
    """Recipes carrying any of the tags."""
    terms = _split_terms(tags)
    if not terms:
        return []
    return _newest_first(_summary_query().filter(_has_any_tag(terms))).all()


def combined_search(title=None, ingredients=None, tags=None):
    """Title substring AND each ingredient substring AND any of the tags."""
    query = _summary_query()
    if title and title.strip():
        query = query.filter(_title_matches(title))
    for term in _split_terms(ingredients):
        query = query.filter(_ingredient_contains(term))
    tag_terms = _split_terms(tags)
    if tag_terms:
        query = query.filter(_has_any_tag(tag_terms))
    return _newest_first(query).all()


def search_recipes(title=None, ingredient=None, ingredients=None, tags=None):
    """
    Dispatch a search request.

    A single parameter uses its dedicated search; several parameters are
    combined. Returns None when no parameter was given.
    """
    given = {key: value for key, value in (
        ('title', title), ('ingredient', ingredient), ('ingredients', ingredients), ('tags', tags),
    ) if value and value.strip()}

    if not given:
        return None
    if len(given) == 1:
        key, value = next(iter(given.items()))
        return {
            'title': search_by_title,
            'ingredient': search_by_ingredient,
            'ingredients': search_by_ingredients,
            'tags': filter_by_tags,
        }[key](value)

    ingredient_terms = _split_terms(ingredients) + _split_terms(ingredient)
    return combined_search(title=given.get('title'), ingredients=ingredient_terms, tags=given.get('tags'))


def list_tags():
    """Names of tags in use, alphabetically."""
    rows = prepare(
        'SELECT DISTINCT t.name AS name FROM tags t '
        'INNER JOIN recipe_tags rt ON t.id = rt.tag_id ORDER BY t.name'
    ).all()
    return [row['name'] for row in rows]


# ============================================
# CALORIES / COOKING / ADMIN
# ============================================

def update_calories(recipe, estimated_calories, calories_confidence):
    errors = []
    if estimated_calories is not None and (
            isinstance(estimated_calories, bool) or not isinstance(estimated_calories, int)
            or estimated_calories < 0):
        errors.append('Estimated calories must be a non-negative integer')
    if calories_confidence is not None and calories_confidence not in VALID_CALORIE_CONFIDENCES:
        errors.append('Calories confidence must be one of: high, low, medium')
    if errors:
        raise ValidationError(errors)

    def _update(session):
        recipe.estimated_calories = estimated_calories
        recipe.calories_confidence = calories_confidence
        recipe.updated_at = now()

    transaction(_update)
    return recipe


def increment_times_cooked(recipe_id):
    """Bump times_cooked; returns the refreshed recipe or None if it does not exist."""
    result = prepare(
        'UPDATE recipes SET times_cooked = times_cooked + 1, updated_at = ? WHERE id = ?'
    ).run(now(), recipe_id)
    db.session.commit()
    if not result.changes:
        return None
    recipe = get_recipe(recipe_id)
    db.session.refresh(recipe)
    return recipe


def admin_list(limit=DEFAULT_LIMIT, offset=0, sort_by='date_added', sort_order='DESC'):
    """Paged admin table rows with first tag as category and first ingredient."""
    limit, offset = clamp_pagination(limit, offset)
    column = getattr(Recipe, sort_by if sort_by in ADMIN_SORT_COLUMNS else 'date_added')
    order = column.asc() if str(sort_order).upper() == 'ASC' else column.desc()

    recipes = (
        Recipe.query
        .options(selectinload(Recipe.tag_links).joinedload(RecipeTag.tag), selectinload(Recipe.ingredients))
        .order_by(order, Recipe.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return [{
        'id': r.id,
        'title': r.title,
        'dateAdded': r.date_added,
        'estimatedCalories': r.estimated_calories,
        'timesCooked': r.times_cooked,
        'category': r.tag_names[0] if r.tag_links else None,
        'mainIngredient': r.ingredients[0].name if r.ingredients else None,
    } for r in recipes]


def dashboard_stats():
    one_week_ago = int(time.time()) - 7 * 24 * 60 * 60
    avg = prepare(
        'SELECT AVG(estimated_calories) AS avg FROM recipes WHERE estimated_calories IS NOT NULL'
    ).get()['avg']

    return {
        'totalRecipes': count_recipes(),
        'pendingRecipes': prepare('SELECT COUNT(*) AS count FROM pending_recipes').get()['count'],
        'categoriesCount': prepare(
            'SELECT COUNT(DISTINCT t.name) AS count FROM tags t INNER JOIN recipe_tags rt ON t.id = rt.tag_id'
        ).get()['count'],
        'recentRecipes': prepare(
            'SELECT COUNT(*) AS count FROM recipes WHERE date_added >= ?'
        ).get(one_week_ago)['count'],
        'avgCalories': int(round(float(avg or 0))),
        'recipesWithCalories': prepare(
            'SELECT COUNT(*) AS count FROM recipes WHERE estimated_calories IS NOT NULL'
        ).get()['count'],
    }
