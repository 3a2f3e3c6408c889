"""
Saved Recipe Service

Per-user bookmarks on recipes.
"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from models import db, transaction, Recipe, RecipeTag, SavedRecipe
from utils.errors import ApiError
from .recipes import clamp_pagination, pagination, serialize_recipe_summary

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20


def is_saved(user_id, recipe_id):
    return SavedRecipe.query.filter_by(user_id=user_id, recipe_id=recipe_id).first() is not None


def saved_ids(user_id):
    rows = (
        db.session.query(SavedRecipe.recipe_id)
        .filter_by(user_id=user_id)
        .order_by(SavedRecipe.saved_at.desc(), SavedRecipe.id.desc())
        .all()
    )
    return [row.recipe_id for row in rows]


def save_recipe(user_id, recipe_id):
    """
    Bookmark a recipe.

    Raises:
        ApiError: 404 for an unknown recipe, 409 when it is already saved
    """
    if db.session.get(Recipe, recipe_id) is None:
        raise ApiError(404, 'Recipe not found')
    if is_saved(user_id, recipe_id):
        raise ApiError(409, 'Recipe is already saved')

    try:
        transaction(lambda session: session.add(SavedRecipe(user_id=user_id, recipe_id=recipe_id)))
    except IntegrityError:
        # Lost a race with a concurrent save of the same recipe
        raise ApiError(409, 'Recipe is already saved')
    logger.info('User %s saved recipe %s', user_id, recipe_id)


def unsave_recipe(user_id, recipe_id):
    saved = SavedRecipe.query.filter_by(user_id=user_id, recipe_id=recipe_id).first()
    if saved is None:
        raise ApiError(404, 'Recipe was not saved')
    transaction(lambda session: session.delete(saved))


def list_saved(user_id, limit=DEFAULT_LIMIT, offset=0):
    """
    Saved recipes, most recently saved first.

    Returns:
        (recipes, pagination) where each recipe is the summary shape plus savedAt
    """
    limit, offset = clamp_pagination(limit, offset, default=DEFAULT_LIMIT)
    query = SavedRecipe.query.filter_by(user_id=user_id)
    total = query.count()
    rows = (
        query.options(
            joinedload(SavedRecipe.recipe).selectinload(Recipe.tag_links).joinedload(RecipeTag.tag),
            joinedload(SavedRecipe.recipe).selectinload(Recipe.images),
        )
        .order_by(SavedRecipe.saved_at.desc(), SavedRecipe.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )

    recipes = []
    for saved in rows:
        data = serialize_recipe_summary(saved.recipe)
        data['savedAt'] = saved.saved_at
        recipes.append(data)
    return recipes, pagination(total, limit, offset, len(recipes))
