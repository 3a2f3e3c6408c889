"""
Models Package

Exports all database models, the db instance and the raw-SQL adapter for
use throughout the application.
"""

from .base import (
    db,
    now,
    prepare,
    transaction,
    init_database,
    clear_database,
)

from .recipe import Recipe, Ingredient, Tag, RecipeTag, RecipeImage
from .user import User, UserPreference, SavedRecipe
from .pending import UploadedFile, PendingRecipe, PendingIngredient, PendingTag
from .submission import SubmittedRecipe, SubmittedIngredient, SubmittedTag
from .setting import Setting

__all__ = [
    'db',
    'now',
    'prepare',
    'transaction',
    'init_database',
    'clear_database',
    'Recipe',
    'Ingredient',
    'Tag',
    'RecipeTag',
    'RecipeImage',
    'User',
    'UserPreference',
    'SavedRecipe',
    'UploadedFile',
    'PendingRecipe',
    'PendingIngredient',
    'PendingTag',
    'SubmittedRecipe',
    'SubmittedIngredient',
    'SubmittedTag',
    'Setting',
]
