"""
Recipe Image Service

Attach uploaded photos to recipes, choose the hero image, reorder and
delete them. Files are validated and re-encoded by utils.image_handler.
"""

import logging
import os

from constants import ALLOWED_IMAGE_EXTENSIONS
from models import db, prepare, transaction, RecipeImage
from utils.errors import ApiError
from utils.image_handler import save_image, remove_file

logger = logging.getLogger(__name__)


def images_dir(upload_folder):
    return os.path.join(upload_folder, 'images')


def list_images(recipe):
    """Hero first, then by position."""
    return (
        RecipeImage.query
        .filter_by(recipe_id=recipe.id)
        .order_by(RecipeImage.is_hero.desc(), RecipeImage.position, RecipeImage.id)
        .all()
    )


def get_recipe_image(recipe, image_id):
    image = db.session.get(RecipeImage, image_id)
    if image is None or image.recipe_id != recipe.id:
        raise ApiError(404, 'Image not found for this recipe')
    return image


def _next_position(recipe_id):
    row = prepare(
        'SELECT COALESCE(MAX(position), -1) + 1 AS next_position FROM recipe_images WHERE recipe_id = ?'
    ).get(recipe_id)
    return row['next_position']


def _clear_hero(recipe_id):
    RecipeImage.query.filter_by(recipe_id=recipe_id, is_hero=True).update({'is_hero': False})


def add_image(recipe, stored, original_name=None, is_hero=False, uploaded_by=None):
    """
    Record an already-stored image file against a recipe.

    Args:
        stored: dict returned by save_image()
        is_hero: When True any existing hero is demoted first
    """
    def _add(session):
        if is_hero:
            _clear_hero(recipe.id)
        image = RecipeImage(
            recipe_id=recipe.id,
            filename=stored['filename'],
            original_name=original_name or stored.get('original_name') or stored['filename'],
            file_path=stored['file_path'],
            file_size=stored['file_size'],
            mime_type=stored['mime_type'],
            is_hero=bool(is_hero),
            position=_next_position(recipe.id),
            uploaded_by=uploaded_by,
        )
        session.add(image)
        session.flush()
        return image

    return transaction(_add)


def upload_images(recipe, files, upload_folder, first_is_hero=False, uploaded_by=None):
    """
    Validate, store and attach each uploaded file.

    Raises:
        ApiError: If a filename lacks an image extension
        ImageValidationError: If any file is not a usable image; files
        already written for this request are removed again
    """
    for f in files:
        extension = f.filename.rsplit('.', 1)[-1].lower() if '.' in f.filename else ''
        if extension not in ALLOWED_IMAGE_EXTENSIONS:
            raise ApiError(400, 'Only image files (JPEG, PNG, GIF, WebP) are allowed')

    dest = images_dir(upload_folder)
    stored_files = []
    try:
        for f in files:
            stored = save_image(f, dest)
            stored['original_name'] = f.filename
            stored_files.append(stored)
    except Exception:
        for stored in stored_files:
            remove_file(stored['file_path'])
        raise

    images = []
    for index, stored in enumerate(stored_files):
        images.append(add_image(
            recipe, stored,
            is_hero=(index == 0 and first_is_hero),
            uploaded_by=uploaded_by,
        ))
    logger.info('Uploaded %d image(s) to recipe %s', len(images), recipe.id)
    return images


def set_hero(recipe, image):
    def _set(session):
        _clear_hero(recipe.id)
        image.is_hero = True

    transaction(_set)
    return image


def reorder_images(recipe, image_order):
    """Set positions from a list of image ids, all of which must belong to the recipe."""
    if not isinstance(image_order, list):
        raise ApiError(400, 'imageOrder must be an array of image IDs')

    owned = {image.id: image for image in RecipeImage.query.filter_by(recipe_id=recipe.id)}
    try:
        ids = [int(image_id) for image_id in image_order]
    except (TypeError, ValueError):
        raise ApiError(400, 'One or more image IDs do not belong to this recipe')
    if any(image_id not in owned for image_id in ids):
        raise ApiError(400, 'One or more image IDs do not belong to this recipe')

    def _reorder(session):
        for position, image_id in enumerate(ids):
            owned[image_id].position = position

    transaction(_reorder)
    return list_images(recipe)


def delete_image(image):
    """Delete the row, then the file."""
    file_path = image.file_path
    transaction(lambda session: session.delete(image))
    try:
        remove_file(file_path)
    except OSError as e:
        logger.warning('Failed to delete image file %s: %s', file_path, e)
