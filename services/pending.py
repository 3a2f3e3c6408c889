"""
Pending Recipe Service

Recipes extracted from uploaded documents or imported from URLs wait here
until an admin reviews and approves them. Approval turns a pending recipe
into a real one, attaching any downloaded photo as the hero image.
"""

import json
import logging
import os
import uuid

from werkzeug.utils import secure_filename

from constants import ALLOWED_DOCUMENT_EXTENSIONS, MAX_LENGTHS
from models import db, now, transaction, UploadedFile, PendingRecipe, PendingIngredient, PendingTag
from utils.errors import ApiError
from utils.image_handler import remove_file
from utils.url_validator import FetchError
from utils.validators import clean_text
from . import ai, pdf_parser, url_scraper
from .images import add_image, images_dir
from .recipes import create_recipe

logger = logging.getLogger(__name__)

MIN_DOCUMENT_TEXT = 10


# ============================================
# SERIALIZATION
# ============================================

def serialize_pending(pending):
    return {
        'id': pending.id,
        'fileId': pending.file_id,
        'filename': pending.file.filename if pending.file else None,
        'originalName': pending.file.original_name if pending.file else None,
        'title': pending.title,
        'source': pending.source,
        'category': pending.category,
        'description': pending.description,
        'instructions': pending.instructions,
        'rawText': pending.raw_text,
        'parsedData': pending.parsed,
        'image': f'/uploads/images/{pending.image_filename}' if pending.image_filename else None,
        'createdAt': pending.created_at,
        'ingredients': [
            {'name': i.name, 'quantity': i.quantity, 'unit': i.unit, 'position': i.position}
            for i in pending.ingredients
        ],
        'tags': [t.tag_name for t in pending.tags],
    }


# ============================================
# HELPERS
# ============================================

def _short_text(value, limit):
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        return None
    return clean_text(value, limit) or None


def _clean_ingredients(ingredients):
    """Keep well-formed ingredient dicts, stringify quantities, drop nameless ones."""
    cleaned = []
    for ing in ingredients or []:
        if isinstance(ing, str):
            ing = url_scraper.parse_ingredient_string(ing)
        if not isinstance(ing, dict):
            continue
        name = _short_text(ing.get('name'), MAX_LENGTHS['ingredient_name'])
        if not name:
            continue
        cleaned.append({
            'name': name,
            'quantity': _short_text(ing.get('quantity'), MAX_LENGTHS['ingredient_quantity']),
            'unit': _short_text(ing.get('unit'), MAX_LENGTHS['ingredient_unit']),
        })
    return cleaned


def _clean_tags(tags):
    return [t for t in (_short_text(tag, MAX_LENGTHS['tag']) for tag in tags or []) if t]


def _set_pending_children(session, pending, ingredients, tags):
    pending.ingredients = []
    pending.tags = []
    session.flush()
    for position, ing in enumerate(_clean_ingredients(ingredients)):
        pending.ingredients.append(PendingIngredient(position=position, **ing))
    for tag in _clean_tags(tags):
        pending.tags.append(PendingTag(tag_name=tag))


def create_pending(uploaded_file, parsed, raw_text, image=None):
    """
    Store a parsed recipe for review and mark its upload processed.

    Args:
        uploaded_file: UploadedFile (not yet added to the session is fine)
        parsed: dict from the scraper or AI parser
        raw_text: Text the recipe was parsed from
        image: Optional download_image() dict
    """
    def _create(session):
        session.add(uploaded_file)
        session.flush()
        pending = PendingRecipe(
            file_id=uploaded_file.id,
            title=_short_text(parsed.get('title'), MAX_LENGTHS['title']),
            source=_short_text(parsed.get('source'), MAX_LENGTHS['source']),
            category=_short_text(parsed.get('category'), 255),
            description=_short_text(parsed.get('description'), None),
            instructions=_short_text(parsed.get('instructions'), MAX_LENGTHS['instructions']),
            raw_text=raw_text,
            parsed_data=json.dumps(parsed),
        )
        if image:
            pending.image_filename = image['filename']
            pending.image_original_name = image.get('original_name')
            pending.image_file_path = image['file_path']
            pending.image_file_size = image['file_size']
            pending.image_mime_type = image['mime_type']
        session.add(pending)
        session.flush()
        _set_pending_children(session, pending, parsed.get('ingredients'), parsed.get('tags'))
        uploaded_file.processed = True
        return pending.id

    pending_id = transaction(_create)
    return db.session.get(PendingRecipe, pending_id)


# ============================================
# UPLOAD / IMPORT
# ============================================

def _extension(filename):
    return filename.rsplit('.', 1)[1].lower() if '.' in filename else ''


def _read_document_text(file_path, extension):
    if extension == 'pdf':
        try:
            return pdf_parser.extract_and_clean(file_path)
        except pdf_parser.PdfParseError as e:
            raise ApiError(
                400,
                'Failed to read PDF file. This may be a corrupted PDF or an unsupported format. '
                f'Error: {e}'
            )
    with open(file_path, 'rb') as f:
        return pdf_parser.clean_text(f.read().decode('utf-8', errors='replace'))


def upload_document(file_storage, upload_folder, user_id):
    """
    Save an uploaded PDF/text file, parse it with AI and stage the result.

    Raises:
        ApiError: 400 for missing, unsupported or text-less files
        AIError: When parsing fails (AIUnavailableError if AI is off)
    """
    if file_storage is None or not file_storage.filename:
        raise ApiError(400, 'No PDF file uploaded')

    extension = _extension(file_storage.filename)
    if extension not in ALLOWED_DOCUMENT_EXTENSIONS:
        raise ApiError(400, 'Only PDF and text files are allowed')

    dest = os.path.join(upload_folder, 'documents')
    os.makedirs(dest, exist_ok=True)
    filename = f'{uuid.uuid4().hex}-{secure_filename(file_storage.filename) or "upload." + extension}'
    file_path = os.path.join(dest, filename)
    file_storage.save(file_path)

    try:
        raw_text = _read_document_text(file_path, extension)
        if len(raw_text.strip()) < MIN_DOCUMENT_TEXT:
            raise ApiError(
                400,
                'Could not extract text from this PDF. This appears to be an image-based or scanned PDF. '
                'Please use a text-based PDF or enter the recipe manually.'
            )
        parsed = ai.parse_recipe_text(raw_text)
    except Exception:
        remove_file(file_path)
        raise

    uploaded = UploadedFile(
        filename=filename,
        original_name=file_storage.filename,
        file_path=file_path,
        file_size=os.path.getsize(file_path),
        mime_type='application/pdf' if extension == 'pdf' else 'text/plain',
        uploaded_by=user_id,
    )
    pending = create_pending(uploaded, parsed, raw_text)
    logger.info('Staged pending recipe %s from %s', pending.id, file_storage.filename)
    return pending


def import_from_url(url, upload_folder, user_id):
    """
    Scrape a recipe page and stage it for review.

    Structured pages are used as-is; other pages go through the AI parser.

    Returns:
        (pending_recipe, extraction_type)

    Raises:
        ApiError: 400 for a missing URL or any fetch/parse failure
        AIUnavailableError: Unstructured page and AI is off
    """
    if not url or not isinstance(url, str) or not url.strip():
        raise ApiError(400, 'URL is required')
    url = url.strip()

    try:
        scraped = url_scraper.scrape(url)
    except FetchError as e:
        raise ApiError(400, str(e))

    if scraped['type'] == 'structured':
        parsed = dict(scraped['data'])
        raw_text = json.dumps(scraped['data'], indent=2)
    else:
        page = scraped['data']
        raw_text = f"URL: {scraped['source']}\nTitle: {page['title']}\n\n{page['content']}"
        try:
            parsed = ai.parse_recipe_from_web_page(page, scraped['source'])
        except ai.AIUnavailableError:
            raise
        except ai.AIError as e:
            raise ApiError(400, str(e))

    if not parsed.get('source'):
        parsed['source'] = scraped['hostname']

    image = None
    if parsed.get('image'):
        image = url_scraper.download_image(parsed['image'], images_dir(upload_folder))

    uploaded = UploadedFile(
        filename=f'url-import-{now()}.txt',
        original_name=url[:500],
        file_path=url[:1000],
        file_size=len(raw_text),
        mime_type='text/x-url',
        uploaded_by=user_id,
    )
    try:
        pending = create_pending(uploaded, parsed, raw_text, image=image)
    except Exception:
        if image:
            remove_file(image['file_path'])
        raise

    logger.info('Imported %s as pending recipe %s (%s)', url, pending.id, scraped['type'])
    return pending, scraped['type']


# ============================================
# REVIEW
# ============================================

def list_pending():
    return PendingRecipe.query.order_by(PendingRecipe.created_at.desc(), PendingRecipe.id.desc()).all()


def update_pending(pending, data):
    """Edit a pending recipe; title is required, ingredients/tags replace when given."""
    if not isinstance(data, dict):
        raise ApiError(400, 'Request body must be a JSON object')
    title = data.get('title')
    if not isinstance(title, str) or not title.strip():
        raise ApiError(400, 'Title is required')

    def _update(session):
        pending.title = _short_text(title, MAX_LENGTHS['title'])
        for field, limit in (('source', MAX_LENGTHS['source']), ('category', 255),
                             ('description', None), ('instructions', MAX_LENGTHS['instructions'])):
            if field in data:
                setattr(pending, field, _short_text(data[field], limit))
        if isinstance(data.get('ingredients'), list) or isinstance(data.get('tags'), list):
            ingredients = data['ingredients'] if isinstance(data.get('ingredients'), list) else [
                {'name': i.name, 'quantity': i.quantity, 'unit': i.unit} for i in pending.ingredients
            ]
            tags = data['tags'] if isinstance(data.get('tags'), list) else [t.tag_name for t in pending.tags]
            _set_pending_children(session, pending, ingredients, tags)

    transaction(_update)
    return pending


def delete_pending(pending):
    """Delete a pending recipe and any image downloaded for it."""
    image_path = pending.image_file_path
    transaction(lambda session: session.delete(pending))
    if image_path:
        remove_file(image_path)


def approve_pending(pending, user_id):
    """
    Promote a pending recipe to a real recipe.

    Returns:
        (recipe, image_created)
    """
    if not pending.title or not pending.title.strip():
        raise ApiError(400, 'Title is required')

    parsed = pending.parsed if isinstance(pending.parsed, dict) else {}
    servings = parsed.get('servings')
    if isinstance(servings, bool) or not isinstance(servings, int) or servings < 1:
        servings = None

    recipe = create_recipe(
        {
            'title': pending.title,
            'source': pending.source,
            'instructions': pending.instructions,
            'servings': servings,
        },
        ingredients=[{'name': i.name, 'quantity': i.quantity, 'unit': i.unit} for i in pending.ingredients],
        tags=[t.tag_name for t in pending.tags],
    )

    image_created = False
    if pending.image_filename and pending.image_file_path:
        stored = {
            'filename': pending.image_filename,
            'file_path': pending.image_file_path,
            'file_size': pending.image_file_size or 0,
            'mime_type': pending.image_mime_type or 'image/jpeg',
        }
        try:
            add_image(recipe, stored, original_name=pending.image_original_name or 'recipe-image.jpg',
                      is_hero=True, uploaded_by=user_id)
            image_created = True
        except Exception:
            logger.exception('Failed to attach image to recipe %s', recipe.id)
            db.session.rollback()
            remove_file(pending.image_file_path)

    pending_id = pending.id
    transaction(lambda session: session.delete(pending))
    logger.info('Approved pending recipe %s as recipe %s', pending_id, recipe.id)
    return recipe, image_created
