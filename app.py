"""
Recipe Box API

Flask application: JSON routes for recipes, images, imports, user
accounts, saved recipes, submissions and admin tools, the error handlers that shape every failure as JSON, and the
flask CLI commands for schema setup, migrations and admin seeding.
"""

import logging
import os

import click
from flask import Flask, jsonify, request, send_from_directory
from flask_login import current_user, login_required
from werkzeug.exceptions import HTTPException, NotFound

from config import get_config, missing_production_settings
from models import db, init_database, Recipe, PendingRecipe, User
from services import accounts, ai, saved, settings, submissions
from services import images as image_service
from services import pending as pending_service
from services import recipes as recipe_service
from migrations import add_calories_to_recipes, add_category_description_to_pending, MigrationError
from utils.auth import login_manager, admin_required, set_token_cookie, clear_token_cookie
from utils.csrf import csrf_protect, generate_csrf_token, set_csrf_cookie
from utils.errors import ApiError, ValidationError
from utils.image_handler import ImageValidationError
from utils.url_validator import FetchError
from utils.validators import validate_recipe_payload

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config.from_object(get_config())

if os.environ.get('FLASK_ENV') == 'production':
    missing = missing_production_settings()
    if missing:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")

logging.basicConfig(
    level=app.config['LOG_LEVEL'],
    format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
)

db.init_app(app)
login_manager.init_app(app)

# Create upload folders if they don't exist
os.makedirs(os.path.join(app.config['UPLOAD_FOLDER'], 'images'), exist_ok=True)


def json_body():
    """Decoded JSON object body, or {} when there is none."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ApiError(400, 'Request body must be a JSON object')
    return data


def get_recipe_or_404(recipe_id):
    return db.get_or_404(Recipe, recipe_id, description='Recipe not found')


def get_pending_or_404(pending_id):
    return db.get_or_404(PendingRecipe, pending_id, description='Pending recipe not found')


# ============================================
# CORS & ERROR HANDLERS
# ============================================

@app.after_request
def add_cors_headers(response):
    origin = request.headers.get('Origin')
    if origin and origin in app.config['CORS_ORIGINS']:
        response.headers['Access-Control-Allow-Origin'] = origin
        response.headers['Access-Control-Allow-Credentials'] = 'true'
        response.headers['Access-Control-Allow-Headers'] = 'Content-Type, X-CSRF-Token'
        response.headers['Access-Control-Allow-Methods'] = 'GET, POST, PUT, DELETE, OPTIONS'
        response.headers.add('Vary', 'Origin')
    return response


@app.errorhandler(ValidationError)
def handle_validation_error(e):
    return jsonify({'errors': e.errors}), 400


@app.errorhandler(ApiError)
def handle_api_error(e):
    return jsonify({'error': e.message}), e.status_code


@app.errorhandler(ImageValidationError)
def handle_image_error(e):
    return jsonify({'error': str(e)}), 400


@app.errorhandler(FetchError)
def handle_fetch_error(e):
    return jsonify({'error': str(e)}), 400


@app.errorhandler(ai.AIUnavailableError)
def handle_ai_unavailable(e):
    return jsonify({'error': str(e)}), 503


@app.errorhandler(ai.AIError)
def handle_ai_error(e):
    logger.warning('AI request failed: %s', e)
    return jsonify({'error': str(e)}), 502


@app.errorhandler(HTTPException)
def handle_http_exception(e):
    if e.code == 404 and e.description == NotFound.description:
        return jsonify({'error': 'Route not found'}), 404
    return jsonify({'error': e.description}), e.code


@app.errorhandler(Exception)
def handle_unexpected_error(e):
    logger.exception('Unhandled error on %s %s', request.method, request.path)
    db.session.rollback()
    return jsonify({'error': 'Internal server error'}), 500


# ============================================
# HEALTH & STATIC UPLOADS
# ============================================

@app.route('/health')
def health():
    return jsonify({'status': 'ok', 'message': 'Recipe API is running'})


@app.route('/uploads/<path:filename>')
def uploaded_file(filename):
    return send_from_directory(app.config['UPLOAD_FOLDER'], filename)


# ============================================
# AUTH
# ============================================

@app.route('/api/csrf-token')
def csrf_token():
    token = generate_csrf_token()
    return set_csrf_cookie(jsonify({'csrfToken': token}), token)


@app.route('/api/auth/login', methods=['POST'])
def login():
    data = json_body()
    username = data.get('username')
    password = data.get('password')
    if not username or not password:
        raise ApiError(400, 'Username and password are required')

    user = accounts.authenticate(username, password)
    if user is None:
        logger.info('Failed login for %s', username)
        raise ApiError(401, 'Invalid username or password')

    response = jsonify({
        'success': True,
        'user': {'id': user.id, 'username': user.username, 'role': user.role},
    })
    return set_token_cookie(response, user)


@app.route('/api/auth/logout', methods=['POST'])
@csrf_protect
def logout():
    return clear_token_cookie(jsonify({'success': True, 'message': 'Logged out successfully'}))


@app.route('/api/auth/me')
@login_required
def auth_me():
    return jsonify({'success': True, 'user': accounts.serialize_user(current_user)})


@app.route('/api/auth/change-password', methods=['POST'])
@login_required
@csrf_protect
def change_password():
    data = json_body()
    accounts.change_password(current_user, data.get('currentPassword'), data.get('newPassword'))
    return jsonify({'success': True, 'message': 'Password updated successfully'})


# ============================================
# USERS: REGISTRATION, PROFILE & PREFERENCES
# ============================================

@app.route('/api/users/register', methods=['POST'])
@csrf_protect
def user_register():
    user = accounts.register(json_body())
    response = jsonify({
        'success': True,
        'message': 'Registration successful',
        'user': {'id': user.id, 'username': user.username, 'email': user.email, 'role': user.role},
    })
    return set_token_cookie(response, user), 201


@app.route('/api/users/profile')
@login_required
def user_profile():
    return jsonify({
        'success': True,
        'user': accounts.serialize_user(current_user),
        'preferences': accounts.serialize_preferences(current_user),
    })


@app.route('/api/users/profile', methods=['PUT'])
@login_required
@csrf_protect
def user_profile_update():
    user = accounts.update_profile(current_user, json_body())
    return jsonify({
        'success': True,
        'message': 'Profile updated successfully',
        'user': accounts.serialize_user(user),
    })


@app.route('/api/users/preferences', methods=['PUT'])
@login_required
@csrf_protect
def user_preferences_update():
    user = accounts.update_preferences(current_user, json_body())
    return jsonify({
        'success': True,
        'message': 'Preferences updated successfully',
        'preferences': accounts.serialize_preferences(user),
    })


# ============================================
# USERS: SAVED RECIPES
# ============================================

@app.route('/api/users/saved-recipes')
@login_required
def saved_recipes_list():
    recipes, page = saved.list_saved(
        current_user.id, request.args.get('limit'), request.args.get('offset')
    )
    return jsonify({'success': True, 'recipes': recipes, 'pagination': page})


@app.route('/api/users/saved-recipes/ids')
@login_required
def saved_recipe_ids():
    return jsonify({'success': True, 'savedIds': saved.saved_ids(current_user.id)})


@app.route('/api/users/saved-recipes/<int:recipe_id>/check')
@login_required
def saved_recipe_check(recipe_id):
    return jsonify({'success': True, 'isSaved': saved.is_saved(current_user.id, recipe_id)})


@app.route('/api/users/saved-recipes/<int:recipe_id>', methods=['POST'])
@login_required
@csrf_protect
def saved_recipe_add(recipe_id):
    saved.save_recipe(current_user.id, recipe_id)
    return jsonify({'success': True, 'message': 'Recipe saved successfully'}), 201


@app.route('/api/users/saved-recipes/<int:recipe_id>', methods=['DELETE'])
@login_required
@csrf_protect
def saved_recipe_remove(recipe_id):
    saved.unsave_recipe(current_user.id, recipe_id)
    return jsonify({'success': True, 'message': 'Recipe removed from saved recipes'})


# ============================================
# USERS: SUBMISSIONS
# ============================================

@app.route('/api/users/submissions')
@login_required
def user_submissions_list():
    rows, page = submissions.list_user_submissions(
        current_user.id,
        status=request.args.get('status'),
        limit=request.args.get('limit'),
        offset=request.args.get('offset'),
    )
    return jsonify({'success': True, 'submissions': rows, 'pagination': page})


@app.route('/api/users/submissions/<int:submission_id>')
@login_required
def user_submission_view(submission_id):
    submission = submissions.get_visible_submission(submission_id, current_user)
    return jsonify({'success': True, 'submission': submissions.serialize_submission(submission)})


@app.route('/api/users/submissions', methods=['POST'])
@login_required
@csrf_protect
def user_submission_add():
    submission = submissions.create_submission(current_user.id, request.get_json(silent=True))
    return jsonify({
        'success': True,
        'message': 'Recipe submitted for review',
        'submission': submissions.serialize_submission(submission),
    }), 201


@app.route('/api/users/submissions/<int:submission_id>', methods=['DELETE'])
@login_required
@csrf_protect
def user_submission_delete(submission_id):
    submissions.delete_submission(submission_id, current_user.id)
    return jsonify({'success': True, 'message': 'Submission deleted successfully'})


# ============================================
# RECIPES
# ============================================

@app.route('/api/recipes')
def recipes_list():
    limit, offset = recipe_service.clamp_pagination(
        request.args.get('limit', recipe_service.DEFAULT_LIMIT),
        request.args.get('offset', 0),
    )
    recipes = recipe_service.list_recipes(limit, offset)
    return jsonify({
        'recipes': [recipe_service.serialize_recipe_summary(r) for r in recipes],
        'pagination': {'limit': limit, 'offset': offset, 'total': recipe_service.count_recipes()},
    })


@app.route('/api/recipes/search')
def recipes_search():
    recipes = recipe_service.search_recipes(
        title=request.args.get('title'),
        ingredient=request.args.get('ingredient'),
        ingredients=request.args.get('ingredients'),
        tags=request.args.get('tags'),
    )
    if recipes is None:
        raise ApiError(
            400,
            'Please provide at least one search parameter: title, ingredient, ingredients, or tags'
        )
    return jsonify({
        'count': len(recipes),
        'recipes': [recipe_service.serialize_recipe_summary(r) for r in recipes],
    })


@app.route('/api/recipes/<int:recipe_id>')
def recipe_view(recipe_id):
    recipe = get_recipe_or_404(recipe_id)
    return jsonify({'recipe': recipe_service.serialize_recipe(recipe)})


@app.route('/api/recipes', methods=['POST'])
@admin_required
def recipe_add():
    data = validate_recipe_payload(request.get_json(silent=True))
    recipe = recipe_service.create_recipe(
        data,
        ingredients=data.pop('ingredients'),
        tags=data.pop('tags'),
    )
    return jsonify({
        'message': 'Recipe created successfully',
        'recipe': recipe_service.serialize_recipe(recipe),
    }), 201


@app.route('/api/recipes/<int:recipe_id>', methods=['PUT'])
@admin_required
def recipe_edit(recipe_id):
    recipe = get_recipe_or_404(recipe_id)
    changes = validate_recipe_payload(request.get_json(silent=True), partial=True)
    recipe = recipe_service.update_recipe(recipe, changes)
    return jsonify({
        'message': 'Recipe updated successfully',
        'recipe': recipe_service.serialize_recipe(recipe),
    })


@app.route('/api/recipes/<int:recipe_id>', methods=['DELETE'])
@admin_required
def recipe_delete(recipe_id):
    recipe = get_recipe_or_404(recipe_id)
    recipe_service.delete_recipe(recipe)
    return jsonify({'message': 'Recipe deleted successfully'})


@app.route('/api/recipes/<int:recipe_id>/estimate-calories', methods=['POST'])
@admin_required
def recipe_estimate_calories(recipe_id):
    recipe = get_recipe_or_404(recipe_id)
    if not recipe.ingredients:
        raise ApiError(400, 'Recipe has no ingredients to estimate calories from')

    estimate = ai.estimate_calories(recipe)
    recipe = recipe_service.update_calories(
        recipe, estimate['estimated_calories'], estimate['calories_confidence']
    )
    return jsonify({
        'message': 'Calories estimated successfully',
        'recipe': recipe_service.serialize_recipe(recipe),
        'reasoning': estimate['reasoning'],
    })


@app.route('/api/recipes/<int:recipe_id>/cooked', methods=['POST'])
@admin_required
def recipe_cooked(recipe_id):
    recipe = recipe_service.increment_times_cooked(recipe_id)
    if recipe is None:
        raise ApiError(404, 'Recipe not found')
    return jsonify({
        'message': 'Times cooked updated',
        'recipe': recipe_service.serialize_recipe(recipe),
    })


@app.route('/api/tags')
def tags_list():
    return jsonify({'tags': recipe_service.list_tags()})


# ============================================
# RECIPE IMAGES
# ============================================

@app.route('/api/recipes/<int:recipe_id>/images')
def recipe_images(recipe_id):
    recipe = get_recipe_or_404(recipe_id)
    images = image_service.list_images(recipe)
    return jsonify({'images': [recipe_service.serialize_image(i) for i in images]})


@app.route('/api/recipes/<int:recipe_id>/images', methods=['POST'])
@admin_required
def recipe_images_upload(recipe_id):
    recipe = get_recipe_or_404(recipe_id)
    files = [f for f in request.files.getlist('images') if f and f.filename]
    if not files:
        raise ApiError(400, 'No image files provided')

    first_is_hero = str(request.form.get('isHero', '')).lower() == 'true'
    images = image_service.upload_images(
        recipe, files, app.config['UPLOAD_FOLDER'],
        first_is_hero=first_is_hero, uploaded_by=current_user.id,
    )
    return jsonify({
        'message': f'Successfully uploaded {len(images)} image(s)',
        'images': [recipe_service.serialize_image(i) for i in images],
    }), 201


@app.route('/api/recipes/<int:recipe_id>/images/reorder', methods=['PUT'])
@admin_required
def recipe_images_reorder(recipe_id):
    recipe = get_recipe_or_404(recipe_id)
    images = image_service.reorder_images(recipe, json_body().get('imageOrder'))
    return jsonify({
        'message': 'Image order updated successfully',
        'images': [recipe_service.serialize_image(i) for i in images],
    })


@app.route('/api/recipes/<int:recipe_id>/images/<int:image_id>/hero', methods=['PUT'])
@admin_required
def recipe_image_hero(recipe_id, image_id):
    recipe = get_recipe_or_404(recipe_id)
    image = image_service.set_hero(recipe, image_service.get_recipe_image(recipe, image_id))
    return jsonify({
        'message': 'Hero image updated successfully',
        'image': recipe_service.serialize_image(image),
    })


@app.route('/api/recipes/<int:recipe_id>/images/<int:image_id>', methods=['DELETE'])
@admin_required
def recipe_image_delete(recipe_id, image_id):
    recipe = get_recipe_or_404(recipe_id)
    image_service.delete_image(image_service.get_recipe_image(recipe, image_id))
    return jsonify({'message': 'Image deleted successfully'})


# ============================================
# ADMIN: DASHBOARD & RECIPE TABLE
# ============================================

@app.route('/api/admin/stats')
@admin_required
def admin_stats():
    stats = recipe_service.dashboard_stats()
    stats['pendingSubmissions'] = submissions.pending_count()
    return jsonify({'success': True, 'data': stats})


@app.route('/api/admin/recipes')
@admin_required
def admin_recipes():
    limit, offset = recipe_service.clamp_pagination(
        request.args.get('limit', recipe_service.DEFAULT_LIMIT),
        request.args.get('offset', 0),
    )
    rows = recipe_service.admin_list(
        limit, offset,
        sort_by=request.args.get('sortBy', 'date_added'),
        sort_order=request.args.get('sortOrder', 'DESC'),
    )
    return jsonify({
        'recipes': rows,
        'pagination': {'limit': limit, 'offset': offset, 'total': recipe_service.count_recipes()},
    })


# ============================================
# ADMIN: IMPORT & PENDING RECIPES
# ============================================

@app.route('/api/admin/upload-pdf', methods=['POST'])
@admin_required
def admin_upload_pdf():
    upload = request.files.get('pdf')
    pending = pending_service.upload_document(upload, app.config['UPLOAD_FOLDER'], current_user.id)
    return jsonify({
        'success': True,
        'message': 'PDF parsed successfully',
        'data': {
            'fileId': pending.file_id,
            'pendingRecipeId': pending.id,
            'fileName': upload.filename,
            'recipe': pending_service.serialize_pending(pending),
        },
    })


@app.route('/api/admin/import-url', methods=['POST'])
@admin_required
def admin_import_url():
    url = json_body().get('url')
    pending, extraction_type = pending_service.import_from_url(url, app.config['UPLOAD_FOLDER'], current_user.id)
    return jsonify({
        'success': True,
        'message': 'Recipe imported successfully from URL',
        'data': {
            'fileId': pending.file_id,
            'pendingRecipeId': pending.id,
            'sourceUrl': url.strip(),
            'extractionType': extraction_type,
            'hasImage': bool(pending.image_filename),
            'recipe': pending_service.serialize_pending(pending),
        },
    })


@app.route('/api/admin/pending-recipes')
@admin_required
def admin_pending_list():
    pending = pending_service.list_pending()
    return jsonify({'success': True, 'data': [pending_service.serialize_pending(p) for p in pending]})


@app.route('/api/admin/pending-recipes/<int:pending_id>')
@admin_required
def admin_pending_view(pending_id):
    pending = get_pending_or_404(pending_id)
    return jsonify({'success': True, 'data': pending_service.serialize_pending(pending)})


@app.route('/api/admin/pending-recipes/<int:pending_id>', methods=['PUT'])
@admin_required
def admin_pending_edit(pending_id):
    pending = get_pending_or_404(pending_id)
    pending = pending_service.update_pending(pending, request.get_json(silent=True))
    return jsonify({
        'success': True,
        'message': 'Pending recipe updated',
        'data': pending_service.serialize_pending(pending),
    })


@app.route('/api/admin/pending-recipes/<int:pending_id>', methods=['DELETE'])
@admin_required
def admin_pending_delete(pending_id):
    pending_service.delete_pending(get_pending_or_404(pending_id))
    return jsonify({'success': True, 'message': 'Pending recipe deleted'})


@app.route('/api/admin/pending-recipes/<int:pending_id>/approve', methods=['POST'])
@admin_required
def admin_pending_approve(pending_id):
    pending = get_pending_or_404(pending_id)
    recipe, image_created = pending_service.approve_pending(pending, current_user.id)
    return jsonify({
        'success': True,
        'message': 'Recipe approved and saved',
        'data': {'recipeId': recipe.id, 'imageCreated': image_created},
    })


# ============================================
# ADMIN: USERS
# ============================================

@app.route('/api/admin/users')
@admin_required
def admin_users():
    return jsonify({'success': True, 'data': [accounts.serialize_user(u) for u in accounts.list_users()]})


@app.route('/api/admin/users', methods=['POST'])
@admin_required
@csrf_protect
def admin_user_add():
    data = json_body()
    user = accounts.create_user(
        data.get('username'),
        data.get('password'),
        email=data.get('email'),
        role=data.get('role', 'viewer'),
    )
    return jsonify({'success': True, 'user': accounts.serialize_user(user)}), 201


@app.route('/api/admin/users/<int:user_id>', methods=['DELETE'])
@admin_required
@csrf_protect
def admin_user_delete(user_id):
    user = db.get_or_404(User, user_id, description='User not found')
    accounts.delete_user(user, current_user.id)
    return jsonify({'success': True, 'message': 'User deleted'})


# ============================================
# ADMIN: SUBMISSION REVIEW
# ============================================

@app.route('/api/admin/submissions/count')
@admin_required
def admin_submission_count():
    return jsonify({'success': True, 'count': submissions.pending_count()})


@app.route('/api/admin/submissions')
@admin_required
def admin_submissions_list():
    rows, page = submissions.list_submissions(
        status=request.args.get('status'),
        limit=request.args.get('limit'),
        offset=request.args.get('offset'),
    )
    return jsonify({'success': True, 'submissions': rows, 'pagination': page})


@app.route('/api/admin/submissions/pending')
@admin_required
def admin_submissions_pending():
    rows, page = submissions.list_pending_submissions(
        limit=request.args.get('limit'), offset=request.args.get('offset')
    )
    return jsonify({'success': True, 'submissions': rows, 'pagination': page})


@app.route('/api/admin/submissions/<int:submission_id>')
@admin_required
def admin_submission_view(submission_id):
    submission = submissions.get_visible_submission(submission_id, current_user)
    return jsonify({'success': True, 'submission': submissions.serialize_submission(submission)})


@app.route('/api/admin/submissions/<int:submission_id>/approve', methods=['POST'])
@admin_required
@csrf_protect
def admin_submission_approve(submission_id):
    recipe_id = submissions.approve_submission(submission_id, current_user.id, json_body().get('notes'))
    return jsonify({'success': True, 'message': 'Submission approved and recipe created', 'recipeId': recipe_id})


@app.route('/api/admin/submissions/<int:submission_id>/reject', methods=['POST'])
@admin_required
@csrf_protect
def admin_submission_reject(submission_id):
    submissions.reject_submission(submission_id, current_user.id, json_body().get('notes'))
    return jsonify({'success': True, 'message': 'Submission rejected'})


# ============================================
# ADMIN: AI SETTINGS
# ============================================

@app.route('/api/admin/settings/ai')
@admin_required
def admin_ai_settings():
    return jsonify({'success': True, 'settings': settings.get_ai_config()})


@app.route('/api/admin/settings/ai', methods=['PUT'])
@admin_required
@csrf_protect
def admin_ai_settings_update():
    config = settings.update_ai_config(json_body(), current_user.id)
    return jsonify({'success': True, 'message': 'AI settings updated successfully', 'settings': config})


@app.route('/api/admin/settings/ai/test', methods=['POST'])
@admin_required
@csrf_protect
def admin_ai_settings_test():
    try:
        result = ai.check_connection()
    except ai.AIError as e:
        raise ApiError(400, f'AI connection failed: {e}')
    return jsonify({'success': True, 'message': 'AI connection successful', **result})


@app.route('/api/admin/settings/ai/api-key', methods=['DELETE'])
@admin_required
@csrf_protect
def admin_ai_api_key_clear():
    config = settings.clear_api_key()
    return jsonify({
        'success': True,
        'message': 'Stored API key removed. Environment variable will be used if available.',
        'settings': config,
    })


# ============================================
# CLI COMMANDS
# ============================================

@app.cli.command('init-db')
def init_db_command():
    """Create all tables that do not exist yet."""
    init_database()
    click.echo('Database initialized.')


def _run_migration(migration):
    try:
        added = migration.upgrade(db.engine)
    except MigrationError as e:
        raise click.ClickException(str(e))
    if added:
        click.echo(f"Added columns: {', '.join(added)}")
    else:
        click.echo('Columns already exist. No migration needed.')


@app.cli.command('migrate-calories')
def migrate_calories_command():
    """Add servings and calorie columns to recipes."""
    _run_migration(add_calories_to_recipes)


@app.cli.command('migrate-pending')
def migrate_pending_command():
    """Add category and description columns to pending_recipes."""
    _run_migration(add_category_description_to_pending)


@app.cli.command('seed-admins')
@click.option('--username', help='Admin username (repeat entries via SEED_ADMINS instead).')
@click.option('--password', help='Admin password.')
@click.option('--email', default=None, help='Optional email address.')
def seed_admins_command(username, password, email):
    """
    Create admin accounts that do not exist yet.

    Reads --username/--password, or SEED_ADMINS as
    "user:password[:email],user2:password2".
    """
    if username or password:
        if not (username and password):
            raise click.UsageError('--username and --password must be given together')
        users = [{'username': username, 'password': password, 'email': email}]
    else:
        try:
            users = accounts.parse_seed_admins(os.environ.get('SEED_ADMINS', ''))
        except ValueError as e:
            raise click.ClickException(str(e))
    if not users:
        raise click.UsageError('Give --username/--password or set SEED_ADMINS')

    init_database()
    try:
        created, skipped = accounts.seed_admin_users(users)
    except ApiError as e:
        raise click.ClickException(e.message)
    for name in skipped:
        click.echo(f'User "{name}" already exists, skipping')
    for name in created:
        click.echo(f'Created admin user "{name}"')


if __name__ == '__main__':
    with app.app_context():
        init_database()
    app.run(debug=app.config.get('DEBUG', False), host='0.0.0.0', port=int(os.environ.get('PORT', 5000)),
            use_reloader=False)
