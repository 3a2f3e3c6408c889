"""
Submitted Recipe Service

Viewers submit recipes for review; admins approve them (creating a real
recipe with the submission's ingredients and tags) or reject them with a
reason. Only pending submissions can be reviewed or withdrawn.
"""

import logging

from sqlalchemy.orm import selectinload

from constants import MAX_TAGS_PER_SUBMISSION, SUBMISSION_STATUSES
from models import db, now, prepare, transaction, SubmittedRecipe, SubmittedIngredient, SubmittedTag
from utils.errors import ApiError, ValidationError
from utils.validators import validate_recipe_payload
from .recipes import clamp_pagination, pagination, insert_recipe

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20

NOT_REVIEWABLE = 'Submission not found or already reviewed'


# ============================================
# SERIALIZATION
# ============================================

def serialize_submission_summary(submission):
    return {
        'id': submission.id,
        'title': submission.title,
        'source': submission.source,
        'status': submission.status,
        'adminNotes': submission.admin_notes,
        'submitterUsername': submission.submitter.username if submission.submitter else None,
        'createdAt': submission.created_at,
        'updatedAt': submission.updated_at,
        'reviewedAt': submission.reviewed_at,
    }


def serialize_submission(submission):
    data = serialize_submission_summary(submission)
    data.update({
        'userId': submission.user_id,
        'instructions': submission.instructions,
        'servings': submission.servings,
        'reviewedBy': submission.reviewed_by,
        'reviewerUsername': submission.reviewer.username if submission.reviewer else None,
        'ingredients': [
            {'name': i.name, 'quantity': i.quantity, 'unit': i.unit, 'position': i.position}
            for i in submission.ingredients
        ],
        'tags': [t.tag_name for t in submission.tags],
    })
    return data


# ============================================
# SUBMITTING
# ============================================

def create_submission(user_id, data):
    """
    Validate and store a submission as pending.

    Raises:
        ValidationError: With every problem in the payload
    """
    cleaned = validate_recipe_payload(data)
    if len(cleaned['tags']) > MAX_TAGS_PER_SUBMISSION:
        raise ValidationError([f'Maximum {MAX_TAGS_PER_SUBMISSION} tags allowed'])

    def _create(session):
        submission = SubmittedRecipe(
            user_id=user_id,
            title=cleaned['title'],
            source=cleaned['source'],
            instructions=cleaned['instructions'],
            servings=cleaned.get('servings'),
            status='pending',
        )
        for position, ing in enumerate(cleaned['ingredients']):
            submission.ingredients.append(SubmittedIngredient(
                name=ing['name'], quantity=ing.get('quantity'), unit=ing.get('unit'), position=position,
            ))
        for name in cleaned['tags']:
            submission.tags.append(SubmittedTag(tag_name=name))
        session.add(submission)
        session.flush()
        return submission.id

    submission_id = transaction(_create)
    logger.info('User %s submitted recipe %s', user_id, submission_id)
    return get_submission(submission_id)


def get_submission(submission_id):
    return db.session.get(SubmittedRecipe, submission_id)


def get_visible_submission(submission_id, user):
    """
    A submission its owner or an admin may read.

    Raises:
        ApiError: 404 when missing, 403 for someone else's submission
    """
    submission = get_submission(submission_id)
    if submission is None:
        raise ApiError(404, 'Submission not found')
    if not user.is_admin and submission.user_id != user.id:
        raise ApiError(403, 'Access denied')
    return submission


def delete_submission(submission_id, user_id):
    """Withdraw one of the user's own pending submissions."""
    submission = SubmittedRecipe.query.filter_by(id=submission_id, user_id=user_id, status='pending').first()
    if submission is None:
        raise ApiError(404, 'Submission not found or cannot be deleted')
    transaction(lambda session: session.delete(submission))
    logger.info('User %s withdrew submission %s', user_id, submission_id)


# ============================================
# LISTING
# ============================================

def _check_status(status):
    if status and status not in SUBMISSION_STATUSES:
        raise ApiError(400, f"Invalid status. Must be one of: {', '.join(sorted(SUBMISSION_STATUSES))}")


def _page(query, limit, offset, oldest_first=False):
    limit, offset = clamp_pagination(limit, offset, default=DEFAULT_LIMIT)
    total = query.count()
    if oldest_first:
        query = query.order_by(SubmittedRecipe.created_at.asc(), SubmittedRecipe.id.asc())
    else:
        query = query.order_by(SubmittedRecipe.created_at.desc(), SubmittedRecipe.id.desc())
    rows = query.options(selectinload(SubmittedRecipe.submitter)).offset(offset).limit(limit).all()
    return [serialize_submission_summary(s) for s in rows], pagination(total, limit, offset, len(rows))


def list_user_submissions(user_id, status=None, limit=DEFAULT_LIMIT, offset=0):
    _check_status(status)
    query = SubmittedRecipe.query.filter_by(user_id=user_id)
    if status:
        query = query.filter_by(status=status)
    return _page(query, limit, offset)


def list_submissions(status=None, limit=DEFAULT_LIMIT, offset=0):
    """Every submission, newest first, optionally filtered by status."""
    _check_status(status)
    query = SubmittedRecipe.query
    if status:
        query = query.filter_by(status=status)
    return _page(query, limit, offset)


def list_pending_submissions(limit=DEFAULT_LIMIT, offset=0):
    """The review queue, oldest first."""
    return _page(SubmittedRecipe.query.filter_by(status='pending'), limit, offset, oldest_first=True)


def pending_count():
    return prepare("SELECT COUNT(*) AS count FROM user_submitted_recipes WHERE status = 'pending'").get()['count']


# ============================================
# REVIEW
# ============================================

def approve_submission(submission_id, admin_id, notes=None):
    """
    Turn a pending submission into a recipe.

    The recipe insert and the status change commit together.

    Returns:
        The new recipe's id

    Raises:
        ApiError: 404 when the submission is missing or no longer pending
    """
    def _approve(session):
        submission = SubmittedRecipe.query.filter_by(id=submission_id, status='pending').first()
        if submission is None:
            raise ApiError(404, NOT_REVIEWABLE)

        recipe = insert_recipe(
            session,
            {
                'title': submission.title,
                'source': submission.source,
                'instructions': submission.instructions,
                'servings': submission.servings,
            },
            ingredients=[{'name': i.name, 'quantity': i.quantity, 'unit': i.unit} for i in submission.ingredients],
            tags=[t.tag_name for t in submission.tags],
        )
        timestamp = now()
        submission.status = 'approved'
        submission.admin_notes = notes.strip() if isinstance(notes, str) and notes.strip() else None
        submission.reviewed_by = admin_id
        submission.reviewed_at = timestamp
        submission.updated_at = timestamp
        return recipe.id

    recipe_id = transaction(_approve)
    logger.info('Approved submission %s as recipe %s', submission_id, recipe_id)
    return recipe_id


def reject_submission(submission_id, admin_id, notes):
    if not isinstance(notes, str) or not notes.strip():
        raise ApiError(400, 'Rejection reason is required')

    timestamp = now()
    result = prepare(
        "UPDATE user_submitted_recipes "
        "SET status = 'rejected', admin_notes = ?, reviewed_by = ?, reviewed_at = ?, updated_at = ? "
        "WHERE id = ? AND status = 'pending'"
    ).run(notes.strip(), admin_id, timestamp, timestamp, submission_id)
    db.session.commit()

    if result.changes == 0:
        raise ApiError(404, NOT_REVIEWABLE)
    logger.info('Rejected submission %s', submission_id)
