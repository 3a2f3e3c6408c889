"""
Submitted Recipe Models

Recipes sent in by viewers. A submission keeps the Recipe shape until an
admin approves it (a real recipe is created) or rejects it with a note.
"""

from .base import db, now


class SubmittedRecipe(db.Model):
    """User submission with a pending/approved/rejected review status."""
    __tablename__ = 'user_submitted_recipes'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    source = db.Column(db.String(255))
    instructions = db.Column(db.Text)
    servings = db.Column(db.Integer)
    status = db.Column(db.String(20), nullable=False, default='pending', index=True)
    admin_notes = db.Column(db.Text)
    reviewed_by = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    reviewed_at = db.Column(db.Integer)
    created_at = db.Column(db.Integer, nullable=False, default=now)
    updated_at = db.Column(db.Integer, nullable=False, default=now, onupdate=now)

    submitter = db.relationship('User', foreign_keys=[user_id])
    reviewer = db.relationship('User', foreign_keys=[reviewed_by])
    ingredients = db.relationship(
        'SubmittedIngredient', lazy=True,
        order_by='SubmittedIngredient.position', cascade='all, delete-orphan'
    )
    tags = db.relationship('SubmittedTag', lazy=True, order_by='SubmittedTag.id', cascade='all, delete-orphan')


class SubmittedIngredient(db.Model):
    __tablename__ = 'user_submitted_ingredients'

    id = db.Column(db.Integer, primary_key=True)
    submitted_recipe_id = db.Column(
        db.Integer, db.ForeignKey('user_submitted_recipes.id', ondelete='CASCADE'), nullable=False, index=True
    )
    name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.String(50))
    unit = db.Column(db.String(50))
    position = db.Column(db.Integer, nullable=False)


class SubmittedTag(db.Model):
    __tablename__ = 'user_submitted_tags'

    id = db.Column(db.Integer, primary_key=True)
    submitted_recipe_id = db.Column(
        db.Integer, db.ForeignKey('user_submitted_recipes.id', ondelete='CASCADE'), nullable=False, index=True
    )
    tag_name = db.Column(db.String(100), nullable=False)
