"""
Pending Recipe Models

Staging tables for recipes extracted from uploaded files or imported
URLs. A pending recipe mirrors the Recipe/Ingredient/Tag shape and keeps
the raw text and parsed JSON it came from until an admin approves it.
"""

import json

from .base import db, now


class UploadedFile(db.Model):
    """Tracks an uploaded PDF/text file, or a URL import (file_path holds the URL)."""
    __tablename__ = 'uploaded_files'

    id = db.Column(db.Integer, primary_key=True)
    filename = db.Column(db.String(255), nullable=False)
    original_name = db.Column(db.String(500), nullable=False)
    file_path = db.Column(db.String(1000), nullable=False)
    file_size = db.Column(db.Integer, nullable=False, default=0)
    mime_type = db.Column(db.String(100), nullable=False)
    uploaded_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    uploaded_at = db.Column(db.Integer, nullable=False, default=now)
    processed = db.Column(db.Boolean, nullable=False, default=False)


class PendingRecipe(db.Model):
    """Recipe awaiting admin approval."""
    __tablename__ = 'pending_recipes'

    id = db.Column(db.Integer, primary_key=True)
    file_id = db.Column(db.Integer, db.ForeignKey('uploaded_files.id', ondelete='CASCADE'), nullable=False, index=True)
    title = db.Column(db.String(255))
    source = db.Column(db.String(255))
    category = db.Column(db.String(255))
    description = db.Column(db.Text)
    instructions = db.Column(db.Text)
    raw_text = db.Column(db.Text)
    parsed_data = db.Column(db.Text)  # JSON
    image_filename = db.Column(db.String(255))
    image_original_name = db.Column(db.String(500))
    image_file_path = db.Column(db.String(1000))
    image_file_size = db.Column(db.Integer)
    image_mime_type = db.Column(db.String(100))
    created_at = db.Column(db.Integer, nullable=False, default=now)

    file = db.relationship('UploadedFile', backref=db.backref('pending_recipes', cascade='all, delete-orphan'))
    ingredients = db.relationship(
        'PendingIngredient', lazy=True,
        order_by='PendingIngredient.position', cascade='all, delete-orphan'
    )
    tags = db.relationship('PendingTag', lazy=True, order_by='PendingTag.id', cascade='all, delete-orphan')

    @property
    def parsed(self):
        """parsed_data decoded; the raw string when it is not valid JSON."""
        if not self.parsed_data:
            return None
        try:
            return json.loads(self.parsed_data)
        except ValueError:
            return self.parsed_data


class PendingIngredient(db.Model):
    __tablename__ = 'pending_ingredients'

    id = db.Column(db.Integer, primary_key=True)
    pending_recipe_id = db.Column(db.Integer, db.ForeignKey('pending_recipes.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.String(50))
    unit = db.Column(db.String(50))
    position = db.Column(db.Integer, nullable=False)


class PendingTag(db.Model):
    __tablename__ = 'pending_tags'

    id = db.Column(db.Integer, primary_key=True)
    pending_recipe_id = db.Column(db.Integer, db.ForeignKey('pending_recipes.id', ondelete='CASCADE'), nullable=False, index=True)
    tag_name = db.Column(db.String(100), nullable=False)
