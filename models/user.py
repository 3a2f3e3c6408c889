"""
User Models

Accounts, their display preferences and the recipes each account has
saved. Passwords are stored as werkzeug hashes.
"""

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from .base import db, now


class User(UserMixin, db.Model):
    """Login account with an admin or viewer role."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), unique=True, nullable=False, index=True)
    email = db.Column(db.String(255), index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default='viewer')
    created_at = db.Column(db.Integer, nullable=False, default=now)
    updated_at = db.Column(db.Integer, nullable=False, default=now, onupdate=now)

    preferences = db.relationship(
        'UserPreference', uselist=False, lazy=True, cascade='all, delete-orphan'
    )
    saved_recipes = db.relationship(
        'SavedRecipe', backref='user', lazy=True, cascade='all, delete-orphan'
    )

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.role == 'admin'

    @property
    def theme(self):
        return self.preferences.theme if self.preferences else 'light'


class UserPreference(db.Model):
    """Per-user display settings."""
    __tablename__ = 'user_preferences'

    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True)
    theme = db.Column(db.String(20), nullable=False, default='light')
    updated_at = db.Column(db.Integer, nullable=False, default=now, onupdate=now)


class SavedRecipe(db.Model):
    """A recipe bookmarked by a user."""
    __tablename__ = 'user_saved_recipes'
    __table_args__ = (db.UniqueConstraint('user_id', 'recipe_id', name='uq_user_saved_recipe'),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    recipe_id = db.Column(db.Integer, db.ForeignKey('recipes.id', ondelete='CASCADE'), nullable=False, index=True)
    saved_at = db.Column(db.Integer, nullable=False, default=now)

    recipe = db.relationship('Recipe', backref=db.backref('saves', cascade='all, delete-orphan', passive_deletes=True))
