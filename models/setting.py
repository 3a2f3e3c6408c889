"""
Setting Model

Key-value storage for settings an admin changes at runtime.
"""

from .base import db, now


class Setting(db.Model):
    """One setting; secret values are stored encrypted."""
    __tablename__ = 'settings'

    setting_key = db.Column(db.String(100), primary_key=True)
    setting_value = db.Column(db.Text)
    encrypted = db.Column(db.Boolean, nullable=False, default=False)
    updated_at = db.Column(db.Integer, nullable=False, default=now, onupdate=now)
    updated_by = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
