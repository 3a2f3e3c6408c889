"""Add category and description to pending_recipes."""

import sqlalchemy as sa

from . import add_missing_columns


def columns():
    return [
        sa.Column('category', sa.String(length=255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
    ]


def upgrade(engine):
    return add_missing_columns(engine, 'pending_recipes', columns())
