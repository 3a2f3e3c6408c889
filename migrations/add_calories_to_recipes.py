"""Add servings, estimated_calories and calories_confidence to recipes."""

import sqlalchemy as sa
from sqlalchemy.dialects import mysql

from . import add_missing_columns


def columns(dialect):
    if dialect == 'mysql':
        confidence = mysql.ENUM('low', 'medium', 'high')
    else:
        confidence = sa.String(length=10)
    return [
        sa.Column('servings', sa.Integer(), nullable=True),
        sa.Column('estimated_calories', sa.Integer(), nullable=True),
        sa.Column('calories_confidence', confidence, nullable=True),
    ]


def upgrade(engine):
    return add_missing_columns(engine, 'recipes', columns(engine.dialect.name))
