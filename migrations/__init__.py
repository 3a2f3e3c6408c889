"""
Schema Migrations

Idempotent upgrades for databases created before a column existed.
Each migration module exposes upgrade(engine) and returns the names of
the columns it added; running it again adds nothing.
"""

import logging

from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import inspect

logger = logging.getLogger(__name__)


class MigrationError(Exception):
    pass


def existing_columns(engine, table):
    inspector = inspect(engine)
    if not inspector.has_table(table):
        raise MigrationError(f'Table {table} does not exist. Run "flask init-db" first.')
    return {column['name'] for column in inspector.get_columns(table)}


def add_missing_columns(engine, table, columns):
    """
    Add each sqlalchemy Column the table lacks, using alembic operations.

    Returns:
        list of the column names added
    """
    present = existing_columns(engine, table)
    added = []
    with engine.begin() as conn:
        op = Operations(MigrationContext.configure(conn))
        for column in columns:
            if column.name in present:
                logger.info('%s.%s already exists', table, column.name)
                continue
            op.add_column(table, column)
            logger.info('Added %s.%s', table, column.name)
            added.append(column.name)
    return added
