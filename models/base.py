"""
Database Base Module

Creates the SQLAlchemy database instance that all models inherit from,
plus the thin adapter used for raw SQL: prepare/run/get/all statements and
callback transactions that behave the same on SQLite and MySQL.
This is separate to avoid circular imports.
"""

import logging
import re
import sqlite3
import time
from collections import namedtuple

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

# Create the SQLAlchemy instance
# This will be initialized with the Flask app in app.py
db = SQLAlchemy()

RunResult = namedtuple('RunResult', ['changes', 'last_insert_rowid'])

_PLACEHOLDER = re.compile(r'\?')


def now():
    """Current time as unix seconds (the timestamp format of every table)."""
    return int(time.time())


@event.listens_for(Engine, 'connect')
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Enable SQLite foreign key enforcement so cascades run."""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()


def _bind_params(sql, params):
    """Rewrite positional ? placeholders into named ones for text()."""
    names = iter(range(len(params)))
    bound_sql = _PLACEHOLDER.sub(lambda _: f':p{next(names)}', sql)
    return bound_sql, {f'p{i}': value for i, value in enumerate(params)}


class Statement:
    """
    A prepared SQL statement bound to a session.

    Exposes run/get/all helpers with ? placeholders so
    raw queries read the same regardless of engine:

        count = prepare('SELECT COUNT(*) AS count FROM recipes').get()['count']
    """

    def __init__(self, sql, session=None):
        self.sql = sql
        self.session = session or db.session

    def _execute(self, params):
        bound_sql, bound = _bind_params(self.sql, params)
        return self.session.execute(db.text(bound_sql), bound)

    def run(self, *params):
        """Execute a write statement; returns (changes, last_insert_rowid)."""
        result = self._execute(params)
        return RunResult(result.rowcount, getattr(result, 'lastrowid', None))

    def get(self, *params):
        """Return the first row as a dict, or None."""
        row = self._execute(params).mappings().first()
        return dict(row) if row is not None else None

    def all(self, *params):
        """Return every row as a list of dicts."""
        return [dict(row) for row in self._execute(params).mappings().all()]


def prepare(sql, session=None):
    return Statement(sql, session)


def transaction(callback, *args, **kwargs):
    """
    Run callback(session, *args) inside a transaction.

    Commits when the callback returns and rolls back (re-raising) when it
    raises. Returns whatever the callback returned.
    """
    session = db.session
    try:
        result = callback(session, *args, **kwargs)
        session.commit()
        return result
    except Exception:
        session.rollback()
        raise


def init_database():
    """Create all tables that do not exist yet. Safe to call repeatedly."""
    db.create_all()
    logger.info('Database initialized (%s)', db.engine.dialect.name)


def clear_database():
    """Delete all recipe data. Users are kept."""
    for table in ('recipe_tags', 'recipe_images', 'ingredients', 'tags', 'recipes'):
        prepare(f'DELETE FROM {table}').run()
    db.session.commit()
