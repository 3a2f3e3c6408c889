"""
Services Package

Business logic modules for the recipe application.
"""

from . import (
    accounts, ai, images, pdf_parser, pending, recipes, saved, settings, submissions, url_scraper
)

__all__ = [
    'accounts',
    'ai',
    'images',
    'pdf_parser',
    'pending',
    'recipes',
    'saved',
    'settings',
    'submissions',
    'url_scraper',
]
