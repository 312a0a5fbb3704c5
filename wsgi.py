"""
WSGI / Flask-Migrate entry point.

Usage:
    gunicorn wsgi:app
    flask --app wsgi db upgrade
    flask --app wsgi recompute-all
"""

from okr_tracker import create_app

app = create_app()
