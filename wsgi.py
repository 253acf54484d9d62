"""
WSGI entry point, also used by the flask CLI.

Usage:
    gunicorn wsgi:app
    flask --app wsgi db init        # once, then db migrate / db upgrade
    flask --app wsgi expire-invites
    flask --app wsgi notify-due-dates
"""

from app import create_app

app = create_app()
