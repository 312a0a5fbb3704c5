"""
OKR Tracker
SQLAlchemy extension instance shared by every model module.

Usage:
    from okr_tracker.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
