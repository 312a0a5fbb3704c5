"""Shared parsing and commit helpers used by services and blueprints.

parse_date_input:    date parsing, raises ValueError on bad input
parse_float / parse_int / parse_bool: lenient scalar parsing for CSV cells
db_commit_or_error:  single commit point for blueprints
"""
import logging
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from okr_tracker.models import db
from okr_tracker.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def parse_date_input(value):
    """Parse a date string, raising ValueError on bad input.

    Accepts YYYY-MM-DD, an ISO datetime (truncated to its date) or M/D/YYYY.
    Empty input returns None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(text, "%m/%d/%Y").date()
    except ValueError as exc:
        raise ValueError(
            f"Invalid date {text!r}. Use YYYY-MM-DD or M/D/YYYY."
        ) from exc


def parse_float(value):
    """Parse a float; None for empty or non-numeric input."""
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    text = str(value).strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        logger.debug("Could not parse float value %r", value)
        return None


def parse_int(value):
    """Parse an int; None for empty or non-numeric input."""
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        logger.debug("Could not parse integer value %r", value)
        return None


def parse_bool(value):
    """true/1/yes (any case) → True; other non-empty text → False; empty → None."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if not text:
        return None
    return text in ("true", "1", "yes")


# ── Database commit helper ───────────────────────────────────────────────────

def db_commit_or_error():
    """Commit the request's unit of work.

    Returns None on success, otherwise an ``api_error`` response after rolling
    back: 409 ``ERR_CONFLICT_DUPLICATE`` for constraint violations (a second
    assignment of the same user to a project, a duplicate role name), 500
    ``ERR_DATABASE`` for anything else.

    Usage::

        err = db_commit_or_error()
        if err:
            return err
    """
    try:
        db.session.commit()
        return None
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        return api_error(E.CONFLICT_DUPLICATE, "Duplicate or constraint violation")
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Database error on commit")
        return api_error(E.DATABASE, "Database error")
