"""
OKR Tracker
Blueprint registry and shared request helpers.
"""

from flask import g, request

from okr_tracker.core.exceptions import ValidationError
from okr_tracker.services.access_service import access_level_for
from okr_tracker.utils.errors import E, api_error


def paginate_query(query, default_limit=200, max_limit=1000):
    """Apply limit/offset pagination to a SQLAlchemy query.

    Query params:
        limit  — max items (default 200, capped at max_limit)
        offset — starting position (default 0)

    Returns:
        (items_list, total_count)
    """
    total = query.count()
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    items = query.limit(limit).offset(offset).all()
    return items, total


def json_body() -> dict:
    """Request JSON object; {} for an empty body, 400 for anything else."""
    data = request.get_json(silent=True)
    if data is None:
        if request.data:
            raise ValidationError("Request body must be valid JSON")
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def project_access_denied(project_id):
    """Return a 403 response if the request user cannot see `project_id`, else None."""
    if project_id is None:
        return None
    if access_level_for(g.current_user, project_id) is None:
        return api_error(
            E.FORBIDDEN, "No access to this project", details={"project_id": project_id},
        )
    return None
