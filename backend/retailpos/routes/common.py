# Overview: Small request-parsing and response helpers shared by the API blueprints.

from __future__ import annotations

from datetime import datetime

from flask import jsonify, request

from ..services.result import ServiceResult
from ..validation import ValidationError, query_flag
from retailpos.time_utils import end_of_day, parse_iso_datetime


def json_body() -> dict:
    """Request JSON as a dict; a missing body is an empty dict."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


def arg_int(name: str, *, minimum: int | None = None) -> int | None:
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")
    if minimum is not None and value < minimum:
        raise ValidationError(f"{name} must be >= {minimum}")
    return value


def arg_flag(name: str) -> bool:
    return query_flag(request.args.get(name))


def arg_date_range(from_key: str = "date_from", to_key: str = "date_to") -> tuple[datetime | None, datetime | None]:
    """date_from / date_to query args; a bare date_to covers its whole day."""
    try:
        date_from = parse_iso_datetime(request.args.get(from_key))
        date_to = end_of_day(request.args.get(to_key))
    except ValueError:
        raise ValidationError(f"{from_key} and {to_key} must be ISO-8601 dates")
    return date_from, date_to


def page_args() -> tuple[int | None, int | None]:
    per_page = arg_int("per_page", minimum=1)
    if per_page is None:
        per_page = arg_int("page_size", minimum=1)
    return arg_int("page", minimum=1), per_page


def result_error(result: ServiceResult):
    return jsonify({"error": result.error, "code": result.code}), result.http_status
