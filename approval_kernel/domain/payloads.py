"""
Payload rules per request kind.

The engine treats a payload as an opaque JSON object except for the few
business rules checked here on create and update.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable

from approval_kernel.domain.workflow import RequestKind
from approval_kernel.exceptions import PayloadValidationError


def _number(payload: dict[str, Any], key: str) -> float | None:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise PayloadValidationError(key, "must be a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise PayloadValidationError(key, "must be a number") from None


def _date(payload: dict[str, Any], key: str) -> date | None:
    value = payload.get(key)
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise PayloadValidationError(key, "must be an ISO date") from None


def validate_manpower(payload: dict[str, Any]) -> None:
    salary_min = _number(payload, "salary_range_min")
    salary_max = _number(payload, "salary_range_max")
    if salary_min is not None and salary_max is not None and salary_min > salary_max:
        raise PayloadValidationError(
            "salary_range_min", "minimum salary cannot be greater than maximum salary"
        )
    headcount = _number(payload, "headcount")
    if headcount is not None and headcount < 1:
        raise PayloadValidationError("headcount", "must be at least 1")


def validate_business_trip(payload: dict[str, Any]) -> None:
    start = _date(payload, "start_date")
    end = _date(payload, "end_date")
    if start is not None and end is not None and start > end:
        raise PayloadValidationError("end_date", "end date cannot precede start date")


_VALIDATORS: dict[RequestKind, Callable[[dict[str, Any]], None]] = {
    RequestKind.MANPOWER: validate_manpower,
    RequestKind.BUSINESS_TRIP: validate_business_trip,
}


def validate_payload(kind: RequestKind, payload: Any) -> None:
    """
    Raises:
        PayloadValidationError: if ``payload`` is not a mapping or breaks a rule.
    """
    if not isinstance(payload, dict):
        raise PayloadValidationError("payload", "must be a JSON object")
    _VALIDATORS[RequestKind(kind)](payload)
