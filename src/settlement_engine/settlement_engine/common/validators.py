from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from ..core.exceptions import InvalidArgument


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not str(value).strip():
        raise InvalidArgument(f"{field_name} is required")
    return str(value).strip()


def require_progress(value: Any, field_name: str = "progress") -> int:
    try:
        progress = int(value)
    except (TypeError, ValueError):
        raise InvalidArgument(f"{field_name} must be a number from 0 to 100")
    if isinstance(value, float) and value != progress:
        raise InvalidArgument(f"{field_name} must be a whole number")
    if progress < 0 or progress > 100:
        raise InvalidArgument(f"{field_name} must be a number from 0 to 100")
    return progress


def require_hours(value: Any, field_name: str) -> Decimal:
    """Hours as a non-negative Decimal."""
    if isinstance(value, bool):
        raise InvalidArgument(f"{field_name} is not a number")
    try:
        hours = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidArgument(f"{field_name} is not a number")
    if not hours.is_finite():
        raise InvalidArgument(f"{field_name} is not a number")
    if hours < 0:
        raise InvalidArgument(f"{field_name} must be >= 0")
    return hours


def optional_hours(value: Any, field_name: str) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    return require_hours(value, field_name)


def clean_url_list(value: Any, field_name: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        raise InvalidArgument(f"{field_name} must be a list of URLs")
    urls: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise InvalidArgument(f"{field_name} must contain only strings")
        if item.strip():
            urls.append(item.strip())
    return urls
