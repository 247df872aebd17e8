from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from flask import Flask, jsonify, request

from ..core.exceptions import (
    ConcurrencyError,
    ConfigurationError,
    DomainError,
    InvalidTransition,
    NotFound,
    SettlementFailure,
    UpstreamUnavailable,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_CODES = (
    (ValidationError, 400),
    (NotFound, 404),
    (InvalidTransition, 409),
    (ConcurrencyError, 409),
    (UpstreamUnavailable, 503),
    (SettlementFailure, 502),
    (ConfigurationError, 500),
)


def status_for(error: DomainError) -> int:
    for cls, code in _STATUS_CODES:
        if isinstance(error, cls):
            return code
    return 400


def to_jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    return value


def json_body() -> dict:
    return request.get_json(silent=True) or {}


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def _domain_error(e: DomainError):
        code = status_for(e)
        if code >= 500:
            logger.error("%s on %s: %s", type(e).__name__, request.path, e)
        return jsonify({"error": type(e).__name__, "message": str(e)}), code
