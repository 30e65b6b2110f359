"""Normalization of Restorepoint response bodies into one envelope.

The remote API answers with three structurally different JSON shapes. Instead
of sniffing keys ad hoc, ``decode_body`` classifies a body into exactly one of
the ``PaginatedBody``, ``ErrorBody`` or ``PlainBody`` variants, and
``to_api_response`` turns the variant into an ``ApiResponse``.

Classification rules (checked in order):
    - any of ``offset``/``limit``/``total`` present -> paginated
    - ``message`` or ``errors`` present -> error body
    - otherwise -> plain
"""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

PAGINATION_KEYS = ("offset", "limit", "total")
ERROR_KEYS = ("message", "errors")


class PaginationMetadata(BaseModel):
    """Pagination fields reported by list endpoints."""

    offset: int | None = None
    limit: int | None = None
    total: int | None = None


class ApiResponse(BaseModel):
    """Normalized envelope returned by every ``ApiClient`` call."""

    success: bool
    data: Any = None
    message: str | None = None
    errors: dict[str, Any] | None = None
    metadata: PaginationMetadata | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible dict without unset fields."""
        return self.model_dump(mode="json", exclude_none=True)


@dataclass(frozen=True, slots=True)
class PaginatedBody:
    """A list page: ``{offset, limit, total, data: [...]}``."""

    data: Any
    metadata: PaginationMetadata


@dataclass(frozen=True, slots=True)
class ErrorBody:
    """An error payload: ``{message, errors: {...}}``."""

    message: str | None
    errors: dict[str, Any] | None


@dataclass(frozen=True, slots=True)
class PlainBody:
    """Any other payload, including non-object JSON values and empty bodies.

    ``structured`` is True when the payload was a JSON object or array.
    """

    data: Any
    structured: bool


type ResponseBody = PaginatedBody | ErrorBody | PlainBody


def _as_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value)
    return None


def _as_message(value: object) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _as_errors(value: object) -> dict[str, Any] | None:
    if value is None:
        return None
    if isinstance(value, dict):
        return value
    return {"detail": value}


def decode_body(body: object) -> ResponseBody:
    """Classify a decoded JSON body into exactly one response variant."""
    if isinstance(body, dict):
        if any(key in body for key in PAGINATION_KEYS):
            metadata = PaginationMetadata(
                offset=_as_int(body.get("offset")),
                limit=_as_int(body.get("limit")),
                total=_as_int(body.get("total")),
            )
            data = body["data"] if body.get("data") is not None else body
            return PaginatedBody(data=data, metadata=metadata)
        if any(key in body for key in ERROR_KEYS):
            return ErrorBody(message=_as_message(body.get("message")), errors=_as_errors(body.get("errors")))
        return PlainBody(data=body, structured=True)
    if isinstance(body, list):
        return PlainBody(data=body, structured=True)
    return PlainBody(data=body, structured=False)


def to_api_response(body: ResponseBody, status_code: int) -> ApiResponse:
    """Build the envelope for a decoded body received with ``status_code``."""
    status_ok = 200 <= status_code < 300  # noqa: PLR2004
    match body:
        case PaginatedBody(data=data, metadata=metadata):
            return ApiResponse(success=status_ok, data=data, metadata=metadata)
        case ErrorBody(message=message, errors=errors):
            return ApiResponse(success=False, message=message, errors=errors)
        case PlainBody(data=data, structured=True):
            return ApiResponse(success=status_ok, data=data)
        case PlainBody(data=data):
            return ApiResponse(success=True, data=data)


def transform_response(body: object, status_code: int) -> ApiResponse:
    """Decode ``body`` and return its normalized envelope."""
    return to_api_response(decode_body(body), status_code)


__all__ = [
    "ApiResponse",
    "ErrorBody",
    "PaginatedBody",
    "PaginationMetadata",
    "PlainBody",
    "ResponseBody",
    "decode_body",
    "to_api_response",
    "transform_response",
]
