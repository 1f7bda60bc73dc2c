"""Typed failures raised while resolving and authorizing store identifiers.

Every error is an ``HTTPException`` so routers and dependencies can let it
propagate unchanged; FastAPI renders ``detail`` as ``{"code", "message", ...}``.
Callers that need to react to a specific outcome catch the concrete class,
or one of the four caller-facing kinds: ``BadRequest``, ``NotFound``,
``Forbidden`` and ``MappingConflict``.
"""
from typing import Any

from fastapi import HTTPException, status


class StoreIdError(HTTPException):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "STORE_ID_ERROR"

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(status_code=self.status_code, detail={"code": self.code, "message": message, **context})

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class BadRequest(StoreIdError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "BAD_REQUEST"


class InvalidFormat(BadRequest):
    code = "INVALID_FORMAT"


class InvalidStoreIdFormat(BadRequest):
    code = "INVALID_STORE_ID_FORMAT"


class MissingStoreId(BadRequest):
    code = "MISSING_STORE_ID"


class NotFound(StoreIdError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class TenantNotFound(NotFound):
    code = "TENANT_NOT_FOUND"


class NoExternalMapping(NotFound):
    code = "NO_EXTERNAL_MAPPING"


class NoCanonicalMapping(NotFound):
    code = "NO_CANONICAL_MAPPING"


class Forbidden(StoreIdError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "STORE_ACCESS_DENIED"


class InsufficientRole(Forbidden):
    code = "INSUFFICIENT_ROLE"


class MappingConflict(StoreIdError):
    status_code = status.HTTP_409_CONFLICT
    code = "MAPPING_CONFLICT"


class AmbiguousMapping(StoreIdError):
    """More than one tenant claims the same external id; the unique index should make this impossible."""

    code = "AMBIGUOUS_MAPPING"
