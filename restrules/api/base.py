"""
restrules REST API base library

This module contains the exception classes raised by path operations and
the exception handlers turning any failure into the structured error
payload. The status code and the error code of every failure are looked
up in the status table of the application (see ``restrules.status``).
"""

import logging
import secrets
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import err, status
from ..outcomes import FailureKind


logger = logging.getLogger(__name__)

runtime_key = secrets.token_hex(32)

_default_mapper = status.StatusMapper()


class APIWithoutValidationError(FastAPI):
    """
    FastAPI class that excludes 422 validation error responses in OpenAPI schema

    Request validation errors are reported as `400` with the shared
    error payload instead, which is already part of the responses.
    """

    def openapi(self) -> Dict[str, Any]:
        if not self.openapi_schema:
            self.openapi_schema = get_openapi(
                title=self.title,
                version=self.version,
                openapi_version=self.openapi_version,
                description=self.description,
                license_info=self.license_info,
                routes=self.routes,
                tags=self.openapi_tags,
                servers=self.servers,
            )
            for path, operations in self.openapi_schema.get("paths", {}).items():
                for method, metadata in operations.items():
                    metadata.get("responses", {}).pop("422", None)
        return self.openapi_schema


def get_status_mapper(request: Request) -> status.StatusMapper:
    return getattr(request.app.state, "status_mapper", None) or _default_mapper


def make_error_response(
        request: Request,
        kind: FailureKind,
        message: Optional[str] = None,
        details: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None
) -> JSONResponse:
    """
    Create the JSON response carrying the error payload of the failure kind
    """

    mapper = get_status_mapper(request)
    status_code, payload = mapper.map(status.Outcome.failure(kind, message, details))
    response = JSONResponse(jsonable_encoder(payload), status_code=status_code, headers=headers)
    response.headers["Cache-Control"] = "no-store"
    return response


async def handle_generic_exception(request: Request, _: Exception):
    logger.exception("Unhandled exception caught in base exception handler!")
    return make_error_response(request, FailureKind.SERVER_FAILURE)


async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    msgs = "\n".join(["\t" + error["msg"] for error in exc.errors()])
    message = f"Failed to process the request:\n{msgs}"
    return make_error_response(request, FailureKind.INVALID_INPUT, message, str(exc.errors()))


async def handle_outcome_error(request: Request, exc: err.OutcomeError):
    logger.debug(
        f"{type(exc).__name__}: {exc.message} @ '{request.method} "
        f"{request.url.path}' (details: {exc.details})"
    )
    return make_error_response(request, exc.kind, exc.message, exc.details)


class NotModified(StarletteHTTPException):
    """
    Exception when the client already has the most recent version of a resource
    """

    def __init__(self, etag: Optional[str] = None):
        super().__init__(status_code=304, detail="", headers={"ETag": etag} if etag else None)


class APIException(HTTPException):
    """
    Base class for any kind of generic API exception

    The `message` field must be user-friendly and not too informative,
    while the `detail` may carry technical information for debugging.
    """

    def __init__(
            self,
            kind: FailureKind,
            message: Optional[str] = None,
            detail: Optional[str] = None,
            headers: Optional[Dict[str, str]] = None
    ):
        super().__init__(status_code=_default_mapper.status_of(kind), detail=detail, headers=headers)
        self.kind = kind
        self.message = message
        self.details = detail

    @classmethod
    async def handle(cls, request: Request, exc: StarletteHTTPException) -> Response:
        """
        Handle exceptions in a generic way to produce error payloads
        """

        headers = getattr(exc, "headers", None)
        if isinstance(exc, NotModified):
            return Response(status_code=304, headers=headers)

        if isinstance(exc, APIException):
            kind = exc.kind
            message = exc.message
            details = exc.details
        else:
            kind = get_status_mapper(request).kind_for_status(exc.status_code)
            message = None
            details = str(exc.detail) if exc.detail else None

        logger.debug(
            f"{type(exc).__name__}: {message or kind.value} @ '{request.method} "
            f"{request.url.path}' (details: {details})"
        )
        return make_error_response(request, kind, message, details, headers)


class BadRequest(APIException):
    """
    Exception when the user probably messed something up
    """

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(FailureKind.INVALID_INPUT, message, detail)


class Unauthorized(APIException):
    """
    Exception when a request is not (properly) authenticated
    """

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(FailureKind.UNAUTHORIZED, message, detail, {"WWW-Authenticate": "Bearer"})


class Forbidden(APIException):
    """
    Exception when the authenticated client lacks the required role
    """

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(FailureKind.FORBIDDEN, message, detail)


class NotFound(APIException):
    """
    Exception when a requested resource was not found in the system
    """

    def __init__(self, resource: str, detail: Optional[str] = None):
        super().__init__(FailureKind.NOT_FOUND, f"{str(resource)!r} was not found.", detail)


class Conflict(APIException):
    """
    Exception for invalid states, concurrent manipulations or other data clashes
    """

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(FailureKind.CONFLICT, message, detail)


class PreconditionFailed(APIException):
    """
    Exception when a conditional request doesn't match the current resource state
    """

    def __init__(self, resource: str, detail: Optional[str] = None):
        super().__init__(
            FailureKind.PRECONDITION_FAILED,
            f"{str(resource)!r} has been modified in the meantime.",
            detail
        )


class RateLimitExceeded(APIException):
    """
    Exception when a client exceeded its number of requests in the current window
    """

    def __init__(self, headers: Dict[str, str], detail: Optional[str] = None):
        super().__init__(FailureKind.RATE_LIMITED, None, detail, headers)


class InternalServerException(APIException):
    """
    Exception for problems within the server implementation
    """

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(FailureKind.SERVER_FAILURE, message, detail)
