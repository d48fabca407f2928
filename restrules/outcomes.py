"""
Enumerations of the internal outcome kinds of request handling

Success kinds carry their HTTP status code as value, since that mapping
is fixed. Failure kinds carry a stable name only; their status codes and
error codes are looked up in the status table (see ``restrules.status``).
"""

import enum


@enum.unique
class SuccessKind(enum.Enum):
    OK = 200
    CREATED = 201
    ACCEPTED = 202
    NO_CONTENT = 204


@enum.unique
class FailureKind(enum.Enum):
    INVALID_INPUT = "InvalidInput"
    UNAUTHORIZED = "Unauthorized"
    FORBIDDEN = "Forbidden"
    NOT_FOUND = "NotFound"
    UNSUPPORTED_VERSION = "UnsupportedVersion"
    METHOD_NOT_ALLOWED = "MethodNotAllowed"
    CONFLICT = "Conflict"
    PRECONDITION_FAILED = "PreconditionFailed"
    RATE_LIMITED = "RateLimited"
    SERVER_FAILURE = "ServerFailure"
