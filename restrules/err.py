"""
restrules project-wide exception classes
"""

from typing import Optional

from .outcomes import FailureKind


class RestRulesException(Exception):
    """
    Base class for all project-wide exceptions
    """


class ConfigurationError(RestRulesException):
    """
    Exception raised when the static configuration is unusable

    Route rules, version registrations and the status table are built
    once during startup. Any problem found there is a configuration
    error and must stop the startup, since it would otherwise surface
    only later while handling some unlucky request.
    """


class OutcomeError(RestRulesException):
    """
    Failure outcome raised by the framework-independent components

    The HTTP layer maps the ``kind`` of such an exception to a status
    code and a structured error payload using the status table.
    """

    kind: FailureKind = FailureKind.SERVER_FAILURE

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidInput(OutcomeError):
    """
    Exception when some client-supplied value can't be accepted
    """

    kind = FailureKind.INVALID_INPUT


class UnsupportedVersion(OutcomeError):
    """
    Exception when no handler has been registered for the requested major version
    """

    kind = FailureKind.UNSUPPORTED_VERSION
