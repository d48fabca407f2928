"""
Status-code mapper translating internal outcomes into HTTP responses

The mapper is built from a status table, which assigns every failure kind
an HTTP status code, a stable error code and a default message. The table
is checked once on construction: it must be total over the enumeration of
failure kinds, it must not map failures to non-error status codes and
error codes must be unique. Any problem raises ``ConfigurationError``,
so that an incomplete table stops the startup instead of failing later.
"""

from typing import Any, Dict, Mapping, NamedTuple, Optional, Tuple, Union

from . import err
from .outcomes import FailureKind, SuccessKind
from .schemas import ErrorPayload


class StatusEntry(NamedTuple):
    status: int
    code: str
    message: str


DEFAULT_STATUS_TABLE: Dict[FailureKind, StatusEntry] = {
    FailureKind.INVALID_INPUT: StatusEntry(400, "400_INVALID_INPUT", "The request contains invalid input."),
    FailureKind.UNAUTHORIZED: StatusEntry(401, "401_UNAUTHORIZED", "Valid authentication is required."),
    FailureKind.FORBIDDEN: StatusEntry(403, "403_FORBIDDEN", "The client lacks the permission to do this."),
    FailureKind.NOT_FOUND: StatusEntry(404, "404_NOT_FOUND", "The requested resource was not found."),
    FailureKind.UNSUPPORTED_VERSION: StatusEntry(
        404, "404_UNSUPPORTED_VERSION", "The requested API version is not supported."
    ),
    FailureKind.METHOD_NOT_ALLOWED: StatusEntry(
        405, "405_METHOD_NOT_ALLOWED", "The method is not allowed for this resource."
    ),
    FailureKind.CONFLICT: StatusEntry(409, "409_CONFLICT", "The request conflicts with the current state."),
    FailureKind.PRECONDITION_FAILED: StatusEntry(
        412, "412_PRECONDITION_FAILED", "A precondition of the request was not met."
    ),
    FailureKind.RATE_LIMITED: StatusEntry(429, "429_RATE_LIMITED", "Too many requests. Retry later."),
    FailureKind.SERVER_FAILURE: StatusEntry(
        500, "500_SERVER_FAILURE", "Unexpected server error. The request wasn't completed successfully."
    )
}


class Outcome(NamedTuple):
    """
    Result of handling a request, either a success with a value or a failure
    """

    kind: Union[SuccessKind, FailureKind]
    value: Any = None
    message: Optional[str] = None
    details: Optional[str] = None

    @classmethod
    def success(cls, value: Any = None, kind: SuccessKind = SuccessKind.OK) -> "Outcome":
        return cls(kind=kind, value=value)

    @classmethod
    def failure(cls, kind: FailureKind, message: Optional[str] = None, details: Optional[str] = None) -> "Outcome":
        return cls(kind=kind, message=message, details=details)

    @property
    def failed(self) -> bool:
        return isinstance(self.kind, FailureKind)


class StatusMapper:
    """
    Total mapping from outcome kinds to HTTP status codes and error payloads
    """

    def __init__(self, table: Optional[Mapping[FailureKind, StatusEntry]] = None):
        self._table: Dict[FailureKind, StatusEntry] = dict(DEFAULT_STATUS_TABLE if table is None else table)
        self._by_status: Dict[int, FailureKind] = {}

        missing = [kind.name for kind in FailureKind if kind not in self._table]
        if missing:
            raise err.ConfigurationError(f"Failure kinds without status mapping: {', '.join(missing)}")

        codes = set()
        for kind, entry in self._table.items():
            if not isinstance(kind, FailureKind):
                raise err.ConfigurationError(f"Unknown failure kind {kind!r} in the status table")
            if not 400 <= entry.status <= 599:
                raise err.ConfigurationError(f"{kind.name} maps to non-error status {entry.status}")
            if not entry.code:
                raise err.ConfigurationError(f"{kind.name} maps to an empty error code")
            if entry.code in codes:
                raise err.ConfigurationError(f"Error code {entry.code!r} is not unique")
            codes.add(entry.code)
            self._by_status.setdefault(entry.status, kind)

    def entry(self, kind: FailureKind) -> StatusEntry:
        return self._table[kind]

    def status_of(self, kind: Union[SuccessKind, FailureKind]) -> int:
        if isinstance(kind, SuccessKind):
            return kind.value
        return self._table[kind].status

    def kind_for_status(self, status_code: int) -> FailureKind:
        """
        Return the failure kind registered first for the status code (or a generic fallback)
        """

        if status_code in self._by_status:
            return self._by_status[status_code]
        if 400 <= status_code < 500:
            return FailureKind.INVALID_INPUT
        return FailureKind.SERVER_FAILURE

    def payload(
            self,
            kind: FailureKind,
            message: Optional[str] = None,
            details: Optional[str] = None
    ) -> ErrorPayload:
        entry = self._table[kind]
        return ErrorPayload(code=entry.code, message=message or entry.message, details=details)

    def map(self, outcome: Outcome) -> Tuple[int, Optional[ErrorPayload]]:
        """
        Map an outcome to its HTTP status code and, for failures, its error payload
        """

        if not outcome.failed:
            return self.status_of(outcome.kind), None
        return self.status_of(outcome.kind), self.payload(outcome.kind, outcome.message, outcome.details)

    def map_exception(self, exc: err.OutcomeError) -> Tuple[int, ErrorPayload]:
        return self.map(Outcome.failure(exc.kind, exc.message, exc.details))
