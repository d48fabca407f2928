"""
Version identifiers and the version router

Only the major version selects a handler. Minor and patch versions are
informational: among several handlers registered for the same major
version, the highest one wins, while a request for a major version
without any handler fails. There's no fallback to an adjacent major
version, since that would silently change the behavior for clients.
"""

import re
import logging
import threading
from typing import Dict, Generic, Iterator, List, NamedTuple, Optional, Tuple, TypeVar, Union

from . import err


_VERSION = re.compile(r"^v?(?P<major>\d+)(?:\.(?P<minor>\d+)(?:\.(?P<patch>\d+))?)?$", re.IGNORECASE)
_ACCEPT_VENDOR = re.compile(r"application/vnd\.(?P<vendor>[a-z0-9.-]+?)\.v(?P<version>[\d.]+)\+json", re.IGNORECASE)
_PREFIX = re.compile(r"^/v(?P<major>\d+)(?=/|$)")

VERSION_HEADERS = ("Accept-Version", "X-API-Version")

HandlerType = TypeVar("HandlerType")


class VersionIdentifier(NamedTuple):
    major: int
    minor: int = 0
    patch: int = 0

    @classmethod
    def parse(cls, value: Union[str, int, "VersionIdentifier"]) -> "VersionIdentifier":
        """
        Parse ``"1"``, ``"v1"``, ``"1.5"``, ``"1.5.2"`` or an integer into a version identifier

        :raises InvalidInput: when the value is no valid version
        """

        if isinstance(value, VersionIdentifier):
            return value
        if isinstance(value, bool):
            raise err.InvalidInput(f"Invalid API version {value!r}")
        if isinstance(value, int):
            if value < 0:
                raise err.InvalidInput(f"Invalid API version {value!r}")
            return cls(value)
        match = _VERSION.match(str(value).strip())
        if match is None:
            raise err.InvalidInput(f"Invalid API version {value!r}", "Expected a version like '1', 'v1' or '1.5'")
        return cls(*(int(match.group(g) or 0) for g in ("major", "minor", "patch")))

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def prefix_pattern(version_format: str = "/v{}") -> re.Pattern:
    """
    Compile the pattern matching path prefixes built by the version format string
    """

    if version_format.count("{}") != 1:
        raise err.ConfigurationError("Version format string must contain '{}' once")
    before, after = version_format.split("{}")
    return re.compile("^" + re.escape(before) + r"(?P<major>\d+)" + re.escape(after) + "(?=/|$)")


def version_from_prefix(path: str, pattern: Optional[re.Pattern] = None) -> Optional[int]:
    """
    Return the major version of a ``/v{major}`` path prefix (or a custom prefix pattern), if any
    """

    match = (pattern or _PREFIX).match(path)
    if match is None:
        return None
    return int(match.group("major"))


def version_from_headers(headers, vendor: Optional[str] = None) -> Optional[VersionIdentifier]:
    """
    Negotiate the requested version from the ``Accept`` header or explicit version headers

    The ``Accept`` header is considered first, if it contains a vendor media
    type like ``application/vnd.restrules.v2+json``. If a vendor is given,
    media types of other vendors are ignored. The explicit headers
    ``Accept-Version`` and ``X-API-Version`` are checked afterwards.

    :raises InvalidInput: when a version header contains no valid version
    """

    accept = headers.get("Accept")
    if accept:
        for match in _ACCEPT_VENDOR.finditer(accept):
            if vendor is None or match.group("vendor").lower() == vendor.lower():
                return VersionIdentifier.parse(match.group("version"))

    for name in VERSION_HEADERS:
        value = headers.get(name)
        if value:
            return VersionIdentifier.parse(value)
    return None


class VersionRouter(Generic[HandlerType]):
    """
    Registry of versioned handlers selecting one by exact major version

    Handlers are registered during startup. After calling ``freeze``,
    the registry can't be modified anymore and is therefore safe to be
    used by concurrent requests without any further synchronization.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._handlers: Dict[int, List[Tuple[VersionIdentifier, HandlerType]]] = {}
        self._lock = threading.Lock()
        self._frozen = False
        self._logger = logger or logging.getLogger(__name__)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, version: Union[str, int, VersionIdentifier], handler: HandlerType) -> VersionIdentifier:
        identifier = VersionIdentifier.parse(version)
        with self._lock:
            if self._frozen:
                raise err.ConfigurationError("Can't register new versions after the router has been frozen")
            entries = self._handlers.setdefault(identifier.major, [])
            if any(v == identifier for v, _ in entries):
                raise err.ConfigurationError(f"Version {identifier} has already been registered")
            entries.append((identifier, handler))
            entries.sort(key=lambda e: e[0])
        self._logger.debug(f"Registered handler for API version {identifier}")
        return identifier

    def freeze(self):
        with self._lock:
            self._frozen = True

    @property
    def majors(self) -> List[int]:
        return sorted(self._handlers.keys())

    @property
    def latest(self) -> Optional[VersionIdentifier]:
        if not self._handlers:
            return None
        return self._handlers[max(self._handlers)][-1][0]

    def resolve(self, requested: Union[str, int, VersionIdentifier]) -> Tuple[VersionIdentifier, HandlerType]:
        """
        Return the highest registered version and handler whose major version matches exactly

        :raises InvalidInput: when the requested version can't be parsed
        :raises UnsupportedVersion: when no handler for the major version exists
        """

        identifier = VersionIdentifier.parse(requested)
        entries = self._handlers.get(identifier.major)
        if not entries:
            supported = ", ".join(f"v{m}" for m in self.majors) or "none"
            raise err.UnsupportedVersion(
                f"API version {identifier.major} is not supported.",
                f"requested={identifier}, supported={supported}"
            )
        return entries[-1]

    def select(self, requested: Union[str, int, VersionIdentifier]) -> HandlerType:
        return self.resolve(requested)[1]

    def __iter__(self) -> Iterator[Tuple[VersionIdentifier, HandlerType]]:
        for major in self.majors:
            yield self._handlers[major][-1]
