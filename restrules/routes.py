"""
Registry of the route rules served by the API

Route rules are registered once during startup. Every pattern is checked
by the naming validator on registration, so that a badly named endpoint
is a configuration error stopping the startup. After ``freeze`` has been
called, the registry is immutable and can be shared by all requests.
"""

import logging
from typing import Dict, FrozenSet, Iterable, Iterator, List, NamedTuple, Optional, Tuple

from . import err, naming
from .misc.logger import enforce_logger
from .schemas import config


HTTP_METHODS = frozenset({"GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"})


class RouteRule(NamedTuple):
    pattern: str
    methods: FrozenSet[str]
    segments: Tuple[naming.Segment, ...]

    def matches(self, path: str) -> bool:
        """
        Check whether a concrete request path (without version prefix) matches the pattern
        """

        parts = [p for p in path.strip("/").split("/") if p != ""]
        if len(parts) != len(self.segments):
            return False
        for part, segment in zip(parts, self.segments):
            if segment.is_placeholder:
                if segment.placeholder_type == "int" and not part.isdigit():
                    return False
            elif part != segment.literal:
                return False
        return True


class RouteRegistry:
    """
    Collection of route rules validated against the naming conventions
    """

    def __init__(self, conf: Optional[config.NamingConfig] = None, logger: Optional[logging.Logger] = None):
        self._conf = conf or config.NamingConfig()
        self._rules: Dict[str, RouteRule] = {}
        self._frozen = False
        self._logger = enforce_logger(logger, __name__)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, pattern: str, methods: Iterable[str]) -> RouteRule:
        """
        Register (or extend the allowed methods of) a route rule

        :raises ConfigurationError: when the registry is frozen, a method is
            unknown or the pattern violates the naming conventions
        """

        if self._frozen:
            raise err.ConfigurationError(f"Can't register {pattern!r} after the route registry has been frozen")

        methods = frozenset(m.upper() for m in methods)
        unknown = methods - HTTP_METHODS
        if unknown:
            raise err.ConfigurationError(f"Unknown HTTP methods for {pattern!r}: {', '.join(sorted(unknown))}")

        report = naming.validate_path(pattern, self._conf)
        if not report.valid:
            raise err.ConfigurationError(
                f"Route {pattern!r} violates the naming conventions: {', '.join(report.rules)}"
            )

        if pattern in self._rules:
            methods = methods | self._rules[pattern].methods
        rule = RouteRule(pattern, methods, tuple(naming.split_path(pattern)))
        self._rules[pattern] = rule
        self._logger.debug(f"Registered route rule {pattern!r} for {', '.join(sorted(methods))}")
        return rule

    def freeze(self):
        self._frozen = True

    def match(self, path: str) -> Optional[RouteRule]:
        """
        Return the route rule matching the path (literal segments take precedence)
        """

        candidates = [rule for rule in self._rules.values() if rule.matches(path)]
        if not candidates:
            return None
        return min(candidates, key=lambda r: sum(s.is_placeholder for s in r.segments))

    def allowed_methods(self, path: str) -> FrozenSet[str]:
        rule = self.match(path)
        if rule is None:
            return frozenset()
        return rule.methods

    def reports(self) -> List[naming.NamingReport]:
        return [naming.validate_path(pattern, self._conf) for pattern in sorted(self._rules)]

    def __iter__(self) -> Iterator[RouteRule]:
        return iter(sorted(self._rules.values(), key=lambda r: r.pattern))

    def __len__(self) -> int:
        return len(self._rules)
