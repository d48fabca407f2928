"""
Naming convention validator for resource path templates

A path template is an ordered sequence of segments separated by slashes,
where every segment is either a literal (a noun naming a collection, e.g.
``users``) or a placeholder (e.g. ``{user_id}`` or ``{user_id:int}``).
Literal segments should be lowercase, hyphen-separated plural nouns,
placeholders should be lowercase identifiers with an optional known type.
Version prefixes such as ``v1`` are part of the routing and are skipped.

The validator is a pure function of the path and the naming configuration.
It reports every rule violated by the path instead of stopping at the first.
"""

import re
import enum
from typing import List, NamedTuple, Optional, Tuple

from .schemas import config


PLACEHOLDER_TYPES = ("int", "str", "uuid", "slug", "path")

_VERSION_SEGMENT = re.compile(r"^v\d+$")
_PLACEHOLDER = re.compile(r"^\{(?P<name>[^{}:]*)(?::(?P<type>[^{}]*))?\}$")
_PLACEHOLDER_NAME = re.compile(r"^[a-z][a-z0-9_]*$")
_WORDS = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z0-9]+")

IRREGULAR_PLURALS = frozenset({
    "children",
    "criteria",
    "feet",
    "geese",
    "indices",
    "matrices",
    "men",
    "mice",
    "people",
    "teeth",
    "vertices",
    "women"
})

UNCOUNTABLE_NOUNS = frozenset({
    "audio",
    "data",
    "equipment",
    "feedback",
    "information",
    "media",
    "metadata",
    "news",
    "series",
    "software",
    "species"
})

_SINGULAR_ENDINGS = ("ss", "us", "is")


@enum.unique
class Rule(enum.Enum):
    VERB_IN_PATH = "verb-in-path"
    CAMEL_CASE = "camel-case"
    UPPERCASE = "uppercase"
    UNDERSCORE = "underscore"
    MISSING_PLURALIZATION = "missing-pluralization"
    NESTING_DEPTH = "nesting-depth"
    TRAILING_SLASH = "trailing-slash"
    FILE_EXTENSION = "file-extension"
    EMPTY_SEGMENT = "empty-segment"
    INVALID_PLACEHOLDER = "invalid-placeholder"
    MISSING_LEADING_SLASH = "missing-leading-slash"


class Segment(NamedTuple):
    """
    Single parsed segment of a path template
    """

    raw: str
    literal: Optional[str] = None
    placeholder: Optional[str] = None
    placeholder_type: Optional[str] = None

    @property
    def is_placeholder(self) -> bool:
        return self.literal is None

    @property
    def is_version(self) -> bool:
        return self.literal is not None and _VERSION_SEGMENT.match(self.literal) is not None


class Violation(NamedTuple):
    rule: Rule
    segment: str
    message: str


class NamingReport(NamedTuple):
    path: str
    violations: Tuple[Violation, ...]

    @property
    def valid(self) -> bool:
        return len(self.violations) == 0

    @property
    def rules(self) -> List[str]:
        return [v.rule.value for v in self.violations]


def parse_segment(raw: str) -> Segment:
    """
    Parse a single raw path segment into a literal or placeholder segment
    """

    if raw.startswith("{") or raw.endswith("}"):
        match = _PLACEHOLDER.match(raw)
        if match is None:
            return Segment(raw=raw, placeholder="")
        return Segment(raw=raw, placeholder=match.group("name"), placeholder_type=match.group("type"))
    return Segment(raw=raw, literal=raw)


def split_path(path: str) -> List[Segment]:
    """
    Split a path template into its segments, ignoring the leading and a trailing slash
    """

    stripped = path.strip("/")
    if stripped == "":
        return []
    return [parse_segment(raw) for raw in stripped.split("/")]


def split_words(segment: str) -> List[str]:
    """
    Split a literal segment into its lowercase words (by hyphens, underscores and camel case)
    """

    words = []
    for part in re.split(r"[-_.]", segment):
        words.extend(w.lower() for w in _WORDS.findall(part))
    return words


def is_plural(word: str) -> bool:
    """
    Heuristically determine whether the lowercase English noun is in plural form
    """

    if word in IRREGULAR_PLURALS or word in UNCOUNTABLE_NOUNS:
        return True
    return word.endswith("s") and not word.endswith(_SINGULAR_ENDINGS)


def _check_literal(segment: Segment, conf: config.NamingConfig) -> List[Violation]:
    violations = []
    literal = segment.literal

    if "." in literal:
        violations.append(Violation(
            Rule.FILE_EXTENSION,
            literal,
            f"Segment {literal!r} carries a file extension; use content negotiation instead"
        ))
        literal = literal.split(".", 1)[0]

    if "_" in literal:
        violations.append(Violation(
            Rule.UNDERSCORE,
            literal,
            f"Segment {literal!r} uses underscores; separate words by hyphens"
        ))

    if any(c.isupper() for c in literal):
        if any(c.islower() for c in literal):
            violations.append(Violation(
                Rule.CAMEL_CASE,
                literal,
                f"Segment {literal!r} mixes upper and lower case; use lowercase hyphenated words"
            ))
        else:
            violations.append(Violation(
                Rule.UPPERCASE,
                literal,
                f"Segment {literal!r} is upper case; use lowercase words"
            ))

    words = split_words(literal)
    if words and words[0] in conf.verbs:
        violations.append(Violation(
            Rule.VERB_IN_PATH,
            literal,
            f"Segment {literal!r} starts with the verb {words[0]!r}; "
            f"express actions by HTTP methods on nouns"
        ))

    if literal.lower() not in conf.singletons and words and not is_plural(words[-1]):
        violations.append(Violation(
            Rule.MISSING_PLURALIZATION,
            literal,
            f"Collection segment {literal!r} should be a plural noun"
        ))

    return violations


def _check_placeholder(segment: Segment) -> List[Violation]:
    if not segment.placeholder or _PLACEHOLDER_NAME.match(segment.placeholder) is None:
        return [Violation(
            Rule.INVALID_PLACEHOLDER,
            segment.raw,
            f"Placeholder {segment.raw!r} must look like '{{name}}' or '{{name:type}}' "
            f"with a lowercase identifier as name"
        )]
    if segment.placeholder_type is not None and segment.placeholder_type not in PLACEHOLDER_TYPES:
        return [Violation(
            Rule.INVALID_PLACEHOLDER,
            segment.raw,
            f"Placeholder {segment.raw!r} has unknown type {segment.placeholder_type!r} "
            f"(known types: {', '.join(PLACEHOLDER_TYPES)})"
        )]
    return []


def validate_path(path: str, conf: Optional[config.NamingConfig] = None) -> NamingReport:
    """
    Validate a path template against the resource naming conventions

    :param path: path template, e.g. ``/users/{user_id}/orders``
    :param conf: optional naming configuration (defaults are used otherwise)
    :return: report containing all violated rules, which is valid if there are none
    """

    if conf is None:
        conf = config.NamingConfig()
    violations = []

    if not path.startswith("/"):
        violations.append(Violation(
            Rule.MISSING_LEADING_SLASH,
            path,
            "Path templates must start with a slash"
        ))
    if path != "/" and path.endswith("/"):
        violations.append(Violation(
            Rule.TRAILING_SLASH,
            path,
            "Path templates must not end with a slash"
        ))
    if "//" in path:
        violations.append(Violation(
            Rule.EMPTY_SEGMENT,
            path,
            "Path templates must not contain empty segments"
        ))

    depth = 0
    for segment in split_path(path):
        if segment.raw == "":
            continue
        if segment.is_placeholder:
            violations.extend(_check_placeholder(segment))
        elif not segment.is_version:
            violations.extend(_check_literal(segment, conf))
            if segment.literal.lower() not in conf.singletons:
                depth += 1

    if depth > conf.max_nesting_depth:
        violations.append(Violation(
            Rule.NESTING_DEPTH,
            path,
            f"Path nests {depth} collections, but at most {conf.max_nesting_depth} are allowed"
        ))

    return NamingReport(path=path, violations=tuple(violations))
