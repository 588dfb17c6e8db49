"""Version normalization, comparison and constraint matching for image tags.

Tags follow semantic-version precedence: everything after '-' is a
pre-release ('1.2.3-1' and '1.2.3-r0' sort below '1.2.3'), build metadata
after '+' is ignored, and PEP 440 spellings such as '1.0rc1', '1.0.post1'
or '1!2.0' do not parse. The numeric release is held as a
``packaging.version.Version``. Constraints follow the usual range syntax:

    *, x            any release
    1.2.3, =1.2.3   exact
    1.2, 1.2.x      x-range (>=1.2.0, <1.3.0)
    ^1.2.3          compatible with 1.x (>=1.2.3, <2.0.0)
    ~1.2.3, ~>1.2   patch-level changes (>=1.2.3, <1.3.0)
    >=1.0, <2.0     comparisons, joined by ',' or whitespace
    1.0 - 1.4       inclusive hyphen range
    ^1.0 || ^3.0    alternatives

Pre-release versions only match a group that itself names a pre-release.
"""
import functools
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from packaging.version import Version

from compman.core.errors import ConfigInvalid

VERSION_PREFIXES = ("v", "version", "ver", "release", "rel")
WILDCARD = "*"

# Longest first so 'release2.0' loses 'release' rather than 'rel'
_PREFIXES_BY_LENGTH = sorted(VERSION_PREFIXES, key=len, reverse=True)

_IDENTIFIERS = r"[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*"
_TAG_RE = re.compile(
    r"^(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?P<patch>\d+))?"
    rf"(?:-(?P<pre>{_IDENTIFIERS}))?(?:\+(?P<build>{_IDENTIFIERS}))?$"
)
_PARTIAL_RE = re.compile(
    r"^v?(?P<major>\d+|[xX*])"
    r"(?:\.(?P<minor>\d+|[xX*]))?"
    r"(?:\.(?P<patch>\d+|[xX*]))?"
    rf"(?:-(?P<pre>{_IDENTIFIERS}))?(?:\+(?P<build>{_IDENTIFIERS}))?$"
)
_TERM_RE = re.compile(r"(?P<op>\^|~>|~|>=|<=|!=|==|=|>|<)?\s*(?P<version>[^\s,<>=!~^]+)")
_HYPHEN_RE = re.compile(r"^\s*(?P<low>\S+)\s+-\s+(?P<high>\S+)\s*$")
_WILDCARDS = ("x", "X", "*")


def _identifier_key(identifier: str) -> Tuple[int, int, str]:
    # Numeric identifiers sort numerically and below alphanumeric ones
    if identifier.isdigit():
        return (0, int(identifier), "")
    return (1, 0, identifier)


@functools.total_ordering
class TagVersion:
    """A semantic version read from an image tag.

    ``prerelease`` is None for a release. The empty tuple marks the lowest
    point of a release, below every one of its pre-releases; range bounds
    use it and no tag parses to it.
    """

    __slots__ = ("release", "prerelease")

    def __init__(self, release: Version, prerelease: Optional[Tuple[str, ...]] = None):
        self.release = release
        self.prerelease = prerelease

    @classmethod
    def of(cls, major: int, minor: int = 0, patch: int = 0, pre: Optional[str] = None) -> "TagVersion":
        return cls(Version(f"{major}.{minor}.{patch}"), tuple(pre.split(".")) if pre else None)

    @classmethod
    def lowest(cls, release: "TagVersion") -> "TagVersion":
        return cls(release.release, ())

    @property
    def major(self) -> int:
        return self.release.major

    @property
    def minor(self) -> int:
        return self.release.minor

    @property
    def patch(self) -> int:
        return self.release.micro

    @property
    def is_prerelease(self) -> bool:
        return self.prerelease is not None

    def _key(self):
        if self.prerelease is None:
            return (self.release, 1, ())
        return (self.release, 0, tuple(_identifier_key(part) for part in self.prerelease))

    def __eq__(self, other):
        if not isinstance(other, TagVersion):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other):
        if not isinstance(other, TagVersion):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self):
        return hash(self._key())

    def __str__(self) -> str:
        if self.prerelease:
            return f"{self.release}-{'.'.join(self.prerelease)}"
        return str(self.release)

    def __repr__(self) -> str:
        return f"TagVersion('{self}')"


def normalize_tag(tag: str) -> str:
    """Strip version prefixes ('v', 'version', 'ver', 'release', 'rel').

    Matching is case-insensitive; the stripped length is the matched prefix's
    length, so 'Release2.0' becomes '2.0'. Stripping repeats until no prefix
    is left, which keeps the function idempotent ('vv1.0' -> '1.0').
    Never fails; whether the result parses is the caller's concern.
    """
    current = tag
    while True:
        lowered = current.lower()
        for prefix in _PREFIXES_BY_LENGTH:
            if lowered.startswith(prefix):
                current = current[len(prefix):]
                break
        else:
            return current


def parse_version(tag: str) -> Optional[TagVersion]:
    """Parse a tag as a version after normalization; None when unparseable.

    Missing minor and patch numbers count as zero ('1.25' is 1.25.0).
    """
    match = _TAG_RE.match(normalize_tag(tag).strip())
    if not match:
        return None
    return TagVersion.of(
        int(match.group("major")),
        int(match.group("minor") or 0),
        int(match.group("patch") or 0),
        match.group("pre"),
    )


def compare_tags(tag_a: str, tag_b: str) -> int:
    """Total order over tags.

    Version precedence when both parse, byte-wise string order otherwise.
    """
    version_a = parse_version(tag_a)
    version_b = parse_version(tag_b)

    if version_a is not None and version_b is not None:
        if version_a == version_b:
            return 0
        return -1 if version_a < version_b else 1

    bytes_a, bytes_b = tag_a.encode("utf-8"), tag_b.encode("utf-8")
    if bytes_a == bytes_b:
        return 0
    return -1 if bytes_a < bytes_b else 1


@dataclass(frozen=True)
class _Partial:
    """A possibly incomplete version: '1', '1.2', '1.x', '1.2.3-rc.1'."""
    major: Optional[int]
    minor: Optional[int]
    patch: Optional[int]
    pre: Optional[str] = None

    @classmethod
    def parse(cls, text: str) -> "_Partial":
        match = _PARTIAL_RE.match(text.strip())
        if not match:
            raise ConfigInvalid(f"Invalid version in constraint: {text!r}")

        def component(name: str) -> Optional[int]:
            value = match.group(name)
            if value is None or value in _WILDCARDS:
                return None
            return int(value)

        major, minor, patch = component("major"), component("minor"), component("patch")
        # Nothing more specific may follow a wildcard ('1.x.3' is rejected)
        if major is None and (minor is not None or patch is not None):
            raise ConfigInvalid(f"Invalid version in constraint: {text!r}")
        if minor is None and patch is not None:
            raise ConfigInvalid(f"Invalid version in constraint: {text!r}")

        pre = match.group("pre")
        if pre and patch is None:
            raise ConfigInvalid(f"Pre-release needs a full version: {text!r}")
        return cls(major, minor, patch, pre)

    @property
    def is_wildcard(self) -> bool:
        return self.major is None

    @property
    def is_complete(self) -> bool:
        return self.patch is not None

    @property
    def is_prerelease(self) -> bool:
        return self.is_complete and self.pre is not None

    def floor(self) -> TagVersion:
        """Lowest version covered by this partial."""
        return TagVersion.of(self.major or 0, self.minor or 0, self.patch or 0, self.pre)

    def next_boundary(self) -> TagVersion:
        """First version above the range covered by this partial."""
        if self.minor is None:
            return TagVersion.of(self.major + 1)
        if self.patch is None:
            return TagVersion.of(self.major, self.minor + 1)
        return TagVersion.of(self.major, self.minor, self.patch + 1)


_OPERATORS: Dict[str, Callable[[TagVersion, TagVersion], bool]] = {
    ">": lambda v, bound: v > bound,
    ">=": lambda v, bound: v >= bound,
    "<": lambda v, bound: v < bound,
    "<=": lambda v, bound: v <= bound,
    "==": lambda v, bound: v == bound,
    "!=": lambda v, bound: v != bound,
}


@dataclass(frozen=True)
class _Comparator:
    op: str
    bound: TagVersion

    def check(self, version: TagVersion) -> bool:
        return _OPERATORS[self.op](version, self.bound)


@dataclass(frozen=True)
class _Outside:
    """Excludes [low, high); used for '!=1.2' style partial exclusions."""
    low: TagVersion
    high: TagVersion

    def check(self, version: TagVersion) -> bool:
        return not self.low <= version < self.high


class _Never:
    def check(self, version: TagVersion) -> bool:
        return False


def _lower_floor(version: TagVersion) -> TagVersion:
    """Smallest version at a release, below any of its pre-releases."""
    return TagVersion.lowest(version)


def _expand(op: str, partial: _Partial) -> list:
    """Translate one operator/version pair into plain predicates."""
    if partial.is_wildcard:
        if op in ("", "=", "==", ">=", "<=", "^", "~", "~>"):
            return []
        return [_Never()]

    floor = partial.floor()

    if op in ("", "=", "=="):
        if partial.is_complete:
            return [_Comparator("==", floor)]
        return [_Comparator(">=", floor), _Comparator("<", partial.next_boundary())]

    if op == "^":
        if partial.major > 0 or partial.minor is None:
            upper = TagVersion.of(partial.major + 1)
        elif partial.minor > 0 or partial.patch is None:
            upper = TagVersion.of(0, partial.minor + 1)
        else:
            upper = TagVersion.of(0, 0, partial.patch + 1)
        return [_Comparator(">=", floor), _Comparator("<", _lower_floor(upper))]

    if op in ("~", "~>"):
        if partial.minor is None:
            upper = TagVersion.of(partial.major + 1)
        else:
            upper = TagVersion.of(partial.major, partial.minor + 1)
        return [_Comparator(">=", floor), _Comparator("<", _lower_floor(upper))]

    if op == ">":
        if partial.is_complete:
            return [_Comparator(">", floor)]
        return [_Comparator(">=", partial.next_boundary())]

    if op == ">=":
        return [_Comparator(">=", floor)]

    if op == "<":
        return [_Comparator("<", floor if partial.pre else _lower_floor(floor))]

    if op == "<=":
        if partial.is_complete:
            return [_Comparator("<=", floor)]
        return [_Comparator("<", _lower_floor(partial.next_boundary()))]

    if op == "!=":
        if partial.is_complete:
            return [_Comparator("!=", floor)]
        return [_Outside(floor, partial.next_boundary())]

    raise ConfigInvalid(f"Unknown constraint operator: {op!r}")


@dataclass(frozen=True)
class _Group:
    """Predicates that must all hold (one side of '||')."""
    predicates: tuple
    allows_prerelease: bool

    def check(self, version: TagVersion) -> bool:
        if version.is_prerelease and not self.allows_prerelease:
            return False
        return all(predicate.check(version) for predicate in self.predicates)


class VersionConstraint:
    """A compiled predicate over versions, built once from a pattern string.

    Example:
        constraint = VersionConstraint.compile("^1.0.0")
        constraint.matches("1.2.3")   # True
        constraint.matches("2.0.0")   # False
    """

    def __init__(self, pattern: str, groups: List[_Group]):
        self.pattern = pattern
        self._groups = tuple(groups)

    @classmethod
    def compile(cls, pattern: str) -> "VersionConstraint":
        """Compile a pattern.

        Raises:
            ConfigInvalid: If the pattern is not a valid constraint
        """
        text = (pattern or "").strip()
        if not text:
            text = WILDCARD

        groups = [cls._compile_group(alternative) for alternative in text.split("||")]
        return cls(text, groups)

    @classmethod
    def wildcard(cls) -> "VersionConstraint":
        return cls.compile(WILDCARD)

    @staticmethod
    def _compile_group(text: str) -> _Group:
        text = text.strip()
        if not text:
            raise ConfigInvalid("Empty alternative in constraint")

        predicates: list = []
        prerelease = False

        hyphen = _HYPHEN_RE.match(text)
        if hyphen:
            low = _Partial.parse(hyphen.group("low"))
            high = _Partial.parse(hyphen.group("high"))
            predicates.extend(_expand(">=", low))
            predicates.extend(_expand("<=", high))
            prerelease = low.is_prerelease or high.is_prerelease
            return _Group(tuple(predicates), prerelease)

        position = 0
        for match in _TERM_RE.finditer(text):
            gap = text[position:match.start()]
            if gap.strip(" ,"):
                raise ConfigInvalid(f"Invalid constraint: {text!r}")
            position = match.end()

            partial = _Partial.parse(match.group("version"))
            predicates.extend(_expand(match.group("op") or "", partial))
            prerelease = prerelease or partial.is_prerelease

        if text[position:].strip(" ,"):
            raise ConfigInvalid(f"Invalid constraint: {text!r}")
        if position == 0:
            raise ConfigInvalid(f"Invalid constraint: {text!r}")

        return _Group(tuple(predicates), prerelease)

    def check(self, version: TagVersion) -> bool:
        """True if the version satisfies any alternative."""
        return any(group.check(version) for group in self._groups)

    def matches(self, tag: str) -> bool:
        """Normalize and parse a tag, then check it; unparseable tags fail."""
        version = parse_version(tag)
        return version is not None and self.check(version)

    @property
    def is_wildcard(self) -> bool:
        return self.pattern == WILDCARD

    def __repr__(self) -> str:
        return f"VersionConstraint({self.pattern!r})"

    def __str__(self) -> str:
        return self.pattern


def sort_versions(
    tags: List[str],
    accept: Callable[[TagVersion], bool] = lambda _: True,
) -> List[Tuple[TagVersion, str]]:
    """Parse, filter and sort tags ascending; unparseable tags are dropped."""
    candidates = []
    for tag in tags:
        version = parse_version(tag)
        if version is None or not accept(version):
            continue
        candidates.append((version, tag))
    candidates.sort(key=lambda pair: pair[0])
    return candidates
