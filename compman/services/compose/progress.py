"""Progress events and the single-slot label mailbox shared with stream readers."""
import re
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

_PULLING_RE = re.compile(r"Pulling\s+(?!fs layer)(?:from\s+)?(?P<name>[\w.\-/:]+)")
_RECREATE_RE = re.compile(
    r"(?:Container\s+)?(?P<name>[\w.\-]+)\s+(?P<state>Starting|Recreating|Recreated|Started|Created|Running)"
)
_RECREATE_LEADING_RE = re.compile(
    r"(?P<state>Starting|Recreating|Creating)\s+(?P<name>[\w.\-]+)"
)


@dataclass(frozen=True)
class ProgressEvent:
    """One progress update for the presentation layer."""
    file_index: int
    total_files: int
    percent: float
    label: str


ProgressCallback = Callable[[ProgressEvent], None]


def classify_line(line: str) -> Optional[str]:
    """Turn one line of compose output into a short label, or None.

    Only labels come from here; whether a phase succeeded is decided by the
    exit status alone.
    """
    text = line.strip()
    if not text:
        return None

    if "Error" in text or "error" in text or "ERROR" in text:
        return f"error: {text[:80]}"

    match = _PULLING_RE.search(text)
    if match:
        return f"pulling {match.group('name')}"

    if "Downloaded" in text or "Pulled" in text:
        return "downloaded"

    match = _RECREATE_LEADING_RE.search(text) or _RECREATE_RE.search(text)
    if match:
        return f"{match.group('state').lower()} {match.group('name')}"

    return None


def services_mentioned(output: str, state_words: Tuple[str, ...]) -> set:
    """Service names that appear next to any of the given state words."""
    names = set()
    for line in output.splitlines():
        for match in _RECREATE_LEADING_RE.finditer(line):
            if match.group("state") in state_words:
                names.add(match.group("name"))
        for match in _RECREATE_RE.finditer(line):
            if match.group("state") in state_words:
                names.add(match.group("name"))
    return names


class LatestLabelMailbox:
    """Single-slot mailbox holding the most recent progress label.

    Readers of the current phase ``put`` labels; the display side ``take``s
    them. Each phase opens a new generation, and a put stamped with an older
    generation is dropped, so a reader that is still draining a finished
    phase cannot overwrite the label of the phase that replaced it.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._generation = 0
        self._label: Optional[str] = None

    def next_generation(self) -> int:
        """Start a new phase; clears any pending label."""
        with self._lock:
            self._generation += 1
            self._label = None
            return self._generation

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def put(self, generation: int, label: str) -> bool:
        """Store a label; returns False when the generation is stale."""
        with self._lock:
            if generation != self._generation:
                return False
            self._label = label
            return True

    def take(self) -> Optional[str]:
        """Return the pending label once, or None."""
        with self._lock:
            label, self._label = self._label, None
            return label


class RateLimiter:
    """Lets an action through at most once per min_interval seconds."""

    def __init__(self, min_interval: float = 0.2, clock: Callable[[], float] = time.monotonic):
        self.min_interval = min_interval
        self._clock = clock
        self._last: Optional[float] = None

    def ready(self) -> bool:
        now = self._clock()
        if self._last is not None and now - self._last < self.min_interval:
            return False
        self._last = now
        return True
