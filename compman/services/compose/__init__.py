"""
Docker Compose services.

Discovers compose files, rewrites their image tags, and drives the compose
tool through pull and up for each file.
"""

from .parser import ComposeParser
from .progress import LatestLabelMailbox, ProgressEvent, RateLimiter, classify_line
from .runner import ComposeRunner, PhaseOutcome
from .scanner import ComposeScanner, is_compose_file
from .updater import UpdateOrchestrator

__all__ = [
    "ComposeParser",
    "ComposeRunner",
    "ComposeScanner",
    "LatestLabelMailbox",
    "PhaseOutcome",
    "ProgressEvent",
    "RateLimiter",
    "UpdateOrchestrator",
    "classify_line",
    "is_compose_file",
]
