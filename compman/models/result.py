"""Update, scan and prune result models."""
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

NOT_AVAILABLE = "N/A"


@dataclass(frozen=True)
class UpdateResult:
    """Outcome for one service, or for a whole file when it failed.

    A file-level failure produces a single synthetic record whose service is a
    file label ("file: docker-compose.yml"). The length of a result list is
    therefore not a count of services touched.
    """
    service: str
    old_image: str
    new_image: str
    success: bool
    error: Optional[Exception] = None
    timestamp: datetime = field(default_factory=datetime.now)
    file_path: str = ""
    skipped: bool = False

    @property
    def failed(self) -> bool:
        return not self.success and not self.skipped

    @classmethod
    def file_failure(cls, file_path: str, error: Exception) -> "UpdateResult":
        return cls(
            service=file_label(file_path),
            old_image=NOT_AVAILABLE,
            new_image=NOT_AVAILABLE,
            success=False,
            error=error,
            file_path=file_path,
        )

    @classmethod
    def file_skipped(cls, file_path: str) -> "UpdateResult":
        return cls(
            service=file_label(file_path),
            old_image=NOT_AVAILABLE,
            new_image=NOT_AVAILABLE,
            success=False,
            file_path=file_path,
            skipped=True,
        )


def file_label(file_path: str) -> str:
    """Label used in place of a service name for file-level records."""
    return f"file: {Path(file_path).name}"


@dataclass
class UpdateSummary:
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.succeeded + self.skipped + self.failed


def summarize(results: List[UpdateResult]) -> UpdateSummary:
    """Count succeeded, skipped and failed records."""
    summary = UpdateSummary()
    for result in results:
        if result.success:
            summary.succeeded += 1
        elif result.skipped:
            summary.skipped += 1
        else:
            summary.failed += 1
    return summary


@dataclass
class ScanResult:
    """Statistics collected while scanning for compose files."""
    total_files: int = 0
    valid_files: int = 0
    invalid_files: List[str] = field(default_factory=list)
    scanned_paths: List[str] = field(default_factory=list)
    duration: float = 0.0
    services: Dict[str, int] = field(default_factory=dict)  # service name -> count


@dataclass
class PruneReport:
    """What an image prune reclaimed."""
    space_reclaimed: int = 0
    images_deleted: List[str] = field(default_factory=list)

    @property
    def deleted_count(self) -> int:
        return len(self.images_deleted)
