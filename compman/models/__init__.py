"""compman data models."""
from compman.models.compose import BuildConfig, ComposeFile, Service
from compman.models.image import ImageInfo, ImageReference, format_size
from compman.models.result import (
    PruneReport,
    ScanResult,
    UpdateResult,
    UpdateSummary,
    summarize,
)

__all__ = [
    "BuildConfig",
    "ComposeFile",
    "Service",
    "ImageInfo",
    "ImageReference",
    "format_size",
    "PruneReport",
    "ScanResult",
    "UpdateResult",
    "UpdateSummary",
    "summarize",
]
