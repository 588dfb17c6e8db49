"""Discover Docker Compose files under configured paths."""
import time
from pathlib import Path
from typing import List, Optional, Set, Tuple

from compman.core.errors import ValidationFailed
from compman.core.logger import get_logger
from compman.models.compose import ComposeFile
from compman.models.result import ScanResult
from compman.services.compose.parser import ComposeParser

logger = get_logger(__name__)

YAML_SUFFIXES = (".yml", ".yaml")


def is_compose_file(path: Path) -> bool:
    """A yaml file whose name mentions 'compose', or any yaml file in a
    directory path that mentions 'compose' or 'docker'."""
    if path.suffix.lower() not in YAML_SUFFIXES:
        return False
    if "compose" in path.name.lower():
        return True
    parent = str(path.parent).lower()
    return "compose" in parent or "docker" in parent


class ComposeScanner:
    """Walks files and directories and parses the compose files it finds.

    Files that fail to parse are skipped. Directory entries are visited in
    sorted order so repeated scans list files the same way.
    """

    def __init__(self, max_depth: int = 10, parser: Optional[ComposeParser] = None):
        self.max_depth = max_depth
        self.parser = parser or ComposeParser()
        self.logger = logger

    def scan(self, paths: List[str]) -> List[ComposeFile]:
        return self._scan(paths, invalid=[])

    def scan_with_result(self, paths: List[str]) -> Tuple[ScanResult, List[ComposeFile]]:
        """Scan and collect statistics alongside the files found."""
        start = time.monotonic()
        invalid: List[str] = []
        files = self._scan(paths, invalid)

        result = ScanResult(
            total_files=len(files) + len(invalid),
            valid_files=len(files),
            invalid_files=invalid,
            scanned_paths=list(paths),
            duration=time.monotonic() - start,
        )
        for compose_file in files:
            for name in compose_file.services:
                result.services[name] = result.services.get(name, 0) + 1
        return result, files

    def _scan(self, paths: List[str], invalid: List[str]) -> List[ComposeFile]:
        found: List[ComposeFile] = []
        visited: Set[Path] = set()

        for raw in paths:
            root = Path(raw).expanduser().absolute()
            if not root.exists():
                self.logger.debug(f"Skipping missing path: {root}")
                continue
            self._walk(root, 0, visited, found, invalid)

        self.logger.debug(f"Found {len(found)} compose file(s) in {len(paths)} path(s)")
        return found

    def _walk(
        self,
        path: Path,
        depth: int,
        visited: Set[Path],
        found: List[ComposeFile],
        invalid: List[str],
    ) -> None:
        key = path.resolve()
        if key in visited or depth > self.max_depth:
            return
        visited.add(key)

        if path.is_dir():
            try:
                entries = sorted(path.iterdir())
            except OSError as e:
                self.logger.debug(f"Cannot read directory {path}: {e}")
                return
            for entry in entries:
                self._walk(entry, depth + 1, visited, found, invalid)
            return

        if not is_compose_file(path):
            return

        try:
            found.append(self.parser.parse_file(str(path)))
        except ValidationFailed as e:
            self.logger.debug(f"Skipping {path}: {e}")
            invalid.append(str(path))
