"""
Update orchestrator.

Applies a tag strategy across compose files, one file and one phase at a
time:

    Pending -> Validating -> (DryRun | Pulling -> Recreating) -> Completed | Failed

A failure anywhere in a file (missing file, rewrite error, pull or up
failure, timeout, cancel) becomes one synthetic result for that file and the
batch moves on. Per-service results gathered for that file are discarded.
Success of a phase is its exit status; output text only decorates labels.
"""
import threading
from typing import Dict, Iterable, List, Optional

from compman.core.config import CompmanConfig
from compman.core.errors import (
    CompmanError,
    ProcessFailed,
    ResolutionFailed,
    ValidationFailed,
)
from compman.core.logger import get_logger
from compman.models.compose import ComposeFile, Service
from compman.models.image import ImageReference
from compman.models.result import PruneReport, UpdateResult
from compman.services.compose.parser import ComposeParser
from compman.services.compose.progress import (
    LatestLabelMailbox,
    ProgressCallback,
    ProgressEvent,
    RateLimiter,
    classify_line,
    services_mentioned,
)
from compman.services.compose.runner import ComposeRunner
from compman.services.docker_client import DockerClient
from compman.services.strategy.base import TagStrategy

logger = get_logger(__name__)

SIMULATED_OLD = "simulated - current image"
SIMULATED_NEW = "simulated - latest image"
PULLED = "pulled"
RECREATED = "recreated"

RECREATE_WORDS = ("Recreating", "Recreated", "Creating", "Created", "Starting", "Started")

# Share of a file's progress span taken by the pull phase
PULL_SHARE = 0.6


class UpdateOrchestrator:
    """
    Drives compose pull / up -d across a batch of compose files.

    Example:
        orchestrator = UpdateOrchestrator(config, strategy)
        results = orchestrator.run(files)
        summarize(results)   # UpdateSummary(succeeded=4, skipped=1, failed=0)

    Every submitted file yields at least one result. Results of one file are
    contiguous and files appear in submission order.
    """

    def __init__(
        self,
        config: CompmanConfig,
        strategy: Optional[TagStrategy] = None,
        runner: Optional[ComposeRunner] = None,
        parser: Optional[ComposeParser] = None,
        docker_client=None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        """
        Args:
            config: Runtime configuration (timeouts, dry run, excludes)
            strategy: Tag strategy; None skips tag planning
            runner: Compose runner (defaults to config.compose_command)
            parser: Compose parser used to rewrite image tags
            docker_client: DockerClient for the post-batch prune, created lazily
            on_progress: Receives ProgressEvents, possibly from reader threads
            cancel_event: Set to stop the batch (checked between files and
                polled during a phase)
            rate_limiter: Throttles label-driven progress events
        """
        self.config = config
        self.strategy = strategy
        self.runner = runner or ComposeRunner(config.compose_command)
        self.parser = parser or ComposeParser()
        self.docker_client = docker_client
        self.on_progress = on_progress
        self.cancel_event = cancel_event or threading.Event()
        self.limiter = rate_limiter or RateLimiter()
        self.mailbox = LatestLabelMailbox()
        self.warnings: List[str] = []
        self.prune_report: Optional[PruneReport] = None
        self.logger = logger
        self._emit_lock = threading.Lock()

    def cancel(self) -> None:
        self.cancel_event.set()

    def run(self, files: Iterable[ComposeFile]) -> List[UpdateResult]:
        """Update every file, then prune unused images when configured."""
        results = self.update(files)
        if self.config.prune_after_update and not self.config.dry_run:
            self.prune_report = self.prune()
        return results

    def update(self, files: Iterable[ComposeFile]) -> List[UpdateResult]:
        """Update files in order and return their results as one flat list.

        A file-level failure contributes a single record labelled with the
        file name, so len(results) is not the number of services touched.
        """
        return [result for group in self.results_by_file(files) for result in group]

    def results_by_file(self, files: Iterable[ComposeFile]) -> List[List[UpdateResult]]:
        """Update files in order; one result group per file."""
        files = list(files or [])
        total = len(files)
        groups: List[List[UpdateResult]] = []

        for index, compose_file in enumerate(files):
            if self.cancel_event.is_set():
                error = ProcessFailed("Update cancelled before this file started",
                                      kind=ProcessFailed.CANCELLED)
                groups.append([UpdateResult.file_failure(compose_file.file_path, error)])
                continue

            self._emit(index, total, 0.0, f"processing {compose_file.file_name}")
            try:
                groups.append(self.update_file(compose_file, index, total))
            except CompmanError as e:
                self.logger.error(f"{compose_file.file_path}: {e}")
                groups.append([UpdateResult.file_failure(compose_file.file_path, e)])

        if total:
            self._emit(total - 1, total, 1.0, "done")
        return groups

    def update_file(
        self,
        compose_file: ComposeFile,
        index: int = 0,
        total: int = 1,
    ) -> List[UpdateResult]:
        """
        Update a single file.

        Returns:
            One result per image-bearing service, or one skipped file record
            when the file has none

        Raises:
            ValidationFailed: If the file no longer exists or cannot be rewritten
            ProcessFailed: If a compose phase fails, times out or is cancelled
        """
        if not compose_file.path.is_file():
            raise ValidationFailed(f"Compose file no longer exists: {compose_file.file_path}",
                                   path=compose_file.file_path)

        image_services = compose_file.image_services()
        if not image_services:
            self.logger.info(f"{compose_file.file_name}: no image services, skipping")
            return [UpdateResult.file_skipped(compose_file.file_path)]

        selected = self.config.services_for(compose_file.file_path, compose_file.project_name)
        if selected is not None:
            unknown = sorted(set(selected) - set(image_services))
            if unknown:
                self.logger.warning(
                    f"{compose_file.file_name}: selected services without an image: {', '.join(unknown)}"
                )

        active: Dict[str, Service] = {}
        results: List[UpdateResult] = []
        for name, service in image_services.items():
            excluded = self._is_excluded(service.image)
            if excluded or (selected is not None and name not in selected):
                reason = "is excluded" if excluded else "is not selected"
                self.logger.info(f"{name}: {service.image} {reason}")
                results.append(UpdateResult(
                    service=name,
                    old_image=service.image,
                    new_image=service.image,
                    success=False,
                    file_path=compose_file.file_path,
                    skipped=True,
                ))
            else:
                active[name] = service

        if not active:
            return results

        if self.config.dry_run:
            self._emit(index, total, 1.0, "dry run - no changes made")
            return results + [
                UpdateResult(
                    service=name,
                    old_image=SIMULATED_OLD,
                    new_image=SIMULATED_NEW,
                    success=True,
                    file_path=compose_file.file_path,
                )
                for name in active
            ]

        scope = list(active) if len(active) < len(image_services) else None
        targets = self._plan_tags(compose_file, active)

        try:
            self._run_phase("pull", compose_file, scope, self.config.pull_timeout,
                            index, total, 0.0)
            up = self._run_phase("up", compose_file, scope, self.config.up_timeout,
                                 index, total, PULL_SHARE)
        except ProcessFailed:
            self._revert_tags(compose_file, active, targets)
            raise

        recreated = services_mentioned(up.output, RECREATE_WORDS)
        for name, service in active.items():
            notes = [PULLED]
            if any(name == mention or name in mention for mention in recreated):
                notes.append(RECREATED)
            results.append(UpdateResult(
                service=name,
                old_image=service.image,
                new_image=f"{targets[name]} ({', '.join(notes)})",
                success=True,
                file_path=compose_file.file_path,
            ))

        self.logger.info(f"{compose_file.file_name}: updated {len(active)} service(s)")
        return results

    def prune(self) -> Optional[PruneReport]:
        """Remove unused images; failures become warnings, never errors."""
        if self.config.dry_run:
            return None

        try:
            if self.docker_client is None:
                self.docker_client = DockerClient(self.config.docker)
            report = self.docker_client.prune_images()
        except CompmanError as e:
            message = f"Image prune skipped: {e}"
            self.logger.warning(message)
            self.warnings.append(message)
            return None

        self.logger.info(
            f"Pruned {report.deleted_count} image(s), reclaimed {report.space_reclaimed} bytes"
        )
        return report

    def _is_excluded(self, image: str) -> bool:
        return any(pattern and pattern in image for pattern in self.config.exclude_images)

    def _plan_tags(self, compose_file: ComposeFile, active: Dict[str, Service]) -> Dict[str, str]:
        """Resolve target images and rewrite the file where the strategy wants a move.

        Resolution problems stay local to their service, which keeps its image.
        """
        targets = {name: service.image for name, service in active.items()}
        if self.strategy is None:
            return targets

        rewrites: Dict[str, str] = {}
        for name, service in active.items():
            if not self.strategy.can_handle(service.image):
                continue
            try:
                tag = self.strategy.resolve_tag(service.image)
            except ResolutionFailed as e:
                self.logger.warning(f"{name}: keeping {service.image} ({e})")
                continue

            target = ImageReference.parse(service.image).with_tag(tag)
            if target != service.image and self.strategy.should_update(service.image, target):
                rewrites[name] = target

        if rewrites:
            self.parser.update_images(compose_file.file_path, rewrites,
                                      backup=self.config.backup_enabled)
            targets.update(rewrites)
        return targets

    def _revert_tags(self, compose_file: ComposeFile, active: Dict[str, Service],
                     targets: Dict[str, str]) -> None:
        originals = {name: svc.image for name, svc in active.items() if targets[name] != svc.image}
        if not originals:
            return
        try:
            self.parser.update_images(compose_file.file_path, originals, backup=False)
        except ValidationFailed as e:
            self.logger.error(f"Could not restore image tags in {compose_file.file_path}: {e}")

    def _run_phase(
        self,
        action: str,
        compose_file: ComposeFile,
        services: Optional[List[str]],
        timeout: float,
        index: int,
        total: int,
        start: float,
    ):
        with self._emit_lock:
            generation = self.mailbox.next_generation()
        self._emit(index, total, start, f"{action}: {compose_file.file_name}")

        def on_line(stream: str, line: str) -> None:
            label = classify_line(line)
            if label and self.mailbox.put(generation, label):
                self._pump(generation, index, total, start)

        try:
            return self.runner.run(
                action,
                compose_file.directory,
                compose_file.file_name,
                timeout,
                on_line=on_line,
                services=services,
                cancel_event=self.cancel_event,
            )
        finally:
            # The last label of a burst is usually held back by the limiter
            self._pump(generation, index, total, start, flush=True)

    def _pump(self, generation: int, index: int, total: int, fraction: float,
              flush: bool = False) -> None:
        """Forward the newest label, at most once per rate-limit interval.

        ``flush`` bypasses the limiter. Emitting happens under the lock so a
        reader of a finished phase cannot report after the next one starts.
        """
        with self._emit_lock:
            if generation != self.mailbox.generation:
                return
            if not flush and not self.limiter.ready():
                return
            label = self.mailbox.take()
            if label:
                self._emit(index, total, fraction, label)

    def _emit(self, index: int, total: int, fraction: float, label: str) -> None:
        if self.on_progress is None or total <= 0:
            return
        percent = min(100.0, (index + fraction) / total * 100.0)
        self.on_progress(ProgressEvent(file_index=index, total_files=total,
                                       percent=percent, label=label))
