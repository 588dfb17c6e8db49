"""
Docker Compose tool runner.

Runs one compose phase (pull, up -d) as a subprocess. Two reader threads
drain stdout and stderr line by line while the calling thread waits for the
process against a deadline and an optional cancel event. On timeout or
cancel the process is terminated (then killed), readers are joined, and the
phase fails with a ProcessFailed of the matching kind.
"""
import shutil
import subprocess
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from compman.core.errors import ProcessFailed
from compman.core.logger import get_logger
from compman.models.compose import DEFAULT_COMPOSE_NAMES

logger = get_logger(__name__)

ACTIONS = {
    "pull": ["pull"],
    "up": ["up", "-d"],
}

STDOUT = "stdout"
STDERR = "stderr"

LineCallback = Callable[[str, str], None]


@dataclass
class PhaseOutcome:
    """Result of a compose phase that exited with status 0."""
    action: str
    command: List[str]
    returncode: int
    stdout_lines: List[str] = field(default_factory=list)
    stderr_lines: List[str] = field(default_factory=list)
    duration: float = 0.0

    @property
    def output(self) -> str:
        return "\n".join(self.stdout_lines + self.stderr_lines)


class ComposeRunner:
    """
    Invokes the compose tool for a file.

    Example:
        runner = ComposeRunner()
        runner.run("pull", "/srv/media", "docker-compose.yml", timeout=600)
    """

    def __init__(
        self,
        command: str = "auto",
        base_command: Optional[Sequence[str]] = None,
        poll_interval: float = 0.1,
        kill_grace: float = 5.0,
    ):
        """
        Args:
            command: 'auto', 'docker compose', 'docker-compose' or 'podman-compose'
            base_command: Explicit argv prefix, bypassing detection
            poll_interval: Seconds between deadline/cancel checks
            kill_grace: Seconds to wait after terminate before killing
        """
        self.command = command
        self.poll_interval = poll_interval
        self.kill_grace = kill_grace
        self.logger = logger
        self._base = list(base_command) if base_command else None

    @property
    def base_command(self) -> List[str]:
        if self._base is None:
            self._base = self.detect()
        return list(self._base)

    def detect(self) -> List[str]:
        """Find a compose tool on PATH.

        Raises:
            ProcessFailed: If no compose tool is installed (kind 'missing')
        """
        if self.command != "auto":
            argv = self.command.split()
            if shutil.which(argv[0]) is None:
                raise ProcessFailed(f"{argv[0]} not found on PATH", command=argv,
                                    kind=ProcessFailed.MISSING)
            return argv

        if shutil.which("docker") and self._has_compose_plugin():
            return ["docker", "compose"]
        if shutil.which("docker-compose"):
            return ["docker-compose"]
        if shutil.which("podman-compose"):
            return ["podman-compose"]

        raise ProcessFailed(
            "No compose tool found (install the docker compose plugin or docker-compose)",
            kind=ProcessFailed.MISSING,
        )

    @staticmethod
    def _has_compose_plugin() -> bool:
        try:
            result = subprocess.run(
                ["docker", "compose", "version"],
                capture_output=True, text=True, timeout=10,
            )
        except (OSError, subprocess.SubprocessError):
            return False
        return result.returncode == 0

    def build_command(
        self,
        action: str,
        file_name: str,
        services: Optional[Sequence[str]] = None,
    ) -> List[str]:
        """argv for an action; default-named files need no -f flag."""
        if action not in ACTIONS:
            raise ValueError(f"Unknown compose action: {action}")

        argv = self.base_command
        if file_name not in DEFAULT_COMPOSE_NAMES:
            argv += ["-f", file_name]
        argv += ACTIONS[action]
        argv += list(services or [])
        return argv

    def run(
        self,
        action: str,
        directory: str,
        file_name: str,
        timeout: float,
        on_line: Optional[LineCallback] = None,
        services: Optional[Sequence[str]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> PhaseOutcome:
        """
        Run one phase to completion.

        Args:
            action: 'pull' or 'up'
            directory: Working directory (the compose file's directory)
            file_name: Compose file name inside directory
            timeout: Hard limit in seconds
            on_line: Called as on_line(stream, line) from the reader threads
            services: Restrict the phase to these services
            cancel_event: When set, the process is stopped

        Returns:
            PhaseOutcome for a zero exit status

        Raises:
            ProcessFailed: Non-zero exit, timeout, cancel, or missing tool
        """
        argv = self.build_command(action, file_name, services)
        self.logger.debug(f"Running {' '.join(argv)} in {directory} (timeout {timeout:.0f}s)")

        start = time.monotonic()
        try:
            process = subprocess.Popen(
                argv,
                cwd=directory,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except FileNotFoundError as e:
            raise ProcessFailed(f"Cannot run {argv[0]}: {e}", command=argv,
                                kind=ProcessFailed.MISSING) from e
        except OSError as e:
            raise ProcessFailed(f"Cannot start {' '.join(argv)}: {e}", command=argv) from e

        stdout_lines: List[str] = []
        stderr_lines: List[str] = []
        readers = [
            threading.Thread(target=self._read_stream,
                             args=(process.stdout, STDOUT, stdout_lines, on_line), daemon=True),
            threading.Thread(target=self._read_stream,
                             args=(process.stderr, STDERR, stderr_lines, on_line), daemon=True),
        ]
        for reader in readers:
            reader.start()

        kind = self._wait(process, start + timeout, cancel_event)

        for reader in readers:
            reader.join(timeout=self.kill_grace)
            if reader.is_alive():
                self.logger.debug(f"Output reader for {action} still open after exit")

        duration = time.monotonic() - start
        output = "\n".join(stdout_lines + stderr_lines)

        if kind == ProcessFailed.TIMEOUT:
            raise ProcessFailed(f"{action} timed out after {timeout:.0f}s", command=argv,
                                returncode=process.returncode, output=output, kind=kind)
        if kind == ProcessFailed.CANCELLED:
            raise ProcessFailed(f"{action} cancelled", command=argv,
                                returncode=process.returncode, output=output, kind=kind)
        if process.returncode != 0:
            raise ProcessFailed(
                f"{action} exited with status {process.returncode}",
                command=argv, returncode=process.returncode, output=output,
            )

        self.logger.debug(f"{action} finished in {duration:.1f}s")
        return PhaseOutcome(action=action, command=argv, returncode=process.returncode,
                            stdout_lines=stdout_lines, stderr_lines=stderr_lines,
                            duration=duration)

    def _wait(
        self,
        process: subprocess.Popen,
        deadline: float,
        cancel_event: Optional[threading.Event],
    ) -> Optional[str]:
        """Block until exit; returns a failure kind when the process was stopped."""
        while True:
            try:
                process.wait(timeout=self.poll_interval)
                return None
            except subprocess.TimeoutExpired:
                pass

            if cancel_event is not None and cancel_event.is_set():
                self.logger.warning("Cancel requested, stopping compose process")
                self._stop(process)
                return ProcessFailed.CANCELLED

            if time.monotonic() >= deadline:
                self.logger.warning("Compose process hit its timeout, stopping it")
                self._stop(process)
                return ProcessFailed.TIMEOUT

    def _stop(self, process: subprocess.Popen) -> None:
        process.terminate()
        try:
            process.wait(timeout=self.kill_grace)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()

    def _read_stream(self, stream, name: str, sink: List[str],
                     on_line: Optional[LineCallback]) -> None:
        try:
            for raw in iter(stream.readline, ""):
                line = raw.rstrip("\r\n")
                sink.append(line)
                if on_line is not None:
                    try:
                        on_line(name, line)
                    except Exception as e:  # a display error must not stop draining
                        self.logger.debug(f"Progress callback failed: {e}")
        except (ValueError, OSError):
            # Stream closed underneath the reader
            pass
        finally:
            stream.close()
