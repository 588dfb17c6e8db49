"""Exception hierarchy shared by the registry, strategy and update layers."""
from typing import List, Optional


class CompmanError(Exception):
    """Base class for all compman errors."""
    pass


class RegistryUnavailable(CompmanError):
    """Raised when a registry cannot be reached or answers with a non-2xx status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
        url: str = "",
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.url = url

    def __str__(self) -> str:
        message = super().__str__()
        if self.status_code is not None:
            message = f"{message} (HTTP {self.status_code})"
        if self.body:
            message = f"{message}: {self.body[:200]}"
        return message


class ResolutionFailed(CompmanError):
    """Raised when no tag satisfies the active strategy."""

    def __init__(self, message: str, image: str = ""):
        super().__init__(message)
        self.image = image


class ValidationFailed(CompmanError):
    """Raised when a compose file is missing or cannot be parsed."""

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class ProcessFailed(CompmanError):
    """Raised when an external compose command fails, times out or is cancelled."""

    EXIT = "exit"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    MISSING = "missing"

    def __init__(
        self,
        message: str,
        command: Optional[List[str]] = None,
        returncode: Optional[int] = None,
        output: str = "",
        kind: str = EXIT,
    ):
        super().__init__(message)
        self.command = command or []
        self.returncode = returncode
        self.output = output
        self.kind = kind

    @property
    def timed_out(self) -> bool:
        return self.kind == self.TIMEOUT

    @property
    def cancelled(self) -> bool:
        return self.kind == self.CANCELLED


class DaemonUnreachable(CompmanError):
    """Raised when the Docker daemon cannot be pinged."""
    pass


class ConfigInvalid(CompmanError):
    """Raised for configuration values compman cannot work with."""
    pass
