"""Exception types raised by macos-launchd."""

from pathlib import Path


class LaunchdError(RuntimeError):
    """Base class for all launchd job management failures."""


class NotFoundError(LaunchdError):
    """No job plist could be found for a label, even after a rescan."""

    def __init__(self, label: str, detail: str | None = None):
        self.label = label
        message = f"Unable to find launchd plist for job: {label}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class FormatError(LaunchdError):
    """A property list could not be decoded."""

    def __init__(self, path: Path | str | None, reason: str):
        self.path = Path(path) if path is not None else None
        self.reason = reason
        where = f" at {self.path}" if self.path is not None else ""
        super().__init__(f"Unable to parse plist{where}: {reason}")


class UnsupportedOSError(LaunchdError):
    """The detected macOS version is older than the supported floor."""

    def __init__(self, version: str):
        self.version = version
        super().__init__(f"{version} is not supported by the launchd provider")


class ProbeError(LaunchdError):
    """launchctl could not report job status."""


class _JobCommandError(LaunchdError):
    verb = ""

    def __init__(self, label: str, path: Path | str, detail: str | None = None):
        self.label = label
        self.path = Path(path)
        self.detail = detail
        message = f"Unable to {self.verb} service: {label} at path: {self.path}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class StartError(_JobCommandError):
    """launchctl load failed for a job."""

    verb = "start"


class StopError(_JobCommandError):
    """launchctl unload failed for a job."""

    verb = "stop"
