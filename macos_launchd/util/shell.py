"""Subprocess execution for launchctl and sw_vers."""

import subprocess
from dataclasses import dataclass
from typing import Callable


@dataclass
class ShellResult:
    """Result from a command execution."""
    
    code: int
    out: str
    err: str
    
    @property
    def success(self) -> bool:
        """Check if the command succeeded (exit code 0)."""
        return self.code == 0
    
    @property
    def detail(self) -> str:
        """Best available explanation of a failure: stderr, then stdout."""
        return self.err or self.out or f"exit code {self.code}"
    
    def __bool__(self) -> bool:
        return self.success


Runner = Callable[..., ShellResult]


def run(cmd: list[str], timeout: int | None = None) -> ShellResult:
    """
    Execute a command without shell interpretation and wait for it.
    
    Args:
        cmd: Command and arguments (e.g., ['/bin/launchctl', 'list'])
        timeout: Maximum execution time in seconds; None waits indefinitely
    
    Returns:
        ShellResult with exit code, stdout, and stderr
    
    Raises:
        TimeoutError: If a timeout was given and the command exceeded it
        FileNotFoundError: If the command executable is not found
    
    Example:
        >>> result = run(['/bin/launchctl', 'list', 'com.apple.Finder'])
        >>> result.success
        True
    """
    try:
        completed = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            shell=False,
            check=False  # exit codes are interpreted by the caller
        )
    except subprocess.TimeoutExpired as e:
        raise TimeoutError(
            f"Command timed out after {timeout}s: {' '.join(cmd)}"
        ) from e
    
    return ShellResult(
        code=completed.returncode,
        out=_normalize_output(completed.stdout),
        err=_normalize_output(completed.stderr)
    )


def _normalize_output(text: str) -> str:
    """Convert line endings to \\n and trim surrounding whitespace."""
    if not text:
        return ""
    
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    return normalized.strip()
