"""Job status queries through launchctl."""

import logging

from macos_launchd.errors import ProbeError
from macos_launchd.util.shell import Runner, run


logger = logging.getLogger(__name__)

LAUNCHCTL_PATH = "/bin/launchctl"

_LIST_HEADER = ("PID", "Status", "Label")


class StatusProbe:
    """Asks launchctl which jobs are loaded. Nothing is cached between calls."""
    
    def __init__(
        self,
        launchctl_path: str = LAUNCHCTL_PATH,
        runner: Runner = run,
        timeout: int | None = None
    ):
        self.launchctl_path = launchctl_path
        self.runner = runner
        self.timeout = timeout
    
    def list_running(self) -> set[str]:
        """
        Return the labels of every job launchd currently has loaded.
        
        Each row of `launchctl list` ends with the job label.
        
        Raises:
            ProbeError: If launchctl is missing, times out, or exits non-zero
        """
        try:
            result = self.runner([self.launchctl_path, "list"], timeout=self.timeout)
        except (FileNotFoundError, TimeoutError) as e:
            raise ProbeError(f"Unable to run launchctl list: {e}") from e
        
        if not result.success:
            raise ProbeError(f"launchctl list failed: {result.detail}")
        
        running: set[str] = set()
        for line in result.out.splitlines():
            fields = line.split()
            if not fields or tuple(fields) == _LIST_HEADER:
                continue
            running.add(fields[-1])
        
        return running
    
    def is_running(self, label: str) -> bool:
        """
        Check a single job: launchctl exits zero only for loaded jobs.
        
        Raises:
            ProbeError: If launchctl cannot be run at all
        """
        try:
            result = self.runner([self.launchctl_path, "list", label], timeout=self.timeout)
        except (FileNotFoundError, TimeoutError) as e:
            raise ProbeError(f"Unable to determine status of {label}: {e}") from e
        
        logger.debug("launchctl list %s exited %d", label, result.code)
        return result.success
