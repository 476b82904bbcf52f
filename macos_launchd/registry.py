"""Cached lookup of launchd job plists by label."""

import logging
from pathlib import Path

from macos_launchd.errors import NotFoundError
from macos_launchd.models import JobDescriptor
from macos_launchd.plist import read_dict
from macos_launchd.scanners.launchd import JobDirectoryScanner


logger = logging.getLogger(__name__)


class JobRegistry:
    """
    Owns the label -> path map for one orchestration session.
    
    The map is built on first use and reused until refresh() or
    invalidate() is called. A lookup miss triggers at most one rescan.
    """
    
    def __init__(self, scanner: JobDirectoryScanner):
        self.scanner = scanner
        self._label_map: dict[str, Path] | None = None
    
    def refresh(self) -> dict[str, Path]:
        """Rescan every search directory and replace the cached map."""
        self._label_map = self.scanner.scan()
        return self._label_map
    
    def invalidate(self) -> None:
        """Drop the cached map; the next lookup rescans."""
        self._label_map = None
    
    def _cached_map(self) -> dict[str, Path]:
        if self._label_map is None:
            return self.refresh()
        return self._label_map
    
    def lookup(self, label: str, allow_refresh: bool = True) -> Path:
        """
        Find the plist path for a job label.
        
        Args:
            label: Job label to resolve
            allow_refresh: Rescan once if the label is not in the cached map
        
        Returns:
            Path to the job's plist
        
        Raises:
            NotFoundError: If the label is still unknown after the rescan
        """
        label_map = self._cached_map()
        if label in label_map:
            return label_map[label]
        
        if allow_refresh:
            # A plist may have been added since the last scan
            logger.debug("Job %s not in cache, rescanning", label)
            label_map = self.refresh()
            if label in label_map:
                return label_map[label]
        
        raise NotFoundError(label)
    
    def lookup_all(self) -> dict[str, Path]:
        """Return a copy of the full label -> path map."""
        return dict(self._cached_map())
    
    def read_job(self, label: str) -> JobDescriptor:
        """
        Resolve a label and decode its plist.
        
        Raises:
            NotFoundError: If the label is unknown or its file has disappeared
            FormatError: If the plist cannot be decoded
        """
        path = self.lookup(label)
        if not path.is_file():
            raise NotFoundError(label, f"{path} is no longer a regular file")
        
        return JobDescriptor(label=label, path=path, plist=read_dict(path))
