"""Launch agents and daemons scanner for macOS."""

import logging
from pathlib import Path
from typing import Iterable

from macos_launchd.plist import read_plist


logger = logging.getLogger(__name__)

# Scanned in this order; a later directory wins when two files share a Label.
DEFAULT_SEARCH_PATHS: tuple[str, ...] = (
    "/Library/LaunchAgents",
    "/Library/LaunchDaemons",
    "/System/Library/LaunchAgents",
    "/System/Library/LaunchDaemons",
)


class JobDirectoryScanner:
    """Builds a Label -> plist path map from the launchd search directories."""
    
    def __init__(self, search_paths: Iterable[Path | str] = DEFAULT_SEARCH_PATHS):
        self.search_paths = [Path(p).expanduser() for p in search_paths]
    
    def scan(self) -> dict[str, Path]:
        """
        Enumerate job plists in every search directory.
        
        Only direct regular-file children are considered. Files that fail to
        decode are assumed not to be job descriptors and are skipped, as are
        plists without a Label.
        
        Returns:
            Mapping of job label to plist path
        
        Example:
            >>> JobDirectoryScanner(["/Library/LaunchDaemons"]).scan()
            {'com.example.daemon': PosixPath('/Library/LaunchDaemons/com.example.daemon.plist')}
        """
        label_map: dict[str, Path] = {}
        
        for scan_path in self.search_paths:
            for plist_file in _list_files(scan_path):
                label = _read_label(plist_file)
                if label is None:
                    continue
                
                previous = label_map.get(label)
                if previous is not None and previous != plist_file:
                    logger.debug("%s overrides %s for job %s", plist_file, previous, label)
                label_map[label] = plist_file
        
        logger.debug("Scanned %d directories, found %d jobs", len(self.search_paths), len(label_map))
        return label_map


def _list_files(directory: Path) -> list[Path]:
    """Return the regular files directly inside directory, sorted by name."""
    if not directory.is_dir():
        logger.debug("Skipping missing search directory %s", directory)
        return []
    
    try:
        return sorted(p for p in directory.iterdir() if p.is_file())
    except OSError as e:
        # Directories we can't read hold nothing we can manage
        logger.debug("Skipping unreadable search directory %s: %s", directory, e)
        return []


def _read_label(plist_file: Path) -> str | None:
    """Decode a candidate file and return its Label, or None to skip it."""
    result = read_plist(plist_file)
    if not result.ok:
        logger.debug("Skipping %s: %s", plist_file, result.error)
        return None
    
    plist_data = result.value
    if not isinstance(plist_data, dict) or "Label" not in plist_data:
        logger.warning(
            "The %s plist does not contain a 'Label' key; skipping it", plist_file
        )
        return None
    
    return str(plist_data["Label"])
