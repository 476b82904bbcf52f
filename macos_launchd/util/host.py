"""Host operating system version detection."""

import re

from macos_launchd.util.shell import run


SW_VERS_PATH = "/usr/bin/sw_vers"


def get_macos_version(sw_vers_path: str = SW_VERS_PATH) -> str:
    """
    Retrieve the macOS product version from sw_vers.
    
    Args:
        sw_vers_path: Location of the sw_vers binary
    
    Returns:
        Full product version string (e.g., '14.2.1')
    
    Raises:
        RuntimeError: If sw_vers fails or its output cannot be parsed
    """
    try:
        result = run([sw_vers_path, "-productVersion"], timeout=5)
    except TimeoutError as e:
        raise RuntimeError(f"sw_vers timed out: {e}") from e
    except FileNotFoundError as e:
        raise RuntimeError(
            f"sw_vers not found at {sw_vers_path}. Are you running on macOS?"
        ) from e
    
    if not result.success:
        raise RuntimeError(
            f"sw_vers failed with exit code {result.code}: {result.err}"
        )
    
    version = result.out.strip()
    if not re.match(r"^\d+(\.\d+)*$", version):
        raise RuntimeError(f"Could not parse sw_vers output: {result.out}")
    
    return version


def major_minor(version: str) -> str:
    """
    Reduce a product version to its major.minor form.
    
    Example:
        >>> major_minor("10.15.7")
        '10.15'
        >>> major_minor("14")
        '14.0'
    """
    parts = version.strip().split(".")
    if len(parts) == 1:
        parts.append("0")
    return ".".join(parts[:2])
