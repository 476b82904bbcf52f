"""Resolution and mutation of a job's enabled/disabled flag.

launchd jobs are enabled by default and only disabled when a "Disabled" key
is true. From Mac OS X 10.6 on, the global overrides plist is consulted
first: whenever it has an entry for a job, that entry wins over the job's
own plist. On 10.5 the job plist is the only place the flag lives.
"""

import logging
from pathlib import Path
from typing import Any, Callable

from macos_launchd.errors import UnsupportedOSError
from macos_launchd.models import DisabledState
from macos_launchd.plist import read_dict, write_plist
from macos_launchd.registry import JobRegistry
from macos_launchd.util.host import major_minor


logger = logging.getLogger(__name__)

LAUNCHD_OVERRIDES_PATH = "/var/db/launchd.db/com.apple.launchd/overrides.plist"

# Oldest supported release; anything earlier is rejected
MINIMUM_VERSION = (10, 5)

# Supported releases that predate the overrides plist
LEGACY_VERSIONS = frozenset({"10.5"})


class OverridePolicy:
    """Decides where a job's Disabled flag is stored and reads or writes it."""

    def __init__(
        self,
        registry: JobRegistry,
        version_provider: Callable[[], str],
        overrides_path: Path | str = LAUNCHD_OVERRIDES_PATH
    ):
        self.registry = registry
        self.version_provider = version_provider
        self.overrides_path = Path(overrides_path)
        self._version: str | None = None

    @property
    def os_version(self) -> str:
        """major.minor version of the host, validated against the support floor."""
        if self._version is None:
            version = major_minor(self.version_provider())
            try:
                parsed = tuple(int(part) for part in version.split("."))
            except ValueError:
                raise UnsupportedOSError(version) from None
            if parsed < MINIMUM_VERSION:
                raise UnsupportedOSError(version)
            self._version = ".".join(str(part) for part in parsed)
        return self._version

    def os_supports_overrides(self) -> bool:
        """True on every supported release except the legacy ones."""
        return self.os_version not in LEGACY_VERSIONS

    def _read_overrides(self) -> dict[str, Any]:
        if not self.overrides_path.is_file():
            return {}
        return read_dict(self.overrides_path)

    def resolve_enabled(self, label: str, job_plist: dict[str, Any]) -> bool:
        """
        Collapse the job plist flag and any override entry into a boolean.

        Args:
            label: Job label, used as the key in the overrides plist
            job_plist: Decoded plist of the job itself

        Returns:
            True if the job is enabled

        Raises:
            UnsupportedOSError: If the host is older than the support floor
            FormatError: If the overrides plist exists but cannot be decoded
        """
        job_disabled = DisabledState.from_mapping(job_plist)

        if self.os_supports_overrides():
            override_disabled = DisabledState.from_mapping(
                self._read_overrides().get(label)
            )
            if override_disabled.is_set:
                return override_disabled is DisabledState.FALSE

        return job_disabled.allows_enabled()

    def is_enabled(self, label: str) -> bool:
        """Resolve the enabled flag for a job by label."""
        self.os_supports_overrides()
        job = self.registry.read_job(label)
        return self.resolve_enabled(label, job.plist)

    def set_enabled(self, label: str, value: bool) -> None:
        """
        Persist a job's enabled flag.

        launchctl cannot change the Disabled flag without also loading or
        unloading the job, so the plist is edited directly: the overrides
        plist when the OS has one, otherwise the job's own plist.
        """
        if self.os_supports_overrides():
            overrides = self._read_overrides()
            overrides[label] = {"Disabled": not value}
            write_plist(self.overrides_path, overrides)
            logger.info("Set %s Disabled=%s in %s", label, not value, self.overrides_path)
            return

        job = self.registry.read_job(label)
        plist = dict(job.plist)
        if value:
            if "Disabled" not in plist:
                return
            del plist["Disabled"]
        else:
            if plist.get("Disabled") is True:
                return
            plist["Disabled"] = True

        write_plist(job.path, plist)
        logger.info("Set %s Disabled=%s in %s", label, not value, job.path)
