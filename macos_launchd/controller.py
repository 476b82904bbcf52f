"""Start, stop, enable, and disable launchd jobs.

launchctl ties the running and enabled states together: `load -w` also
clears a job's Disabled flag and `unload -w` also sets it, while launchctl
refuses to load a disabled job without `-w` and a KeepAlive job cannot be
stopped without it. Each operation therefore picks a LoadPlan, runs it, and
then restores the enabled flag when the forced variant changed it against
the caller's wishes. This makes stopped/enabled and running/disabled
reachable, which launchctl alone cannot do.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from macos_launchd.errors import FormatError, NotFoundError, StartError, StopError
from macos_launchd.models import ServiceState
from macos_launchd.overrides import OverridePolicy
from macos_launchd.probe import StatusProbe
from macos_launchd.registry import JobRegistry
from macos_launchd.util.shell import Runner, run


logger = logging.getLogger(__name__)


class Verb(str, Enum):
    LOAD = "load"
    UNLOAD = "unload"


@dataclass(frozen=True)
class LoadPlan:
    """
    One launchctl transition and the enabled flag it leaves behind.

    forced plans pass -w; side_effect_enabled is the flag value launchd
    writes as a consequence, or None when the flag is untouched.
    """

    verb: Verb
    forced: bool

    @property
    def side_effect_enabled(self) -> bool | None:
        if not self.forced:
            return None
        return self.verb is Verb.LOAD

    def args(self, path: Path) -> list[str]:
        args = [self.verb.value]
        if self.forced:
            args.append("-w")
        args.append(str(path))
        return args

    def needs_fixup(self, desired_enabled: bool | None) -> bool:
        """True if the side effect contradicts the caller's desired flag."""
        effect = self.side_effect_enabled
        return effect is not None and desired_enabled is not None and effect != desired_enabled


def plan_start(enabled: bool, running: bool) -> LoadPlan:
    # launchctl won't load disabled jobs without -w
    return LoadPlan(Verb.LOAD, forced=not enabled or not running)


def plan_stop(enabled: bool) -> LoadPlan:
    # KeepAlive jobs can't be stopped without disabling them
    return LoadPlan(Verb.UNLOAD, forced=enabled)


class ServiceController:
    """Orchestrates job transitions for one session."""

    def __init__(
        self,
        registry: JobRegistry,
        probe: StatusProbe,
        policy: OverridePolicy,
        runner: Runner = run,
        timeout: int | None = None
    ):
        self.registry = registry
        self.probe = probe
        self.policy = policy
        self.runner = runner
        self.timeout = timeout

    def _launchctl(self, plan: LoadPlan, path: Path) -> str | None:
        """Run a plan; return None on success or a failure description."""
        cmd = [self.probe.launchctl_path, *plan.args(path)]
        logger.debug("Running %s", " ".join(cmd))
        try:
            result = self.runner(cmd, timeout=self.timeout)
        except (FileNotFoundError, TimeoutError) as e:
            return str(e)
        if not result.success:
            return result.detail
        return None

    def start(self, label: str, enable: bool | None = None) -> None:
        """
        Load a job.

        Args:
            label: Job label
            enable: Desired enabled flag afterwards; None leaves whatever
                launchctl produced

        Raises:
            StartError: If launchctl load fails
        """
        job = self.registry.read_job(label)
        enabled = self.policy.resolve_enabled(label, job.plist)
        running = self.probe.is_running(label)

        plan = plan_start(enabled, running)
        failure = self._launchctl(plan, job.path)
        if failure is not None:
            raise StartError(label, job.path, failure)

        # load -w cleared the Disabled flag; put it back
        if plan.needs_fixup(enable):
            logger.debug("Restoring disabled flag for %s after forced load", label)
            self.policy.set_enabled(label, enable)

    def stop(self, label: str, enable: bool | None = None) -> None:
        """
        Unload a job.

        Raises:
            StopError: If launchctl unload fails
        """
        job = self.registry.read_job(label)
        enabled = self.policy.resolve_enabled(label, job.plist)

        plan = plan_stop(enabled)
        failure = self._launchctl(plan, job.path)
        if failure is not None:
            raise StopError(label, job.path, failure)

        # unload -w set the Disabled flag; clear it again
        if plan.needs_fixup(enable):
            logger.debug("Restoring enabled flag for %s after forced unload", label)
            self.policy.set_enabled(label, enable)

    def restart(self, label: str, enable: bool | None = None) -> None:
        """Stop then start a job. A failed stop skips the start."""
        logger.debug("Stopping the %s service", label)
        self.stop(label, enable=enable)
        logger.debug("Starting the %s service", label)
        self.start(label, enable=enable)

    def enable(self, label: str) -> None:
        self.policy.set_enabled(label, True)

    def disable(self, label: str) -> None:
        self.policy.set_enabled(label, False)

    def status(self, label: str) -> ServiceState:
        """Current path, running, and enabled state of one job."""
        job = self.registry.read_job(label)
        return ServiceState(
            label=label,
            path=str(job.path),
            running=self.probe.is_running(label),
            enabled=self.policy.resolve_enabled(label, job.plist)
        )

    def instances(self) -> list[ServiceState]:
        """
        State of every job found in the search directories.

        Running state comes from a single `launchctl list`. Jobs whose plist
        has become unreadable since the scan are left out.
        """
        running = self.probe.list_running()
        states: list[ServiceState] = []

        for label, path in sorted(self.registry.lookup_all().items()):
            try:
                job = self.registry.read_job(label)
            except (FormatError, NotFoundError) as e:
                logger.warning("Skipping %s: %s", label, e)
                continue
            states.append(ServiceState(
                label=label,
                path=str(path),
                running=label in running,
                enabled=self.policy.resolve_enabled(label, job.plist)
            ))

        return states
