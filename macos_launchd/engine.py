"""Wiring of the job management components for one session."""

from dataclasses import dataclass
from functools import partial

from macos_launchd.config import Config
from macos_launchd.controller import ServiceController
from macos_launchd.overrides import OverridePolicy
from macos_launchd.probe import StatusProbe
from macos_launchd.registry import JobRegistry
from macos_launchd.scanners.launchd import JobDirectoryScanner
from macos_launchd.util.host import get_macos_version
from macos_launchd.util.shell import Runner, run


@dataclass
class Session:
    """Components sharing one label cache. Not safe to share between threads."""

    config: Config
    registry: JobRegistry
    probe: StatusProbe
    policy: OverridePolicy
    controller: ServiceController


def create_session(config: Config | None = None, runner: Runner = run) -> Session:
    """
    Build a registry, probe, override policy, and controller from config.

    Args:
        config: Session settings; defaults are used when None
        runner: Command runner, replaceable for testing

    Returns:
        Session whose components share a single JobRegistry

    Example:
        >>> session = create_session()
        >>> session.controller.status("com.apple.Finder").running
        True
    """
    config = config or Config()

    registry = JobRegistry(JobDirectoryScanner(config.search_paths))
    probe = StatusProbe(
        launchctl_path=config.launchctl_path,
        runner=runner,
        timeout=config.command_timeout
    )

    if config.os_version is not None:
        pinned = config.os_version
        version_provider = lambda: pinned
    else:
        version_provider = partial(get_macos_version, config.sw_vers_path)

    policy = OverridePolicy(
        registry,
        version_provider=version_provider,
        overrides_path=config.overrides_path
    )
    controller = ServiceController(
        registry,
        probe,
        policy,
        runner=runner,
        timeout=config.command_timeout
    )

    return Session(
        config=config,
        registry=registry,
        probe=probe,
        policy=policy,
        controller=controller
    )
