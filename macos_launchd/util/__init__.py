"""Utility module for macos-launchd."""

from .shell import ShellResult, run
from .host import get_macos_version

__all__ = ["ShellResult", "run", "get_macos_version"]
