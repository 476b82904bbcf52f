"""Scanners module for discovering launchd job plists."""

from .launchd import DEFAULT_SEARCH_PATHS, JobDirectoryScanner

__all__ = ["DEFAULT_SEARCH_PATHS", "JobDirectoryScanner"]
