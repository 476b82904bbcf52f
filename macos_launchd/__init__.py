"""macos-launchd: reconcile launchd job state with desired running/enabled state."""

__version__ = "0.1.0"
