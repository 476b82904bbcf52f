"""Tests for plist handling, job discovery, and status probing."""

import os
import plistlib
import stat
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock, patch

from macos_launchd.errors import FormatError, NotFoundError, ProbeError
from macos_launchd.models import DisabledState, JobDescriptor, ServiceState
from macos_launchd.plist import (
    BINARY_PLIST_MAGIC,
    decode,
    encode,
    read_dict,
    read_plist,
    write_plist,
)
from macos_launchd.probe import StatusProbe
from macos_launchd.registry import JobRegistry
from macos_launchd.scanners.launchd import DEFAULT_SEARCH_PATHS, JobDirectoryScanner
from macos_launchd.util.host import get_macos_version, major_minor
from macos_launchd.util.shell import ShellResult, run


BAD_DOCTYPE_PLIST = b"""<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE plist PUBLIC -//Apple Computer//DTD PLIST 1.0//EN http://www.apple.com/DTDs/PropertyList-1.0.dtd >
<plist version="1.0">
<dict>
    <key>Label</key>
    <string>com.example.legacy</string>
    <key>RunAtLoad</key>
    <true/>
</dict>
</plist>
"""


def write_job(directory, filename, payload, fmt=plistlib.FMT_XML) -> Path:
    """Write a plist into directory and return its path."""
    path = Path(directory) / filename
    with open(path, "wb") as f:
        plistlib.dump(payload, f, fmt=fmt)
    return path


class TempDirTestCase(unittest.TestCase):
    """Provides a scratch directory removed after each test."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def make_dir(self, name: str) -> Path:
        path = self.root / name
        path.mkdir(parents=True)
        return path


class TestShellUtils(unittest.TestCase):
    """Test shell utilities."""

    def test_run_command_success(self):
        """Test running a successful command."""
        result = run([sys.executable, "-c", "print('loaded')"])
        self.assertTrue(result.success)
        self.assertEqual(result.out, "loaded")
        self.assertEqual(result.code, 0)

    def test_run_command_failure(self):
        """Test running a failed command."""
        result = run([sys.executable, "-c", "import sys; sys.stderr.write('nope'); sys.exit(3)"])
        self.assertFalse(result.success)
        self.assertFalse(result)
        self.assertEqual(result.code, 3)
        self.assertEqual(result.detail, "nope")

    def test_run_missing_binary(self):
        """Test that a missing executable raises FileNotFoundError."""
        with self.assertRaises(FileNotFoundError):
            run(["/nonexistent/launchctl", "list"])

    def test_run_timeout(self):
        """Test that exceeding the timeout raises TimeoutError."""
        with self.assertRaises(TimeoutError):
            run([sys.executable, "-c", "import time; time.sleep(5)"], timeout=1)

    def test_shell_result_detail_fallbacks(self):
        """Test failure descriptions prefer stderr, then stdout, then the code."""
        self.assertEqual(ShellResult(1, "out", "err").detail, "err")
        self.assertEqual(ShellResult(1, "out", "").detail, "out")
        self.assertEqual(ShellResult(5, "", "").detail, "exit code 5")


class TestHost(unittest.TestCase):
    """Test OS version detection."""

    @patch("macos_launchd.util.host.run")
    def test_get_macos_version(self, mock_run):
        mock_run.return_value = ShellResult(0, "10.15.7", "")
        self.assertEqual(get_macos_version(), "10.15.7")
        mock_run.assert_called_once_with(["/usr/bin/sw_vers", "-productVersion"], timeout=5)

    @patch("macos_launchd.util.host.run")
    def test_get_macos_version_failure(self, mock_run):
        mock_run.return_value = ShellResult(1, "", "boom")
        with self.assertRaises(RuntimeError):
            get_macos_version()

    @patch("macos_launchd.util.host.run")
    def test_get_macos_version_missing_sw_vers(self, mock_run):
        mock_run.side_effect = FileNotFoundError("sw_vers")
        with self.assertRaises(RuntimeError):
            get_macos_version()

    @patch("macos_launchd.util.host.run")
    def test_get_macos_version_unparseable(self, mock_run):
        mock_run.return_value = ShellResult(0, "ProductVersion: ???", "")
        with self.assertRaises(RuntimeError):
            get_macos_version()

    def test_major_minor(self):
        self.assertEqual(major_minor("10.15.7"), "10.15")
        self.assertEqual(major_minor("10.6"), "10.6")
        self.assertEqual(major_minor("14"), "14.0")


class TestModels(unittest.TestCase):
    """Test data models."""

    def test_disabled_state_from_value(self):
        self.assertIs(DisabledState.from_value(None), DisabledState.UNSET)
        self.assertIs(DisabledState.from_value(True), DisabledState.TRUE)
        self.assertIs(DisabledState.from_value(False), DisabledState.FALSE)

    def test_disabled_state_from_mapping(self):
        self.assertIs(DisabledState.from_mapping({}), DisabledState.UNSET)
        self.assertIs(DisabledState.from_mapping({"Disabled": True}), DisabledState.TRUE)
        self.assertIs(DisabledState.from_mapping(None), DisabledState.UNSET)
        self.assertIs(DisabledState.from_mapping("Disabled"), DisabledState.UNSET)

    def test_disabled_state_allows_enabled(self):
        self.assertTrue(DisabledState.UNSET.allows_enabled())
        self.assertTrue(DisabledState.FALSE.allows_enabled())
        self.assertFalse(DisabledState.TRUE.allows_enabled())
        self.assertFalse(DisabledState.UNSET.is_set)

    def test_job_descriptor_disabled(self):
        job = JobDescriptor(
            label="com.example.agent",
            path=Path("/Library/LaunchAgents/com.example.agent.plist"),
            plist={"Label": "com.example.agent", "Disabled": False}
        )
        self.assertIs(job.disabled, DisabledState.FALSE)

    def test_service_state_dump(self):
        state = ServiceState(label="com.example.agent", path="/tmp/a.plist", running=True, enabled=False)
        self.assertEqual(
            state.model_dump(),
            {"label": "com.example.agent", "path": "/tmp/a.plist", "running": True, "enabled": False}
        )


class TestPlistCodec(TempDirTestCase):
    """Test plist decoding and encoding."""

    def test_decode_xml_keeps_key_order(self):
        data = encode({"Label": "com.example.agent", "RunAtLoad": True, "KeepAlive": False})
        self.assertEqual(list(decode(data)), ["Label", "RunAtLoad", "KeepAlive"])

    def test_decode_binary(self):
        data = plistlib.dumps({"Label": "com.example.agent"}, fmt=plistlib.FMT_BINARY)
        self.assertTrue(data.startswith(BINARY_PLIST_MAGIC))
        self.assertEqual(decode(data), {"Label": "com.example.agent"})

    def test_decode_fixes_bad_doctype(self):
        tree = decode(BAD_DOCTYPE_PLIST)
        self.assertEqual(tree["Label"], "com.example.legacy")
        self.assertTrue(tree["RunAtLoad"])

    def test_decode_malformed_xml(self):
        with self.assertRaises(FormatError):
            decode(b"this is not a plist")

    def test_decode_malformed_binary(self):
        with self.assertRaises(FormatError):
            decode(BINARY_PLIST_MAGIC + b"garbage")

    def test_decode_does_not_mask_unexpected_errors(self):
        with patch("macos_launchd.plist.plistlib.loads", side_effect=KeyError("bug")):
            with self.assertRaises(KeyError):
                decode(b"<plist/>")

    def test_decode_invalid_utf8(self):
        with self.assertRaises(FormatError) as ctx:
            decode(b"\xff\xfe<plist/>", source="/tmp/broken.plist")
        self.assertEqual(ctx.exception.path, Path("/tmp/broken.plist"))

    def test_encode_emits_xml(self):
        self.assertTrue(encode({"Label": "x"}).startswith(b"<?xml"))

    def test_binary_round_trip_is_semantically_equal(self):
        original = {
            "Label": "com.example.agent",
            "ProgramArguments": ["/usr/bin/true", "--flag"],
            "StartInterval": 300,
            "EnvironmentVariables": {"PATH": "/usr/bin"},
        }
        binary = plistlib.dumps(original, fmt=plistlib.FMT_BINARY)
        self.assertEqual(decode(encode(decode(binary))), original)

    def test_read_plist_missing_file(self):
        result = read_plist(self.root / "missing.plist")
        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, FormatError)
        with self.assertRaises(FormatError):
            result.unwrap()

    def test_read_plist_ok(self):
        path = write_job(self.root, "a.plist", {"Label": "a"})
        result = read_plist(path)
        self.assertTrue(result.ok)
        self.assertEqual(result.unwrap(), {"Label": "a"})

    def test_read_dict_rejects_non_dict_root(self):
        path = write_job(self.root, "list.plist", ["a", "b"])
        with self.assertRaises(FormatError):
            read_dict(path)

    def test_write_plist_replaces_binary_with_xml(self):
        path = write_job(self.root, "a.plist", {"Label": "a"}, fmt=plistlib.FMT_BINARY)
        os.chmod(path, 0o600)

        write_plist(path, {"Label": "a", "Disabled": True})

        self.assertTrue(path.read_bytes().startswith(b"<?xml"))
        self.assertEqual(read_dict(path), {"Label": "a", "Disabled": True})
        self.assertEqual(stat.S_IMODE(path.stat().st_mode), 0o600)
        self.assertEqual(os.listdir(self.root), ["a.plist"])

    def test_write_plist_creates_missing_file(self):
        path = self.root / "db" / "overrides.plist"
        write_plist(path, {"com.example.agent": {"Disabled": False}})
        self.assertEqual(read_dict(path), {"com.example.agent": {"Disabled": False}})

    def test_failed_write_leaves_target_untouched(self):
        path = write_job(self.root, "a.plist", {"Label": "a"})
        before = path.read_bytes()

        with patch("macos_launchd.plist.os.replace", side_effect=OSError("disk full")):
            with self.assertRaises(OSError):
                write_plist(path, {"Label": "a", "Disabled": True})

        self.assertEqual(path.read_bytes(), before)
        self.assertEqual(os.listdir(self.root), ["a.plist"])


class TestJobDirectoryScanner(TempDirTestCase):
    """Test launchd directory scanning."""

    def test_default_search_paths(self):
        self.assertEqual(
            list(DEFAULT_SEARCH_PATHS),
            [
                "/Library/LaunchAgents",
                "/Library/LaunchDaemons",
                "/System/Library/LaunchAgents",
                "/System/Library/LaunchDaemons",
            ]
        )

    def test_later_directory_wins_label_collision(self):
        d1 = self.make_dir("d1")
        d2 = self.make_dir("d2")
        write_job(d1, "foo.plist", {"Label": "com.example.foo"})
        winner = write_job(d2, "foo-copy.plist", {"Label": "com.example.foo"})

        label_map = JobDirectoryScanner([d1, d2]).scan()

        self.assertEqual(label_map, {"com.example.foo": winner})

    def test_scan_reads_xml_and_binary(self):
        agents = self.make_dir("LaunchAgents")
        xml_job = write_job(agents, "a.plist", {"Label": "com.example.a"})
        binary_job = write_job(agents, "b.plist", {"Label": "com.example.b"}, fmt=plistlib.FMT_BINARY)

        label_map = JobDirectoryScanner([agents]).scan()

        self.assertEqual(label_map, {"com.example.a": xml_job, "com.example.b": binary_job})

    def test_scan_skips_unparseable_files(self):
        agents = self.make_dir("LaunchAgents")
        write_job(agents, "a.plist", {"Label": "com.example.a"})
        (agents / "README").write_text("not a plist")

        label_map = JobDirectoryScanner([agents]).scan()

        self.assertEqual(list(label_map), ["com.example.a"])

    def test_scan_warns_about_missing_label(self):
        agents = self.make_dir("LaunchAgents")
        write_job(agents, "nolabel.plist", {"Program": "/usr/bin/true"})

        with self.assertLogs("macos_launchd.scanners.launchd", level="WARNING") as logs:
            label_map = JobDirectoryScanner([agents]).scan()

        self.assertEqual(label_map, {})
        self.assertIn("nolabel.plist", logs.output[0])

    def test_scan_is_not_recursive(self):
        agents = self.make_dir("LaunchAgents")
        nested = self.make_dir("LaunchAgents/nested")
        write_job(nested, "deep.plist", {"Label": "com.example.deep"})

        self.assertEqual(JobDirectoryScanner([agents]).scan(), {})

    def test_scan_ignores_missing_directories(self):
        agents = self.make_dir("LaunchAgents")
        job = write_job(agents, "a.plist", {"Label": "com.example.a"})

        label_map = JobDirectoryScanner([self.root / "missing", agents]).scan()

        self.assertEqual(label_map, {"com.example.a": job})


class TestJobRegistry(TempDirTestCase):
    """Test cached label lookup."""

    def test_lookup_scans_lazily_once(self):
        scanner = Mock()
        scanner.scan.return_value = {"com.example.a": Path("/x/a.plist")}
        registry = JobRegistry(scanner)

        scanner.scan.assert_not_called()
        self.assertEqual(registry.lookup("com.example.a"), Path("/x/a.plist"))
        self.assertEqual(registry.lookup("com.example.a"), Path("/x/a.plist"))
        self.assertEqual(scanner.scan.call_count, 1)

    def test_lookup_miss_rescans_once(self):
        scanner = Mock()
        scanner.scan.side_effect = [{}, {"com.example.new": Path("/x/new.plist")}]
        registry = JobRegistry(scanner)

        self.assertEqual(registry.lookup("com.example.new"), Path("/x/new.plist"))
        self.assertEqual(scanner.scan.call_count, 2)

    def test_lookup_still_missing_raises(self):
        scanner = Mock()
        scanner.scan.return_value = {"com.example.a": Path("/x/a.plist")}
        registry = JobRegistry(scanner)

        with self.assertRaises(NotFoundError) as ctx:
            registry.lookup("com.example.missing")

        self.assertEqual(ctx.exception.label, "com.example.missing")
        self.assertEqual(scanner.scan.call_count, 2)

    def test_lookup_without_refresh(self):
        scanner = Mock()
        scanner.scan.return_value = {}
        registry = JobRegistry(scanner)

        with self.assertRaises(NotFoundError):
            registry.lookup("com.example.missing", allow_refresh=False)
        self.assertEqual(scanner.scan.call_count, 1)

    def test_lookup_all_scans_only_when_empty(self):
        scanner = Mock()
        scanner.scan.return_value = {}
        registry = JobRegistry(scanner)

        self.assertEqual(registry.lookup_all(), {})
        self.assertEqual(registry.lookup_all(), {})
        self.assertEqual(scanner.scan.call_count, 1)

    def test_lookup_all_returns_copy(self):
        scanner = Mock()
        scanner.scan.return_value = {"com.example.a": Path("/x/a.plist")}
        registry = JobRegistry(scanner)

        registry.lookup_all().clear()
        self.assertIn("com.example.a", registry.lookup_all())

    def test_invalidate_forces_rescan(self):
        scanner = Mock()
        scanner.scan.return_value = {"com.example.a": Path("/x/a.plist")}
        registry = JobRegistry(scanner)

        registry.lookup_all()
        registry.invalidate()
        registry.lookup_all()
        self.assertEqual(scanner.scan.call_count, 2)

    def test_lookup_path_decodes_to_same_label(self):
        agents = self.make_dir("LaunchAgents")
        daemons = self.make_dir("LaunchDaemons")
        write_job(agents, "a.plist", {"Label": "com.example.a"})
        write_job(daemons, "b.plist", {"Label": "com.example.b"}, fmt=plistlib.FMT_BINARY)
        write_job(daemons, "a-daemon.plist", {"Label": "com.example.a"})
        registry = JobRegistry(JobDirectoryScanner([agents, daemons]))

        for label in registry.lookup_all():
            self.assertEqual(read_dict(registry.lookup(label))["Label"], label)

    def test_read_job(self):
        agents = self.make_dir("LaunchAgents")
        path = write_job(agents, "a.plist", {"Label": "com.example.a", "Disabled": True})
        registry = JobRegistry(JobDirectoryScanner([agents]))

        job = registry.read_job("com.example.a")

        self.assertEqual(job.path, path)
        self.assertEqual(job.plist["Label"], "com.example.a")
        self.assertIs(job.disabled, DisabledState.TRUE)

    def test_read_job_file_removed_after_scan(self):
        agents = self.make_dir("LaunchAgents")
        path = write_job(agents, "a.plist", {"Label": "com.example.a"})
        registry = JobRegistry(JobDirectoryScanner([agents]))
        registry.lookup_all()
        path.unlink()

        with self.assertRaises(NotFoundError):
            registry.read_job("com.example.a")

    def test_read_job_broken_after_scan(self):
        agents = self.make_dir("LaunchAgents")
        path = write_job(agents, "a.plist", {"Label": "com.example.a"})
        registry = JobRegistry(JobDirectoryScanner([agents]))
        registry.lookup_all()
        path.write_bytes(b"<plist><dict>")

        with self.assertRaises(FormatError):
            registry.read_job("com.example.a")


class TestStatusProbe(unittest.TestCase):
    """Test launchctl status queries."""

    def test_list_running(self):
        runner = Mock(return_value=ShellResult(
            0,
            "PID\tStatus\tLabel\n123\t0\tcom.example.a\n-\t78\tcom.example.b\n",
            ""
        ))
        probe = StatusProbe(runner=runner)

        self.assertEqual(probe.list_running(), {"com.example.a", "com.example.b"})
        runner.assert_called_once_with(["/bin/launchctl", "list"], timeout=None)

    def test_list_running_failure_raises(self):
        probe = StatusProbe(runner=Mock(return_value=ShellResult(1, "", "launchctl exploded")))
        with self.assertRaises(ProbeError):
            probe.list_running()

    def test_list_running_missing_launchctl(self):
        probe = StatusProbe(runner=Mock(side_effect=FileNotFoundError("/bin/launchctl")))
        with self.assertRaises(ProbeError):
            probe.list_running()

    def test_list_running_passes_timeout(self):
        runner = Mock(return_value=ShellResult(0, "", ""))
        StatusProbe(launchctl_path="/usr/local/bin/launchctl", runner=runner, timeout=30).list_running()
        runner.assert_called_once_with(["/usr/local/bin/launchctl", "list"], timeout=30)

    def test_is_running(self):
        runner = Mock(return_value=ShellResult(0, "{ \"Label\" = \"com.example.a\"; }", ""))
        probe = StatusProbe(runner=runner)

        self.assertTrue(probe.is_running("com.example.a"))
        runner.assert_called_once_with(["/bin/launchctl", "list", "com.example.a"], timeout=None)

    def test_is_running_nonzero_means_stopped(self):
        probe = StatusProbe(runner=Mock(return_value=ShellResult(113, "", "Could not find service")))
        self.assertFalse(probe.is_running("com.example.a"))

    def test_is_running_missing_launchctl(self):
        probe = StatusProbe(runner=Mock(side_effect=FileNotFoundError("/bin/launchctl")))
        with self.assertRaises(ProbeError):
            probe.is_running("com.example.a")


if __name__ == "__main__":
    unittest.main()
