"""Property list reading and writing for launchd job files.

Job plists on disk come in two encodings: XML and Apple's binary format
(identified by the ``bplist00`` magic). Everything written back is XML.
"""

import logging
import os
import plistlib
import re
import stat
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from xml.parsers.expat import ExpatError

from macos_launchd.errors import FormatError


logger = logging.getLogger(__name__)

BINARY_PLIST_MAGIC = b"bplist00"

PLIST_XML_DOCTYPE = (
    '<!DOCTYPE plist PUBLIC "-//Apple Computer//DTD PLIST 1.0//EN" '
    '"http://www.apple.com/DTDs/PropertyList-1.0.dtd">'
)

# Some shipped plists carry an unquoted public identifier, which is not valid XML.
_BAD_XML_DOCTYPE = re.compile(r"^.*<!DOCTYPE plist PUBLIC -//Apple Computer.*$", re.MULTILINE)

_DECODE_ERRORS = (
    plistlib.InvalidFileException,
    ExpatError,
    UnicodeDecodeError,
    ValueError,
)


def decode(data: bytes, source: Path | str | None = None) -> Any:
    """
    Decode XML or binary plist bytes into a native tree.

    Args:
        data: Raw file contents
        source: Where the bytes came from, used in errors and log messages

    Returns:
        The decoded value (usually a dict, in file order)

    Raises:
        FormatError: If the bytes are not a valid plist
    """
    try:
        if data.startswith(BINARY_PLIST_MAGIC):
            return plistlib.loads(data, fmt=plistlib.FMT_BINARY)

        text = data.decode("utf-8")
        if _BAD_XML_DOCTYPE.search(text):
            text = _BAD_XML_DOCTYPE.sub(PLIST_XML_DOCTYPE, text)
            logger.debug("Had to fix plist with incorrect DOCTYPE declaration: %s", source)
        return plistlib.loads(text.encode("utf-8"), fmt=plistlib.FMT_XML)
    except _DECODE_ERRORS as e:
        raise FormatError(source, f"{type(e).__name__}: {e}") from e


def encode(tree: Any) -> bytes:
    """Encode a tree as XML plist bytes, keeping dictionary key order."""
    try:
        return plistlib.dumps(tree, fmt=plistlib.FMT_XML, sort_keys=False)
    except (TypeError, OverflowError) as e:
        raise FormatError(None, f"cannot encode value: {e}") from e


@dataclass(frozen=True)
class DecodeResult:
    """
    Outcome of reading one plist file.

    Scanning treats a failed result as "not a job descriptor" and moves on;
    targeted reads call unwrap() and let the FormatError propagate.
    """

    path: Path
    value: Any = None
    error: FormatError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        """Return the decoded value or raise the decode error."""
        if self.error is not None:
            raise self.error
        return self.value


def read_plist(path: Path | str) -> DecodeResult:
    """Read and decode a plist file without raising on bad content."""
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        return DecodeResult(path=path, error=FormatError(path, f"unreadable: {e}"))

    try:
        return DecodeResult(path=path, value=decode(data, source=path))
    except FormatError as e:
        return DecodeResult(path=path, error=e)


def read_dict(path: Path | str) -> dict[str, Any]:
    """
    Read a plist file that must exist and decode to a dictionary.

    Raises:
        FormatError: If the file is unreadable, malformed, or not a dictionary
    """
    value = read_plist(path).unwrap()
    if not isinstance(value, dict):
        raise FormatError(path, f"expected a dictionary, found {type(value).__name__}")
    return value


def write_plist(path: Path | str, tree: Any) -> None:
    """
    Atomically replace a plist file with the XML encoding of tree.

    The new content is written to a temporary file beside the target and then
    renamed over it, so readers see either the old or the new file. The
    target's permission bits are kept when it already exists.
    """
    path = Path(path)
    payload = encode(tree)

    try:
        mode = stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        mode = None

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        if mode is not None:
            os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise

    logger.debug("Wrote %d bytes to %s", len(payload), path)
