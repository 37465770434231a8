"""
Vitals Core — Export Line Source
Streams export.xml one physical line at a time, straight from disk or from
inside Apple's export.zip, without ever holding the whole file in memory.
ZERO network imports. Stdlib only.
"""

import io
import os
import zipfile
from typing import Generator, IO, Union


# Read-ahead per underlying read. Lines longer than this are still
# delivered whole; the buffer only bounds each read call.
READ_BUFFER_SIZE = 1024 * 1024

PathOrHandle = Union[str, os.PathLike, IO]


def _strip_newline(line: str) -> str:
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line


def _find_export_member(zf: zipfile.ZipFile) -> str:
    # Apple Health zip contains apple_health_export/export.xml
    candidates = [n for n in zf.namelist() if n.endswith("export.xml")]
    if not candidates:
        raise FileNotFoundError("No export.xml found in zip. Is this an Apple Health export?")
    return candidates[0]


def _iter_handle(handle: IO) -> Generator[str, None, None]:
    if isinstance(handle, io.TextIOBase):
        for line in handle:
            yield _strip_newline(line)
        return

    # Binary handle: decode on the fly, then detach so the caller's handle
    # is left open when the wrapper goes away.
    text = io.TextIOWrapper(handle, encoding="utf-8", errors="replace", newline="")
    try:
        for line in text:
            yield _strip_newline(line)
    finally:
        text.detach()


def iter_lines(source: PathOrHandle) -> Generator[str, None, None]:
    """
    Yield the lines of an Apple Health export in file order, newline removed.

    Args:
        source: Path to export.xml or export.zip, or an open text/binary handle.
                Handles are read but not closed.

    Raises:
        FileNotFoundError: path missing, or a zip without an export.xml member.
        OSError: any other failure opening or reading the input.
    """
    if hasattr(source, "read"):
        yield from _iter_handle(source)
        return

    path = os.path.expanduser(os.fspath(source))
    if zipfile.is_zipfile(path):
        with zipfile.ZipFile(path, "r") as zf:
            with zf.open(_find_export_member(zf)) as member:
                yield from _iter_handle(member)
        return

    with open(path, "r", encoding="utf-8", errors="replace",
              newline="", buffering=READ_BUFFER_SIZE) as f:
        for line in f:
            yield _strip_newline(line)
