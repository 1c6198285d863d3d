"""Locating script-referenced files and reading them at startup."""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Union

PathLike = Union[str, "os.PathLike[str]"]


@dataclass(frozen=True)
class ResolverOptions:
    """How raw file names from a script are turned into paths."""

    expand_envs: bool = False


class ResolveError(Exception):
    """A file could not be located or read."""


# Only set once, at startup.
_global_options = ResolverOptions()


def set_global_resolve_options(options: ResolverOptions) -> None:
    """Set the options used by every later call to :func:`resolve_file`."""
    global _global_options
    _global_options = options


def expand_env_variables(in_path: str) -> str:
    """Replace every ``$NAME`` that is followed by ``/`` with the variable's value.

    A variable that is not set expands to nothing. A ``$NAME`` at the end of
    the path, not closed by ``/``, is dropped.
    """
    out: list[str] = []
    name: list[str] = []
    finding_env = False

    for char in in_path:
        if char == "$":
            finding_env = True
            name.clear()
            continue
        if char == "/" and finding_env:
            finding_env = False
            value = os.environ.get("".join(name))
            if value:
                out.append(value)
        if finding_env:
            name.append(char)
        else:
            out.append(char)

    return "".join(out)


def expand_tilde(in_path: str) -> str:
    """Expand a leading ``~/`` to the value of ``$HOME``, if it is set."""
    if in_path.startswith("~/"):
        home = os.environ.get("HOME")
        if home:
            return home + in_path[1:]
    return in_path


def resolve_file(raw_file: str) -> Path:
    """Turn a file name from a script into a canonical, existing path.

    Environment variables are expanded only when the global options ask for
    it; a leading ``~/`` is always expanded.
    """
    expanded = raw_file
    if _global_options.expand_envs:
        expanded = expand_env_variables(expanded)
    expanded = expand_tilde(expanded)

    if not expanded:
        raise ResolveError("No such file or directory")

    try:
        return Path(expanded).resolve(strict=True)
    except (OSError, RuntimeError) as error:
        message = getattr(error, "strerror", None) or str(error)
        raise ResolveError(message) from error


def get_file_size(path: PathLike) -> int:
    """Return the size of a regular file, or 0 if it cannot be determined."""
    try:
        info = os.stat(path)
    except OSError:
        return 0
    if not stat.S_ISREG(info.st_mode):
        return 0
    return info.st_size


def read_binary_file(path: PathLike) -> bytes:
    """Read a whole file; an empty or unreadable file raises :class:`ResolveError`."""
    shown = os.fspath(path)
    size = get_file_size(path)
    if size == 0:
        raise ResolveError(f"File {shown} had zero bytes to read!")

    try:
        with open(path, "rb") as handle:
            data = handle.read(size)
    except OSError as error:
        raise ResolveError(f"Failed to read file {shown}") from error

    if len(data) != size:
        raise ResolveError(f"Failed to read file {shown}")
    return data


def read_bytes_to_contiguous(path: PathLike, buffer: Union[bytearray, memoryview]) -> int:
    """Fill ``buffer`` completely from the start of the file at ``path``.

    Returns the number of bytes written; raises :class:`ResolveError` when
    the file cannot be opened or holds fewer bytes than the buffer.
    """
    shown = os.fspath(path)
    view = memoryview(buffer).cast("B")
    filled = 0

    try:
        with open(path, "rb") as handle:
            while filled < len(view):
                count = handle.readinto(view[filled:])
                if not count:
                    break
                filled += count
    except OSError as error:
        raise ResolveError(f"Failed to read file {shown}") from error

    if filled != len(view):
        raise ResolveError(f"Failed to read file {shown}")
    return filled