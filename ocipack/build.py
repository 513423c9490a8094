"""Packaging of a directory into a reproducible tar+gzip artifact."""

from __future__ import annotations

import gzip
import os
import stat
import tarfile
from collections.abc import Iterator
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path


@dataclass(frozen=True)
class _Pattern:
    parts: tuple[str, ...]
    negate: bool
    dir_only: bool
    anchored: bool

    def matches(self, path: tuple[str, ...], is_dir: bool) -> bool:
        if not self.anchored:
            for i, component in enumerate(path):
                if fnmatchcase(component, self.parts[0]):
                    return not (self.dir_only and not is_dir and i == len(path) - 1)
            return False
        for k in range(1, len(path) + 1):
            if _match_exact(self.parts, path[:k]):
                if k < len(path):
                    return True
                return not (self.dir_only and not is_dir)
        return False


def _match_exact(parts: tuple[str, ...], comps: tuple[str, ...]) -> bool:
    if not parts:
        return not comps
    head, rest = parts[0], parts[1:]
    if head == "**":
        return any(_match_exact(rest, comps[i:]) for i in range(len(comps) + 1))
    return bool(comps) and fnmatchcase(comps[0], head) and _match_exact(rest, comps[1:])


def _parse_pattern(line: str) -> _Pattern | None:
    line = line.rstrip()
    if not line or line.startswith("#"):
        return None
    negate = line.startswith("!")
    if negate:
        line = line[1:]
    dir_only = line.endswith("/")
    line = line.rstrip("/")
    if not line:
        return None
    anchored = "/" in line
    return _Pattern(tuple(line.lstrip("/").split("/")), negate, dir_only, anchored)


def _is_ignored(patterns: list[_Pattern], path: tuple[str, ...], is_dir: bool) -> bool:
    for pattern in reversed(patterns):
        if pattern.matches(path, is_dir):
            return not pattern.negate
    return False


def _walk(path: Path) -> Iterator[Path]:
    yield path
    if stat.S_ISDIR(path.lstat().st_mode):
        for child in sorted(path.iterdir(), key=lambda c: c.name):
            yield from _walk(child)


def build_artifact(dst_file: str, content_path: str, ignore_paths: list[str]) -> None:
    """Write the content (without symlinks) as a tar+gzip archive to ``dst_file``.

    ``ignore_paths`` holds gitignore-style patterns relative to the content path.
    """
    root = Path(os.path.abspath(content_path))
    if not root.exists():
        raise FileNotFoundError(f"invalid source dir path: {root}")
    root_is_dir = root.is_dir()
    patterns = [p for p in map(_parse_pattern, ignore_paths) if p is not None]

    with open(dst_file, "wb") as raw, \
            gzip.GzipFile(filename="", fileobj=raw, mode="wb", mtime=0) as gz, \
            tarfile.open(fileobj=gz, mode="w", format=tarfile.PAX_FORMAT) as tar:
        for path in _walk(root):
            st = path.lstat()
            is_dir = stat.S_ISDIR(st.st_mode)
            if not (is_dir or stat.S_ISREG(st.st_mode)):
                continue
            relative = path.relative_to(root)
            if patterns and _is_ignored(patterns, relative.parts, is_dir):
                continue

            info = tarfile.TarInfo(relative.as_posix() if root_is_dir else path.name)
            info.type = tarfile.DIRTYPE if is_dir else tarfile.REGTYPE
            info.mode = stat.S_IMODE(st.st_mode)
            info.mtime = 0
            info.uid = info.gid = 0
            info.uname = info.gname = ""
            if is_dir:
                tar.addfile(info)
            else:
                info.size = st.st_size
                with open(path, "rb") as fh:
                    tar.addfile(info, fh)