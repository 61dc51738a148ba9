from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path
from typing import Callable, Iterable

from .errors import ConversionFailure, DirectoryAccessError

logger = logging.getLogger(__name__)

MARKER = ".hg"

ConvertFn = Callable[[Path], object]


def is_repository(names: Iterable[str], marker: str = MARKER) -> bool:
    return any(n == marker for n in names)


@dataclasses.dataclass
class WalkReport:
    converted: list[Path] = dataclasses.field(default_factory=list)
    failed: list[tuple[Path, str]] = dataclasses.field(default_factory=list)
    unreadable: list[tuple[Path, str]] = dataclasses.field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.converted) + len(self.failed)


def _list_dir(path: Path) -> list[os.DirEntry]:
    try:
        with os.scandir(path) as it:
            return sorted(it, key=lambda e: e.name)
    except OSError as e:
        raise DirectoryAccessError(path, e.strerror or str(e)) from e


def _is_subdir(entry: os.DirEntry) -> bool:
    try:
        return entry.is_dir(follow_symlinks=False)
    except OSError:
        return False


class RepoWalker:
    """
    Depth-first scan for Mercurial repositories.

    A directory containing the marker is handed to `convert` and nothing below it
    is visited. Everything else is a container whose subdirectories are scanned in
    name order. One repository failing never stops the scan.
    """

    def __init__(self, convert: ConvertFn, marker: str = MARKER) -> None:
        self.convert = convert
        self.marker = marker
        self.report = WalkReport()

    def walk(self, root: Path) -> WalkReport:
        entries = _list_dir(root)
        if is_repository((e.name for e in entries), self.marker):
            self._convert_one(root)
            return self.report
        for entry in entries:
            if not _is_subdir(entry):
                continue
            child = root / entry.name
            try:
                self.walk(child)
            except DirectoryAccessError as e:
                logger.warning("%s", e)
                self.report.unreadable.append((child, e.reason))
        return self.report

    def _convert_one(self, repo: Path) -> None:
        prev = Path.cwd()
        try:
            self.convert(repo)
        except (DirectoryAccessError, ConversionFailure) as e:
            logger.error("%s", e)
            self.report.failed.append((repo, str(e)))
        else:
            self.report.converted.append(repo)
        finally:
            if Path.cwd() != prev:
                os.chdir(prev)
