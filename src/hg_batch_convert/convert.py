from __future__ import annotations

import contextlib
import dataclasses
import logging
import shutil
from pathlib import Path
from typing import Iterator

from .authors import LOG_TIMEOUT_S, build_mapping
from .errors import (
    ConversionError,
    DirectoryAccessError,
    FinalizeError,
    MappingIOError,
    RepositoryInitError,
    RepositoryResetError,
)
from .identity import OperatorIdentity
from .process import run_command, run_git

logger = logging.getLogger(__name__)

DEFAULT_FAST_EXPORT = "/tmp/fast-export/hg-fast-export.sh"


@dataclasses.dataclass(frozen=True)
class ConvertSettings:
    fast_export: str = DEFAULT_FAST_EXPORT
    # Legacy histories in this environment are Shift_JIS (Windows) encoded.
    source_encoding: str = "cp932"
    default_branch: str = "main"
    authors_filename: str = "authors.txt"
    log_timeout_s: float = LOG_TIMEOUT_S
    marker: str = ".hg"
    target_marker: str = ".git"
    dry_run: bool = False


@dataclasses.dataclass(frozen=True)
class RepoContext:
    """The repository being converted. Every command runs with `cwd=path`."""

    path: Path
    settings: ConvertSettings

    @property
    def authors_file(self) -> Path:
        return self.path / self.settings.authors_filename

    @property
    def target_metadata(self) -> Path:
        return self.path / self.settings.target_marker

    def fast_export_args(self) -> list[str]:
        return [
            "sh",
            self.settings.fast_export,
            "-r",
            ".",
            "--force",
            "--fe",
            self.settings.source_encoding,
            "-A",
            self.settings.authors_filename,
        ]

    def checkout_args(self) -> list[str]:
        return ["checkout", self.settings.default_branch, "--force"]


def enter_repository(repo: Path, settings: ConvertSettings) -> RepoContext:
    try:
        path = repo.resolve(strict=True)
    except OSError as e:
        raise DirectoryAccessError(repo, str(e)) from e
    if not path.is_dir():
        raise DirectoryAccessError(repo, "not a directory")
    return RepoContext(path=path, settings=settings)


def reset_target(ctx: RepoContext) -> None:
    target = ctx.target_metadata
    if not target.exists() and not target.is_symlink():
        return
    try:
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        else:
            target.unlink()
    except OSError as e:
        raise RepositoryResetError(ctx.path, f"cannot remove {target}: {e}") from e


def init_target(ctx: RepoContext) -> None:
    res = run_git(["init"], cwd=ctx.path, capture=False)
    if not res.ok:
        raise RepositoryInitError(ctx.path, f"git init exited {res.code} {res.stderr_text()}".strip())


@contextlib.contextmanager
def authors_mapping(ctx: RepoContext, identity: OperatorIdentity) -> Iterator[Path]:
    path = ctx.authors_file
    try:
        build_mapping(ctx.path, path, identity, timeout_s=ctx.settings.log_timeout_s)
        yield path
    except BaseException:
        # Keep the step's own error; a failed cleanup is only logged.
        try:
            _remove_authors_file(ctx, path)
        except MappingIOError as e:
            logger.warning("%s", e)
        raise
    _remove_authors_file(ctx, path)


def _remove_authors_file(ctx: RepoContext, path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        return
    except OSError as e:
        raise MappingIOError(ctx.path, f"cannot remove {path.name}: {e}") from e


def translate(ctx: RepoContext) -> None:
    # No deadline: history size is unbounded.
    res = run_command(ctx.fast_export_args(), cwd=ctx.path, capture=False)
    if not res.ok:
        raise ConversionError(ctx.path, f"hg-fast-export exited {res.code} {res.stderr_text()}".strip())


def finalize(ctx: RepoContext) -> None:
    res = run_git(ctx.checkout_args(), cwd=ctx.path, capture=False)
    if not res.ok:
        raise FinalizeError(ctx.path, f"git checkout {ctx.settings.default_branch} exited {res.code} {res.stderr_text()}".strip())


def _describe(ctx: RepoContext) -> None:
    logger.info("[dry-run] %s", ctx.path)
    logger.info("[dry-run]   remove %s", ctx.target_metadata)
    logger.info("[dry-run]   git init")
    logger.info("[dry-run]   hg log -T '{author}\\n' > %s", ctx.settings.authors_filename)
    logger.info("[dry-run]   %s", " ".join(ctx.fast_export_args()))
    logger.info("[dry-run]   git %s", " ".join(ctx.checkout_args()))


def convert_repository(repo: Path, identity: OperatorIdentity, settings: ConvertSettings) -> RepoContext:
    """
    Convert one Mercurial repository to git in place:
    reset .git, git init, write the authors map, run hg-fast-export, check out
    the default branch. Any step failure raises a ConversionFailure subclass for
    this repository only. The authors file never outlives the call.
    """
    ctx = enter_repository(repo, settings)
    if settings.dry_run:
        _describe(ctx)
        return ctx

    logger.debug("%s: reset %s", ctx.path, ctx.target_metadata.name)
    reset_target(ctx)
    logger.debug("%s: git init", ctx.path)
    init_target(ctx)
    with authors_mapping(ctx, identity):
        logger.debug("%s: hg-fast-export (--fe %s)", ctx.path, settings.source_encoding)
        translate(ctx)
    logger.debug("%s: checkout %s", ctx.path, settings.default_branch)
    finalize(ctx)
    logger.info("converted %s", ctx.path)
    return ctx
