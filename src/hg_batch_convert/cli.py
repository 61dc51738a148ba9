from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from . import identity
from .config import DEFAULT_CONFIG_NAME, global_timeout_from, load_config, settings_from
from .convert import convert_repository
from .errors import DirectoryAccessError, FatalError
from .walker import RepoWalker

logger = logging.getLogger("hg_batch_convert")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hg-batch-convert",
        description="Convert every Mercurial repository under a directory tree to git, in place.",
    )
    parser.add_argument("--root", type=Path, default=Path("."), help="Directory tree to scan (default: current directory).")
    parser.add_argument("--config", type=Path, default=Path(DEFAULT_CONFIG_NAME), help="Optional JSON settings file.")
    parser.add_argument("--fast-export", type=str, default="", help="Path to hg-fast-export.sh.")
    parser.add_argument("--encoding", type=str, default="", help="File name encoding of the Mercurial histories (default: cp932).")
    parser.add_argument("--branch", type=str, default="", help="Branch to check out after conversion (default: main).")
    parser.add_argument("--dry-run", action="store_true", help="List the repositories and commands without running them.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every conversion step.")
    return parser


def _setup_logging(verbose: bool) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(name)s: %(levelname)s: %(message)s"))
    logger.handlers[:] = [handler]
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    args = _build_parser().parse_args(argv)
    _setup_logging(bool(args.verbose))

    try:
        config = load_config(args.config)
        settings = settings_from(config, args)
        if settings.dry_run:
            operator = identity.OperatorIdentity(name="(dry-run)", email="(dry-run)")
        else:
            operator = identity.load(timeout_s=global_timeout_from(config))
    except FatalError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    scan_root = args.root
    walker = RepoWalker(lambda repo: convert_repository(repo, operator, settings), marker=settings.marker)
    logger.info("scanning %s for Mercurial repositories", scan_root.resolve())
    try:
        report = walker.walk(scan_root)
    except DirectoryAccessError as e:
        logger.error("%s", e)
        return 1

    print(
        f"Done. {report.attempted} repositories: {len(report.converted)} converted, {len(report.failed)} failed, "
        f"{len(report.unreadable)} unreadable directories."
    )
    for _repo, reason in report.failed:
        print(f"  failed: {reason}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
