from __future__ import annotations

import logging
from pathlib import Path

from .errors import MappingIOError, MappingTimeoutError
from .identity import OperatorIdentity
from .process import CommandTimeout, run_hg

logger = logging.getLogger(__name__)

LOG_TIMEOUT_S = 10.0

# hg log output and the authors file are both raw bytes in whatever encoding the
# history used; surrogateescape round-trips them unchanged.
_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


def collect_authors(repo: Path, timeout_s: float = LOG_TIMEOUT_S) -> set[str]:
    """Return every distinct author string recorded in the repository's history."""
    try:
        res = run_hg(["log", "-T", "{author}\n"], cwd=repo, timeout_s=timeout_s)
    except CommandTimeout as e:
        raise MappingTimeoutError(repo, str(e)) from e
    if not res.ok:
        raise MappingIOError(repo, f"hg log exited {res.code}: {res.stderr_text()}")

    authors: set[str] = set()
    # Only "\n" ends a record; other line-break characters belong to the author.
    for line in res.stdout.decode(_ENCODING, errors=_ERRORS).split("\n"):
        line = line.strip(" \t\r")
        if line:
            authors.add(line)
    return authors


def _quote(s: str) -> str:
    return '"' + s.replace("\\", "\\\\").replace('"', '\\"') + '"'


def format_mapping_line(author: str, identity: OperatorIdentity) -> str:
    return f"{_quote(author)}={_quote(identity.line)}"


def write_authors_file(path: Path, authors: set[str], identity: OperatorIdentity) -> None:
    # Written even when there are no authors: the converter is always given -A.
    lines = [format_mapping_line(a, identity) + "\n" for a in sorted(authors)]
    try:
        with path.open("w", encoding=_ENCODING, errors=_ERRORS, newline="\n") as f:
            f.writelines(lines)
    except OSError as e:
        raise MappingIOError(path.parent, f"cannot write {path.name}: {e}") from e


def build_mapping(repo: Path, output: Path, identity: OperatorIdentity, timeout_s: float = LOG_TIMEOUT_S) -> int:
    authors = collect_authors(repo, timeout_s=timeout_s)
    write_authors_file(output, authors, identity)
    logger.debug("%s: mapped %d author(s) to %s", repo, len(authors), identity.line)
    return len(authors)
