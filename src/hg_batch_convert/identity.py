from __future__ import annotations

import dataclasses
import logging
import time
from pathlib import Path
from typing import Optional

from .errors import ConfigurationError
from .process import CommandTimeout, run_git

logger = logging.getLogger(__name__)

GLOBAL_SETUP_TIMEOUT_S = 60.0

# Both are required for hg-fast-export to reproduce file names faithfully.
FORCED_GLOBAL_SETTINGS: tuple[tuple[str, str], ...] = (
    ("core.ignoreCase", "false"),
    ("core.quotepath", "false"),
)


@dataclasses.dataclass(frozen=True)
class OperatorIdentity:
    name: str
    email: str

    @property
    def line(self) -> str:
        return f"{self.name} <{self.email}>"


class _Deadline:
    def __init__(self, timeout_s: float) -> None:
        self.timeout_s = timeout_s
        self._end = time.monotonic() + timeout_s

    def remaining(self) -> float:
        left = self._end - time.monotonic()
        if left <= 0:
            raise ConfigurationError(f"global git setup exceeded {self.timeout_s:g}s")
        return left


def prepare_global_settings(cwd: Path, deadline: Optional[_Deadline] = None) -> None:
    deadline = deadline or _Deadline(GLOBAL_SETUP_TIMEOUT_S)
    for key, value in FORCED_GLOBAL_SETTINGS:
        try:
            res = run_git(["config", "--global", key, value], cwd=cwd, timeout_s=deadline.remaining())
        except CommandTimeout as e:
            raise ConfigurationError(f"setting {key}: {e}") from e
        if not res.ok:
            raise ConfigurationError(f"git config --global {key} {value} exited {res.code}: {res.stderr_text()}")
        logger.debug("git config --global %s %s", key, value)


def _read_global(key: str, cwd: Path, deadline: _Deadline) -> str:
    try:
        res = run_git(["config", "--global", key], cwd=cwd, timeout_s=deadline.remaining())
    except CommandTimeout as e:
        raise ConfigurationError(f"reading {key}: {e}") from e
    if not res.ok:
        raise ConfigurationError(f"git config --global {key} is not set (exit {res.code})")
    try:
        value = res.stdout.decode("utf-8").strip()
    except UnicodeDecodeError as e:
        raise ConfigurationError(f"git config --global {key} is not valid UTF-8") from e
    if not value:
        raise ConfigurationError(f"git config --global {key} is empty")
    return value


def load_operator_identity(cwd: Path, deadline: Optional[_Deadline] = None) -> OperatorIdentity:
    deadline = deadline or _Deadline(GLOBAL_SETUP_TIMEOUT_S)
    name = _read_global("user.name", cwd, deadline)
    email = _read_global("user.email", cwd, deadline)
    return OperatorIdentity(name=name, email=email)


def load(cwd: Optional[Path] = None, timeout_s: float = GLOBAL_SETUP_TIMEOUT_S) -> OperatorIdentity:
    """
    Force the global git settings the converter relies on, then read the operator
    identity every historical author is rewritten to. Both share one deadline.
    Raises ConfigurationError on any failure; callers treat that as fatal.
    """
    cwd = cwd or Path.cwd()
    deadline = _Deadline(timeout_s)
    prepare_global_settings(cwd, deadline)
    identity = load_operator_identity(cwd, deadline)
    logger.info("operator identity: %s", identity.line)
    return identity
