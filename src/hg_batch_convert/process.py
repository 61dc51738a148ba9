from __future__ import annotations

import dataclasses
import subprocess
from pathlib import Path
from typing import Optional


@dataclasses.dataclass(frozen=True)
class CommandResult:
    code: int
    stdout: bytes
    stderr: bytes

    @property
    def ok(self) -> bool:
        return self.code == 0

    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace").strip()


class CommandTimeout(Exception):
    def __init__(self, args: list[str], timeout_s: float) -> None:
        super().__init__(f"{' '.join(args)} did not finish within {timeout_s:g}s")
        self.command = list(args)
        self.timeout_s = timeout_s


def run_command(
    args: list[str],
    cwd: Path,
    timeout_s: Optional[float] = None,
    capture: bool = True,
) -> CommandResult:
    """
    Run one external command to completion in `cwd`.

    With `capture=False` stdout/stderr go straight to the operator's terminal and
    the returned streams are empty. A deadline kills the child and raises
    `CommandTimeout`. A command that cannot be spawned yields exit code 127.
    """
    try:
        proc = subprocess.run(
            args,
            cwd=str(cwd),
            capture_output=capture,
            timeout=timeout_s,
        )
    except subprocess.TimeoutExpired as e:
        raise CommandTimeout(args, float(timeout_s or 0)) from e
    except OSError as e:
        return CommandResult(127, b"", str(e).encode("utf-8"))
    return CommandResult(proc.returncode, proc.stdout or b"", proc.stderr or b"")


def run_git(args: list[str], cwd: Path, timeout_s: Optional[float] = None, capture: bool = True) -> CommandResult:
    return run_command(["git", *args], cwd=cwd, timeout_s=timeout_s, capture=capture)


def run_hg(args: list[str], cwd: Path, timeout_s: Optional[float] = None, capture: bool = True) -> CommandResult:
    return run_command(["hg", *args], cwd=cwd, timeout_s=timeout_s, capture=capture)
