from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import pytest

# One script serves as git, hg and sh; it records every call as a JSON line.
_FAKE_TOOL = r'''
import json
import os
import sys
import time

tool = os.path.basename(sys.argv[0])
args = sys.argv[1:]
cwd = os.getcwd()
entry = {"tool": tool, "args": args, "cwd": cwd}


def env_code(name):
    return int(os.environ.get(name, "0") or "0")


def main():
    if tool == "git":
        if args[:1] == ["config"] and os.environ.get("FAKE_GIT_SLOW_CONFIG"):
            time.sleep(30)
        if args[:2] == ["config", "--global"] and len(args) == 4:
            return env_code("FAKE_GIT_SET_EXIT")
        if args[:2] == ["config", "--global"] and len(args) == 3:
            value = os.environ.get("FAKE_GIT_" + args[2].replace(".", "_").upper())
            if value is None:
                return 1
            sys.stdout.write(value)
            return 0
        if args[:1] == ["init"]:
            os.makedirs(os.path.join(cwd, ".git"), exist_ok=True)
            return env_code("FAKE_GIT_INIT_EXIT")
        if args[:1] == ["checkout"]:
            return 1 if os.path.exists(os.path.join(cwd, ".fail_checkout")) else 0
        return 2
    if tool == "hg":
        if os.path.exists(os.path.join(cwd, ".slow_log")):
            time.sleep(30)
        if os.path.exists(os.path.join(cwd, ".fail_log")):
            sys.stderr.write("abort: repository corrupt\n")
            return 255
        path = os.path.join(cwd, ".authors_fixture")
        if os.path.exists(path):
            with open(path, "rb") as f:
                sys.stdout.buffer.write(f.read())
        return 0
    if tool == "sh":
        authors = args[args.index("-A") + 1]
        with open(os.path.join(cwd, authors), "rb") as f:
            entry["authors"] = f.read().decode("utf-8", "surrogateescape").splitlines()
        return 1 if os.path.exists(os.path.join(cwd, ".fail_export")) else 0
    return 2


code = main()
with open(os.environ["FAKE_TOOL_LOG"], "a", encoding="utf-8") as log:
    log.write(json.dumps(entry) + "\n")
sys.exit(code)
'''


class FakeTools:
    def __init__(self, bin_dir: Path, log_path: Path) -> None:
        self.bin_dir = bin_dir
        self.log_path = log_path

    def calls(self) -> list[dict]:
        if not self.log_path.exists():
            return []
        return [json.loads(line) for line in self.log_path.read_text(encoding="utf-8").splitlines() if line]

    def calls_in(self, repo: Path) -> list[list[str]]:
        return [[c["tool"], *c["args"]] for c in self.calls() if Path(c["cwd"]) == repo.resolve()]


@pytest.fixture
def fake_tools(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> FakeTools:
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    script = f"#!{sys.executable}\n" + _FAKE_TOOL
    for name in ("git", "hg", "sh"):
        p = bin_dir / name
        p.write_text(script, encoding="utf-8")
        p.chmod(0o755)
    log_path = tmp_path / "calls.jsonl"
    monkeypatch.setenv("PATH", str(bin_dir) + os.pathsep + os.environ.get("PATH", ""))
    monkeypatch.setenv("FAKE_TOOL_LOG", str(log_path))
    monkeypatch.setenv("FAKE_GIT_USER_NAME", "Ann\n")
    monkeypatch.setenv("FAKE_GIT_USER_EMAIL", " ann@x.com\n")
    return FakeTools(bin_dir, log_path)


def make_hg_repo(path: Path, authors: list[str] | None = None) -> Path:
    (path / ".hg").mkdir(parents=True)
    if authors is not None:
        (path / ".authors_fixture").write_text("".join(a + "\n" for a in authors), encoding="utf-8")
    return path
