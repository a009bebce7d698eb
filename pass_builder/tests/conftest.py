"""
Shared pytest fixtures for pass_builder tests.

Every external command goes through FakeRun, a recording stand-in for
``subprocess.run``: query commands answer from a response table,
compiler commands touch their ``-o`` output, ``ar crs`` touches the
archive.  No LLVM, clang or C compiler is needed.

Tests that exercise real process spawning use stub shell scripts and
are skipped on Windows.
"""
from __future__ import annotations

import stat
import subprocess
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import pytest

from pass_builder.config import Settings
from pass_builder.policy.profile import BuildProfile

LLVM_CONFIG = "llvm-config"
BINDIR = "/opt/llvm/bin"


class FakeRun:
    """Recording replacement for subprocess.run."""

    def __init__(
        self,
        responses: Optional[Dict[Tuple[str, ...], str]] = None,
        missing: Iterable[str] = (),
        failing: Iterable[str] = (),
        exit_codes: Optional[Dict[Tuple[str, ...], int]] = None,
        compile_stderr: str = "",
    ):
        self.responses = dict(responses or {})
        self.missing = set(missing)
        self.failing = set(failing)
        self.exit_codes = dict(exit_codes or {})
        self.compile_stderr = compile_stderr
        self.calls: List[List[str]] = []

    def __call__(self, cmd, capture_output=False, text=False, timeout=None, **kwargs):
        cmd = [str(c) for c in cmd]
        self.calls.append(cmd)
        if cmd[0] in self.missing:
            raise FileNotFoundError(2, "No such file or directory", cmd[0])

        key = tuple(cmd)
        if key in self.responses or key in self.exit_codes:
            code = self.exit_codes.get(key, 0)
            stderr = "" if code == 0 else "query failed"
            return subprocess.CompletedProcess(cmd, code, self.responses.get(key, ""), stderr)

        if "-o" in cmd:
            if any(Path(part).name in self.failing for part in cmd):
                return subprocess.CompletedProcess(cmd, 1, "", "error: compile failed\n")
            out = Path(cmd[cmd.index("-o") + 1])
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_bytes(b"stub")
            return subprocess.CompletedProcess(cmd, 0, "", self.compile_stderr)

        if len(cmd) > 2 and cmd[1] == "crs":
            Path(cmd[2]).write_bytes(b"!<arch>\n")
            return subprocess.CompletedProcess(cmd, 0, "", "")

        return subprocess.CompletedProcess(cmd, 0, "", "")

    def calls_to(self, exe: str) -> List[List[str]]:
        return [c for c in self.calls if c[0] == exe]


def llvm_responses(
    tool: str = LLVM_CONFIG,
    bindir: str = BINDIR,
    cxxflags: str = "-I/x",
    ldflags: str = "-L/y",
    libs: str = "-lLLVM",
) -> Dict[Tuple[str, ...], str]:
    """Response table for a reachable llvm-config."""
    return {
        (tool, "--bindir"): bindir + "\n",
        (tool, "--cxxflags"): cxxflags + "\n",
        (tool, "--ldflags"): ldflags + "\n",
        (tool, "--libs", "--ldflags"): f"{libs}\n{ldflags}\n",
    }


@pytest.fixture
def fake_run() -> FakeRun:
    return FakeRun(responses=llvm_responses())


@pytest.fixture
def profile() -> BuildProfile:
    return BuildProfile.v1()


@pytest.fixture
def src_dir(tmp_path, profile) -> Path:
    """Source tree with placeholder pass, header and runtime units."""
    d = tmp_path / "src"
    d.mkdir()
    for name in profile.shared_headers:
        (d / name).write_text("#pragma once\n")
    for target in profile.plugin_targets:
        (d / target.source_unit).write_text(f"// {target.output_base}\n")
    (d / profile.support_target.source_unit).write_text("void __no_link_rt(void) {}\n")
    return d


@pytest.fixture
def out_dir(tmp_path) -> Path:
    return tmp_path / "out"


@pytest.fixture
def linux_settings() -> Settings:
    return Settings(
        PASS_BUILDER_TARGET_OS="linux",
        PASS_BUILDER_TARGET_VENDOR="unknown",
        PASS_BUILDER_TIMEOUT=None,
        CC="cc",
        AR="ar",
    )


@pytest.fixture
def posix_only():
    if sys.platform == "win32":
        pytest.skip("stub shell scripts need a POSIX shell")


def write_script(path: Path, body: str) -> Path:
    """Write an executable /bin/sh script."""
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path
