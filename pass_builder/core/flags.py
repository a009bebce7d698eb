"""
Flag resolution — ask llvm-config for the clang paths and build flags.

The ``--bindir`` query doubles as the reachability test: if the tool
cannot be spawned at all the caller falls back to the degraded build.
Once the tool has answered, any later failure is fatal.
"""
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from pass_builder.core.errors import ToolInvocationError, ToolUnreachableError
from pass_builder.core.platform import Platform
from pass_builder.core.process import RunFn, run_captured
from pass_builder.policy.profile import BuildProfile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolchainConfig:
    query_tool: str
    clang_path: Path
    clangxx_path: Path
    cxxflags: Tuple[str, ...]
    ldflags: Tuple[str, ...]


def tokenize(output: str) -> List[str]:
    """Split tool output on any run of whitespace."""
    return output.split()


def query_tool(
    tool: str,
    args: List[str],
    run: RunFn = subprocess.run,
    timeout: Optional[int] = None,
) -> str:
    """
    Run ``tool *args`` and return its stripped stdout.

    Raises ToolUnreachableError when the tool cannot be spawned and
    ToolInvocationError when it exits non-zero, times out or prints
    something that is not text.
    """
    cmd = [tool] + list(args)
    try:
        result = run_captured(cmd, run=run, timeout=timeout)
    except subprocess.TimeoutExpired:
        raise ToolInvocationError(tool, args, f"timed out after {timeout}s")
    except UnicodeDecodeError as e:
        raise ToolInvocationError(tool, args, f"invalid output: {e}")
    except OSError as e:
        raise ToolUnreachableError(tool, str(e))

    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        raise ToolInvocationError(
            tool, args, f"exit code {result.returncode}: {stderr}"
        )
    return (result.stdout or "").strip()


def _query_reachable(
    tool: str,
    args: List[str],
    run: RunFn,
    timeout: Optional[int],
) -> str:
    """query_tool for a tool that already answered once: nothing is recoverable."""
    try:
        return query_tool(tool, args, run=run, timeout=timeout)
    except ToolUnreachableError as e:
        raise ToolInvocationError(tool, args, e.reason)


def resolve_flags(
    tool: str,
    platform: Platform,
    profile: BuildProfile | None = None,
    run: RunFn = subprocess.run,
    timeout: Optional[int] = None,
) -> ToolchainConfig:
    """Query *tool* for bindir, cxxflags and ldflags and apply platform patches."""
    if profile is None:
        profile = BuildProfile.v1()

    bindir_out = query_tool(tool, ["--bindir"], run=run, timeout=timeout)
    if not bindir_out:
        raise ToolInvocationError(tool, ["--bindir"], "empty output")
    bindir = Path(bindir_out)
    logger.info("LLVM bindir: %s", bindir)

    cxxflags = tokenize(_query_reachable(tool, ["--cxxflags"], run, timeout))

    ld_args = ["--libs", "--ldflags"] if platform.is_apple else ["--ldflags"]
    ldflags = tokenize(_query_reachable(tool, ld_args, run, timeout))

    if platform.is_apple:
        # Passes leave LLVM symbols unresolved; the host clang supplies them at load.
        ldflags.extend(profile.apple_link_patch)

    return ToolchainConfig(
        query_tool=tool,
        clang_path=bindir / "clang",
        clangxx_path=bindir / "clang++",
        cxxflags=tuple(cxxflags),
        ldflags=tuple(ldflags),
    )
