"""
Toolchain probe — find an llvm-config to query.

Two strategies, picked once from the target platform:

  * BrewCellarStrategy (apple vendor): ask Homebrew for its cellar and
    take the lexicographically last ``llvm/*/bin/llvm-config`` in it.
    Versioned cellar directories make "last" approximate "newest".
  * VersionScanStrategy (everything else): walk ``llvm-config-<v>`` from
    the newest supported version down and take the first on PATH.

The ``LLVM_CONFIG`` override beats both and is trusted as-is.  Probing
never raises; when nothing is found the bare tool name is returned and
the flag query decides whether the toolchain is reachable.
"""
import glob
import logging
import shutil
import subprocess
from dataclasses import dataclass
from enum import Enum, unique
from typing import Callable, List, Mapping, Optional, Union

from pass_builder.core.platform import Platform
from pass_builder.core.process import RunFn, run_captured
from pass_builder.policy.profile import BuildProfile

logger = logging.getLogger(__name__)


@unique
class ProbeSource(str, Enum):
    OVERRIDE = "override"
    BREW = "brew"
    VERSION_SCAN = "version_scan"


@dataclass(frozen=True)
class Found:
    path: str
    source: ProbeSource


@dataclass(frozen=True)
class Fallback:
    name: str
    reason: Optional[str] = None


ProbeResult = Union[Found, Fallback]


def tool_of(result: ProbeResult) -> str:
    """The command to invoke for a probe result."""
    if isinstance(result, Found):
        return result.path
    return result.name


# ── Version scan ─────────────────────────────────────────────────────────────

def scan_versions(
    lo: int,
    hi: int,
    exists: Callable[[int], bool],
) -> Optional[int]:
    """Highest version in the inclusive range [lo, hi] for which *exists* holds."""
    for version in range(hi, lo - 1, -1):
        if exists(version):
            return version
    return None


def _on_path(name: str) -> bool:
    return shutil.which(name) is not None


class VersionScanStrategy:
    """Probe ``<tool>-<version>`` names on PATH, newest first."""

    def __init__(
        self,
        profile: BuildProfile,
        exists: Callable[[str], bool] = _on_path,
    ):
        self.profile = profile
        self.exists = exists

    def candidate(self, version: int) -> str:
        return f"{self.profile.query_tool}-{version}"

    def probe(self) -> ProbeResult:
        version = scan_versions(
            self.profile.llvm_version_min,
            self.profile.llvm_version_max,
            lambda v: self.exists(self.candidate(v)),
        )
        if version is None:
            return Fallback(self.profile.query_tool)
        return Found(self.candidate(version), ProbeSource.VERSION_SCAN)


# ── Homebrew cellar ──────────────────────────────────────────────────────────

class BrewCellarStrategy:
    """Locate llvm-config inside the Homebrew cellar."""

    def __init__(
        self,
        profile: BuildProfile,
        run: RunFn = subprocess.run,
        glob_fn: Callable[[str], List[str]] = glob.glob,
    ):
        self.profile = profile
        self.run = run
        self.glob_fn = glob_fn

    def probe(self) -> ProbeResult:
        tool = self.profile.query_tool
        try:
            result = run_captured(["brew", "--cellar"], run=self.run)
            cellar = (result.stdout or "").strip()
        except UnicodeDecodeError:
            cellar = ""
        except OSError as e:
            return Fallback(tool, reason=f"Could not execute brew --cellar: {e}")

        if not cellar:
            return Fallback(tool, reason="Empty return from brew --cellar")

        pattern = f"{cellar}/llvm/*/bin/{tool}"
        matches = sorted(self.glob_fn(pattern))
        if not matches:
            return Fallback(
                tool,
                reason=f"No {tool} found in brew cellar with pattern {pattern}",
            )
        return Found(matches[-1], ProbeSource.BREW)


ProbeStrategy = Union[VersionScanStrategy, BrewCellarStrategy]


def select_strategy(
    platform: Platform,
    profile: BuildProfile,
    run: RunFn = subprocess.run,
) -> ProbeStrategy:
    """Pick the probe strategy for *platform* once, at startup."""
    if platform.is_apple:
        return BrewCellarStrategy(profile, run=run)
    return VersionScanStrategy(profile)


def probe(
    strategy: ProbeStrategy,
    env: Mapping[str, str],
    profile: BuildProfile,
    warnings: Optional[List[str]] = None,
) -> ProbeResult:
    """
    Resolve the llvm-config to use.

    The override variable wins without any existence check.  A strategy
    fallback that carries a reason is logged as a warning and, when
    *warnings* is given, appended to it.
    """
    override = env.get(profile.override_env)
    if override is not None:
        logger.debug("Using %s=%s", profile.override_env, override)
        return Found(override, ProbeSource.OVERRIDE)

    result = strategy.probe()
    if isinstance(result, Fallback) and result.reason:
        logger.warning(result.reason)
        if warnings is not None:
            warnings.append(result.reason)
    elif isinstance(result, Found):
        logger.info("Found %s via %s", result.path, result.source.value)
    return result
