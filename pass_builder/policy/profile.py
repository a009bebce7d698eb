"""
Profile — the fixed pass set and the knobs around it.

The profile pins which translation units get built, which environment
variables steer the build and the llvm-config version window the probe
scans.  Core modules take these from the profile and hold no constants
of their own.
"""
from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True)
class BuildTarget:
    """One source unit and the base name of the artifact it produces."""

    source_unit: str
    output_base: str


# Compile order is fixed so repeated builds invoke clang++ identically.
PLUGIN_TARGETS: Tuple[BuildTarget, ...] = (
    BuildTarget("cmplog-routines-pass.cc", "cmplog-routines-pass"),
    BuildTarget("afl-coverage-pass.cc", "afl-coverage-pass"),
    BuildTarget("autotokens-pass.cc", "autotokens-pass"),
    BuildTarget("coverage-accounting-pass.cc", "coverage-accounting-pass"),
)

SUPPORT_TARGET = BuildTarget("no-link-rt.c", "no-link-rt")


@dataclass(frozen=True)
class BuildProfile:
    """Describes what gets built and which inputs control it."""

    profile_id: str

    plugin_targets: Tuple[BuildTarget, ...]
    support_target: BuildTarget
    shared_headers: Tuple[str, ...] = ()

    # Probe
    query_tool: str = "llvm-config"
    override_env: str = "LLVM_CONFIG"
    llvm_version_min: int = 6
    llvm_version_max: int = 33

    # Map sizes
    edges_env: str = "LIBAFL_EDGES_MAP_SIZE"
    accounting_env: str = "LIBAFL_ACCOUNTING_MAP_SIZE"
    default_map_size: int = 65536

    # Degraded-mode constants
    fallback_clang: str = "clang"
    fallback_clangxx: str = "clang++"

    apple_link_patch: Tuple[str, ...] = field(default=("-undefined", "dynamic_lookup"))

    @property
    def tracked_env(self) -> Tuple[str, ...]:
        """Environment variables whose change invalidates a previous build."""
        return (self.override_env, self.edges_env, self.accounting_env)

    @classmethod
    def v1(cls) -> "BuildProfile":
        """The four LLVM passes plus the no-link runtime."""
        return cls(
            profile_id="llvm-passes-v1",
            plugin_targets=PLUGIN_TARGETS,
            support_target=SUPPORT_TARGET,
            shared_headers=("common-llvm.h",),
        )
