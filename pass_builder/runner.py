"""
Build runner — top-level orchestration: environment → constants + passes + runtime.

Order is fixed:
    map sizes → probe → (flags → pass libraries) | degraded constants → runtime

The only recoverable failure is an unreachable llvm-config: the build
then writes the bare clang constants, skips the passes, still builds the
runtime archive and finishes with a single warning.
"""
from __future__ import annotations

import argparse
import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import List, Mapping, Optional

from pydantic import ValidationError

from pass_builder.config import Settings
from pass_builder.core.compile import PassCompiler, archive_name
from pass_builder.core.errors import PassBuildError, ToolUnreachableError
from pass_builder.core.fingerprint import RebuildTriggers, compute_fingerprint, is_up_to_date
from pass_builder.core.flags import ToolchainConfig, resolve_flags
from pass_builder.core.numeric import NumericConfig, resolve_numeric_config
from pass_builder.core.platform import Platform
from pass_builder.core.probe import (
    Found,
    ProbeResult,
    ProbeStrategy,
    probe,
    select_strategy,
    tool_of,
)
from pass_builder.core.process import RunFn
from pass_builder.io.schema import (
    BuildMode,
    BuildReceipt,
    NumericInfo,
    PlatformInfo,
    ProbeInfo,
    ToolchainInfo,
    now_iso,
)
from pass_builder.io.writer import CONSTANTS_FILENAME, emit_constants, read_receipt, write_receipt
from pass_builder.policy.profile import BuildProfile

logger = logging.getLogger(__name__)


# ── Conversion helpers ───────────────────────────────────────────────────────

def _platform_info(platform: Platform) -> PlatformInfo:
    return PlatformInfo(
        os_family=platform.os_family.value,
        vendor=platform.vendor.value,
        shared_library_suffix=platform.shared_library_suffix,
    )


def _probe_info(result: ProbeResult) -> ProbeInfo:
    if isinstance(result, Found):
        return ProbeInfo(tool=result.path, found=True, source=result.source.value)
    return ProbeInfo(tool=result.name, found=False, reason=result.reason)


def _numeric_info(numeric: NumericConfig) -> NumericInfo:
    return NumericInfo(
        edges_map_size=numeric.edges_map_size,
        accounting_map_size=numeric.accounting_map_size,
    )


def _toolchain_info(toolchain: ToolchainConfig) -> ToolchainInfo:
    return ToolchainInfo(
        query_tool=toolchain.query_tool,
        clang_path=str(toolchain.clang_path),
        clangxx_path=str(toolchain.clangxx_path),
        cxxflags=list(toolchain.cxxflags),
        ldflags=list(toolchain.ldflags),
    )


def degraded_warning(tool: str, profile: BuildProfile) -> str:
    return (
        f"Failed to locate the LLVM path using {tool}, we will not build LLVM passes "
        f"(if you need them, point the {profile.override_env} env to a recent "
        f"{profile.query_tool}, or make sure {tool} is available)"
    )


# ── Public API ───────────────────────────────────────────────────────────────

def run_build(
    settings: Settings,
    env: Mapping[str, str],
    src_dir: Path | None = None,
    out_dir: Path | None = None,
    profile: BuildProfile | None = None,
    run: RunFn = subprocess.run,
    strategy: ProbeStrategy | None = None,
    force: bool = False,
) -> BuildReceipt:
    """
    Run the whole pipeline once.

    Parameters
    ----------
    settings : Settings
        Layout, target platform, timeout and support toolchain.
    env : Mapping[str, str]
        Environment snapshot; the override and map-size variables are
        read from here and nowhere else.
    src_dir, out_dir : Path, optional
        Override the directories from *settings*.
    profile : BuildProfile, optional
        Defaults to BuildProfile.v1().
    run : callable
        ``subprocess.run`` replacement used for every external command.
    strategy : ProbeStrategy, optional
        Probe strategy; chosen from the platform when omitted.
    force : bool
        Rebuild even when the previous receipt is still current.

    Returns
    -------
    BuildReceipt

    Raises
    ------
    PassBuildError
        SizeParseError, ToolInvocationError or CompileError; all fatal.
    """
    if profile is None:
        profile = BuildProfile.v1()

    # ── Step 1: map sizes (fatal before anything touches the disk) ──────
    numeric = resolve_numeric_config(env, profile)

    platform = Platform.from_target(
        settings.PASS_BUILDER_TARGET_OS,
        settings.PASS_BUILDER_TARGET_VENDOR,
    )
    src_dir = src_dir or Path(settings.PASS_BUILDER_SRC_DIR)
    out_dir = out_dir or Path(settings.PASS_BUILDER_OUT_DIR)

    triggers = RebuildTriggers.for_profile(profile, src_dir, Path(__file__))
    fingerprint = compute_fingerprint(triggers, env, {
        "os_family": platform.os_family.value,
        "vendor": platform.vendor.value,
        "cc": settings.CC,
        "ar": settings.AR,
        "profile_id": profile.profile_id,
    })
    if not force:
        previous = read_receipt(out_dir)
        if is_up_to_date(previous, fingerprint, out_dir):
            logger.info("Inputs unchanged since %s, nothing to do", previous.finished_at)
            return previous

    created_at = now_iso()
    warnings: List[str] = []

    # ── Step 2: probe ───────────────────────────────────────────────────
    if strategy is None:
        strategy = select_strategy(platform, profile, run=run)
    probe_result = probe(strategy, env, profile, warnings)
    tool = tool_of(probe_result)

    compiler = PassCompiler(
        numeric=numeric,
        platform=platform,
        src_dir=src_dir,
        out_dir=out_dir,
        profile=profile,
        run=run,
        timeout=settings.PASS_BUILDER_TIMEOUT,
    )

    # ── Step 3: flags, or degrade ───────────────────────────────────────
    toolchain: Optional[ToolchainConfig]
    try:
        toolchain = resolve_flags(
            tool, platform, profile, run=run, timeout=settings.PASS_BUILDER_TIMEOUT,
        )
    except ToolUnreachableError as e:
        logger.debug("Toolchain unreachable: %s", e)
        toolchain = None
        message = degraded_warning(tool, profile)
        logger.warning(message)
        warnings.append(message)

    emit_constants(numeric, toolchain, out_dir, profile)
    artifacts = [CONSTANTS_FILENAME]

    # ── Step 4: pass libraries ──────────────────────────────────────────
    units = []
    if toolchain is not None:
        units.extend(compiler.compile_plugins(toolchain))
        artifacts.extend(
            compiler.plugin_output(t).relative_to(out_dir).as_posix()
            for t in profile.plugin_targets
        )
    else:
        # Libraries from an earlier full build no longer match the constants
        for t in profile.plugin_targets:
            compiler.plugin_output(t).unlink(missing_ok=True)

    # ── Step 5: runtime archive (unconditional) ─────────────────────────
    units.extend(compiler.compile_support(settings.CC, settings.AR))
    artifacts.append(archive_name(profile.support_target))

    receipt = BuildReceipt(
        created_at=created_at,
        finished_at=now_iso(),
        mode=BuildMode.FULL if toolchain is not None else BuildMode.DEGRADED,
        platform=_platform_info(platform),
        probe=_probe_info(probe_result),
        numeric=_numeric_info(numeric),
        toolchain=_toolchain_info(toolchain) if toolchain is not None else None,
        units=units,
        artifacts=artifacts,
        warnings=warnings,
        fingerprint=fingerprint,
    )
    write_receipt(receipt, out_dir)

    logger.info(
        "Build finished: mode=%s units=%d artifacts=%d",
        receipt.mode.value, len(units), len(artifacts),
    )
    return receipt


# ── CLI ──────────────────────────────────────────────────────────────────────

def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="pass-builder",
        description="pass_builder — locate LLVM and build the instrumentation passes",
    )
    parser.add_argument(
        "--src-dir",
        type=Path,
        default=None,
        help="Directory holding the pass and runtime sources (default: $PASS_BUILDER_SRC_DIR or src)",
    )
    parser.add_argument(
        "--out-dir",
        type=Path,
        default=None,
        help="Directory to write artifacts (default: $PASS_BUILDER_OUT_DIR or build)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Rebuild even if no tracked input changed",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = Settings()
    except ValidationError as e:
        logger.error("Invalid builder settings: %s", e)
        return 1

    try:
        receipt = run_build(
            settings,
            dict(os.environ),
            src_dir=args.src_dir,
            out_dir=args.out_dir,
            force=args.force,
        )
    except PassBuildError as e:
        logger.error("%s", e)
        return 1

    print(f"Mode: {receipt.mode.value}")
    for rel in receipt.artifacts:
        print(f"  {rel}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
