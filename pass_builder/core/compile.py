"""
Pass compilation — four LLVM passes and the no-link runtime.

Plugin step (full mode only): each pass is compiled and linked into a
shared library in one clang++ invocation.  All four are attempted; if
any fails, every pass library is removed and a single CompileError
lists the failing units.

Support step (always): the no-link runtime is compiled with the plain
system C compiler and archived into a static library.  It does not
depend on the probed LLVM toolchain.
"""
import logging
import shlex
import subprocess
import time
from pathlib import Path
from typing import List, Optional

from elftools.common.exceptions import ELFError
from elftools.elf.elffile import ELFFile

from pass_builder.core.errors import CompileError
from pass_builder.core.flags import ToolchainConfig
from pass_builder.core.numeric import NumericConfig
from pass_builder.core.platform import Platform
from pass_builder.core.process import RunFn, run_captured
from pass_builder.io.schema import CompileUnitResult, ElfInfo, UnitKind, UnitStatus
from pass_builder.policy.profile import BuildProfile, BuildTarget

logger = logging.getLogger(__name__)

SHARED_FLAGS = ["-fPIC", "-shared"]


def inspect_elf(path: Path) -> Optional[ElfInfo]:
    """Read the ELF header of *path*; None if it is not an ELF file."""
    try:
        with open(path, "rb") as f:
            elf = ELFFile(f)
            return ElfInfo(
                elf_type=str(elf.header["e_type"]),
                machine=str(elf.header["e_machine"]),
            )
    except (ELFError, OSError) as e:
        logger.debug("Not an ELF file %s: %s", path, e)
        return None


def archive_name(target: BuildTarget) -> str:
    return f"lib{target.output_base}.a"


class PassCompiler:
    """Runs the plugin and support compile steps into one output directory."""

    def __init__(
        self,
        numeric: NumericConfig,
        platform: Platform,
        src_dir: Path,
        out_dir: Path,
        profile: BuildProfile | None = None,
        run: RunFn = subprocess.run,
        timeout: Optional[int] = None,
    ):
        self.numeric = numeric
        self.platform = platform
        self.src_dir = src_dir
        self.out_dir = out_dir
        self.profile = profile or BuildProfile.v1()
        self.run = run
        self.timeout = timeout

    # -----------------------------------------------------------------
    # Commands
    # -----------------------------------------------------------------

    def defines(self) -> List[str]:
        return [
            f"-D{self.profile.edges_env}={self.numeric.edges_map_size}",
            f"-D{self.profile.accounting_env}={self.numeric.accounting_map_size}",
        ]

    def plugin_output(self, target: BuildTarget) -> Path:
        suffix = self.platform.shared_library_suffix
        return self.out_dir / f"{target.output_base}.{suffix}"

    def plugin_command(self, toolchain: ToolchainConfig, target: BuildTarget) -> List[str]:
        return (
            [str(toolchain.clangxx_path)]
            + list(toolchain.cxxflags)
            + self.defines()
            + [str(self.src_dir / target.source_unit)]
            + list(toolchain.ldflags)
            + SHARED_FLAGS
            + ["-o", str(self.plugin_output(target))]
        )

    # -----------------------------------------------------------------
    # Invocation
    # -----------------------------------------------------------------

    def _invoke(
        self,
        log_name: str,
        unit: str,
        kind: UnitKind,
        cmd: List[str],
        output_path: Path,
    ) -> CompileUnitResult:
        """Run one command, keep its logs and report the outcome."""
        logs_dir = self.out_dir / "logs"
        logs_dir.mkdir(parents=True, exist_ok=True)
        logger.debug("Running: %s", " ".join(cmd))

        t0 = time.monotonic()
        stdout_content = ""
        stderr_content = ""
        status = UnitStatus.FAILED
        try:
            result = run_captured(cmd, run=self.run, timeout=self.timeout)
            exit_code = result.returncode
            stdout_content = result.stdout or ""
            stderr_content = result.stderr or ""
            if exit_code == 0:
                status = UnitStatus.SUCCESS
        except subprocess.TimeoutExpired:
            exit_code = -1
            stderr_content = f"TIMEOUT after {self.timeout}s"
            status = UnitStatus.TIMEOUT
        except OSError as e:
            exit_code = -1
            stderr_content = str(e)
        duration = int((time.monotonic() - t0) * 1000)

        # Only write log files if they have content
        stdout_rel = None
        stderr_rel = None
        if stdout_content:
            stdout_file = logs_dir / f"{log_name}.stdout"
            stdout_file.write_text(stdout_content)
            stdout_rel = stdout_file.relative_to(self.out_dir).as_posix()
        if stderr_content:
            stderr_file = logs_dir / f"{log_name}.stderr"
            stderr_file.write_text(stderr_content)
            stderr_rel = stderr_file.relative_to(self.out_dir).as_posix()

        if status != UnitStatus.SUCCESS:
            logger.error("%s failed (exit %d): %s", unit, exit_code, stderr_content.strip())

        return CompileUnitResult(
            unit=unit,
            kind=kind,
            command=cmd,
            exit_code=exit_code,
            status=status,
            output_path_rel=output_path.relative_to(self.out_dir).as_posix(),
            stdout_path_rel=stdout_rel,
            stderr_path_rel=stderr_rel,
            duration_ms=duration,
        )

    # -----------------------------------------------------------------
    # Plugin step
    # -----------------------------------------------------------------

    def compile_plugins(self, toolchain: ToolchainConfig) -> List[CompileUnitResult]:
        """
        Build every pass library.

        Raises CompileError after all four attempts if any of them failed;
        no pass library is left behind in that case.
        """
        self.out_dir.mkdir(parents=True, exist_ok=True)
        results: List[CompileUnitResult] = []

        for target in self.profile.plugin_targets:
            logger.info("Compiling %s", target.source_unit)
            results.append(self._invoke(
                log_name=target.output_base,
                unit=target.source_unit,
                kind=UnitKind.PLUGIN,
                cmd=self.plugin_command(toolchain, target),
                output_path=self.plugin_output(target),
            ))

        failed = [r.unit for r in results if r.status != UnitStatus.SUCCESS]
        if failed:
            for target in self.profile.plugin_targets:
                self.plugin_output(target).unlink(missing_ok=True)
            raise CompileError(failed)

        if self.platform.shared_library_suffix == "so":
            for target, result in zip(self.profile.plugin_targets, results):
                result.elf = inspect_elf(self.plugin_output(target))
        return results

    # -----------------------------------------------------------------
    # Support step
    # -----------------------------------------------------------------

    def compile_support(self, cc: str = "cc", ar: str = "ar") -> List[CompileUnitResult]:
        """Compile the no-link runtime and archive it as lib<name>.a."""
        self.out_dir.mkdir(parents=True, exist_ok=True)
        target = self.profile.support_target
        obj_path = self.out_dir / f"{target.output_base}.o"
        archive_path = self.out_dir / archive_name(target)

        logger.info("Compiling %s", target.source_unit)
        compile_result = self._invoke(
            log_name=target.output_base,
            unit=target.source_unit,
            kind=UnitKind.SUPPORT,
            cmd=shlex.split(cc) + [
                "-c", "-fPIC",
                str(self.src_dir / target.source_unit),
                "-o", str(obj_path),
            ],
            output_path=obj_path,
        )
        if compile_result.status != UnitStatus.SUCCESS:
            raise CompileError([target.source_unit])

        # ar rewrites members in place; start from an empty archive
        archive_path.unlink(missing_ok=True)
        archive_result = self._invoke(
            log_name=f"{target.output_base}.ar",
            unit=archive_path.name,
            kind=UnitKind.SUPPORT,
            cmd=shlex.split(ar) + ["crs", str(archive_path), str(obj_path)],
            output_path=archive_path,
        )
        if archive_result.status != UnitStatus.SUCCESS:
            raise CompileError([archive_path.name])

        return [compile_result, archive_result]
