"""
BuildReceipt Schema — pass_builder v1

One JSON receipt per build invocation: what was probed, which flags
were used, what each compile did and which artifacts exist afterwards.
The fingerprint stored here is what the next run compares against to
decide whether anything needs rebuilding.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from pass_builder import BUILDER_NAME, BUILDER_VERSION, PROFILE_ID


# =============================================================================
# Enums
# =============================================================================

class BuildMode(str, Enum):
    """Whether the LLVM passes were part of this build."""
    FULL = "full"
    DEGRADED = "degraded"


class UnitKind(str, Enum):
    PLUGIN = "plugin"
    SUPPORT = "support"


class UnitStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    TIMEOUT = "TIMEOUT"


# =============================================================================
# Inputs
# =============================================================================

class PlatformInfo(BaseModel):
    os_family: str
    vendor: str
    shared_library_suffix: str


class ProbeInfo(BaseModel):
    """Outcome of the llvm-config probe."""
    tool: str
    found: bool
    source: Optional[str] = None  # override / brew / version_scan
    reason: Optional[str] = None


class NumericInfo(BaseModel):
    edges_map_size: int
    accounting_map_size: int


class ToolchainInfo(BaseModel):
    query_tool: str
    clang_path: str
    clangxx_path: str
    cxxflags: List[str] = []
    ldflags: List[str] = []


# =============================================================================
# Compile results
# =============================================================================

class ElfInfo(BaseModel):
    """Minimal ELF header facts for a produced shared library."""
    elf_type: str = ""  # ET_DYN expected
    machine: str = ""


class CompileUnitResult(BaseModel):
    """Result of one compiler (or archiver) invocation."""
    unit: str
    kind: UnitKind
    command: List[str]
    exit_code: int
    status: UnitStatus
    output_path_rel: Optional[str] = None
    stdout_path_rel: Optional[str] = None
    stderr_path_rel: Optional[str] = None
    duration_ms: int = 0
    elf: Optional[ElfInfo] = None


# =============================================================================
# Top-level BuildReceipt
# =============================================================================

class BuilderInfo(BaseModel):
    name: str = BUILDER_NAME
    version: str = BUILDER_VERSION
    profile_id: str = PROFILE_ID


class BuildReceipt(BaseModel):
    """
    Single authoritative receipt for a pass build.

    One file per output directory: build_receipt.json
    """
    builder: BuilderInfo = BuilderInfo()
    created_at: str
    finished_at: Optional[str] = None
    mode: BuildMode
    platform: PlatformInfo
    probe: ProbeInfo
    numeric: NumericInfo
    toolchain: Optional[ToolchainInfo] = None
    units: List[CompileUnitResult] = []
    artifacts: List[str] = Field(
        default_factory=list,
        description="Paths relative to the output directory",
    )
    warnings: List[str] = []
    fingerprint: str = ""


def now_iso() -> str:
    """Current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()
