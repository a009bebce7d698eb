"""
Writer — generated constants module and build receipt.

Filesystem layout per output directory:
    <out_dir>/clang_constants.py
    <out_dir>/build_receipt.json
"""
import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from pass_builder.core.flags import ToolchainConfig
from pass_builder.core.numeric import NumericConfig
from pass_builder.io.schema import BuildReceipt
from pass_builder.policy.profile import BuildProfile

logger = logging.getLogger(__name__)

CONSTANTS_FILENAME = "clang_constants.py"
RECEIPT_FILENAME = "build_receipt.json"

_HEADER = "# These constants are autogenerated by pass_builder\n"


def render_constants(
    numeric: NumericConfig,
    toolchain: Optional[ToolchainConfig],
    profile: BuildProfile | None = None,
) -> str:
    """
    Source text of clang_constants.py.

    Without a toolchain only the bare clang names are written; the map
    sizes are left out entirely.
    """
    if profile is None:
        profile = BuildProfile.v1()

    if toolchain is None:
        return (
            _HEADER
            + "\n"
            + "#: The path to the `clang` executable\n"
            + f"CLANG_PATH: str = {profile.fallback_clang!r}\n"
            + "#: The path to the `clang++` executable\n"
            + f"CLANGXX_PATH: str = {profile.fallback_clangxx!r}\n"
        )

    return (
        _HEADER
        + "\n"
        + "#: The path to the `clang` executable\n"
        + f"CLANG_PATH: str = {str(toolchain.clang_path)!r}\n"
        + "#: The path to the `clang++` executable\n"
        + f"CLANGXX_PATH: str = {str(toolchain.clangxx_path)!r}\n"
        + "\n"
        + "#: The size of the edges map\n"
        + f"EDGES_MAP_SIZE: int = {numeric.edges_map_size}\n"
        + "\n"
        + "#: The size of the accounting maps\n"
        + f"ACCOUNTING_MAP_SIZE: int = {numeric.accounting_map_size}\n"
    )


def emit_constants(
    numeric: NumericConfig,
    toolchain: Optional[ToolchainConfig],
    out_dir: Path,
    profile: BuildProfile | None = None,
) -> Path:
    """Write (or overwrite) clang_constants.py in *out_dir*."""
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / CONSTANTS_FILENAME
    path.write_text(render_constants(numeric, toolchain, profile))
    logger.debug("Constants written: %s", path)
    return path


def write_receipt(receipt: BuildReceipt, out_dir: Path) -> Path:
    """Save build_receipt.json into *out_dir*."""
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / RECEIPT_FILENAME
    path.write_text(
        json.dumps(receipt.model_dump(mode="json"), indent=2, sort_keys=True)
        + "\n"
    )
    logger.info("Receipt saved: %s", path)
    return path


def read_receipt(out_dir: Path) -> Optional[BuildReceipt]:
    """Load the previous receipt, or None if it is missing or unreadable."""
    path = out_dir / RECEIPT_FILENAME
    if not path.exists():
        return None
    try:
        return BuildReceipt.model_validate_json(path.read_text())
    except (ValidationError, ValueError) as e:
        logger.info("Ignoring unreadable receipt %s: %s", path, e)
        return None
