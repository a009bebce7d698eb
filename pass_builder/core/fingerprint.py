"""
Rebuild triggers.

A build is keyed by a SHA-256 over the values of the tracked environment
variables, the contents of every tracked source file and the runner
module itself, plus the resolved target and support toolchain.  If the
previous receipt carries the same fingerprint and its artifacts are
still on disk, the build can be skipped.
"""
import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Tuple

from pass_builder.io.schema import BuildReceipt
from pass_builder.policy.profile import BuildProfile


@dataclass(frozen=True)
class RebuildTriggers:
    env_vars: Tuple[str, ...]
    files: Tuple[Path, ...]

    @classmethod
    def for_profile(
        cls,
        profile: BuildProfile,
        src_dir: Path,
        script: Path,
    ) -> "RebuildTriggers":
        units = (
            list(profile.shared_headers)
            + [t.source_unit for t in profile.plugin_targets]
            + [profile.support_target.source_unit]
        )
        return cls(
            env_vars=profile.tracked_env,
            files=tuple(src_dir / u for u in units) + (script,),
        )


def compute_fingerprint(
    triggers: RebuildTriggers,
    env: Mapping[str, str],
    build_keys: Optional[Mapping[str, str]] = None,
) -> str:
    """
    Deterministic hash over env values, file contents and build keys.

    *build_keys* carries resolved settings that change the artifacts but
    are not read from the tracked variables (target platform, support
    toolchain, profile id).  Keys are hashed in sorted order.
    """
    h = hashlib.sha256()
    for name in triggers.env_vars:
        value = env.get(name)
        h.update(name.encode("utf-8"))
        h.update(b"\0unset\0" if value is None else b"=" + value.encode("utf-8"))
    for path in triggers.files:
        h.update(path.as_posix().encode("utf-8"))
        if path.is_file():
            h.update(b"\0" + path.read_bytes())
        else:
            h.update(b"\0missing\0")
    for key, value in sorted((build_keys or {}).items()):
        h.update(b"\0key\0" + key.encode("utf-8") + b"=" + value.encode("utf-8"))
    return h.hexdigest()


def is_up_to_date(
    previous: Optional[BuildReceipt],
    fingerprint: str,
    out_dir: Path,
) -> bool:
    """True when *previous* was built from the same inputs and its artifacts remain."""
    if previous is None or previous.fingerprint != fingerprint:
        return False
    return all((out_dir / rel).exists() for rel in previous.artifacts)
