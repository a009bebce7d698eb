"""
Map-size resolution from the environment.

Both sizes default when their variable is unset.  A set variable must be
a plain base-10 unsigned integer; anything else aborts the build rather
than silently falling back to the default.
"""
import re
from dataclasses import dataclass
from typing import Mapping

from pass_builder.core.errors import SizeParseError
from pass_builder.policy.profile import BuildProfile

_UINT_RE = re.compile(r"\+?[0-9]+")
_UINT_MAX = 2**64 - 1


@dataclass(frozen=True)
class NumericConfig:
    edges_map_size: int
    accounting_map_size: int


def parse_uint(name: str, value: str) -> int:
    """Parse *value* as an unsigned 64-bit integer or raise SizeParseError."""
    if not _UINT_RE.fullmatch(value):
        raise SizeParseError(name, value)
    parsed = int(value, 10)
    if parsed > _UINT_MAX:
        raise SizeParseError(name, value)
    return parsed


def resolve_size(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if value is None:
        return default
    return parse_uint(name, value)


def resolve_numeric_config(
    env: Mapping[str, str],
    profile: BuildProfile | None = None,
) -> NumericConfig:
    """Resolve both map sizes from an environment snapshot."""
    if profile is None:
        profile = BuildProfile.v1()
    return NumericConfig(
        edges_map_size=resolve_size(env, profile.edges_env, profile.default_map_size),
        accounting_map_size=resolve_size(env, profile.accounting_env, profile.default_map_size),
    )
