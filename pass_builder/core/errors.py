"""
Errors raised by the pass build pipeline.

Only ToolUnreachableError is recoverable: the runner catches it and
switches to the degraded path.  Everything else aborts the build.
"""
from typing import List


class PassBuildError(Exception):
    """Base class for all pass_builder failures."""


class SizeParseError(PassBuildError):
    """A map-size environment variable is not a base-10 unsigned integer."""

    def __init__(self, name: str, value: str):
        self.name = name
        self.value = value
        super().__init__(f"Could not parse {name}: {value!r} is not an unsigned integer")


class ToolUnreachableError(PassBuildError):
    """The toolchain query tool could not be executed at all."""

    def __init__(self, tool: str, reason: str):
        self.tool = tool
        self.reason = reason
        super().__init__(f"Could not execute {tool}: {reason}")


class ToolInvocationError(PassBuildError):
    """The query tool ran but a flag query failed or produced unusable output."""

    def __init__(self, tool: str, args: List[str], reason: str):
        self.tool = tool
        self.query_args = list(args)
        self.reason = reason
        super().__init__(f"Failed to execute {tool} {' '.join(args)}: {reason}")


class CompileError(PassBuildError):
    """One or more native compile invocations did not succeed."""

    def __init__(self, failed_units: List[str]):
        self.failed_units = list(failed_units)
        super().__init__(f"Failed to compile: {', '.join(self.failed_units)}")
