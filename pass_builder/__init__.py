"""
pass_builder — LLVM toolchain discovery and pass compilation.

Locate llvm-config, emit clang_constants.py, compile the four
instrumentation passes into shared libraries and the no-link runtime
into a static archive.  Degrades to constants + runtime when no LLVM
toolchain can be reached.
"""

__version__ = "0.1.0"
BUILDER_NAME = "pass_builder"
BUILDER_VERSION = "v1"
PROFILE_ID = "llvm-passes-v1"
