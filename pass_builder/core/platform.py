"""
Target platform — OS family and vendor.

The platform is read once per build.  It selects the probe strategy,
the apple link-flag patch and the shared-library suffix.
"""
import sys
from dataclasses import dataclass
from enum import Enum, unique
from typing import Optional


@unique
class OsFamily(str, Enum):
    LINUX = "linux"
    ANDROID = "android"
    MACOS = "macos"
    IOS = "ios"
    WINDOWS = "windows"
    FREEBSD = "freebsd"
    OTHER = "other"


@unique
class Vendor(str, Enum):
    APPLE = "apple"
    PC = "pc"
    UNKNOWN = "unknown"


_SYS_PLATFORM_OS = {
    "linux": OsFamily.LINUX,
    "android": OsFamily.ANDROID,
    "darwin": OsFamily.MACOS,
    "ios": OsFamily.IOS,
    "win32": OsFamily.WINDOWS,
    "cygwin": OsFamily.WINDOWS,
}

_OS_VENDOR = {
    OsFamily.MACOS: Vendor.APPLE,
    OsFamily.IOS: Vendor.APPLE,
    OsFamily.WINDOWS: Vendor.PC,
}


def shared_library_suffix(os_family: OsFamily) -> str:
    """Shared-library file extension for an OS family."""
    if os_family in (OsFamily.MACOS, OsFamily.IOS):
        return "dylib"
    if os_family == OsFamily.WINDOWS:
        return "dll"
    return "so"


@dataclass(frozen=True)
class Platform:
    os_family: OsFamily
    vendor: Vendor

    @property
    def is_apple(self) -> bool:
        return self.vendor == Vendor.APPLE

    @property
    def shared_library_suffix(self) -> str:
        return shared_library_suffix(self.os_family)

    @classmethod
    def detect(cls, sys_platform: Optional[str] = None) -> "Platform":
        """Describe the host from ``sys.platform``."""
        name = sys_platform if sys_platform is not None else sys.platform
        os_family = OsFamily.OTHER
        for prefix, family in _SYS_PLATFORM_OS.items():
            if name.startswith(prefix):
                os_family = family
                break
        if os_family == OsFamily.OTHER and name.startswith("freebsd"):
            os_family = OsFamily.FREEBSD
        return cls(os_family, _OS_VENDOR.get(os_family, Vendor.UNKNOWN))

    @classmethod
    def from_target(
        cls,
        target_os: Optional[str] = None,
        target_vendor: Optional[str] = None,
    ) -> "Platform":
        """
        Build a platform from explicit target names, filling gaps from the host.

        Unknown OS names map to OsFamily.OTHER and unknown vendors to
        Vendor.UNKNOWN, so a cross target never raises here.
        """
        host = cls.detect()
        if target_os is None:
            os_family = host.os_family
        else:
            try:
                os_family = OsFamily(target_os.strip().lower())
            except ValueError:
                os_family = OsFamily.OTHER

        if target_vendor is None:
            if target_os is None:
                vendor = host.vendor
            else:
                vendor = _OS_VENDOR.get(os_family, Vendor.UNKNOWN)
        else:
            try:
                vendor = Vendor(target_vendor.strip().lower())
            except ValueError:
                vendor = Vendor.UNKNOWN
        return cls(os_family, vendor)
