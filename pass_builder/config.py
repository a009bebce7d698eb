"""
Builder configuration
"""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Builder settings"""

    # Layout
    PASS_BUILDER_SRC_DIR: str = "src"
    PASS_BUILDER_OUT_DIR: str = "build"

    # Target platform (host platform when unset)
    PASS_BUILDER_TARGET_OS: Optional[str] = None
    PASS_BUILDER_TARGET_VENDOR: Optional[str] = None

    # Per-subprocess timeout in seconds; None blocks until exit
    PASS_BUILDER_TIMEOUT: Optional[int] = None

    # Support runtime toolchain
    CC: str = "cc"
    AR: str = "ar"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )
